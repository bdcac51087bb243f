"""
ASS subtitle document handling: parsing, serialization and the metadata
written into every stored section.
"""
from pathlib import Path
from typing import List

import pysubs2

from .logging import get_logger


AEGISUB_STALE_KEYS = ( "Video AR Value", "Video Zoom Percent", "Active Line", "Video Position" );


def load_subtitle( subtitle_file: Path ) -> pysubs2.SSAFile:
    """Load an ASS script from disk."""
    return pysubs2.load( str( subtitle_file ), encoding="utf-8", format_="ass" );


def parse_subtitle( text: str ) -> pysubs2.SSAFile:
    return pysubs2.SSAFile.from_string( text, format_="ass" );


def serialize_subtitle( subs: pysubs2.SSAFile ) -> str:
    return subs.to_string( "ass" );


def save_subtitle( subs: pysubs2.SSAFile, subtitle_file: Path ) -> Path:
    """Write an ASS script as UTF-8."""
    Path( subtitle_file ).write_text( serialize_subtitle( subs ), encoding="utf-8" );
    return Path( subtitle_file );


def is_dialogue( event: pysubs2.SSAEvent ) -> bool:
    return event.type == "Dialogue";


def dialogue_events( subs: pysubs2.SSAFile ) -> List[pysubs2.SSAEvent]:
    return [ event for event in subs.events if is_dialogue( event ) ];


def trim_to_duration( subs: pysubs2.SSAFile, duration: float ) -> int:
    """
    Keep only dialogue lines starting before ``duration`` seconds.

    Returns:
        Number of dialogue lines kept
    """
    limit = pysubs2.make_time( s=duration );
    subs.events = [ event for event in subs.events if is_dialogue( event ) and event.start < limit ];
    return len( subs.events );


def add_section_metadata( subs: pysubs2.SSAFile, section_id: str, includes_video: bool ) -> pysubs2.SSAFile:
    """
    Point a section script at the files stored next to it.

    The script title becomes the section id and the Aegisub project values
    reference ``<id>.mkv`` (and ``<id>-keyframes.txt`` for video sections)
    so the section opens ready for editing. View state from the original
    project is dropped.
    """
    section_id = str( section_id );
    subs.info["Title"] = section_id;

    project = subs.aegisub_project;
    project["Audio File"] = f"{section_id}.mkv";
    if includes_video:
        project["Video File"] = f"{section_id}.mkv";
        project["Keyframes File"] = f"{section_id}-keyframes.txt";
    else:
        project.pop( "Video File", None );
        project.pop( "Keyframes File", None );

    for key in AEGISUB_STALE_KEYS:
        project.pop( key, None );

    get_logger().debug( f"Added section metadata for {section_id} (video={includes_video})" );
    return subs;
