"""
Timeline merge: splice matched sections into a single script.

The first matched section is the primary: its script (info, styles) is the
skeleton of the output. Every further section contributes its styles, renamed
when they collide with a style already present, and its dialogue lines,
shifted by the section delay and limited to the section's matched window.
"""
import random
from dataclasses import dataclass, field
from pathlib import Path
from typing import Callable, Dict, List, Sequence, Tuple

import pysubs2

from .logging import get_logger
from .matcher import MatchResult
from .subtitles import dialogue_events, is_dialogue, load_subtitle


NameFactory = Callable[[], str];
SubtitleLoader = Callable[[Path], pysubs2.SSAFile];


@dataclass
class MergeResult:
    """Merged script plus the attachments of every merged section."""

    document: pysubs2.SSAFile;
    attachments: List[Path] = field( default_factory=list );


def random_style_names( seed=None ) -> NameFactory:
    """Factory of 8 hex digit style names; pass a seed for repeatable names."""
    rng = random.Random( seed );
    return lambda: f"{rng.getrandbits( 32 ):08x}";


def shift_events( events: Sequence[pysubs2.SSAEvent], match: MatchResult, primary: bool = False ) -> List[pysubs2.SSAEvent]:
    """
    Shifted copies of the events that fall inside the matched window.

    An event is dropped when its original start lies after the window or its
    original end before it. For the primary section, events ending before
    zero once shifted are dropped too and starts are clamped to zero.
    """
    delay = pysubs2.make_time( s=match.delay );
    shifted = [];

    for event in events:
        if event.start / 1000 > match.end or event.end / 1000 < match.start:
            continue;

        start = event.start + delay;
        end = event.end + delay;
        if primary:
            if end < 0:
                continue;
            start = max( 0, start );

        copy = event.copy();
        copy.start = start;
        copy.end = end;
        shifted.append( copy );

    return shifted;


def reconcile_styles(
    merged_styles: Dict[str, pysubs2.SSAStyle],
    track_styles: Dict[str, pysubs2.SSAStyle],
    name_factory: NameFactory
) -> Tuple[Dict[str, pysubs2.SSAStyle], Dict[str, str]]:
    """
    Rename track styles whose names are already taken.

    Returns:
        Tuple of (styles to append keyed by final name, old -> new name map)
    """
    renamed = {};
    appended = {};

    for name, style in track_styles.items():
        final_name = name;
        if name in merged_styles:
            final_name = name_factory();
            while final_name in merged_styles or final_name in track_styles or final_name in appended:
                final_name = name_factory();
            renamed[name] = final_name;
        appended[final_name] = style.copy();

    return appended, renamed;


def merge_tracks(
    matches: Sequence[MatchResult],
    loader: SubtitleLoader = load_subtitle,
    name_factory: NameFactory = None
) -> MergeResult:
    """
    Merge the subtitles of matched sections into one script.

    Args:
        matches: Matched sections in their original order (never empty)
        loader: Loads a section script from its path
        name_factory: Produces names for colliding styles

    Returns:
        MergeResult with the merged script and collected attachments

    Raises:
        ValueError: If ``matches`` is empty
    """
    if not matches:
        raise ValueError( "At least one matched section is required to merge subtitles" );

    logger = get_logger();
    name_factory = name_factory or random_style_names();

    primary = matches[0];
    document = loader( primary.record.subtitle_path );
    other_events = [ event for event in document.events if not is_dialogue( event ) ];
    dialogue = shift_events( dialogue_events( document ), primary, primary=True );
    logger.debug( f"Primary section {primary.record.section_id}: kept {len( dialogue )} dialogue line(s)" );

    for match in matches[1:]:
        extra = loader( match.record.subtitle_path );

        styles, renamed = reconcile_styles( document.styles, extra.styles, name_factory );
        for old_name, new_name in renamed.items():
            logger.debug( f"Renamed colliding style '{old_name}' to '{new_name}' in section {match.record.section_id}" );
        document.styles.update( styles );

        events = shift_events( dialogue_events( extra ), match );
        for event in events:
            event.style = renamed.get( event.style, event.style );
        dialogue.extend( events );
        logger.debug( f"Section {match.record.section_id}: added {len( events )} dialogue line(s)" );

    dialogue.sort( key=lambda event: event.start );
    document.events = other_events + dialogue;

    attachments = [];
    for match in matches:
        attachments.extend( match.record.attachment_paths );

    return MergeResult( document, attachments );
