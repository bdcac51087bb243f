"""
On-disk layout of synchronization data.

A data directory holds any number of sections, each stored as::

    <id>.json             fingerprints, a JSON list of [offset, hash]
    <id>.ass              the timed subtitle for the section
    <id>.mkv              the cut media (for editing in Aegisub)
    <id>-keyframes.txt    scene keyframes (video sections only)
    <id>-attachments/     fonts dumped from the source (optional)
"""
import json
import re
from dataclasses import dataclass, field
from pathlib import Path
from typing import List, NamedTuple, Union

from .exceptions import SyncDataError
from .fingerprint import FingerprintSequence
from .logging import get_logger


NON_DIGITS = re.compile( r"\D+" );


class SectionPaths( NamedTuple ):
    fingerprints: Path;
    subtitle: Path;
    media: Path;
    keyframes: Path;
    attachments: Path;


@dataclass
class SyncRecord:
    """A stored, already timed section loaded for matching."""

    section_id: str;
    fingerprints: FingerprintSequence;
    subtitle_path: Path;
    attachment_paths: List[Path] = field( default_factory=list );

    def __repr__( self ):
        return f"SyncRecord({self.section_id}, fingerprints={len( self.fingerprints )}, subtitle={self.subtitle_path.name})";


def section_paths( data_dir: Path, section_id: Union[str, int] ) -> SectionPaths:
    data_dir = Path( data_dir ).resolve();
    return SectionPaths(
        fingerprints=data_dir / f"{section_id}.json",
        subtitle=data_dir / f"{section_id}.ass",
        media=data_dir / f"{section_id}.mkv",
        keyframes=data_dir / f"{section_id}-keyframes.txt",
        attachments=data_dir / f"{section_id}-attachments"
    );


def _numeric_id( name: str ) -> int:
    digits = NON_DIGITS.sub( "", name );
    return int( digits ) if digits else 0;


def next_section_id( data_dir: Path ) -> str:
    """
    Pick the next automatic section id, creating the directory if needed.

    The id is one more than the largest number found in the names of the
    existing fingerprint files (names without digits count as 0).
    """
    data_dir = Path( data_dir );
    data_dir.mkdir( parents=True, exist_ok=True );
    highest = max( ( _numeric_id( path.stem ) for path in data_dir.glob( "*.json" ) ), default=0 );
    return str( highest + 1 );


def save_fingerprints( fingerprints: FingerprintSequence, fingerprints_file: Path ) -> Path:
    Path( fingerprints_file ).write_text(
        json.dumps( [ [ int( offset ), int( hash_ ) ] for offset, hash_ in fingerprints ], separators=( ",", ":" ) ),
        encoding="utf-8"
    );
    return Path( fingerprints_file );


def load_fingerprints( fingerprints_file: Path ) -> FingerprintSequence:
    """
    Read a fingerprint file.

    Raises:
        SyncDataError: If the file is not a JSON list of pairs
    """
    try:
        data = json.loads( Path( fingerprints_file ).read_text( encoding="utf-8" ) );
        return [ ( int( offset ), int( hash_ ) ) for offset, hash_ in data ];
    except ( OSError, ValueError, TypeError ) as e:
        raise SyncDataError( f"Invalid fingerprint file {fingerprints_file}: {e}" ) from e;


def list_attachments( attachments_dir: Path ) -> List[Path]:
    """Files in a section attachment directory; a missing directory is empty."""
    attachments_dir = Path( attachments_dir );
    if not attachments_dir.is_dir():
        return [];
    return sorted( path for path in attachments_dir.iterdir() if path.is_file() );


def list_section_ids( data_dir: Path ) -> List[str]:
    """
    Section ids stored in a data directory, numerically ordered then by name.

    Raises:
        SyncDataError: If the directory does not exist
    """
    data_dir = Path( data_dir );
    if not data_dir.is_dir():
        raise SyncDataError( f"Synchronization data directory not found: {data_dir}" );

    stems = [ path.stem for path in data_dir.glob( "*.json" ) ];
    return sorted( stems, key=lambda stem: ( _numeric_id( stem ), stem ) );


def load_sync_record( data_dir: Path, section_id: str ) -> SyncRecord:
    """
    Load one stored section for matching.

    Raises:
        SyncDataError: If its fingerprint file is missing or invalid
    """
    paths = section_paths( data_dir, section_id );
    record = SyncRecord(
        section_id=section_id,
        fingerprints=load_fingerprints( paths.fingerprints ),
        subtitle_path=paths.subtitle,
        attachment_paths=list_attachments( paths.attachments )
    );
    get_logger().debug( repr( record ) );
    return record;
