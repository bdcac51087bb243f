"""
Main subtitle synchronization controller that orchestrates the entire process.
"""
import uuid
from concurrent.futures import ThreadPoolExecutor
from dataclasses import dataclass, field
from pathlib import Path
from typing import List, Optional, Tuple

from .config import SyncSettings
from .fingerprint import Fingerprinter, FingerprintSequence
from .logging import get_logger
from .matcher import MatchResult, match_records
from .media import MediaProcessor
from .merge import NameFactory, merge_tracks
from .subtitles import save_subtitle
from .syncdata import SyncRecord, list_section_ids, load_sync_record


@dataclass
class SyncResult:
    """Output of a successful synchronization run."""

    subtitle_path: Path;
    attachments: List[Path] = field( default_factory=list );
    matches: List[MatchResult] = field( default_factory=list );


class SubtitleSynchronizer:
    """
    Main controller for subtitle synchronization.

    Orchestrates:
    1. Haystack fingerprint extraction and section loading (in parallel)
    2. Delay estimation for every stored section
    3. Merging of the matched sections into one script
    4. Writing the synchronized script
    """

    def __init__(
        self,
        settings: SyncSettings = None,
        media: MediaProcessor = None,
        name_factory: NameFactory = None,
        debug: bool = False
    ):
        self.settings = settings or SyncSettings();
        self.media = media or MediaProcessor( self.settings, debug=debug );
        self.name_factory = name_factory;
        self.logger = get_logger( debug=debug );

    def load_inputs( self, media_file: Path, data_dir: Path, fingerprinter: Fingerprinter ) -> Tuple[FingerprintSequence, List[SyncRecord]]:
        """
        Extract the haystack and load every stored section concurrently.

        All work finishes before this returns; sections keep their stored
        order regardless of completion order. The first failure propagates.
        """
        data_dir = Path( data_dir );
        section_ids = list_section_ids( data_dir );
        self.logger.info( f"Found {len( section_ids )} stored section(s) in {data_dir}" );

        with ThreadPoolExecutor( max_workers=max( 1, self.settings.max_workers ) ) as executor:
            haystack_future = executor.submit( self.media.extract_fingerprints, media_file, fingerprinter );
            record_futures = [ executor.submit( load_sync_record, data_dir, section_id ) for section_id in section_ids ];

            records = [ future.result() for future in record_futures ];
            haystack = haystack_future.result();

        return haystack, records;

    def synchronize( self, media_file: Path, data_dir: Path, target: Path ) -> Optional[SyncResult]:
        """
        Synchronize stored sections to a new media file.

        Args:
            media_file: New audio or video file
            data_dir: Directory with synchronization data
            target: Output ``.ass`` path, or a directory for a generated name

        Returns:
            SyncResult, or None when no section matched
        """
        self.logger.info( "Starting Douki subtitle synchronization" );
        self.logger.info( f"Media: {media_file}" );
        self.logger.info( f"Synchronization data: {data_dir}" );

        fingerprinter = Fingerprinter( sample_rate=self.settings.sample_rate );
        haystack, records = self.load_inputs( media_file, data_dir, fingerprinter );

        matches = match_records( haystack, records, fingerprinter.timing_factor, self.settings );
        if not matches:
            self.logger.warning( "No matches found" );
            return None;

        for match in matches:
            self.logger.info( f"{match.record.subtitle_path.name} from {match.start:.3f} to {match.end:.3f} " \
                              f"got {match.match_count} matches in {match.delay:.3f} " \
                              f"with deviation {match.deviation:.1f}" );

        merged = merge_tracks( matches, name_factory=self.name_factory );
        output_file = self.output_path( target );
        save_subtitle( merged.document, output_file );

        self.logger.info( f"Synchronized {len( matches )}/{len( records )} section(s) into {output_file}" );
        return SyncResult( output_file, merged.attachments, matches );

    def output_path( self, target: Path ) -> Path:
        """Use ``target`` when it names an ``.ass`` file, else a new file inside it."""
        target = Path( target );
        if target.suffix.lower() == ".ass":
            target.parent.mkdir( parents=True, exist_ok=True );
            return target;

        target.mkdir( parents=True, exist_ok=True );
        return target / f"{uuid.uuid4().hex[:12]}.synced.ass";
