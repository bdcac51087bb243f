"""
Synchronization data generation: store a section of a source file so its
subtitle can later be re-timed against other releases.
"""
from dataclasses import dataclass, field
from pathlib import Path
from typing import List, Optional, Union

from .config import SyncSettings
from .fingerprint import Fingerprinter
from .keyframes import ExtractionPlan, plan_extraction
from .logging import get_logger
from .media import MediaProcessor
from .subtitles import add_section_metadata, load_subtitle, save_subtitle, trim_to_duration
from .syncdata import SectionPaths, next_section_id, save_fingerprints, section_paths
from .timestamp import format_timestamp, parse_timestamp


Timestamp = Union[str, int, float];


@dataclass
class GeneratedSection:
    """What was written for one section."""

    section_id: str;
    paths: SectionPaths;
    plan: ExtractionPlan;
    fingerprint_count: int;
    has_subtitle: bool = False;
    attachments: List[Path] = field( default_factory=list );


class SyncDataGenerator:
    """
    Generates the stored data for one section of a source file.

    Steps:
    1. Probe the source and list keyframes near the requested start
    2. Plan and perform the cut (stream copy when a keyframe is close)
    3. Fingerprint the cut audio
    4. Write scene keyframes for video sections
    5. Extract or cut the section subtitle, falling back to a template
    6. Dump font attachments
    """

    def __init__( self, settings: SyncSettings = None, media: MediaProcessor = None, debug: bool = False ):
        self.settings = settings or SyncSettings();
        self.media = media or MediaProcessor( self.settings, debug=debug );
        self.logger = get_logger( debug=debug );

    def generate(
        self,
        source_file: Path,
        data_dir: Path,
        start: Optional[Timestamp] = None,
        end: Optional[Timestamp] = None,
        name: Optional[str] = None,
        subtitle_file: Optional[Path] = None,
        template_file: Optional[Path] = None,
        skip_keyframes: bool = False
    ) -> GeneratedSection:
        """
        Generate synchronization data for ``[start, end]`` of a source file.

        Args:
            source_file: Audio or video file containing the section
            data_dir: Directory holding the project's sections
            start: Section start (seconds or timestamp, default 0)
            end: Section end (default: end of the file)
            name: Section id (default: next number in the directory)
            subtitle_file: Subtitle to cut instead of the source's own track
            template_file: Script used when no usable subtitle is found
            skip_keyframes: Do not write the scene keyframe file

        Returns:
            GeneratedSection describing the written files

        Raises:
            MediaProbeError: If the source cannot be probed
            ExtractionError: If cutting or decoding fails
        """
        source_file = Path( source_file );
        data_dir = Path( data_dir );
        requested_start = parse_timestamp( start ) if start else 0.0;

        section_id = str( name ) if name else next_section_id( data_dir );
        data_dir.mkdir( parents=True, exist_ok=True );
        paths = section_paths( data_dir, section_id );
        self.logger.info( f"Generating section {section_id} from {source_file}" );

        info = self.media.probe( source_file );
        section_end = parse_timestamp( end ) if end else info.duration;

        keyframes = self.media.list_keyframes( source_file, requested_start ) if info.has_video else [];
        plan = plan_extraction( requested_start, keyframes, info.has_video, self.settings );
        self.logger.debug( repr( plan ) );

        if plan.can_skip_cut:
            cut_file = source_file;
            self.logger.info( "Section starts at the beginning: using the source file directly" );
        else:
            cut_file = self.media.cut( source_file, plan.start, section_end, plan.reencode, paths.media );

        fingerprinter = Fingerprinter( sample_rate=self.settings.sample_rate );
        fingerprints = self.media.extract_fingerprints( cut_file, fingerprinter );
        save_fingerprints( fingerprints, paths.fingerprints );

        if info.has_video and not skip_keyframes:
            self.media.write_keyframes_file( cut_file, paths.keyframes );

        section = GeneratedSection( section_id, paths, plan, len( fingerprints ) );
        subtitle_start = 0.0 if plan.can_skip_cut else plan.start;
        self._write_subtitle( section, cut_file, subtitle_file, template_file,
                              subtitle_start, section_end, section_end - requested_start, info.has_video );

        self.logger.info( f"Section {section_id} stored in {data_dir} " \
                          f"({format_timestamp( requested_start )} - {format_timestamp( section_end )})" );
        return section;

    def _write_subtitle(
        self,
        section: GeneratedSection,
        cut_file: Path,
        subtitle_file: Optional[Path],
        template_file: Optional[Path],
        subtitle_start: float,
        section_end: float,
        duration: float,
        includes_video: bool
    ):
        """Write the section subtitle, its metadata and attachments."""
        paths = section.paths;

        if subtitle_file:
            extracted = self.media.extract_subtitle( subtitle_file, paths.subtitle, start=subtitle_start, end=section_end );
        else:
            extracted = self.media.extract_subtitle( cut_file, paths.subtitle );

        if extracted:
            subs = load_subtitle( paths.subtitle );
            kept = trim_to_duration( subs, duration );
            if kept > self.settings.min_subtitle_lines:
                add_section_metadata( subs, section.section_id, includes_video );
                save_subtitle( subs, paths.subtitle );
                section.has_subtitle = True;
                section.attachments = self._dump_attachments( cut_file, paths.attachments );
                return;
            self.logger.warning( f"Only {kept} dialogue line(s) found for section {section.section_id}" );

        if template_file:
            subs = load_subtitle( template_file );
            add_section_metadata( subs, section.section_id, includes_video );
            save_subtitle( subs, paths.subtitle );
            section.has_subtitle = True;
            self.logger.info( f"Used template {template_file} for section {section.section_id}" );
        else:
            self.logger.warning( f"No usable subtitle for section {section.section_id}; " \
                                 f"write one at {paths.subtitle} before synchronizing" );

    def _dump_attachments( self, cut_file: Path, attachments_dir: Path ) -> List[Path]:
        attachments = self.media.dump_attachments( cut_file, attachments_dir );
        if not attachments:
            if attachments_dir.is_dir():
                attachments_dir.rmdir();
        else:
            self.logger.info( f"Stored {len( attachments )} attachment(s) in {attachments_dir}" );
        return attachments;
