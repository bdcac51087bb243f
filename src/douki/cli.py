"""
CLI entry point for Douki with argument parsing and environment variable loading.
"""
import argparse
import sys
from pathlib import Path

from . import __version__
from .config import load_settings
from .exceptions import DoukiError
from .logging import setup_logging
from .timestamp import parse_timestamp


class DoukiCLI:
    """
    Command line interface for Douki subtitle synchronization.

    Two subcommands:
    - generate-sync-data: store a timed section of a source release
    - generate-subtitles: re-time stored sections onto a new release

    Tuned thresholds come from ``DOUKI_*`` environment variables, optionally
    loaded from a ``.env`` file.
    """

    def __init__( self ):
        self.parser = self._create_parser();
        self.args = None;
        self.logger = None;
        self.settings = None;

    def _create_parser( self ):
        """Create argument parser with all Douki subcommands."""
        parser = argparse.ArgumentParser(
            prog="douki",
            description="Subtitle re-synchronization using audio fingerprints",
            epilog="Environment variables: DOUKI_MIN_MATCH_COUNT, DOUKI_MAX_ALLOWED_DEVIATION, DOUKI_LOG_DIR, ..."
        );

        parser.add_argument(
            "--debug",
            action="store_true",
            help="Enable debug mode with verbose output"
        );

        subparsers = parser.add_subparsers( dest="command", metavar="command" );
        subparsers.required = True;

        generate = subparsers.add_parser(
            "generate-sync-data",
            help="Store a section of a timed release as synchronization data"
        );
        generate.add_argument( "source", type=Path, help="Audio or video file containing the section" );
        generate.add_argument(
            "-n", "--name",
            help="Section id (default: next number in the data directory)"
        );
        generate.add_argument(
            "-d", "--dir",
            type=Path,
            default=Path( "." ),
            dest="data_dir",
            help="Synchronization data directory (default: current directory)"
        );
        generate.add_argument(
            "-s", "--start",
            help="Section start, in seconds or [[H:]M:]S (default: 0)"
        );
        generate.add_argument(
            "-t", "--end",
            help="Section end, in seconds or [[H:]M:]S (default: end of file)"
        );
        generate.add_argument(
            "--subtitle",
            type=Path,
            help="Subtitle file to cut instead of the source's own subtitle track"
        );
        generate.add_argument(
            "--template",
            type=Path,
            help="Script used when no usable subtitle is found"
        );
        generate.add_argument(
            "--skip-keyframes",
            action="store_true",
            help="Do not write a scene keyframe file for video sections"
        );

        sync = subparsers.add_parser(
            "generate-subtitles",
            help="Synchronize stored sections to a new release"
        );
        sync.add_argument( "source", type=Path, help="Audio or video file to synchronize to" );
        sync.add_argument(
            "-s", "--source-dir",
            type=Path,
            default=Path( "." ),
            help="Synchronization data directory (default: current directory)"
        );
        sync.add_argument(
            "-t", "--target-dir",
            type=Path,
            default=Path( "." ),
            help="Output .ass file or directory for a generated name (default: current directory)"
        );

        return parser;

    def _load_environment( self ):
        """Load tuned settings from the .env file and the environment."""
        self.settings = load_settings();

    def _validate_arguments( self ):
        """Validate parsed arguments."""
        errors = [];

        if not self.args.source.exists():
            errors.append( f"Source file not found: {self.args.source}" );

        if self.args.command == "generate-sync-data":
            for label, value in ( ( "start", self.args.start ), ( "end", self.args.end ) ):
                if value is None:
                    continue;
                try:
                    if parse_timestamp( value ) < 0:
                        errors.append( f"Section {label} must not be negative: {value}" );
                except ValueError:
                    errors.append( f"Invalid section {label}: {value}" );

            if self.args.start and self.args.end and not errors:
                if parse_timestamp( self.args.end ) <= parse_timestamp( self.args.start ):
                    errors.append( "Section end must be after its start" );

            if self.args.subtitle and not self.args.subtitle.exists():
                errors.append( f"Subtitle file not found: {self.args.subtitle}" );

            if self.args.template and not self.args.template.exists():
                errors.append( f"Template file not found: {self.args.template}" );

        elif not self.args.source_dir.is_dir():
            errors.append( f"Synchronization data directory not found: {self.args.source_dir}" );

        return errors;

    def parse_args( self, argv=None ):
        """Parse command line arguments and validate configuration."""
        self.args = self.parser.parse_args( argv );

        # Setup logging based on debug flag
        self.logger = setup_logging( debug=self.args.debug, run_name=self.args.command );

        errors = [];
        try:
            self._load_environment();
        except ValueError as e:
            errors.append( str( e ) );

        errors.extend( self._validate_arguments() );
        if errors:
            self.logger.error( "Configuration errors:" );
            for error in errors:
                self.logger.error( f"  - {error}" );
            sys.exit( 1 );

        self.logger.info( f"Douki v{__version__} starting..." );
        self.logger.info( f"Command: {self.args.command}" );
        self.logger.info( f"Source: {self.args.source}" );
        self.logger.info( f"Debug mode: {self.args.debug}" );

        return self.args;


def run_generate( cli: DoukiCLI ):
    """Run the generate-sync-data command."""
    from .generate import SyncDataGenerator;

    args = cli.args;
    generator = SyncDataGenerator( cli.settings, debug=args.debug );
    section = generator.generate(
        args.source,
        args.data_dir,
        start=args.start,
        end=args.end,
        name=args.name,
        subtitle_file=args.subtitle,
        template_file=args.template,
        skip_keyframes=args.skip_keyframes
    );

    print( section.paths.fingerprints );
    if section.has_subtitle:
        print( section.paths.subtitle );


def run_synchronize( cli: DoukiCLI ):
    """Run the generate-subtitles command."""
    from .sync import SubtitleSynchronizer;

    args = cli.args;
    synchronizer = SubtitleSynchronizer( cli.settings, debug=args.debug );
    result = synchronizer.synchronize( args.source, args.source_dir, args.target_dir );

    if result is None:
        print( "No matches found" );
        return;

    print( result.subtitle_path );
    if result.attachments:
        print( "Attachments to include when muxing:" );
        for attachment in result.attachments:
            print( f"  {attachment}" );


COMMANDS = {
    "generate-sync-data": run_generate,
    "generate-subtitles": run_synchronize,
};


def main( argv=None ):
    """Main entry point for the Douki CLI."""
    cli = DoukiCLI();
    args = cli.parse_args( argv );

    try:
        COMMANDS[args.command]( cli );
    except KeyboardInterrupt:
        cli.logger.warning( "Interrupted by user" );
        sys.exit( 130 );
    except DoukiError as e:
        cli.logger.error( str( e ) );
        if args.debug:
            raise;
        sys.exit( 1 );
    except Exception as e:
        cli.logger.error( f"Unexpected error: {e}" );
        if args.debug:
            raise;
        sys.exit( 1 );


if __name__ == "__main__":
    main();
