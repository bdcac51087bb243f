"""
Basic test cases for Douki CLI functionality.
"""
import pytest
from pathlib import Path
from unittest.mock import Mock, patch
import sys
import os

# Add src directory to path for testing
sys.path.insert( 0, str( Path( __file__ ).parent.parent / "src" ) );

from douki.cli import DoukiCLI, main
from douki.exceptions import MediaProbeError
from douki.sync import SyncResult


class TestDoukiCLI:
    """Test cases for Douki CLI interface."""

    def test_cli_initialization( self ):
        """Test CLI object creation."""
        cli = DoukiCLI();
        assert cli.parser is not None;
        assert cli.args is None;
        assert cli.logger is None;

    def test_argument_parsing_missing_command( self ):
        """Test CLI without a subcommand."""
        cli = DoukiCLI();

        with pytest.raises( SystemExit ):
            cli.parse_args( [] );

    def test_generate_arguments( self, tmp_path ):
        """Test generate-sync-data with every option."""
        source = tmp_path / "episode.mkv";
        source.write_bytes( b"" );

        cli = DoukiCLI();
        args = cli.parse_args( [
            '--debug',
            'generate-sync-data', str( source ),
            '-n', 'opening',
            '-d', str( tmp_path / "data" ),
            '-s', '1:30',
            '-t', '3:00',
            '--skip-keyframes'
        ] );

        assert args.command == 'generate-sync-data';
        assert args.source == source;
        assert args.name == 'opening';
        assert args.data_dir == tmp_path / "data";
        assert args.start == '1:30';
        assert args.end == '3:00';
        assert args.skip_keyframes == True;
        assert args.debug == True;

    def test_generate_subtitles_arguments( self, tmp_path ):
        """Test generate-subtitles defaults and options."""
        source = tmp_path / "episode.mkv";
        source.write_bytes( b"" );

        cli = DoukiCLI();
        args = cli.parse_args( [ 'generate-subtitles', str( source ), '-s', str( tmp_path ), '-t', 'out.ass' ] );

        assert args.command == 'generate-subtitles';
        assert args.source_dir == tmp_path;
        assert args.target_dir == Path( 'out.ass' );
        assert cli.logger.run_name == 'generate-subtitles';

    def test_missing_source_file( self, tmp_path ):
        """Test file existence validation."""
        cli = DoukiCLI();

        with pytest.raises( SystemExit ) as exit_info:
            cli.parse_args( [ 'generate-sync-data', str( tmp_path / "missing.mkv" ) ] );
        assert exit_info.value.code == 1;

    def test_invalid_section_times( self, tmp_path ):
        """Test start/end validation."""
        source = tmp_path / "episode.mkv";
        source.write_bytes( b"" );

        for extra in ( [ '-s', 'abc' ], [ '-s', '-5' ], [ '-s', '2:00', '-t', '1:00' ] ):
            with pytest.raises( SystemExit ):
                DoukiCLI().parse_args( [ 'generate-sync-data', str( source ) ] + extra );

    def test_missing_data_directory( self, tmp_path ):
        source = tmp_path / "episode.mkv";
        source.write_bytes( b"" );

        with pytest.raises( SystemExit ):
            DoukiCLI().parse_args( [ 'generate-subtitles', str( source ), '-s', str( tmp_path / "missing" ) ] );


class TestEnvironmentLoading:
    """Test environment variable loading."""

    @patch.dict( os.environ, { 'DOUKI_MIN_MATCH_COUNT': '20' } )
    def test_environment_variable_loading( self ):
        """Test loading thresholds from environment variables."""
        cli = DoukiCLI();
        cli._load_environment();

        assert cli.settings.min_match_count == 20;

    @patch.dict( os.environ, { 'DOUKI_MIN_MATCH_COUNT': 'lots' } )
    def test_invalid_environment_exits( self, tmp_path ):
        source = tmp_path / "episode.mkv";
        source.write_bytes( b"" );

        with pytest.raises( SystemExit ):
            DoukiCLI().parse_args( [ 'generate-subtitles', str( source ), '-s', str( tmp_path ) ] );


class TestMain:
    """Test command dispatch and exit codes."""

    @pytest.fixture
    def source( self, tmp_path ):
        source = tmp_path / "episode.mkv";
        source.write_bytes( b"" );
        return source;

    @patch( 'douki.sync.SubtitleSynchronizer' )
    def test_generate_subtitles_prints_output( self, mock_synchronizer, source, tmp_path, capsys ):
        mock_synchronizer.return_value.synchronize.return_value = SyncResult(
            tmp_path / "out.ass", [ tmp_path / "font.ttf" ], []
        );

        main( [ 'generate-subtitles', str( source ), '-s', str( tmp_path ), '-t', str( tmp_path / "out.ass" ) ] );

        output = capsys.readouterr().out;
        assert str( tmp_path / "out.ass" ) in output;
        assert str( tmp_path / "font.ttf" ) in output;

    @patch( 'douki.sync.SubtitleSynchronizer' )
    def test_no_matches_exits_cleanly( self, mock_synchronizer, source, tmp_path, capsys ):
        mock_synchronizer.return_value.synchronize.return_value = None;

        main( [ 'generate-subtitles', str( source ), '-s', str( tmp_path ) ] );

        assert "No matches found" in capsys.readouterr().out;

    @patch( 'douki.generate.SyncDataGenerator' )
    def test_douki_error_exits_with_one( self, mock_generator, source ):
        mock_generator.return_value.generate.side_effect = MediaProbeError( "ffprobe failed" );

        with pytest.raises( SystemExit ) as exit_info:
            main( [ 'generate-sync-data', str( source ) ] );
        assert exit_info.value.code == 1;

    @patch( 'douki.generate.SyncDataGenerator' )
    def test_keyboard_interrupt( self, mock_generator, source ):
        mock_generator.return_value.generate.side_effect = KeyboardInterrupt();

        with pytest.raises( SystemExit ) as exit_info:
            main( [ 'generate-sync-data', str( source ) ] );
        assert exit_info.value.code == 130;

    @patch( 'douki.generate.SyncDataGenerator' )
    def test_generate_prints_section_files( self, mock_generator, source, tmp_path, capsys ):
        section = Mock();
        section.paths.fingerprints = tmp_path / "1.json";
        section.paths.subtitle = tmp_path / "1.ass";
        section.has_subtitle = True;
        mock_generator.return_value.generate.return_value = section;

        main( [ 'generate-sync-data', str( source ), '-d', str( tmp_path ) ] );

        output = capsys.readouterr().out;
        assert str( tmp_path / "1.json" ) in output;
        assert str( tmp_path / "1.ass" ) in output;
