"""
Logging for Douki: Rich console output plus one rotating log file per command.
"""
import os
import logging
import shutil
from datetime import datetime
from logging.handlers import RotatingFileHandler
from pathlib import Path
from rich.console import Console
from rich.logging import RichHandler


MAX_LOG_BYTES = 5 * 1024 * 1024;  # 5MB
FILE_FORMAT = "%(asctime)s - %(run)s - %(levelname)s - %(message)s";


class _RunFilter( logging.Filter ):
    """Stamps every record with the command that produced it."""

    def __init__( self, run_name: str ):
        super().__init__();
        self.run_name = run_name;

    def filter( self, record ):
        record.run = self.run_name;
        return True;


class DoukiLogger:
    """
    Logger wrapper for Douki runs.

    Features:
    - Rich console output on stderr, INFO by default and DEBUG with --debug
    - One log file per command (``douki-generate-subtitles.log``, ...) under
      DOUKI_LOG_DIR (default ./logs), so generation and synchronization
      histories stay apart
    - Files over 5MB are moved aside on startup, then rotated by size
    """

    def __init__( self, name: str = "douki", debug: bool = False, logs_dir: Path = None, run_name: str = None ):
        self.name = name;
        self.debug_enabled = debug;
        self.console = Console( stderr=True );
        self.logs_dir = Path( logs_dir or os.getenv( "DOUKI_LOG_DIR", "logs" ) );
        self.logs_dir.mkdir( parents=True, exist_ok=True );

        self.logger = logging.getLogger( name );
        self.logger.propagate = False;
        self.logger.handlers.clear();
        self.logger.addHandler( self._console_handler() );

        self.run_name = None;
        self.log_file = None;
        self.start_run( run_name );
        self.set_debug( debug );

    def _console_handler( self ):
        handler = RichHandler(
            console=self.console,
            rich_tracebacks=True,
            show_time=True,
            show_path=self.debug_enabled
        );
        handler.setFormatter( logging.Formatter( "%(message)s" ) );
        return handler;

    def _log_file_for( self, run_name: str ) -> Path:
        return self.logs_dir / ( f"{self.name}-{run_name}.log" if run_name else f"{self.name}.log" );

    def _rotate_if_oversized( self, log_file: Path ):
        """Move a log file over 5MB aside with a timestamp suffix."""
        if log_file.exists() and log_file.stat().st_size > MAX_LOG_BYTES:
            timestamp = datetime.now().isoformat().replace( ":", "-" );
            backup_name = log_file.with_name( f"{log_file.stem}.{timestamp}.log" );
            shutil.move( str( log_file ), str( backup_name ) );
            self.console.print( f"Rotated log file to {backup_name}" );

    def start_run( self, run_name: str = None ):
        """
        Send file output to the log of ``run_name`` (the CLI subcommand).

        The previous file handler, if any, is closed.
        """
        for handler in [ handler for handler in self.logger.handlers if isinstance( handler, RotatingFileHandler ) ]:
            self.logger.removeHandler( handler );
            handler.close();

        self.run_name = run_name;
        self.log_file = self._log_file_for( run_name );
        self._rotate_if_oversized( self.log_file );

        file_handler = RotatingFileHandler(
            self.log_file,
            maxBytes=MAX_LOG_BYTES,
            backupCount=5,
            encoding="utf-8"
        );
        file_handler.setLevel( logging.DEBUG );
        file_handler.setFormatter( logging.Formatter( FILE_FORMAT ) );
        file_handler.addFilter( _RunFilter( run_name or self.name ) );
        self.logger.addHandler( file_handler );

        if run_name:
            self.logger.info( f"=== {self.name} {run_name} started ===" );

    def set_debug( self, debug: bool ):
        """Switch console verbosity; the file always receives DEBUG."""
        self.debug_enabled = debug;
        level = logging.DEBUG if debug else logging.INFO;
        self.logger.setLevel( logging.DEBUG );
        for handler in self.logger.handlers:
            if isinstance( handler, RichHandler ):
                handler.setLevel( level );

    def debug( self, message, *args, **kwargs ):
        self.logger.debug( message, *args, **kwargs );

    def info( self, message, *args, **kwargs ):
        self.logger.info( message, *args, **kwargs );

    def warning( self, message, *args, **kwargs ):
        self.logger.warning( message, *args, **kwargs );

    def error( self, message, *args, **kwargs ):
        self.logger.error( message, *args, **kwargs );

    def critical( self, message, *args, **kwargs ):
        self.logger.critical( message, *args, **kwargs );


# Global logger instance
_logger = None;


def get_logger( debug: bool = False ) -> DoukiLogger:
    """Get the global Douki logger instance."""
    global _logger;
    if _logger is None:
        _logger = DoukiLogger( debug=debug );
    elif debug and not _logger.debug_enabled:
        _logger.set_debug( True );
    return _logger;


def setup_logging( debug: bool = False, run_name: str = None ) -> DoukiLogger:
    """Setup logging for one CLI command."""
    logger = get_logger( debug=debug );
    if run_name and run_name != logger.run_name:
        logger.start_run( run_name );
    return logger;
