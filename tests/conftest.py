"""
Shared test setup: keep log files out of the working tree.
"""
import os
import tempfile

os.environ.setdefault( "DOUKI_LOG_DIR", tempfile.mkdtemp( prefix="douki-logs-" ) );
