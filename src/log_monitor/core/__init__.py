# This file makes 'core' a Python package.
# Convenience imports for the server side:
from .api_server import app
from .errors import LogMonitorError, NotConnectedError, RemoteCallError, StorageError, ValidationError
from .log_processor import process_log
from .query_engine import create_log_entry, get_logs, get_recent_logs, list_sources, search_logs
from .storage import LogEntryDB, StreamStatusDB, configure_engine, get_db, init_db
from .stream_controller import clear_all, control_stream, get_status
