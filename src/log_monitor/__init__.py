"""Log monitoring dashboard: storage, filtering/search and stream control of log records."""

__version__ = "0.1.0"
