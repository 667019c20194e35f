from datetime import timezone

from .schemas import LogEntryCreate, parse_input
from .storage import utc_now


def process_log(log) -> dict:
    """Validate an incoming entry and normalize it into column values.

    A missing timestamp defaults to now; naive timestamps are taken as UTC.
    """
    entry = parse_input(LogEntryCreate, log, "log entry")
    timestamp = entry.timestamp or utc_now()
    if timestamp.tzinfo is None:
        timestamp = timestamp.replace(tzinfo=timezone.utc)
    return {
        "timestamp": timestamp.astimezone(timezone.utc),
        "level": entry.level,
        "type": entry.type,
        "source": entry.source,
        "message": entry.message,
        "raw_content": entry.raw_content,
    }
