"""
Stream controller.

Owns the single stream status row and applies the pause/resume/clear control
actions to it. Each action is one read-or-create plus update inside a single
transaction: the row is locked with SELECT ... FOR UPDATE where the database
supports it, and an in-process lock serializes writers on embedded stores
such as SQLite. `clear` deletes the log rows and resets the counter in that
same transaction.
"""

from datetime import timedelta
import logging
import threading

from sqlalchemy import select
from sqlalchemy.exc import IntegrityError
from sqlalchemy.orm import Session

from .schemas import ClearResult, StreamAction, StreamControlInput, StreamStatus, parse_input
from .storage import STATUS_ROW_ID, StreamStatusDB, delete_all_logs, unit_of_work, utc_now

logger = logging.getLogger(__name__)

CLEARED_MESSAGE = "All logs cleared successfully"

_status_lock = threading.RLock()


def _select_status(db: Session):
    query = (
        select(StreamStatusDB)
        .where(StreamStatusDB.id == STATUS_ROW_ID)
        .with_for_update()
        .execution_options(populate_existing=True)
    )
    return db.scalars(query).first()


def _load_or_create_status(db: Session) -> StreamStatusDB:
    """Return the locked status row, inserting the default one if absent."""
    status = _select_status(db)
    if status is not None:
        return status
    try:
        with db.begin_nested():
            status = StreamStatusDB(id=STATUS_ROW_ID, is_paused=False, total_logs=0, last_update=utc_now())
            db.add(status)
        logger.info("Created stream status record")
        return status
    except IntegrityError:
        # Another writer inserted the row first; use theirs
        logger.debug("Stream status row created concurrently, re-reading")
        return _select_status(db)


def _touch(status: StreamStatusDB):
    """Advance last_update, never reusing or going behind the previous value."""
    now = utc_now()
    previous = status.last_update
    if previous is not None and now <= previous:
        now = previous + timedelta(microseconds=1)
    status.last_update = now


def _purge(db: Session, status: StreamStatusDB) -> int:
    deleted = delete_all_logs(db)
    status.total_logs = 0
    _touch(status)
    return deleted


def _to_schema(status: StreamStatusDB) -> StreamStatus:
    return StreamStatus.model_validate(status)


def get_status(db: Session) -> StreamStatus:
    with _status_lock, unit_of_work(db, "Stream status read"):
        status = _load_or_create_status(db)
        result = _to_schema(status)
    return result


def control_stream(db: Session, control) -> StreamStatus:
    """Apply one control action atomically and return the resulting status."""
    action = parse_input(StreamControlInput, control, "stream control").action

    with _status_lock, unit_of_work(db, f"Stream {action.value}"):
        status = _load_or_create_status(db)
        if action is StreamAction.PAUSE:
            status.is_paused = True
            _touch(status)
        elif action is StreamAction.RESUME:
            status.is_paused = False
            _touch(status)
        else:
            deleted = _purge(db, status)
            logger.info("Stream clear removed %d log entries", deleted)
        result = _to_schema(status)

    logger.info("Stream %s applied (paused=%s)", action.value, result.is_paused)
    return result


def clear_all(db: Session) -> ClearResult:
    """Delete every log and reset the counter; same end state as the clear action."""
    with _status_lock, unit_of_work(db, "Clear logs"):
        status = _load_or_create_status(db)
        deleted = _purge(db, status)
    logger.info("Cleared %d log entries", deleted)
    return ClearResult(success=True, message=CLEARED_MESSAGE)
