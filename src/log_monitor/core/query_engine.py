"""
Log query engine.

Turns a FilterSpec into an ordered, paginated page of log records. Every
supplied predicate is ANDed; the keyword predicate alone is an OR over
message and raw_content (case-insensitive substring). Results are ordered
newest `timestamp` first with ties broken by `id` descending so pages are
stable.
"""

import logging

from sqlalchemy import or_, select
from sqlalchemy.orm import Session

from .log_processor import process_log
from .schemas import FilterSpec, LogEntry, RecentLogsInput, SearchInput, parse_input
from .storage import LogEntryDB, insert_log, storage_errors

logger = logging.getLogger(__name__)

EVENT_ORDER = (LogEntryDB.timestamp.desc(), LogEntryDB.id.desc())
INSERTION_ORDER = (LogEntryDB.created_at.desc(), LogEntryDB.id.desc())


def keyword_predicate(keyword: str):
    # autoescape keeps % and _ in the keyword literal
    return or_(
        LogEntryDB.message.icontains(keyword, autoescape=True),
        LogEntryDB.raw_content.icontains(keyword, autoescape=True),
    )


def build_conditions(spec: FilterSpec) -> list:
    conditions = []
    if spec.level is not None:
        conditions.append(LogEntryDB.level == spec.level)
    if spec.type is not None:
        conditions.append(LogEntryDB.type == spec.type)
    if spec.source:
        conditions.append(LogEntryDB.source == spec.source)
    if spec.keyword:
        conditions.append(keyword_predicate(spec.keyword))
    if spec.start_time is not None:
        conditions.append(LogEntryDB.timestamp >= spec.start_time)
    if spec.end_time is not None:
        conditions.append(LogEntryDB.timestamp <= spec.end_time)
    return conditions


def _fetch(db: Session, query, operation: str) -> list[LogEntry]:
    with storage_errors(operation):
        rows = db.scalars(query).all()
        return [LogEntry.model_validate(row) for row in rows]


def get_logs(db: Session, spec=None) -> list[LogEntry]:
    """Return the page of records matching every predicate in `spec`."""
    spec = parse_input(FilterSpec, spec, "log filter")
    query = (
        select(LogEntryDB)
        .where(*build_conditions(spec))
        .order_by(*EVENT_ORDER)
        .offset(spec.offset)
        .limit(spec.limit)
    )
    logs = _fetch(db, query, "Log query")
    logger.debug("Log query %s returned %d rows", spec.model_dump(exclude_none=True), len(logs))
    return logs


def search_logs(db: Session, keyword: str, limit: int = 100) -> list[LogEntry]:
    """Keyword-only query; same matching and ordering as get_logs."""
    params = parse_input(SearchInput, {"keyword": keyword, "limit": limit}, "search")
    query = (
        select(LogEntryDB)
        .where(keyword_predicate(params.keyword))
        .order_by(*EVENT_ORDER)
        .limit(params.limit)
    )
    return _fetch(db, query, "Log search")


def get_recent_logs(db: Session, limit: int = 100) -> list[LogEntry]:
    params = parse_input(RecentLogsInput, {"limit": limit}, "recent logs request")
    query = select(LogEntryDB).order_by(*INSERTION_ORDER).limit(params.limit)
    return _fetch(db, query, "Recent logs query")


def list_sources(db: Session) -> list[str]:
    """Distinct non-empty sources, sorted ascending (case-sensitive)."""
    query = (
        select(LogEntryDB.source)
        .where(LogEntryDB.source.is_not(None), LogEntryDB.source != "")
        .group_by(LogEntryDB.source)
        .order_by(LogEntryDB.source)
    )
    with storage_errors("Log source listing"):
        sources = list(db.scalars(query).all())
    # the database collation may not be binary
    return sorted(sources)


def create_log_entry(db: Session, entry) -> LogEntry:
    values = process_log(entry)
    db_log = insert_log(db, values)
    logger.debug("Stored log %s from %r", db_log.id, db_log.source)
    return LogEntry.model_validate(db_log)
