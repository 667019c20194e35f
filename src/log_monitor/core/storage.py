from contextlib import contextmanager
from datetime import datetime, timezone
import logging

from sqlalchemy import (
    Boolean, CheckConstraint, Column, DateTime, Enum, Integer, String, Text,
    TypeDecorator, create_engine, delete, event,
)
from sqlalchemy.exc import SQLAlchemyError
from sqlalchemy.orm import Session, declarative_base, sessionmaker
from sqlalchemy.pool import StaticPool

from .config import get_settings
from .errors import StorageError
from .schemas import LogLevel, LogType

logger = logging.getLogger(__name__)

# The stream status table holds exactly this one row
STATUS_ROW_ID = 1


def utc_now() -> datetime:
    return datetime.now(timezone.utc)


class UTCDateTime(TypeDecorator):
    """Stores naive UTC with microseconds; hands back aware UTC datetimes."""

    impl = DateTime
    cache_ok = True

    def process_bind_param(self, value, dialect):
        if value is None:
            return None
        if value.tzinfo is None:
            value = value.replace(tzinfo=timezone.utc)
        return value.astimezone(timezone.utc).replace(tzinfo=None)

    def process_result_value(self, value, dialect):
        if value is None:
            return None
        return value.replace(tzinfo=timezone.utc)


def _enum_values(enum_cls):
    return [member.value for member in enum_cls]


def _unicode_lower(value):
    return value.lower() if value is not None else None


Base = declarative_base()


class LogEntryDB(Base):
    __tablename__ = "logs"
    id = Column(Integer, primary_key=True, autoincrement=True)
    timestamp = Column(UTCDateTime, nullable=False, index=True)
    level = Column(Enum(LogLevel, name="log_level", values_callable=_enum_values), nullable=False, index=True)
    type = Column(Enum(LogType, name="log_type", values_callable=_enum_values), nullable=False, index=True)
    source = Column(String, nullable=False, index=True)
    message = Column(Text, nullable=False)
    raw_content = Column(Text, nullable=False)
    created_at = Column(UTCDateTime, nullable=False, default=utc_now, index=True)


class StreamStatusDB(Base):
    __tablename__ = "stream_status"
    __table_args__ = (CheckConstraint(f"id = {STATUS_ROW_ID}", name="stream_status_singleton"),)
    id = Column(Integer, primary_key=True, autoincrement=False, default=STATUS_ROW_ID)
    is_paused = Column(Boolean, nullable=False, default=False)
    last_update = Column(UTCDateTime, nullable=False, default=utc_now)
    total_logs = Column(Integer, nullable=False, default=0)


engine = None
SessionLocal = sessionmaker(autoflush=False, expire_on_commit=False)


def configure_engine(database_url: str | None = None):
    """(Re)bind the module engine and session factory to `database_url`."""
    global engine
    url = database_url or get_settings().database_url
    kwargs = {}
    if url.startswith("sqlite"):
        kwargs["connect_args"] = {"check_same_thread": False}
        if url in ("sqlite://", "sqlite:///:memory:"):
            # one shared connection so every session sees the same in-memory database
            kwargs["poolclass"] = StaticPool
    if engine is not None:
        engine.dispose()
    engine = create_engine(url, **kwargs)
    if url.startswith("sqlite"):
        # SQLite's built-in lower() only folds ASCII; keyword matching relies on it
        event.listen(engine, "connect", _register_sqlite_functions)
    SessionLocal.configure(bind=engine)
    logger.info("Storage bound to %s", engine.url.render_as_string(hide_password=True))
    return engine


def _register_sqlite_functions(dbapi_conn, connection_record):
    dbapi_conn.create_function("lower", 1, _unicode_lower, deterministic=True)


def init_db():
    if engine is None:
        configure_engine()
    Base.metadata.create_all(bind=engine)


def get_db():
    db = SessionLocal()
    try:
        yield db
    finally:
        db.close()


@contextmanager
def storage_errors(operation: str):
    """Log a SQLAlchemy failure and re-raise it as StorageError."""
    try:
        yield
    except SQLAlchemyError as e:
        logger.error("%s failed: %s", operation, e)
        raise StorageError(f"{operation} failed: {e}") from e


@contextmanager
def unit_of_work(db: Session, operation: str):
    """Commit on success; roll back and raise StorageError on store failure."""
    try:
        with storage_errors(operation):
            yield db
            db.commit()
    except Exception:
        db.rollback()
        raise


def insert_log(db: Session, values: dict) -> LogEntryDB:
    with unit_of_work(db, "Log entry creation"):
        db_log = LogEntryDB(**values)
        db.add(db_log)
        db.flush()
    return db_log


def delete_all_logs(db: Session) -> int:
    """Delete every log row inside the caller's transaction."""
    result = db.execute(delete(LogEntryDB))
    return result.rowcount
