from datetime import datetime, timedelta, timezone

from apscheduler.schedulers.background import BackgroundScheduler
from fastapi.testclient import TestClient
import pytest

from log_monitor.core import storage
from log_monitor.core.api_server import app
from log_monitor.core.errors import RemoteCallError
from log_monitor.core.query_engine import create_log_entry
from log_monitor.core.schemas import ClearResult, LogEntry, StreamStatus
from log_monitor.integration.sync_client import SyncClient

BASE_TIME = datetime(2024, 1, 15, 10, 0, 0, tzinfo=timezone.utc)


@pytest.fixture
def engine():
    """Fresh in-memory database bound to the storage module."""
    engine = storage.configure_engine("sqlite://")
    storage.Base.metadata.create_all(bind=engine)
    yield engine
    storage.Base.metadata.drop_all(bind=engine)


@pytest.fixture
def db(engine):
    session = storage.SessionLocal()
    try:
        yield session
    finally:
        session.close()


@pytest.fixture
def client(engine):
    return TestClient(app)


@pytest.fixture
def add_log(db):
    """Insert a log; `minutes` offsets the timestamp from BASE_TIME."""
    def _add(message="Test message", minutes=0, level="info", type="system",
             source="test-app", raw_content=None, timestamp=None):
        return create_log_entry(db, {
            "timestamp": timestamp or BASE_TIME + timedelta(minutes=minutes),
            "level": level,
            "type": type,
            "source": source,
            "message": message,
            "raw_content": raw_content if raw_content is not None else message,
        })
    return _add


def make_entry(id, message="entry", minutes=0, source="app"):
    return LogEntry(
        id=id,
        timestamp=BASE_TIME + timedelta(minutes=minutes),
        level="info",
        type="application",
        source=source,
        message=message,
        raw_content=message,
        created_at=BASE_TIME + timedelta(minutes=minutes),
    )


class FakeLogMonitorClient:
    """In-memory stand-in for LogMonitorClient that records every call."""

    def __init__(self):
        self.logs = [make_entry(1, "User logged in", source="auth"), make_entry(2, "Disk full", 1, "kernel")]
        self.sources = ["auth", "kernel"]
        self.status = StreamStatus(is_paused=False, last_update=BASE_TIME, total_logs=2)
        self.calls = []
        self.failing = set()  # procedure names that raise

    def _record(self, name, *args):
        self.calls.append((name,) + args)
        if name in self.failing or "*" in self.failing:
            raise RemoteCallError(f"{name} request failed: connection refused")

    def get_logs(self, filters=None):
        self._record("get_logs", filters)
        return list(self.logs)

    def search_logs(self, keyword, limit=100):
        self._record("search_logs", keyword, limit)
        return [log for log in self.logs if keyword.lower() in log.message.lower()][:limit]

    def get_stream_status(self):
        self._record("get_stream_status")
        return self.status

    def get_log_sources(self):
        self._record("get_log_sources")
        return list(self.sources)

    def control_stream(self, action):
        self._record("control_stream", action)
        action = getattr(action, "value", action)
        if action == "clear":
            self.logs = []
            self.status = self.status.model_copy(update={"total_logs": 0})
        else:
            self.status = self.status.model_copy(update={"is_paused": action == "pause"})
        return self.status

    def clear_logs(self):
        self._record("clear_logs")
        self.logs = []
        self.status = self.status.model_copy(update={"total_logs": 0})
        return ClearResult(success=True, message="All logs cleared successfully")


@pytest.fixture
def fake_client():
    return FakeLogMonitorClient()


@pytest.fixture
def scheduler():
    """A started but paused scheduler: jobs are tracked, never executed."""
    scheduler = BackgroundScheduler()
    scheduler.start(paused=True)
    yield scheduler
    scheduler.shutdown(wait=False)


@pytest.fixture
def sync_client(fake_client, scheduler):
    sync = SyncClient(fake_client, poll_interval=2.0, scheduler=scheduler)
    yield sync
    sync.stop()
