"""
Polling sync client.

Keeps a dashboard's view of the server (logs, stream status, sources) current
by polling the RPC endpoint. One tick issues the three reads concurrently and
waits for all of them. A failed tick marks the connection unhealthy and
installs a synthetic status instead of leaving stale state behind.

Automatic polling is a single APScheduler interval job. It exists only while
auto-refresh is on, the backend is reachable and the stream is not paused;
every state change re-evaluates that condition and adds or removes the job.
"""

from concurrent.futures import ThreadPoolExecutor, wait
from dataclasses import dataclass, field, replace
import logging
import threading
from typing import Optional

from apscheduler.schedulers.background import BackgroundScheduler

from log_monitor.core.errors import LogMonitorError, NotConnectedError, ValidationError
from log_monitor.core.schemas import FilterSpec, StreamAction, StreamControlInput, StreamStatus, parse_input
from log_monitor.core.storage import utc_now

logger = logging.getLogger(__name__)

POLL_JOB_ID = "log-monitor-poll"
DEFAULT_POLL_INTERVAL = 2.0

CONNECT_ERROR = "Unable to connect to the log server. Please check if the backend is running."
CONTROL_NOT_CONNECTED = "Cannot control stream: Backend not connected"
CLEAR_NOT_CONNECTED = "Cannot clear logs: Backend not connected"
SEARCH_NOT_CONNECTED = "Cannot search: Backend not connected"


def synthetic_status() -> StreamStatus:
    """Stand-in status shown while the backend is unreachable."""
    return StreamStatus(is_paused=False, last_update=utc_now(), total_logs=0)


@dataclass
class DashboardState:
    logs: list = field(default_factory=list)
    status: Optional[StreamStatus] = None
    sources: list = field(default_factory=list)
    connected: bool = False
    error: Optional[str] = None
    loading: bool = True
    search_mode: bool = False
    search_keyword: str = ""
    filters: FilterSpec = field(default_factory=FilterSpec)
    auto_refresh: bool = True
    polling: bool = False

    @property
    def is_paused(self) -> bool:
        return self.status is not None and self.status.is_paused

    def to_dict(self) -> dict:
        return {
            "logs": [log.model_dump(mode="json") for log in self.logs],
            "status": self.status.model_dump(mode="json") if self.status else None,
            "sources": list(self.sources),
            "connected": self.connected,
            "error": self.error,
            "loading": self.loading,
            "search_mode": self.search_mode,
            "search_keyword": self.search_keyword,
            "filters": self.filters.model_dump(mode="json", exclude_none=True),
            "auto_refresh": self.auto_refresh,
            "polling": self.polling,
        }


class SyncClient:
    """Polls a LogMonitorClient and exposes the reconciled dashboard state."""

    def __init__(self, client, poll_interval=DEFAULT_POLL_INTERVAL, scheduler=None):
        self.client = client
        self.poll_interval = poll_interval
        self._state = DashboardState()
        self._lock = threading.RLock()
        self._tick_lock = threading.Lock()
        self._executor = ThreadPoolExecutor(max_workers=3, thread_name_prefix="log-monitor-sync")
        self._owns_scheduler = scheduler is None
        self._scheduler = scheduler or BackgroundScheduler()

    @property
    def state(self) -> DashboardState:
        """Snapshot of the observable state."""
        with self._lock:
            return replace(self._state, logs=list(self._state.logs), sources=list(self._state.sources))

    def start(self) -> bool:
        """Start the scheduler and perform the initial load."""
        if self._owns_scheduler and not self._scheduler.running:
            self._scheduler.start()
        return self.refresh()

    def stop(self):
        with self._lock:
            self._state.auto_refresh = False
            self._sync_polling()
        if self._owns_scheduler and self._scheduler.running:
            self._scheduler.shutdown(wait=False)
        # let an in-flight tick finish before the pool goes away
        with self._tick_lock:
            self._executor.shutdown(wait=True)

    # --- ticks ---

    def refresh(self) -> bool:
        """Run one tick. Returns True when all three reads succeeded."""
        with self._tick_lock:
            with self._lock:
                self._state.loading = True
                searching = self._state.search_mode and bool(self._state.search_keyword)
                keyword = self._state.search_keyword
                filters = self._state.filters
            try:
                return self._tick(searching, keyword, filters)
            finally:
                with self._lock:
                    self._state.loading = False

    def _tick(self, searching: bool, keyword: str, filters: FilterSpec) -> bool:
        if searching:
            logs_call = self._executor.submit(self.client.search_logs, keyword, filters.limit)
        else:
            logs_call = self._executor.submit(self.client.get_logs, filters)
        status_call = self._executor.submit(self.client.get_stream_status)
        sources_call = self._executor.submit(self.client.get_log_sources)
        wait((logs_call, status_call, sources_call))

        try:
            logs = logs_call.result()
            status = status_call.result()
            sources = sources_call.result()
        except Exception as e:
            if isinstance(e, LogMonitorError):
                logger.warning("Refresh failed: %s", e)
            else:
                logger.exception("Refresh failed with an unexpected error")
            with self._lock:
                self._state.connected = False
                self._state.error = CONNECT_ERROR
                self._state.status = synthetic_status()
                self._sync_polling()
            return False

        with self._lock:
            self._state.logs = list(logs)
            self._state.status = status
            self._state.sources = list(sources)
            self._state.connected = True
            self._state.error = None
            self._sync_polling()
        logger.debug("Refreshed %d logs (paused=%s)", len(logs), status.is_paused)
        return True

    def _sync_polling(self):
        """Add or remove the polling job to match the current state. Caller holds _lock."""
        state = self._state
        should_poll = state.auto_refresh and state.connected and not state.is_paused
        job = self._scheduler.get_job(POLL_JOB_ID)
        if should_poll and job is None:
            self._scheduler.add_job(
                self.refresh, "interval",
                seconds=self.poll_interval,
                id=POLL_JOB_ID,
                max_instances=1,
                coalesce=True,
            )
            logger.debug("Polling every %ss", self.poll_interval)
        elif not should_poll and job is not None:
            self._scheduler.remove_job(POLL_JOB_ID)
            logger.debug("Polling suspended")
        state.polling = should_poll

    # --- control actions ---

    def _require_connection(self, message: str):
        with self._lock:
            if not self._state.connected:
                self._state.error = message
                raise NotConnectedError(message)

    def _set_error(self, message: str):
        with self._lock:
            self._state.error = message

    def control(self, action) -> Optional[StreamStatus]:
        """Apply pause/resume/clear, then refresh the status. None when the call failed."""
        action = parse_input(StreamControlInput, {"action": action}, "stream control").action
        self._require_connection(CONTROL_NOT_CONNECTED)
        try:
            self.client.control_stream(action)
            status = self.client.get_stream_status()
        except LogMonitorError as e:
            logger.warning("Failed to %s stream: %s", action.value, e)
            self._set_error(f"Failed to {action.value} stream. Please try again.")
            return None

        with self._lock:
            self._state.status = status
            if action is StreamAction.CLEAR:
                self._state.logs = []
            self._state.error = None
            self._sync_polling()
        return status

    def pause(self):
        return self.control(StreamAction.PAUSE)

    def resume(self):
        return self.control(StreamAction.RESUME)

    def toggle(self):
        with self._lock:
            paused = self._state.is_paused
        return self.control(StreamAction.RESUME if paused else StreamAction.PAUSE)

    def clear_all(self) -> bool:
        """Delete every log through clearLogs."""
        self._require_connection(CLEAR_NOT_CONNECTED)
        try:
            self.client.clear_logs()
            status = self.client.get_stream_status()
        except LogMonitorError as e:
            logger.warning("Failed to clear logs: %s", e)
            self._set_error("Failed to clear logs. Please try again.")
            return False

        with self._lock:
            self._state.logs = []
            self._state.status = status
            self._state.error = None
            self._sync_polling()
        return True

    # --- search, filters, auto-refresh ---

    def search(self, keyword: str) -> bool:
        self._require_connection(SEARCH_NOT_CONNECTED)
        if not keyword or not keyword.strip():
            return False
        with self._lock:
            self._state.search_mode = True
            self._state.search_keyword = keyword
        return self.refresh()

    def clear_search(self) -> bool:
        with self._lock:
            self._state.search_mode = False
            self._state.search_keyword = ""
            connected = self._state.connected
        if connected:
            return self.refresh()
        return False

    def set_filters(self, **changes) -> FilterSpec:
        """Update filter fields; None or "" unsets a field. Applied on the next tick."""
        with self._lock:
            values = self._state.filters.model_dump(exclude_none=True)
            for key, value in changes.items():
                if key not in FilterSpec.model_fields:
                    raise ValidationError(f"Unknown filter field: {key}")
                if value is None or value == "":
                    values.pop(key, None)
                else:
                    values[key] = value
            self._state.filters = parse_input(FilterSpec, values, "log filter")
            return self._state.filters

    def clear_filters(self) -> FilterSpec:
        with self._lock:
            self._state.filters = FilterSpec()
            return self._state.filters

    def set_auto_refresh(self, enabled: bool):
        with self._lock:
            self._state.auto_refresh = bool(enabled)
            self._sync_polling()

