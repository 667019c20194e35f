import logging

from pydantic import ValidationError as PydanticValidationError
import requests

from log_monitor.core.errors import RemoteCallError, StorageError, ValidationError
from log_monitor.core.schemas import (
    ClearResult, FilterSpec, HealthStatus, LogEntry, LogEntryCreate,
    StreamControlInput, StreamStatus, parse_input,
)

logger = logging.getLogger(__name__)


class LogMonitorClient:
    """Client for the log monitor RPC endpoint"""

    def __init__(self, base_url="http://localhost:2022", timeout=5.0, session=None):
        self.base_url = base_url.rstrip("/")
        self.timeout = timeout
        # Anything with a requests-style post() works here (e.g. a test client)
        self.session = session or requests.Session()

    def _call(self, procedure, payload=None):
        """
        POST one procedure call and return the decoded JSON result.

        Raises:
            ValidationError: The server rejected the input
            StorageError: The server's store failed
            RemoteCallError: Transport failure or unexpected response
        """
        url = f"{self.base_url}/rpc/{procedure}"
        try:
            response = self.session.post(url, json=payload, timeout=self.timeout)
        except requests.RequestException as e:
            raise RemoteCallError(f"{procedure} request failed: {e}") from e

        if response.status_code >= 400:
            raise self._error_from(procedure, response)

        try:
            return response.json()
        except ValueError as e:
            raise RemoteCallError(f"{procedure} returned invalid JSON", response.status_code) from e

    @staticmethod
    def _error_from(procedure, response):
        try:
            error = response.json().get("error") or {}
        except (ValueError, AttributeError):
            error = {}
        if not isinstance(error, dict):
            # e.g. a proxy's {"error": "bad gateway"}
            error = {}
        code = error.get("code")
        message = error.get("message") or f"{procedure} failed with HTTP {response.status_code}"

        if code == ValidationError.code:
            return ValidationError(message, details=error.get("details"))
        if code == StorageError.code:
            return StorageError(message)
        return RemoteCallError(message, response.status_code)

    @staticmethod
    def _parse(procedure, model_cls, data):
        try:
            return model_cls.model_validate(data)
        except PydanticValidationError as e:
            raise RemoteCallError(f"{procedure} returned an unexpected payload: {e}") from e

    def _parse_logs(self, procedure, data):
        if not isinstance(data, list):
            raise RemoteCallError(f"{procedure} returned {type(data).__name__}, expected a list")
        return [self._parse(procedure, LogEntry, item) for item in data]

    def create_log_entry(self, entry=None, **fields):
        """
        Store one log record.

        Args:
            entry: LogEntryCreate or dict; alternatively pass the fields as keywords
                (level, type, source, message, raw_content, timestamp)
        """
        entry = parse_input(LogEntryCreate, entry if entry is not None else fields, "log entry")
        data = self._call("createLogEntry", entry.model_dump(mode="json", exclude_none=True))
        return self._parse("createLogEntry", LogEntry, data)

    def get_logs(self, filters=None):
        filters = parse_input(FilterSpec, filters, "log filter")
        data = self._call("getLogs", filters.model_dump(mode="json", exclude_none=True))
        return self._parse_logs("getLogs", data)

    def get_recent_logs(self, limit=100):
        return self._parse_logs("getRecentLogs", self._call("getRecentLogs", {"limit": limit}))

    def search_logs(self, keyword, limit=100):
        data = self._call("searchLogs", {"keyword": keyword, "limit": limit})
        return self._parse_logs("searchLogs", data)

    def get_stream_status(self):
        return self._parse("getStreamStatus", StreamStatus, self._call("getStreamStatus"))

    def control_stream(self, action):
        control = parse_input(StreamControlInput, {"action": action}, "stream control")
        data = self._call("controlStream", control.model_dump(mode="json"))
        return self._parse("controlStream", StreamStatus, data)

    def clear_logs(self):
        return self._parse("clearLogs", ClearResult, self._call("clearLogs"))

    def get_log_sources(self):
        data = self._call("getLogSources")
        if not isinstance(data, list) or not all(isinstance(source, str) for source in data):
            raise RemoteCallError("getLogSources returned an unexpected payload")
        return data

    def healthcheck(self):
        return self._parse("healthcheck", HealthStatus, self._call("healthcheck"))
