"""
Exception hierarchy shared by the server handlers and the client side.
"""


class LogMonitorError(Exception):
    """Base exception for all log monitor errors"""

    code = "LOG_MONITOR_ERROR"

    def __init__(self, message: str):
        self.message = message
        super().__init__(message)


class ConfigError(LogMonitorError):
    """Malformed environment configuration"""

    code = "CONFIG_ERROR"


class ValidationError(LogMonitorError):
    """Malformed filter/control input, rejected before touching storage"""

    code = "VALIDATION_ERROR"

    def __init__(self, message: str, details: list | None = None):
        self.details = details or []
        super().__init__(message)


class StorageError(LogMonitorError):
    """Underlying store unavailable or query failure"""

    code = "STORAGE_ERROR"


class NotConnectedError(LogMonitorError):
    """Control or search attempted while the backend is marked unhealthy"""

    code = "NOT_CONNECTED"


class RemoteCallError(LogMonitorError):
    """Transport failure or unexpected response from the RPC server"""

    code = "REMOTE_CALL_ERROR"

    def __init__(self, message: str, status_code: int | None = None):
        self.status_code = status_code
        super().__init__(message)
