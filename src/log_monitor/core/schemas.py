from datetime import datetime
from enum import Enum
import json
from typing import Optional

from pydantic import BaseModel, ConfigDict, Field
from pydantic import ValidationError as PydanticValidationError

from .errors import ValidationError

MAX_LIMIT = 1000
DEFAULT_LIMIT = 100


class LogLevel(str, Enum):
    DEBUG = "debug"
    INFO = "info"
    WARN = "warn"
    ERROR = "error"
    FATAL = "fatal"


class LogType(str, Enum):
    SYSTEM = "system"
    APPLICATION = "application"
    NETWORK = "network"
    SECURITY = "security"
    OTHER = "other"


class StreamAction(str, Enum):
    PAUSE = "pause"
    RESUME = "resume"
    CLEAR = "clear"


class LogEntryCreate(BaseModel):
    level: LogLevel
    type: LogType
    source: str  # process or application name
    message: str
    raw_content: str  # original log line
    timestamp: Optional[datetime] = None  # defaults to insertion time


class LogEntry(BaseModel):
    model_config = ConfigDict(from_attributes=True)

    id: int
    timestamp: datetime
    level: LogLevel
    type: LogType
    source: str
    message: str
    raw_content: str
    created_at: datetime


class FilterSpec(BaseModel):
    """Optional predicates plus pagination bounds for a log query."""

    level: Optional[LogLevel] = None
    type: Optional[LogType] = None
    source: Optional[str] = None
    keyword: Optional[str] = None  # matched against message and raw_content
    start_time: Optional[datetime] = None
    end_time: Optional[datetime] = None
    limit: int = Field(default=DEFAULT_LIMIT, ge=1, le=MAX_LIMIT)
    offset: int = Field(default=0, ge=0)


class RecentLogsInput(BaseModel):
    limit: int = Field(default=DEFAULT_LIMIT, ge=1, le=MAX_LIMIT)


class SearchInput(BaseModel):
    keyword: str = Field(min_length=1)
    limit: int = Field(default=DEFAULT_LIMIT, ge=1, le=MAX_LIMIT)


class StreamStatus(BaseModel):
    model_config = ConfigDict(from_attributes=True)

    is_paused: bool
    last_update: datetime
    total_logs: int = Field(ge=0)


class StreamControlInput(BaseModel):
    action: StreamAction


class ClearResult(BaseModel):
    success: bool
    message: str


class HealthStatus(BaseModel):
    status: str
    timestamp: datetime


def parse_input(model_cls, data, label: str):
    """Validate `data` against `model_cls`, raising our ValidationError on failure."""
    if isinstance(data, model_cls):
        return data
    try:
        return model_cls.model_validate(data if data is not None else {})
    except PydanticValidationError as e:
        details = json.loads(e.json(include_url=False))
        raise ValidationError(f"Invalid {label}: {e.error_count()} validation error(s)", details=details) from e
