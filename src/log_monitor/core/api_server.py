from contextlib import asynccontextmanager
import logging
from typing import Optional

from fastapi import APIRouter, Depends, FastAPI, Request
from fastapi.encoders import jsonable_encoder
from fastapi.exceptions import RequestValidationError
from fastapi.middleware.cors import CORSMiddleware
from fastapi.responses import JSONResponse
from sqlalchemy.orm import Session

from . import query_engine, stream_controller
from .config import get_settings
from .errors import StorageError, ValidationError
from .schemas import (
    ClearResult, FilterSpec, HealthStatus, LogEntry, LogEntryCreate,
    RecentLogsInput, SearchInput, StreamControlInput, StreamStatus,
)
from .storage import get_db, init_db, utc_now

logger = logging.getLogger(__name__)


@asynccontextmanager
async def lifespan(app: FastAPI):
    init_db()
    logger.info("Log monitor RPC server ready")
    yield


app = FastAPI(title="Log Monitor", lifespan=lifespan)
app.add_middleware(
    CORSMiddleware,
    allow_origins=list(get_settings().cors_origins),
    allow_methods=["GET", "POST"],
    allow_headers=["*"],
)

router = APIRouter(prefix="/rpc")


def error_response(status_code: int, code: str, message: str, details=None) -> JSONResponse:
    return JSONResponse(
        status_code=status_code,
        content={"error": {"code": code, "message": message, "details": details or []}},
    )


@app.exception_handler(ValidationError)
async def handle_validation_error(request: Request, exc: ValidationError):
    return error_response(400, exc.code, exc.message, exc.details)


@app.exception_handler(RequestValidationError)
async def handle_request_validation_error(request: Request, exc: RequestValidationError):
    details = jsonable_encoder(exc.errors())
    logger.info("Rejected %s: %d invalid field(s)", request.url.path, len(details))
    return error_response(400, ValidationError.code, "Invalid request input", details)


@app.exception_handler(StorageError)
async def handle_storage_error(request: Request, exc: StorageError):
    return error_response(503, exc.code, exc.message)


@router.api_route("/healthcheck", methods=["GET", "POST"], response_model=HealthStatus)
def healthcheck():
    return HealthStatus(status="ok", timestamp=utc_now())


@router.post("/createLogEntry", response_model=LogEntry)
def create_log_entry(entry: LogEntryCreate, db: Session = Depends(get_db)):
    return query_engine.create_log_entry(db, entry)


@router.post("/getLogs", response_model=list[LogEntry])
def get_logs(filters: Optional[FilterSpec] = None, db: Session = Depends(get_db)):
    return query_engine.get_logs(db, filters)


@router.post("/getRecentLogs", response_model=list[LogEntry])
def get_recent_logs(params: Optional[RecentLogsInput] = None, db: Session = Depends(get_db)):
    params = params or RecentLogsInput()
    return query_engine.get_recent_logs(db, params.limit)


@router.post("/searchLogs", response_model=list[LogEntry])
def search_logs(params: SearchInput, db: Session = Depends(get_db)):
    return query_engine.search_logs(db, params.keyword, params.limit)


@router.post("/getLogSources", response_model=list[str])
def get_log_sources(db: Session = Depends(get_db)):
    return query_engine.list_sources(db)


@router.post("/getStreamStatus", response_model=StreamStatus)
def get_stream_status(db: Session = Depends(get_db)):
    return stream_controller.get_status(db)


@router.post("/controlStream", response_model=StreamStatus)
def control_stream(control: StreamControlInput, db: Session = Depends(get_db)):
    return stream_controller.control_stream(db, control)


@router.post("/clearLogs", response_model=ClearResult)
def clear_logs(db: Session = Depends(get_db)):
    return stream_controller.clear_all(db)


app.include_router(router)
