from dataclasses import dataclass
import os

from dotenv import load_dotenv

from .errors import ConfigError

load_dotenv()

DEFAULT_DATABASE_URL = "sqlite:///./log_monitor.db"


def _env_number(name, default, cast):
    raw = os.getenv(name)
    if raw is None or raw.strip() == "":
        return default
    try:
        return cast(raw)
    except ValueError:
        raise ConfigError(f"{name} must be a {cast.__name__}, got {raw!r}")


@dataclass(frozen=True)
class Settings:
    """Runtime settings for the RPC server, the sync client and the dashboard."""

    database_url: str = DEFAULT_DATABASE_URL
    server_host: str = "0.0.0.0"
    server_port: int = 2022
    cors_origins: tuple = ("*",)
    log_level: str = "INFO"
    log_format: str = "text"
    backend_url: str = "http://localhost:2022"
    request_timeout: float = 5.0
    poll_interval: float = 2.0
    dashboard_host: str = "0.0.0.0"
    dashboard_port: int = 5000

    @classmethod
    def from_env(cls) -> "Settings":
        # POSTGRES_URI is accepted for deployments that already export it
        database_url = os.getenv("DATABASE_URL") or os.getenv("POSTGRES_URI") or DEFAULT_DATABASE_URL
        origins = tuple(
            origin.strip()
            for origin in os.getenv("CORS_ORIGINS", "*").split(",")
            if origin.strip()
        ) or ("*",)
        log_format = os.getenv("LOG_FORMAT", "text").lower()
        if log_format not in ("text", "json"):
            raise ConfigError(f"LOG_FORMAT must be 'text' or 'json', got {log_format!r}")

        return cls(
            database_url=database_url,
            server_host=os.getenv("SERVER_HOST", "0.0.0.0"),
            server_port=_env_number("SERVER_PORT", 2022, int),
            cors_origins=origins,
            log_level=os.getenv("LOG_LEVEL", "INFO").upper(),
            log_format=log_format,
            backend_url=os.getenv("BACKEND_URL", "http://localhost:2022").rstrip("/"),
            request_timeout=_env_number("REQUEST_TIMEOUT", 5.0, float),
            poll_interval=_env_number("POLL_INTERVAL", 2.0, float),
            dashboard_host=os.getenv("DASHBOARD_HOST", "0.0.0.0"),
            dashboard_port=_env_number("DASHBOARD_PORT", 5000, int),
        )


def get_settings() -> Settings:
    return Settings.from_env()
