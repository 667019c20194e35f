import uvicorn

from log_monitor.core.api_server import app
from log_monitor.core.config import get_settings
from log_monitor.core.logging_setup import setup_logging


def main():
    settings = get_settings()
    setup_logging(settings.log_level, json_format=settings.log_format == "json")
    uvicorn.run(app, host=settings.server_host, port=settings.server_port, log_config=None)


if __name__ == "__main__":
    main()
