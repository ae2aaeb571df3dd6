"""Main entry point for running the Chess App backend."""

import sys

import uvicorn
from loguru import logger

from src.api.main import create_app
from src.core.config import get_settings
from src.core.logging import AppLogger, setup_logging
from src.infrastructure.server import ManagedServer, ShutdownCoordinator

# Route uvicorn's own loggers through Loguru
LOG_CONFIG = {
    "version": 1,
    "disable_existing_loggers": False,
    "handlers": {
        "default": {
            "class": "src.core.logging.InterceptHandler",
        },
    },
    "loggers": {
        "uvicorn": {"handlers": ["default"], "level": "INFO", "propagate": False},
        "uvicorn.error": {
            "handlers": ["default"],
            "level": "INFO",
            "propagate": False,
        },
    },
}


def main() -> int:
    """Start the server and block until it has shut down.

    Returns:
        int: Process exit code. 0 after a graceful shutdown, 1 if the
            application could not be initialized or the server never started.
    """
    try:
        settings = get_settings()
        setup_logging(settings)
        app_logger = AppLogger(settings.service_name)
        app = create_app(settings, app_logger)
    except Exception:
        logger.exception("Failed to initialize application")
        return 1

    coordinator = ShutdownCoordinator(app_logger)
    config = uvicorn.Config(
        app,
        host=settings.bind_host,
        port=settings.port,
        log_config=LOG_CONFIG,
        # Request traffic is logged by the audit middleware
        access_log=False,
        proxy_headers=settings.is_production,
    )
    server = ManagedServer(config, coordinator=coordinator, settings=settings)
    server.run()

    if not server.started:
        # uvicorn returns normally when the lifespan startup fails
        app_logger.error("Server failed to start")
        return 1

    coordinator.mark_stopped()
    app_logger.info("Graceful shutdown completed")
    return 0


if __name__ == "__main__":
    sys.exit(main())
