"""Structured logging built on Loguru.

This module configures the process-wide Loguru sinks and provides
``AppLogger``, the explicitly constructed logger instance that components
receive instead of reaching for a global.

Features:
- **Leveled logging**: Standard levels plus an ``HTTP`` traffic level that
  sits between DEBUG and INFO
- **Metadata**: Every record carries an optional metadata mapping that is
  rendered as a trailing JSON fragment on the console
- **Transports**: Console always; ``error.log`` and ``combined.log`` as
  newline-delimited JSON outside production
- **Threshold filtering**: Records below the configured level never reach a sink
- **Fail-safe**: Logging never raises into the caller
- **Standard library integration**: Captures logs from uvicorn and other
  modules through ``InterceptHandler``

Console line shape::

    2024-01-01T12:00:00.000Z [INFO] chess-app-backend: message {"key": "value"}
"""

from __future__ import annotations

import json
import logging
import sys
from collections.abc import Mapping
from contextlib import suppress
from pathlib import Path
from typing import TYPE_CHECKING, Any, Final

from loguru import logger

from src.core.constants import HTTP_LOG_LEVEL, HTTP_LOG_LEVEL_NO

if TYPE_CHECKING:
    from loguru import Logger, Record

    from src.core.config import Settings

type LogMetadata = Mapping[str, Any]


class _LoggingState:
    """Simple state holder to track if logging has been configured."""

    def __init__(self) -> None:
        self.configured = False


_state = _LoggingState()

CONSOLE_FORMAT: Final[str] = (
    "<green>{time:YYYY-MM-DD[T]HH:mm:ss.SSS[Z]!UTC}</green> "
    "[<level>{level}</level>] "
    "<cyan>{extra[service]}</cyan>: "
    "{message}{extra[_metadata_fragment]}\n"
)
DEFAULT_SERVICE: Final[str] = "app"
ERROR_LOG_FILE: Final[str] = "error.log"
COMBINED_LOG_FILE: Final[str] = "combined.log"


def register_http_level() -> None:
    """Register the HTTP traffic level with Loguru if it is missing."""
    try:
        logger.level(HTTP_LOG_LEVEL)
    except ValueError:
        logger.level(HTTP_LOG_LEVEL, no=HTTP_LOG_LEVEL_NO, color="<magenta>")


def _at_least(level: str, floor: str) -> str:
    """Return whichever of two level names is more severe."""
    return level if logger.level(level).no >= logger.level(floor).no else floor


def render_metadata_fragment(metadata: object) -> str:
    """Render metadata as the trailing fragment of a console line.

    Args:
        metadata: The metadata attached to a record.

    Returns:
        str: `` {json}`` or an empty string when there is no metadata.
    """
    if not metadata:
        return ""
    try:
        return " " + json.dumps(metadata, default=str)
    except (TypeError, ValueError):
        return f" {metadata!r}"


def format_console_record(record: Record) -> str:
    """Format a record for the console transport.

    Rendered values are placed in ``extra`` so Loguru substitutes them
    without interpreting braces or colour markup inside them.

    Args:
        record: Loguru record to format.

    Returns:
        str: Loguru format template for this record.
    """
    extra = record["extra"]
    extra.setdefault("service", DEFAULT_SERVICE)
    extra["_metadata_fragment"] = render_metadata_fragment(extra.get("metadata"))

    if record["exception"]:
        return CONSOLE_FORMAT + "{exception}\n"
    return CONSOLE_FORMAT


def serialize_for_json(record: Record) -> str:
    """Format a record as one JSON document for the file transports.

    Args:
        record: Loguru record to format.

    Returns:
        str: JSON-formatted log entry without trailing newline.
    """
    extra = record["extra"]
    log_entry: dict[str, Any] = {
        "timestamp": record["time"].isoformat(),
        "level": record["level"].name,
        "service": extra.get("service", DEFAULT_SERVICE),
        "message": record["message"],
    }

    metadata = extra.get("metadata")
    if isinstance(metadata, Mapping):
        for key, value in metadata.items():
            log_entry.setdefault(str(key), value)

    if exc := record["exception"]:
        log_entry["exception"] = {
            "type": exc.type.__name__ if exc.type else None,
            "value": str(exc.value) if exc.value else None,
        }

    return json.dumps(log_entry, default=str)


def format_json_record(record: Record) -> str:
    """Format template for the newline-delimited JSON file transports."""
    record["extra"]["_serialized"] = serialize_for_json(record)
    return "{extra[_serialized]}\n"


class InterceptHandler(logging.Handler):
    """Intercept standard logging and redirect to Loguru.

    This handler captures logs from libraries using standard logging
    (uvicorn in particular) and forwards them to Loguru for consistent
    formatting.
    """

    def emit(self, record: logging.LogRecord) -> None:
        """Forward log record to Loguru.

        Args:
            record: Standard library LogRecord to forward.
        """
        try:
            level: str | int = logger.level(record.levelname).name
        except ValueError:
            level = record.levelno

        # Find caller from where originated the logged message
        frame = logging.currentframe()
        depth = 2
        while frame and frame.f_code.co_filename == logging.__file__:
            frame = frame.f_back  # type: ignore[assignment]
            depth += 1

        logger.opt(depth=depth, exception=record.exc_info).bind(
            metadata={"logger": record.name}
        ).log(level, record.getMessage())


def setup_logging(settings: Settings) -> None:
    """Configure Loguru sinks for the process.

    Args:
        settings: Application settings containing log configuration.

    Note:
        This function ensures it's only called once using module state.
    """
    if _state.configured:
        return

    # Remove default handler
    logger.remove()
    register_http_level()
    logger.configure(extra={"service": settings.service_name, "metadata": {}})

    logger.add(
        sys.stdout,
        format=format_console_record,
        level=settings.log_level,
        colorize=not settings.is_production,
        enqueue=True,
        catch=True,
        backtrace=not settings.is_production,
        diagnose=False,
    )

    if settings.file_logging_enabled:
        log_dir = Path(settings.log_dir)
        logger.add(
            log_dir / ERROR_LOG_FILE,
            format=format_json_record,
            level=_at_least(settings.log_level, "ERROR"),
            enqueue=True,
            catch=True,
            backtrace=False,
            diagnose=False,
        )
        logger.add(
            log_dir / COMBINED_LOG_FILE,
            format=format_json_record,
            level=settings.log_level,
            enqueue=True,
            catch=True,
            backtrace=False,
            diagnose=False,
        )

    # Configure standard library logging to use Loguru
    logging.basicConfig(handlers=[InterceptHandler()], level=0, force=True)

    # Intercept all uvicorn loggers
    for logger_name in ["uvicorn", "uvicorn.error", "uvicorn.access"]:
        uvicorn_logger = logging.getLogger(logger_name)
        uvicorn_logger.handlers = [InterceptHandler()]
        uvicorn_logger.propagate = False

    logger.bind(
        metadata={
            "log_level": settings.log_level,
            "file_logging": settings.file_logging_enabled,
        }
    ).info("Logging configured")

    # Mark as configured
    _state.configured = True


class AppLogger:
    """Leveled, metadata-carrying logger bound to a service tag.

    One instance is built at startup and handed to every component that
    logs, so tests can construct their own against a capturing sink.

    Args:
        service: Service tag attached to every record.
        base: Loguru logger to bind against. Defaults to the global one.
    """

    def __init__(self, service: str, *, base: Logger | None = None) -> None:
        register_http_level()
        self.service = service
        self._logger = (base or logger).bind(service=service)

    def _emit(
        self,
        level: str,
        message: str,
        metadata: LogMetadata | None,
        *,
        exc_info: bool = False,
    ) -> None:
        # Logging must never break the request path
        with suppress(Exception):
            self._logger.bind(metadata=dict(metadata) if metadata else {}).opt(
                depth=2, exception=exc_info or None
            ).log(level, message)

    def log(
        self, level: str, message: str, metadata: LogMetadata | None = None
    ) -> None:
        """Log ``message`` at ``level`` with optional metadata."""
        self._emit(level.upper(), message, metadata)

    def debug(self, message: str, metadata: LogMetadata | None = None) -> None:
        """Log at DEBUG level."""
        self._emit("DEBUG", message, metadata)

    def http(self, message: str, metadata: LogMetadata | None = None) -> None:
        """Log request/response traffic at the HTTP level."""
        self._emit(HTTP_LOG_LEVEL, message, metadata)

    def info(self, message: str, metadata: LogMetadata | None = None) -> None:
        """Log at INFO level."""
        self._emit("INFO", message, metadata)

    def warning(self, message: str, metadata: LogMetadata | None = None) -> None:
        """Log at WARNING level."""
        self._emit("WARNING", message, metadata)

    def error(self, message: str, metadata: LogMetadata | None = None) -> None:
        """Log at ERROR level."""
        self._emit("ERROR", message, metadata)

    def exception(self, message: str, metadata: LogMetadata | None = None) -> None:
        """Log at ERROR level with the active exception's traceback."""
        self._emit("ERROR", message, metadata, exc_info=True)
