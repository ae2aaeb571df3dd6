"""FastAPI application initialization and configuration module.

This module composes the request pipeline. It handles:
- Application lifecycle logging (startup/shutdown)
- Middleware registration in the correct order
- Exception handler registration
- The health check endpoint

Middleware are executed in reverse order of registration. The resulting
order, outermost first, is:

security headers → CORS → rate limiting → body size limit → unhandled
error catch-all → response lifecycle → request audit → routes → not-found
handling → error handlers
"""

import time
from collections.abc import AsyncGenerator
from contextlib import asynccontextmanager
from typing import Any

from fastapi import FastAPI, status
from fastapi.middleware.cors import CORSMiddleware
from slowapi.errors import RateLimitExceeded
from slowapi.middleware import SlowAPIMiddleware
from starlette.responses import Response

from src.api.constants import (
    CORS_ALLOWED_HEADERS,
    CORS_ALLOWED_METHODS,
    DEFAULT_CONTENT_SECURITY_POLICY,
    HEALTH_CHECK_PATH,
    SERVICE_UNAVAILABLE_MESSAGE,
)
from src.api.middleware.body_limit import BodySizeLimitMiddleware
from src.api.middleware.error_handler import (
    UnhandledErrorMiddleware,
    register_exception_handlers,
)
from src.api.middleware.lifecycle import ResponseLifecycleMiddleware
from src.api.middleware.rate_limit import create_limiter, rate_limit_exceeded_handler
from src.api.middleware.request_logging import (
    ErrorOnlyRequestLoggingMiddleware,
    RequestLoggingMiddleware,
)
from src.api.middleware.security_headers import SecurityHeadersMiddleware
from src.api.utils.responses import ORJSONResponse
from src.core.config import Settings, get_settings
from src.core.context import utc_now_iso
from src.core.logging import AppLogger


@asynccontextmanager
async def lifespan(app_instance: FastAPI) -> AsyncGenerator[None]:
    """Log application startup and shutdown.

    Args:
        app_instance: The FastAPI application instance.

    Yields:
        None: Nothing is yielded, this is just a lifespan context.
    """
    app_logger: AppLogger = app_instance.state.logger
    app_logger.info(
        f"Application startup complete - {app_instance.title} v{app_instance.version}"
    )

    yield

    app_logger.info("Application shutdown complete")


def build_health_payload(settings: Settings, started_at: float) -> dict[str, Any]:
    """Body of a successful health check.

    Args:
        settings: Application settings.
        started_at: ``time.monotonic()`` value recorded when the app was built.

    Returns:
        dict[str, Any]: Status, timestamp, uptime in seconds and environment.
    """
    return {
        "status": "ok",
        "timestamp": utc_now_iso(),
        "uptime": round(time.monotonic() - started_at, 3),
        "environment": settings.environment,
    }


def add_audit_middleware(
    application: FastAPI, settings: Settings, logger: AppLogger
) -> None:
    """Install the request audit variant(s) selected by ``request_audit_mode``."""
    if settings.request_audit_mode in {"errors", "both"}:
        application.add_middleware(
            ErrorOnlyRequestLoggingMiddleware, logger=logger, settings=settings
        )
    if settings.request_audit_mode in {"full", "both"}:
        application.add_middleware(
            RequestLoggingMiddleware, logger=logger, settings=settings
        )


def create_app(
    settings: Settings | None = None, logger: AppLogger | None = None
) -> FastAPI:
    """Create and configure the FastAPI application.

    Args:
        settings: Optional settings instance. If not provided, will use get_settings().
        logger: Optional logger. Defaults to one tagged with the service name.

    Returns:
        FastAPI: Configured FastAPI application instance.
    """
    if settings is None:
        settings = get_settings()
    app_logger = logger if logger is not None else AppLogger(settings.service_name)

    application = FastAPI(
        title=settings.app_name,
        version=settings.app_version,
        # Unhandled errors must reach our handler instead of the debug page
        debug=False,
        default_response_class=ORJSONResponse,
        lifespan=lifespan,
    )
    application.state.settings = settings
    application.state.logger = app_logger
    application.state.limiter = create_limiter(settings)
    application.state.started_at = time.monotonic()

    # Register exception handlers BEFORE middleware
    register_exception_handlers(application)
    application.add_exception_handler(RateLimitExceeded, rate_limit_exceeded_handler)

    # Order is important: the last middleware added is the first to process requests
    add_audit_middleware(application, settings, app_logger)
    application.add_middleware(ResponseLifecycleMiddleware)
    application.add_middleware(UnhandledErrorMiddleware)
    application.add_middleware(
        BodySizeLimitMiddleware, max_body_size=settings.max_body_size
    )
    if settings.rate_limit.enabled:
        application.add_middleware(SlowAPIMiddleware)
    application.add_middleware(
        CORSMiddleware,
        allow_origins=[settings.frontend_url],
        allow_credentials=True,
        allow_methods=CORS_ALLOWED_METHODS,
        allow_headers=CORS_ALLOWED_HEADERS,
    )
    application.add_middleware(
        SecurityHeadersMiddleware,
        content_security_policy=DEFAULT_CONTENT_SECURITY_POLICY
        if settings.is_production
        else None,
    )

    @application.get(HEALTH_CHECK_PATH)
    async def health() -> Response:
        """Health check endpoint for monitoring and load balancers.

        Returns:
            Response: 200 with service status, or 503 if the check fails.
        """
        try:
            payload = build_health_payload(settings, application.state.started_at)
        except Exception:
            app_logger.exception("Health check failed")
            return ORJSONResponse(
                status_code=status.HTTP_503_SERVICE_UNAVAILABLE,
                content={
                    "status": "error",
                    "timestamp": utc_now_iso(),
                    "error": SERVICE_UNAVAILABLE_MESSAGE,
                },
            )
        return ORJSONResponse(content=payload)

    return application
