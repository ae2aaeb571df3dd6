"""HTTP request/response audit logging.

This module implements the two audit middleware variants. Both are pure ASGI
middleware that register on the request's ``ResponseLifecycle`` before any
handler runs, so the completion record is emitted only once the last body
chunk has been handed to the server.

Variants:
- **RequestLoggingMiddleware**: HTTP-level "Incoming request" record on
  entry and exactly one outcome record per request, either "Request
  completed" (HTTP level) or "Request failed" (ERROR level)
- **ErrorOnlyRequestLoggingMiddleware**: nothing on entry; a single
  ERROR-level "Request error" record, including the captured request body,
  when the final status is 400 or above

Both variants share one lifecycle and one request context per request, so
installing both never wraps ``send`` or ``receive`` twice.
"""

from starlette.types import ASGIApp, Receive, Scope, Send

from src.api.constants import HTTP_400_BAD_REQUEST
from src.api.middleware.lifecycle import ResponseCompleted, attach_lifecycle
from src.api.utils.request_info import attach_request_context
from src.core.config import Settings
from src.core.context import RequestContext
from src.core.error_context import sanitize_value
from src.core.logging import AppLogger


class _AuditMiddleware:
    """Shared plumbing for the audit middleware variants.

    Args:
        app: The ASGI application.
        logger: Logger receiving the audit records.
        settings: Application settings.
    """

    def __init__(self, app: ASGIApp, *, logger: AppLogger, settings: Settings) -> None:
        self.app = app
        self.logger = logger
        self.settings = settings
        self.excluded_paths = set(settings.excluded_paths)

    def on_request(self, context: RequestContext) -> None:
        """Hook called before the request is dispatched."""

    def on_outcome(self, context: RequestContext, event: ResponseCompleted) -> None:
        """Hook called once with the request's outcome."""
        raise NotImplementedError

    async def __call__(self, scope: Scope, receive: Receive, send: Send) -> None:
        """Process one ASGI connection."""
        if scope["type"] != "http" or scope["path"] in self.excluded_paths:
            await self.app(scope, receive, send)
            return

        context, receive = attach_request_context(scope, receive, self.settings)
        lifecycle, send = attach_lifecycle(scope, send)

        self.on_request(context)
        lifecycle.on_complete(lambda event: self.on_outcome(context, event))

        try:
            await self.app(scope, receive, send)
        except Exception as exc:
            # Error handlers outside this layer produce the response
            lifecycle.fail(exc)
            raise


class RequestLoggingMiddleware(_AuditMiddleware):
    """Log every request on entry and once on completion or failure."""

    def on_request(self, context: RequestContext) -> None:
        """Emit the "Incoming request" record."""
        self.logger.http(
            "Incoming request",
            {
                **context.as_log_metadata(),
                "timestamp": context.started_at_iso,
            },
        )

    def on_outcome(self, context: RequestContext, event: ResponseCompleted) -> None:
        """Emit the completion record, or the failure record if the chain raised."""
        duration_ms = round(event.duration_ms, 2)

        if event.error is not None:
            self.logger.error(
                "Request failed",
                {
                    "method": context.method,
                    "url": context.url,
                    "duration_ms": duration_ms,
                    "ip": context.client_ip,
                    "error_type": type(event.error).__name__,
                    "error_message": str(event.error),
                },
            )
            return

        metadata: dict[str, object] = {
            "method": context.method,
            "url": context.url,
            "status_code": event.status_code,
            "duration_ms": duration_ms,
            "content_length": event.content_length,
            "ip": context.client_ip,
        }
        if duration_ms > self.settings.slow_request_threshold_ms:
            metadata["slow"] = True
        self.logger.http("Request completed", metadata)


class ErrorOnlyRequestLoggingMiddleware(_AuditMiddleware):
    """Log a single error record for requests that end with status >= 400."""

    def on_outcome(self, context: RequestContext, event: ResponseCompleted) -> None:
        """Emit the "Request error" record when the status is a failure."""
        if event.status_code < HTTP_400_BAD_REQUEST:
            return

        metadata: dict[str, object] = {
            **context.as_log_metadata(),
            "status_code": event.status_code,
            "duration_ms": round(event.duration_ms, 2),
            "body": sanitize_value(context.body),
        }
        if event.error is not None:
            metadata["error_type"] = type(event.error).__name__
        self.logger.error("Request error", metadata)
