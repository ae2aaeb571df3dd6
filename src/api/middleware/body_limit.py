"""Request body size limiting.

Bodies are read lazily by FastAPI when a route needs them, so this
middleware bounds them at the ASGI level instead:

- A declared ``Content-Length`` above the limit is rejected with 413
  before the application runs
- Bodies without a declared length (chunked uploads) are counted while the
  application reads them; crossing the limit raises a 413 ``HTTPException``
  into the normal error pipeline
"""

from starlette.exceptions import HTTPException
from starlette.requests import Request
from starlette.types import ASGIApp, Message, Receive, Scope, Send

from src.api.constants import PAYLOAD_TOO_LARGE_MESSAGE
from src.api.middleware.error_handler import describe_error, handle_error_descriptor
from src.core.exceptions import PayloadTooLargeError


def declared_content_length(scope: Scope) -> int | None:
    """Content-Length header of the request, if present and numeric."""
    for name, value in scope.get("headers", []):
        if name == b"content-length":
            try:
                return int(value)
            except ValueError:
                return None
    return None


class BodySizeLimitMiddleware:
    """Reject request bodies larger than ``max_body_size`` bytes.

    Args:
        app: The ASGI application to wrap.
        max_body_size: Maximum accepted body size in bytes.
    """

    def __init__(self, app: ASGIApp, *, max_body_size: int) -> None:
        self.app = app
        self.max_body_size = max_body_size

    async def __call__(self, scope: Scope, receive: Receive, send: Send) -> None:
        """Process one ASGI connection."""
        if scope["type"] != "http":
            await self.app(scope, receive, send)
            return

        declared = declared_content_length(scope)
        if declared is not None:
            if declared > self.max_body_size:
                error = PayloadTooLargeError(self.max_body_size)
                descriptor = describe_error(error)
                response = handle_error_descriptor(Request(scope), descriptor)
                await response(scope, receive, send)
                return
            await self.app(scope, receive, send)
            return

        received = 0

        async def limited_receive() -> Message:
            nonlocal received
            message = await receive()
            if message["type"] == "http.request":
                received += len(message.get("body", b""))
                if received > self.max_body_size:
                    # FastAPI re-raises HTTPException from body parsing as is
                    raise HTTPException(
                        status_code=413, detail=PAYLOAD_TOO_LARGE_MESSAGE
                    )
            return message

        await self.app(scope, limited_receive, send)
