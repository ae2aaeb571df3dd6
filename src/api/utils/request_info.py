"""Helpers that extract request metadata for logging.

The request context is built once per request by whichever audit layer
sees the request first and is then reused by later layers and by the
error handlers.
"""

from starlette.requests import Request

from src.core.config import Settings
from src.core.context import (
    RequestContext,
    get_request_context,
    set_request_context,
)
from src.core.types import AsgiMessage, AsgiReceive, AsgiScope

MAX_USER_AGENT_LENGTH = 200


def get_client_ip(request: Request, *, trust_proxy_headers: bool) -> str:
    """Extract real client IP considering proxy headers.

    Args:
        request: The incoming request.
        trust_proxy_headers: Whether X-Forwarded-For/X-Real-IP may be used.

    Returns:
        str: The client IP address.
    """
    # Only trust proxy headers in production environments
    if trust_proxy_headers:
        forwarded_for = request.headers.get("x-forwarded-for")
        if forwarded_for:
            # Take the first IP (original client)
            return forwarded_for.split(",")[0].strip()

        real_ip = request.headers.get("x-real-ip")
        if real_ip:
            return real_ip.strip()

    if request.client:
        return request.client.host
    return "unknown"


def get_user_agent(request: Request) -> str:
    """Extract the user agent, truncated to keep log lines bounded."""
    ua = request.headers.get("user-agent", "")
    return ua[:MAX_USER_AGENT_LENGTH] if ua else "unknown"


def get_original_url(scope: AsgiScope) -> str:
    """Path and query string exactly as requested."""
    path = scope.get("root_path", "") + scope.get("path", "")
    query_string = scope.get("query_string", b"")
    if query_string:
        return f"{path}?{query_string.decode('latin-1')}"
    return path


def build_request_context(request: Request, settings: Settings) -> RequestContext:
    """Build a fresh context for ``request``."""
    return RequestContext(
        method=request.method,
        url=get_original_url(request.scope),
        client_ip=get_client_ip(request, trust_proxy_headers=settings.is_production),
        user_agent=get_user_agent(request),
        query=dict(request.query_params),
        max_body_bytes=settings.max_logged_body_bytes,
    )


def attach_request_context(
    scope: AsgiScope, receive: AsgiReceive, settings: Settings
) -> tuple[RequestContext, AsgiReceive]:
    """Return this request's context, creating it on first use.

    When the context is created here, ``receive`` is wrapped so the request
    body is captured as the application reads it.

    Args:
        scope: ASGI scope of the request.
        receive: The receive callable the caller was given.
        settings: Application settings.

    Returns:
        tuple[RequestContext, AsgiReceive]: The context and the receive
            callable the caller must pass downstream.
    """
    existing = get_request_context(scope)
    if existing is not None:
        return existing, receive

    context = build_request_context(Request(scope), settings)
    set_request_context(scope, context)

    async def receive_wrapper() -> AsgiMessage:
        message = await receive()
        if message["type"] == "http.request":
            context.capture_body_chunk(message.get("body", b""))
        return message

    return context, receive_wrapper
