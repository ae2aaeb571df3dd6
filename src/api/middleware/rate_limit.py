"""Per-client request rate limiting backed by slowapi.

Every route shares one default limit: ``rate_limit_max_requests`` requests
per ``rate_limit.window_seconds`` for each client address. Clients are keyed
by the same address the audit logs report, so proxy headers are trusted only
in production.
"""

from collections.abc import Callable

from slowapi import Limiter
from slowapi.errors import RateLimitExceeded
from starlette.requests import Request
from starlette.responses import Response

from src.api.constants import RATE_LIMIT_MESSAGE
from src.api.schemas.errors import ErrorResponse
from src.api.utils.request_info import get_client_ip, get_original_url
from src.api.utils.responses import ORJSONResponse
from src.core.config import Settings


def client_key_func(settings: Settings) -> Callable[[Request], str]:
    """Build the key function identifying a client for rate limiting."""
    trust_proxy_headers = settings.is_production

    def key_func(request: Request) -> str:
        return get_client_ip(request, trust_proxy_headers=trust_proxy_headers)

    return key_func


def rate_limit_string(settings: Settings) -> str:
    """Default limit in the ``limits`` notation, e.g. ``100 per 900 seconds``."""
    return (
        f"{settings.rate_limit_max_requests} per "
        f"{settings.rate_limit.window_seconds} seconds"
    )


def create_limiter(settings: Settings) -> Limiter:
    """Create the application's limiter.

    Storage is in-process memory, so each limiter (and each worker) counts
    on its own.

    Args:
        settings: Application settings.

    Returns:
        Limiter: The configured slowapi limiter.
    """
    return Limiter(
        key_func=client_key_func(settings),
        default_limits=[rate_limit_string(settings)],
        headers_enabled=True,
        storage_uri="memory://",
        enabled=settings.rate_limit.enabled,
    )


def rate_limit_exceeded_handler(request: Request, exc: Exception) -> Response:
    """Render the 429 response for a client over its limit.

    slowapi's middleware calls this handler synchronously, so it must not be
    a coroutine.

    Args:
        request: The rejected request.
        exc: The ``RateLimitExceeded`` raised by the limiter.

    Returns:
        Response: 429 with the standard error body and rate limit headers.
    """
    settings: Settings = request.app.state.settings
    request.app.state.logger.warning(
        "Rate limit exceeded",
        {
            "ip": get_client_ip(request, trust_proxy_headers=settings.is_production),
            "url": get_original_url(request.scope),
            "method": request.method,
            "limit": str(exc.detail) if isinstance(exc, RateLimitExceeded) else None,
        },
    )

    response = ORJSONResponse(
        status_code=429,
        content=ErrorResponse(error=RATE_LIMIT_MESSAGE),
    )
    view_rate_limit = getattr(request.state, "view_rate_limit", None)
    if view_rate_limit is not None:
        limiter: Limiter = request.app.state.limiter
        # Same call slowapi's own default handler makes; pinned in pyproject
        response = limiter._inject_headers(response, view_rate_limit)  # noqa: SLF001
    return response
