"""Security headers middleware for adding common security headers to responses."""

from collections.abc import Awaitable, Callable

from fastapi import Request, Response
from starlette.middleware.base import BaseHTTPMiddleware
from starlette.types import ASGIApp

from src.api.constants import DEFAULT_HSTS_MAX_AGE


class SecurityHeadersMiddleware(BaseHTTPMiddleware):
    """Middleware to add security headers to all responses.

    This middleware adds the following security headers:
    - X-Content-Type-Options: nosniff - Prevents MIME type sniffing
    - X-Frame-Options: DENY - Prevents clickjacking attacks
    - Referrer-Policy: no-referrer - Keeps URLs out of third-party referrers
    - Cross-Origin-Opener-Policy: same-origin - Isolates the browsing context
    - Strict-Transport-Security (if HSTS enabled)
    - Content-Security-Policy (only when a policy is given)

    Args:
        app: The ASGI application to wrap.
        content_security_policy: CSP header value, or None to omit the header.
        hsts_enabled: Whether to include HSTS header (defaults to True).
        hsts_max_age: Max age for HSTS in seconds (defaults to 1 year).
        hsts_include_subdomains: Whether to include subdomains in HSTS.
    """

    def __init__(
        self,
        app: ASGIApp,
        *,
        content_security_policy: str | None = None,
        hsts_enabled: bool = True,
        hsts_max_age: int = DEFAULT_HSTS_MAX_AGE,
        hsts_include_subdomains: bool = True,
    ) -> None:
        super().__init__(app)
        self.content_security_policy = content_security_policy
        self.hsts_enabled = hsts_enabled
        self.hsts_max_age = hsts_max_age
        self.hsts_include_subdomains = hsts_include_subdomains

    def _build_hsts_header(self) -> str:
        parts = [f"max-age={self.hsts_max_age}"]
        if self.hsts_include_subdomains:
            parts.append("includeSubDomains")
        return "; ".join(parts)

    def security_headers(self) -> dict[str, str]:
        """Headers applied to every response.

        Returns:
            dict[str, str]: Header names mapped to their values.
        """
        headers = {
            "X-Content-Type-Options": "nosniff",
            "X-Frame-Options": "DENY",
            "Referrer-Policy": "no-referrer",
            "Cross-Origin-Opener-Policy": "same-origin",
        }
        if self.hsts_enabled:
            headers["Strict-Transport-Security"] = self._build_hsts_header()
        if self.content_security_policy:
            headers["Content-Security-Policy"] = self.content_security_policy
        return headers

    async def dispatch(
        self,
        request: Request,
        call_next: Callable[[Request], Awaitable[Response]],
    ) -> Response:
        """Add security headers to the response.

        Args:
            request: The incoming HTTP request.
            call_next: The next middleware or route handler.

        Returns:
            Response: The HTTP response with security headers added.
        """
        response = await call_next(request)
        response.headers.update(self.security_headers())
        return response
