"""Per-request context captured at the edge of the audit layer.

The context is created once per request, filled in by the HTTP layer and read
by the audit middleware and the error classifier. It never outlives the
request it describes.
"""

import json
from dataclasses import dataclass, field
from datetime import UTC, datetime
from typing import Any

from src.core.types import AsgiScope, JsonValue

REQUEST_CONTEXT_SCOPE_KEY = "app.request_context"


def utc_now_iso() -> str:
    """Current UTC time as an ISO-8601 string with millisecond precision."""
    return datetime.now(UTC).isoformat(timespec="milliseconds").replace("+00:00", "Z")


@dataclass
class RequestContext:
    """Request metadata used for audit and error logs.

    Attributes:
        method: HTTP method.
        url: Path plus query string, as sent by the client.
        client_ip: Client address, proxy-aware in production.
        user_agent: User agent, truncated.
        query: Query parameters.
        started_at_iso: Wall-clock start time for log records.
        max_body_bytes: Upper bound on the captured body.
    """

    method: str
    url: str
    client_ip: str
    user_agent: str
    query: dict[str, str] = field(default_factory=dict)
    started_at_iso: str = field(default_factory=utc_now_iso)
    max_body_bytes: int = 0
    _body: bytearray = field(default_factory=bytearray, repr=False)
    body_truncated: bool = False

    def capture_body_chunk(self, chunk: bytes) -> None:
        """Keep up to ``max_body_bytes`` of the request body for diagnosis."""
        remaining = self.max_body_bytes - len(self._body)
        if remaining <= 0:
            if chunk:
                self.body_truncated = True
            return
        self._body.extend(chunk[:remaining])
        if len(chunk) > remaining:
            self.body_truncated = True

    @property
    def body(self) -> JsonValue:
        """Captured body, decoded as JSON when possible.

        Returns:
            JsonValue: Parsed JSON, the raw text, or None when nothing was sent.
        """
        if not self._body:
            return None
        text = self._body.decode("utf-8", errors="replace")
        if self.body_truncated:
            return text + "...[truncated]"
        try:
            parsed: JsonValue = json.loads(text)
        except ValueError:
            return text
        return parsed

    def as_log_metadata(self) -> dict[str, Any]:
        """Base metadata shared by every record about this request."""
        return {
            "method": self.method,
            "url": self.url,
            "ip": self.client_ip,
            "user_agent": self.user_agent,
        }


def get_request_context(scope: AsgiScope) -> RequestContext | None:
    """Return the context attached to this request, if any."""
    context = scope.get(REQUEST_CONTEXT_SCOPE_KEY)
    return context if isinstance(context, RequestContext) else None


def set_request_context(scope: AsgiScope, context: RequestContext) -> None:
    """Attach ``context`` to the request scope."""
    scope[REQUEST_CONTEXT_SCOPE_KEY] = context
