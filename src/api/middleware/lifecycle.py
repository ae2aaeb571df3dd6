"""Response completion events for ASGI requests.

ASGI gives middleware no "response finished" notification. The only signal
is the last ``http.response.body`` message (``more_body`` false) travelling
through ``send``. This module turns that message into a first-class event:

- ``ResponseLifecycle`` is created once per request and wraps ``send``
  exactly once. Listeners register with ``on_complete`` instead of wrapping
  ``send`` themselves.
- The first terminal body message computes the duration, is forwarded
  unchanged, and then fires the completion event. Any later terminal
  message passes straight through.
- When the handler chain raises before a response is finished, ``fail``
  fires the same event with the error attached, so every listener sees
  exactly one outcome per request.

The lifecycle lives on the ASGI scope of its request and is never shared
with another request.
"""

import time
from collections.abc import Callable
from dataclasses import dataclass

from starlette.types import ASGIApp, Receive, Scope, Send

from src.api.constants import HTTP_500_INTERNAL_SERVER_ERROR
from src.core.constants import MILLISECONDS_PER_SECOND
from src.core.types import AsgiMessage, AsgiScope, AsgiSend

LIFECYCLE_SCOPE_KEY = "app.response_lifecycle"


@dataclass(frozen=True)
class ResponseCompleted:
    """Outcome of a single request.

    Attributes:
        status_code: Status sent to the client, or 500 when the chain raised
            before a status was sent.
        duration_ms: Time from lifecycle creation to the terminal write.
        content_length: Declared ``Content-Length``, 0 when absent.
        error: The exception that escaped the handler chain, if any.
    """

    status_code: int
    duration_ms: float
    content_length: int = 0
    error: BaseException | None = None

    @property
    def failed(self) -> bool:
        """Whether the handler chain raised instead of finishing a response."""
        return self.error is not None


type CompletionCallback = Callable[[ResponseCompleted], None]


def _content_length(headers: list[tuple[bytes, bytes]]) -> int:
    for name, value in headers:
        if name.lower() == b"content-length":
            try:
                return int(value)
            except ValueError:
                return 0
    return 0


class ResponseLifecycle:
    """One-shot completion tracker for a single request/response pair."""

    def __init__(self, started_at: float | None = None) -> None:
        self.started_at = time.perf_counter() if started_at is None else started_at
        self.status_code: int | None = None
        self.content_length = 0
        self.completed = False
        self._callbacks: list[CompletionCallback] = []

    def on_complete(self, callback: CompletionCallback) -> None:
        """Register ``callback`` to receive this request's outcome."""
        self._callbacks.append(callback)

    def elapsed_ms(self) -> float:
        """Milliseconds since the lifecycle was created."""
        return (time.perf_counter() - self.started_at) * MILLISECONDS_PER_SECOND

    def _fire(self, event: ResponseCompleted) -> None:
        for callback in self._callbacks:
            callback(event)

    def fail(self, error: BaseException) -> bool:
        """Report that the handler chain raised.

        Args:
            error: The exception that escaped the chain.

        Returns:
            bool: True if this call produced the request's outcome, False
                when an outcome was already reported.
        """
        if self.completed:
            return False
        self.completed = True
        self._fire(
            ResponseCompleted(
                status_code=self.status_code or HTTP_500_INTERNAL_SERVER_ERROR,
                duration_ms=self.elapsed_ms(),
                content_length=self.content_length,
                error=error,
            )
        )
        return True

    def wrap_send(self, send: AsgiSend) -> AsgiSend:
        """Wrap ``send`` so the terminal body message fires the completion event.

        Args:
            send: The original ASGI send callable.

        Returns:
            AsgiSend: A send callable that forwards every message unchanged.
        """

        async def send_wrapper(message: AsgiMessage) -> None:
            message_type = message["type"]

            if message_type == "http.response.start":
                self.status_code = message["status"]
                self.content_length = _content_length(message.get("headers", []))
                await send(message)
                return

            if (
                message_type != "http.response.body"
                or message.get("more_body", False)
                or self.completed
            ):
                await send(message)
                return

            self.completed = True
            duration_ms = self.elapsed_ms()
            try:
                await send(message)
            finally:
                self._fire(
                    ResponseCompleted(
                        status_code=self.status_code or HTTP_500_INTERNAL_SERVER_ERROR,
                        duration_ms=duration_ms,
                        content_length=self.content_length,
                    )
                )

        return send_wrapper


def get_lifecycle(scope: AsgiScope) -> ResponseLifecycle | None:
    """Return the lifecycle attached to this request, if any."""
    lifecycle = scope.get(LIFECYCLE_SCOPE_KEY)
    return lifecycle if isinstance(lifecycle, ResponseLifecycle) else None


def attach_lifecycle(
    scope: AsgiScope, send: AsgiSend
) -> tuple[ResponseLifecycle, AsgiSend]:
    """Return this request's lifecycle, creating and wiring it on first use.

    ``send`` is wrapped only when the lifecycle is created here. A caller
    that finds an existing lifecycle gets ``send`` back untouched, because
    the messages it sends already pass through the original wrapper.

    Args:
        scope: ASGI scope of the request.
        send: The send callable the caller was given.

    Returns:
        tuple[ResponseLifecycle, AsgiSend]: The lifecycle and the send
            callable the caller must pass downstream.
    """
    existing = get_lifecycle(scope)
    if existing is not None:
        return existing, send

    lifecycle = ResponseLifecycle()
    scope[LIFECYCLE_SCOPE_KEY] = lifecycle
    return lifecycle, lifecycle.wrap_send(send)


class ResponseLifecycleMiddleware:
    """Attach a ``ResponseLifecycle`` to every HTTP request.

    Installed ahead of the audit middleware so that the completion
    registration point exists before any handler runs. Reports escaping
    errors to the lifecycle before re-raising them.

    Args:
        app: The ASGI application to wrap.
    """

    def __init__(self, app: ASGIApp) -> None:
        self.app = app

    async def __call__(self, scope: Scope, receive: Receive, send: Send) -> None:
        """Process one ASGI connection."""
        if scope["type"] != "http":
            await self.app(scope, receive, send)
            return

        lifecycle, wrapped_send = attach_lifecycle(scope, send)
        try:
            await self.app(scope, receive, wrapped_send)
        except Exception as exc:
            lifecycle.fail(exc)
            raise
