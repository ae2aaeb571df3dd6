"""Type aliases for dynamic data structures throughout the application.

This module centralizes type definitions for data that cannot be statically
typed, providing clear semantic meaning and documentation for these types.

All types defined here should be JSON-serializable to support logging
and API responses.
"""

from collections.abc import Awaitable, Callable, MutableMapping
from typing import Any

# JSON-compatible type that represents any valid JSON value
# Used for API responses, request bodies, and serialization
type JsonValue = (
    dict[str, "JsonValue"] | list["JsonValue"] | str | int | float | bool | None
)

# Client-visible error detail payload
type ErrorDetails = dict[str, Any] | list[Any]

# ASGI primitives for pure ASGI middleware implementations
# Following ASGI spec: https://asgi.readthedocs.io/en/latest/specs/www.html
type AsgiScope = MutableMapping[str, Any]
type AsgiMessage = MutableMapping[str, Any]
type AsgiReceive = Callable[[], Awaitable[AsgiMessage]]
type AsgiSend = Callable[[AsgiMessage], Awaitable[None]]
