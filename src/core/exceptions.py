"""Application error taxonomy and the error descriptor model.

This module defines the closed set of error kinds the API understands and
the exception classes that raise them. Every error that reaches the API
boundary is reduced to an ``ErrorDescriptor`` before it is classified into
an HTTP response.

Key components:
- **ErrorKind enum**: validation, unauthorized, malformed identifier,
  conflict and unknown
- **AppError**: Base exception carrying kind, optional status and details
- **Specialized exceptions**: One subclass per kind, each holding only the
  fields relevant to it
- **ErrorDescriptor**: Immutable snapshot of an error consumed by the
  error classifier
"""

import traceback
from dataclasses import dataclass
from enum import Enum

from src.core.types import ErrorDetails


class ErrorKind(Enum):
    """Closed set of error kinds recognised by the error classifier."""

    VALIDATION = "validation"
    """Input validation failed due to invalid or malformed data."""

    UNAUTHORIZED = "unauthorized"
    """Authentication failed or the caller lacks permission."""

    MALFORMED_IDENTIFIER = "malformed_identifier"
    """An identifier could not be parsed into the expected format."""

    CONFLICT = "conflict"
    """A write collided with existing data (duplicate key)."""

    UNKNOWN = "unknown"
    """Anything else; classified by its declared status or as a 500."""


class AppError(Exception):
    """Base exception class for all application errors.

    Args:
        message: Human-readable error message
        status_code: Declared HTTP status, if the raiser knows one
        details: Client-visible detail payload
        cause: The original exception that caused this error
    """

    kind: ErrorKind = ErrorKind.UNKNOWN

    def __init__(
        self,
        message: str,
        *,
        status_code: int | None = None,
        details: ErrorDetails | None = None,
        cause: Exception | None = None,
    ) -> None:
        self.message = message
        self.status_code = status_code
        self.details = details
        self.cause = cause

        super().__init__(message)
        if cause:
            self.__cause__ = cause

    def __repr__(self) -> str:
        """Return a detailed representation of the exception."""
        class_name = self.__class__.__name__
        status_str = f", status_code={self.status_code}" if self.status_code else ""
        return (
            f"{class_name}(kind={self.kind.value}, "
            f"message='{self.message}'{status_str})"
        )


class ValidationError(AppError):
    """Exception raised when input validation fails.

    Args:
        message: Description of the validation failure
        details: Field-level validation problems
        cause: The original exception that caused this error
    """

    kind = ErrorKind.VALIDATION

    def __init__(
        self,
        message: str,
        details: ErrorDetails | None = None,
        cause: Exception | None = None,
    ) -> None:
        super().__init__(message, details=details, cause=cause)


class UnauthorizedError(AppError):
    """Exception raised when authentication or authorization fails."""

    kind = ErrorKind.UNAUTHORIZED

    def __init__(
        self, message: str = "Unauthorized", cause: Exception | None = None
    ) -> None:
        super().__init__(message, cause=cause)


class MalformedIdentifierError(AppError):
    """Exception raised when an identifier cannot be parsed.

    Args:
        identifier: The raw identifier that failed to parse
        expected: Description of the expected format
    """

    kind = ErrorKind.MALFORMED_IDENTIFIER

    def __init__(
        self,
        identifier: str,
        expected: str = "identifier",
        cause: Exception | None = None,
    ) -> None:
        self.identifier = identifier
        self.expected = expected
        super().__init__(f"Cannot parse {identifier!r} as {expected}", cause=cause)


class ConflictError(AppError):
    """Exception raised when a write violates a uniqueness constraint.

    Args:
        message: Description of the conflict
        key: Name of the duplicated key, when known
    """

    kind = ErrorKind.CONFLICT

    def __init__(
        self,
        message: str = "Duplicate key",
        key: str | None = None,
        cause: Exception | None = None,
    ) -> None:
        self.key = key
        super().__init__(message, cause=cause)


class PayloadTooLargeError(AppError):
    """Exception raised when a request body exceeds the configured limit.

    Args:
        limit: The limit in bytes that was exceeded
    """

    def __init__(self, limit: int) -> None:
        self.limit = limit
        super().__init__("Request body too large", status_code=413)


@dataclass(frozen=True)
class ErrorDescriptor:
    """Snapshot of an error as seen by the error classifier.

    Attributes:
        kind: Which branch of the taxonomy the error belongs to.
        message: The error's own message. May be empty.
        status_code: Status declared by the raiser, if any.
        details: Client-visible detail payload, if any.
        stack: Formatted traceback. Internal only.
        error_type: Name of the originating exception class.
        trusted_message: Whether ``message`` was written for clients.
    """

    kind: ErrorKind
    message: str
    status_code: int | None = None
    details: ErrorDetails | None = None
    stack: str | None = None
    error_type: str = "Error"
    trusted_message: bool = True

    @classmethod
    def from_exception(
        cls,
        exc: BaseException,
        *,
        kind: ErrorKind = ErrorKind.UNKNOWN,
        message: str | None = None,
        status_code: int | None = None,
        details: ErrorDetails | None = None,
        trusted_message: bool = True,
    ) -> "ErrorDescriptor":
        """Build a descriptor from an exception, capturing its traceback.

        Args:
            exc: The exception being described.
            kind: Kind to record.
            message: Message override. Defaults to ``str(exc)``.
            status_code: Declared status code.
            details: Client-visible detail payload.
            trusted_message: Whether the message may be shown to clients.

        Returns:
            ErrorDescriptor: The frozen snapshot.
        """
        return cls(
            kind=kind,
            message=str(exc) if message is None else message,
            status_code=status_code,
            details=details,
            stack=format_stack(exc),
            error_type=type(exc).__name__,
            trusted_message=trusted_message,
        )


def format_stack(exc: BaseException) -> str:
    """Format an exception with its traceback as a single string."""
    return "".join(traceback.format_exception(type(exc), exc, exc.__traceback__))

