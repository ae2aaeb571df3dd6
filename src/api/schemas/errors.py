"""Standardized error response schema for consistent API error handling.

Every error the API returns, whatever produced it, has the same shape::

    {"success": false, "error": "<message>", "details": ..., "stack": "..."}

``details`` appears only when the error carries a detail payload, and
``stack`` only when stack traces are explicitly enabled.
"""

from typing import Literal

from pydantic import BaseModel, Field

from src.core.types import ErrorDetails


class ErrorResponse(BaseModel):
    """Error response body returned to clients."""

    success: Literal[False] = Field(
        default=False,
        description="Always false for error responses",
    )

    error: str = Field(
        ...,
        description="Human-readable error message",
        examples=["Validation Error", "Route /foo not found", "Duplicate Entry"],
    )

    details: ErrorDetails | None = Field(
        default=None,
        description="Additional error details (e.g., field-specific validation errors)",
        examples=[{"validation_errors": {"email": ["Field required"]}}],
    )

    stack: str | None = Field(
        default=None,
        description="Internal stack trace, only when explicitly enabled",
    )
