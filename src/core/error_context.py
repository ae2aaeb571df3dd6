"""Sensitive data sanitization for request data that ends up in logs.

Error logs and error-only audit records include the request body, params and
query so operators can diagnose failures. This module redacts values whose
field names look like credentials before they are handed to the logger.

Security considerations:
- Sanitization is applied at logging time; the request itself is untouched
- Only logged copies are sanitized
- Matching is by field name, so free-text values are never inspected
"""

from __future__ import annotations

import re
from re import Pattern
from typing import Any, Final

from src.core.constants import REDACTED

# Type alias for values we can sanitize
type SanitizableValue = (
    str | int | float | bool | None | dict[str, Any] | list[Any] | tuple[Any, ...]
)

# Default sensitive field patterns - covers common cases
DEFAULT_SENSITIVE_PATTERN: Final[Pattern[str]] = re.compile(
    r"(password|passwd|pwd|secret|token|api[_-]?key|apikey|authorization|"
    r"credential|private[_-]?key|access[_-]?key|session|cookie|"
    r"ssn|social[_-]?security|cvv|cvc|card[_-]?number)",
    re.IGNORECASE,
)

# Maximum depth for nested structure sanitization
MAX_DEPTH: Final[int] = 10


def is_sensitive_field(field_name: str) -> bool:
    """Check if a field name indicates sensitive data.

    Args:
        field_name: The field name to check.

    Returns:
        bool: True if the field appears to contain sensitive data.
    """
    return bool(DEFAULT_SENSITIVE_PATTERN.search(field_name))


def sanitize_value(
    value: SanitizableValue, field_name: str = "", depth: int = 0
) -> SanitizableValue:
    """Sanitize a value if it appears to be sensitive.

    This function recursively sanitizes nested structures (dicts and lists)
    up to MAX_DEPTH to prevent infinite recursion.

    Args:
        value: The value to potentially sanitize.
        field_name: The field name for context.
        depth: Current recursion depth.

    Returns:
        SanitizableValue: Sanitized value or original if not sensitive.
    """
    if depth > MAX_DEPTH:
        return REDACTED

    if field_name and is_sensitive_field(field_name):
        return REDACTED

    if isinstance(value, dict):
        return {k: sanitize_value(v, str(k), depth + 1) for k, v in value.items()}

    if isinstance(value, list):
        return [sanitize_value(item, "", depth + 1) for item in value]

    if isinstance(value, tuple):
        return tuple(sanitize_value(item, "", depth + 1) for item in value)

    return value


def sanitize_dict(data: dict[str, Any]) -> dict[str, Any]:
    """Sanitize a dictionary by redacting sensitive fields.

    Args:
        data: Dictionary to sanitize.

    Returns:
        dict[str, Any]: New dictionary with sensitive values redacted.
    """
    return {key: sanitize_value(value, key) for key, value in data.items()}
