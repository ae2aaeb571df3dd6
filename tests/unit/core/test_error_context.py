"""Unit tests for log sanitization."""

from typing import Any

import pytest

from src.core.constants import REDACTED
from src.core.error_context import (
    MAX_DEPTH,
    is_sensitive_field,
    sanitize_dict,
    sanitize_value,
)


@pytest.mark.unit
class TestSensitiveFields:
    """Field name detection."""

    @pytest.mark.parametrize(
        "field_name",
        ["password", "newPassword", "api_key", "API-KEY", "refresh_token", "Cookie"],
    )
    def test_sensitive_names(self, field_name: str) -> None:
        """Test credential-like names are detected."""
        assert is_sensitive_field(field_name) is True

    @pytest.mark.parametrize("field_name", ["username", "email", "move", "elo"])
    def test_regular_names(self, field_name: str) -> None:
        """Test ordinary names are not detected."""
        assert is_sensitive_field(field_name) is False


@pytest.mark.unit
class TestSanitize:
    """Redaction of nested structures."""

    def test_nested_structures(self) -> None:
        """Test redaction descends into dicts, lists and tuples."""
        data: dict[str, Any] = {
            "username": "magnus",
            "password": "hunter2",
            "profile": {"email": "m@example.com", "api_key": "k"},
            "devices": [{"token": "t1", "platform": "web"}],
            "pair": ("a", {"secret": "s"}),
        }

        assert sanitize_dict(data) == {
            "username": "magnus",
            "password": REDACTED,
            "profile": {"email": "m@example.com", "api_key": REDACTED},
            "devices": [{"token": REDACTED, "platform": "web"}],
            "pair": ("a", {"secret": REDACTED}),
        }

    def test_original_untouched(self) -> None:
        """Test sanitization returns a copy."""
        data = {"password": "hunter2"}

        sanitize_dict(data)

        assert data == {"password": "hunter2"}

    def test_scalars_pass_through(self) -> None:
        """Test non-container values without a field name are unchanged."""
        assert sanitize_value("plain text") == "plain text"
        assert sanitize_value(None) is None

    def test_depth_limit(self) -> None:
        """Test structures deeper than MAX_DEPTH are cut off."""
        nested: dict[str, Any] = {"leaf": "value"}
        for _ in range(MAX_DEPTH + 2):
            nested = {"child": nested}

        result = sanitize_value(nested)

        depth = 0
        node: Any = result
        while isinstance(node, dict):
            node = node["child"]
            depth += 1
        assert node == REDACTED
        assert depth == MAX_DEPTH + 1
