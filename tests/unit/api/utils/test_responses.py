"""Unit tests for the orjson response class."""

from datetime import UTC, datetime
from uuid import UUID

import orjson
import pytest

from src.api.schemas.errors import ErrorResponse
from src.api.utils.responses import ORJSONResponse


@pytest.mark.unit
class TestORJSONResponse:
    """Rendering content with orjson."""

    def test_renders_dict(self) -> None:
        """Test plain dicts are rendered as JSON."""
        response = ORJSONResponse(content={"status": "ok", "uptime": 1.5})

        assert orjson.loads(response.body) == {"status": "ok", "uptime": 1.5}
        assert response.headers["content-type"] == "application/json"

    def test_renders_model_without_none_fields(self) -> None:
        """Test pydantic models drop unset optional fields."""
        response = ORJSONResponse(content=ErrorResponse(error="Route /foo not found"))

        assert orjson.loads(response.body) == {
            "success": False,
            "error": "Route /foo not found",
        }

    def test_renders_non_native_types(self) -> None:
        """Test datetimes, UUIDs and non-string keys are serialized."""
        response = ORJSONResponse(
            content={
                "at": datetime(2024, 1, 1, tzinfo=UTC),
                "id": UUID(int=1),
                1: "one",
            }
        )

        assert orjson.loads(response.body) == {
            "at": "2024-01-01T00:00:00+00:00",
            "id": "00000000-0000-0000-0000-000000000001",
            "1": "one",
        }
