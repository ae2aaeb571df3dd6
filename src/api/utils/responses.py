"""JSON response class backed by orjson.

``ORJSONResponse`` is the application's default response class. Pydantic
models are dumped in JSON mode with unset optional fields left out, so error
bodies only carry ``details`` and ``stack`` when they have values.
"""

from typing import Any

import orjson
from fastapi.responses import JSONResponse
from pydantic import BaseModel


class ORJSONResponse(JSONResponse):
    """FastAPI Response class using orjson for JSON serialization.

    Attributes:
        media_type: The media type for the response.
    """

    media_type = "application/json"

    def render(self, content: Any) -> bytes:  # noqa: ANN401 - accepts any JSON-serializable content
        """Render the content as JSON using orjson.

        Args:
            content: The content to serialize to JSON.

        Returns:
            bytes: The JSON-encoded bytes.
        """
        if isinstance(content, BaseModel):
            content = content.model_dump(mode="json", exclude_none=True)

        return orjson.dumps(content, default=str, option=orjson.OPT_NON_STR_KEYS)
