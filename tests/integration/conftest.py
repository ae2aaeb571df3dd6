"""Shared fixtures for integration tests.

The application under test gets a few extra routes that raise each kind of
error, so the full pipeline can be exercised end to end.
"""

from collections.abc import AsyncGenerator, Callable
from typing import Any

import pytest
from fastapi import FastAPI
from httpx import ASGITransport, AsyncClient
from pydantic import BaseModel

from src.api.main import create_app
from src.core.config import Settings
from src.core.exceptions import (
    ConflictError,
    MalformedIdentifierError,
    UnauthorizedError,
)
from src.core.logging import AppLogger


class GameCreate(BaseModel):
    """Body accepted by the test game endpoint."""

    white: str
    black: str
    time_control: int


def add_test_routes(app: FastAPI) -> None:
    """Register routes that exercise each error path."""

    @app.post("/api/games")
    async def create_game(game: GameCreate) -> dict[str, Any]:
        return {"success": True, "game": game.model_dump()}

    @app.get("/api/games/{game_id}")
    async def get_game(game_id: str) -> dict[str, Any]:
        if not game_id.isalnum():
            raise MalformedIdentifierError(game_id, "game id")
        return {"success": True, "id": game_id}

    @app.post("/api/users")
    async def create_user() -> dict[str, Any]:
        raise ConflictError(key="username")

    @app.get("/api/profile")
    async def profile() -> dict[str, Any]:
        raise UnauthorizedError("Token expired")

    @app.get("/api/boom")
    async def boom() -> dict[str, Any]:
        raise RuntimeError("engine crashed: db password hunter2")


@pytest.fixture
def build_app(
    make_settings: Callable[..., Settings], app_logger: AppLogger
) -> Callable[..., FastAPI]:
    """Build the full application with test routes.

    Returns:
        Callable[..., FastAPI]: Factory accepting Settings field overrides.
    """

    def _build(**overrides: Any) -> FastAPI:  # noqa: ANN401
        app = create_app(make_settings(**overrides), app_logger)
        add_test_routes(app)
        return app

    return _build


@pytest.fixture
async def client(build_app: Callable[..., FastAPI]) -> AsyncGenerator[AsyncClient]:
    """Async client against a development application.

    Yields:
        AsyncClient: Client whose unhandled server errors become responses.
    """
    transport = ASGITransport(app=build_app(), raise_app_exceptions=False)
    async with AsyncClient(transport=transport, base_url="http://test") as test_client:
        yield test_client


@pytest.fixture
async def production_client(
    build_app: Callable[..., FastAPI],
) -> AsyncGenerator[AsyncClient]:
    """Async client against a production application.

    Yields:
        AsyncClient: Client whose unhandled server errors become responses.
    """
    transport = ASGITransport(
        app=build_app(environment="production"), raise_app_exceptions=False
    )
    async with AsyncClient(transport=transport, base_url="http://test") as test_client:
        yield test_client
