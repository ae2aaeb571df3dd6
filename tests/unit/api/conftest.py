"""Shared fixtures for API unit tests."""

from collections.abc import Callable
from typing import Any

import pytest
from fastapi import FastAPI
from fastapi.testclient import TestClient

from src.api.main import create_app
from src.core.config import Settings
from src.core.logging import AppLogger


@pytest.fixture
def make_app(
    make_settings: Callable[..., Settings], app_logger: AppLogger
) -> Callable[..., FastAPI]:
    """Build an application with settings overrides.

    Returns:
        Callable[..., FastAPI]: Factory accepting Settings field overrides.
    """

    def _make(**overrides: Any) -> FastAPI:  # noqa: ANN401
        return create_app(make_settings(**overrides), app_logger)

    return _make


@pytest.fixture
def make_client(make_app: Callable[..., FastAPI]) -> Callable[..., TestClient]:
    """Build a TestClient around a freshly configured application.

    Server errors are returned as responses instead of being re-raised.

    Returns:
        Callable[..., TestClient]: Factory accepting Settings field overrides.
    """

    def _make(**overrides: Any) -> TestClient:  # noqa: ANN401
        return TestClient(make_app(**overrides), raise_server_exceptions=False)

    return _make
