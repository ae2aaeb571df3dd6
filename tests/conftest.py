"""Root conftest.py for the chess app backend test suite.

This file contains project-wide fixtures and pytest configuration.
"""

from collections.abc import Callable, Generator
from typing import TYPE_CHECKING, Any

import pytest
from loguru import logger

from src.core.config import Settings, get_settings
from src.core.logging import AppLogger, register_http_level

if TYPE_CHECKING:
    from loguru import Record

APP_ENV_VARS = [
    "PORT",
    "NODE_ENV",
    "ENVIRONMENT",
    "FRONTEND_URL",
    "LOG_LEVEL",
    "LOG_DIR",
    "RENDER_EXTERNAL_HOSTNAME",
    "API_HOST",
    "EXPOSE_STACK_TRACE",
    "SHOW_STACK_TRACES",
    "REQUEST_AUDIT_MODE",
    "MAX_BODY_SIZE",
    "SLOW_REQUEST_THRESHOLD_MS",
    "RATE_LIMIT__ENABLED",
    "RATE_LIMIT__MAX_REQUESTS",
    "RATE_LIMIT__WINDOW_SECONDS",
]


def pytest_configure(config: pytest.Config) -> None:
    """Configure pytest with custom markers."""
    config.addinivalue_line(
        "markers", "unit: Unit tests that test individual components in isolation"
    )
    config.addinivalue_line(
        "markers", "integration: Integration tests that test multiple components"
    )


@pytest.fixture(autouse=True)
def clean_env(monkeypatch: pytest.MonkeyPatch) -> pytest.MonkeyPatch:
    """Remove application environment variables so defaults apply.

    Args:
        monkeypatch: Pytest monkeypatch fixture.

    Returns:
        pytest.MonkeyPatch: The monkeypatch instance for env manipulation.
    """
    for name in APP_ENV_VARS:
        monkeypatch.delenv(name, raising=False)
    return monkeypatch


@pytest.fixture(autouse=True)
def clean_lru_cache() -> Generator[None]:
    """Clear the settings cache before and after each test."""
    get_settings.cache_clear()
    yield
    get_settings.cache_clear()


@pytest.fixture
def make_settings() -> Callable[..., Settings]:
    """Build settings that ignore any local .env file.

    Returns:
        Callable[..., Settings]: Factory accepting field overrides.
    """

    def _make(**overrides: Any) -> Settings:  # noqa: ANN401
        return Settings(_env_file=None, **overrides)  # type: ignore[call-arg]

    return _make


@pytest.fixture
def settings(make_settings: Callable[..., Settings]) -> Settings:
    """Development settings with defaults."""
    return make_settings()


@pytest.fixture
def log_records() -> Generator[list["Record"]]:
    """Collect every Loguru record emitted during the test.

    Yields:
        list[Record]: Records in emission order.
    """
    register_http_level()
    records: list[Record] = []
    handler_id = logger.add(
        lambda message: records.append(message.record),
        level="DEBUG",
        format="{message}",
    )
    yield records
    logger.remove(handler_id)


@pytest.fixture
def app_logger() -> AppLogger:
    """Logger tagged with a test service name."""
    return AppLogger("test-service")
