"""Integration tests for the composed request pipeline."""

import re
from collections.abc import Callable
from typing import TYPE_CHECKING

import pytest
from fastapi import FastAPI
from fastapi.testclient import TestClient
from httpx import ASGITransport, AsyncClient
from pytest_mock import MockerFixture

from src.core.config import RateLimitConfig

if TYPE_CHECKING:
    from loguru import Record

ISO_TIMESTAMP = re.compile(r"\d{4}-\d{2}-\d{2}T\d{2}:\d{2}:\d{2}\.\d{3}Z")


def audit_messages(records: list["Record"]) -> list[str]:
    audit = {"Incoming request", "Request completed", "Request failed", "Request error"}
    return [r["message"] for r in records if r["message"] in audit]


@pytest.mark.integration
class TestHealthEndpoint:
    """GET /api/health."""

    async def test_health_ok(self, client: AsyncClient) -> None:
        """Test the health check reports status, timestamp, uptime and environment."""
        response = await client.get("/api/health")
        body = response.json()

        assert response.status_code == 200
        assert body["status"] == "ok"
        assert ISO_TIMESTAMP.fullmatch(body["timestamp"])
        assert body["uptime"] >= 0
        assert body["environment"] == "development"

    async def test_health_failure(
        self, client: AsyncClient, mocker: MockerFixture
    ) -> None:
        """Test a failing health check answers 503."""
        mocker.patch(
            "src.api.main.build_health_payload", side_effect=OSError("clock broken")
        )

        response = await client.get("/api/health")
        body = response.json()

        assert response.status_code == 503
        assert body["status"] == "error"
        assert body["error"] == "Service unavailable"
        assert ISO_TIMESTAMP.fullmatch(body["timestamp"])

    def test_lifespan_logs(
        self, build_app: Callable[..., FastAPI], log_records: list["Record"]
    ) -> None:
        """Test startup and shutdown of the application are logged."""
        with TestClient(build_app()) as test_client:
            test_client.get("/api/health")

        messages = [r["message"] for r in log_records]
        assert "Application startup complete - Chess App Backend v1.0.0" in messages
        assert messages[-1] == "Application shutdown complete"


@pytest.mark.integration
class TestRequestAudit:
    """Audit records produced by real requests."""

    async def test_exactly_one_outcome_per_request(
        self, client: AsyncClient, log_records: list["Record"]
    ) -> None:
        """Test each request logs one entry and one completion record."""
        await client.get("/api/health")
        await client.get("/foo")

        assert audit_messages(log_records) == [
            "Incoming request",
            "Request completed",
            "Incoming request",
            "Request completed",
        ]
        completed = [r for r in log_records if r["message"] == "Request completed"]
        assert [r["extra"]["metadata"]["status_code"] for r in completed] == [200, 404]

    async def test_errors_mode(
        self, build_app: Callable[..., FastAPI], log_records: list["Record"]
    ) -> None:
        """Test the error-only variant logs failures only."""
        transport = ASGITransport(app=build_app(request_audit_mode="errors"))
        async with AsyncClient(transport=transport, base_url="http://test") as client:
            await client.get("/api/health")
            await client.post("/api/games", json={"white": "magnus"})

        assert audit_messages(log_records) == ["Request error"]
        record = next(r for r in log_records if r["message"] == "Request error")
        assert record["extra"]["metadata"]["status_code"] == 400
        assert record["extra"]["metadata"]["body"] == {"white": "magnus"}

    async def test_unread_body_not_logged(
        self, build_app: Callable[..., FastAPI], log_records: list["Record"]
    ) -> None:
        """Test a body the route never reads is not captured."""
        transport = ASGITransport(app=build_app(request_audit_mode="errors"))
        async with AsyncClient(transport=transport, base_url="http://test") as client:
            await client.post("/api/users", json={"username": "magnus"})

        record = next(r for r in log_records if r["message"] == "Request error")
        assert record["extra"]["metadata"]["status_code"] == 409
        assert record["extra"]["metadata"]["body"] is None

    async def test_both_modes(
        self, build_app: Callable[..., FastAPI], log_records: list["Record"]
    ) -> None:
        """Test both variants together still log once each."""
        transport = ASGITransport(app=build_app(request_audit_mode="both"))
        async with AsyncClient(transport=transport, base_url="http://test") as client:
            await client.get("/foo")

        messages = audit_messages(log_records)
        assert sorted(messages) == [
            "Incoming request",
            "Request completed",
            "Request error",
        ]

    async def test_audit_records_at_http_level(
        self, client: AsyncClient, log_records: list["Record"]
    ) -> None:
        """Test traffic records use the HTTP level."""
        await client.get("/api/health")

        levels = {
            r["level"].name
            for r in log_records
            if r["message"] in {"Incoming request", "Request completed"}
        }
        assert levels == {"HTTP"}


@pytest.mark.integration
class TestCrossCuttingMiddleware:
    """CORS, rate limiting and body limits on the composed app."""

    async def test_cors_preflight(self, client: AsyncClient) -> None:
        """Test the frontend origin may call the API with credentials."""
        response = await client.options(
            "/api/health",
            headers={
                "Origin": "http://localhost:5173",
                "Access-Control-Request-Method": "POST",
            },
        )

        assert response.status_code == 200
        assert response.headers["access-control-allow-origin"] == (
            "http://localhost:5173"
        )
        assert response.headers["access-control-allow-credentials"] == "true"

    async def test_cors_rejects_other_origins(self, client: AsyncClient) -> None:
        """Test other origins are not echoed back."""
        response = await client.get(
            "/api/health", headers={"Origin": "https://evil.example.com"}
        )

        assert "access-control-allow-origin" not in response.headers

    async def test_rate_limit(self, build_app: Callable[..., FastAPI]) -> None:
        """Test the request after the ceiling is rejected with 429."""
        app = build_app(rate_limit=RateLimitConfig(max_requests=3))
        transport = ASGITransport(app=app)
        async with AsyncClient(transport=transport, base_url="http://test") as client:
            statuses = [(await client.get("/api/health")).status_code for _ in range(4)]

        assert statuses == [200, 200, 200, 429]

    async def test_body_limit(self, build_app: Callable[..., FastAPI]) -> None:
        """Test oversized bodies are rejected before reaching routes."""
        transport = ASGITransport(app=build_app(max_body_size=32))
        async with AsyncClient(transport=transport, base_url="http://test") as client:
            response = await client.post("/api/games", content=b"{" + b" " * 64 + b"}")

        assert response.status_code == 413
        assert response.json()["error"] == "Request body too large"
