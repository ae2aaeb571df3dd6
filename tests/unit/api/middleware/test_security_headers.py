"""Unit tests for SecurityHeadersMiddleware."""

from collections.abc import Callable

import pytest
from fastapi.testclient import TestClient
from pytest_mock import MockerFixture

from src.api.constants import DEFAULT_CONTENT_SECURITY_POLICY, DEFAULT_HSTS_MAX_AGE
from src.api.middleware.security_headers import SecurityHeadersMiddleware


@pytest.mark.unit
class TestSecurityHeadersMiddleware:
    """Test suite for SecurityHeadersMiddleware."""

    def test_default_headers(self, mocker: MockerFixture) -> None:
        """Test the default header set without a CSP."""
        middleware = SecurityHeadersMiddleware(mocker.Mock())

        assert middleware.security_headers() == {
            "X-Content-Type-Options": "nosniff",
            "X-Frame-Options": "DENY",
            "Referrer-Policy": "no-referrer",
            "Cross-Origin-Opener-Policy": "same-origin",
            "Strict-Transport-Security": f"max-age={DEFAULT_HSTS_MAX_AGE}; "
            "includeSubDomains",
        }

    @pytest.mark.parametrize(
        ("hsts_enabled", "include_subdomains", "expected"),
        [
            (True, False, "max-age=3600"),
            (True, True, "max-age=3600; includeSubDomains"),
            (False, True, None),
        ],
    )
    def test_hsts_options(
        self,
        mocker: MockerFixture,
        hsts_enabled: bool,
        include_subdomains: bool,
        expected: str | None,
    ) -> None:
        """Test HSTS configuration is reflected in the header."""
        middleware = SecurityHeadersMiddleware(
            mocker.Mock(),
            hsts_enabled=hsts_enabled,
            hsts_max_age=3600,
            hsts_include_subdomains=include_subdomains,
        )

        headers = middleware.security_headers()
        assert headers.get("Strict-Transport-Security") == expected

    def test_csp_only_when_configured(self, mocker: MockerFixture) -> None:
        """Test the CSP header is added only when a policy is given."""
        middleware = SecurityHeadersMiddleware(
            mocker.Mock(), content_security_policy="default-src 'self'"
        )

        headers = middleware.security_headers()

        assert headers["Content-Security-Policy"] == "default-src 'self'"

    def test_development_responses(
        self, make_client: Callable[..., TestClient]
    ) -> None:
        """Test responses carry security headers but no CSP in development."""
        response = make_client().get("/api/health")

        assert response.headers["x-content-type-options"] == "nosniff"
        assert response.headers["x-frame-options"] == "DENY"
        assert "content-security-policy" not in response.headers

    def test_production_responses(
        self, make_client: Callable[..., TestClient]
    ) -> None:
        """Test production responses include the CSP."""
        response = make_client(environment="production").get("/api/health")

        assert response.headers["content-security-policy"] == (
            DEFAULT_CONTENT_SECURITY_POLICY
        )

    def test_error_responses_have_headers(
        self, make_client: Callable[..., TestClient]
    ) -> None:
        """Test error responses produced by handlers also carry the headers."""
        response = make_client().get("/foo")

        assert response.status_code == 404
        assert response.headers["x-frame-options"] == "DENY"
