"""Centralized configuration management with environment-aware defaults.

This module implements the configuration system using Pydantic Settings,
providing one immutable, validated settings object that is resolved once at
startup and passed explicitly to every component that needs it.

Features:
- **Type safety**: All configuration values are validated and typed
- **Environment variables**: Supports .env files and environment overrides
- **Nested configuration**: Uses __ delimiter for rate limit settings
- **Immutability**: Settings are frozen; environment-derived values are
  exposed as properties instead of being written back after validation
- **Caching**: Configuration is cached for performance

Configuration sources (in order of precedence):
1. Environment variables
2. .env file in project root
3. Default values in model definitions
4. Environment-based defaults (production vs development)
"""

from functools import lru_cache
from typing import Literal

from pydantic import AliasChoices, BaseModel, ConfigDict, Field, field_validator
from pydantic_settings import BaseSettings, SettingsConfigDict

from src.core.constants import (
    DEFAULT_FRONTEND_URL,
    DEFAULT_MAX_BODY_SIZE,
    DEFAULT_PORT,
    DEVELOPMENT_RATE_LIMIT,
    PRODUCTION_RATE_LIMIT,
    RATE_LIMIT_WINDOW_SECONDS,
)

LogLevelName = Literal["DEBUG", "HTTP", "INFO", "WARNING", "ERROR", "CRITICAL"]


class RateLimitConfig(BaseModel):
    """Per-client request ceiling configuration."""

    model_config = ConfigDict(frozen=True)

    enabled: bool = Field(default=True, description="Enable rate limiting")
    max_requests: int | None = Field(
        default=None,
        gt=0,
        description="Requests allowed per window. Derived from environment if unset.",
    )
    window_seconds: int = Field(
        default=RATE_LIMIT_WINDOW_SECONDS,
        gt=0,
        description="Length of the rate limit window in seconds",
    )


class Settings(BaseSettings):
    """Main settings class for the application."""

    model_config = SettingsConfigDict(
        env_file=".env",
        env_file_encoding="utf-8",
        case_sensitive=False,
        validate_default=True,
        env_nested_delimiter="__",
        populate_by_name=True,
        frozen=True,
        extra="ignore",
    )

    # Application settings
    app_name: str = Field(default="Chess App Backend", description="Application name")
    app_version: str = Field(default="1.0.0", description="Application version")
    service_name: str = Field(
        default="chess-app-backend",
        description="Service tag attached to every log record",
    )
    environment: str = Field(
        default="development",
        validation_alias=AliasChoices("NODE_ENV", "ENVIRONMENT", "environment"),
        description="Environment the application is running in",
    )

    # API settings
    port: int = Field(default=DEFAULT_PORT, gt=0, le=65535, description="API port")
    api_host: str | None = Field(
        default=None,
        description="Bind address. Derived from environment if unset.",
    )
    frontend_url: str = Field(
        default=DEFAULT_FRONTEND_URL,
        description="Origin allowed by the CORS policy",
    )
    render_external_hostname: str | None = Field(
        default=None,
        description="Public hostname, only used in the startup log banner",
    )

    # Logging settings
    log_level: LogLevelName = Field(default="INFO", description="Minimum log level")
    log_dir: str = Field(
        default="logs",
        description="Directory for the file transports (non-production only)",
    )
    request_audit_mode: Literal["full", "errors", "both"] = Field(
        default="full",
        description="Which request audit middleware to install",
    )
    excluded_paths: list[str] = Field(
        default_factory=list,
        description="Paths to exclude from request auditing",
    )
    slow_request_threshold_ms: int = Field(
        default=1000,
        gt=0,
        description="Threshold for slow request warnings (milliseconds)",
    )
    max_logged_body_bytes: int = Field(
        default=10 * 1024,
        ge=0,
        description="Maximum number of request body bytes kept for error logs",
    )

    # Error handling settings
    show_stack_traces: bool | None = Field(
        default=None,
        validation_alias=AliasChoices(
            "EXPOSE_STACK_TRACE", "SHOW_STACK_TRACES", "show_stack_traces"
        ),
        description="Include stack traces in error responses. "
        "Defaults to true only in development; ignored in production.",
    )

    # Request handling settings
    max_body_size: int = Field(
        default=DEFAULT_MAX_BODY_SIZE,
        gt=0,
        description="Maximum accepted request body size in bytes",
    )
    rate_limit: RateLimitConfig = Field(
        default_factory=RateLimitConfig, description="Rate limit configuration"
    )

    @field_validator("log_level", mode="before")
    @classmethod
    def normalize_log_level(cls, v: object) -> object:
        """Accept lowercase level names such as ``info`` or ``http``."""
        _ = cls
        if isinstance(v, str):
            normalized = v.strip().upper()
            return "WARNING" if normalized == "WARN" else normalized
        return v

    @field_validator("api_host", "render_external_hostname", mode="before")
    @classmethod
    def empty_str_to_none(cls, v: str | None) -> str | None:
        """Convert empty strings to None for nullable fields."""
        _ = cls
        if v == "":
            return None
        return v

    @property
    def is_production(self) -> bool:
        """Whether the service runs with production behaviour."""
        return self.environment == "production"

    @property
    def bind_host(self) -> str:
        """Address the listener binds to."""
        if self.api_host:
            return self.api_host
        return "0.0.0.0" if self.is_production else "127.0.0.1"  # noqa: S104

    @property
    def expose_stack_trace(self) -> bool:
        """Whether error responses carry the internal stack trace.

        Never true in production, whatever the flag says.
        """
        if self.is_production:
            return False
        if self.show_stack_traces is not None:
            return self.show_stack_traces
        return self.environment == "development"

    @property
    def file_logging_enabled(self) -> bool:
        """File transports are only used outside production."""
        return not self.is_production

    @property
    def rate_limit_max_requests(self) -> int:
        """Request ceiling per window for a single client address."""
        if self.rate_limit.max_requests is not None:
            return self.rate_limit.max_requests
        return PRODUCTION_RATE_LIMIT if self.is_production else DEVELOPMENT_RATE_LIMIT

    @property
    def public_base_url(self) -> str:
        """Base URL printed in the startup banner."""
        if self.is_production:
            return f"https://{self.render_external_hostname}"
        return f"http://localhost:{self.port}"


@lru_cache
def get_settings() -> Settings:
    """Get cached settings instance."""
    return Settings()
