"""Centralized application configuration using Pydantic Settings.

Loads configuration from environment variables and `.env` file with
full validation, type coercion, and sensible defaults.

Credentials (gateway key, search key, JWT secret) are optional at load
time: a missing gateway key or JWT secret surfaces as a 500 on the request
that needs it, a missing search key simply disables web context.

Usage:
    from tutor_relay.config import get_settings

    settings = get_settings()  # cached singleton
    print(settings.GATEWAY_MODEL)
"""
from __future__ import annotations

from functools import lru_cache

from pydantic import Field, field_validator
from pydantic_settings import BaseSettings, SettingsConfigDict


class Settings(BaseSettings):
    """Application settings loaded from environment variables / .env file."""

    model_config = SettingsConfigDict(
        env_file=".env",
        env_file_encoding="utf-8",
        extra="ignore",  # silently ignore unknown env vars
    )

    # ── Flask ──────────────────────────────────────────────────────────
    FLASK_ENV: str = Field(default="development", description="Flask environment (development/production)")
    FLASK_DEBUG: bool = Field(default=False, description="Enable Flask debug mode")
    SECRET_KEY: str = Field(default="change-me-in-production", validate_default=True, description="Flask secret key")
    CORS_ORIGINS: str = Field(default="*", description="Comma-separated allowed origins, or '*'")

    # ── Completion gateway ────────────────────────────────────────────
    GATEWAY_API_KEY: str = Field(default="", description="Bearer key for the completion gateway")
    GATEWAY_BASE_URL: str = Field(
        default="https://ai.gateway.lovable.dev/v1",
        description="OpenAI-compatible gateway base URL",
    )
    GATEWAY_MODEL: str = Field(default="google/gemini-3-flash-preview", description="Model identifier")
    GATEWAY_TIMEOUT: int = Field(default=120, ge=1, le=600, description="Gateway read timeout (seconds)")

    # ── Web search (Firecrawl-compatible) ─────────────────────────────
    SEARCH_API_KEY: str = Field(default="", description="Search API key; empty disables web context")
    SEARCH_BASE_URL: str = Field(default="https://api.firecrawl.dev/v1", description="Search API base URL")
    SEARCH_TIMEOUT: float = Field(default=5.0, gt=0, le=30, description="Overall search budget (seconds)")
    SEARCH_MAX_RETRIES: int = Field(default=1, ge=1, le=3, description="Search attempts before giving up")
    SEARCH_RESULT_LIMIT: int = Field(default=3, ge=1, le=10, description="Search results requested")
    SEARCH_SNIPPET_MAX_CHARS: int = Field(default=800, ge=50, description="Max chars kept per result")
    SEARCH_QUERY_MAX_LENGTH: int = Field(default=200, ge=10, description="Max chars of the user query sent to search")
    SEARCH_LANG: str = Field(default="ru", description="Search language")
    SEARCH_COUNTRY: str = Field(default="ru", description="Search country")

    # ── Cache ─────────────────────────────────────────────────────────
    CACHE_TTL_SECONDS: int = Field(default=300, ge=0, description="Search result cache TTL (seconds)")
    CACHE_MAX_SIZE: int = Field(default=256, ge=1, description="Max number of cached search results")

    # ── Rate limiting ─────────────────────────────────────────────────
    RATE_LIMIT_MAX_REQUESTS: int = Field(default=15, ge=1, description="Admitted chat turns per window")
    RATE_LIMIT_WINDOW_SECONDS: float = Field(default=60.0, gt=0, description="Admission window length")
    RATE_LIMIT_EVICT_AFTER_SECONDS: float = Field(
        default=300.0, ge=0, description="Drop records whose window expired this long ago",
    )

    # ── Request limits ────────────────────────────────────────────────
    MAX_MESSAGES: int = Field(default=50, ge=1, le=500, description="Max turns per request")
    MAX_MESSAGE_LENGTH: int = Field(default=4000, ge=1, description="Max chars per turn")

    # ── Auth ──────────────────────────────────────────────────────────
    AUTH_JWT_SECRET: str = Field(default="", description="HMAC secret used to verify access tokens")
    AUTH_JWT_ALGORITHM: str = Field(default="HS256", description="Access token algorithm")
    AUTH_JWT_AUDIENCE: str = Field(default="authenticated", description="Expected 'aud'; empty skips the check")

    # ── Logging ───────────────────────────────────────────────────────
    LOG_LEVEL: str = Field(default="INFO", description="Logging level (DEBUG/INFO/WARNING/ERROR)")
    LOG_FORMAT: str = Field(default="json", description="Log output format ('json' for prod, 'console' for dev)")

    # ── Validators ────────────────────────────────────────────────────

    @field_validator("GATEWAY_API_KEY", "SEARCH_API_KEY", "AUTH_JWT_SECRET")
    @classmethod
    def strip_credentials(cls, v: str) -> str:
        """Treat whitespace-only credentials as unset."""
        return v.strip()

    @field_validator("SECRET_KEY")
    @classmethod
    def validate_secret_key(cls, v: str, info) -> str:
        """Refuse the default secret key in production."""
        env = info.data.get("FLASK_ENV", "development")
        if env == "production" and v == "change-me-in-production":
            raise ValueError("SECRET_KEY must be changed from the default in production.")
        return v

    @field_validator("LOG_LEVEL")
    @classmethod
    def validate_log_level(cls, v: str) -> str:
        """Normalize and validate log level."""
        v = v.upper().strip()
        valid_levels = {"DEBUG", "INFO", "WARNING", "ERROR", "CRITICAL"}
        if v not in valid_levels:
            raise ValueError(f"LOG_LEVEL must be one of {valid_levels}, got '{v}'")
        return v

    @field_validator("LOG_FORMAT")
    @classmethod
    def validate_log_format(cls, v: str) -> str:
        v = v.lower().strip()
        if v not in ("json", "console"):
            raise ValueError("LOG_FORMAT must be 'json' or 'console'")
        return v

    @field_validator("GATEWAY_BASE_URL", "SEARCH_BASE_URL")
    @classmethod
    def validate_urls(cls, v: str) -> str:
        """Ensure base URLs don't have trailing slashes."""
        return v.rstrip("/")

    @property
    def cors_origins(self) -> list[str] | str:
        if self.CORS_ORIGINS.strip() == "*":
            return "*"
        return [o.strip() for o in self.CORS_ORIGINS.split(",") if o.strip()]


@lru_cache(maxsize=1)
def get_settings() -> Settings:
    """Return a cached singleton Settings instance.

    Uses `lru_cache` so the `.env` file is only read once.
    """
    return Settings()
