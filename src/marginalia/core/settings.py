"""Application settings and configuration.

This module defines all configuration options for the Marginalia comment service.
Settings are loaded from environment variables with sensible defaults.
"""

from typing import Literal

from pydantic import Field
from pydantic_settings import BaseSettings, SettingsConfigDict

ASYNC_DRIVER_SUFFIXES = ("+asyncpg", "+aiosqlite", "+psycopg_async")


class Settings(BaseSettings):
    """Application settings loaded from environment variables.

    Settings can be overridden via environment variables or .env files. The
    secret key has no default: the service refuses to start without one.
    """

    # Application metadata
    app_name: str = Field(default="Marginalia", alias="APP_NAME")
    app_version: str = Field(default="0.1.0", alias="APP_VERSION")

    # Security: keys every HMAC (identity, captcha answers, session tokens) and admin JWTs
    secret_key: str = Field(alias="SECRET_KEY", min_length=1)
    debug: bool = Field(default=False, alias="DEBUG")
    log_level: str = Field(default="INFO", alias="LOG_LEVEL")

    # Database configuration
    database_url: str = Field(default="sqlite:///./marginalia.db", alias="DATABASE_URL")
    sql_debug: bool = Field(default=False, alias="SQL_DEBUG")

    # Challenge storage
    redis_url: str = Field(default="redis://localhost:6379", alias="REDIS_URL")
    challenge_store_backend: Literal["memory", "redis"] = Field(
        default="memory",
        alias="CHALLENGE_STORE_BACKEND",
    )
    captcha_ttl_seconds: int = Field(default=600, gt=0, alias="CAPTCHA_TTL_SECONDS")

    # Fixed-window comment rate limiting
    comment_rate_limit: int = Field(default=5, gt=0, alias="COMMENT_RATE_LIMIT")
    comment_rate_window_seconds: int = Field(
        default=3600,
        gt=0,
        alias="COMMENT_RATE_WINDOW_SECONDS",
    )

    # Self-service deletion window
    deletion_grant_ttl_seconds: int = Field(
        default=1800,
        gt=0,
        alias="DELETION_GRANT_TTL_SECONDS",
    )
    comment_session_cookie: str = Field(
        default="comment_session",
        alias="COMMENT_SESSION_COOKIE",
    )
    comment_session_max_age_seconds: int = Field(
        default=86_400,
        alias="COMMENT_SESSION_MAX_AGE_SECONDS",
    )
    cookie_secure: bool = Field(default=False, alias="COOKIE_SECURE")

    # Client address resolution
    trust_forwarded_headers: bool = Field(default=True, alias="TRUST_FORWARDED_HEADERS")

    # Listing
    comments_default_page_size: int = Field(default=10, gt=0, alias="COMMENTS_DEFAULT_PAGE_SIZE")
    comments_max_page_size: int = Field(default=50, gt=0, alias="COMMENTS_MAX_PAGE_SIZE")

    # Admin bearer tokens
    jwt_algorithm: str = Field(default="HS256", alias="JWT_ALGORITHM")
    admin_token_expire_minutes: int = Field(
        default=60 * 12,
        alias="ADMIN_TOKEN_EXPIRE_MINUTES",
    )

    # CORS configuration for web frontend access
    cors_origins: list[str] = Field(
        default=["*"],
        alias="CORS_ORIGINS",
    )
    cors_allow_credentials: bool = Field(default=True, alias="CORS_ALLOW_CREDENTIALS")
    cors_allow_methods: list[str] = Field(
        default=["GET", "POST", "DELETE", "OPTIONS"],
        alias="CORS_ALLOW_METHODS",
    )
    cors_allow_headers: list[str] = Field(
        default=["*"],
        alias="CORS_ALLOW_HEADERS",
    )

    model_config = SettingsConfigDict(
        env_file=".env",
        validate_assignment=True,
        extra="ignore",
    )

    @property
    def database_url_sync(self) -> str:
        """Return the database URL with any async driver dropped, for Alembic and the CLI."""
        scheme, separator, rest = self.database_url.partition("://")
        if scheme.endswith(ASYNC_DRIVER_SUFFIXES):
            dialect = scheme.split("+", 1)[0]
            return f"{dialect}{separator}{rest}"
        return self.database_url


settings = Settings()  # type: ignore[call-arg]
