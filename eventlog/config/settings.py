"""
Event store configuration via Pydantic Settings.

All values are sourced from environment variables (prefix ``EVENTLOG_``)
or an .env file. Only application wiring reads the cached settings; an
EventStore is always handed its configuration explicitly.
"""

from __future__ import annotations

from enum import StrEnum
from functools import lru_cache

from pydantic import Field, model_validator
from pydantic_settings import BaseSettings, SettingsConfigDict


class Environment(StrEnum):
    """Deployment environment identifiers."""

    DEVELOPMENT = "development"
    TESTING = "testing"
    PRODUCTION = "production"


class LogLevel(StrEnum):
    """Structured log level options."""

    DEBUG = "DEBUG"
    INFO = "INFO"
    WARNING = "WARNING"
    ERROR = "ERROR"
    CRITICAL = "CRITICAL"


class Settings(BaseSettings):
    """Centralised, type-validated event store configuration."""

    model_config = SettingsConfigDict(
        env_prefix="EVENTLOG_",
        env_file=".env",
        env_file_encoding="utf-8",
        case_sensitive=False,
        extra="forbid",
    )

    # ── Application ────────────────────────────────────────────────────── #
    app_name: str = Field(default="eventlog", description="Human-readable service name")
    environment: Environment = Field(
        default=Environment.DEVELOPMENT,
        description="Deployment environment (development|testing|production)",
    )

    # ── Database ───────────────────────────────────────────────────────── #
    database_url: str = Field(
        default="sqlite+aiosqlite:///./events.db",
        description=(
            "Async SQLAlchemy connection string. "
            "Use sqlite+aiosqlite:// for local or postgresql+asyncpg:// for production."
        ),
    )
    db_pool_size: int = Field(default=5, ge=1, le=50, description="Connection pool size")
    db_max_overflow: int = Field(default=10, ge=0, le=100, description="Pool max overflow")
    db_echo: bool = Field(default=False, description="Log all SQL statements (debug only)")

    # ── Queries ────────────────────────────────────────────────────────── #
    max_query_limit: int = Field(
        default=1000,
        ge=1,
        le=100_000,
        description="Largest page size a single query may request",
    )

    # ── Retention ──────────────────────────────────────────────────────── #
    events_retention_days: int | None = Field(
        default=None,
        ge=1,
        description="Delete events older than this many days. None keeps events forever.",
    )
    purge_batch_size: int = Field(
        default=500,
        ge=1,
        le=50_000,
        description="Rows deleted per purge transaction",
    )
    purge_interval_seconds: int = Field(
        default=3600,
        ge=10,
        le=7 * 24 * 3600,
        description="Seconds between runs of the retention job",
    )

    # ── Logging ────────────────────────────────────────────────────────── #
    log_level: LogLevel = Field(default=LogLevel.INFO, description="Minimum log level")
    log_json: bool = Field(default=True, description="Emit logs as JSON (False for dev console)")

    @model_validator(mode="after")
    def production_safety_checks(self) -> Settings:
        if self.environment == Environment.PRODUCTION and self.db_echo:
            raise ValueError("db_echo must be False in production")
        return self


@lru_cache(maxsize=1)
def get_settings() -> Settings:
    """Return the cached Settings instance used by application wiring."""
    return Settings()
