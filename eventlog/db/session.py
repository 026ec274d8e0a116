"""
Async SQLAlchemy engine and session factories.

Nothing here is cached at module level: every EventStore owns its engine, so
several stores (one per database, or one per test) can live side by side.
"""

from __future__ import annotations

from typing import Any

from sqlalchemy.ext.asyncio import (
    AsyncEngine,
    AsyncSession,
    async_sessionmaker,
    create_async_engine,
)
from sqlalchemy.pool import StaticPool

from eventlog.config.settings import Settings


def _build_engine_kwargs(settings: Settings) -> dict[str, Any]:
    """
    Return engine creation kwargs appropriate for the configured database.

    SQLite does not support pool_size / max_overflow; PostgreSQL does. An
    in-memory SQLite database only exists per connection, so it is pinned to
    a single shared connection.
    """
    url = str(settings.database_url)
    base: dict[str, Any] = {"echo": settings.db_echo}

    if "sqlite" in url:
        base["connect_args"] = {"check_same_thread": False}
        if ":memory:" in url or url.rstrip("/").endswith("sqlite+aiosqlite:"):
            base["poolclass"] = StaticPool
    else:
        base["pool_size"] = settings.db_pool_size
        base["max_overflow"] = settings.db_max_overflow
        base["pool_pre_ping"] = True

    return base


def create_engine(settings: Settings) -> AsyncEngine:
    """Create a new async engine for ``settings.database_url``."""
    return create_async_engine(
        str(settings.database_url),
        **_build_engine_kwargs(settings),
    )


def create_session_factory(engine: AsyncEngine) -> async_sessionmaker[AsyncSession]:
    return async_sessionmaker(
        bind=engine,
        class_=AsyncSession,
        expire_on_commit=False,
        autoflush=False,
    )
