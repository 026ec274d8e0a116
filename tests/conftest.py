"""
Shared pytest fixtures for event store tests.

Provides:
  - async SQLite in-memory engine (per-test isolation)
  - an EventStore with its schema created
  - a file-backed store for tests that need real concurrent connections
  - fixed timestamps and identifiers for readable assertions
"""
from __future__ import annotations

import uuid
from collections.abc import AsyncGenerator
from datetime import datetime

import pytest
import pytest_asyncio
from sqlalchemy.ext.asyncio import AsyncEngine, create_async_engine
from sqlalchemy.pool import StaticPool

from eventlog.config.settings import Settings
from eventlog.services.events.store import EventStore


# ─── Database ─────────────────────────────────────────────────────────────────

@pytest_asyncio.fixture(scope="function")
async def db_engine() -> AsyncGenerator[AsyncEngine, None]:
    """Create an async in-memory SQLite engine per test function."""
    engine = create_async_engine(
        "sqlite+aiosqlite:///:memory:",
        connect_args={"check_same_thread": False},
        poolclass=StaticPool,
    )
    yield engine
    await engine.dispose()


@pytest_asyncio.fixture(scope="function")
async def store(db_engine) -> EventStore:
    """Event store over the in-memory engine; small purge chunks exercise batching."""
    store_ = EventStore(db_engine, max_query_limit=100, purge_batch_size=2)
    await store_.create_schema()
    return store_


@pytest_asyncio.fixture(scope="function")
async def file_store(tmp_path) -> AsyncGenerator[EventStore, None]:
    """Event store over an on-disk database with a real connection pool."""
    settings = Settings(
        _env_file=None,
        database_url=f"sqlite+aiosqlite:///{tmp_path / 'events.db'}",
        max_query_limit=1000,
    )
    async with EventStore.from_settings(settings) as store_:
        await store_.create_schema()
        yield store_


# ─── Values ───────────────────────────────────────────────────────────────────

@pytest.fixture
def t0() -> datetime:
    return datetime(2024, 3, 1, 12, 0, 0)


@pytest.fixture
def org_a() -> str:
    return str(uuid.uuid4())


@pytest.fixture
def org_b() -> str:
    return str(uuid.uuid4())
