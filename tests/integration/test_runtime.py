"""Integration tests for eventlog.main (store lifecycle and retention job)."""
import asyncio
import logging
from datetime import UTC, datetime, timedelta

import pytest
import structlog

from eventlog.config.settings import Settings
from eventlog.main import EventLogRuntime
from eventlog.schemas.event import new_event
from eventlog.schemas.event_types import EventType


pytestmark = pytest.mark.asyncio


@pytest.fixture(autouse=True)
def _reset_logging():
    yield
    structlog.reset_defaults()
    structlog.contextvars.clear_contextvars()
    logging.getLogger().handlers = []


def _settings(tmp_path, **overrides) -> Settings:
    return Settings(
        _env_file=None,
        database_url=f"sqlite+aiosqlite:///{tmp_path / 'runtime.db'}",
        log_json=False,
        **overrides,
    )


async def test_runtime_opens_usable_store(tmp_path):
    org = "22222222-2222-2222-2222-222222222222"
    now = datetime.now(UTC)
    async with EventLogRuntime(_settings(tmp_path)) as store:
        event = new_event(EventType.ORGANIZATION_UPDATED, event_date=now, org_uuid=org)
        await store.append(event)
        found = await store.query_by_organization(org, now - timedelta(seconds=1), now, 10).fetch()
        assert found == [event]


async def test_retention_job_disabled_by_default(tmp_path):
    runtime = EventLogRuntime(_settings(tmp_path))
    await runtime.start()
    try:
        assert runtime.retention_running is False
    finally:
        await runtime.stop()
    assert runtime.store is None


async def test_retention_job_purges_and_stops(tmp_path):
    runtime = EventLogRuntime(_settings(tmp_path, events_retention_days=30))
    seed = EventLogRuntime(_settings(tmp_path))
    user = "11111111-1111-1111-1111-111111111111"
    now = datetime.now(UTC)

    async with seed as store:
        await store.append_batch(
            [
                new_event(EventType.USER_LOGGED_IN, event_date=now - timedelta(days=90), user_uuid=user),
                new_event(EventType.USER_LOGGED_IN, event_date=now - timedelta(days=1), user_uuid=user),
            ]
        )

    store = await runtime.start()
    try:
        assert runtime.retention_running is True
        # First retention run starts right away, in the background
        for _ in range(50):
            remaining = await store.query_by_user(user, now - timedelta(days=365), now, 10).fetch()
            if len(remaining) == 1:
                break
            await asyncio.sleep(0.02)
        assert len(remaining) == 1
    finally:
        await runtime.stop()

    assert runtime.retention_running is False
