"""Retention-driven purge of expired events."""

from __future__ import annotations

import asyncio
from datetime import UTC, datetime, timedelta

import structlog

from eventlog.config.settings import Settings
from eventlog.core.errors import OperationCancelledError, StorageError
from eventlog.services.events.store import EventStore

_log = structlog.get_logger(__name__)


def retention_cutoff(retention_days: int, now: datetime | None = None) -> datetime:
    """Oldest event_date that is still kept."""
    if retention_days < 1:
        raise ValueError("retention_days must be at least 1")
    current = now or datetime.now(UTC)
    return current - timedelta(days=retention_days)


async def purge_expired(
    store: EventStore,
    retention_days: int,
    now: datetime | None = None,
    *,
    timeout: float | None = None,
    cancel_event: asyncio.Event | None = None,
) -> int:
    """Delete events older than ``retention_days`` and return how many."""
    cutoff = retention_cutoff(retention_days, now)
    return await store.purge(cutoff, timeout=timeout, cancel_event=cancel_event)


async def run_retention_loop(
    store: EventStore,
    settings: Settings,
    stop_event: asyncio.Event,
) -> None:
    """
    Purge expired events every ``purge_interval_seconds`` until stopped.

    Storage failures are logged and the next run retries; a partial purge
    needs no repair since the next run simply removes what is left.
    """
    if settings.events_retention_days is None:
        _log.info("event_retention_disabled")
        return

    while not stop_event.is_set():
        try:
            await purge_expired(
                store, settings.events_retention_days, cancel_event=stop_event
            )
        except (StorageError, OperationCancelledError) as exc:
            _log.warning("event_retention_run_failed", error=exc.message, detail=exc.detail)

        try:
            await asyncio.wait_for(stop_event.wait(), timeout=settings.purge_interval_seconds)
        except TimeoutError:
            continue
