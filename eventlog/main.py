"""
Event store runtime for embedding applications.

Lifecycle:
  startup  → configure logging, open the store, ensure the schema, start the
             retention job when a retention period is configured
  shutdown → stop the retention job, dispose the store's engine
"""

from __future__ import annotations

import asyncio
from typing import Any

import structlog

from eventlog.config.logging_config import configure_logging
from eventlog.config.settings import Settings, get_settings
from eventlog.services.events.retention import run_retention_loop
from eventlog.services.events.store import EventStore

_log = structlog.get_logger(__name__)


class EventLogRuntime:
    """
    Owns one EventStore plus its background retention job.

    Usage:
        async with EventLogRuntime(settings) as store:
            await store.append(event)
    """

    def __init__(self, settings: Settings | None = None) -> None:
        self.settings = settings or get_settings()
        self.store: EventStore | None = None
        self._stop = asyncio.Event()
        self._retention_task: asyncio.Task[None] | None = None

    async def start(self) -> EventStore:
        configure_logging(self.settings)
        _log.info(
            "eventlog_starting",
            database=self.settings.database_url.split("://", 1)[0],
            retention_days=self.settings.events_retention_days,
        )

        store = EventStore.from_settings(self.settings)
        await store.create_schema()
        self.store = store

        if self.settings.events_retention_days is not None:
            self._stop.clear()
            self._retention_task = asyncio.create_task(
                run_retention_loop(store, self.settings, self._stop),
                name="eventlog-retention",
            )

        _log.info("eventlog_ready")
        return store

    async def stop(self) -> None:
        self._stop.set()
        if self._retention_task is not None:
            await self._retention_task
            self._retention_task = None
        if self.store is not None:
            await self.store.dispose()
            self.store = None
        _log.info("eventlog_shutdown")

    @property
    def retention_running(self) -> bool:
        return self._retention_task is not None and not self._retention_task.done()

    async def __aenter__(self) -> EventStore:
        return await self.start()

    async def __aexit__(self, *args: Any) -> None:
        await self.stop()
