"""
Durable append-only audit event store.

Each operation runs in its own short transaction on a connection from the
store's engine. Appends only contend on the primary key; a genuine id
collision is rejected, never overwritten. Events are removed only by
``purge``, which deletes in bounded chunks so long-running readers are never
blocked for the whole sweep and an interrupted purge keeps what it finished.

Usage:
    store = EventStore.from_settings(settings)
    await store.append(new_event(EventType.USER_LOGGED_IN, event_date=now, user_uuid=uid))
    events = await store.query_by_organization(org, start, end, limit=50).fetch()
    removed = await store.purge(cutoff)
"""

from __future__ import annotations

import asyncio
import uuid
from collections.abc import Iterable, Mapping
from dataclasses import dataclass
from datetime import datetime
from typing import Any

import structlog
from sqlalchemy import delete, insert, select
from sqlalchemy.exc import IntegrityError, SQLAlchemyError
from sqlalchemy.ext.asyncio import AsyncEngine

from eventlog.config.settings import Settings
from eventlog.core.cancellation import run_cancellable
from eventlog.core.errors import (
    AppError,
    DuplicateEventError,
    ErrorCode,
    OperationCancelledError,
    PurgeError,
    StorageError,
    ValidationError,
)
from eventlog.db.base import Base
from eventlog.db.models.event import Event
from eventlog.db.session import create_engine, create_session_factory
from eventlog.schemas.event import EventRecord, parse_event, to_utc_naive
from eventlog.services.events.query import (
    SUBJECT_COLUMNS,
    EventCursor,
    EventQuery,
    SubjectKind,
)

_log = structlog.get_logger(__name__)


@dataclass(frozen=True)
class BatchItemResult:
    """Outcome of one input record of a batch append."""

    index: int
    event_id: str | None
    error: AppError | None = None

    @property
    def ok(self) -> bool:
        return self.error is None


@dataclass(frozen=True)
class BatchResult:
    items: tuple[BatchItemResult, ...]

    @property
    def succeeded(self) -> list[BatchItemResult]:
        return [item for item in self.items if item.ok]

    @property
    def failed(self) -> list[BatchItemResult]:
        return [item for item in self.items if not item.ok]

    @property
    def succeeded_count(self) -> int:
        return len(self.succeeded)

    @property
    def failed_count(self) -> int:
        return len(self.failed)


@dataclass
class _PurgeProgress:
    deleted: int = 0


def _coerce(event: EventRecord | Mapping[str, Any]) -> EventRecord:
    if isinstance(event, EventRecord):
        return event
    if isinstance(event, Mapping):
        return parse_event(event)
    raise ValidationError(
        "Expected an EventRecord or a mapping of event fields",
        detail={"type": type(event).__name__},
    )


def _row_values(record: EventRecord) -> dict[str, Any]:
    values = record.model_dump()
    values["event_type"] = int(record.event_type)
    return values


def _query_uuid(name: str, value: str | uuid.UUID) -> str:
    try:
        return str(value if isinstance(value, uuid.UUID) else uuid.UUID(value))
    except (TypeError, ValueError, AttributeError) as exc:
        raise ValidationError(
            f"{name} must be a UUID",
            detail={name: repr(value)},
            code=ErrorCode.QUERY_INVALID,
        ) from exc


def _query_time(name: str, value: datetime | None) -> datetime:
    if not isinstance(value, datetime):
        raise ValidationError(
            f"{name} must be a datetime",
            detail={name: repr(value)},
            code=ErrorCode.QUERY_INVALID,
        )
    return to_utc_naive(value)


class EventStore:
    """Handle to one event database. Create one per engine; no shared state."""

    def __init__(
        self,
        engine: AsyncEngine,
        *,
        max_query_limit: int = 1000,
        purge_batch_size: int = 500,
        owns_engine: bool = False,
    ) -> None:
        self._engine = engine
        self._session_factory = create_session_factory(engine)
        self._max_query_limit = max_query_limit
        self._purge_batch_size = purge_batch_size
        self._owns_engine = owns_engine

    @classmethod
    def from_settings(cls, settings: Settings) -> EventStore:
        """Build a store with its own engine from ``settings``."""
        return cls(
            create_engine(settings),
            max_query_limit=settings.max_query_limit,
            purge_batch_size=settings.purge_batch_size,
            owns_engine=True,
        )

    async def __aenter__(self) -> EventStore:
        return self

    async def __aexit__(self, *args: Any) -> None:
        await self.dispose()

    async def create_schema(self) -> None:
        """Create the event table and its indexes if they do not exist."""
        async with self._engine.begin() as conn:
            await conn.run_sync(Base.metadata.create_all)

    async def dispose(self) -> None:
        """Release the engine's connections when the store created it."""
        if self._owns_engine:
            await self._engine.dispose()

    # ── Append ──────────────────────────────────────────────────────────── #

    async def append(
        self,
        event: EventRecord | Mapping[str, Any],
        *,
        timeout: float | None = None,
        cancel_event: asyncio.Event | None = None,
    ) -> None:
        """
        Persist a single event.

        Visible to every query that starts after this returns.

        Raises:
            ValidationError: ``event`` is not a valid record.
            DuplicateEventError: an event with the same id is already stored.
            StorageError: the database failed; the caller decides whether to retry.
            OperationCancelledError: deadline passed or ``cancel_event`` was set.
        """
        record = _coerce(event)
        await run_cancellable(
            "append",
            self._insert_one(record),
            timeout=timeout,
            cancel_event=cancel_event,
        )
        _log.debug(
            "event_appended",
            event_id=record.id,
            event_type=int(record.event_type),
            org_uuid=record.org_uuid,
        )

    async def append_batch(
        self,
        events: Iterable[EventRecord | Mapping[str, Any]],
        *,
        timeout: float | None = None,
        cancel_event: asyncio.Event | None = None,
    ) -> BatchResult:
        """
        Persist several events, reporting the outcome of each one.

        A bad record (malformed, duplicate id, or rejected by the database)
        fails only itself. The whole batch is first tried in one transaction;
        if the database rejects it, records are retried one by one so every
        valid record still lands.
        """
        result = await run_cancellable(
            "append_batch",
            self._insert_batch(list(events)),
            timeout=timeout,
            cancel_event=cancel_event,
        )
        _log.info(
            "event_batch_appended",
            succeeded=result.succeeded_count,
            failed=result.failed_count,
        )
        return result

    async def _insert_one(self, record: EventRecord) -> None:
        try:
            async with self._session_factory() as session:
                async with session.begin():
                    await session.execute(insert(Event), [_row_values(record)])
        except IntegrityError as exc:
            if await self._exists(record.id):
                _log.info("event_duplicate_rejected", event_id=record.id)
                raise DuplicateEventError(record.id) from exc
            raise self._storage_error("append", exc) from exc
        except SQLAlchemyError as exc:
            raise self._storage_error("append", exc) from exc

    async def _insert_batch(self, events: list[Any]) -> BatchResult:
        outcomes: dict[int, BatchItemResult] = {}
        ready: list[tuple[int, EventRecord]] = []
        seen: set[str] = set()

        for index, item in enumerate(events):
            try:
                record = _coerce(item)
            except ValidationError as exc:
                outcomes[index] = BatchItemResult(index, _raw_id(item), exc)
                continue
            if record.id in seen:
                outcomes[index] = BatchItemResult(index, record.id, DuplicateEventError(record.id))
                continue
            seen.add(record.id)
            ready.append((index, record))

        if ready:
            try:
                async with self._session_factory() as session:
                    async with session.begin():
                        await session.execute(
                            insert(Event), [_row_values(record) for _, record in ready]
                        )
            except SQLAlchemyError as exc:
                _log.info("event_batch_fallback", size=len(ready), error=str(exc))
                for index, record in ready:
                    try:
                        await self._insert_one(record)
                    except (DuplicateEventError, StorageError) as item_exc:
                        outcomes[index] = BatchItemResult(index, record.id, item_exc)
                    else:
                        outcomes[index] = BatchItemResult(index, record.id)
            else:
                for index, record in ready:
                    outcomes[index] = BatchItemResult(index, record.id)

        return BatchResult(items=tuple(outcomes[i] for i in range(len(events))))

    async def _exists(self, event_id: str) -> bool:
        try:
            async with self._session_factory() as session:
                found = await session.scalar(select(Event.id).where(Event.id == event_id))
        except SQLAlchemyError as exc:
            raise self._storage_error("append", exc) from exc
        return found is not None

    # ── Query ───────────────────────────────────────────────────────────── #

    def query_by_organization(
        self,
        org_uuid: str | uuid.UUID,
        start: datetime,
        end: datetime,
        limit: int,
        *,
        continuation_token: str | None = None,
        timeout: float | None = None,
        cancel_event: asyncio.Event | None = None,
    ) -> EventQuery:
        """Events of one organization with ``start <= event_date <= end``."""
        return self._range_query(
            Event.org_uuid == _query_uuid("org_uuid", org_uuid),
            start,
            end,
            limit,
            continuation_token=continuation_token,
            timeout=timeout,
            cancel_event=cancel_event,
        )

    def query_by_user(
        self,
        user_uuid: str | uuid.UUID,
        start: datetime,
        end: datetime,
        limit: int,
        *,
        continuation_token: str | None = None,
        timeout: float | None = None,
        cancel_event: asyncio.Event | None = None,
    ) -> EventQuery:
        """Events whose subject user is ``user_uuid``, in the same shape."""
        return self._range_query(
            Event.user_uuid == _query_uuid("user_uuid", user_uuid),
            start,
            end,
            limit,
            continuation_token=continuation_token,
            timeout=timeout,
            cancel_event=cancel_event,
        )

    def query_by_subject_entity(
        self,
        kind: SubjectKind | str,
        entity_uuid: str | uuid.UUID,
        start: datetime,
        end: datetime,
        limit: int,
        *,
        continuation_token: str | None = None,
        timeout: float | None = None,
        cancel_event: asyncio.Event | None = None,
    ) -> EventQuery:
        """Events referencing a cipher, collection, group or organization user."""
        try:
            column = SUBJECT_COLUMNS[SubjectKind(kind)]
        except ValueError as exc:
            raise ValidationError(
                f"Unknown subject kind {kind!r}",
                detail={"allowed": [k.value for k in SubjectKind]},
                code=ErrorCode.QUERY_INVALID,
            ) from exc
        return self._range_query(
            column == _query_uuid("entity_uuid", entity_uuid),
            start,
            end,
            limit,
            continuation_token=continuation_token,
            timeout=timeout,
            cancel_event=cancel_event,
        )

    def _range_query(
        self,
        predicate: Any,
        start: datetime,
        end: datetime,
        limit: int,
        *,
        continuation_token: str | None,
        timeout: float | None,
        cancel_event: asyncio.Event | None,
    ) -> EventQuery:
        start = _query_time("start", start)
        end = _query_time("end", end)
        if isinstance(limit, bool) or not isinstance(limit, int) or limit < 1:
            raise ValidationError(
                "limit must be a positive integer",
                detail={"limit": repr(limit)},
                code=ErrorCode.QUERY_INVALID,
            )
        if limit > self._max_query_limit:
            raise ValidationError(
                f"limit may not exceed {self._max_query_limit}",
                detail={"limit": limit, "max": self._max_query_limit},
                code=ErrorCode.QUERY_INVALID,
            )
        cursor = EventCursor.decode(continuation_token) if continuation_token else None

        statement = None
        if start <= end:
            statement = select(Event).where(
                predicate,
                Event.event_date >= start,
                Event.event_date <= end,
            )
        return EventQuery(
            self._session_factory,
            statement,
            limit,
            cursor=cursor,
            timeout=timeout,
            cancel_event=cancel_event,
        )

    # ── Purge ───────────────────────────────────────────────────────────── #

    async def purge(
        self,
        cutoff: datetime,
        *,
        timeout: float | None = None,
        cancel_event: asyncio.Event | None = None,
    ) -> int:
        """
        Delete every event with ``event_date < cutoff`` and return how many.

        An event dated exactly at ``cutoff`` survives. Deletion runs in
        committed chunks; on failure or cancellation the error carries the
        number of events already removed, and those stay removed.
        """
        cutoff = _query_time("cutoff", cutoff)
        progress = _PurgeProgress()
        try:
            await run_cancellable(
                "purge",
                self._purge_chunks(cutoff, progress),
                timeout=timeout,
                cancel_event=cancel_event,
            )
        except OperationCancelledError as exc:
            _log.warning("events_purge_cancelled", deleted=progress.deleted, reason=exc.reason)
            raise OperationCancelledError(
                "purge", exc.reason, deleted_count=progress.deleted
            ) from exc
        _log.info("events_purged", cutoff=cutoff.isoformat(), deleted=progress.deleted)
        return progress.deleted

    async def _purge_chunks(self, cutoff: datetime, progress: _PurgeProgress) -> None:
        while True:
            try:
                async with self._session_factory() as session:
                    async with session.begin():
                        ids = (
                            await session.scalars(
                                select(Event.id)
                                .where(Event.event_date < cutoff)
                                .order_by(Event.event_date, Event.id)
                                .limit(self._purge_batch_size)
                            )
                        ).all()
                        if not ids:
                            return
                        result = await session.execute(
                            delete(Event)
                            .where(Event.id.in_(ids), Event.event_date < cutoff)
                            .execution_options(synchronize_session=False)
                        )
                    # Chunk is committed; count it before closing the session awaits
                    progress.deleted += result.rowcount
            except SQLAlchemyError as exc:
                _log.error("events_purge_failed", deleted=progress.deleted, error=str(exc))
                raise PurgeError(progress.deleted, str(exc)) from exc

            if len(ids) < self._purge_batch_size:
                return

    def _storage_error(self, operation: str, exc: SQLAlchemyError) -> StorageError:
        _log.error("event_storage_failed", operation=operation, error=str(exc))
        return StorageError(
            f"Event store {operation} failed",
            detail={"operation": operation, "cause": str(exc)},
        )


def _raw_id(item: Any) -> str | None:
    if isinstance(item, Mapping):
        value = item.get("id")
        return str(value) if value is not None else None
    return None
