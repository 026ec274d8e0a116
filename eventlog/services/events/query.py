"""
Lazy, restartable event queries.

An ``EventQuery`` holds a fully built SELECT but touches the database only
when it is fetched or iterated. Each run opens its own short read
transaction, so re-iterating re-executes the query against current data.
Results are materialised per run (at most ``limit`` rows): a cancelled run
discards everything it read and nothing partial is ever yielded.

Time bounds are inclusive at this boundary: ``start <= event_date <= end``.
Rows come back ordered by ``(event_date, id)`` ascending.
"""

from __future__ import annotations

import asyncio
import base64
import binascii
from collections.abc import AsyncIterator
from dataclasses import dataclass
from datetime import datetime
from enum import StrEnum
from typing import Any

import structlog
from pydantic import ValidationError as PydanticValidationError
from sqlalchemy import Select, and_, or_, select
from sqlalchemy.exc import SQLAlchemyError
from sqlalchemy.ext.asyncio import AsyncSession, async_sessionmaker

from eventlog.core.cancellation import run_cancellable
from eventlog.core.errors import ErrorCode, StorageError, ValidationError
from eventlog.db.models.event import Event
from eventlog.schemas.event import EventListResponse, EventRecord

_log = structlog.get_logger(__name__)

_CURSOR_SEPARATOR = "|"


class SubjectKind(StrEnum):
    """Subject reference columns reachable through query_by_subject_entity."""

    CIPHER = "cipher"
    COLLECTION = "collection"
    GROUP = "group"
    ORG_USER = "org_user"


SUBJECT_COLUMNS = {
    SubjectKind.CIPHER: Event.cipher_uuid,
    SubjectKind.COLLECTION: Event.collection_uuid,
    SubjectKind.GROUP: Event.group_uuid,
    SubjectKind.ORG_USER: Event.org_user_uuid,
}


@dataclass(frozen=True)
class EventCursor:
    """Position just after the last row a page returned."""

    event_date: datetime
    event_id: str

    def encode(self) -> str:
        raw = f"{self.event_date.isoformat()}{_CURSOR_SEPARATOR}{self.event_id}"
        return base64.urlsafe_b64encode(raw.encode("utf-8")).decode("ascii")

    @classmethod
    def decode(cls, token: str) -> EventCursor:
        try:
            raw = base64.urlsafe_b64decode(token.encode("ascii")).decode("utf-8")
            date_part, event_id = raw.split(_CURSOR_SEPARATOR, 1)
            return cls(event_date=datetime.fromisoformat(date_part), event_id=event_id)
        except (binascii.Error, UnicodeError, ValueError) as exc:
            raise ValidationError(
                "Malformed continuation token",
                detail={"continuation_token": token},
                code=ErrorCode.QUERY_INVALID,
            ) from exc

    @classmethod
    def after(cls, record: EventRecord) -> EventCursor:
        return cls(event_date=record.event_date, event_id=record.id)


@dataclass(frozen=True)
class EventPage:
    events: list[EventRecord]
    continuation_token: str | None

    def to_response(self) -> EventListResponse:
        return EventListResponse.from_records(self.events, self.continuation_token)


class EventQuery:
    """A deferred, re-runnable ordered range scan over the event table."""

    def __init__(
        self,
        session_factory: async_sessionmaker[AsyncSession],
        statement: Select[Any] | None,
        limit: int,
        *,
        cursor: EventCursor | None = None,
        timeout: float | None = None,
        cancel_event: asyncio.Event | None = None,
    ) -> None:
        self._session_factory = session_factory
        # None marks an empty range (start after end); nothing is executed
        self._statement = statement
        self.limit = limit
        self.cursor = cursor
        self._timeout = timeout
        self._cancel_event = cancel_event

    def _bounded_statement(self, stmt: Select[Any]) -> Select[Any]:
        if self.cursor is not None:
            stmt = stmt.where(
                or_(
                    Event.event_date > self.cursor.event_date,
                    and_(
                        Event.event_date == self.cursor.event_date,
                        Event.id > self.cursor.event_id,
                    ),
                )
            )
        return stmt.order_by(Event.event_date.asc(), Event.id.asc()).limit(self.limit)

    async def fetch(self) -> list[EventRecord]:
        """Run the query and return every matching event, in order."""
        if self._statement is None:
            return []
        return await run_cancellable(
            "query",
            self._execute(self._bounded_statement(self._statement)),
            timeout=self._timeout,
            cancel_event=self._cancel_event,
        )

    async def fetch_page(self) -> EventPage:
        """Run the query and return a page plus the token for the next one."""
        events = await self.fetch()
        token = None
        if events and len(events) == self.limit:
            token = EventCursor.after(events[-1]).encode()
        return EventPage(events=events, continuation_token=token)

    async def _execute(self, stmt: Select[Any]) -> list[EventRecord]:
        try:
            async with self._session_factory() as session:
                async with session.begin():
                    rows = (await session.scalars(stmt)).all()
        except SQLAlchemyError as exc:
            _log.error("event_query_failed", error=str(exc))
            raise StorageError("Event query failed", detail={"cause": str(exc)}) from exc
        return [_to_record(row) for row in rows]

    async def __aiter__(self) -> AsyncIterator[EventRecord]:
        for event in await self.fetch():
            yield event


def _to_record(row: Event) -> EventRecord:
    try:
        return EventRecord.model_validate(row)
    except PydanticValidationError as exc:
        _log.error("stored_event_unreadable", event_id=row.id, event_type=row.event_type)
        raise StorageError(
            "Stored event could not be decoded",
            detail={"id": row.id, "event_type": row.event_type},
        ) from exc
