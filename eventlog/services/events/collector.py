"""
Client event collection.

Clients upload batches of ``{"Type", "Date", "CipherId"}`` items describing
things that happened locally (an item viewed, a password copied, ...). Only
cipher events are recorded; items without a ``CipherId`` are skipped. The
uploading user becomes the acting user of every event.
"""

from __future__ import annotations

from collections.abc import Awaitable, Callable, Iterable, Mapping
from dataclasses import dataclass
from typing import Any

import structlog
from pydantic import ValidationError as PydanticValidationError

from eventlog.core.errors import ValidationError
from eventlog.schemas.event import CollectedEvent, EventRecord, new_event
from eventlog.services.events.store import BatchItemResult, BatchResult, EventStore

_log = structlog.get_logger(__name__)


@dataclass(frozen=True)
class CipherOwnership:
    """Owner references of a cipher, as known to the caller."""

    cipher_uuid: str
    org_uuid: str | None = None
    user_uuid: str | None = None


CipherResolver = Callable[[str], Awaitable[CipherOwnership | None]]


async def build_cipher_event(
    item: CollectedEvent,
    *,
    acting_user_uuid: str,
    device_type: int | None,
    ip_address: str | None,
    resolve_cipher: CipherResolver | None = None,
) -> EventRecord:
    """Turn one collected item into a cipher event, filling owner references."""
    if item.cipher_id is None:
        raise ValidationError("Collected event has no CipherId")
    owner = await resolve_cipher(item.cipher_id) if resolve_cipher is not None else None
    if owner is None:
        owner = CipherOwnership(cipher_uuid=item.cipher_id)

    return new_event(
        item.event_type,
        event_date=item.date,
        cipher_uuid=owner.cipher_uuid,
        org_uuid=owner.org_uuid,
        user_uuid=owner.user_uuid,
        act_user_uuid=acting_user_uuid,
        device_type=device_type,
        ip_address=ip_address,
    )


async def collect_client_events(
    store: EventStore,
    items: Iterable[Mapping[str, Any] | CollectedEvent],
    *,
    user_uuid: str,
    device_type: int | None,
    ip_address: str | None,
    resolve_cipher: CipherResolver | None = None,
) -> BatchResult:
    """
    Record a client's uploaded events.

    Malformed items are reported in the result alongside storage outcomes;
    they never prevent the rest of the upload from being stored.

    Items without a ``CipherId`` are skipped and get no entry in the result,
    so ``BatchItemResult.index`` values can have gaps. Each index refers to
    the item's position in ``items``.
    """
    records: list[EventRecord] = []
    rejected: list[tuple[int, ValidationError]] = []
    positions: list[int] = []

    for index, raw in enumerate(items):
        try:
            item = raw if isinstance(raw, CollectedEvent) else CollectedEvent.model_validate(raw)
        except PydanticValidationError as exc:
            errors = exc.errors(include_url=False, include_context=False)
            rejected.append((index, ValidationError("Invalid collected event", {"errors": errors})))
            continue
        if item.cipher_id is None:
            continue
        try:
            record = await build_cipher_event(
                item,
                acting_user_uuid=user_uuid,
                device_type=device_type,
                ip_address=ip_address,
                resolve_cipher=resolve_cipher,
            )
        except ValidationError as exc:
            rejected.append((index, exc))
            continue
        records.append(record)
        positions.append(index)

    stored = await store.append_batch(records) if records else BatchResult(items=())

    merged = [
        BatchItemResult(positions[r.index], r.event_id, r.error) for r in stored.items
    ]
    merged.extend(BatchItemResult(index, None, exc) for index, exc in rejected)
    merged.sort(key=lambda r: r.index)

    _log.info(
        "client_events_collected",
        user_uuid=user_uuid,
        stored=stored.succeeded_count,
        rejected=len(rejected) + stored.failed_count,
    )
    return BatchResult(items=tuple(merged))
