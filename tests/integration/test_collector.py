"""Integration tests for eventlog.services.events.collector."""
import uuid
from datetime import datetime, timedelta

import pytest

from eventlog.core.errors import ValidationError
from eventlog.schemas.event_types import DeviceType, EventType
from eventlog.services.events.collector import CipherOwnership, collect_client_events
from eventlog.services.events.query import SubjectKind


pytestmark = pytest.mark.asyncio

UPLOADER = str(uuid.uuid4())


async def test_collects_cipher_events_and_skips_others(store, t0):
    cipher = str(uuid.uuid4())
    items = [
        {"Type": 1107, "Date": "2024-03-01T12:00:00Z", "CipherId": cipher},
        {"Type": 1000, "Date": "2024-03-01T12:00:01Z"},
        {"Type": 1111, "Date": "2024-03-01T12:00:02Z", "CipherId": cipher},
    ]

    result = await collect_client_events(
        store,
        items,
        user_uuid=UPLOADER,
        device_type=DeviceType.CHROME_EXTENSION,
        ip_address="192.0.2.7",
    )

    assert result.succeeded_count == 2
    assert [item.index for item in result.items] == [0, 2]

    found = await store.query_by_subject_entity(
        SubjectKind.CIPHER, cipher, t0, t0 + timedelta(minutes=1), 10
    ).fetch()
    assert [e.event_type for e in found] == [
        EventType.CIPHER_CLIENT_VIEWED,
        EventType.CIPHER_CLIENT_COPIED_PASSWORD,
    ]
    assert all(e.act_user_uuid == UPLOADER for e in found)
    assert all(e.device_type == 2 and e.ip_address == "192.0.2.7" for e in found)
    assert found[0].event_date == datetime(2024, 3, 1, 12, 0, 0)


async def test_resolver_fills_owner_references(store, org_a, t0):
    cipher = str(uuid.uuid4())
    owner = str(uuid.uuid4())

    async def resolve(cipher_id: str) -> CipherOwnership | None:
        return CipherOwnership(cipher_uuid=cipher_id, org_uuid=org_a, user_uuid=owner)

    await collect_client_events(
        store,
        [{"Type": 1114, "Date": t0.isoformat(), "CipherId": cipher}],
        user_uuid=UPLOADER,
        device_type=None,
        ip_address=None,
        resolve_cipher=resolve,
    )

    found = await store.query_by_organization(org_a, t0, t0, 10).fetch()
    assert len(found) == 1
    assert found[0].user_uuid == owner
    assert found[0].cipher_uuid == cipher
    assert found[0].act_user_uuid == UPLOADER


async def test_invalid_items_are_reported_not_fatal(store, t0):
    cipher = str(uuid.uuid4())
    items = [
        {"Type": 4040, "Date": t0.isoformat(), "CipherId": cipher},
        {"Date": t0.isoformat(), "CipherId": cipher},
        {"Type": 1107, "Date": t0.isoformat(), "CipherId": cipher},
    ]

    result = await collect_client_events(
        store, items, user_uuid=UPLOADER, device_type=None, ip_address=None
    )

    assert [item.index for item in result.items] == [0, 1, 2]
    assert isinstance(result.items[0].error, ValidationError)
    assert isinstance(result.items[1].error, ValidationError)
    assert result.items[2].ok


async def test_nothing_to_collect(store):
    items = [{"Type": 1000, "Date": "2024-01-01T00:00:00"}]
    result = await collect_client_events(
        store, items, user_uuid=UPLOADER, device_type=None, ip_address=None
    )
    assert result.items == ()
