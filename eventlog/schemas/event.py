"""
Event record model and its client wire shapes.

An ``EventRecord`` is validated once, at construction, and is immutable from
then on. Every reference field is a soft reference: a plain identifier with no
ownership of, or cascade from, the entity it names.

Timestamps are normalised to naive UTC so that what is written is exactly what
is read back, whatever the backing database does with time zones.
"""

from __future__ import annotations

import uuid
from collections.abc import Mapping
from datetime import UTC, datetime
from typing import Any

from pydantic import BaseModel, ConfigDict, Field, field_validator
from pydantic import ValidationError as PydanticValidationError

from eventlog.core.errors import ErrorCode, ValidationError
from eventlog.schemas.event_types import EventType

REFERENCE_FIELDS: tuple[str, ...] = (
    "user_uuid",
    "org_uuid",
    "cipher_uuid",
    "collection_uuid",
    "group_uuid",
    "org_user_uuid",
    "act_user_uuid",
)

WIRE_DATE_FORMAT = "%Y-%m-%dT%H:%M:%S.%fZ"


def to_utc_naive(value: datetime) -> datetime:
    """Convert an aware datetime to naive UTC; naive values are taken as UTC."""
    if value.tzinfo is None:
        return value
    return value.astimezone(UTC).replace(tzinfo=None)


def format_date(value: datetime) -> str:
    return to_utc_naive(value).strftime(WIRE_DATE_FORMAT)


def _canonical_uuid(value: Any) -> str:
    if isinstance(value, uuid.UUID):
        return str(value)
    if not isinstance(value, str):
        raise ValueError("must be a UUID string")
    try:
        return str(uuid.UUID(value))
    except ValueError as exc:
        raise ValueError("must be a 36-character UUID string") from exc


def generate_event_id() -> str:
    return str(uuid.uuid4())


class EventRecord(BaseModel):
    """Single immutable audit event."""

    model_config = ConfigDict(frozen=True, extra="forbid", from_attributes=True)

    id: str = Field(default_factory=generate_event_id)
    event_type: EventType
    user_uuid: str | None = None
    org_uuid: str | None = None
    cipher_uuid: str | None = None
    collection_uuid: str | None = None
    group_uuid: str | None = None
    org_user_uuid: str | None = None
    act_user_uuid: str | None = None
    device_type: int | None = Field(default=None, ge=0)
    ip_address: str | None = None
    event_date: datetime

    @field_validator("id", *REFERENCE_FIELDS, mode="before")
    @classmethod
    def _uuid_text(cls, v: Any) -> Any:
        if v is None:
            return v
        return _canonical_uuid(v)

    @field_validator("event_date")
    @classmethod
    def _naive_utc(cls, v: datetime) -> datetime:
        return to_utc_naive(v)

    def to_response(self) -> EventResponse:
        return EventResponse.from_record(self)


def new_event(
    event_type: int | EventType | None,
    *,
    event_date: datetime | None,
    id: str | uuid.UUID | None = None,  # noqa: A002
    user_uuid: str | uuid.UUID | None = None,
    org_uuid: str | uuid.UUID | None = None,
    cipher_uuid: str | uuid.UUID | None = None,
    collection_uuid: str | uuid.UUID | None = None,
    group_uuid: str | uuid.UUID | None = None,
    org_user_uuid: str | uuid.UUID | None = None,
    act_user_uuid: str | uuid.UUID | None = None,
    device_type: int | None = None,
    ip_address: str | None = None,
) -> EventRecord:
    """
    Construct a validated event, generating ``id`` when none is given.

    Raises:
        ValidationError: unknown ``event_type``, missing ``event_date``, or a
            malformed identifier / device code.
    """
    fields: dict[str, Any] = {
        "event_type": event_type,
        "event_date": event_date,
        "user_uuid": user_uuid,
        "org_uuid": org_uuid,
        "cipher_uuid": cipher_uuid,
        "collection_uuid": collection_uuid,
        "group_uuid": group_uuid,
        "org_user_uuid": org_user_uuid,
        "act_user_uuid": act_user_uuid,
        "device_type": device_type,
        "ip_address": ip_address,
    }
    if id is not None:
        fields["id"] = id
    return parse_event(fields)


def parse_event(data: Mapping[str, Any]) -> EventRecord:
    """Validate a mapping of event fields into an ``EventRecord``."""
    event_type = data.get("event_type")
    if isinstance(event_type, bool) or not isinstance(event_type, int):
        raise ValidationError(
            "event_type must be an integer event code",
            detail={"event_type": repr(event_type)},
            code=ErrorCode.EVENT_TYPE_UNKNOWN,
        )
    if not EventType.is_known(event_type):
        raise ValidationError(
            f"Unknown event type {event_type}",
            detail={"event_type": event_type},
            code=ErrorCode.EVENT_TYPE_UNKNOWN,
        )
    if data.get("event_date") is None:
        raise ValidationError(
            "event_date is required",
            code=ErrorCode.EVENT_DATE_MISSING,
        )

    payload = dict(data)
    if payload.get("id") is None:
        payload.pop("id", None)

    try:
        return EventRecord.model_validate(payload)
    except PydanticValidationError as exc:
        raise ValidationError(
            "Invalid event",
            detail={
                "errors": [
                    {"field": ".".join(str(p) for p in err["loc"]), "message": err["msg"]}
                    for err in exc.errors()
                ]
            },
        ) from exc


# ── Client wire representation ────────────────────────────────────────── #


class EventResponse(BaseModel):
    """Event as returned to clients (PascalCase keys, ISO date with Z suffix)."""

    model_config = ConfigDict(populate_by_name=True)

    event_type: int = Field(serialization_alias="Type")
    user_uuid: str | None = Field(default=None, serialization_alias="UserId")
    org_uuid: str | None = Field(default=None, serialization_alias="OrganizationId")
    cipher_uuid: str | None = Field(default=None, serialization_alias="CipherId")
    collection_uuid: str | None = Field(default=None, serialization_alias="CollectionId")
    group_uuid: str | None = Field(default=None, serialization_alias="GroupId")
    org_user_uuid: str | None = Field(default=None, serialization_alias="OrganizationUserId")
    act_user_uuid: str | None = Field(default=None, serialization_alias="ActingUserId")
    date: str = Field(serialization_alias="Date")
    device_type: int | None = Field(default=None, serialization_alias="DeviceType")
    ip_address: str | None = Field(default=None, serialization_alias="IpAddress")

    @classmethod
    def from_record(cls, record: EventRecord) -> EventResponse:
        return cls(
            event_type=int(record.event_type),
            user_uuid=record.user_uuid,
            org_uuid=record.org_uuid,
            cipher_uuid=record.cipher_uuid,
            collection_uuid=record.collection_uuid,
            group_uuid=record.group_uuid,
            org_user_uuid=record.org_user_uuid,
            act_user_uuid=record.act_user_uuid,
            date=format_date(record.event_date),
            device_type=record.device_type,
            ip_address=record.ip_address,
        )

    def to_json(self) -> dict[str, Any]:
        return self.model_dump(by_alias=True)


class EventListResponse(BaseModel):
    model_config = ConfigDict(populate_by_name=True)

    data: list[EventResponse] = Field(default_factory=list, serialization_alias="Data")
    object: str = Field(default="list", serialization_alias="Object")
    continuation_token: str | None = Field(default=None, serialization_alias="ContinuationToken")

    @classmethod
    def from_records(
        cls, records: list[EventRecord], continuation_token: str | None = None
    ) -> EventListResponse:
        return cls(
            data=[EventResponse.from_record(r) for r in records],
            continuation_token=continuation_token,
        )

    def to_json(self) -> dict[str, Any]:
        return self.model_dump(by_alias=True)


class CollectedEvent(BaseModel):
    """One client-submitted event from a collect upload."""

    model_config = ConfigDict(populate_by_name=True, extra="ignore")

    event_type: int = Field(alias="Type")
    date: datetime = Field(alias="Date")
    cipher_id: str | None = Field(default=None, alias="CipherId")
