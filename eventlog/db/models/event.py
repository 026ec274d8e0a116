"""
Persisted audit event row.

The column layout is read directly by external tooling and must not change:
uuids are 36-character strings, ``event_date`` is a naive UTC DATETIME.
None of the uuid columns is a foreign key; an event outlives whatever it
refers to.
"""

from __future__ import annotations

from datetime import datetime

from sqlalchemy import DateTime, Index, Integer, String, Text
from sqlalchemy.orm import Mapped, mapped_column

from eventlog.db.base import Base


class Event(Base):
    """Single immutable audit event row."""

    __tablename__ = "event"
    __table_args__ = (
        Index("ix_event_org_date", "org_uuid", "event_date", "id"),
        Index("ix_event_user_date", "user_uuid", "event_date", "id"),
        Index("ix_event_cipher_date", "cipher_uuid", "event_date"),
        Index("ix_event_event_date", "event_date"),
    )

    id: Mapped[str] = mapped_column(String(36), primary_key=True)
    event_type: Mapped[int] = mapped_column(Integer, nullable=False)
    user_uuid: Mapped[str | None] = mapped_column(String(36), nullable=True)
    org_uuid: Mapped[str | None] = mapped_column(String(36), nullable=True)
    cipher_uuid: Mapped[str | None] = mapped_column(String(36), nullable=True)
    collection_uuid: Mapped[str | None] = mapped_column(String(36), nullable=True)
    group_uuid: Mapped[str | None] = mapped_column(String(36), nullable=True)
    org_user_uuid: Mapped[str | None] = mapped_column(String(36), nullable=True)
    act_user_uuid: Mapped[str | None] = mapped_column(String(36), nullable=True)
    device_type: Mapped[int | None] = mapped_column(Integer, nullable=True)
    ip_address: Mapped[str | None] = mapped_column(Text, nullable=True)
    event_date: Mapped[datetime] = mapped_column(DateTime(timezone=False), nullable=False)

    def __repr__(self) -> str:
        return f"<Event {self.event_type} {self.id} @ {self.event_date.isoformat()}>"
