"""Create the event table.

Revision ID: 0001_create_event_table
Revises:
Create Date: 2026-10-18
"""

from __future__ import annotations

import sqlalchemy as sa
from alembic import op

revision: str = "0001_create_event_table"
down_revision: str | None = None
branch_labels: str | None = None
depends_on: str | None = None


def upgrade() -> None:
    op.create_table(
        "event",
        sa.Column("id", sa.String(36), nullable=False),
        sa.Column("event_type", sa.Integer, nullable=False),
        sa.Column("user_uuid", sa.String(36), nullable=True),
        sa.Column("org_uuid", sa.String(36), nullable=True),
        sa.Column("cipher_uuid", sa.String(36), nullable=True),
        sa.Column("collection_uuid", sa.String(36), nullable=True),
        sa.Column("group_uuid", sa.String(36), nullable=True),
        sa.Column("org_user_uuid", sa.String(36), nullable=True),
        sa.Column("act_user_uuid", sa.String(36), nullable=True),
        sa.Column("device_type", sa.Integer, nullable=True),
        sa.Column("ip_address", sa.Text, nullable=True),
        sa.Column("event_date", sa.DateTime(timezone=False), nullable=False),
        sa.PrimaryKeyConstraint("id", name="pk_event"),
    )
    op.create_index("ix_event_org_date", "event", ["org_uuid", "event_date", "id"])
    op.create_index("ix_event_user_date", "event", ["user_uuid", "event_date", "id"])
    op.create_index("ix_event_cipher_date", "event", ["cipher_uuid", "event_date"])
    op.create_index("ix_event_event_date", "event", ["event_date"])


def downgrade() -> None:
    op.drop_index("ix_event_event_date", table_name="event")
    op.drop_index("ix_event_cipher_date", table_name="event")
    op.drop_index("ix_event_user_date", table_name="event")
    op.drop_index("ix_event_org_date", table_name="event")
    op.drop_table("event")
