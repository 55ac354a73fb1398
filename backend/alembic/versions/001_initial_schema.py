"""Initial schema — users, events, swap_requests.

Revision ID: 001_initial
Revises: None
Create Date: 2026-10-17

"""
from typing import Sequence, Union

from alembic import op
import sqlalchemy as sa

revision: str = "001_initial"
down_revision: Union[str, None] = None
branch_labels: Union[str, Sequence[str], None] = None
depends_on: Union[str, Sequence[str], None] = None


def upgrade() -> None:
    op.create_table(
        "users",
        sa.Column("id", sa.Uuid, primary_key=True),
        sa.Column("name", sa.String(120), nullable=False),
        sa.Column("email", sa.String(320), nullable=False, unique=True),
        sa.Column("created_at", sa.DateTime(timezone=True), nullable=False, server_default=sa.func.now()),
    )

    op.create_table(
        "events",
        sa.Column("id", sa.Uuid, primary_key=True),
        sa.Column("owner_id", sa.Uuid, sa.ForeignKey("users.id"), nullable=False),
        sa.Column("title", sa.String(200), nullable=False),
        sa.Column("start_time", sa.DateTime(timezone=True), nullable=False),
        sa.Column("end_time", sa.DateTime(timezone=True), nullable=False),
        sa.Column("status", sa.String(20), nullable=False, server_default="BUSY"),
        sa.Column("version", sa.Integer, nullable=False, server_default="1"),
        sa.Column("created_at", sa.DateTime(timezone=True), nullable=False, server_default=sa.func.now()),
        sa.Column("updated_at", sa.DateTime(timezone=True), nullable=False, server_default=sa.func.now()),
        sa.CheckConstraint("end_time > start_time", name="ck_events_time_range"),
    )
    op.create_index("ix_events_owner_start", "events", ["owner_id", "start_time"])
    op.create_index("ix_events_status_start", "events", ["status", "start_time"])

    op.create_table(
        "swap_requests",
        sa.Column("id", sa.Uuid, primary_key=True),
        sa.Column("requester_id", sa.Uuid, sa.ForeignKey("users.id"), nullable=False),
        sa.Column("requester_event_id", sa.Uuid, nullable=False),
        sa.Column("recipient_id", sa.Uuid, sa.ForeignKey("users.id"), nullable=False),
        sa.Column("recipient_event_id", sa.Uuid, nullable=False),
        sa.Column("status", sa.String(20), nullable=False, server_default="PENDING"),
        sa.Column("created_at", sa.DateTime(timezone=True), nullable=False, server_default=sa.func.now()),
        sa.Column("resolved_at", sa.DateTime(timezone=True), nullable=True),
    )
    op.create_index(
        "ix_swap_requests_requester_created", "swap_requests", ["requester_id", "created_at"],
    )
    op.create_index(
        "ix_swap_requests_recipient_created", "swap_requests", ["recipient_id", "created_at"],
    )
    op.create_index("ix_swap_requests_status", "swap_requests", ["status"])


def downgrade() -> None:
    op.drop_table("swap_requests")
    op.drop_table("events")
    op.drop_table("users")
