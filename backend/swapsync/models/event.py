"""Event ORM — persists a calendar event and its exchangeability status.

Invariants:
    - owner_id FK to users; end_time > start_time (checked in core, CHECK in DB)
    - status in {BUSY, SWAPPABLE, SWAP_PENDING}, default BUSY
    - version starts at 1 and increments on every write (compare-and-swap token)

Design Decisions:
    - Plain version column over SQLAlchemy version_id_col: guarded UPDATEs are
      issued explicitly by the store so one transaction can guard two rows
    - Indexes mirror the two hot queries: my calendar, marketplace
"""

import uuid
from datetime import datetime, timezone

from sqlalchemy import (
    CheckConstraint, DateTime, ForeignKey, Index, Integer, String, Uuid,
)
from sqlalchemy.orm import Mapped, mapped_column

from swapsync.db.base import Base


class Event(Base):
    """Event entity, owned by one user at a time."""
    __tablename__ = "events"
    __table_args__ = (
        CheckConstraint("end_time > start_time", name="ck_events_time_range"),
        Index("ix_events_owner_start", "owner_id", "start_time"),
        Index("ix_events_status_start", "status", "start_time"),
    )

    id: Mapped[uuid.UUID] = mapped_column(
        Uuid, primary_key=True, default=uuid.uuid4,
    )
    owner_id: Mapped[uuid.UUID] = mapped_column(
        Uuid, ForeignKey("users.id"), nullable=False,
    )
    title: Mapped[str] = mapped_column(String(200), nullable=False)
    start_time: Mapped[datetime] = mapped_column(
        DateTime(timezone=True), nullable=False,
    )
    end_time: Mapped[datetime] = mapped_column(
        DateTime(timezone=True), nullable=False,
    )
    status: Mapped[str] = mapped_column(
        String(20), nullable=False, default="BUSY",
    )
    version: Mapped[int] = mapped_column(
        Integer, nullable=False, default=1,
    )
    created_at: Mapped[datetime] = mapped_column(
        DateTime(timezone=True),
        nullable=False,
        default=lambda: datetime.now(timezone.utc),
    )
    updated_at: Mapped[datetime] = mapped_column(
        DateTime(timezone=True),
        nullable=False,
        default=lambda: datetime.now(timezone.utc),
    )
