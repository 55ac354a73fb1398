"""SwapRequest ORM — persists a proposed exchange between two events.

Invariants:
    - requester_event_id / recipient_event_id reference events by id only
    - status transitions: PENDING -> ACCEPTED | REJECTED, exactly once
    - Rows are never deleted (audit trail)

Design Decisions:
    - No FK on the event columns: an event may be deleted after a swap is
      resolved and the request must survive it
    - recipient_id denormalized: incoming listing needs no join
"""

import uuid
from datetime import datetime, timezone

from sqlalchemy import DateTime, ForeignKey, Index, String, Uuid
from sqlalchemy.orm import Mapped, mapped_column

from swapsync.db.base import Base


class SwapRequest(Base):
    """Swap request entity: audit record of one negotiation."""
    __tablename__ = "swap_requests"
    __table_args__ = (
        Index("ix_swap_requests_requester_created", "requester_id", "created_at"),
        Index("ix_swap_requests_recipient_created", "recipient_id", "created_at"),
        Index("ix_swap_requests_status", "status"),
    )

    id: Mapped[uuid.UUID] = mapped_column(
        Uuid, primary_key=True, default=uuid.uuid4,
    )
    requester_id: Mapped[uuid.UUID] = mapped_column(
        Uuid, ForeignKey("users.id"), nullable=False,
    )
    requester_event_id: Mapped[uuid.UUID] = mapped_column(Uuid, nullable=False)
    recipient_id: Mapped[uuid.UUID] = mapped_column(
        Uuid, ForeignKey("users.id"), nullable=False,
    )
    recipient_event_id: Mapped[uuid.UUID] = mapped_column(Uuid, nullable=False)
    status: Mapped[str] = mapped_column(
        String(20), nullable=False, default="PENDING",
    )
    created_at: Mapped[datetime] = mapped_column(
        DateTime(timezone=True),
        nullable=False,
        default=lambda: datetime.now(timezone.utc),
    )
    resolved_at: Mapped[datetime | None] = mapped_column(
        DateTime(timezone=True), nullable=True,
    )
