"""Swap Request Schemas — proposal/response bodies and the request view.

Invariants:
    - SwapProposal needs both event ids; accepts my_event_id/their_event_id,
      the legacy mySlotId/theirSlotId spelling and the stored column names
      requester_event_id/recipient_event_id
    - SwapResponseBody.accept is a strict bool (no "yes"/"1" coercion)
"""

from datetime import datetime
from uuid import UUID

from pydantic import AliasChoices, BaseModel, Field, StrictBool

from swapsync.schemas.event import EventResponse, OwnerSummary
from swapsync.services.swap_negotiation import SwapRequestDetail


class SwapProposal(BaseModel):
    my_event_id: UUID = Field(
        validation_alias=AliasChoices("my_event_id", "mySlotId", "requester_event_id"),
    )
    their_event_id: UUID = Field(
        validation_alias=AliasChoices("their_event_id", "theirSlotId", "recipient_event_id"),
    )


class SwapResponseBody(BaseModel):
    accept: StrictBool


class SwapRequestResponse(BaseModel):
    """Swap request with both events dereferenced (null if since deleted)."""
    id: UUID
    status: str
    requester_id: UUID
    recipient_id: UUID
    requester_event_id: UUID
    recipient_event_id: UUID
    created_at: datetime
    resolved_at: datetime | None = None
    requester: OwnerSummary | None = None
    recipient: OwnerSummary | None = None
    requester_event: EventResponse | None = None
    recipient_event: EventResponse | None = None

    @classmethod
    def from_detail(
        cls, detail: SwapRequestDetail, users: dict | None = None,
    ) -> "SwapRequestResponse":
        users = users or {}
        r = detail.request
        requester = users.get(r.requester_id)
        recipient = users.get(r.recipient_id)
        return cls(
            id=r.id,
            status=r.status.value,
            requester_id=r.requester_id,
            recipient_id=r.recipient_id,
            requester_event_id=r.requester_event_id,
            recipient_event_id=r.recipient_event_id,
            created_at=r.created_at,
            resolved_at=r.resolved_at,
            requester=OwnerSummary(**requester) if requester else None,
            recipient=OwnerSummary(**recipient) if recipient else None,
            requester_event=(
                EventResponse.from_record(detail.requester_event)
                if detail.requester_event else None
            ),
            recipient_event=(
                EventResponse.from_record(detail.recipient_event)
                if detail.recipient_event else None
            ),
        )
