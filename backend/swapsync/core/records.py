"""Domain Records — immutable snapshots of persisted documents and planned writes.

Invariants:
    - Records are snapshots: holding one never implies it is still current
    - Cross-references are identifiers only (no nested records, no live graphs)
    - EventRecord.version increments on every persisted write (CAS token)
    - AtomicPairUpdate is all-or-nothing: every guard holds or nothing is written

Design Decisions:
    - frozen dataclasses: a stale snapshot cannot be mutated into looking fresh
    - EventWrite.changes as a plain dict restricted to WRITABLE_EVENT_FIELDS:
      the store validates the keys so a plan can't smuggle in a version bump
"""

from dataclasses import dataclass, field
from datetime import datetime
from typing import Any

from swapsync.core.domain_types import (
    EventId, EventStatus, SwapRequestId, SwapStatus, UserId,
)


WRITABLE_EVENT_FIELDS = frozenset({
    "owner_id", "title", "start_time", "end_time", "status",
})


@dataclass(frozen=True)
class EventRecord:
    """Snapshot of an event document."""
    id: EventId
    owner_id: UserId
    title: str
    start_time: datetime
    end_time: datetime
    status: EventStatus = EventStatus.BUSY
    version: int = 1
    created_at: datetime | None = None
    updated_at: datetime | None = None

    @property
    def is_locked(self) -> bool:
        return self.status is EventStatus.SWAP_PENDING


@dataclass(frozen=True)
class SwapRequestRecord:
    """Snapshot of a swap request document (audit record, never deleted)."""
    id: SwapRequestId
    requester_id: UserId
    requester_event_id: EventId
    recipient_id: UserId
    recipient_event_id: EventId
    created_at: datetime
    status: SwapStatus = SwapStatus.PENDING
    resolved_at: datetime | None = None

    @property
    def event_ids(self) -> tuple[EventId, EventId]:
        return (self.requester_event_id, self.recipient_event_id)

    def references(self, event_id: EventId) -> bool:
        return event_id in self.event_ids


@dataclass(frozen=True)
class EventWrite:
    """A single guarded event write: applies only if version still matches."""
    event_id: EventId
    expected_version: int
    changes: dict[str, Any] = field(default_factory=dict)

    def __post_init__(self):
        unknown = set(self.changes) - WRITABLE_EVENT_FIELDS
        if unknown:
            raise ValueError(f"Unwritable event fields: {sorted(unknown)}")


@dataclass(frozen=True)
class RequestTransition:
    """Guarded swap request status change: applies only from expected_status."""
    request_id: SwapRequestId
    expected_status: SwapStatus
    new_status: SwapStatus
    resolved_at: datetime | None = None


@dataclass(frozen=True)
class AtomicPairUpdate:
    """Two event writes plus an optional request insert/transition, applied as one unit."""
    first: EventWrite
    second: EventWrite
    request_insert: SwapRequestRecord | None = None
    request_transition: RequestTransition | None = None

    def __post_init__(self):
        if self.first.event_id == self.second.event_id:
            raise ValueError("AtomicPairUpdate requires two distinct events")

    @property
    def writes(self) -> tuple[EventWrite, EventWrite]:
        return (self.first, self.second)
