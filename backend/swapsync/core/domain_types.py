"""Domain Types — identity types and status enums shared across the codebase.

Invariants:
    - UserId, EventId, SwapRequestId wrap UUIDs; never use bare UUID in domain logic
    - All valid states encoded as Enums, no raw string matching
    - SWAP_PENDING is the only EventStatus an owner can never request directly

Design Decisions:
    - NewType over dataclass wrappers: zero runtime cost, full type-checker support
    - str Enums: serialize to JSON without custom encoders, stored as-is in DB
"""

from enum import Enum
from typing import NewType
from uuid import UUID


# ─── Identity Types ──────────────────────────────────────────────

UserId = NewType("UserId", UUID)
EventId = NewType("EventId", UUID)
SwapRequestId = NewType("SwapRequestId", UUID)


# ─── Enums ───────────────────────────────────────────────────────

class EventStatus(str, Enum):
    """Exchangeability of an event; maps to DB `events.status`."""
    BUSY = "BUSY"
    SWAPPABLE = "SWAPPABLE"
    SWAP_PENDING = "SWAP_PENDING"


class SwapStatus(str, Enum):
    """Swap request lifecycle; maps to DB `swap_requests.status`."""
    PENDING = "PENDING"
    ACCEPTED = "ACCEPTED"
    REJECTED = "REJECTED"

    @property
    def is_terminal(self) -> bool:
        return self is not SwapStatus.PENDING


# Statuses an owner may set through set_exchangeable / create / edit
OWNER_SETTABLE_STATUSES = frozenset({EventStatus.BUSY, EventStatus.SWAPPABLE})

# Targets allowed when a SWAP_PENDING lock is released
RELEASE_TARGETS = frozenset({EventStatus.SWAPPABLE, EventStatus.BUSY})
