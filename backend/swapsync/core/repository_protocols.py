"""Boundary Protocols — contracts between core/services and the persistence shell.

Invariants:
    - Services NEVER import a concrete store; they receive a SwapStore
    - Every event write is version-guarded; a failed guard raises
      StaleVersionError and writes nothing
    - apply_pair is all-or-nothing across both events and the request write
    - Returned records are snapshots (see core/records.py)

Design Decisions:
    - Protocol over ABC: structural subtyping, test fakes need no inheritance
    - Async in Protocol: implementations do IO; the pure rules that decide
      WHAT to write never touch the store
"""

from typing import Protocol

from swapsync.core.domain_types import (
    EventId, EventStatus, SwapRequestId, SwapStatus, UserId,
)
from swapsync.core.records import (
    AtomicPairUpdate, EventRecord, EventWrite, RequestTransition,
    SwapRequestRecord,
)


class UserDirectory(Protocol):
    """Read-only view of users owned by the identity collaborator."""
    async def get_user(self, user_id: UserId) -> dict | None: ...
    async def get_users(self, user_ids: list[UserId]) -> dict[UserId, dict]: ...


class SwapStore(Protocol):
    """Contract for event + swap request persistence, implemented by the shell."""

    # Events
    async def get_event(self, event_id: EventId) -> EventRecord | None: ...
    async def get_events(
        self, event_ids: list[EventId],
    ) -> dict[EventId, EventRecord]: ...
    async def list_events(
        self,
        *,
        owner_id: UserId | None = None,
        status: EventStatus | None = None,
        exclude_owner_id: UserId | None = None,
    ) -> list[EventRecord]: ...
    async def insert_event(self, event: EventRecord) -> EventRecord: ...
    async def update_event(self, write: EventWrite) -> EventRecord: ...
    async def delete_event(self, event_id: EventId, expected_version: int) -> None: ...

    # Swap requests
    async def get_request(
        self, request_id: SwapRequestId,
    ) -> SwapRequestRecord | None: ...
    async def list_requests(
        self,
        *,
        requester_id: UserId | None = None,
        recipient_id: UserId | None = None,
        status: SwapStatus | None = None,
    ) -> list[SwapRequestRecord]: ...

    # Multi-document units
    async def apply_pair(
        self, update: AtomicPairUpdate,
    ) -> tuple[EventRecord, EventRecord]: ...
    async def apply_request_transition(
        self,
        transition: RequestTransition,
        writes: tuple[EventWrite, ...] = (),
    ) -> None: ...
