"""Event Status Controller — gates every status-affecting mutation on an event.

Invariants:
    - Every status write is planned by core/enforce_status.py and applied as a
      version-guarded write; a concurrent change forces a re-read (retry)
    - SWAP_PENDING blocks set_exchangeable, edits and deletion (EventLockedError)
    - lock_pair / release_pair / finalize_exchange write both events or neither
    - Ownership checks return NotFound (not Forbidden) so foreign event ids
      are indistinguishable from missing ones

Design Decisions:
    - Store, clock and retry policy injected: no ambient state
    - plan_* methods exposed so the negotiation engine can fold event writes
      and its request write into a single AtomicPairUpdate
"""

import logging
import uuid
from datetime import datetime

from swapsync.core import enforce_status
from swapsync.core.clock import Clock, utc_now
from swapsync.core.domain_types import EventId, EventStatus, UserId
from swapsync.core.errors import (
    ErrorContext, ResourceNotFoundError, SelfSwapError,
    TransientConflictError,
)
from swapsync.core.records import AtomicPairUpdate, EventRecord, EventWrite
from swapsync.core.repository_protocols import SwapStore
from swapsync.services.retry import RetryPolicy, run_with_retry

logger = logging.getLogger(__name__)


class EventStatusController:
    """Owns event exchangeability status and status-gated event mutations."""

    def __init__(
        self,
        store: SwapStore,
        clock: Clock = utc_now,
        retry_policy: RetryPolicy | None = None,
    ):
        self._store = store
        self._clock = clock
        self._retry = retry_policy or RetryPolicy()

    # ─── Reads ───────────────────────────────────────────────────

    async def get_event(self, event_id: EventId) -> EventRecord:
        event = await self._store.get_event(event_id)
        if event is None:
            raise ResourceNotFoundError("Event", str(event_id))
        return event

    async def get_owned_event(
        self, event_id: EventId, owner_id: UserId,
    ) -> EventRecord:
        event = await self._store.get_event(event_id)
        if event is None or event.owner_id != owner_id:
            raise ResourceNotFoundError(
                "Event", str(event_id),
                ErrorContext(user_id=str(owner_id), event_id=str(event_id)),
            )
        return event

    async def list_owned(
        self, owner_id: UserId, status: EventStatus | None = None,
    ) -> list[EventRecord]:
        return await self._store.list_events(owner_id=owner_id, status=status)

    async def list_marketplace(self, viewer_id: UserId) -> list[EventRecord]:
        """Other users' SWAPPABLE events, earliest first."""
        return await self._store.list_events(
            status=EventStatus.SWAPPABLE, exclude_owner_id=viewer_id,
        )

    # ─── Owner mutations ─────────────────────────────────────────

    async def create_event(
        self,
        owner_id: UserId,
        title: str,
        start_time: datetime,
        end_time: datetime,
        status: EventStatus = EventStatus.BUSY,
    ) -> EventRecord:
        start, end = enforce_status.validate_time_range(start_time, end_time)
        record = EventRecord(
            id=EventId(uuid.uuid4()),
            owner_id=owner_id,
            title=enforce_status.validate_title(title),
            start_time=start,
            end_time=end,
            status=enforce_status.validate_initial_status(status),
            created_at=self._clock(),
        )
        event = await self._store.insert_event(record)
        logger.info(
            "Event created",
            extra={"user_id": owner_id, "event_id": event.id},
        )
        return event

    async def set_exchangeable(
        self, event_id: EventId, requester_id: UserId, desired_status: EventStatus,
    ) -> EventRecord:
        """Owner toggles BUSY <-> SWAPPABLE. Locked events are rejected."""
        async def attempt() -> EventRecord:
            event = await self.get_owned_event(event_id, requester_id)
            if event.status is desired_status:
                return event
            write = enforce_status.plan_status_change(event, desired_status)
            return await self._store.update_event(write)

        event = await run_with_retry("set_exchangeable", attempt, self._retry)
        logger.info(
            f"Event status set to {event.status.value}",
            extra={"user_id": requester_id, "event_id": event_id},
        )
        return event

    async def edit_event(
        self,
        event_id: EventId,
        requester_id: UserId,
        *,
        title: str | None = None,
        start_time: datetime | None = None,
        end_time: datetime | None = None,
        status: EventStatus | None = None,
    ) -> EventRecord:
        async def attempt() -> EventRecord:
            event = await self.get_owned_event(event_id, requester_id)
            write = enforce_status.plan_edit(
                event, title=title, start_time=start_time,
                end_time=end_time, status=status,
            )
            if not write.changes:
                return event
            return await self._store.update_event(write)

        return await run_with_retry("edit_event", attempt, self._retry)

    async def delete_event(self, event_id: EventId, requester_id: UserId) -> None:
        """Delete unless SWAP_PENDING; a concurrent lock wins over the delete."""
        async def attempt() -> None:
            event = await self.get_owned_event(event_id, requester_id)
            enforce_status.check_mutable(event)
            await self._store.delete_event(event.id, event.version)

        await run_with_retry("delete_event", attempt, self._retry)
        logger.info(
            "Event deleted",
            extra={"user_id": requester_id, "event_id": event_id},
        )

    # ─── Lock lifecycle ──────────────────────────────────────────

    def plan_lock(self, event: EventRecord) -> EventWrite:
        return enforce_status.plan_lock(event)

    def plan_release(
        self, event: EventRecord, target: EventStatus = EventStatus.SWAPPABLE,
    ) -> EventWrite:
        return enforce_status.plan_release(event, target)

    def plan_exchange(
        self, first: EventRecord, second: EventRecord,
    ) -> tuple[EventWrite, EventWrite]:
        return enforce_status.plan_exchange(first, second)

    async def lock(self, event_id: EventId) -> EventRecord:
        async def attempt() -> EventRecord:
            event = await self.get_event(event_id)
            return await self._store.update_event(self.plan_lock(event))

        return await run_with_retry("lock", attempt, self._retry)

    async def lock_pair(
        self, event_id_a: EventId, event_id_b: EventId,
    ) -> tuple[EventRecord, EventRecord]:
        """SWAPPABLE -> SWAP_PENDING for both events, or for neither."""
        async def attempt() -> tuple[EventRecord, EventRecord]:
            first, second = await self._load_pair(event_id_a, event_id_b)
            return await self._store.apply_pair(AtomicPairUpdate(
                first=self.plan_lock(first), second=self.plan_lock(second),
            ))

        return await run_with_retry("lock_pair", attempt, self._retry)

    async def release(
        self, event_id: EventId, target_status: EventStatus = EventStatus.SWAPPABLE,
    ) -> EventRecord:
        async def attempt() -> EventRecord:
            event = await self.get_event(event_id)
            return await self._store.update_event(
                self.plan_release(event, target_status),
            )

        event = await run_with_retry("release", attempt, self._retry)
        logger.info(
            f"Event released to {target_status.value}",
            extra={"event_id": event_id},
        )
        return event

    async def finalize_exchange(
        self,
        event_id_a: EventId,
        owner_a: UserId,
        event_id_b: EventId,
        owner_b: UserId,
    ) -> tuple[EventRecord, EventRecord]:
        """A goes to owner_b, B goes to owner_a, both BUSY, as one unit."""
        async def attempt() -> tuple[EventRecord, EventRecord]:
            first, second = await self._load_pair(event_id_a, event_id_b)
            if first.owner_id != owner_a or second.owner_id != owner_b:
                raise TransientConflictError(
                    "finalize_exchange", 1,
                    context=ErrorContext(event_id=f"{event_id_a},{event_id_b}"),
                )
            write_a, write_b = self.plan_exchange(first, second)
            return await self._store.apply_pair(
                AtomicPairUpdate(first=write_a, second=write_b),
            )

        return await run_with_retry("finalize_exchange", attempt, self._retry)

    async def _load_pair(
        self, event_id_a: EventId, event_id_b: EventId,
    ) -> tuple[EventRecord, EventRecord]:
        if event_id_a == event_id_b:
            raise SelfSwapError(ErrorContext(event_id=str(event_id_a)))
        events = await self._store.get_events([event_id_a, event_id_b])
        for event_id in (event_id_a, event_id_b):
            if event_id not in events:
                raise ResourceNotFoundError("Event", str(event_id))
        return events[event_id_a], events[event_id_b]
