"""Swap Negotiation Engine — drives a swap request from proposal to resolution.

Invariants:
    - propose: request insert + both locks commit as ONE AtomicPairUpdate;
      a lost race writes nothing and the retry re-validates from fresh reads,
      so the loser fails with NotSwappable instead of overwriting the lock
    - respond: event writes + request status write commit as ONE unit; on
      failure the request stays PENDING and the error reaches the caller
    - The engine authors every owner change and every SwapRequest.status change;
      event status writes are planned by the EventStatusController
    - Requests are never deleted

Design Decisions:
    - Whole-attempt retry (read -> validate -> write) under RetryPolicy:
      bounded, with TransientConflictError on exhaustion
    - respond checks the request (existence, recipient, PENDING) before the
      events, so a resolved request whose event was later deleted still
      reports AlreadyResolved
"""

import logging
import uuid
from dataclasses import dataclass, replace
from typing import Callable

from swapsync.core import enforce_swap
from swapsync.core.clock import Clock, utc_now
from swapsync.core.domain_types import (
    EventId, SwapRequestId, SwapStatus, UserId,
)
from swapsync.core.errors import (
    AlreadyResolvedError, ErrorContext, ResourceNotFoundError,
)
from swapsync.core.records import (
    AtomicPairUpdate, EventRecord, SwapRequestRecord,
)
from swapsync.core.repository_protocols import SwapStore
from swapsync.services.event_status import EventStatusController
from swapsync.services.retry import RetryPolicy, run_with_retry

logger = logging.getLogger(__name__)


@dataclass(frozen=True)
class SwapRequestDetail:
    """A request with both referenced events dereferenced (None if deleted)."""
    request: SwapRequestRecord
    requester_event: EventRecord | None
    recipient_event: EventRecord | None


class SwapNegotiationEngine:
    """Owns the SwapRequest lifecycle and the atomic ownership exchange."""

    def __init__(
        self,
        store: SwapStore,
        controller: EventStatusController,
        clock: Clock = utc_now,
        retry_policy: RetryPolicy | None = None,
        id_factory: Callable[[], uuid.UUID] = uuid.uuid4,
    ):
        self._store = store
        self._controller = controller
        self._clock = clock
        self._retry = retry_policy or RetryPolicy()
        self._new_id = id_factory

    # ─── Proposal ────────────────────────────────────────────────

    async def propose(
        self, requester_id: UserId, my_event_id: EventId, their_event_id: EventId,
    ) -> SwapRequestRecord:
        async def attempt() -> SwapRequestRecord:
            events = await self._store.get_events([my_event_id, their_event_id])
            mine = _require_event(events, my_event_id, requester_id)
            theirs = _require_event(events, their_event_id, requester_id)
            enforce_swap.check_proposal(requester_id, mine, theirs)
            request = enforce_swap.build_request(
                self._new_id(), requester_id, mine, theirs, self._clock(),
            )
            await self._store.apply_pair(AtomicPairUpdate(
                first=self._controller.plan_lock(mine),
                second=self._controller.plan_lock(theirs),
                request_insert=request,
            ))
            return request

        request = await run_with_retry("propose", attempt, self._retry)
        logger.info(
            "Swap proposed",
            extra={
                "user_id": requester_id,
                "request_id": request.id,
                "event_id": f"{my_event_id},{their_event_id}",
            },
        )
        return request

    # ─── Response ────────────────────────────────────────────────

    async def respond(
        self, request_id: SwapRequestId, responder_id: UserId, accept: bool,
    ) -> SwapRequestRecord:
        async def attempt() -> SwapRequestRecord:
            request = await self._require_request(request_id)
            enforce_swap.check_response(request, responder_id)
            events = await self._store.get_events(list(request.event_ids))
            requester_event = _require_event(
                events, request.requester_event_id, responder_id,
            )
            recipient_event = _require_event(
                events, request.recipient_event_id, responder_id,
            )
            if accept:
                first, second = self._controller.plan_exchange(
                    requester_event, recipient_event,
                )
            else:
                first = self._controller.plan_release(requester_event)
                second = self._controller.plan_release(recipient_event)
            transition = enforce_swap.plan_resolution(
                request, accept, self._clock(),
            )
            await self._store.apply_pair(AtomicPairUpdate(
                first=first, second=second, request_transition=transition,
            ))
            return replace(
                request,
                status=transition.new_status,
                resolved_at=transition.resolved_at,
            )

        request = await run_with_retry("respond", attempt, self._retry)
        logger.info(
            f"Swap request {request.status.value.lower()}",
            extra={"user_id": responder_id, "request_id": request_id},
        )
        return request

    # ─── Reads ───────────────────────────────────────────────────

    async def list_incoming(self, user_id: UserId) -> list[SwapRequestRecord]:
        return await self._store.list_requests(recipient_id=user_id)

    async def list_outgoing(self, user_id: UserId) -> list[SwapRequestRecord]:
        return await self._store.list_requests(requester_id=user_id)

    async def get_request(
        self, request_id: SwapRequestId, viewer_id: UserId,
    ) -> SwapRequestRecord:
        request = await self._require_request(request_id)
        enforce_swap.check_viewer(request, viewer_id)
        return request

    async def describe(
        self, requests: list[SwapRequestRecord],
    ) -> list[SwapRequestDetail]:
        """Dereference event ids through the store in one batched read."""
        event_ids = [eid for r in requests for eid in r.event_ids]
        events = await self._store.get_events(event_ids)
        return [
            SwapRequestDetail(
                request=r,
                requester_event=events.get(r.requester_event_id),
                recipient_event=events.get(r.recipient_event_id),
            )
            for r in requests
        ]

    # ─── Repair ──────────────────────────────────────────────────

    async def abandon(
        self, request_id: SwapRequestId, release_event_ids: list[EventId],
    ) -> SwapRequestRecord:
        """Reject a PENDING request that can no longer complete.

        Used by reconciliation for requests whose events vanished or lost
        their lock. The listed events are released back to SWAPPABLE in the
        same unit. No retry: a conflict means someone else resolved it.
        """
        request = await self._require_request(request_id)
        if request.status.is_terminal:
            raise AlreadyResolvedError(str(request.id), request.status.value)
        events = await self._store.get_events(release_event_ids)
        writes = tuple(
            self._controller.plan_release(events[eid])
            for eid in release_event_ids if eid in events
        )
        transition = enforce_swap.plan_resolution(
            request, accept=False, now=self._clock(),
        )
        await self._store.apply_request_transition(transition, writes)
        logger.warning(
            "Orphaned swap request rejected",
            extra={"request_id": request_id},
        )
        return replace(
            request, status=SwapStatus.REJECTED, resolved_at=transition.resolved_at,
        )

    async def _require_request(
        self, request_id: SwapRequestId,
    ) -> SwapRequestRecord:
        request = await self._store.get_request(request_id)
        if request is None:
            raise ResourceNotFoundError("SwapRequest", str(request_id))
        return request


def _require_event(
    events: dict[EventId, EventRecord], event_id: EventId, user_id: UserId,
) -> EventRecord:
    event = events.get(event_id)
    if event is None:
        raise ResourceNotFoundError(
            "Event", str(event_id),
            ErrorContext(user_id=str(user_id), event_id=str(event_id)),
        )
    return event
