"""Reconciliation — audits and repairs the SWAP_PENDING <-> PENDING request invariant.

Invariants:
    - audit() is read-only
    - repair() only writes through version/status guards; every item is
      re-validated from fresh reads right before its write, and an item that
      changed meanwhile is skipped (never forced)
    - Stuck locks are released via EventStatusController plans; orphaned
      requests are rejected via SwapNegotiationEngine.abandon
    - Over-claimed events (more than one PENDING request) are reported only

Design Decisions:
    - Event read BEFORE the request scan when repairing a stuck lock: a lock
      commits together with its request, so "locked at version v and no
      PENDING claim" holds while v is unchanged, and the release is guarded
      on v
    - No expiry policy: age of a PENDING request is never a repair reason
"""

import logging
from dataclasses import dataclass, field

from swapsync.core import enforce_swap
from swapsync.core.domain_types import EventId, EventStatus, SwapRequestId, SwapStatus
from swapsync.core.errors import AlreadyResolvedError, StaleVersionError, SwapSyncError
from swapsync.core.records import EventRecord, SwapRequestRecord
from swapsync.core.repository_protocols import SwapStore
from swapsync.services.event_status import EventStatusController
from swapsync.services.swap_negotiation import SwapNegotiationEngine

logger = logging.getLogger(__name__)


@dataclass
class ReconciliationReport:
    """Invariant violations found (audit) or fixed (repair)."""
    stuck_events: list[EventId] = field(default_factory=list)
    orphaned_requests: list[SwapRequestId] = field(default_factory=list)
    over_claimed_events: list[EventId] = field(default_factory=list)
    skipped: list[str] = field(default_factory=list)

    @property
    def is_consistent(self) -> bool:
        return not (
            self.stuck_events or self.orphaned_requests or self.over_claimed_events
        )

    def to_dict(self) -> dict:
        return {
            "consistent": self.is_consistent,
            "stuck_events": [str(e) for e in self.stuck_events],
            "orphaned_requests": [str(r) for r in self.orphaned_requests],
            "over_claimed_events": [str(e) for e in self.over_claimed_events],
            "skipped": list(self.skipped),
        }


def find_violations(
    locked_events: list[EventRecord],
    pending_requests: list[SwapRequestRecord],
    events_by_id: dict[EventId, EventRecord],
) -> ReconciliationReport:
    """Pure comparison of a snapshot of locked events and PENDING requests."""
    report = ReconciliationReport()
    for event in locked_events:
        claims = enforce_swap.count_pending_claims(event.id, pending_requests)
        if claims == 0:
            report.stuck_events.append(event.id)
        elif claims > 1:
            report.over_claimed_events.append(event.id)
    for request in pending_requests:
        for event_id in request.event_ids:
            event = events_by_id.get(event_id)
            if event is None or event.status is not EventStatus.SWAP_PENDING:
                report.orphaned_requests.append(request.id)
                break
    return report


class Reconciler:
    """Detects and repairs events stuck in SWAP_PENDING and orphaned requests."""

    def __init__(
        self,
        store: SwapStore,
        controller: EventStatusController,
        engine: SwapNegotiationEngine,
    ):
        self._store = store
        self._controller = controller
        self._engine = engine

    async def audit(self) -> ReconciliationReport:
        pending = await self._store.list_requests(status=SwapStatus.PENDING)
        locked = await self._store.list_events(status=EventStatus.SWAP_PENDING)
        referenced = await self._store.get_events(
            [eid for r in pending for eid in r.event_ids],
        )
        report = find_violations(locked, pending, referenced)
        if not report.is_consistent:
            logger.warning(
                "Swap invariant violations detected: "
                f"{len(report.stuck_events)} stuck, "
                f"{len(report.orphaned_requests)} orphaned, "
                f"{len(report.over_claimed_events)} over-claimed",
                extra={"operation": "reconcile_audit"},
            )
        return report

    async def repair(self) -> ReconciliationReport:
        found = await self.audit()
        repaired = ReconciliationReport(
            over_claimed_events=list(found.over_claimed_events),
        )
        for event_id in found.stuck_events:
            if await self._release_stuck(event_id):
                repaired.stuck_events.append(event_id)
            else:
                repaired.skipped.append(f"event:{event_id}")
        for request_id in found.orphaned_requests:
            if await self._abandon_orphan(request_id):
                repaired.orphaned_requests.append(request_id)
            else:
                repaired.skipped.append(f"request:{request_id}")
        for event_id in found.over_claimed_events:
            logger.error(
                "Event claimed by multiple pending requests; manual review needed",
                extra={"event_id": event_id, "operation": "reconcile_repair"},
            )
        return repaired

    async def _release_stuck(self, event_id: EventId) -> bool:
        event = await self._store.get_event(event_id)
        if event is None or not event.is_locked:
            return False
        pending = await self._store.list_requests(status=SwapStatus.PENDING)
        if enforce_swap.count_pending_claims(event_id, pending):
            return False
        try:
            await self._store.update_event(self._controller.plan_release(event))
        except StaleVersionError:
            logger.info(
                "Stuck event changed during repair, skipped",
                extra={"event_id": event_id, "operation": "reconcile_repair"},
            )
            return False
        logger.warning(
            "Released event stuck in SWAP_PENDING",
            extra={"event_id": event_id, "operation": "reconcile_repair"},
        )
        return True

    async def _abandon_orphan(self, request_id: SwapRequestId) -> bool:
        request = await self._store.get_request(request_id)
        if request is None or request.status is not SwapStatus.PENDING:
            return False
        pending = await self._store.list_requests(status=SwapStatus.PENDING)
        events = await self._store.get_events(list(request.event_ids))
        if all(
            eid in events and events[eid].is_locked for eid in request.event_ids
        ):
            return False
        releasable = [
            eid for eid in request.event_ids
            if eid in events
            and events[eid].is_locked
            and enforce_swap.count_pending_claims(eid, pending) == 1
        ]
        try:
            await self._engine.abandon(request_id, releasable)
        except (StaleVersionError, AlreadyResolvedError):
            return False
        except SwapSyncError as e:
            logger.error(
                f"Could not abandon orphaned request: {e.message}",
                extra={"request_id": request_id, "error_code": e.code},
            )
            return False
        return True
