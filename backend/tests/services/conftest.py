"""Service test fixtures — in-memory SwapStore fake, fixed actors, fast retries.

Invariants:
    - InMemorySwapStore honours the same guards as SqlSwapStore: version-checked
      event writes, status-checked request transitions, all-or-nothing units
    - Every read yields to the event loop so concurrent tasks interleave
      between read and write (exercises the lost-race path)
    - RetryPolicy sleeps are zero-delay

Design Decisions:
    - Hand-written fake over AsyncMock: race tests need real state, and the
      fake's guard semantics are the contract under test
"""

import asyncio
import uuid
from dataclasses import replace
from datetime import datetime, timedelta, timezone

import pytest

from swapsync.core.domain_types import EventId, EventStatus, SwapStatus, UserId
from swapsync.core.errors import StaleVersionError
from swapsync.core.records import EventRecord, EventWrite, SwapRequestRecord
from swapsync.services.event_status import EventStatusController
from swapsync.services.reconciliation import Reconciler
from swapsync.services.retry import RetryPolicy
from swapsync.services.swap_negotiation import SwapNegotiationEngine


class InMemorySwapStore:
    """SwapStore fake with CAS semantics and optional fault injection."""

    def __init__(self):
        self.events: dict = {}
        self.requests: dict = {}
        self.apply_calls = 0
        self.fail_on_apply: Exception | None = None
        self._lock = asyncio.Lock()

    # ─── Events ──────────────────────────────────────────────────

    async def get_event(self, event_id):
        await asyncio.sleep(0)
        return self.events.get(event_id)

    async def get_events(self, event_ids):
        await asyncio.sleep(0)
        return {eid: self.events[eid] for eid in event_ids if eid in self.events}

    async def list_events(self, *, owner_id=None, status=None, exclude_owner_id=None):
        events = [
            e for e in self.events.values()
            if (owner_id is None or e.owner_id == owner_id)
            and (status is None or e.status is status)
            and (exclude_owner_id is None or e.owner_id != exclude_owner_id)
        ]
        return sorted(events, key=lambda e: e.start_time)

    async def insert_event(self, event):
        stored = replace(event, version=1, updated_at=event.created_at)
        self.events[event.id] = stored
        return stored

    async def update_event(self, write):
        async with self._lock:
            self._check_event(write)
            return self._write_event(write)

    async def delete_event(self, event_id, expected_version):
        async with self._lock:
            event = self.events.get(event_id)
            if event is None or event.version != expected_version or event.is_locked:
                raise StaleVersionError("Event", str(event_id))
            del self.events[event_id]

    # ─── Requests ────────────────────────────────────────────────

    async def get_request(self, request_id):
        await asyncio.sleep(0)
        return self.requests.get(request_id)

    async def list_requests(self, *, requester_id=None, recipient_id=None, status=None):
        requests = [
            r for r in self.requests.values()
            if (requester_id is None or r.requester_id == requester_id)
            and (recipient_id is None or r.recipient_id == recipient_id)
            and (status is None or r.status is status)
        ]
        return sorted(requests, key=lambda r: r.created_at, reverse=True)

    # ─── Units ───────────────────────────────────────────────────

    async def apply_pair(self, update):
        async with self._lock:
            self.apply_calls += 1
            for write in update.writes:
                self._check_event(write)
            if update.request_transition is not None:
                self._check_transition(update.request_transition)
            if self.fail_on_apply is not None:
                raise self.fail_on_apply
            first = self._write_event(update.first)
            second = self._write_event(update.second)
            if update.request_transition is not None:
                self._write_transition(update.request_transition)
            if update.request_insert is not None:
                self.requests[update.request_insert.id] = update.request_insert
            return first, second

    async def apply_request_transition(self, transition, writes=()):
        async with self._lock:
            for write in writes:
                self._check_event(write)
            self._check_transition(transition)
            for write in writes:
                self._write_event(write)
            self._write_transition(transition)

    # ─── Guards ──────────────────────────────────────────────────

    def _check_event(self, write: EventWrite) -> None:
        event = self.events.get(write.event_id)
        if event is None or event.version != write.expected_version:
            raise StaleVersionError("Event", str(write.event_id))

    def _write_event(self, write: EventWrite) -> EventRecord:
        event = self.events[write.event_id]
        updated = replace(event, **write.changes, version=event.version + 1)
        self.events[write.event_id] = updated
        return updated

    def _check_transition(self, transition) -> None:
        request = self.requests.get(transition.request_id)
        if request is None or request.status is not transition.expected_status:
            raise StaleVersionError("SwapRequest", str(transition.request_id))

    def _write_transition(self, transition) -> None:
        request = self.requests[transition.request_id]
        self.requests[transition.request_id] = replace(
            request,
            status=transition.new_status,
            resolved_at=transition.resolved_at,
        )


class TickingClock:
    """Deterministic clock: each call is one second after the previous."""

    def __init__(self, start: datetime | None = None):
        self.now = start or datetime(2026, 3, 1, 9, 0, tzinfo=timezone.utc)

    def __call__(self) -> datetime:
        self.now = self.now + timedelta(seconds=1)
        return self.now


async def _no_sleep(_seconds: float) -> None:
    await asyncio.sleep(0)


def seed_event(
    store: InMemorySwapStore,
    owner_id,
    status: EventStatus = EventStatus.SWAPPABLE,
    title: str = "Shift",
    day: int = 2,
) -> EventRecord:
    start = datetime(2026, 3, day, 9, 0, tzinfo=timezone.utc)
    event = EventRecord(
        id=EventId(uuid.uuid4()),
        owner_id=owner_id,
        title=title,
        start_time=start,
        end_time=start + timedelta(hours=2),
        status=status,
        created_at=start,
    )
    store.events[event.id] = event
    return event


def seed_request(
    store: InMemorySwapStore,
    requester_event: EventRecord,
    recipient_event: EventRecord,
    status: SwapStatus = SwapStatus.PENDING,
) -> SwapRequestRecord:
    request = SwapRequestRecord(
        id=uuid.uuid4(),
        requester_id=requester_event.owner_id,
        requester_event_id=requester_event.id,
        recipient_id=recipient_event.owner_id,
        recipient_event_id=recipient_event.id,
        created_at=datetime(2026, 3, 1, 8, 0, tzinfo=timezone.utc),
        status=status,
    )
    store.requests[request.id] = request
    return request


@pytest.fixture
def store():
    return InMemorySwapStore()


@pytest.fixture
def clock():
    return TickingClock()


@pytest.fixture
def retry_policy():
    return RetryPolicy(max_retries=3, base_delay_ms=0, max_delay_ms=0, sleep=_no_sleep)


@pytest.fixture
def controller(store, clock, retry_policy):
    return EventStatusController(store, clock, retry_policy)


@pytest.fixture
def engine(store, controller, clock, retry_policy):
    return SwapNegotiationEngine(store, controller, clock, retry_policy)


@pytest.fixture
def reconciler(store, controller, engine):
    return Reconciler(store, controller, engine)


@pytest.fixture
def alice():
    return UserId(uuid.uuid4())


@pytest.fixture
def bob():
    return UserId(uuid.uuid4())


@pytest.fixture
def carol():
    return UserId(uuid.uuid4())


@pytest.fixture
def make_event(store):
    def _make(owner_id, status=EventStatus.SWAPPABLE, title="Shift", day=2):
        return seed_event(store, owner_id, status, title, day)
    return _make


@pytest.fixture
def make_request(store):
    def _make(requester_event, recipient_event, status=SwapStatus.PENDING):
        return seed_request(store, requester_event, recipient_event, status)
    return _make
