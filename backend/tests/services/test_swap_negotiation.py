"""Swap Negotiation Engine — proposal and resolution scenarios.

Tests cover:
    - propose locks both events and records a PENDING request
    - propose rule order: NotFound, Forbidden, SelfSwap, NotSwappable
    - accept exchanges owners (both BUSY); reject releases (both SWAPPABLE)
    - only the recipient may respond, and only once
    - a failed unit leaves events and the request untouched
    - listings and dereferencing (deleted events render as None)
"""

import uuid

import pytest

from swapsync.core.domain_types import EventStatus, SwapStatus
from swapsync.core.errors import (
    AlreadyResolvedError,
    DatabaseError,
    ForbiddenError,
    NotSwappableError,
    ResourceNotFoundError,
    SelfSwapError,
)


def _statuses(store, *events):
    return tuple(store.events[e.id].status for e in events)


# ─── propose ─────────────────────────────────────────────────────

async def test_propose_locks_both_events(engine, store, make_event, alice, bob):
    mine, theirs = make_event(alice), make_event(bob)

    request = await engine.propose(alice, mine.id, theirs.id)

    assert request.status is SwapStatus.PENDING
    assert request.requester_id == alice
    assert request.recipient_id == bob
    assert store.requests[request.id] == request
    assert _statuses(store, mine, theirs) == (
        EventStatus.SWAP_PENDING, EventStatus.SWAP_PENDING,
    )


async def test_propose_missing_event_is_not_found(engine, store, make_event, alice):
    mine = make_event(alice)
    with pytest.raises(ResourceNotFoundError):
        await engine.propose(alice, mine.id, uuid.uuid4())
    assert not store.requests


async def test_propose_with_foreign_offer_is_forbidden(engine, store, make_event, alice, bob, carol):
    bobs, carols = make_event(bob), make_event(carol)
    with pytest.raises(ForbiddenError):
        await engine.propose(alice, bobs.id, carols.id)
    assert _statuses(store, bobs, carols) == (EventStatus.SWAPPABLE, EventStatus.SWAPPABLE)


async def test_propose_for_own_event_is_self_swap(engine, make_event, alice):
    first, second = make_event(alice), make_event(alice, day=3)
    with pytest.raises(SelfSwapError):
        await engine.propose(alice, first.id, second.id)


@pytest.mark.parametrize("mine_status,theirs_status", [
    (EventStatus.BUSY, EventStatus.SWAPPABLE),
    (EventStatus.SWAPPABLE, EventStatus.BUSY),
    (EventStatus.SWAPPABLE, EventStatus.SWAP_PENDING),
])
async def test_propose_not_swappable_changes_nothing(
    engine, store, make_event, alice, bob, mine_status, theirs_status,
):
    mine, theirs = make_event(alice, mine_status), make_event(bob, theirs_status)
    with pytest.raises(NotSwappableError):
        await engine.propose(alice, mine.id, theirs.id)
    assert _statuses(store, mine, theirs) == (mine_status, theirs_status)
    assert not store.requests
    assert store.apply_calls == 0


async def test_propose_unit_failure_writes_nothing(engine, store, make_event, alice, bob):
    mine, theirs = make_event(alice), make_event(bob)
    store.fail_on_apply = DatabaseError("connection lost", "execute")

    with pytest.raises(DatabaseError):
        await engine.propose(alice, mine.id, theirs.id)

    assert _statuses(store, mine, theirs) == (EventStatus.SWAPPABLE, EventStatus.SWAPPABLE)
    assert not store.requests


# ─── respond ─────────────────────────────────────────────────────

async def test_accept_exchanges_owners(engine, store, make_event, alice, bob):
    mine, theirs = make_event(alice), make_event(bob)
    request = await engine.propose(alice, mine.id, theirs.id)

    resolved = await engine.respond(request.id, bob, accept=True)

    assert resolved.status is SwapStatus.ACCEPTED
    assert resolved.resolved_at is not None
    assert store.requests[request.id].status is SwapStatus.ACCEPTED
    assert store.events[mine.id].owner_id == bob
    assert store.events[theirs.id].owner_id == alice
    assert _statuses(store, mine, theirs) == (EventStatus.BUSY, EventStatus.BUSY)


async def test_reject_releases_both_events(engine, store, make_event, alice, bob):
    mine, theirs = make_event(alice), make_event(bob)
    request = await engine.propose(alice, mine.id, theirs.id)

    resolved = await engine.respond(request.id, bob, accept=False)

    assert resolved.status is SwapStatus.REJECTED
    assert store.events[mine.id].owner_id == alice
    assert store.events[theirs.id].owner_id == bob
    assert _statuses(store, mine, theirs) == (EventStatus.SWAPPABLE, EventStatus.SWAPPABLE)


async def test_reject_then_propose_again(engine, store, make_event, alice, bob):
    mine, theirs = make_event(alice), make_event(bob)
    first = await engine.propose(alice, mine.id, theirs.id)
    await engine.respond(first.id, bob, accept=False)

    second = await engine.propose(alice, mine.id, theirs.id)

    assert second.id != first.id
    assert store.requests[first.id].status is SwapStatus.REJECTED
    assert store.requests[second.id].status is SwapStatus.PENDING


async def test_requester_cannot_respond(engine, store, make_event, alice, bob):
    mine, theirs = make_event(alice), make_event(bob)
    request = await engine.propose(alice, mine.id, theirs.id)

    with pytest.raises(ForbiddenError):
        await engine.respond(request.id, alice, accept=True)
    assert store.requests[request.id].status is SwapStatus.PENDING


async def test_second_response_is_already_resolved(engine, store, make_event, alice, bob):
    mine, theirs = make_event(alice), make_event(bob)
    request = await engine.propose(alice, mine.id, theirs.id)
    await engine.respond(request.id, bob, accept=True)
    snapshot = dict(store.events)

    with pytest.raises(AlreadyResolvedError):
        await engine.respond(request.id, bob, accept=False)

    assert store.events == snapshot
    assert store.requests[request.id].status is SwapStatus.ACCEPTED


async def test_resolved_request_with_deleted_event_reports_already_resolved(
    engine, store, make_event, alice, bob,
):
    mine, theirs = make_event(alice), make_event(bob)
    request = await engine.propose(alice, mine.id, theirs.id)
    await engine.respond(request.id, bob, accept=False)
    del store.events[mine.id]

    with pytest.raises(AlreadyResolvedError):
        await engine.respond(request.id, bob, accept=True)


async def test_respond_to_unknown_request_is_not_found(engine, bob):
    with pytest.raises(ResourceNotFoundError):
        await engine.respond(uuid.uuid4(), bob, accept=True)


async def test_respond_with_missing_event_is_not_found(engine, store, make_event, alice, bob):
    mine, theirs = make_event(alice), make_event(bob)
    request = await engine.propose(alice, mine.id, theirs.id)
    del store.events[mine.id]

    with pytest.raises(ResourceNotFoundError):
        await engine.respond(request.id, bob, accept=True)
    assert store.requests[request.id].status is SwapStatus.PENDING


async def test_respond_unit_failure_leaves_request_pending(engine, store, make_event, alice, bob):
    mine, theirs = make_event(alice), make_event(bob)
    request = await engine.propose(alice, mine.id, theirs.id)
    store.fail_on_apply = DatabaseError("connection lost", "execute")

    with pytest.raises(DatabaseError):
        await engine.respond(request.id, bob, accept=True)

    assert store.requests[request.id].status is SwapStatus.PENDING
    assert store.events[mine.id].owner_id == alice
    assert _statuses(store, mine, theirs) == (
        EventStatus.SWAP_PENDING, EventStatus.SWAP_PENDING,
    )


# ─── reads ───────────────────────────────────────────────────────

async def test_incoming_and_outgoing_lists(engine, make_event, alice, bob, carol):
    request = await engine.propose(alice, make_event(alice).id, make_event(bob).id)
    other = await engine.propose(carol, make_event(carol).id, make_event(bob, day=5).id)

    assert {r.id for r in await engine.list_incoming(bob)} == {request.id, other.id}
    assert [r.id for r in await engine.list_outgoing(alice)] == [request.id]
    assert await engine.list_incoming(alice) == []


async def test_incoming_newest_first(engine, make_event, alice, bob):
    older = await engine.propose(alice, make_event(alice).id, make_event(bob).id)
    newer = await engine.propose(alice, make_event(alice, day=4).id, make_event(bob, day=5).id)

    assert [r.id for r in await engine.list_incoming(bob)] == [newer.id, older.id]


async def test_get_request_only_for_parties(engine, make_event, alice, bob, carol):
    request = await engine.propose(alice, make_event(alice).id, make_event(bob).id)

    assert (await engine.get_request(request.id, bob)).id == request.id
    with pytest.raises(ForbiddenError):
        await engine.get_request(request.id, carol)


async def test_describe_dereferences_current_events(engine, store, make_event, alice, bob):
    mine, theirs = make_event(alice), make_event(bob)
    request = await engine.propose(alice, mine.id, theirs.id)
    await engine.respond(request.id, bob, accept=False)
    del store.events[theirs.id]

    [detail] = await engine.describe([store.requests[request.id]])

    assert detail.requester_event.status is EventStatus.SWAPPABLE
    assert detail.recipient_event is None
