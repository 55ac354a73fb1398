"""SQL Swap Races — concurrent negotiation over SqlSwapStore on in-memory SQLite.

Tests cover:
    - Two proposals for one event: one winner, NotSwappable for the other,
      and every returned request is actually stored
    - Crosswise proposals (each offers the event the other wants): one winner
    - Concurrent accept and reject: one resolution, AlreadyResolved for the other
    - A rolled-back session never undoes a concurrent session's commit
"""

import asyncio
import uuid

import pytest
from sqlalchemy import select, update

from swapsync.core.domain_types import EventStatus, SwapStatus, UserId
from swapsync.core.errors import (
    AlreadyResolvedError, NotSwappableError, StaleVersionError,
)
from swapsync.models.user import User as UserModel
from swapsync.services.event_status import EventStatusController
from swapsync.services.retry import RetryPolicy
from swapsync.services.swap_negotiation import SwapNegotiationEngine


@pytest.fixture
async def carol(db_manager):
    row = UserModel(id=uuid.uuid4(), name="Carol", email="carol@example.com")
    async with db_manager.session() as session:
        async with session.begin():
            session.add(row)
    return UserId(row.id)


@pytest.fixture
def engine(sql_store):
    policy = RetryPolicy(max_retries=3, base_delay_ms=0, max_delay_ms=0)
    controller = EventStatusController(sql_store, retry_policy=policy)
    return SwapNegotiationEngine(sql_store, controller, retry_policy=policy)


def _split(results):
    winners = [r for r in results if not isinstance(r, Exception)]
    losers = [r for r in results if isinstance(r, Exception)]
    return winners, losers


# ─── propose ─────────────────────────────────────────────────────

async def test_two_proposals_for_one_event(engine, sql_store, users, carol, new_event):
    alice, bob = users
    target = await sql_store.insert_event(new_event(bob))
    alices = await sql_store.insert_event(new_event(alice, day=3))
    carols = await sql_store.insert_event(new_event(carol, day=4))

    results = await asyncio.gather(
        engine.propose(alice, alices.id, target.id),
        engine.propose(carol, carols.id, target.id),
        return_exceptions=True,
    )

    winners, losers = _split(results)
    assert len(winners) == 1
    assert len(losers) == 1
    assert isinstance(losers[0], NotSwappableError)

    [winner] = winners
    assert await sql_store.get_request(winner.id) is not None
    assert [r.id for r in await sql_store.list_requests()] == [winner.id]

    loser_event = carols if winner.requester_id == alice else alices
    assert (await sql_store.get_event(target.id)).status is EventStatus.SWAP_PENDING
    assert (await sql_store.get_event(loser_event.id)).status is EventStatus.SWAPPABLE


async def test_crosswise_proposals_one_winner(engine, sql_store, users, new_event):
    alice, bob = users
    alices = await sql_store.insert_event(new_event(alice))
    bobs = await sql_store.insert_event(new_event(bob, day=3))

    results = await asyncio.gather(
        engine.propose(alice, alices.id, bobs.id),
        engine.propose(bob, bobs.id, alices.id),
        return_exceptions=True,
    )

    winners, losers = _split(results)
    assert len(winners) == 1
    assert isinstance(losers[0], NotSwappableError)
    assert [r.id for r in await sql_store.list_requests()] == [winners[0].id]


# ─── respond ─────────────────────────────────────────────────────

async def test_accept_and_reject_resolve_once(engine, sql_store, users, new_event):
    alice, bob = users
    mine = await sql_store.insert_event(new_event(alice))
    theirs = await sql_store.insert_event(new_event(bob, day=3))
    request = await engine.propose(alice, mine.id, theirs.id)

    results = await asyncio.gather(
        engine.respond(request.id, bob, accept=True),
        engine.respond(request.id, bob, accept=False),
        return_exceptions=True,
    )

    resolved, errors = _split(results)
    assert len(resolved) == 1
    assert isinstance(errors[0], AlreadyResolvedError)

    stored = await sql_store.get_request(request.id)
    assert stored.status is resolved[0].status
    expected_owner = bob if stored.status is SwapStatus.ACCEPTED else alice
    assert (await sql_store.get_event(mine.id)).owner_id == expected_owner
    assert (await sql_store.get_event(mine.id)).status is not EventStatus.SWAP_PENDING


# ─── session isolation ───────────────────────────────────────────

async def test_rollback_leaves_concurrent_commit_intact(db_manager, users):
    alice, _ = users

    async def rename():
        async with db_manager.session() as session:
            async with session.begin():
                await session.execute(
                    update(UserModel).where(UserModel.id == alice).values(name="Alicia"),
                )
                await asyncio.sleep(0)

    async def lose_race():
        async with db_manager.session() as session:
            async with session.begin():
                await session.execute(select(UserModel.id))
                raise StaleVersionError("Event", "e1")

    results = await asyncio.gather(rename(), lose_race(), return_exceptions=True)

    assert results[0] is None
    assert isinstance(results[1], StaleVersionError)
    async with db_manager.session() as session:
        name = (await session.execute(
            select(UserModel.name).where(UserModel.id == alice),
        )).scalar_one()
    assert name == "Alicia"
