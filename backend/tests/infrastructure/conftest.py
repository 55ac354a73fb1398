"""Infrastructure test fixtures — fresh in-memory SQLite per test.

Invariants:
    - Every test gets its own DatabaseSessionManager (own StaticPool connection)
    - Schema created from ORM metadata, users seeded directly
"""

import uuid
from datetime import datetime, timedelta, timezone

import pytest

from swapsync.core.domain_types import EventId, EventStatus, UserId
from swapsync.core.records import EventRecord
from swapsync.infrastructure.database import DatabaseSessionManager
from swapsync.infrastructure.swap_store import SqlSwapStore, SqlUserDirectory
from swapsync.models.user import User as UserModel


@pytest.fixture
async def db_manager():
    manager = DatabaseSessionManager("sqlite+aiosqlite:///:memory:")
    await manager.create_schema()
    yield manager
    await manager.dispose()


@pytest.fixture
async def users(db_manager):
    """Two seeded users: (alice_id, bob_id)."""
    alice = UserModel(id=uuid.uuid4(), name="Alice", email="alice@example.com")
    bob = UserModel(id=uuid.uuid4(), name="Bob", email="bob@example.com")
    async with db_manager.session() as session:
        async with session.begin():
            session.add_all([alice, bob])
    return UserId(alice.id), UserId(bob.id)


@pytest.fixture
def sql_store(db_manager):
    return SqlSwapStore(db_manager)


@pytest.fixture
def user_directory(db_manager):
    return SqlUserDirectory(db_manager)


@pytest.fixture
def new_event():
    def _build(owner_id, status=EventStatus.SWAPPABLE, day=2, title="Shift"):
        start = datetime(2026, 6, day, 9, 0, tzinfo=timezone.utc)
        return EventRecord(
            id=EventId(uuid.uuid4()),
            owner_id=owner_id,
            title=title,
            start_time=start,
            end_time=start + timedelta(hours=3),
            status=status,
        )
    return _build
