"""API test fixtures — FastAPI app wired to a fresh in-memory database.

Invariants:
    - Every test gets its own DatabaseSessionManager and service graph on
      app.state (wire_services), so no state leaks between tests
    - The lifespan is not run by ASGITransport; schema and users are set up here
    - Requests authenticate by sending the identity header with a seeded user id
"""

import uuid
from dataclasses import dataclass

import pytest
from httpx import ASGITransport, AsyncClient

from swapsync.config import get_settings
from swapsync.infrastructure.database import DatabaseSessionManager
from swapsync.main import app, wire_services
from swapsync.models.user import User as UserModel


@dataclass(frozen=True)
class Actor:
    id: uuid.UUID
    name: str
    email: str

    @property
    def headers(self) -> dict[str, str]:
        return {get_settings().identity_header: str(self.id)}


@pytest.fixture
async def db_manager():
    manager = DatabaseSessionManager("sqlite+aiosqlite:///:memory:")
    await manager.create_schema()
    wire_services(app, get_settings(), manager)
    yield manager
    await manager.dispose()


@pytest.fixture
async def actors(db_manager):
    """Three seeded users keyed by first name."""
    seeded = {
        name: Actor(uuid.uuid4(), name.title(), f"{name}@example.com")
        for name in ("alice", "bob", "carol")
    }
    async with db_manager.session() as session:
        async with session.begin():
            session.add_all(
                UserModel(id=a.id, name=a.name, email=a.email)
                for a in seeded.values()
            )
    return seeded


@pytest.fixture
def alice(actors):
    return actors["alice"]


@pytest.fixture
def bob(actors):
    return actors["bob"]


@pytest.fixture
def carol(actors):
    return actors["carol"]


@pytest.fixture
async def client(db_manager):
    async with AsyncClient(
        transport=ASGITransport(app=app), base_url="http://test",
    ) as c:
        yield c


@pytest.fixture
def create_event(client):
    """POST an event as `actor` and return its JSON representation."""
    async def _create(actor, status="SWAPPABLE", day=2, title="Shift"):
        res = await client.post(
            "/api/v1/events",
            json={
                "title": title,
                "start_time": f"2026-07-{day:02d}T09:00:00Z",
                "end_time": f"2026-07-{day:02d}T17:00:00Z",
                "status": status,
            },
            headers=actor.headers,
        )
        assert res.status_code == 201, res.text
        return res.json()["data"]
    return _create
