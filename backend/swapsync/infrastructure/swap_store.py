"""SQL Swap Store — SQLAlchemy implementation of the SwapStore and UserDirectory protocols.

Invariants:
    - Every event write is `UPDATE ... WHERE id = :id AND version = :expected`
      with version + 1; rowcount 0 raises StaleVersionError
    - apply_pair runs in ONE transaction: both event guards, the request
      insert and the guarded request transition commit together or not at all
    - Request transitions are guarded by expected status (PENDING -> terminal once)
    - Multi-row writes run in event-id order so concurrent units take row
      locks in the same order
    - Returned values are core records, never ORM instances

Design Decisions:
    - Core-style UPDATE statements with synchronize_session=False: no identity
      map is shared across calls, every read re-queries
    - Datetimes normalized on the way out: SQLite returns naive values
"""

import logging
from typing import Any

from sqlalchemy import delete, select, update

from swapsync.core.clock import Clock, utc_now
from swapsync.core.domain_types import (
    EventId, EventStatus, SwapRequestId, SwapStatus, UserId,
)
from swapsync.core.enforce_status import normalize_instant
from swapsync.core.errors import StaleVersionError
from swapsync.core.records import (
    AtomicPairUpdate, EventRecord, EventWrite, RequestTransition,
    SwapRequestRecord,
)
from swapsync.infrastructure.database import DatabaseSessionManager
from swapsync.models.event import Event as EventModel
from swapsync.models.swap_request import SwapRequest as SwapRequestModel
from swapsync.models.user import User as UserModel

logger = logging.getLogger(__name__)


# ─── Row <-> record mapping ─────────────────────────────────────

def _aware(value):
    return normalize_instant(value) if value is not None else None


def _event_record(row: EventModel) -> EventRecord:
    return EventRecord(
        id=EventId(row.id),
        owner_id=UserId(row.owner_id),
        title=row.title,
        start_time=_aware(row.start_time),
        end_time=_aware(row.end_time),
        status=EventStatus(row.status),
        version=row.version,
        created_at=_aware(row.created_at),
        updated_at=_aware(row.updated_at),
    )


def _request_record(row: SwapRequestModel) -> SwapRequestRecord:
    return SwapRequestRecord(
        id=SwapRequestId(row.id),
        requester_id=UserId(row.requester_id),
        requester_event_id=EventId(row.requester_event_id),
        recipient_id=UserId(row.recipient_id),
        recipient_event_id=EventId(row.recipient_event_id),
        created_at=_aware(row.created_at),
        status=SwapStatus(row.status),
        resolved_at=_aware(row.resolved_at),
    )


def _column_values(changes: dict[str, Any]) -> dict[str, Any]:
    return {
        key: value.value if isinstance(value, EventStatus) else value
        for key, value in changes.items()
    }


class SqlSwapStore:
    """SwapStore backed by SQLAlchemy async sessions."""

    def __init__(self, db: DatabaseSessionManager, clock: Clock = utc_now):
        self._db = db
        self._clock = clock

    # ─── Events ──────────────────────────────────────────────────

    async def get_event(self, event_id: EventId) -> EventRecord | None:
        async with self._db.session() as session:
            row = await session.get(EventModel, event_id)
            return _event_record(row) if row else None

    async def get_events(
        self, event_ids: list[EventId],
    ) -> dict[EventId, EventRecord]:
        if not event_ids:
            return {}
        async with self._db.session() as session:
            result = await session.execute(
                select(EventModel).where(EventModel.id.in_(set(event_ids))),
            )
            return {
                EventId(row.id): _event_record(row)
                for row in result.scalars().all()
            }

    async def list_events(
        self,
        *,
        owner_id: UserId | None = None,
        status: EventStatus | None = None,
        exclude_owner_id: UserId | None = None,
    ) -> list[EventRecord]:
        query = select(EventModel).order_by(
            EventModel.start_time.asc(), EventModel.id.asc(),
        )
        if owner_id is not None:
            query = query.where(EventModel.owner_id == owner_id)
        if status is not None:
            query = query.where(EventModel.status == status.value)
        if exclude_owner_id is not None:
            query = query.where(EventModel.owner_id != exclude_owner_id)
        async with self._db.session() as session:
            result = await session.execute(query)
            return [_event_record(row) for row in result.scalars().all()]

    async def insert_event(self, event: EventRecord) -> EventRecord:
        now = self._clock()
        row = EventModel(
            id=event.id,
            owner_id=event.owner_id,
            title=event.title,
            start_time=event.start_time,
            end_time=event.end_time,
            status=event.status.value,
            version=1,
            created_at=event.created_at or now,
            updated_at=now,
        )
        async with self._db.session() as session:
            async with session.begin():
                session.add(row)
            return _event_record(row)

    async def update_event(self, write: EventWrite) -> EventRecord:
        async with self._db.session() as session:
            async with session.begin():
                await self._guarded_event_update(session, write)
                return await self._load_event(session, write.event_id)

    async def delete_event(
        self, event_id: EventId, expected_version: int,
    ) -> None:
        async with self._db.session() as session:
            async with session.begin():
                result = await session.execute(
                    delete(EventModel)
                    .where(
                        EventModel.id == event_id,
                        EventModel.version == expected_version,
                        EventModel.status != EventStatus.SWAP_PENDING.value,
                    )
                    .execution_options(synchronize_session=False),
                )
                if result.rowcount != 1:
                    raise StaleVersionError("Event", str(event_id))

    # ─── Swap requests ───────────────────────────────────────────

    async def get_request(
        self, request_id: SwapRequestId,
    ) -> SwapRequestRecord | None:
        async with self._db.session() as session:
            row = await session.get(SwapRequestModel, request_id)
            return _request_record(row) if row else None

    async def list_requests(
        self,
        *,
        requester_id: UserId | None = None,
        recipient_id: UserId | None = None,
        status: SwapStatus | None = None,
    ) -> list[SwapRequestRecord]:
        query = select(SwapRequestModel).order_by(
            SwapRequestModel.created_at.desc(), SwapRequestModel.id.desc(),
        )
        if requester_id is not None:
            query = query.where(SwapRequestModel.requester_id == requester_id)
        if recipient_id is not None:
            query = query.where(SwapRequestModel.recipient_id == recipient_id)
        if status is not None:
            query = query.where(SwapRequestModel.status == status.value)
        async with self._db.session() as session:
            result = await session.execute(query)
            return [_request_record(row) for row in result.scalars().all()]

    # ─── Multi-document unit ─────────────────────────────────────

    async def apply_pair(
        self, update: AtomicPairUpdate,
    ) -> tuple[EventRecord, EventRecord]:
        async with self._db.session() as session:
            async with session.begin():
                for write in _lock_order(update.writes):
                    await self._guarded_event_update(session, write)
                if update.request_transition is not None:
                    await self._guarded_request_transition(
                        session, update.request_transition,
                    )
                if update.request_insert is not None:
                    session.add(_request_model(update.request_insert))
                    await session.flush()
                first = await self._load_event(session, update.first.event_id)
                second = await self._load_event(session, update.second.event_id)
        logger.debug(
            "Pair update committed",
            extra={"event_id": f"{first.id},{second.id}"},
        )
        return first, second

    async def apply_request_transition(
        self,
        transition: RequestTransition,
        writes: tuple[EventWrite, ...] = (),
    ) -> None:
        """Guarded request transition plus any event writes, one transaction."""
        async with self._db.session() as session:
            async with session.begin():
                for write in _lock_order(writes):
                    await self._guarded_event_update(session, write)
                await self._guarded_request_transition(session, transition)

    # ─── Guards ──────────────────────────────────────────────────

    async def _guarded_event_update(self, session, write: EventWrite) -> None:
        result = await session.execute(
            update(EventModel)
            .where(
                EventModel.id == write.event_id,
                EventModel.version == write.expected_version,
            )
            .values(
                **_column_values(write.changes),
                version=EventModel.version + 1,
                updated_at=self._clock(),
            )
            .execution_options(synchronize_session=False),
        )
        if result.rowcount != 1:
            raise StaleVersionError("Event", str(write.event_id))

    async def _guarded_request_transition(
        self, session, transition: RequestTransition,
    ) -> None:
        result = await session.execute(
            update(SwapRequestModel)
            .where(
                SwapRequestModel.id == transition.request_id,
                SwapRequestModel.status == transition.expected_status.value,
            )
            .values(
                status=transition.new_status.value,
                resolved_at=transition.resolved_at,
            )
            .execution_options(synchronize_session=False),
        )
        if result.rowcount != 1:
            raise StaleVersionError("SwapRequest", str(transition.request_id))

    async def _load_event(self, session, event_id: EventId) -> EventRecord:
        result = await session.execute(
            select(EventModel)
            .where(EventModel.id == event_id)
            .execution_options(populate_existing=True),
        )
        return _event_record(result.scalar_one())


def _lock_order(writes) -> list[EventWrite]:
    return sorted(writes, key=lambda write: str(write.event_id))


def _request_model(record: SwapRequestRecord) -> SwapRequestModel:
    return SwapRequestModel(
        id=record.id,
        requester_id=record.requester_id,
        requester_event_id=record.requester_event_id,
        recipient_id=record.recipient_id,
        recipient_event_id=record.recipient_event_id,
        status=record.status.value,
        created_at=record.created_at,
        resolved_at=record.resolved_at,
    )


class SqlUserDirectory:
    """UserDirectory backed by the users table."""

    def __init__(self, db: DatabaseSessionManager):
        self._db = db

    async def get_user(self, user_id: UserId) -> dict | None:
        async with self._db.session() as session:
            row = await session.get(UserModel, user_id)
            return _user_summary(row) if row else None

    async def get_users(self, user_ids: list[UserId]) -> dict[UserId, dict]:
        if not user_ids:
            return {}
        async with self._db.session() as session:
            result = await session.execute(
                select(UserModel).where(UserModel.id.in_(set(user_ids))),
            )
            return {
                UserId(row.id): _user_summary(row)
                for row in result.scalars().all()
            }


def _user_summary(row: UserModel) -> dict:
    return {"id": row.id, "name": row.name, "email": row.email}
