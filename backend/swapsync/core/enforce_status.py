"""Event Status Enforcement — pure state-machine rules and write planning for events.

Invariants:
    - All functions are PURE: no IO, no async, no DB, no side effects
    - Every status write in the system is produced by a plan_* function here
    - SWAP_PENDING blocks set_exchangeable, edits and deletion
    - Every EventWrite is bound to the version of the snapshot it was planned from

State machine:
    BUSY         --set_exchangeable(SWAPPABLE)--> SWAPPABLE
    SWAPPABLE    --set_exchangeable(BUSY)-------> BUSY
    SWAPPABLE    --lock-------------------------> SWAP_PENDING
    SWAP_PENDING --release----------------------> SWAPPABLE
    SWAP_PENDING --finalize_exchange------------> BUSY (owner changed)

Design Decisions:
    - Raise typed errors (not return dicts): callers are services, not tool loops
    - Instants normalized to UTC here so every store sees the same representation
"""

from datetime import datetime, timezone

from swapsync.core.domain_types import (
    EventStatus, OWNER_SETTABLE_STATUSES, RELEASE_TARGETS,
)
from swapsync.core.errors import (
    EventLockedError, EventValidationError, InvalidTransitionError,
    NotSwappableError,
)
from swapsync.core.records import EventRecord, EventWrite

MAX_TITLE_LENGTH = 200


# ─── Attribute validation ───────────────────────────────────────

def normalize_instant(value: datetime) -> datetime:
    """Naive datetimes are taken as UTC; aware ones converted to UTC."""
    if value.tzinfo is None:
        return value.replace(tzinfo=timezone.utc)
    return value.astimezone(timezone.utc)


def validate_time_range(
    start_time: datetime, end_time: datetime,
) -> tuple[datetime, datetime]:
    start = normalize_instant(start_time)
    end = normalize_instant(end_time)
    if end <= start:
        raise EventValidationError(
            "End time must be after start time", "end_time",
        )
    return start, end


def validate_title(title: str) -> str:
    cleaned = title.strip()
    if not cleaned:
        raise EventValidationError("Title cannot be empty", "title")
    if len(cleaned) > MAX_TITLE_LENGTH:
        raise EventValidationError(
            f"Title exceeds {MAX_TITLE_LENGTH} characters", "title",
        )
    return cleaned


def validate_initial_status(status: EventStatus) -> EventStatus:
    """New events start BUSY or SWAPPABLE; a lock only comes from a swap."""
    if status not in OWNER_SETTABLE_STATUSES:
        raise EventValidationError(
            f"Events cannot be created with status {status.value}", "status",
        )
    return status


# ─── Transition checks ──────────────────────────────────────────

def check_mutable(event: EventRecord) -> None:
    """Edits and deletion are blocked while a swap is pending."""
    if event.is_locked:
        raise EventLockedError(str(event.id))


def check_set_exchangeable(event: EventRecord, desired: EventStatus) -> None:
    check_mutable(event)
    if desired not in OWNER_SETTABLE_STATUSES:
        raise InvalidTransitionError(
            str(event.id), event.status.value, desired.value,
        )


def check_lockable(event: EventRecord) -> None:
    if event.status is not EventStatus.SWAPPABLE:
        raise NotSwappableError(str(event.id), event.status.value)


def check_releasable(event: EventRecord, target: EventStatus) -> None:
    if not event.is_locked or target not in RELEASE_TARGETS:
        raise InvalidTransitionError(
            str(event.id), event.status.value, target.value,
        )


def check_finalizable(event: EventRecord) -> None:
    if not event.is_locked:
        raise InvalidTransitionError(
            str(event.id), event.status.value, EventStatus.BUSY.value,
        )


# ─── Write planning ─────────────────────────────────────────────

def plan_status_change(event: EventRecord, desired: EventStatus) -> EventWrite:
    check_set_exchangeable(event, desired)
    return EventWrite(event.id, event.version, {"status": desired})


def plan_lock(event: EventRecord) -> EventWrite:
    check_lockable(event)
    return EventWrite(
        event.id, event.version, {"status": EventStatus.SWAP_PENDING},
    )


def plan_release(
    event: EventRecord, target: EventStatus = EventStatus.SWAPPABLE,
) -> EventWrite:
    check_releasable(event, target)
    return EventWrite(event.id, event.version, {"status": target})


def plan_exchange(
    first: EventRecord, second: EventRecord,
) -> tuple[EventWrite, EventWrite]:
    """Swap owners of two locked events; both end BUSY."""
    check_finalizable(first)
    check_finalizable(second)
    return (
        EventWrite(first.id, first.version, {
            "owner_id": second.owner_id, "status": EventStatus.BUSY,
        }),
        EventWrite(second.id, second.version, {
            "owner_id": first.owner_id, "status": EventStatus.BUSY,
        }),
    )


def plan_edit(
    event: EventRecord,
    *,
    title: str | None = None,
    start_time: datetime | None = None,
    end_time: datetime | None = None,
    status: EventStatus | None = None,
) -> EventWrite:
    """Owner edit of title/time/status. Unset fields keep their value."""
    check_mutable(event)
    changes: dict = {}
    if title is not None:
        changes["title"] = validate_title(title)
    if start_time is not None or end_time is not None:
        start, end = validate_time_range(
            start_time if start_time is not None else event.start_time,
            end_time if end_time is not None else event.end_time,
        )
        changes["start_time"] = start
        changes["end_time"] = end
    if status is not None:
        check_set_exchangeable(event, status)
        changes["status"] = status
    return EventWrite(event.id, event.version, changes)
