"""Event Routes — owner CRUD, exchangeability toggle and the swappable marketplace.

Invariants:
    - Every route runs as the authenticated caller (current_user)
    - Status-affecting mutations go through EventStatusController only
    - Foreign events answer 404, never 403 (ownership is not disclosed)
    - Edit is served on both PATCH and PUT (older clients use PUT)

Design Decisions:
    - /swappable and /my-swappable declared before /{event_id} so the
      literal paths win
"""

import logging
from uuid import UUID

from fastapi import APIRouter, Depends, Query, status

from swapsync.api.dependencies import (
    current_user, get_controller, get_user_directory,
)
from swapsync.core.domain_types import EventId, EventStatus, UserId
from swapsync.core.repository_protocols import UserDirectory
from swapsync.schemas.event import (
    EventCreate, EventResponse, EventStatusUpdate, EventUpdate,
)
from swapsync.services.event_status import EventStatusController

logger = logging.getLogger(__name__)
router = APIRouter(prefix="/api/v1/events", tags=["events"])


@router.get("")
async def list_my_events(
    status_filter: EventStatus | None = Query(None, alias="status"),
    user_id: UserId = Depends(current_user),
    controller: EventStatusController = Depends(get_controller),
):
    """List the caller's events, earliest first."""
    events = await controller.list_owned(user_id, status_filter)
    return {"data": [EventResponse.from_record(e) for e in events]}


@router.get("/swappable")
async def list_marketplace(
    user_id: UserId = Depends(current_user),
    controller: EventStatusController = Depends(get_controller),
    users: UserDirectory = Depends(get_user_directory),
):
    """Other users' SWAPPABLE events with owner name/email."""
    events = await controller.list_marketplace(user_id)
    owners = await users.get_users(list({e.owner_id for e in events}))
    return {
        "data": [
            EventResponse.from_record(e, owners.get(e.owner_id))
            for e in events
        ],
    }


@router.get("/my-swappable")
async def list_my_swappable(
    user_id: UserId = Depends(current_user),
    controller: EventStatusController = Depends(get_controller),
):
    """The caller's own SWAPPABLE events (what they can offer)."""
    events = await controller.list_owned(user_id, EventStatus.SWAPPABLE)
    return {"data": [EventResponse.from_record(e) for e in events]}


@router.post("", status_code=status.HTTP_201_CREATED)
async def create_event(
    body: EventCreate,
    user_id: UserId = Depends(current_user),
    controller: EventStatusController = Depends(get_controller),
):
    event = await controller.create_event(
        user_id, body.title, body.start_time, body.end_time,
        EventStatus(body.status),
    )
    return {"data": EventResponse.from_record(event)}


@router.patch("/{event_id}")
@router.put("/{event_id}", include_in_schema=False)
async def edit_event(
    event_id: UUID,
    body: EventUpdate,
    user_id: UserId = Depends(current_user),
    controller: EventStatusController = Depends(get_controller),
):
    """Edit title/time/status. Rejected while a swap is pending."""
    event = await controller.edit_event(
        EventId(event_id), user_id,
        title=body.title,
        start_time=body.start_time,
        end_time=body.end_time,
        status=EventStatus(body.status) if body.status else None,
    )
    return {"data": EventResponse.from_record(event)}


@router.put("/{event_id}/status")
async def set_exchangeable(
    event_id: UUID,
    body: EventStatusUpdate,
    user_id: UserId = Depends(current_user),
    controller: EventStatusController = Depends(get_controller),
):
    """Toggle BUSY <-> SWAPPABLE."""
    event = await controller.set_exchangeable(
        EventId(event_id), user_id, EventStatus(body.status),
    )
    return {"data": EventResponse.from_record(event)}


@router.delete("/{event_id}")
async def delete_event(
    event_id: UUID,
    user_id: UserId = Depends(current_user),
    controller: EventStatusController = Depends(get_controller),
):
    """Delete an event unless it is locked by a pending swap."""
    await controller.delete_event(EventId(event_id), user_id)
    return {"message": "Event deleted"}
