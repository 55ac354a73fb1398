"""Swap Request Routes — propose, respond, and list negotiations.

Invariants:
    - Routes never contain business logic (delegate to SwapNegotiationEngine)
    - Every response dereferences events through the engine (no stale embeds)
    - Listings ordered newest first
    - respond is served on both POST and PUT (older clients use PUT)
"""

import logging
from uuid import UUID

from fastapi import APIRouter, Depends, status

from swapsync.api.dependencies import (
    current_user, get_engine, get_user_directory,
)
from swapsync.core.domain_types import EventId, SwapRequestId, UserId
from swapsync.core.records import SwapRequestRecord
from swapsync.core.repository_protocols import UserDirectory
from swapsync.schemas.swap_request import (
    SwapProposal, SwapRequestResponse, SwapResponseBody,
)
from swapsync.services.swap_negotiation import SwapNegotiationEngine

logger = logging.getLogger(__name__)
router = APIRouter(prefix="/api/v1/swap-requests", tags=["swap-requests"])


async def _render(
    requests: list[SwapRequestRecord],
    engine: SwapNegotiationEngine,
    users: UserDirectory,
) -> list[SwapRequestResponse]:
    details = await engine.describe(requests)
    user_ids = {
        uid for r in requests for uid in (r.requester_id, r.recipient_id)
    }
    summaries = await users.get_users(list(user_ids))
    return [SwapRequestResponse.from_detail(d, summaries) for d in details]


@router.get("/incoming")
async def list_incoming(
    user_id: UserId = Depends(current_user),
    engine: SwapNegotiationEngine = Depends(get_engine),
    users: UserDirectory = Depends(get_user_directory),
):
    requests = await engine.list_incoming(user_id)
    return {"data": await _render(requests, engine, users)}


@router.get("/outgoing")
async def list_outgoing(
    user_id: UserId = Depends(current_user),
    engine: SwapNegotiationEngine = Depends(get_engine),
    users: UserDirectory = Depends(get_user_directory),
):
    requests = await engine.list_outgoing(user_id)
    return {"data": await _render(requests, engine, users)}


@router.post("", status_code=status.HTTP_201_CREATED)
async def propose_swap(
    body: SwapProposal,
    user_id: UserId = Depends(current_user),
    engine: SwapNegotiationEngine = Depends(get_engine),
    users: UserDirectory = Depends(get_user_directory),
):
    """Offer my event for theirs; both get locked as SWAP_PENDING."""
    request = await engine.propose(
        user_id, EventId(body.my_event_id), EventId(body.their_event_id),
    )
    [rendered] = await _render([request], engine, users)
    return {"data": rendered}


@router.get("/{request_id}")
async def get_swap_request(
    request_id: UUID,
    user_id: UserId = Depends(current_user),
    engine: SwapNegotiationEngine = Depends(get_engine),
    users: UserDirectory = Depends(get_user_directory),
):
    request = await engine.get_request(SwapRequestId(request_id), user_id)
    [rendered] = await _render([request], engine, users)
    return {"data": rendered}


@router.post("/{request_id}/respond")
@router.put("/{request_id}/respond", include_in_schema=False)
async def respond_to_swap(
    request_id: UUID,
    body: SwapResponseBody,
    user_id: UserId = Depends(current_user),
    engine: SwapNegotiationEngine = Depends(get_engine),
    users: UserDirectory = Depends(get_user_directory),
):
    """Recipient accepts (owners exchanged) or rejects (locks released)."""
    request = await engine.respond(
        SwapRequestId(request_id), user_id, body.accept,
    )
    [rendered] = await _render([request], engine, users)
    return {"data": rendered}
