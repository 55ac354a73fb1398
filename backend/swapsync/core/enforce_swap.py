"""Swap Enforcement — pure validation for proposing and answering swap requests.

Invariants:
    - All functions are PURE: no IO, no async, no DB
    - Proposal checks run in a fixed order: ownership, self-swap, swappability
    - Recipient is always the owner of the recipient event at proposal time
    - A request transitions out of PENDING exactly once

Design Decisions:
    - request id and timestamp passed in (not generated): deterministic tests,
      and the engine's clock stays the only time source
"""

from datetime import datetime
from uuid import UUID

from swapsync.core.domain_types import (
    EventStatus, SwapRequestId, SwapStatus, UserId,
)
from swapsync.core.enforce_status import check_lockable
from swapsync.core.errors import (
    AlreadyResolvedError, ErrorContext, ForbiddenError, SelfSwapError,
)
from swapsync.core.records import (
    EventRecord, RequestTransition, SwapRequestRecord,
)


def check_proposal(
    requester_id: UserId, mine: EventRecord, theirs: EventRecord,
) -> None:
    """Rules 2-4 of propose. Missing events are the caller's concern."""
    if mine.owner_id != requester_id:
        raise ForbiddenError(
            "You do not own the offered event",
            ErrorContext(user_id=str(requester_id), event_id=str(mine.id)),
        )
    if mine.id == theirs.id or mine.owner_id == theirs.owner_id:
        raise SelfSwapError(
            ErrorContext(user_id=str(requester_id), event_id=str(theirs.id)),
        )
    check_lockable(mine)
    check_lockable(theirs)


def build_request(
    request_id: UUID,
    requester_id: UserId,
    mine: EventRecord,
    theirs: EventRecord,
    now: datetime,
) -> SwapRequestRecord:
    return SwapRequestRecord(
        id=SwapRequestId(request_id),
        requester_id=requester_id,
        requester_event_id=mine.id,
        recipient_id=theirs.owner_id,
        recipient_event_id=theirs.id,
        created_at=now,
        status=SwapStatus.PENDING,
    )


def check_response(request: SwapRequestRecord, responder_id: UserId) -> None:
    """Only the recipient may answer, and only while PENDING."""
    if request.recipient_id != responder_id:
        raise ForbiddenError(
            "You are not authorized to respond to this request",
            ErrorContext(user_id=str(responder_id), request_id=str(request.id)),
        )
    if request.status.is_terminal:
        raise AlreadyResolvedError(str(request.id), request.status.value)


def check_viewer(request: SwapRequestRecord, viewer_id: UserId) -> None:
    if viewer_id not in (request.requester_id, request.recipient_id):
        raise ForbiddenError(
            "You are not a party to this request",
            ErrorContext(user_id=str(viewer_id), request_id=str(request.id)),
        )


def plan_resolution(
    request: SwapRequestRecord, accept: bool, now: datetime,
) -> RequestTransition:
    new_status = SwapStatus.ACCEPTED if accept else SwapStatus.REJECTED
    return RequestTransition(
        request_id=request.id,
        expected_status=SwapStatus.PENDING,
        new_status=new_status,
        resolved_at=now,
    )


def count_pending_claims(
    event_id, requests: list[SwapRequestRecord],
) -> int:
    return sum(
        1 for r in requests
        if r.status is SwapStatus.PENDING and r.references(event_id)
    )


def lock_is_consistent(
    event: EventRecord, pending_requests: list[SwapRequestRecord],
) -> bool:
    """Event is SWAP_PENDING iff exactly one PENDING request references it."""
    claims = count_pending_claims(event.id, pending_requests)
    if event.status is EventStatus.SWAP_PENDING:
        return claims == 1
    return claims == 0
