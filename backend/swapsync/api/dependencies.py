"""API Dependencies — resolve collaborators and the caller identity per request.

Invariants:
    - Collaborators come from app.state (built once in the lifespan), never
      from module globals
    - current_user raises UnauthenticatedError for a missing, malformed or
      unknown identity; routes never see an anonymous caller

Design Decisions:
    - Identity is forwarded by the authenticating gateway in a header
      (settings.identity_header); token verification lives upstream
"""

from uuid import UUID

from fastapi import Depends, Request

from swapsync.core.domain_types import UserId
from swapsync.core.errors import UnauthenticatedError
from swapsync.core.repository_protocols import UserDirectory
from swapsync.services.event_status import EventStatusController
from swapsync.services.reconciliation import Reconciler
from swapsync.services.swap_negotiation import SwapNegotiationEngine


def get_controller(request: Request) -> EventStatusController:
    return request.app.state.controller


def get_engine(request: Request) -> SwapNegotiationEngine:
    return request.app.state.engine


def get_reconciler(request: Request) -> Reconciler:
    return request.app.state.reconciler


def get_user_directory(request: Request) -> UserDirectory:
    return request.app.state.users


async def current_user(
    request: Request,
    users: UserDirectory = Depends(get_user_directory),
) -> UserId:
    """Resolve the authenticated caller, or raise UnauthenticatedError."""
    header = request.app.state.settings.identity_header
    raw = request.headers.get(header)
    if not raw:
        raise UnauthenticatedError(f"Missing {header} header")
    try:
        user_id = UserId(UUID(raw))
    except ValueError:
        raise UnauthenticatedError(f"Malformed {header} header")
    if await users.get_user(user_id) is None:
        raise UnauthenticatedError("Unknown user")
    return user_id
