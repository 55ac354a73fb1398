"""Profile Routes — public name/email of a user for swap counterparts."""

from uuid import UUID

from fastapi import APIRouter, Depends

from swapsync.api.dependencies import current_user, get_user_directory
from swapsync.core.domain_types import UserId
from swapsync.core.errors import ResourceNotFoundError
from swapsync.core.repository_protocols import UserDirectory

router = APIRouter(prefix="/api/v1/profiles", tags=["profiles"])


@router.get("/{user_id}")
async def get_profile(
    user_id: UUID,
    _caller: UserId = Depends(current_user),
    users: UserDirectory = Depends(get_user_directory),
):
    user = await users.get_user(UserId(user_id))
    if user is None:
        raise ResourceNotFoundError("User", str(user_id))
    return {"data": {"name": user["name"], "email": user["email"]}}
