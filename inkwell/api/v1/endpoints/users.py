"""User endpoints."""

from typing import Annotated
from uuid import UUID

from fastapi import APIRouter, Depends

from inkwell.core.exceptions import NotFoundException
from inkwell.dependencies import AuthContext, CacheManagerDep, DatabaseSession, require_moderator
from inkwell.schemas.users import UserResponse
from inkwell.services.user_service import UserService

router = APIRouter(prefix="/users", tags=["users"])


@router.get("/{user_id}", response_model=UserResponse)
async def get_user(
    user_id: UUID,
    cache_manager: CacheManagerDep,
    db: DatabaseSession,
    _moderator: Annotated[AuthContext, Depends(require_moderator)],
):
    """Get any user's profile (moderators and admins)."""
    user = await UserService(cache_manager).get_user_by_id(db, user_id)

    if not user:
        raise NotFoundException("User not found", code="USER_NOT_FOUND")

    return UserResponse.model_validate(user)
