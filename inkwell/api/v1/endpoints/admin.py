"""Admin-only endpoints for user management."""

from typing import Annotated
from uuid import UUID

import structlog
from fastapi import APIRouter, Depends

from inkwell.core.exceptions import BadRequestException
from inkwell.dependencies import AuthContext, CacheManagerDep, DatabaseSession, require_admin
from inkwell.schemas.users import RoleUpdate, UserResponse
from inkwell.services.user_service import UserService

logger = structlog.get_logger(__name__)

router = APIRouter(prefix="/admin", tags=["Admin"])

AdminContext = Annotated[AuthContext, Depends(require_admin)]


def _reject_self(admin: AuthContext, user_id: UUID, action: str) -> None:
    if str(admin.user_id) == str(user_id):
        raise BadRequestException(f"You cannot {action} your own account", code="SELF_ACTION")


@router.put(
    "/users/{user_id}/ban",
    response_model=UserResponse,
    summary="Deactivate a user (admin only)",
)
async def ban_user(
    user_id: UUID,
    db: DatabaseSession,
    cache_manager: CacheManagerDep,
    admin: AdminContext,
) -> UserResponse:
    """
    Deactivate an account.

    The user's refresh tokens are cleared and every further request with an
    outstanding access token is rejected as deactivated.
    """
    _reject_self(admin, user_id, "ban")
    user = await UserService(cache_manager).set_active(db, user_id, False)
    logger.info("user_banned", user_id=str(user_id), admin_id=str(admin.user_id))
    return UserResponse.model_validate(user)


@router.put(
    "/users/{user_id}/unban",
    response_model=UserResponse,
    summary="Reactivate a user (admin only)",
)
async def unban_user(
    user_id: UUID,
    db: DatabaseSession,
    cache_manager: CacheManagerDep,
    admin: AdminContext,
) -> UserResponse:
    user = await UserService(cache_manager).set_active(db, user_id, True)
    logger.info("user_unbanned", user_id=str(user_id), admin_id=str(admin.user_id))
    return UserResponse.model_validate(user)


@router.put(
    "/users/{user_id}/role",
    response_model=UserResponse,
    summary="Change a user's role (admin only)",
)
async def update_user_role(
    user_id: UUID,
    role_data: RoleUpdate,
    db: DatabaseSession,
    cache_manager: CacheManagerDep,
    admin: AdminContext,
) -> UserResponse:
    """Assign ``user``, ``moderator`` or ``admin``; admins cannot change their own role."""
    _reject_self(admin, user_id, "change the role of")
    user = await UserService(cache_manager).update_user(db, user_id, role=role_data.role)
    logger.info(
        "user_role_changed", user_id=str(user_id), role=role_data.role, admin_id=str(admin.user_id)
    )
    return UserResponse.model_validate(user)
