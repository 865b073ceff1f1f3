"""User schemas for request/response validation."""

from datetime import datetime
from typing import Literal
from uuid import UUID

from pydantic import BaseModel, EmailStr

Role = Literal["user", "moderator", "admin"]


class UserResponse(BaseModel):
    """Sanitized user view; never carries the password hash or refresh tokens."""

    id: UUID
    username: str
    email: EmailStr
    first_name: str
    last_name: str
    bio: str = ""
    avatar: str = ""
    role: Role
    is_active: bool
    is_verified: bool
    google_id: str | None = None
    last_login_at: datetime | None = None
    created_at: datetime
    updated_at: datetime

    model_config = {"from_attributes": True}


class RoleUpdate(BaseModel):
    """Admin role change request."""

    role: Role
