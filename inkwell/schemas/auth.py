"""Authentication schemas."""

import re

from pydantic import BaseModel, EmailStr, Field, field_validator

from inkwell.schemas.users import UserResponse

USERNAME_PATTERN = re.compile(r"^[A-Za-z0-9_]{2,30}$")
NAME_PATTERN = re.compile(r"^[A-Za-z\s]+$")
# 8+ chars with a lowercase, an uppercase, a digit and one of @$!%*?&
PASSWORD_PATTERN = re.compile(r"^(?=.*[a-z])(?=.*[A-Z])(?=.*\d)(?=.*[@$!%*?&])[A-Za-z\d@$!%*?&]{8,}$")


def check_password_strength(value: str) -> str:
    if not PASSWORD_PATTERN.match(value):
        raise ValueError(
            "Password must be at least 8 characters and contain at least 1 uppercase, "
            "1 lowercase, 1 number, and 1 special character (@$!%*?&)"
        )
    return value


class Token(BaseModel):
    """Access/refresh token pair issued for one session."""

    access_token: str
    refresh_token: str
    token_type: str = "bearer"


class RegisterRequest(BaseModel):
    """Account registration request."""

    email: EmailStr
    username: str = Field(..., min_length=2, max_length=30)
    password: str
    first_name: str = Field(..., min_length=1, max_length=50)
    last_name: str = Field(..., min_length=1, max_length=50)
    bio: str | None = Field(None, max_length=500)

    @field_validator("username")
    @classmethod
    def validate_username(cls, value: str) -> str:
        if not USERNAME_PATTERN.match(value):
            raise ValueError("Username can only contain letters, numbers, and underscores")
        return value

    @field_validator("first_name", "last_name")
    @classmethod
    def validate_name(cls, value: str) -> str:
        value = value.strip()
        if not value or not NAME_PATTERN.match(value):
            raise ValueError("Name can only contain letters and spaces")
        return value

    @field_validator("password")
    @classmethod
    def validate_password(cls, value: str) -> str:
        return check_password_strength(value)


class LoginRequest(BaseModel):
    """Email/password login request."""

    email: EmailStr
    password: str = Field(..., min_length=1)


class GoogleSignInRequest(BaseModel):
    """Google sign-in request carrying a Firebase ID token."""

    id_token: str = Field(..., min_length=1, description="Firebase ID token from Google sign-in")


class GoogleUserInfo(BaseModel):
    """Identity asserted by the provider for a federated sign-in."""

    uid: str
    email: EmailStr
    display_name: str | None = None
    photo_url: str | None = None
    email_verified: bool = False


class TokenRefresh(BaseModel):
    """Refresh token supplied in the body by clients that cannot hold cookies."""

    refresh_token: str | None = None


class ForgotPasswordRequest(BaseModel):
    """Password reset request."""

    email: EmailStr


class ResetPasswordRequest(BaseModel):
    """Password reset completion."""

    token: str = Field(..., min_length=1)
    new_password: str

    @field_validator("new_password")
    @classmethod
    def validate_password(cls, value: str) -> str:
        return check_password_strength(value)


class ChangePasswordRequest(BaseModel):
    """Password change for an authenticated user."""

    current_password: str = Field(..., min_length=1)
    new_password: str

    @field_validator("new_password")
    @classmethod
    def validate_password(cls, value: str) -> str:
        return check_password_strength(value)


class VerifyEmailRequest(BaseModel):
    """Email verification completion."""

    token: str = Field(..., min_length=1)


class MessageResponse(BaseModel):
    """Plain acknowledgement."""

    message: str


class AuthResponse(BaseModel):
    """Response for register, login and Google sign-in."""

    message: str
    user: UserResponse
    access_token: str
    token_type: str = "bearer"
    expires_in: int = Field(..., description="Access token lifetime in seconds")


class AccessTokenResponse(BaseModel):
    """Response for a successful refresh."""

    message: str
    access_token: str
    token_type: str = "bearer"
    expires_in: int
