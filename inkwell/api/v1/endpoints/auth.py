"""Authentication endpoints."""

from typing import Annotated

from fastapi import APIRouter, Cookie, Depends, Response, status

from inkwell.config import settings
from inkwell.dependencies import (
    AuthServiceDep,
    CurrentAuth,
    CurrentUser,
    DatabaseSession,
    auth_rate_limit,
)
from inkwell.schemas.auth import (
    AccessTokenResponse,
    AuthResponse,
    ChangePasswordRequest,
    ForgotPasswordRequest,
    GoogleSignInRequest,
    LoginRequest,
    MessageResponse,
    RegisterRequest,
    ResetPasswordRequest,
    TokenRefresh,
    VerifyEmailRequest,
)
from inkwell.schemas.users import UserResponse

router = APIRouter()

RefreshCookie = Annotated[str | None, Cookie(alias=settings.refresh_cookie_name)]

FORGOT_PASSWORD_MESSAGE = (
    "If an account with that email exists, a password reset link has been sent"
)


def set_refresh_cookie(response: Response, refresh_token: str) -> None:
    """Store the refresh token in an HttpOnly cookie."""
    response.set_cookie(
        key=settings.refresh_cookie_name,
        value=refresh_token,
        max_age=int(settings.refresh_token_ttl.total_seconds()),
        httponly=True,
        secure=settings.is_production,
        samesite="strict",
    )


def clear_refresh_cookie(response: Response) -> None:
    response.delete_cookie(
        key=settings.refresh_cookie_name,
        httponly=True,
        secure=settings.is_production,
        samesite="strict",
    )


def _auth_response(message: str, user: dict, access_token: str) -> AuthResponse:
    return AuthResponse(
        message=message,
        user=UserResponse.model_validate(user),
        access_token=access_token,
        expires_in=int(settings.access_token_ttl.total_seconds()),
    )


@router.post(
    "/register",
    response_model=AuthResponse,
    status_code=status.HTTP_201_CREATED,
    summary="Register a new account",
    dependencies=[Depends(auth_rate_limit)],
)
async def register(
    request: RegisterRequest,
    response: Response,
    db: DatabaseSession,
    auth_service: AuthServiceDep,
) -> AuthResponse:
    """
    Create an account and sign it in.

    Returns the user and an access token; the refresh token is set as an
    HttpOnly cookie.
    """
    user, tokens = await auth_service.register(db, request)
    set_refresh_cookie(response, tokens.refresh_token)
    return _auth_response("User registered successfully", user, tokens.access_token)


@router.post(
    "/login",
    response_model=AuthResponse,
    summary="Log in with email and password",
    dependencies=[Depends(auth_rate_limit)],
)
async def login(
    request: LoginRequest,
    response: Response,
    db: DatabaseSession,
    auth_service: AuthServiceDep,
) -> AuthResponse:
    """Authenticate with email and password and open a new session."""
    user, tokens = await auth_service.login(db, request.email, request.password)
    set_refresh_cookie(response, tokens.refresh_token)
    return _auth_response("Login successful", user, tokens.access_token)


@router.post(
    "/google-signin",
    response_model=AuthResponse,
    summary="Sign in or sign up with Google",
    dependencies=[Depends(auth_rate_limit)],
)
async def google_signin(
    request: GoogleSignInRequest,
    response: Response,
    db: DatabaseSession,
    auth_service: AuthServiceDep,
) -> AuthResponse:
    """
    Verify a Firebase ID token from Google sign-in and open a session.

    An existing account with the same email is linked to the Google identity;
    otherwise a new account is created.
    """
    profile = await auth_service.verify_firebase_id_token(request.id_token)
    user, tokens = await auth_service.google_sign_in(db, profile)
    set_refresh_cookie(response, tokens.refresh_token)
    return _auth_response("Google Sign-In successful", user, tokens.access_token)


@router.post(
    "/refresh",
    response_model=AccessTokenResponse,
    summary="Rotate the refresh token and issue a new access token",
)
async def refresh_token(
    response: Response,
    db: DatabaseSession,
    auth_service: AuthServiceDep,
    refresh_cookie: RefreshCookie = None,
    request: TokenRefresh | None = None,
) -> AccessTokenResponse:
    """
    Exchange the refresh token for a new access token.

    The token is read from the body when given, otherwise from the cookie.
    The presented refresh token is invalidated and replaced.
    """
    presented = (request.refresh_token if request else None) or refresh_cookie
    tokens = await auth_service.refresh(db, presented)
    set_refresh_cookie(response, tokens.refresh_token)
    return AccessTokenResponse(
        message="Token refreshed successfully",
        access_token=tokens.access_token,
        expires_in=int(settings.access_token_ttl.total_seconds()),
    )


@router.post("/logout", response_model=MessageResponse, summary="Log out this device")
async def logout(
    response: Response,
    db: DatabaseSession,
    auth_service: AuthServiceDep,
    auth: CurrentAuth,
    refresh_cookie: RefreshCookie = None,
    request: TokenRefresh | None = None,
) -> MessageResponse:
    """Revoke this device's refresh token and clear the cookie."""
    presented = (request.refresh_token if request else None) or refresh_cookie
    await auth_service.logout(db, auth.user_id, presented)
    clear_refresh_cookie(response)
    return MessageResponse(message="Logout successful")


@router.post("/logout-all", response_model=MessageResponse, summary="Log out every device")
async def logout_all(
    response: Response,
    db: DatabaseSession,
    auth_service: AuthServiceDep,
    auth: CurrentAuth,
) -> MessageResponse:
    """Revoke every refresh token of the current user."""
    await auth_service.logout_all(db, auth.user_id)
    clear_refresh_cookie(response)
    return MessageResponse(message="Logged out from all devices")


@router.get("/me", response_model=UserResponse, summary="Current user")
async def get_me(current_user: CurrentUser) -> UserResponse:
    """Return the authenticated user's sanitized profile."""
    return UserResponse.model_validate(current_user)


@router.post(
    "/forgot-password",
    response_model=MessageResponse,
    summary="Request a password reset email",
    dependencies=[Depends(auth_rate_limit)],
)
async def forgot_password(
    request: ForgotPasswordRequest,
    db: DatabaseSession,
    auth_service: AuthServiceDep,
) -> MessageResponse:
    """Always answers with the same message, whether or not the email is registered."""
    await auth_service.forgot_password(db, request.email)
    return MessageResponse(message=FORGOT_PASSWORD_MESSAGE)


@router.post(
    "/reset-password",
    response_model=MessageResponse,
    summary="Reset password with a reset token",
    dependencies=[Depends(auth_rate_limit)],
)
async def reset_password(
    request: ResetPasswordRequest,
    db: DatabaseSession,
    auth_service: AuthServiceDep,
) -> MessageResponse:
    """Set a new password; every existing session is ended."""
    await auth_service.reset_password(db, request.token, request.new_password)
    return MessageResponse(
        message="Password reset successful. Please log in with your new password."
    )


@router.post("/change-password", response_model=MessageResponse, summary="Change password")
async def change_password(
    request: ChangePasswordRequest,
    response: Response,
    db: DatabaseSession,
    auth_service: AuthServiceDep,
    auth: CurrentAuth,
) -> MessageResponse:
    """Change the password of the current user; every session is ended."""
    await auth_service.change_password(
        db, auth.user_id, request.current_password, request.new_password
    )
    clear_refresh_cookie(response)
    return MessageResponse(
        message="Password changed successfully. Please log in with your new password."
    )


@router.post(
    "/request-email-verification",
    response_model=MessageResponse,
    summary="Send an email verification link",
)
async def request_email_verification(
    auth_service: AuthServiceDep,
    current_user: CurrentUser,
) -> MessageResponse:
    """Send a verification link to the current user's email."""
    if not await auth_service.request_email_verification(current_user):
        return MessageResponse(message="Email is already verified")
    return MessageResponse(message="Verification email sent successfully")


@router.post("/verify-email", response_model=MessageResponse, summary="Confirm email address")
async def verify_email(
    request: VerifyEmailRequest,
    db: DatabaseSession,
    auth_service: AuthServiceDep,
) -> MessageResponse:
    """Mark the email as verified using the emailed token."""
    if not await auth_service.verify_email(db, request.token):
        return MessageResponse(message="Email is already verified")
    return MessageResponse(message="Email verified successfully")
