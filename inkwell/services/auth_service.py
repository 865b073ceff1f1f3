"""Authentication service: session lifecycle for password and Google sign-in."""

import re
import secrets
from datetime import UTC, datetime
from uuid import UUID

import structlog
from sqlalchemy.ext.asyncio import AsyncSession

from inkwell.config import settings
from inkwell.core.exceptions import (
    ConflictException,
    ExternalServiceException,
    NotFoundException,
    UnauthorizedException,
)
from inkwell.core.firebase import verify_firebase_token
from inkwell.core.redis_client import CacheManager
from inkwell.core.security import (
    TokenKind,
    create_access_token,
    create_email_verification_token,
    create_password_reset_token,
    create_refresh_token,
    decode_refresh_token,
    get_password_hash,
    get_unusable_password_hash,
    verify_password,
    verify_password_or_dummy,
    verify_token,
)
from inkwell.schemas.auth import GoogleUserInfo, RegisterRequest, Token
from inkwell.services.email_service import EmailService
from inkwell.services.user_service import UserService

logger = structlog.get_logger(__name__)

INVALID_CREDENTIALS = "Invalid credentials"


def _parse_user_id(value: str | None) -> UUID | None:
    try:
        return UUID(str(value))
    except ValueError:
        return None


class AuthService:
    """Authentication service for registration, login and token lifecycle."""

    def __init__(
        self,
        cache_manager: CacheManager | None = None,
        email_service: EmailService | None = None,
    ):
        """Initialize auth service with cache manager and email sender."""
        self.cache = cache_manager
        self.users = UserService(cache_manager)
        self.email = email_service or EmailService()

    # Token issuance

    def create_tokens(self, user_id: UUID | str, role: str) -> Token:
        """
        Create access and refresh tokens for a user.

        Args:
            user_id: User identifier (internal UUID)
            role: Role embedded in the access token

        Returns:
            Token pair (access and refresh)
        """
        return Token(
            access_token=create_access_token(str(user_id), role),
            refresh_token=create_refresh_token(str(user_id)),
            token_type="bearer",
        )

    @staticmethod
    def _refresh_expiry() -> datetime:
        return datetime.now(UTC) + settings.refresh_token_ttl

    async def _start_session(self, db: AsyncSession, user: dict) -> tuple[dict, Token]:
        """Issue a token pair and record the refresh entry plus last login."""
        tokens = self.create_tokens(user["id"], user["role"])
        await self.users.add_refresh_token(
            db,
            user["id"],
            tokens.refresh_token,
            self._refresh_expiry(),
            record_login=True,
        )
        refreshed = await self.users.get_user_by_id(db, user["id"])
        return refreshed or user, tokens

    # Registration and login

    async def register(self, db: AsyncSession, data: RegisterRequest) -> tuple[dict, Token]:
        """
        Create an account and open its first session.

        Raises:
            ConflictException: If the email or username is already taken
        """
        email = data.email.lower()
        username = data.username.lower()

        for existing in await self.users.find_by_email_or_username(db, email, username):
            if existing["email"] == email:
                raise ConflictException(
                    "Email already registered", code="EMAIL_TAKEN", details={"field": "email"}
                )
            if existing["username"] == username:
                raise ConflictException(
                    "Username already taken",
                    code="USERNAME_TAKEN",
                    details={"field": "username"},
                )

        user = await self.users.create_user(
            db,
            email=email,
            username=username,
            password_hash=get_password_hash(data.password),
            first_name=data.first_name,
            last_name=data.last_name,
            bio=data.bio or "",
        )
        logger.info("user_registered", user_id=str(user["id"]))

        user, tokens = await self._start_session(db, user)

        try:
            await self.email.send_welcome_email(user)
        except ExternalServiceException as e:
            logger.warning("welcome_email_failed", user_id=str(user["id"]), error=e.message)

        return user, tokens

    async def login(self, db: AsyncSession, email: str, password: str) -> tuple[dict, Token]:
        """
        Authenticate with email and password.

        Unknown email and wrong password produce the same error.

        Raises:
            UnauthorizedException: On bad credentials or a deactivated account
        """
        record = await self.users.get_user_by_email(db, email)

        if record is None:
            verify_password_or_dummy(password, None)
            logger.info("login_failed", reason="unknown_email")
            raise UnauthorizedException(INVALID_CREDENTIALS, code="INVALID_CREDENTIALS")

        if not record["is_active"]:
            logger.info("login_failed", reason="deactivated", user_id=str(record["id"]))
            raise UnauthorizedException("Account is deactivated", code="ACCOUNT_DEACTIVATED")

        if not verify_password(password, record["password_hash"]):
            logger.info("login_failed", reason="bad_password", user_id=str(record["id"]))
            raise UnauthorizedException(INVALID_CREDENTIALS, code="INVALID_CREDENTIALS")

        record.pop("password_hash", None)
        user, tokens = await self._start_session(db, record)
        logger.info("user_logged_in", user_id=str(user["id"]))
        return user, tokens

    # Refresh and logout

    async def refresh(self, db: AsyncSession, refresh_token: str | None) -> Token:
        """
        Exchange a refresh token for a new pair, rotating the stored entry.

        The presented token must still be in the user's list; once rotated
        away or revoked it is rejected even before it expires.

        Raises:
            UnauthorizedException: If the token is missing, invalid, revoked,
                or its user is gone or inactive
        """
        if not refresh_token:
            raise UnauthorizedException("Refresh token is required", code="REFRESH_TOKEN_MISSING")

        result = decode_refresh_token(refresh_token)
        if not result.valid:
            if result.expired:
                raise UnauthorizedException(
                    "Refresh token has expired", code="REFRESH_TOKEN_EXPIRED"
                )
            raise UnauthorizedException("Invalid refresh token", code="REFRESH_TOKEN_INVALID")

        user_id = _parse_user_id(result.user_id)
        if user_id is None:
            raise UnauthorizedException("Invalid refresh token", code="REFRESH_TOKEN_INVALID")

        user = await self.users.get_user_by_id(db, user_id)
        if not user or not user["is_active"]:
            raise UnauthorizedException("User not found or inactive", code="USER_INACTIVE")

        if not await self.users.has_refresh_token(db, user_id, refresh_token):
            logger.warning("refresh_token_reuse_detected", user_id=str(user_id))
            raise UnauthorizedException(
                "Refresh token has been revoked", code="REFRESH_TOKEN_REVOKED"
            )

        tokens = self.create_tokens(user_id, user["role"])
        rotated = await self.users.rotate_refresh_token(
            db, user_id, refresh_token, tokens.refresh_token, self._refresh_expiry()
        )
        if not rotated:
            # Lost a race with a concurrent refresh or logout of the same token
            logger.warning("refresh_token_reuse_detected", user_id=str(user_id))
            raise UnauthorizedException(
                "Refresh token has been revoked", code="REFRESH_TOKEN_REVOKED"
            )

        logger.info("refresh_token_rotated", user_id=str(user_id))
        return tokens

    async def logout(self, db: AsyncSession, user_id: UUID, refresh_token: str | None) -> None:
        """Remove one refresh-token entry. Missing or unknown tokens are not an error."""
        if refresh_token:
            removed = await self.users.remove_refresh_token(db, user_id, refresh_token)
            logger.info("user_logged_out", user_id=str(user_id), token_removed=removed)

    async def logout_all(self, db: AsyncSession, user_id: UUID) -> int:
        """End every session of a user. Returns the number of entries removed."""
        removed = await self.users.clear_refresh_tokens(db, user_id)
        logger.info("user_logged_out_everywhere", user_id=str(user_id), sessions=removed)
        return removed

    # Passwords

    async def forgot_password(self, db: AsyncSession, email: str) -> None:
        """
        Email a password reset link if the account exists.

        Never reveals whether the email is registered: unknown emails and
        delivery failures both return normally.
        """
        user = await self.users.get_user_by_email(db, email)
        if user is None:
            logger.info("password_reset_requested", known_email=False)
            return

        token = create_password_reset_token(str(user["id"]))
        try:
            await self.email.send_password_reset_email(user, token)
        except ExternalServiceException as e:
            logger.error("password_reset_email_failed", user_id=str(user["id"]), error=e.message)
        logger.info("password_reset_requested", known_email=True, user_id=str(user["id"]))

    async def reset_password(self, db: AsyncSession, token: str, new_password: str) -> None:
        """
        Set a new password from a reset token and end every session.

        Raises:
            UnauthorizedException: If the token is not a current password reset token
            NotFoundException: If the user no longer exists
        """
        result = verify_token(token, TokenKind.PASSWORD_RESET)
        user_id = _parse_user_id(result.user_id) if result.valid else None
        if user_id is None:
            raise UnauthorizedException(
                "Invalid or expired reset token", code="INVALID_RESET_TOKEN"
            )

        if await self.users.get_password_hash(db, user_id) is None:
            raise NotFoundException("User not found", code="USER_NOT_FOUND")

        await self.users.set_password(db, user_id, get_password_hash(new_password))
        logger.info("password_reset_completed", user_id=str(user_id))

    async def change_password(
        self,
        db: AsyncSession,
        user_id: UUID,
        current_password: str,
        new_password: str,
    ) -> None:
        """
        Change the password of an authenticated user and end every session.

        Raises:
            UnauthorizedException: If ``current_password`` does not match
        """
        password_hash = await self.users.get_password_hash(db, user_id)
        if not verify_password_or_dummy(current_password, password_hash):
            raise UnauthorizedException(
                "Current password is incorrect", code="INVALID_CURRENT_PASSWORD"
            )

        await self.users.set_password(db, user_id, get_password_hash(new_password))
        logger.info("password_changed", user_id=str(user_id))

    # Email verification

    async def request_email_verification(self, user: dict) -> bool:
        """
        Send a verification link.

        Returns:
            False if the email is already verified (nothing sent), True otherwise
        """
        if user["is_verified"]:
            return False

        token = create_email_verification_token(str(user["id"]))
        await self.email.send_verification_email(user, token)
        logger.info("email_verification_requested", user_id=str(user["id"]))
        return True

    async def verify_email(self, db: AsyncSession, token: str) -> bool:
        """
        Mark the token's user as verified.

        Returns:
            False if the user was already verified, True if this call verified them

        Raises:
            UnauthorizedException: If the token is not a current verification token
            NotFoundException: If the user no longer exists
        """
        result = verify_token(token, TokenKind.EMAIL_VERIFICATION)
        user_id = _parse_user_id(result.user_id) if result.valid else None
        if user_id is None:
            raise UnauthorizedException(
                "Invalid or expired verification token", code="INVALID_VERIFICATION_TOKEN"
            )

        user = await self.users.get_user_by_id(db, user_id)
        if not user:
            raise NotFoundException("User not found", code="USER_NOT_FOUND")
        if user["is_verified"]:
            return False

        await self.users.update_user(db, user_id, is_verified=True)
        logger.info("email_verified", user_id=str(user_id))
        return True

    # Google sign-in

    async def verify_firebase_id_token(self, id_token: str) -> GoogleUserInfo:
        """
        Verify a Firebase ID token and extract the provider identity.

        Raises:
            UnauthorizedException: If the token is invalid or lacks uid/email
        """
        try:
            claims = await verify_firebase_token(id_token)
        except ValueError as e:
            raise UnauthorizedException(str(e), code="INVALID_ID_TOKEN") from e

        uid = claims.get("uid")
        email = claims.get("email")
        if not uid or not email:
            raise UnauthorizedException(
                "Google UID and email are required", code="INVALID_ID_TOKEN"
            )

        return GoogleUserInfo(
            uid=uid,
            email=email,
            display_name=claims.get("name"),
            photo_url=claims.get("picture"),
            email_verified=bool(claims.get("email_verified", False)),
        )

    async def _generate_username(self, db: AsyncSession, email: str) -> str:
        """Derive a unique username from the email local part."""
        base = re.sub(r"[^a-z0-9_]", "", email.split("@", 1)[0].lower())[:20] or "user"
        while True:
            candidate = f"{base}_{secrets.token_hex(4)}"
            if not await self.users.username_exists(db, candidate):
                return candidate

    async def google_sign_in(self, db: AsyncSession, profile: GoogleUserInfo) -> tuple[dict, Token]:
        """
        Sign in with a provider-verified identity, linking or creating the account.

        Raises:
            UnauthorizedException: If the existing account is deactivated
            ConflictException: If the email belongs to another Google identity
        """
        email = profile.email.lower()
        record = await self.users.get_user_by_email(db, email)

        if record is not None:
            user = {k: v for k, v in record.items() if k != "password_hash"}
            if not record["is_active"]:
                raise UnauthorizedException("Account is deactivated", code="ACCOUNT_DEACTIVATED")
            if record["google_id"] and record["google_id"] != profile.uid:
                raise ConflictException(
                    "Email is linked to a different Google account",
                    code="GOOGLE_ACCOUNT_MISMATCH",
                )
            if not record["google_id"]:
                user = await self.users.update_user(
                    db,
                    record["id"],
                    google_id=profile.uid,
                    avatar=profile.photo_url or record["avatar"],
                    is_verified=profile.email_verified or record["is_verified"],
                )
                logger.info("google_account_linked", user_id=str(record["id"]))
        else:
            first_name, _, last_name = (profile.display_name or "User").strip().partition(" ")
            user = await self.users.create_user(
                db,
                email=email,
                username=await self._generate_username(db, email),
                password_hash=get_unusable_password_hash(),
                first_name=first_name[:50] or "User",
                last_name=last_name.strip()[:50] or "User",
                bio="Welcome! I joined using Google Sign-In.",
                avatar=profile.photo_url or "",
                google_id=profile.uid,
                is_verified=profile.email_verified,
            )
            logger.info("user_registered", user_id=str(user["id"]), provider="google")

        user, tokens = await self._start_session(db, user)
        logger.info("user_logged_in", user_id=str(user["id"]), provider="google")
        return user, tokens
