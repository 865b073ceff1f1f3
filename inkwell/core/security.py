"""Security utilities for JWT and password handling."""

import secrets
from dataclasses import dataclass, field
from datetime import UTC, datetime, timedelta
from enum import StrEnum
from typing import Any

from jose import ExpiredSignatureError, JWTError, jwt
from passlib.context import CryptContext

from inkwell.config import settings

# Password hashing
pwd_context = CryptContext(schemes=["bcrypt"], deprecated="auto")

# Verified against when no user matches, so unknown emails cost a bcrypt round too
_DUMMY_PASSWORD_HASH = pwd_context.hash(secrets.token_urlsafe(16))


class TokenKind(StrEnum):
    """Token purposes. The value is embedded as the ``type`` claim."""

    ACCESS = "access"
    REFRESH = "refresh"
    PASSWORD_RESET = "password_reset"
    EMAIL_VERIFICATION = "email_verification"


# jti length per kind, in random bytes
_JTI_BYTES = {
    TokenKind.ACCESS: 16,
    TokenKind.REFRESH: 32,
    TokenKind.PASSWORD_RESET: 16,
    TokenKind.EMAIL_VERIFICATION: 16,
}


@dataclass(frozen=True)
class TokenVerification:
    """Outcome of verifying a token against an expected kind."""

    valid: bool
    expired: bool = False
    claims: dict[str, Any] = field(default_factory=dict)

    @property
    def user_id(self) -> str | None:
        return self.claims.get("sub")


def verify_password(plain_password: str, hashed_password: str) -> bool:
    """Verify a password against a hash."""
    return pwd_context.verify(plain_password, hashed_password)


def verify_password_or_dummy(plain_password: str, hashed_password: str | None) -> bool:
    """Verify a password, burning the same bcrypt cost when there is no hash."""
    if hashed_password is None:
        pwd_context.verify(plain_password, _DUMMY_PASSWORD_HASH)
        return False
    return verify_password(plain_password, hashed_password)


def get_password_hash(password: str) -> str:
    """Hash a password."""
    return pwd_context.hash(password)


def get_unusable_password_hash() -> str:
    """Hash a throwaway random secret for accounts that never log in with a password."""
    return pwd_context.hash(secrets.token_urlsafe(32))


def _signing_key(kind: TokenKind) -> str:
    # Purpose-limited tokens share the access secret; the type claim keeps them apart.
    if kind is TokenKind.REFRESH:
        return settings.jwt_refresh_secret
    return settings.jwt_access_secret


def _default_ttl(kind: TokenKind) -> timedelta:
    return {
        TokenKind.ACCESS: settings.access_token_ttl,
        TokenKind.REFRESH: settings.refresh_token_ttl,
        TokenKind.PASSWORD_RESET: settings.password_reset_token_ttl,
        TokenKind.EMAIL_VERIFICATION: settings.email_verification_token_ttl,
    }[kind]


def issue_token(
    kind: TokenKind,
    subject_id: str,
    extra_claims: dict[str, Any] | None = None,
    expires_delta: timedelta | None = None,
) -> str:
    """
    Sign a typed, expiring claim bag.

    Args:
        kind: Token purpose, stored in the ``type`` claim
        subject_id: User identifier stored in ``sub``
        extra_claims: Additional claims (e.g. ``role`` for access tokens)
        expires_delta: Optional lifetime, defaults to the configured TTL for ``kind``

    Returns:
        Encoded JWT
    """
    now = datetime.now(UTC)
    to_encode: dict[str, Any] = dict(extra_claims or {})
    to_encode.update(
        {
            "sub": str(subject_id),
            "type": kind.value,
            "jti": secrets.token_urlsafe(_JTI_BYTES[kind]),
            "iat": now,
            "exp": now + (expires_delta or _default_ttl(kind)),
            "iss": settings.jwt_issuer,
            "aud": settings.jwt_audience,
        }
    )

    return jwt.encode(to_encode, _signing_key(kind), algorithm=settings.jwt_algorithm)


def verify_token(token: str, expected_kind: TokenKind) -> TokenVerification:
    """
    Verify signature, issuer, audience, expiry and kind of a token.

    Fails closed: anything other than a current token of ``expected_kind``
    is invalid. Expiry is reported separately so callers can tell a client
    to refresh instead of re-authenticating.

    Args:
        token: Encoded JWT
        expected_kind: Kind the caller is willing to accept

    Returns:
        Verification outcome
    """
    try:
        payload = jwt.decode(
            token,
            _signing_key(expected_kind),
            algorithms=[settings.jwt_algorithm],
            audience=settings.jwt_audience,
            issuer=settings.jwt_issuer,
        )
    except ExpiredSignatureError:
        return TokenVerification(valid=False, expired=True)
    except JWTError:
        return TokenVerification(valid=False)

    if payload.get("type") != expected_kind.value or not payload.get("sub"):
        return TokenVerification(valid=False)

    return TokenVerification(valid=True, claims=payload)


def create_access_token(user_id: str, role: str, expires_delta: timedelta | None = None) -> str:
    """Create a JWT access token carrying the user's role."""
    return issue_token(TokenKind.ACCESS, user_id, {"role": role}, expires_delta)


def create_refresh_token(user_id: str, expires_delta: timedelta | None = None) -> str:
    """Create a JWT refresh token."""
    return issue_token(TokenKind.REFRESH, user_id, expires_delta=expires_delta)


def create_password_reset_token(user_id: str) -> str:
    """Create a short-lived password reset token."""
    return issue_token(TokenKind.PASSWORD_RESET, user_id)


def create_email_verification_token(user_id: str) -> str:
    """Create an email verification token."""
    return issue_token(TokenKind.EMAIL_VERIFICATION, user_id)


def decode_access_token(token: str) -> TokenVerification:
    """Verify an access token."""
    return verify_token(token, TokenKind.ACCESS)


def decode_refresh_token(token: str) -> TokenVerification:
    """Verify a refresh token."""
    return verify_token(token, TokenKind.REFRESH)
