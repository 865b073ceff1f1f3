"""User service: the credential store behind authentication."""

from datetime import UTC, datetime
from typing import Any
from uuid import UUID

import structlog
from sqlalchemy import delete, func, insert, or_, select, update
from sqlalchemy.exc import DBAPIError, IntegrityError
from sqlalchemy.ext.asyncio import AsyncSession

from inkwell.core.exceptions import (
    ConflictException,
    DatabaseException,
    NotFoundException,
    WriteConflictError,
)
from inkwell.core.redis_client import CacheManager, user_cache_key
from inkwell.core.retry import with_optimistic_retry
from inkwell.models.refresh_tokens import refresh_tokens
from inkwell.models.users import USER_PUBLIC_COLUMNS, users

logger = structlog.get_logger(__name__)

# serialization_failure, deadlock_detected
_CONFLICT_SQLSTATES = {"40001", "40P01"}


def _is_write_conflict(exc: DBAPIError) -> bool:
    orig = exc.orig
    sqlstate = getattr(orig, "sqlstate", None) or getattr(orig, "pgcode", None)
    if sqlstate in _CONFLICT_SQLSTATES:
        return True
    return "database is locked" in str(orig)


def _translate_db_error(exc: DBAPIError, operation: str) -> Exception:
    """Map a driver error to a retryable conflict or a DatabaseException."""
    if _is_write_conflict(exc):
        return WriteConflictError(f"{operation}: {exc.orig}")
    logger.error("database_operation_failed", operation=operation, error=str(exc.orig))
    return DatabaseException(f"Failed to {operation.replace('_', ' ')}")


# Unique columns of users, checked against the violated constraint or index name
_UNIQUE_FIELDS = (
    ("username", "USERNAME_TAKEN", "Username already taken"),
    ("email", "EMAIL_TAKEN", "Email already registered"),
    ("google_id", "GOOGLE_ACCOUNT_MISMATCH", "Google account is linked to another user"),
)


def _duplicate_conflict(exc: IntegrityError) -> ConflictException:
    """Name the duplicated field from the driver error when it can be identified."""
    orig = exc.orig
    cause = getattr(orig, "__cause__", None)
    constraint = getattr(orig, "constraint_name", None) or getattr(cause, "constraint_name", None)
    # SQLite has no constraint name but reports "UNIQUE constraint failed: users.email"
    source = (constraint or str(orig)).lower()
    for field, code, message in _UNIQUE_FIELDS:
        if field in source:
            return ConflictException(message, code=code, details={"field": field})
    return ConflictException("Email or username already exists", code="DUPLICATE_FIELD")


class UserService:
    """Service for user records and their refresh-token entries."""

    # Cache TTL in seconds (30 minutes for user profiles)
    USER_CACHE_TTL = 1800

    def __init__(self, cache_manager: CacheManager | None = None):
        """Initialize service with optional cache manager."""
        self.cache = cache_manager

    def _invalidate(self, user_id: UUID) -> None:
        if self.cache:
            self.cache.delete(user_cache_key(user_id))

    async def _execute_write(self, db: AsyncSession, operation: str, *statements: Any) -> list:
        """Run statements in one transaction, translating driver errors."""
        try:
            results = [await db.execute(statement) for statement in statements]
            await db.commit()
            return results
        except DBAPIError as e:
            await db.rollback()
            raise _translate_db_error(e, operation) from e

    # Reads

    async def get_user_by_id(self, db: AsyncSession, user_id: UUID) -> dict | None:
        """Get the sanitized user record by ID, reading through the cache."""
        if self.cache:
            cached_user = self.cache.get_json(user_cache_key(user_id))
            if cached_user:
                cached_user["id"] = UUID(cached_user["id"])
                return cached_user

        query = select(*USER_PUBLIC_COLUMNS).where(users.c.id == user_id)
        result = await db.execute(query)
        user = result.mappings().first()

        if not user:
            return None

        user_dict = dict(user)

        if self.cache:
            self.cache.set_json(user_cache_key(user_id), user_dict, ttl=self.USER_CACHE_TTL)

        return user_dict

    async def get_user_by_email(self, db: AsyncSession, email: str) -> dict | None:
        """Get the full user record, including password hash, by email."""
        query = select(users).where(users.c.email == email.strip().lower())
        result = await db.execute(query)
        user = result.mappings().first()
        return dict(user) if user else None

    async def get_password_hash(self, db: AsyncSession, user_id: UUID) -> str | None:
        """Get the stored password hash for a user."""
        query = select(users.c.password_hash).where(users.c.id == user_id)
        result = await db.execute(query)
        return result.scalar_one_or_none()

    async def find_by_email_or_username(
        self, db: AsyncSession, email: str, username: str
    ) -> list[dict]:
        """Return every user whose email or username collides with the given pair."""
        query = select(users.c.id, users.c.email, users.c.username).where(
            or_(
                users.c.email == email.strip().lower(),
                users.c.username == username.strip().lower(),
            )
        )
        result = await db.execute(query)
        return [dict(row) for row in result.mappings().all()]

    async def username_exists(self, db: AsyncSession, username: str) -> bool:
        query = select(func.count()).select_from(users).where(users.c.username == username)
        result = await db.execute(query)
        return result.scalar_one() > 0

    # User mutations

    async def create_user(
        self,
        db: AsyncSession,
        *,
        email: str,
        username: str,
        password_hash: str,
        first_name: str,
        last_name: str,
        bio: str = "",
        avatar: str = "",
        google_id: str | None = None,
        is_verified: bool = False,
    ) -> dict:
        """Create a new user and return its sanitized record."""
        query = (
            insert(users)
            .values(
                email=email.strip().lower(),
                username=username.strip().lower(),
                password_hash=password_hash,
                first_name=first_name,
                last_name=last_name,
                bio=bio,
                avatar=avatar,
                google_id=google_id,
                is_verified=is_verified,
            )
            .returning(*USER_PUBLIC_COLUMNS)
        )

        try:
            result = await db.execute(query)
            user = result.mappings().first()
            await db.commit()
        except IntegrityError as e:
            await db.rollback()
            raise _duplicate_conflict(e) from e
        except DBAPIError as e:
            await db.rollback()
            raise _translate_db_error(e, "create_user") from e

        if not user:
            raise DatabaseException("Failed to create user")

        return dict(user)

    async def update_user(self, db: AsyncSession, user_id: UUID, **values: Any) -> dict:
        """Update user columns and return the sanitized record."""
        values["updated_at"] = datetime.now(UTC)
        query = (
            update(users)
            .where(users.c.id == user_id)
            .values(**values)
            .returning(*USER_PUBLIC_COLUMNS)
        )

        try:
            result = await db.execute(query)
            user = result.mappings().first()
            await db.commit()
        except IntegrityError as e:
            await db.rollback()
            raise _duplicate_conflict(e) from e
        except DBAPIError as e:
            await db.rollback()
            raise _translate_db_error(e, "update_user") from e
        finally:
            self._invalidate(user_id)

        if not user:
            raise NotFoundException("User not found", code="USER_NOT_FOUND")

        return dict(user)

    async def set_password(self, db: AsyncSession, user_id: UUID, password_hash: str) -> None:
        """Replace the password hash and drop every refresh token in one transaction."""
        await self._execute_write(
            db,
            "set_password",
            update(users)
            .where(users.c.id == user_id)
            .values(password_hash=password_hash, updated_at=datetime.now(UTC)),
            delete(refresh_tokens).where(refresh_tokens.c.user_id == user_id),
        )
        self._invalidate(user_id)

    async def set_active(self, db: AsyncSession, user_id: UUID, is_active: bool) -> dict:
        """Activate or deactivate an account; deactivation also ends every session."""
        user = await self.update_user(db, user_id, is_active=is_active)
        if not is_active:
            await self.clear_refresh_tokens(db, user_id)
        return user

    # Refresh-token entries

    async def add_refresh_token(
        self,
        db: AsyncSession,
        user_id: UUID,
        token: str,
        expires_at: datetime,
        record_login: bool = False,
    ) -> None:
        """
        Append a refresh-token entry, pruning the user's expired ones.

        Args:
            db: Database session
            user_id: Owner of the session
            token: Refresh token value
            expires_at: Entry expiry
            record_login: Also stamp ``last_login_at`` in the same transaction
        """
        now = datetime.now(UTC)
        statements: list[Any] = [
            delete(refresh_tokens).where(
                refresh_tokens.c.user_id == user_id,
                refresh_tokens.c.expires_at <= now,
            ),
            insert(refresh_tokens).values(user_id=user_id, token=token, expires_at=expires_at),
        ]
        if record_login:
            statements.append(
                update(users).where(users.c.id == user_id).values(last_login_at=now)
            )

        async def _append() -> None:
            await self._execute_write(db, "add_refresh_token", *statements)

        await with_optimistic_retry(_append, operation_name="add_refresh_token")
        if record_login:
            self._invalidate(user_id)

    async def has_refresh_token(self, db: AsyncSession, user_id: UUID, token: str) -> bool:
        """Check that ``token`` is a live entry in the user's list."""
        query = (
            select(func.count())
            .select_from(refresh_tokens)
            .where(
                refresh_tokens.c.user_id == user_id,
                refresh_tokens.c.token == token,
                refresh_tokens.c.expires_at > datetime.now(UTC),
            )
        )
        result = await db.execute(query)
        return result.scalar_one() > 0

    async def rotate_refresh_token(
        self,
        db: AsyncSession,
        user_id: UUID,
        old_token: str,
        new_token: str,
        expires_at: datetime,
    ) -> bool:
        """
        Swap ``old_token`` for ``new_token`` atomically.

        Returns:
            False if ``old_token`` was no longer present (already rotated or
            revoked by a concurrent request); nothing is inserted in that case.
        """

        async def _rotate() -> bool:
            try:
                removed = await db.execute(
                    delete(refresh_tokens).where(
                        refresh_tokens.c.user_id == user_id,
                        refresh_tokens.c.token == old_token,
                    )
                )
                if removed.rowcount == 0:
                    await db.rollback()
                    return False
                await db.execute(
                    insert(refresh_tokens).values(
                        user_id=user_id, token=new_token, expires_at=expires_at
                    )
                )
                await db.commit()
                return True
            except DBAPIError as e:
                await db.rollback()
                raise _translate_db_error(e, "rotate_refresh_token") from e

        return await with_optimistic_retry(_rotate, operation_name="rotate_refresh_token")

    async def remove_refresh_token(self, db: AsyncSession, user_id: UUID, token: str) -> bool:
        """Remove one refresh-token entry. Returns False if it was already gone."""

        async def _remove() -> bool:
            results = await self._execute_write(
                db,
                "remove_refresh_token",
                delete(refresh_tokens).where(
                    refresh_tokens.c.user_id == user_id,
                    refresh_tokens.c.token == token,
                ),
            )
            return results[0].rowcount > 0

        return await with_optimistic_retry(_remove, operation_name="remove_refresh_token")

    async def clear_refresh_tokens(self, db: AsyncSession, user_id: UUID) -> int:
        """Remove every refresh-token entry of a user. Returns the number removed."""

        async def _clear() -> int:
            results = await self._execute_write(
                db,
                "clear_refresh_tokens",
                delete(refresh_tokens).where(refresh_tokens.c.user_id == user_id),
            )
            return results[0].rowcount

        return await with_optimistic_retry(_clear, operation_name="clear_refresh_tokens")

    async def count_refresh_tokens(self, db: AsyncSession, user_id: UUID) -> int:
        query = (
            select(func.count())
            .select_from(refresh_tokens)
            .where(refresh_tokens.c.user_id == user_id)
        )
        result = await db.execute(query)
        return result.scalar_one()
