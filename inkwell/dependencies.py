"""FastAPI dependencies: authentication, authorization gates and service wiring."""

from collections.abc import Awaitable, Callable
from dataclasses import dataclass, field
from enum import StrEnum
from typing import Annotated, Any
from uuid import UUID

from fastapi import Depends, Request
from fastapi.security import HTTPAuthorizationCredentials, HTTPBearer
from sqlalchemy.ext.asyncio import AsyncSession

from inkwell.config import settings
from inkwell.core.exceptions import (
    BadRequestException,
    ForbiddenException,
    NotFoundException,
    RateLimitException,
    UnauthorizedException,
)
from inkwell.core.redis_client import (
    CacheManager,
    RateLimiter,
    auth_rate_limit_key,
    get_redis_client,
)
from inkwell.core.security import decode_access_token
from inkwell.database import get_db
from inkwell.services.article_service import ArticleService
from inkwell.services.auth_service import AuthService
from inkwell.services.email_service import EmailService
from inkwell.services.user_service import UserService

# Missing or non-bearer headers resolve to None so we can answer TOKEN_MISSING ourselves
security = HTTPBearer(auto_error=False)


def get_cache_manager() -> CacheManager:
    """Cache manager over the shared Redis client."""
    return CacheManager(get_redis_client())


def get_rate_limiter() -> RateLimiter:
    """Rate limiter over the shared Redis client."""
    return RateLimiter(get_redis_client())


def get_email_service() -> EmailService:
    return EmailService()


def get_auth_service(
    cache_manager: Annotated[CacheManager | None, Depends(get_cache_manager)],
    email_service: Annotated[EmailService, Depends(get_email_service)],
) -> AuthService:
    return AuthService(cache_manager, email_service)


async def auth_rate_limit(
    request: Request,
    limiter: Annotated[RateLimiter, Depends(get_rate_limiter)],
) -> None:
    """Throttle unauthenticated auth endpoints per client IP."""
    client_ip = request.client.host if request.client else "unknown"
    if not limiter.check_rate_limit(
        auth_rate_limit_key(client_ip), settings.auth_rate_limit_per_minute, window=60
    ):
        raise RateLimitException("Too many authentication attempts, please try again later")


@dataclass
class AuthContext:
    """Authenticated requester: the loaded user plus the decoded access token claims."""

    user: dict
    claims: dict[str, Any] = field(default_factory=dict)

    @property
    def user_id(self) -> UUID:
        return self.user["id"]

    @property
    def role(self) -> str:
        return self.user["role"]


async def _authenticate(
    credentials: HTTPAuthorizationCredentials | None,
    db: AsyncSession,
    cache_manager: CacheManager | None,
) -> AuthContext:
    if credentials is None or not credentials.credentials:
        raise UnauthorizedException("Access token is required", code="TOKEN_MISSING")

    result = decode_access_token(credentials.credentials)
    if not result.valid:
        if result.expired:
            raise UnauthorizedException("Access token has expired", code="TOKEN_EXPIRED")
        raise UnauthorizedException("Invalid access token", code="TOKEN_INVALID")

    try:
        user_id = UUID(str(result.user_id))
    except ValueError:
        raise UnauthorizedException("Invalid access token", code="TOKEN_INVALID")

    user = await UserService(cache_manager).get_user_by_id(db, user_id)
    if not user:
        raise UnauthorizedException("User not found", code="USER_NOT_FOUND")
    if not user["is_active"]:
        raise UnauthorizedException("User account is deactivated", code="USER_DEACTIVATED")

    return AuthContext(user=user, claims=result.claims)


async def get_auth_context(
    credentials: Annotated[HTTPAuthorizationCredentials | None, Depends(security)],
    db: Annotated[AsyncSession, Depends(get_db)],
    cache_manager: Annotated[CacheManager | None, Depends(get_cache_manager)],
) -> AuthContext:
    """
    Require a valid bearer access token for an existing, active user.

    Raises:
        UnauthorizedException: TOKEN_MISSING, TOKEN_EXPIRED, TOKEN_INVALID,
            USER_NOT_FOUND or USER_DEACTIVATED
    """
    return await _authenticate(credentials, db, cache_manager)


async def get_optional_auth_context(
    credentials: Annotated[HTTPAuthorizationCredentials | None, Depends(security)],
    db: Annotated[AsyncSession, Depends(get_db)],
    cache_manager: Annotated[CacheManager | None, Depends(get_cache_manager)],
) -> AuthContext | None:
    """Like ``get_auth_context`` but any failure continues unauthenticated."""
    if credentials is None:
        return None
    try:
        return await _authenticate(credentials, db, cache_manager)
    except UnauthorizedException:
        return None


async def get_current_user(
    context: Annotated[AuthContext, Depends(get_auth_context)],
) -> dict:
    """Get the authenticated user record."""
    return context.user


def require_roles(*roles: str) -> Callable[..., Awaitable[AuthContext]]:
    """
    Build a dependency that only admits users holding one of ``roles``.

    The 403 response lists the required roles and the user's actual role.
    """

    async def role_gate(
        context: Annotated[AuthContext, Depends(get_auth_context)],
    ) -> AuthContext:
        if context.role not in roles:
            raise ForbiddenException(
                "Insufficient permissions",
                code="INSUFFICIENT_PERMISSIONS",
                details={"required_roles": list(roles), "user_role": context.role},
            )
        return context

    return role_gate


require_admin = require_roles("admin")
require_moderator = require_roles("moderator", "admin")


class ResourceKind(StrEnum):
    """Resources that can be gated by ownership."""

    ARTICLE = "article"
    COMMENT = "comment"


@dataclass(frozen=True)
class ResourceLoader:
    load: Callable[[AsyncSession, UUID], Awaitable[dict | None]]
    owner_field: str


RESOURCE_LOADERS: dict[ResourceKind, ResourceLoader] = {
    ResourceKind.ARTICLE: ResourceLoader(ArticleService.get_article, "author_id"),
    ResourceKind.COMMENT: ResourceLoader(ArticleService.get_comment, "author_id"),
}


def require_ownership_or_admin(
    kind: ResourceKind, id_field: str = "id"
) -> Callable[..., Awaitable[dict]]:
    """
    Build a dependency that loads a resource and admits its owner or an admin.

    Args:
        kind: Resource type, resolved through ``RESOURCE_LOADERS``
        id_field: Path parameter holding the resource id

    Returns:
        Dependency yielding the loaded resource
    """
    loader = RESOURCE_LOADERS[kind]

    async def ownership_gate(
        request: Request,
        context: Annotated[AuthContext, Depends(get_auth_context)],
        db: Annotated[AsyncSession, Depends(get_db)],
    ) -> dict:
        raw_id = request.path_params.get(id_field)
        if not raw_id:
            raise BadRequestException("Resource ID is required", code="RESOURCE_ID_MISSING")

        try:
            resource = await loader.load(db, UUID(str(raw_id)))
        except ValueError:
            resource = None
        if resource is None:
            raise NotFoundException(
                f"{kind.value.capitalize()} not found", code="RESOURCE_NOT_FOUND"
            )

        if context.role == "admin" or str(resource[loader.owner_field]) == str(context.user_id):
            return resource

        raise ForbiddenException(
            "Access denied: You can only modify your own resources", code="ACCESS_DENIED"
        )

    return ownership_gate


# Type aliases for dependency injection
DatabaseSession = Annotated[AsyncSession, Depends(get_db)]
CacheManagerDep = Annotated[CacheManager | None, Depends(get_cache_manager)]
AuthServiceDep = Annotated[AuthService, Depends(get_auth_service)]
CurrentAuth = Annotated[AuthContext, Depends(get_auth_context)]
OptionalAuth = Annotated[AuthContext | None, Depends(get_optional_auth_context)]
CurrentUser = Annotated[dict, Depends(get_current_user)]
