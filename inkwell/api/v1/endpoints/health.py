"""Health check endpoints."""

from typing import Literal

from fastapi import APIRouter
from pydantic import BaseModel

from inkwell.config import settings
from inkwell.core.firebase import is_firebase_initialized
from inkwell.core.redis_client import check_redis_connection
from inkwell.database import check_database_connection

router = APIRouter()


class HealthResponse(BaseModel):
    status: Literal["healthy", "degraded"]
    version: str
    environment: str


class DetailedHealthResponse(HealthResponse):
    """Health of the credential store, cache and identity provider."""

    database: Literal["healthy", "unhealthy"]
    redis: Literal["healthy", "unhealthy"]
    google_signin: Literal["enabled", "disabled"]


def _state(ok: bool) -> Literal["healthy", "unhealthy"]:
    return "healthy" if ok else "unhealthy"


@router.get("/health", response_model=HealthResponse, summary="Liveness")
async def health_check() -> HealthResponse:
    return HealthResponse(
        status="healthy",
        version=settings.app_version,
        environment=settings.environment,
    )


@router.get("/health/detailed", response_model=DetailedHealthResponse, summary="Dependency health")
async def detailed_health_check() -> DetailedHealthResponse:
    """
    Report dependency health.

    The service is ``degraded`` when the database is down. Redis only backs
    the user cache and the auth rate limiter, which both fail open, and
    Google sign-in is optional, so neither affects the overall status.
    """
    db_healthy = await check_database_connection()
    redis_healthy = await check_redis_connection()

    return DetailedHealthResponse(
        status="healthy" if db_healthy else "degraded",
        version=settings.app_version,
        environment=settings.environment,
        database=_state(db_healthy),
        redis=_state(redis_healthy),
        google_signin="enabled" if is_firebase_initialized() else "disabled",
    )


@router.get("/ping", summary="Ping")
async def ping() -> dict[str, str]:
    return {"message": "pong"}
