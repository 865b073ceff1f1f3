"""Tests for the error envelope and health endpoints."""

from unittest.mock import AsyncMock, patch

import pytest
from fastapi import FastAPI
from fastapi.exceptions import RequestValidationError
from httpx import ASGITransport, AsyncClient
from starlette.exceptions import HTTPException as StarletteHTTPException

from inkwell.config import settings
from inkwell.core.exceptions import AppException, ConflictException, DatabaseException
from inkwell.middleware.error_handler import (
    app_exception_handler,
    general_exception_handler,
    http_exception_handler,
    validation_exception_handler,
)


def build_app() -> FastAPI:
    app = FastAPI()
    app.add_exception_handler(AppException, app_exception_handler)  # type: ignore[arg-type]
    app.add_exception_handler(StarletteHTTPException, http_exception_handler)  # type: ignore[arg-type]
    app.add_exception_handler(RequestValidationError, validation_exception_handler)  # type: ignore[arg-type]
    app.add_exception_handler(Exception, general_exception_handler)

    @app.get("/conflict")
    async def conflict() -> None:
        raise ConflictException(
            "Email already registered", code="EMAIL_TAKEN", details={"field": "email"}
        )

    @app.get("/database")
    async def database() -> None:
        raise DatabaseException()

    @app.get("/boom")
    async def boom() -> None:
        raise RuntimeError("secret internals")

    return app


async def call(path: str, app: FastAPI | None = None):
    transport = ASGITransport(app=app or build_app(), raise_app_exceptions=False)
    async with AsyncClient(transport=transport, base_url="http://test") as client:
        return await client.get(path)


@pytest.mark.asyncio
async def test_app_exception_envelope():
    response = await call("/conflict")

    assert response.status_code == 409
    assert response.json() == {
        "error": "ConflictException",
        "code": "EMAIL_TAKEN",
        "message": "Email already registered",
        "path": "http://test/conflict",
        "details": {"field": "email"},
    }


@pytest.mark.asyncio
async def test_default_code():
    response = await call("/database")

    assert response.status_code == 500
    assert response.json()["code"] == "DATABASE_ERROR"
    assert "details" not in response.json()


@pytest.mark.asyncio
async def test_unknown_route():
    response = await call("/nowhere")

    assert response.status_code == 404
    assert response.json()["code"] == "ROUTE_NOT_FOUND"


@pytest.mark.asyncio
async def test_unexpected_error_is_generic():
    response = await call("/boom")

    assert response.status_code == 500
    body = response.json()
    assert body["code"] == "INTERNAL_SERVER_ERROR"
    assert body["message"] == "An unexpected error occurred"
    # Non-production builds carry the traceback
    assert any("secret internals" in line for line in body["traceback"])


@pytest.mark.asyncio
async def test_unexpected_error_hides_traceback_in_production(monkeypatch):
    monkeypatch.setattr(settings, "environment", "production")

    response = await call("/boom")

    assert response.status_code == 500
    assert "traceback" not in response.json()
    assert "secret internals" not in response.text


@pytest.mark.asyncio
async def test_health_endpoints(client: AsyncClient):
    health = await client.get("/api/v1/health")
    ping = await client.get("/api/v1/ping")

    assert health.status_code == 200
    assert health.json()["status"] == "healthy"
    assert ping.json() == {"message": "pong"}


@pytest.mark.asyncio
async def test_request_id_header(client: AsyncClient):
    response = await client.get("/api/v1/ping", headers={"X-Request-ID": "req-123"})

    assert response.headers["X-Request-ID"] == "req-123"
    assert "X-Process-Time" in response.headers


@pytest.mark.asyncio
async def test_detailed_health_ignores_redis_outage(client: AsyncClient):
    module = "inkwell.api.v1.endpoints.health"
    with (
        patch(f"{module}.check_database_connection", AsyncMock(return_value=True)),
        patch(f"{module}.check_redis_connection", AsyncMock(return_value=False)),
    ):
        response = await client.get("/api/v1/health/detailed")

    assert response.status_code == 200
    body = response.json()
    assert body["status"] == "healthy"
    assert body["database"] == "healthy"
    assert body["redis"] == "unhealthy"
    assert body["google_signin"] in {"enabled", "disabled"}


@pytest.mark.asyncio
async def test_detailed_health_degraded_without_database(client: AsyncClient):
    module = "inkwell.api.v1.endpoints.health"
    with (
        patch(f"{module}.check_database_connection", AsyncMock(return_value=False)),
        patch(f"{module}.check_redis_connection", AsyncMock(return_value=True)),
    ):
        response = await client.get("/api/v1/health/detailed")

    assert response.json()["status"] == "degraded"
