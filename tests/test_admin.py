"""Tests for admin user management endpoints."""

from uuid import uuid4

import pytest
from conftest import TEST_PASSWORD, bearer
from httpx import AsyncClient

from inkwell.services.user_service import UserService


@pytest.mark.asyncio
async def test_ban_deactivates_and_clears_sessions(
    client: AsyncClient, db_session, test_user, admin_user
):
    login = await client.post(
        "/api/v1/auth/login", json={"email": "author@example.com", "password": TEST_PASSWORD}
    )
    assert login.status_code == 200

    response = await client.put(
        f"/api/v1/admin/users/{test_user['id']}/ban", headers=bearer(admin_user)
    )

    assert response.status_code == 200
    assert response.json()["is_active"] is False
    assert await UserService().count_refresh_tokens(db_session, test_user["id"]) == 0

    relogin = await client.post(
        "/api/v1/auth/login", json={"email": "author@example.com", "password": TEST_PASSWORD}
    )
    assert relogin.status_code == 401
    assert relogin.json()["code"] == "ACCOUNT_DEACTIVATED"


@pytest.mark.asyncio
async def test_unban_restores_access(client: AsyncClient, test_user, admin_user):
    await client.put(f"/api/v1/admin/users/{test_user['id']}/ban", headers=bearer(admin_user))

    response = await client.put(
        f"/api/v1/admin/users/{test_user['id']}/unban", headers=bearer(admin_user)
    )

    assert response.status_code == 200
    assert response.json()["is_active"] is True
    me = await client.get("/api/v1/auth/me", headers=bearer(test_user))
    assert me.status_code == 200


@pytest.mark.asyncio
async def test_admin_cannot_ban_self(client: AsyncClient, admin_user):
    response = await client.put(
        f"/api/v1/admin/users/{admin_user['id']}/ban", headers=bearer(admin_user)
    )

    assert response.status_code == 400
    assert response.json()["code"] == "SELF_ACTION"


@pytest.mark.asyncio
async def test_change_role(client: AsyncClient, test_user, admin_user):
    response = await client.put(
        f"/api/v1/admin/users/{test_user['id']}/role",
        json={"role": "moderator"},
        headers=bearer(admin_user),
    )

    assert response.status_code == 200
    assert response.json()["role"] == "moderator"

    # The new role applies on the next request, whatever the token claims
    profile = await client.get(f"/api/v1/users/{admin_user['id']}", headers=bearer(test_user))
    assert profile.status_code == 200


@pytest.mark.asyncio
async def test_change_role_rejects_unknown_role(client: AsyncClient, test_user, admin_user):
    response = await client.put(
        f"/api/v1/admin/users/{test_user['id']}/role",
        json={"role": "superuser"},
        headers=bearer(admin_user),
    )

    assert response.status_code == 422


@pytest.mark.asyncio
async def test_admin_cannot_change_own_role(client: AsyncClient, admin_user):
    response = await client.put(
        f"/api/v1/admin/users/{admin_user['id']}/role",
        json={"role": "user"},
        headers=bearer(admin_user),
    )

    assert response.status_code == 400


@pytest.mark.asyncio
async def test_admin_endpoints_require_admin(client: AsyncClient, test_user, moderator_user):
    response = await client.put(
        f"/api/v1/admin/users/{test_user['id']}/ban", headers=bearer(moderator_user)
    )

    assert response.status_code == 403
    assert response.json()["details"]["required_roles"] == ["admin"]


@pytest.mark.asyncio
async def test_ban_unknown_user(client: AsyncClient, admin_user):
    response = await client.put(f"/api/v1/admin/users/{uuid4()}/ban", headers=bearer(admin_user))

    assert response.status_code == 404
    assert response.json()["code"] == "USER_NOT_FOUND"
