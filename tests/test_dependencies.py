"""Tests for the request authentication and authorization gates."""

from datetime import timedelta
from uuid import uuid4

import pytest
from conftest import bearer, create_user
from fastapi import FastAPI
from httpx import ASGITransport, AsyncClient

from inkwell.core.security import create_access_token, create_refresh_token
from inkwell.database import get_db
from inkwell.dependencies import OptionalAuth, get_cache_manager

ME = "/api/v1/auth/me"


@pytest.mark.asyncio
async def test_missing_token(client: AsyncClient):
    response = await client.get(ME)

    assert response.status_code == 401
    assert response.json()["code"] == "TOKEN_MISSING"


@pytest.mark.asyncio
async def test_non_bearer_scheme_counts_as_missing(client: AsyncClient, test_user):
    token = create_access_token(str(test_user["id"]), "user")

    response = await client.get(ME, headers={"Authorization": f"Basic {token}"})

    assert response.json()["code"] == "TOKEN_MISSING"


@pytest.mark.asyncio
async def test_expired_token(client: AsyncClient, test_user):
    token = create_access_token(str(test_user["id"]), "user", expires_delta=timedelta(seconds=-5))

    response = await client.get(ME, headers={"Authorization": f"Bearer {token}"})

    assert response.status_code == 401
    assert response.json()["code"] == "TOKEN_EXPIRED"


@pytest.mark.asyncio
@pytest.mark.parametrize("kind", ["garbage", "refresh", "bad-subject"])
async def test_invalid_token(client: AsyncClient, test_user, kind):
    token = {
        "garbage": "not.a.jwt",
        "refresh": create_refresh_token(str(test_user["id"])),
        "bad-subject": create_access_token("not-a-uuid", "user"),
    }[kind]

    response = await client.get(ME, headers={"Authorization": f"Bearer {token}"})

    assert response.status_code == 401
    assert response.json()["code"] == "TOKEN_INVALID"


@pytest.mark.asyncio
async def test_deactivated_user(client: AsyncClient, db_session):
    user = await create_user(db_session, "off@x.com", "off", is_active=False)

    response = await client.get(ME, headers=bearer(user))

    assert response.status_code == 401
    assert response.json()["code"] == "USER_DEACTIVATED"


@pytest.mark.asyncio
async def test_unknown_user(client: AsyncClient):
    token = create_access_token(str(uuid4()), "user")

    response = await client.get(ME, headers={"Authorization": f"Bearer {token}"})

    assert response.status_code == 401
    assert response.json()["code"] == "USER_NOT_FOUND"


@pytest.mark.asyncio
async def test_role_gate_reports_required_and_actual_roles(client: AsyncClient, test_user):
    response = await client.get(f"/api/v1/users/{test_user['id']}", headers=bearer(test_user))

    assert response.status_code == 403
    body = response.json()
    assert body["code"] == "INSUFFICIENT_PERMISSIONS"
    assert body["details"] == {"required_roles": ["moderator", "admin"], "user_role": "user"}


@pytest.mark.asyncio
async def test_role_gate_admits_listed_roles(
    client: AsyncClient, test_user, moderator_user, admin_user
):
    for caller in (moderator_user, admin_user):
        response = await client.get(f"/api/v1/users/{test_user['id']}", headers=bearer(caller))
        assert response.status_code == 200
        assert response.json()["username"] == "author"


@pytest.mark.asyncio
async def test_role_is_read_from_the_user_record(client: AsyncClient, test_user):
    # A token claiming admin does not override the stored role
    token = create_access_token(str(test_user["id"]), "admin")

    response = await client.get(
        f"/api/v1/users/{test_user['id']}", headers={"Authorization": f"Bearer {token}"}
    )

    assert response.status_code == 403


@pytest.mark.asyncio
async def test_optional_auth_continues_unauthenticated(db_session, cache_manager, test_user):
    app = FastAPI()

    @app.get("/whoami")
    async def whoami(auth: OptionalAuth) -> dict:
        return {"user": auth.user["username"] if auth else None}

    async def override_get_db():
        yield db_session

    app.dependency_overrides[get_db] = override_get_db
    app.dependency_overrides[get_cache_manager] = lambda: cache_manager

    async with AsyncClient(transport=ASGITransport(app=app), base_url="http://test") as client:
        anonymous = await client.get("/whoami")
        garbage = await client.get("/whoami", headers={"Authorization": "Bearer garbage"})
        expired = await client.get(
            "/whoami",
            headers={
                "Authorization": "Bearer "
                + create_access_token(str(test_user["id"]), "user", timedelta(seconds=-5))
            },
        )
        authenticated = await client.get("/whoami", headers=bearer(test_user))

    assert anonymous.json() == {"user": None}
    assert garbage.json() == {"user": None}
    assert expired.json() == {"user": None}
    assert authenticated.json() == {"user": "author"}


# Ownership-or-admin gate, exercised through the article and comment endpoints


async def publish(client: AsyncClient, author: dict) -> dict:
    response = await client.post(
        "/api/v1/articles",
        json={"title": "Hello", "content": "First post"},
        headers=bearer(author),
    )
    assert response.status_code == 201, response.text
    return response.json()


@pytest.mark.asyncio
async def test_owner_can_delete_article(client: AsyncClient, test_user):
    article = await publish(client, test_user)

    response = await client.delete(f"/api/v1/articles/{article['id']}", headers=bearer(test_user))

    assert response.status_code == 200
    missing = await client.get(f"/api/v1/articles/{article['id']}")
    assert missing.status_code == 404


@pytest.mark.asyncio
async def test_non_owner_is_denied(client: AsyncClient, db_session, test_user):
    article = await publish(client, test_user)
    stranger = await create_user(db_session, "stranger@x.com", "stranger")

    response = await client.delete(f"/api/v1/articles/{article['id']}", headers=bearer(stranger))

    assert response.status_code == 403
    assert response.json()["code"] == "ACCESS_DENIED"


@pytest.mark.asyncio
async def test_moderator_is_not_an_owner(client: AsyncClient, test_user, moderator_user):
    article = await publish(client, test_user)

    response = await client.delete(
        f"/api/v1/articles/{article['id']}", headers=bearer(moderator_user)
    )

    assert response.status_code == 403


@pytest.mark.asyncio
async def test_admin_bypasses_ownership(client: AsyncClient, test_user, admin_user):
    article = await publish(client, test_user)

    response = await client.delete(f"/api/v1/articles/{article['id']}", headers=bearer(admin_user))

    assert response.status_code == 200


@pytest.mark.asyncio
async def test_missing_resource_is_404_before_ownership(client: AsyncClient, admin_user, test_user):
    for caller in (test_user, admin_user):
        response = await client.delete(f"/api/v1/articles/{uuid4()}", headers=bearer(caller))
        assert response.status_code == 404
        assert response.json()["code"] == "RESOURCE_NOT_FOUND"

    malformed = await client.delete("/api/v1/comments/not-a-uuid", headers=bearer(test_user))
    assert malformed.status_code == 404


@pytest.mark.asyncio
async def test_comment_ownership(client: AsyncClient, db_session, test_user):
    article = await publish(client, test_user)
    commenter = await create_user(db_session, "reader@x.com", "reader")
    comment = await client.post(
        f"/api/v1/articles/{article['id']}/comments",
        json={"content": "Nice"},
        headers=bearer(commenter),
    )
    assert comment.status_code == 201
    comment_id = comment.json()["id"]

    # The article author does not own the comment
    denied = await client.delete(f"/api/v1/comments/{comment_id}", headers=bearer(test_user))
    assert denied.status_code == 403

    allowed = await client.delete(f"/api/v1/comments/{comment_id}", headers=bearer(commenter))
    assert allowed.status_code == 200


@pytest.mark.asyncio
async def test_get_article_reports_ownership(client: AsyncClient, db_session, test_user):
    article = await publish(client, test_user)
    reader = await create_user(db_session, "reader@x.com", "reader")
    url = f"/api/v1/articles/{article['id']}"

    assert (await client.get(url)).json()["is_owner"] is False
    assert (await client.get(url, headers=bearer(reader))).json()["is_owner"] is False
    assert (await client.get(url, headers=bearer(test_user))).json()["is_owner"] is True
    # A bad token on a public route is ignored, not rejected
    assert (await client.get(url, headers={"Authorization": "Bearer bad"})).status_code == 200
