"""
Integration tests for authentication routes.
"""

import pytest

pytestmark = pytest.mark.asyncio


async def test_register_creates_user(async_client):
    response = await async_client.post(
        "/api/v1/auth/register",
        json={"email": "New@Example.com", "password": "Str0ngPass", "name": "New User", "language": "fr"},
    )

    assert response.status_code == 201
    data = response.json()
    assert data["email"] == "new@example.com"
    assert data["role"] == "user"
    assert data["language"] == "fr"
    assert "password_hash" not in data


async def test_register_duplicate_email(async_client, test_user):
    response = await async_client.post(
        "/api/v1/auth/register",
        json={"email": test_user.email, "password": "Str0ngPass", "name": "Dup"},
    )
    assert response.status_code == 400


async def test_register_weak_password_is_validation_error(async_client):
    response = await async_client.post(
        "/api/v1/auth/register",
        json={"email": "weak@example.com", "password": "alllowercase", "name": "Weak"},
    )

    assert response.status_code == 400
    body = response.json()
    assert body["detail"] == "Validation failed"
    assert body["errors"][0]["loc"][-1] == "password"


async def test_login_returns_tokens_and_cookies(async_client, test_user, test_password):
    response = await async_client.post(
        "/api/v1/auth/login",
        json={"email": test_user.email, "password": test_password},
    )

    assert response.status_code == 200
    data = response.json()
    assert data["token_type"] == "bearer"
    assert data["access_token"] and data["refresh_token"]
    assert "access_token" in response.cookies


async def test_login_wrong_password(async_client, test_user):
    response = await async_client.post(
        "/api/v1/auth/login",
        json={"email": test_user.email, "password": "Wrongpass1"},
    )
    assert response.status_code == 401


async def test_login_suspended_account(async_client, db_session, test_user, test_password):
    test_user.status = "suspended"
    await db_session.commit()

    response = await async_client.post(
        "/api/v1/auth/login",
        json={"email": test_user.email, "password": test_password},
    )
    assert response.status_code == 403


async def test_refresh_with_body_token(async_client, test_user, test_password):
    login = await async_client.post(
        "/api/v1/auth/login",
        json={"email": test_user.email, "password": test_password},
    )
    async_client.cookies.clear()

    response = await async_client.post(
        "/api/v1/auth/refresh",
        json={"refresh_token": login.json()["refresh_token"]},
    )
    assert response.status_code == 200
    assert response.json()["access_token"]


async def test_refresh_rejects_access_token(async_client, auth_headers):
    access = auth_headers["Authorization"].split(" ", 1)[1]
    response = await async_client.post("/api/v1/auth/refresh", json={"refresh_token": access})
    assert response.status_code == 401


async def test_me_requires_auth(async_client):
    response = await async_client.get("/api/v1/auth/me")
    assert response.status_code == 401


async def test_me_and_update(async_client, auth_headers):
    response = await async_client.get("/api/v1/auth/me", headers=auth_headers)
    assert response.status_code == 200
    assert response.json()["email"] == "test@example.com"

    response = await async_client.put(
        "/api/v1/auth/me", json={"name": "Renamed", "language": "de"}, headers=auth_headers
    )
    assert response.status_code == 200
    assert response.json()["name"] == "Renamed"
    assert response.json()["language"] == "de"


async def test_invalid_token(async_client):
    response = await async_client.get(
        "/api/v1/auth/me", headers={"Authorization": "Bearer not-a-token"}
    )
    assert response.status_code == 401


async def test_logout(async_client, auth_headers):
    response = await async_client.post("/api/v1/auth/logout", headers=auth_headers)
    assert response.status_code == 200
    assert response.json()["message"] == "Logged out successfully"
