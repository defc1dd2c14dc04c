"""Tests for login, the current-user endpoints and token handling."""

from datetime import timedelta

from sqlalchemy import update

from designhub.db.base import utc_now
from designhub.models.user import PasswordResetToken
from designhub.services.password_reset import token_digest
from designhub.services.security import create_access_token
from tests.conftest import PASSWORD, create_account


async def test_login_returns_token_and_user(client, manager):
    response = await client.post(
        "/api/v1/auth/login", json={"email": manager.email, "password": PASSWORD}
    )

    assert response.status_code == 200
    body = response.json()
    assert body["success"] is True
    data = body["data"]
    assert data["tokenType"] == "bearer"
    assert data["expiresIn"] > 0
    assert data["user"]["id"] == str(manager.id)
    assert data["user"]["lastLoginAt"] is not None
    assert "passwordHash" not in data["user"]

    me = await client.get(
        "/api/v1/auth/me", headers={"Authorization": f"Bearer {data['accessToken']}"}
    )
    assert me.status_code == 200
    assert me.json()["data"]["email"] == manager.email


async def test_login_email_is_case_insensitive(client, manager):
    response = await client.post(
        "/api/v1/auth/login", json={"email": manager.email.upper(), "password": PASSWORD}
    )
    assert response.status_code == 200


async def test_login_with_wrong_password(client, manager):
    response = await client.post(
        "/api/v1/auth/login", json={"email": manager.email, "password": "not-the-password"}
    )

    assert response.status_code == 401
    assert response.json() == {
        "success": False,
        "error": "AUTHENTICATION_MISSING",
        "message": "Invalid email or password",
    }


async def test_login_disabled_account(client, session_factory):
    account = await create_account(
        session_factory, "client", "Dora Disabled", "dora@designhub.io", is_active=False
    )
    response = await client.post(
        "/api/v1/auth/login", json={"email": account.email, "password": PASSWORD}
    )
    assert response.status_code == 403

    response = await client.get("/api/v1/auth/me", headers=account.headers)
    assert response.status_code == 403


async def test_login_validation_error_has_field_details(client):
    response = await client.post("/api/v1/auth/login", json={"email": "nope", "password": "x"})

    assert response.status_code == 400
    body = response.json()
    assert body["error"] == "VALIDATION_FAILED"
    assert any(detail["field"] == "email" for detail in body["details"])


async def test_missing_token(client):
    response = await client.get("/api/v1/auth/me")
    assert response.status_code == 401
    assert response.json()["error"] == "AUTHENTICATION_MISSING"


async def test_malformed_and_expired_tokens(client, manager):
    response = await client.get(
        "/api/v1/auth/me", headers={"Authorization": "Bearer not-a-jwt"}
    )
    assert response.status_code == 401

    expired = create_access_token(manager.id, manager.role, expires_delta=timedelta(minutes=-5))
    response = await client.get(
        "/api/v1/auth/me", headers={"Authorization": f"Bearer {expired}"}
    )
    assert response.status_code == 401


async def test_update_profile(client, client_user):
    response = await client.patch(
        "/api/v1/auth/me",
        json={"name": "  Cleo Renamed  ", "phone": "+44 20 7946 0000"},
        headers=client_user.headers,
    )

    assert response.status_code == 200
    data = response.json()["data"]
    assert data["name"] == "Cleo Renamed"
    assert data["phone"] == "+44 20 7946 0000"
    assert data["role"] == "client"


async def test_change_password(client, client_user):
    response = await client.post(
        "/api/v1/auth/change-password",
        json={"currentPassword": "wrong-password", "newPassword": "another-secret"},
        headers=client_user.headers,
    )
    assert response.status_code == 400

    response = await client.post(
        "/api/v1/auth/change-password",
        json={"currentPassword": PASSWORD, "newPassword": PASSWORD},
        headers=client_user.headers,
    )
    assert response.status_code == 400

    response = await client.post(
        "/api/v1/auth/change-password",
        json={"currentPassword": PASSWORD, "newPassword": "another-secret"},
        headers=client_user.headers,
    )
    assert response.status_code == 200

    login = await client.post(
        "/api/v1/auth/login", json={"email": client_user.email, "password": "another-secret"}
    )
    assert login.status_code == 200


async def request_reset(client, email: str) -> str | None:
    response = await client.post("/api/v1/auth/forgot-password", json={"email": email})
    assert response.status_code == 200
    return response.json()["data"]["resetToken"]


async def test_password_reset_flow(client, client_user):
    token = await request_reset(client, client_user.email.upper())
    assert token

    response = await client.get("/api/v1/auth/reset-password", params={"token": token})
    assert response.status_code == 200
    assert response.json()["data"] == {"valid": True, "email": client_user.email}

    response = await client.post(
        "/api/v1/auth/reset-password", json={"token": token, "password": "fresh-password"}
    )
    assert response.status_code == 200

    login = await client.post(
        "/api/v1/auth/login", json={"email": client_user.email, "password": "fresh-password"}
    )
    assert login.status_code == 200

    # Tokens work once
    response = await client.post(
        "/api/v1/auth/reset-password", json={"token": token, "password": "another-password"}
    )
    assert response.status_code == 400
    assert response.json()["details"][0]["field"] == "token"


async def test_forgot_password_does_not_reveal_accounts(client, client_user):
    known = await client.post("/api/v1/auth/forgot-password", json={"email": client_user.email})
    unknown = await client.post("/api/v1/auth/forgot-password", json={"email": "nobody@designhub.io"})

    assert unknown.status_code == 200
    assert unknown.json()["message"] == known.json()["message"]
    assert unknown.json()["data"]["resetToken"] is None


async def test_new_reset_request_retires_older_token(client, client_user):
    first = await request_reset(client, client_user.email)
    second = await request_reset(client, client_user.email)

    response = await client.get("/api/v1/auth/reset-password", params={"token": first})
    assert response.status_code == 400
    response = await client.get("/api/v1/auth/reset-password", params={"token": second})
    assert response.status_code == 200


async def test_expired_or_unknown_reset_token(client, session_factory, client_user):
    token = await request_reset(client, client_user.email)
    async with session_factory() as session:
        await session.execute(
            update(PasswordResetToken)
            .where(PasswordResetToken.token_hash == token_digest(token))
            .values(expires_at=utc_now() - timedelta(minutes=1))
        )
        await session.commit()

    for candidate in (token, "not-a-real-token"):
        response = await client.post(
            "/api/v1/auth/reset-password", json={"token": candidate, "password": "fresh-password"}
        )
        assert response.status_code == 400

    response = await client.post(
        "/api/v1/auth/reset-password", json={"token": token, "password": "short"}
    )
    assert response.status_code == 400
