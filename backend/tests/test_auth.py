"""Tests for authentication endpoints and the auth service"""
import inspect
from datetime import timedelta

import pytest
from jose import jwt

from taskflow.api import auth as auth_routes
from taskflow.errors import AppError, ErrorKind

PASSWORD = "secret123"


def register(client, name="Carol", email="carol@example.com", password=PASSWORD):
    return client.post("/api/auth/register", json={"name": name, "email": email, "password": password})


def test_register_returns_user_and_token(client, auth_service):
    response = register(client, email="Carol@Example.com")

    assert response.status_code == 201
    body = response.json()
    assert body["success"] is True
    user = body["data"]["user"]
    assert user["email"] == "carol@example.com"
    assert user["role"] == "user"
    assert "password_hash" not in user
    assert auth_service.decode_access_token(body["data"]["token"])["sub"] == user["id"]


def test_register_duplicate_email(client):
    assert register(client).status_code == 201
    response = register(client, name="Other")

    assert response.status_code == 400
    assert response.json()["message"] == "email already exists"


def test_register_validation_errors(client):
    response = client.post("/api/auth/register", json={"name": "C", "email": "nope", "password": "123"})

    assert response.status_code == 400
    body = response.json()
    assert body["message"] == "Validation failed"
    assert len(body["errors"]) == 3


def test_login_success(client, alice):
    response = client.post("/api/auth/login", json={"email": "alice@example.com", "password": PASSWORD})

    assert response.status_code == 200
    data = response.json()["data"]
    assert data["user"]["name"] == "Alice"
    assert data["user"]["last_login"] is not None
    assert data["token"]


def test_login_wrong_password(client, alice):
    response = client.post("/api/auth/login", json={"email": "alice@example.com", "password": "wrong-pass"})

    assert response.status_code == 401
    assert response.json()["message"] == "Invalid email or password"


def test_login_inactive_user(client, make_user):
    make_user(email="gone@example.com", is_active=False)
    response = client.post("/api/auth/login", json={"email": "gone@example.com", "password": PASSWORD})
    assert response.status_code == 401


def test_profile_requires_token(client):
    response = client.get("/api/auth/profile")
    assert response.status_code == 401
    assert response.json()["message"] == "Access token required"


def test_profile_with_malformed_token(client):
    response = client.get("/api/auth/profile", headers={"Authorization": "Bearer not-a-jwt"})
    assert response.status_code == 401
    assert response.json()["message"] == "Invalid token"


def test_profile_with_expired_token(client, alice, auth_service):
    user, _ = alice
    token = auth_service.create_access_token(user, expires_delta=timedelta(seconds=-10))

    response = client.get("/api/auth/profile", headers={"Authorization": f"Bearer {token}"})
    assert response.status_code == 401
    assert response.json()["message"] == "Token has expired"


def test_profile_for_deleted_user(client, alice, database):
    user, headers = alice
    database.users.delete_one({"_id": user["_id"]})

    response = client.get("/api/auth/profile", headers=headers)
    assert response.status_code == 401
    assert response.json()["message"] == "User not found or inactive"


def test_get_profile(client, alice):
    _, headers = alice
    response = client.get("/api/auth/profile", headers=headers)

    assert response.status_code == 200
    assert response.json()["data"]["email"] == "alice@example.com"


def test_update_profile(client, alice):
    _, headers = alice
    response = client.put(
        "/api/auth/profile",
        json={"name": "  Alice B  ", "notification_settings": {"email": False}},
        headers=headers,
    )

    assert response.status_code == 200
    data = response.json()["data"]
    assert data["name"] == "Alice B"
    assert data["notification_settings"] == {"email": False, "in_app": True}


def test_update_profile_without_fields(client, alice):
    _, headers = alice
    response = client.put("/api/auth/profile", json={}, headers=headers)
    assert response.status_code == 400


def test_change_password(client, alice):
    _, headers = alice
    response = client.post(
        "/api/auth/change-password",
        json={"current_password": PASSWORD, "new_password": "brand-new-pass"},
        headers=headers,
    )
    assert response.status_code == 200

    login = client.post("/api/auth/login", json={"email": "alice@example.com", "password": "brand-new-pass"})
    assert login.status_code == 200


def test_change_password_wrong_current(client, alice):
    _, headers = alice
    response = client.post(
        "/api/auth/change-password",
        json={"current_password": "not-it", "new_password": "brand-new-pass"},
        headers=headers,
    )
    assert response.status_code == 400
    assert response.json()["message"] == "Current password is incorrect"


def test_token_claims(auth_service, settings, alice):
    user, _ = alice
    token = auth_service.create_access_token(user)
    claims = jwt.decode(token, settings.JWT_SECRET, algorithms=["HS256"])

    assert claims["sub"] == str(user["_id"])
    assert claims["email"] == "alice@example.com"
    assert claims["role"] == "user"
    assert claims["exp"] - claims["iat"] == settings.JWT_EXPIRE_MINUTES * 60


def test_decode_token_signed_with_other_secret(auth_service):
    token = jwt.encode({"sub": "abc"}, "other-secret", algorithm="HS256")
    with pytest.raises(AppError) as exc_info:
        auth_service.decode_access_token(token)
    assert exc_info.value.kind == ErrorKind.INVALID_TOKEN


def test_verify_password_with_malformed_hash(auth_service):
    assert auth_service.verify_password("secret", "not-a-bcrypt-hash") is False


@pytest.mark.parametrize("handler", [auth_routes.register, auth_routes.login, auth_routes.change_password])
def test_password_handlers_run_in_threadpool(handler):
    assert not inspect.iscoroutinefunction(handler)
