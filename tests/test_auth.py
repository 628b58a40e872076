from datetime import timedelta

import pytest
from jose import jwt

from auth import Identity, authenticate, authorize, create_access_token
from config import settings
from errors import ApiError, ErrorKind


# Tokens

def test_token_round_trip():
    token = create_access_token("abc123", "user")
    assert authenticate(token) == Identity(user_id="abc123", role="user")


def test_token_carries_expiry_from_issue():
    token = create_access_token("abc123", "admin")
    payload = jwt.decode(token, settings.secret_key, algorithms=[settings.algorithm])
    assert payload["exp"] - payload["iat"] == settings.access_token_expire_minutes * 60


@pytest.mark.parametrize("token", [None, ""])
def test_missing_token_is_unauthorized(token):
    with pytest.raises(ApiError) as exc:
        authenticate(token)
    assert exc.value.kind is ErrorKind.UNAUTHORIZED
    assert exc.value.message == "Authentication required"


def test_expired_token_is_unauthorized():
    token = create_access_token("abc123", "user", expires_delta=timedelta(seconds=-5))
    with pytest.raises(ApiError) as exc:
        authenticate(token)
    assert exc.value.kind is ErrorKind.UNAUTHORIZED
    assert exc.value.message == "Token expired"


@pytest.mark.parametrize(
    "token",
    [
        "not-a-token",
        jwt.encode({"id": "abc123", "role": "admin"}, "someone-elses-key", algorithm="HS256"),
        jwt.encode({"sub": "abc123"}, settings.secret_key, algorithm=settings.algorithm),
    ],
)
def test_bad_tokens_are_unauthorized(token):
    with pytest.raises(ApiError) as exc:
        authenticate(token)
    assert exc.value.kind is ErrorKind.UNAUTHORIZED
    assert exc.value.message == "Invalid token"


# Authorization

def test_admin_passes_every_check():
    admin = Identity(user_id="a", role="admin")
    authorize(admin)
    authorize(admin, owner_id="someone-else")
    authorize(admin, required_role="admin")


def test_user_passes_on_own_resource():
    authorize(Identity(user_id="u1", role="user"), owner_id="u1")


@pytest.mark.parametrize("kwargs", [{"owner_id": "u2"}, {"required_role": "admin"}])
def test_user_is_forbidden_elsewhere(kwargs):
    with pytest.raises(ApiError) as exc:
        authorize(Identity(user_id="u1", role="user"), **kwargs)
    assert exc.value.kind is ErrorKind.FORBIDDEN


# Register / login / me over HTTP

def test_register_returns_user_without_password_and_token(client, db):
    response = client.post(
        "/api/auth/register",
        json={"name": "Ann", "email": "ann@example.com", "password": "secret123"},
    )
    assert response.status_code == 201
    body = response.json()
    assert body["success"] is True
    user = body["data"]["user"]
    assert "password" not in user
    assert user["role"] == "user"
    assert user["isActive"] is True
    assert authenticate(body["data"]["token"]) == Identity(user_id=user["id"], role="user")

    stored = db["users"].find_one({"email": "ann@example.com"})
    assert stored["password"] != "secret123"
    assert stored["password"].startswith("$2")


def test_register_duplicate_email_conflicts(client, user):
    response = client.post(
        "/api/auth/register",
        json={"name": "Again", "email": user["email"], "password": "secret123"},
    )
    assert response.status_code == 409
    assert response.json() == {"success": False, "error": "Email already in use"}


def test_register_validates_body(client):
    response = client.post("/api/auth/register", json={"name": "Ann", "email": "not-an-email", "password": "x"})
    assert response.status_code == 400
    assert response.json()["success"] is False


def test_login_succeeds(client, user):
    response = client.post("/api/auth/login", json={"email": user["email"], "password": "secret123"})
    assert response.status_code == 200
    data = response.json()["data"]
    assert data["user"]["id"] == user["id"]
    assert "password" not in data["user"]
    assert authenticate(data["token"]).user_id == user["id"]


def test_login_failures_are_indistinguishable(client, make_user):
    make_user(email="live@example.com")
    make_user(email="off@example.com", is_active=False)
    attempts = [
        {"email": "live@example.com", "password": "wrong-password"},
        {"email": "ghost@example.com", "password": "secret123"},
        {"email": "off@example.com", "password": "secret123"},
    ]
    responses = [client.post("/api/auth/login", json=body) for body in attempts]
    assert [r.status_code for r in responses] == [401, 401, 401]
    assert {r.json()["error"] for r in responses} == {"Invalid credentials"}


def test_me_requires_token(client):
    response = client.get("/api/auth/me")
    assert response.status_code == 401
    assert response.json() == {"success": False, "error": "Authentication required"}


def test_me_returns_current_user(client, user, user_headers):
    response = client.get("/api/auth/me", headers=user_headers)
    assert response.status_code == 200
    assert response.json()["data"]["email"] == user["email"]


def test_me_for_deleted_user_is_not_found(client, db, user, user_headers):
    db["users"].delete_many({})
    response = client.get("/api/auth/me", headers=user_headers)
    assert response.status_code == 404


def test_expired_token_over_http(client, user):
    token = create_access_token(user["id"], user["role"], expires_delta=timedelta(seconds=-5))
    response = client.get("/api/auth/me", headers={"Authorization": f"Bearer {token}"})
    assert response.status_code == 401
    assert response.json()["error"] == "Token expired"


def test_bootstrap_admin_creates_then_promotes(db):
    from auth import AuthService

    service = AuthService(db)
    admin = service.bootstrap_admin("boss@example.com", "secret123")
    assert admin["role"] == "admin"
    assert service.bootstrap_admin("boss@example.com", "ignored")["id"] == admin["id"]
    assert db["users"].count_documents({}) == 1
