"""
Shared fixtures: an in-memory MongoDB (mongomock) wired into the app through
`get_db`, user factories and request payload builders.
"""
import os

# Settings are read at import time; keep the real database out of the tests.
os.environ["DATABASE_URL"] = ""
os.environ["DATABASE_NAME"] = ""
os.environ["SECRET_KEY"] = "test-secret-key"
os.environ["BCRYPT_ROUNDS"] = "4"
os.environ["LOG_LEVEL"] = "WARNING"

import mongomock
import pytest
from fastapi.testclient import TestClient

from auth import create_access_token, get_password_hash
from database import ensure_indexes, get_db
from main import app
from schemas import User
from stores import UserStore


@pytest.fixture
def db():
    database = mongomock.MongoClient()["catalog_test"]
    ensure_indexes(database)
    return database


@pytest.fixture
def client(db):
    app.dependency_overrides[get_db] = lambda: db
    with TestClient(app) as test_client:
        yield test_client
    app.dependency_overrides.clear()


@pytest.fixture
def make_user(db):
    def _make(email="user@example.com", password="secret123", role="user", is_active=True, name="Test User"):
        record = User(
            name=name,
            email=email,
            password=get_password_hash(password),
            role=role,
            is_active=is_active,
        )
        return UserStore(db).create(record.to_document())

    return _make


@pytest.fixture
def headers_for():
    def _headers(user):
        return {"Authorization": f"Bearer {create_access_token(user['id'], user['role'])}"}

    return _headers


@pytest.fixture
def admin(make_user):
    return make_user(email="admin@example.com", role="admin", name="Admin")


@pytest.fixture
def admin_headers(admin, headers_for):
    return headers_for(admin)


@pytest.fixture
def user(make_user):
    return make_user()


@pytest.fixture
def user_headers(user, headers_for):
    return headers_for(user)


# Payload builders

def brand_payload(**overrides):
    payload = {"name": "Acme", "logo": "https://cdn.example.com/acme.png"}
    payload.update(overrides)
    return payload


def product_payload(**overrides):
    payload = {
        "name": "Acme Racer",
        "brand": "Acme",
        "color": "red",
        "modelCode": "AR1",
        "scale": "1:18",
        "price": 25,
    }
    payload.update(overrides)
    return payload


def item_payload(**overrides):
    payload = {
        "name": "Racing Wheel Set",
        "sku": "RW-001",
        "price": 12.5,
        "stock": 3,
        "categories": ["wheels"],
        "brand": "Acme",
        "description": "Set of four rubber wheels",
        "weight": 0.2,
    }
    payload.update(overrides)
    return payload


@pytest.fixture
def brand(client, user_headers):
    response = client.post("/api/brands", json=brand_payload(), headers=user_headers)
    assert response.status_code == 201
    return response.json()["data"]


@pytest.fixture
def product(client, user_headers, brand):
    response = client.post("/api/products", json=product_payload(), headers=user_headers)
    assert response.status_code == 201
    return response.json()["data"]
