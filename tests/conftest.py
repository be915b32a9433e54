# tests/conftest.py

from __future__ import annotations

import os
import tempfile

# The engine and JWT settings are read at import time, so point them at a
# throwaway database before anything from the app is imported.
_tmp_dir = tempfile.mkdtemp(prefix="taskshare-tests-")
os.environ["DATABASE_URL"] = "sqlite:///" + os.path.join(_tmp_dir, "test.db")
os.environ["JWT_SECRET"] = "test-secret"
os.environ["BCRYPT_ROUNDS"] = "4"

import pytest
from fastapi.testclient import TestClient

from db import engine, metadata
from main import app


@pytest.fixture()
def client() -> TestClient:
    """Client against a freshly created schema."""
    metadata.drop_all(engine)
    metadata.create_all(engine)
    with TestClient(app) as c:
        yield c


@pytest.fixture()
def register(client: TestClient):
    """Factory: register a user and return its id, token and auth headers."""
    counter = {"n": 0}

    def _register(name: str | None = None, email: str | None = None, password: str = "secret123") -> dict:
        counter["n"] += 1
        name = name or f"User {counter['n']}"
        email = email or f"user{counter['n']}@example.com"
        r = client.post("/api/auth/register", json={"email": email, "name": name, "password": password})
        assert r.status_code == 201, r.text
        body = r.json()
        return {
            "id": body["user"]["id"],
            "email": email,
            "token": body["token"],
            "headers": {"Authorization": f"Bearer {body['token']}"},
        }

    return _register


@pytest.fixture()
def owner(register) -> dict:
    return register(name="Olivia Owner", email="owner@example.com")


@pytest.fixture()
def friend(register) -> dict:
    return register(name="Alex Friend", email="friend@example.com")


@pytest.fixture()
def stranger(register) -> dict:
    return register(name="Sam Stranger", email="stranger@example.com")


@pytest.fixture()
def make_list(client: TestClient):
    def _make(user: dict, title: str = "Groceries") -> str:
        r = client.post("/api/lists", json={"title": title}, headers=user["headers"])
        assert r.status_code == 201, r.text
        return r.json()["id"]

    return _make


@pytest.fixture()
def make_task(client: TestClient):
    def _make(user: dict, list_id: str, title: str) -> str:
        r = client.post(f"/api/lists/{list_id}/tasks", json={"title": title}, headers=user["headers"])
        assert r.status_code == 201, r.text
        return r.json()["id"]

    return _make


@pytest.fixture()
def share(client: TestClient):
    def _share(user: dict, list_id: str, email: str):
        return client.post(f"/api/lists/{list_id}/share", json={"email": email}, headers=user["headers"])

    return _share
