# tests/test_auth_api.py

from __future__ import annotations


def test_register_returns_token_and_user(client) -> None:
    r = client.post("/api/auth/register", json={"email": "Ann@Example.com", "name": "Ann", "password": "secret123"})
    assert r.status_code == 201
    body = r.json()
    assert body["token"]
    assert body["user"]["email"] == "ann@example.com"
    assert body["user"]["name"] == "Ann"
    assert "password_hash" not in body["user"]


def test_register_duplicate_email_conflicts(client, register) -> None:
    register(email="dup@example.com")
    r = client.post("/api/auth/register", json={"email": "dup@example.com", "name": "Dup", "password": "secret123"})
    assert r.status_code == 409


def test_register_validation(client) -> None:
    short_pw = client.post("/api/auth/register", json={"email": "a@example.com", "name": "Ann", "password": "123"})
    short_name = client.post("/api/auth/register", json={"email": "a@example.com", "name": "A", "password": "secret123"})
    bad_email = client.post("/api/auth/register", json={"email": "not-an-email", "name": "Ann", "password": "secret123"})
    assert short_pw.status_code == 400
    assert short_pw.json()["detail"] == "Validation failed"
    assert short_name.status_code == 400
    assert bad_email.status_code == 400


def test_login_and_me(client, register) -> None:
    register(name="Bob", email="bob@example.com", password="hunter22")
    r = client.post("/api/auth/login", json={"email": "BOB@example.com", "password": "hunter22"})
    assert r.status_code == 200
    token = r.json()["token"]
    me = client.get("/api/auth/me", headers={"Authorization": f"Bearer {token}"})
    assert me.status_code == 200
    assert me.json()["name"] == "Bob"


def test_login_failures_look_the_same(client, register) -> None:
    register(email="bob@example.com", password="hunter22")
    wrong_pw = client.post("/api/auth/login", json={"email": "bob@example.com", "password": "nope"})
    unknown = client.post("/api/auth/login", json={"email": "nobody@example.com", "password": "nope"})
    assert wrong_pw.status_code == unknown.status_code == 401
    assert wrong_pw.json() == unknown.json()


def test_health_and_info(client) -> None:
    assert client.get("/api/health").json()["ok"] is True
    assert client.get("/api").json()["name"] == "TaskShare API"


def test_register_name_length_is_checked_after_stripping(client) -> None:
    r = client.post("/api/auth/register", json={"email": "a@example.com", "name": " a ", "password": "secret123"})
    assert r.status_code == 400
    ok = client.post("/api/auth/register", json={"email": "a@example.com", "name": " Al ", "password": "secret123"})
    assert ok.status_code == 201
    assert ok.json()["user"]["name"] == "Al"
