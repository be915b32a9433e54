# tests/test_security.py

from __future__ import annotations

from jose import jwt

import security
from db import now_ts


def test_hash_and_verify_password() -> None:
    h = security.hash_password("testpassword123")
    assert h != "testpassword123"
    assert security.verify_password("testpassword123", h)
    assert not security.verify_password("wrongpassword", h)


def test_empty_password_is_hashed_like_any_other() -> None:
    h = security.hash_password("")
    assert len(h) > 10
    assert security.verify_password("", h)
    assert not security.verify_password("", security.hash_password("test123"))


def test_long_passwords_are_not_truncated() -> None:
    base = "x" * 80
    h = security.hash_password(base + "a")
    assert security.verify_password(base + "a", h)
    assert not security.verify_password(base + "b", h)


def test_same_password_gets_different_salts() -> None:
    assert security.hash_password("same") != security.hash_password("same")


def test_verify_against_malformed_hash_is_false() -> None:
    assert not security.verify_password("pw", "not-a-bcrypt-hash")


def test_token_roundtrip_binds_user_id() -> None:
    token = security.create_token("user-1")
    assert len(token.split(".")) == 3
    assert security.decode_token(token) == "user-1"
    assert security.create_token("user-2") != token


def test_expired_token_is_rejected() -> None:
    token = jwt.encode({"sub": "user-1", "exp": now_ts() - 60}, security.JWT_SECRET, algorithm=security.JWT_ALG)
    assert security.decode_token(token) is None


def test_token_signed_with_other_secret_is_rejected() -> None:
    token = jwt.encode({"sub": "user-1", "exp": now_ts() + 60}, "someone-else", algorithm=security.JWT_ALG)
    assert security.decode_token(token) is None


def test_garbage_and_subjectless_tokens_are_rejected() -> None:
    assert security.decode_token("abc.def.ghi") is None
    token = jwt.encode({"exp": now_ts() + 60}, security.JWT_SECRET, algorithm=security.JWT_ALG)
    assert security.decode_token(token) is None


def test_unauthenticated_requests_get_uniform_401(client) -> None:
    expired = jwt.encode({"sub": "user-1", "exp": now_ts() - 60}, security.JWT_SECRET, algorithm=security.JWT_ALG)
    ghost = security.create_token("no-such-user")
    responses = [
        client.get("/api/lists"),
        client.get("/api/lists", headers={"Authorization": "Bearer garbage"}),
        client.get("/api/lists", headers={"Authorization": f"Bearer {expired}"}),
        client.get("/api/lists", headers={"Authorization": f"Bearer {ghost}"}),
    ]
    assert [r.status_code for r in responses] == [401, 401, 401, 401]
    assert {r.json()["detail"] for r in responses} == {"Not authenticated"}


def test_x_auth_token_header_is_accepted(client, owner) -> None:
    r = client.get("/api/auth/me", headers={"X-Auth-Token": owner["token"]})
    assert r.status_code == 200
    assert r.json()["email"] == "owner@example.com"
