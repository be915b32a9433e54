from __future__ import annotations
import os
import hashlib
import logging
from typing import Optional

from fastapi import HTTPException, Depends, status, Response, Cookie, Request
from fastapi.security import HTTPBearer, HTTPAuthorizationCredentials
from jose import jwt, JWTError
import bcrypt
from sqlalchemy import select

from db import engine, users, now_ts

logger = logging.getLogger(__name__)

bearer = HTTPBearer(auto_error=False)

JWT_SECRET = os.getenv("JWT_SECRET", "dev-secret")
JWT_ALG = "HS256"
JWT_TTL_SECONDS = int(os.getenv("JWT_TTL_SECONDS", "2592000"))  # 30d
BCRYPT_ROUNDS = int(os.getenv("BCRYPT_ROUNDS", "12"))

AUTH_COOKIE = os.getenv("AUTH_COOKIE", "ts_token")

def set_auth_cookie(resp: Response, token: str):
    resp.set_cookie(
        key=AUTH_COOKIE,
        value=token,
        max_age=JWT_TTL_SECONDS,
        httponly=True,
        samesite="lax",
        secure=True,
        path="/",
    )

def clear_auth_cookie(resp: Response):
    resp.delete_cookie(key=AUTH_COOKIE, path="/")

def _pw_prehash(pw: str) -> bytes:
    """Pre-hash to avoid bcrypt's 72-byte input limit and keep runtime predictable."""
    return hashlib.sha256(pw.encode("utf-8")).digest()

def hash_password(pw: str) -> str:
    # The empty string is hashed like any other password.
    salt = bcrypt.gensalt(rounds=BCRYPT_ROUNDS)
    return bcrypt.hashpw(_pw_prehash(pw), salt).decode("utf-8")

def verify_password(pw: str, pw_hash: str) -> bool:
    try:
        return bcrypt.checkpw(_pw_prehash(pw), pw_hash.encode("utf-8"))
    except (ValueError, AttributeError):
        # malformed or non-bcrypt hash
        return False

def create_token(user_id: str) -> str:
    exp = now_ts() + JWT_TTL_SECONDS
    return jwt.encode({"sub": user_id, "exp": exp}, JWT_SECRET, algorithm=JWT_ALG)

def decode_token(token: str) -> Optional[str]:
    """Return the user id bound to ``token``, or None if it cannot be trusted.

    Malformed, expired and badly signed tokens are all treated the same way.
    """
    try:
        payload = jwt.decode(token, JWT_SECRET, algorithms=[JWT_ALG])
    except JWTError as e:
        logger.warning("rejected token: %s", e.__class__.__name__)
        return None
    uid = payload.get("sub")
    if not uid or not isinstance(uid, str):
        return None
    return uid

def _unauthenticated() -> HTTPException:
    return HTTPException(
        status_code=status.HTTP_401_UNAUTHORIZED,
        detail="Not authenticated",
        headers={"WWW-Authenticate": "Bearer"},
    )

def require_user(
    request: Request,
    creds: HTTPAuthorizationCredentials | None = Depends(bearer),
    ts_token: str | None = Cookie(default=None, alias=AUTH_COOKIE),
) -> dict:
    token = None
    if creds and creds.credentials:
        token = creds.credentials
    # Some hosting/proxy layers may strip the Authorization header.
    elif request.headers.get("x-auth-token"):
        token = request.headers.get("x-auth-token")
    elif ts_token:
        token = ts_token
    if not token:
        raise _unauthenticated()
    uid = decode_token(token)
    if uid is None:
        raise _unauthenticated()

    with engine.connect() as conn:
        u = conn.execute(select(users).where(users.c.id == uid)).mappings().first()
    if not u:
        raise _unauthenticated()
    return dict(u)
