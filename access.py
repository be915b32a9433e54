"""Ownership and share checks for lists, tasks and comments.

Every check receives the caller's user id explicitly. Read paths never reveal
whether a hidden resource exists: a list the caller cannot see answers the same
404 as a list that was never created.
"""
from __future__ import annotations
import logging

from fastapi import HTTPException, status
from sqlalchemy import select, insert, delete, and_, or_, exists
from sqlalchemy.exc import IntegrityError

from db import users, lists, list_shares, tasks, comments, gen_id, now_ts

logger = logging.getLogger(__name__)

LIST_NOT_FOUND = "List not found"
TASK_NOT_FOUND = "Task not found"

def _accessible_list_clause(user_id: str):
    shared = exists().where(and_(list_shares.c.list_id == lists.c.id, list_shares.c.user_id == user_id))
    return or_(lists.c.owner_id == user_id, shared)

def can_access_list(conn, list_id: str, user_id: str) -> bool:
    stmt = select(lists.c.id).where(and_(lists.c.id == list_id, _accessible_list_clause(user_id)))
    return conn.execute(stmt).first() is not None

def can_mutate_list(conn, list_id: str, user_id: str) -> bool:
    stmt = select(lists.c.id).where(and_(lists.c.id == list_id, lists.c.owner_id == user_id))
    return conn.execute(stmt).first() is not None

def can_access_task(conn, task_id: str, user_id: str) -> bool:
    list_id = conn.execute(select(tasks.c.list_id).where(tasks.c.id == task_id)).scalar_one_or_none()
    if list_id is None:
        return False
    return can_access_list(conn, list_id, user_id)

def can_access_comment(conn, comment_id: str, user_id: str) -> bool:
    task_id = conn.execute(select(comments.c.task_id).where(comments.c.id == comment_id)).scalar_one_or_none()
    if task_id is None:
        return False
    return can_access_task(conn, task_id, user_id)

# --- guards used by the routes ---

def require_list_access(conn, list_id: str, user_id: str):
    row = conn.execute(
        select(lists).where(and_(lists.c.id == list_id, _accessible_list_clause(user_id)))
    ).mappings().first()
    if not row:
        raise HTTPException(status_code=status.HTTP_404_NOT_FOUND, detail=LIST_NOT_FOUND)
    return row

def require_list_owner(conn, list_id: str, user_id: str):
    """Return the list row if ``user_id`` owns it.

    A share holder already knows the list exists, so they get 403; everybody
    else gets the same 404 as for a missing list.
    """
    row = require_list_access(conn, list_id, user_id)
    if row["owner_id"] != user_id:
        raise HTTPException(status_code=status.HTTP_403_FORBIDDEN, detail="Only the list owner can do this")
    return row

def require_task_access(conn, task_id: str, user_id: str):
    row = conn.execute(select(tasks).where(tasks.c.id == task_id)).mappings().first()
    if not row or not can_access_list(conn, row["list_id"], user_id):
        raise HTTPException(status_code=status.HTTP_404_NOT_FOUND, detail=TASK_NOT_FOUND)
    return row

# --- share management (owner only, enforced by the caller) ---

def share_list(conn, list_row, email: str):
    """Grant access to the user registered under ``email``.

    Returns ``(share_row, user_row)``.
    """
    email = email.strip().lower()
    target = conn.execute(select(users).where(users.c.email == email)).mappings().first()
    if not target:
        raise HTTPException(status_code=status.HTTP_404_NOT_FOUND, detail="User not found")
    if target["id"] == list_row["owner_id"]:
        raise HTTPException(status_code=status.HTTP_400_BAD_REQUEST, detail="Cannot share a list with yourself")
    already = conn.execute(
        select(list_shares.c.id).where(and_(list_shares.c.list_id == list_row["id"], list_shares.c.user_id == target["id"]))
    ).first()
    if already:
        raise HTTPException(status_code=status.HTTP_409_CONFLICT, detail="List already shared with this user")

    sid = gen_id()
    try:
        conn.execute(insert(list_shares).values(id=sid, list_id=list_row["id"], user_id=target["id"], created_at=now_ts()))
    except IntegrityError:
        # concurrent share of the same pair; the caller's transaction rolls back
        raise HTTPException(status_code=status.HTTP_409_CONFLICT, detail="List already shared with this user")
    logger.info("list %s shared with user %s", list_row["id"], target["id"])
    return conn.execute(select(list_shares).where(list_shares.c.id == sid)).mappings().first(), target

def revoke_share(conn, list_id: str, user_id: str) -> None:
    res = conn.execute(delete(list_shares).where(and_(list_shares.c.list_id == list_id, list_shares.c.user_id == user_id)))
    if res.rowcount == 0:
        raise HTTPException(status_code=status.HTTP_404_NOT_FOUND, detail="Share not found")
    logger.info("share of list %s revoked for user %s", list_id, user_id)

# --- cascades ---

def delete_task_cascade(conn, task_id: str) -> None:
    conn.execute(delete(comments).where(comments.c.task_id == task_id))
    conn.execute(delete(tasks).where(tasks.c.id == task_id))

def delete_list_cascade(conn, list_id: str) -> None:
    """Delete a list: comments, then tasks, then shares, then the list itself."""
    task_ids = select(tasks.c.id).where(tasks.c.list_id == list_id)
    conn.execute(delete(comments).where(comments.c.task_id.in_(task_ids)))
    conn.execute(delete(tasks).where(tasks.c.list_id == list_id))
    conn.execute(delete(list_shares).where(list_shares.c.list_id == list_id))
    conn.execute(delete(lists).where(lists.c.id == list_id))
    logger.info("list %s deleted", list_id)
