from __future__ import annotations
import os
import logging
from datetime import date
from typing import List

from fastapi import FastAPI, HTTPException, Depends, Request, Response, status
from fastapi.encoders import jsonable_encoder
from fastapi.exceptions import RequestValidationError
from fastapi.middleware.cors import CORSMiddleware
from fastapi.responses import JSONResponse
from fastapi.staticfiles import StaticFiles
from sqlalchemy import select, insert, update, func
from sqlalchemy.exc import IntegrityError

from db import engine, users, lists, list_shares, tasks, comments, now_ts, gen_id, init_db
from security import (
    hash_password, verify_password, create_token, require_user,
    set_auth_cookie, clear_auth_cookie,
)
from access import (
    require_list_access, require_list_owner, require_task_access,
    share_list, revoke_share, delete_list_cascade, delete_task_cascade,
)
from ordering import next_task_order, reorder_tasks
from schemas import (
    AuthRegister, AuthLogin, AuthOut, UserOut,
    ListCreate, ListUpdate, ListOut, ListsOut, ShareCreate, ShareOut,
    TaskCreate, TaskUpdate, TaskOut, ReorderPayload,
    CommentCreate, CommentOut,
    to_user_out, to_share_out, to_list_out, to_task_out, to_comment_out,
)

LOG_LEVEL = os.getenv("LOG_LEVEL", "INFO").upper()
logging.basicConfig(
    level=LOG_LEVEL,
    format="%(asctime)s.%(msecs)03d %(levelname)s %(name)s: %(message)s",
    datefmt="%Y-%m-%d %H:%M:%S",
)
logger = logging.getLogger(__name__)

API_VERSION = "1.0.0"
FRONTEND_URL = os.getenv("FRONTEND_URL", "*")

init_db()

app = FastAPI(title="TaskShare API", version=API_VERSION, description="Collaborative task management API")
_origins = [o.strip() for o in FRONTEND_URL.split(",") if o.strip()] or ["*"]
app.add_middleware(
    CORSMiddleware,
    allow_origins=_origins,
    allow_credentials="*" not in _origins,
    allow_methods=["*"],
    allow_headers=["*"],
)

# --- Error handling ---

@app.exception_handler(RequestValidationError)
async def validation_error_handler(request: Request, exc: RequestValidationError):
    return JSONResponse(
        status_code=status.HTTP_400_BAD_REQUEST,
        content={"detail": "Validation failed", "errors": jsonable_encoder(exc.errors())},
    )

@app.exception_handler(IntegrityError)
async def integrity_error_handler(request: Request, exc: IntegrityError):
    logger.warning("integrity error on %s %s: %s", request.method, request.url.path, exc.orig)
    return JSONResponse(status_code=status.HTTP_409_CONFLICT, content={"detail": "Resource already exists"})

@app.exception_handler(Exception)
async def unhandled_error_handler(request: Request, exc: Exception):
    # ServerErrorMiddleware re-raises after this response, so the server logs it too
    logger.exception("unhandled error on %s %s", request.method, request.url.path)
    return JSONResponse(status_code=status.HTTP_500_INTERNAL_SERVER_ERROR, content={"detail": "Internal server error"})

# --- Helpers ---

def _clean(value: str, what: str = "Title") -> str:
    v = value.strip()
    if not v:
        raise HTTPException(status_code=400, detail=f"{what} is empty")
    return v

def _clean_email(value: str) -> str:
    email = value.strip().lower()
    if "@" not in email or "." not in email:
        raise HTTPException(status_code=400, detail="Enter a valid email")
    return email

def _users_by_id(conn, ids) -> dict:
    ids = set(ids)
    if not ids:
        return {}
    rows = conn.execute(select(users).where(users.c.id.in_(ids))).mappings().all()
    return {r["id"]: r for r in rows}

def _task_counts(conn, list_ids) -> dict:
    if not list_ids:
        return {}
    stmt = select(tasks.c.list_id, func.count(tasks.c.id)).where(tasks.c.list_id.in_(list_ids)).group_by(tasks.c.list_id)
    return {lid: n for lid, n in conn.execute(stmt)}

def _comment_counts(conn, task_ids) -> dict:
    if not task_ids:
        return {}
    stmt = select(comments.c.task_id, func.count(comments.c.id)).where(comments.c.task_id.in_(task_ids)).group_by(comments.c.task_id)
    return {tid: n for tid, n in conn.execute(stmt)}

def _list_out(conn, row, with_shares: bool = False) -> ListOut:
    owners = _users_by_id(conn, [row["owner_id"]])
    shares = _shares_for(conn, [row["id"]]).get(row["id"], []) if with_shares else None
    return to_list_out(row, owners[row["owner_id"]], _task_counts(conn, [row["id"]]).get(row["id"], 0), shares)

def _shares_for(conn, list_ids) -> dict:
    out: dict = {lid: [] for lid in list_ids}
    if not list_ids:
        return out
    rows = conn.execute(
        select(list_shares).where(list_shares.c.list_id.in_(list_ids)).order_by(list_shares.c.created_at.asc(), list_shares.c.id.asc())
    ).mappings().all()
    people = _users_by_id(conn, [r["user_id"] for r in rows])
    for r in rows:
        out[r["list_id"]].append(to_share_out(r, people[r["user_id"]]))
    return out

def _task_out(conn, row) -> TaskOut:
    return to_task_out(row, _comment_counts(conn, [row["id"]]).get(row["id"], 0))

# --- Auth API ---

@app.post("/api/auth/register", response_model=AuthOut, status_code=status.HTTP_201_CREATED)
def register(payload: AuthRegister, response: Response):
    email = _clean_email(payload.email)
    name = _clean(payload.name, "Name")
    if len(name) < 2:
        raise HTTPException(status_code=400, detail="Name must be at least 2 characters")
    uid = gen_id()
    with engine.begin() as conn:
        if conn.execute(select(users.c.id).where(users.c.email == email)).first():
            raise HTTPException(status_code=status.HTTP_409_CONFLICT, detail="User with this email already exists")
        conn.execute(insert(users).values(id=uid, email=email, name=name, password_hash=hash_password(payload.password), created_at=now_ts()))
        u = conn.execute(select(users).where(users.c.id == uid)).mappings().first()
    logger.info("registered user %s", uid)
    token = create_token(uid)
    set_auth_cookie(response, token)
    return AuthOut(token=token, user=to_user_out(u))

@app.post("/api/auth/login", response_model=AuthOut)
def login(payload: AuthLogin, response: Response):
    email = payload.email.strip().lower()
    with engine.connect() as conn:
        u = conn.execute(select(users).where(users.c.email == email)).mappings().first()
    if not u or not verify_password(payload.password, u["password_hash"]):
        logger.warning("failed login attempt")
        raise HTTPException(status_code=status.HTTP_401_UNAUTHORIZED, detail="Invalid email or password")
    token = create_token(u["id"])
    set_auth_cookie(response, token)
    return AuthOut(token=token, user=to_user_out(u))

@app.post("/api/auth/logout")
def auth_logout(response: Response):
    clear_auth_cookie(response)
    return {"ok": True}

@app.get("/api/auth/me", response_model=UserOut)
def me(user=Depends(require_user)):
    return to_user_out(user)

@app.get("/api/health")
def health(): return {"ok": True, "today": date.today().isoformat()}

@app.get("/api")
def api_info():
    return {
        "name": "TaskShare API",
        "version": API_VERSION,
        "endpoints": {
            "documentation": "/docs",
            "health": "/api/health",
            "auth": "/api/auth",
            "lists": "/api/lists",
            "tasks": "/api/lists/{listId}/tasks",
            "comments": "/api/tasks/{taskId}/comments",
        },
    }

# --- Lists ---

@app.get("/api/lists", response_model=ListsOut)
def get_lists(user=Depends(require_user)):
    uid = user["id"]
    with engine.connect() as conn:
        owned = conn.execute(
            select(lists).where(lists.c.owner_id == uid).order_by(lists.c.created_at.desc(), lists.c.id.desc())
        ).mappings().all()
        shared = conn.execute(
            select(lists)
            .join(list_shares, list_shares.c.list_id == lists.c.id)
            .where(list_shares.c.user_id == uid)
            .order_by(lists.c.created_at.desc(), lists.c.id.desc())
        ).mappings().all()
        all_ids = [r["id"] for r in owned] + [r["id"] for r in shared]
        counts = _task_counts(conn, all_ids)
        owners = _users_by_id(conn, [r["owner_id"] for r in owned] + [r["owner_id"] for r in shared])
        shares = _shares_for(conn, [r["id"] for r in owned])
    return ListsOut(
        ownedLists=[to_list_out(r, owners[r["owner_id"]], counts.get(r["id"], 0), shares[r["id"]]) for r in owned],
        sharedLists=[to_list_out(r, owners[r["owner_id"]], counts.get(r["id"], 0)) for r in shared],
    )

@app.post("/api/lists", response_model=ListOut, status_code=status.HTTP_201_CREATED)
def create_list(payload: ListCreate, user=Depends(require_user)):
    title = _clean(payload.title)
    lid = gen_id(); ts = now_ts()
    with engine.begin() as conn:
        conn.execute(insert(lists).values(id=lid, title=title, owner_id=user["id"], created_at=ts, updated_at=ts))
        row = conn.execute(select(lists).where(lists.c.id == lid)).mappings().first()
        return _list_out(conn, row, with_shares=True)

@app.put("/api/lists/{list_id}", response_model=ListOut)
def update_list(list_id: str, payload: ListUpdate, user=Depends(require_user)):
    title = _clean(payload.title)
    with engine.begin() as conn:
        require_list_owner(conn, list_id, user["id"])
        conn.execute(update(lists).where(lists.c.id == list_id).values(title=title, updated_at=now_ts()))
        row = conn.execute(select(lists).where(lists.c.id == list_id)).mappings().first()
        return _list_out(conn, row, with_shares=True)

@app.delete("/api/lists/{list_id}")
def delete_list(list_id: str, user=Depends(require_user)):
    """Delete list together with its tasks, their comments and its shares."""
    with engine.begin() as conn:
        require_list_owner(conn, list_id, user["id"])
        delete_list_cascade(conn, list_id)
    return {"deleted": True}

@app.post("/api/lists/{list_id}/share", response_model=ShareOut, status_code=status.HTTP_201_CREATED)
def create_share(list_id: str, payload: ShareCreate, user=Depends(require_user)):
    email = _clean_email(payload.email)
    with engine.begin() as conn:
        row = require_list_owner(conn, list_id, user["id"])
        share, target = share_list(conn, row, email)
    return to_share_out(share, target)

@app.delete("/api/lists/{list_id}/share/{user_id}")
def delete_share(list_id: str, user_id: str, user=Depends(require_user)):
    with engine.begin() as conn:
        require_list_owner(conn, list_id, user["id"])
        revoke_share(conn, list_id, user_id)
    return {"deleted": True}

# --- Tasks ---

@app.get("/api/lists/{list_id}/tasks", response_model=List[TaskOut])
def list_tasks(list_id: str, user=Depends(require_user)):
    with engine.connect() as conn:
        require_list_access(conn, list_id, user["id"])
        rows = conn.execute(
            select(tasks).where(tasks.c.list_id == list_id)
            .order_by(tasks.c.order_index.asc(), tasks.c.created_at.asc(), tasks.c.id.asc())
        ).mappings().all()
        counts = _comment_counts(conn, [r["id"] for r in rows])
    return [to_task_out(r, counts.get(r["id"], 0)) for r in rows]

@app.post("/api/lists/{list_id}/tasks", response_model=TaskOut, status_code=status.HTTP_201_CREATED)
def create_task(list_id: str, payload: TaskCreate, user=Depends(require_user)):
    title = _clean(payload.title)
    with engine.begin() as conn:
        require_list_access(conn, list_id, user["id"])
        tid = gen_id(); ts = now_ts()
        conn.execute(insert(tasks).values(
            id=tid, title=title, completed=False, list_id=list_id,
            order_index=next_task_order(conn, list_id), created_at=ts, updated_at=ts,
        ))
        row = conn.execute(select(tasks).where(tasks.c.id == tid)).mappings().first()
    return to_task_out(row)

@app.patch("/api/lists/{list_id}/tasks/reorder")
def reorder_list_tasks(list_id: str, payload: ReorderPayload, user=Depends(require_user)):
    with engine.begin() as conn:
        require_list_access(conn, list_id, user["id"])
        reorder_tasks(conn, list_id, payload.taskIds)
    return {"ok": True}

@app.put("/api/tasks/{task_id}", response_model=TaskOut)
def update_task(task_id: str, payload: TaskUpdate, user=Depends(require_user)):
    title = _clean(payload.title)
    with engine.begin() as conn:
        require_task_access(conn, task_id, user["id"])
        conn.execute(update(tasks).where(tasks.c.id == task_id).values(title=title, updated_at=now_ts()))
        row = conn.execute(select(tasks).where(tasks.c.id == task_id)).mappings().first()
        return _task_out(conn, row)

@app.patch("/api/tasks/{task_id}/toggle", response_model=TaskOut)
def toggle_task(task_id: str, user=Depends(require_user)):
    with engine.begin() as conn:
        cur = require_task_access(conn, task_id, user["id"])
        conn.execute(update(tasks).where(tasks.c.id == task_id).values(completed=not bool(cur["completed"]), updated_at=now_ts()))
        row = conn.execute(select(tasks).where(tasks.c.id == task_id)).mappings().first()
        return _task_out(conn, row)

@app.delete("/api/tasks/{task_id}")
def delete_task(task_id: str, user=Depends(require_user)):
    with engine.begin() as conn:
        require_task_access(conn, task_id, user["id"])
        delete_task_cascade(conn, task_id)
    return {"deleted": True}

# --- Comments ---

@app.get("/api/tasks/{task_id}/comments", response_model=List[CommentOut])
def list_comments(task_id: str, user=Depends(require_user)):
    with engine.connect() as conn:
        require_task_access(conn, task_id, user["id"])
        rows = conn.execute(
            select(comments).where(comments.c.task_id == task_id).order_by(comments.c.created_at.asc(), comments.c.id.asc())
        ).mappings().all()
        authors = _users_by_id(conn, [r["user_id"] for r in rows])
    return [to_comment_out(r, authors[r["user_id"]]) for r in rows]

@app.post("/api/tasks/{task_id}/comments", response_model=CommentOut, status_code=status.HTTP_201_CREATED)
def create_comment(task_id: str, payload: CommentCreate, user=Depends(require_user)):
    content = _clean(payload.content, "Content")
    cid = gen_id()
    with engine.begin() as conn:
        require_task_access(conn, task_id, user["id"])
        conn.execute(insert(comments).values(id=cid, content=content, task_id=task_id, user_id=user["id"], created_at=now_ts()))
        row = conn.execute(select(comments).where(comments.c.id == cid)).mappings().first()
    return to_comment_out(row, user)

FRONT_DIR = os.path.join(os.path.dirname(os.path.abspath(__file__)), "frontend")
if os.path.isdir(FRONT_DIR):
    app.mount("/", StaticFiles(directory=FRONT_DIR, html=True), name="frontend")

def run():
    """Serve the app with uvicorn; HOST and PORT come from the environment."""
    import uvicorn
    uvicorn.run(app, host=os.getenv("HOST", "0.0.0.0"), port=int(os.getenv("PORT", "8000")))

if __name__ == "__main__":
    run()
