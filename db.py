from __future__ import annotations
import os
import logging
from datetime import datetime, timezone

from sqlalchemy import (
    create_engine, MetaData, Table, Column, ForeignKey, UniqueConstraint,
    String, Boolean, BigInteger, Text, false,
)
from sqlalchemy.engine import Engine

logger = logging.getLogger(__name__)

def normalize_database_url(url: str) -> str:
    return "postgresql://" + url[len("postgres://"):] if url.startswith("postgres://") else url

def get_engine() -> Engine:
    db_url = os.getenv("DATABASE_URL", "").strip()
    if db_url:
        db_url = normalize_database_url(db_url)
        if db_url.startswith("postgresql://") and "+psycopg2" not in db_url:
            db_url = db_url.replace("postgresql://", "postgresql+psycopg2://", 1)
    else:
        db_url = "sqlite:///./tasks.db"
    connect_args = {}
    if db_url.startswith("sqlite"):
        # TestClient and uvicorn's threadpool share connections across threads
        connect_args["check_same_thread"] = False
    return create_engine(db_url, future=True, pool_pre_ping=True, connect_args=connect_args)

engine = get_engine()
metadata = MetaData()

users = Table(
    "users", metadata,
    Column("id", String, primary_key=True),
    Column("email", String, nullable=False, unique=True),
    Column("name", String, nullable=False),
    Column("password_hash", String, nullable=False),
    Column("created_at", BigInteger, nullable=False),
)

lists = Table(
    "lists", metadata,
    Column("id", String, primary_key=True),
    Column("title", String, nullable=False),
    Column("owner_id", String, ForeignKey("users.id", ondelete="CASCADE"), nullable=False, index=True),
    Column("created_at", BigInteger, nullable=False),
    Column("updated_at", BigInteger, nullable=False),
)

list_shares = Table(
    "list_shares", metadata,
    Column("id", String, primary_key=True),
    Column("list_id", String, ForeignKey("lists.id", ondelete="CASCADE"), nullable=False, index=True),
    Column("user_id", String, ForeignKey("users.id", ondelete="CASCADE"), nullable=False, index=True),
    Column("created_at", BigInteger, nullable=False),
    UniqueConstraint("list_id", "user_id", name="uq_list_shares_list_user"),
)

tasks = Table(
    "tasks", metadata,
    Column("id", String, primary_key=True),
    Column("title", String, nullable=False),
    Column("completed", Boolean, nullable=False, server_default=false()),
    Column("list_id", String, ForeignKey("lists.id", ondelete="CASCADE"), nullable=False, index=True),
    Column("order_index", BigInteger, nullable=False, server_default="0"),
    Column("created_at", BigInteger, nullable=False),
    Column("updated_at", BigInteger, nullable=False),
)

comments = Table(
    "comments", metadata,
    Column("id", String, primary_key=True),
    Column("content", Text, nullable=False),
    Column("task_id", String, ForeignKey("tasks.id", ondelete="CASCADE"), nullable=False, index=True),
    Column("user_id", String, ForeignKey("users.id", ondelete="CASCADE"), nullable=False),
    Column("created_at", BigInteger, nullable=False),
)

def now_ts() -> int:
    return int(datetime.now(tz=timezone.utc).timestamp())

def gen_id() -> str:
    return f"{now_ts()}_{os.urandom(8).hex()}"

def init_db(bind: Engine | None = None) -> None:
    """Create tables if missing."""
    metadata.create_all(bind or engine)
    logger.debug("schema ready on %s", (bind or engine).url.render_as_string(hide_password=True))
