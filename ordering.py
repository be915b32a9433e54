from __future__ import annotations
import logging
from typing import List

from fastapi import HTTPException
from sqlalchemy import select, update, and_, func

from db import tasks, now_ts

logger = logging.getLogger(__name__)

def next_task_order(conn, list_id: str) -> int:
    """Position for a task appended to the end of ``list_id``."""
    cur = conn.execute(select(func.max(tasks.c.order_index)).where(tasks.c.list_id == list_id)).scalar()
    return 0 if cur is None else int(cur) + 1

def reorder_tasks(conn, list_id: str, ordered_ids: List[str]) -> None:
    """Give the task at position i of ``ordered_ids`` order_index i.

    Must run inside one transaction (``engine.begin()``): every id is checked
    against the list before the first update, so the batch is applied whole
    or not at all. Tasks of the list missing from ``ordered_ids`` keep their
    current order_index.
    """
    ordered = [x.strip() for x in ordered_ids]
    if any(not x for x in ordered):
        raise HTTPException(status_code=400, detail="taskIds must not contain empty ids")
    if len(set(ordered)) != len(ordered):
        raise HTTPException(status_code=400, detail="taskIds must not contain duplicates")
    if not ordered:
        return

    found = {
        r[0] for r in conn.execute(
            select(tasks.c.id).where(and_(tasks.c.list_id == list_id, tasks.c.id.in_(ordered)))
        )
    }
    missing = [tid for tid in ordered if tid not in found]
    if missing:
        raise HTTPException(status_code=400, detail="Some tasks do not belong to this list")

    ts = now_ts()
    for i, tid in enumerate(ordered):
        conn.execute(
            update(tasks).where(and_(tasks.c.id == tid, tasks.c.list_id == list_id)).values(order_index=i, updated_at=ts)
        )
    logger.info("reordered %d tasks in list %s", len(ordered), list_id)
