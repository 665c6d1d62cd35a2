# taskstore/routes/tasks.py
"""Collection endpoints: CRUD on task documents plus the snapshot stream."""

import logging
from typing import Any

from fastapi import APIRouter, Depends, HTTPException
from fastapi.responses import StreamingResponse
from sqlalchemy.engine import Engine
from sqlmodel import Session, select

from taskstore.database import get_engine, get_session
from taskstore.feed import ChangeFeed, get_feed, snapshot_events
from taskstore.models import (
    TaskCreate,
    TaskRecord,
    TaskUpdate,
    as_utc,
    fetch_documents,
    to_document,
    utcnow,
)

logger = logging.getLogger(__name__)

router = APIRouter(prefix="/api/tasks", tags=["tasks"])


def _get_or_404(session: Session, task_id: str) -> TaskRecord:
    task = session.get(TaskRecord, task_id)
    if task is None:
        raise HTTPException(status_code=404, detail="Task not found")
    return task


@router.get("/")
def list_tasks(session: Session = Depends(get_session)) -> list[dict[str, Any]]:
    """Return the whole collection ordered by creation time, newest first."""
    return fetch_documents(session)


@router.get("/stream")
async def stream_tasks(
    db_engine: Engine = Depends(get_engine),
    change_feed: ChangeFeed = Depends(get_feed),
) -> StreamingResponse:
    """Push the full collection on connect and after every change (SSE)."""
    return StreamingResponse(
        snapshot_events(db_engine, change_feed),
        media_type="text/event-stream",
        headers={"Cache-Control": "no-cache", "X-Accel-Buffering": "no"},
    )


@router.get("/{task_id}")
def get_task(task_id: str, session: Session = Depends(get_session)) -> dict[str, Any]:
    """Get a single task document by id."""
    return to_document(_get_or_404(session, task_id))


@router.post("/", status_code=201)
def create_task(
    body: TaskCreate,
    session: Session = Depends(get_session),
    change_feed: ChangeFeed = Depends(get_feed),
) -> dict[str, Any]:
    """Store a new document. The store assigns id and both timestamps."""
    now = utcnow()
    data = body.model_dump()
    if data["due_date"] is not None:
        data["due_date"] = as_utc(data["due_date"])
    task = TaskRecord(**data, created_at=now, updated_at=now)
    session.add(task)
    session.commit()
    session.refresh(task)
    change_feed.publish()
    logger.info("Created task %s (status=%s)", task.id, task.status)
    return to_document(task)


@router.patch("/{task_id}")
def update_task(
    task_id: str,
    body: TaskUpdate,
    session: Session = Depends(get_session),
    change_feed: ChangeFeed = Depends(get_feed),
) -> dict[str, Any]:
    """Merge the supplied fields into a document and stamp ``updatedAt``."""
    task = _get_or_404(session, task_id)
    update_data = body.model_dump(exclude_unset=True)
    if update_data.get("due_date") is not None:
        update_data["due_date"] = as_utc(update_data["due_date"])
    for key, value in update_data.items():
        setattr(task, key, value)
    task.updated_at = utcnow()
    session.add(task)
    session.commit()
    session.refresh(task)
    change_feed.publish()
    logger.info("Updated task %s fields=%s", task_id, sorted(update_data))
    return to_document(task)


@router.delete("/{task_id}", status_code=204)
def delete_task(
    task_id: str,
    session: Session = Depends(get_session),
    change_feed: ChangeFeed = Depends(get_feed),
) -> None:
    """Delete a task document by id."""
    task = _get_or_404(session, task_id)
    session.delete(task)
    session.commit()
    change_feed.publish()
    logger.info("Deleted task %s", task_id)


@router.delete("/", status_code=204)
def clear_tasks(
    session: Session = Depends(get_session),
    change_feed: ChangeFeed = Depends(get_feed),
) -> None:
    """Delete every document in the collection."""
    tasks = session.exec(select(TaskRecord)).all()
    for task in tasks:
        session.delete(task)
    session.commit()
    change_feed.publish()
    logger.warning("Cleared %d task(s) from the collection", len(tasks))
