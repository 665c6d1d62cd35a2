# taskstore/models.py
"""Task document model and request schemas for the task store."""

from datetime import datetime, timezone
from enum import Enum
from typing import Any, Optional
from uuid import uuid4

from pydantic import BaseModel, ConfigDict, Field as SchemaField
from sqlmodel import Field, Session, SQLModel, select

from taskstore.config import COLLECTION_NAME


class TaskStatus(str, Enum):
    todo = "todo"
    in_progress = "in-progress"
    completed = "completed"


class TaskPriority(str, Enum):
    high = "high"
    medium = "medium"
    low = "low"


def utcnow() -> datetime:
    """Return the current time as an aware UTC datetime."""
    return datetime.now(timezone.utc)


def as_utc(value: datetime) -> datetime:
    """Attach or convert to UTC. SQLite hands back naive values already in UTC."""
    if value.tzinfo is None:
        return value.replace(tzinfo=timezone.utc)
    return value.astimezone(timezone.utc)


def _new_id() -> str:
    return uuid4().hex


class TaskRecord(SQLModel, table=True):
    """One document of the task collection.

    ``status`` is nullable so rows written before the three-stage workflow
    existed can still be stored and served; readers derive it from
    ``completed``.
    """
    __tablename__ = COLLECTION_NAME

    id: str = Field(default_factory=_new_id, primary_key=True)
    title: str = Field(default="")
    description: Optional[str] = Field(default=None)
    completed: bool = Field(default=False)
    status: Optional[TaskStatus] = Field(default=None)
    priority: TaskPriority = Field(default=TaskPriority.medium)
    created_at: datetime = Field(default_factory=utcnow, index=True)
    updated_at: datetime = Field(default_factory=utcnow)
    due_date: Optional[datetime] = Field(default=None)


class TaskCreate(BaseModel):
    """Body of a create call. Timestamps and id are assigned by the store."""
    model_config = ConfigDict(populate_by_name=True, extra="forbid")

    title: str = SchemaField(max_length=100)
    description: Optional[str] = SchemaField(default=None, max_length=500)
    completed: bool = False
    status: Optional[TaskStatus] = None
    priority: TaskPriority = TaskPriority.medium
    due_date: Optional[datetime] = SchemaField(default=None, alias="dueDate")


class TaskUpdate(BaseModel):
    """Body of a partial update. ``id`` and ``createdAt`` are rejected."""
    model_config = ConfigDict(populate_by_name=True, extra="forbid")

    title: Optional[str] = SchemaField(default=None, max_length=100)
    description: Optional[str] = SchemaField(default=None, max_length=500)
    completed: Optional[bool] = None
    status: Optional[TaskStatus] = None
    priority: Optional[TaskPriority] = None
    due_date: Optional[datetime] = SchemaField(default=None, alias="dueDate")


def to_document(task: TaskRecord) -> dict[str, Any]:
    """Render a stored row in the wire shape consumed by clients."""
    doc: dict[str, Any] = {
        "id": task.id,
        "title": task.title,
        "completed": task.completed,
        "priority": TaskPriority(task.priority).value,
        "createdAt": as_utc(task.created_at).isoformat(),
        "updatedAt": as_utc(task.updated_at).isoformat(),
        "dueDate": as_utc(task.due_date).isoformat() if task.due_date else None,
    }
    if task.description is not None:
        doc["description"] = task.description
    if task.status is not None:
        doc["status"] = TaskStatus(task.status).value
    return doc


def fetch_documents(session: Session) -> list[dict[str, Any]]:
    """Return the whole collection in wire shape, newest first."""
    statement = select(TaskRecord).order_by(TaskRecord.created_at.desc())
    return [to_document(task) for task in session.exec(statement).all()]
