"""Task entity, form payload, and filter spec shared across the engine.

The wire shape is the store's document format (camelCase keys, ISO-8601
timestamps). :meth:`Task.from_document` is the single read path and applies
the legacy migration: a document without ``status`` is read as
``completed`` -> "completed", otherwise "todo".
"""

from __future__ import annotations

import logging
from collections.abc import Mapping
from datetime import datetime, timezone
from enum import Enum
from typing import Any, Literal, Optional, Union

from pydantic import BaseModel, ConfigDict, Field

logger = logging.getLogger(__name__)

ALL = "all"


class TaskStatus(str, Enum):
    todo = "todo"
    in_progress = "in-progress"
    completed = "completed"


class TaskPriority(str, Enum):
    high = "high"
    medium = "medium"
    low = "low"


STATUSES: tuple[TaskStatus, ...] = (
    TaskStatus.todo,
    TaskStatus.in_progress,
    TaskStatus.completed,
)

# Accepted spellings for partial updates -> wire key.
UPDATE_FIELDS: dict[str, str] = {
    "title": "title",
    "description": "description",
    "status": "status",
    "completed": "completed",
    "priority": "priority",
    "due_date": "dueDate",
    "dueDate": "dueDate",
}
IMMUTABLE_FIELDS = frozenset({"id", "created_at", "createdAt"})


def utcnow() -> datetime:
    return datetime.now(timezone.utc)


def ensure_utc(value: datetime) -> datetime:
    """Treat naive datetimes as UTC; convert aware ones to UTC."""
    if value.tzinfo is None:
        return value.replace(tzinfo=timezone.utc)
    return value.astimezone(timezone.utc)


def _parse_timestamp(raw: Any) -> Optional[datetime]:
    if raw is None or raw == "":
        return None
    if isinstance(raw, datetime):
        return ensure_utc(raw)
    if isinstance(raw, (int, float)):
        return datetime.fromtimestamp(raw, tz=timezone.utc)
    return ensure_utc(datetime.fromisoformat(str(raw).replace("Z", "+00:00")))


def migrate_status(raw_status: Any, completed: bool) -> TaskStatus:
    """Resolve a stored status, deriving it from ``completed`` when absent."""
    if raw_status:
        try:
            return TaskStatus(raw_status)
        except ValueError:
            logger.debug("Unknown status %r; deriving from completed", raw_status)
    return TaskStatus.completed if completed else TaskStatus.todo


class Task(BaseModel):
    """Read-only view of one stored task."""
    model_config = ConfigDict(frozen=True, populate_by_name=True)

    id: str
    title: str = ""
    description: str = ""
    completed: bool = False
    status: TaskStatus = TaskStatus.todo
    priority: TaskPriority = TaskPriority.medium
    created_at: datetime = Field(alias="createdAt")
    updated_at: datetime = Field(alias="updatedAt")
    due_date: Optional[datetime] = Field(default=None, alias="dueDate")

    @classmethod
    def from_document(cls, doc: Mapping[str, Any]) -> "Task":
        """Build a task from a stored document, filling legacy gaps."""
        completed = bool(doc.get("completed") or False)
        try:
            priority = TaskPriority(doc.get("priority") or TaskPriority.medium)
        except ValueError:
            priority = TaskPriority.medium
        now = utcnow()
        return cls(
            id=str(doc["id"]),
            title=doc.get("title") or "",
            description=doc.get("description") or "",
            completed=completed,
            status=migrate_status(doc.get("status"), completed),
            priority=priority,
            created_at=_parse_timestamp(doc.get("createdAt")) or now,
            updated_at=_parse_timestamp(doc.get("updatedAt")) or now,
            due_date=_parse_timestamp(doc.get("dueDate")),
        )


class NewTaskData(BaseModel):
    """User-entered fields of a task, as submitted by the form."""
    model_config = ConfigDict(populate_by_name=True)

    title: str
    description: str = ""
    priority: TaskPriority = TaskPriority.medium
    due_date: Optional[datetime] = Field(default=None, alias="dueDate")

    def to_fields(self) -> dict[str, Any]:
        """Return the fields in the wire shape (no status or timestamps)."""
        return {
            "title": self.title,
            "description": self.description,
            "priority": self.priority.value,
            "dueDate": ensure_utc(self.due_date).isoformat() if self.due_date else None,
        }


def encode_update(partial: Mapping[str, Any]) -> dict[str, Any]:
    """Translate a partial update into wire keys and values.

    Raises:
        ValueError: If the update names ``id``/``createdAt`` or an unknown field.
    """
    immutable = IMMUTABLE_FIELDS.intersection(partial)
    if immutable:
        raise ValueError(f"Immutable field(s) cannot be updated: {', '.join(sorted(immutable))}")
    unknown = set(partial) - set(UPDATE_FIELDS)
    if unknown:
        raise ValueError(f"Unknown task field(s): {', '.join(sorted(unknown))}")

    payload: dict[str, Any] = {}
    for key, value in partial.items():
        wire_key = UPDATE_FIELDS[key]
        if isinstance(value, Enum):
            value = value.value
        elif isinstance(value, datetime):
            value = ensure_utc(value).isoformat()
        payload[wire_key] = value
    if "status" in payload:
        payload["status"] = TaskStatus(payload["status"]).value
    if "priority" in payload:
        payload["priority"] = TaskPriority(payload["priority"]).value
    return payload


SortBy = Literal["createdAt", "priority", "dueDate"]
SortOrder = Literal["asc", "desc"]


class FilterSpec(BaseModel):
    """Display filter and ordering. Local UI state, never persisted."""
    model_config = ConfigDict(frozen=True, extra="forbid")

    status: Union[Literal["all"], TaskStatus] = ALL
    priority: Union[Literal["all"], TaskPriority] = ALL
    sort_by: SortBy = "createdAt"
    sort_order: SortOrder = "desc"

    def with_changes(self, **changes: Any) -> "FilterSpec":
        """Return a validated copy with ``changes`` merged in."""
        return FilterSpec.model_validate({**self.model_dump(), **changes})
