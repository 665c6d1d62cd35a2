"""Task form: field validation and guarded submission."""

from __future__ import annotations

import logging
from collections.abc import Awaitable, Callable
from datetime import datetime
from typing import Any, Optional

from kanban.records import NewTaskData, Task, TaskPriority, ensure_utc, utcnow
from kanban.errors import ValidationError

logger = logging.getLogger(__name__)

TITLE_MAX_LENGTH = 100
DESCRIPTION_MAX_LENGTH = 500

FORM_FIELDS = ("title", "description", "priority", "due_date")

SubmitHandler = Callable[[NewTaskData], Awaitable[Any]]


def validate_task_fields(
    title: str,
    description: Optional[str] = None,
    due_date: Optional[datetime] = None,
    now: Optional[datetime] = None,
) -> dict[str, ValidationError]:
    """Return one error per failing field; an empty dict means valid.

    A due date equal to ``now`` is accepted; only strictly earlier fails.
    """
    now = now or utcnow()
    errors: dict[str, ValidationError] = {}

    if not title or not title.strip():
        errors["title"] = ValidationError("title", "Please enter a title.")
    elif len(title) > TITLE_MAX_LENGTH:
        errors["title"] = ValidationError(
            "title", f"Title must be {TITLE_MAX_LENGTH} characters or fewer."
        )

    if description and len(description) > DESCRIPTION_MAX_LENGTH:
        errors["description"] = ValidationError(
            "description", f"Description must be {DESCRIPTION_MAX_LENGTH} characters or fewer."
        )

    if due_date is not None and ensure_utc(due_date) < ensure_utc(now):
        errors["due_date"] = ValidationError(
            "due_date", "Due date must not be in the past."
        )

    return errors


class TaskForm:
    """Holds the values and errors of an add or edit form.

    Errors stay inside the form; submission is refused while any is set.
    """

    def __init__(
        self,
        title: str = "",
        description: str = "",
        priority: TaskPriority = TaskPriority.medium,
        due_date: Optional[datetime] = None,
        task_id: Optional[str] = None,
    ) -> None:
        self.values: dict[str, Any] = {
            "title": title,
            "description": description,
            "priority": TaskPriority(priority),
            "due_date": due_date,
        }
        self.task_id = task_id
        self.errors: dict[str, ValidationError] = {}
        self.submitting = False

    @classmethod
    def for_task(cls, task: Task) -> "TaskForm":
        """Edit form pre-filled from an existing task."""
        return cls(
            title=task.title,
            description=task.description,
            priority=task.priority,
            due_date=task.due_date,
            task_id=task.id,
        )

    @property
    def is_edit(self) -> bool:
        return self.task_id is not None

    @property
    def has_errors(self) -> bool:
        return bool(self.errors)

    def error_messages(self) -> dict[str, str]:
        return {field: error.message for field, error in self.errors.items()}

    def set_field(self, field: str, value: Any) -> None:
        """Change a value and clear any error recorded for that field."""
        if field not in FORM_FIELDS:
            raise KeyError(field)
        if field == "priority":
            value = TaskPriority(value)
        self.values[field] = value
        self.errors.pop(field, None)

    def validate(self, now: Optional[datetime] = None) -> bool:
        self.errors = validate_task_fields(
            self.values["title"],
            self.values["description"],
            self.values["due_date"],
            now=now,
        )
        return not self.errors

    def data(self) -> NewTaskData:
        return NewTaskData(
            title=self.values["title"],
            description=self.values["description"] or "",
            priority=self.values["priority"],
            due_date=self.values["due_date"],
        )

    async def submit(self, handler: SubmitHandler, now: Optional[datetime] = None) -> bool:
        """Validate and, when clean, hand the data to ``handler``.

        Returns False without calling ``handler`` when validation fails. A
        failing handler propagates its error and leaves the values as typed.
        """
        if not self.validate(now):
            logger.debug("Form submission blocked: %s", sorted(self.errors))
            return False

        self.submitting = True
        try:
            await handler(self.data())
        finally:
            self.submitting = False

        if not self.is_edit:
            self.reset()
        return True

    def reset(self) -> None:
        self.values = {
            "title": "",
            "description": "",
            "priority": TaskPriority.medium,
            "due_date": None,
        }
        self.errors = {}
