"""Error taxonomy of the synchronization engine.

Hierarchy:
    KanbanError
    ├── ValidationError       : field-level input problem, stays in the form
    ├── RemoteOperationError  : create/update/delete rejected or unreachable
    └── SubscriptionError     : push channel failed; logged, channel reopened
"""

from __future__ import annotations

from typing import Any, Optional


class KanbanError(Exception):
    """Base error carrying structured context for logging."""

    def __init__(self, message: str, **context: Any) -> None:
        self.message = message
        self.context = context
        super().__init__(message)

    def to_dict(self) -> dict[str, Any]:
        """Serialize to a JSON-compatible dict for log records."""
        return {
            "error_type": self.__class__.__name__,
            "message": self.message,
            "context": {k: str(v) for k, v in self.context.items()},
        }


class ValidationError(KanbanError):
    """A single form field failed validation."""

    def __init__(self, field: str, message: str) -> None:
        self.field = field
        super().__init__(message, field=field)


class RemoteOperationError(KanbanError):
    """A write against the task store failed.

    ``op`` is one of ``create``, ``update``, ``delete`` (or ``clear``);
    ``cause`` is the underlying transport or HTTP error.
    """

    def __init__(
        self,
        op: str,
        cause: BaseException,
        task_id: Optional[str] = None,
        status_code: Optional[int] = None,
    ) -> None:
        self.op = op
        self.cause = cause
        self.task_id = task_id
        self.status_code = status_code
        target = f" {task_id}" if task_id else ""
        super().__init__(
            f"{op}{target} failed: {cause}",
            op=op,
            task_id=task_id,
            status_code=status_code,
        )

    @property
    def not_found(self) -> bool:
        return self.status_code == 404


class SubscriptionError(KanbanError):
    """The snapshot channel dropped or delivered something unreadable."""

    def __init__(self, cause: BaseException) -> None:
        self.cause = cause
        super().__init__(f"snapshot channel failed: {cause}", cause=repr(cause))
