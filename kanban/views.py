"""Pure view derivation: snapshot + filter spec -> ordered list."""

from __future__ import annotations

from collections.abc import Iterable, Sequence
from typing import Optional

from kanban.records import ALL, STATUSES, FilterSpec, Task, TaskPriority, TaskStatus

PRIORITY_ORDER: dict[TaskPriority, int] = {
    TaskPriority.high: 3,
    TaskPriority.medium: 2,
    TaskPriority.low: 1,
}


def matches(task: Task, spec: FilterSpec) -> bool:
    """True when the task passes both the status and the priority filter."""
    if spec.status != ALL and task.status != spec.status:
        return False
    if spec.priority != ALL and task.priority != spec.priority:
        return False
    return True


def sort_key(task: Task, sort_by: str) -> float:
    """Numeric key for ``sort_by``. Tasks without a due date sort as 0."""
    if sort_by == "priority":
        return PRIORITY_ORDER[task.priority]
    if sort_by == "dueDate":
        return task.due_date.timestamp() if task.due_date else 0
    return task.created_at.timestamp()


def derive_view(tasks: Iterable[Task], spec: FilterSpec) -> list[Task]:
    """Filter then sort. ``sorted`` is stable in both directions, so ties
    keep the order they had in the snapshot.
    """
    kept = [task for task in tasks if matches(task, spec)]
    return sorted(
        kept,
        key=lambda task: sort_key(task, spec.sort_by),
        reverse=spec.sort_order == "desc",
    )


def group_by_status(tasks: Iterable[Task]) -> dict[TaskStatus, list[Task]]:
    """Split tasks into the three board columns, preserving order."""
    columns: dict[TaskStatus, list[Task]] = {status: [] for status in STATUSES}
    for task in tasks:
        columns[task.status].append(task)
    return columns


def count_by_status(tasks: Sequence[Task]) -> dict[str, int]:
    counts = {"total": len(tasks)}
    for status in STATUSES:
        counts[status.value] = sum(1 for task in tasks if task.status == status)
    return counts


class ViewMemo:
    """Caches the last derivation, keyed on cache version and filter spec."""

    def __init__(self) -> None:
        self._key: Optional[tuple[int, FilterSpec]] = None
        self._view: list[Task] = []
        self.recomputations = 0

    def get(self, version: int, tasks: Iterable[Task], spec: FilterSpec) -> list[Task]:
        key = (version, spec)
        if key != self._key:
            self._view = derive_view(tasks, spec)
            self._key = key
            self.recomputations += 1
        return list(self._view)
