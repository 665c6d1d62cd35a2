"""Test doubles and builders for engine tests."""

from datetime import datetime, timedelta, timezone
from unittest.mock import AsyncMock

from kanban.records import Task, TaskPriority, TaskStatus

BASE_TIME = datetime(2024, 1, 1, tzinfo=timezone.utc)


def make_task(
    task_id: str,
    status: TaskStatus = TaskStatus.todo,
    priority: TaskPriority = TaskPriority.medium,
    created_offset: int = 0,
    due_offset=None,
    title=None,
) -> Task:
    """Build a task; offsets are minutes from BASE_TIME."""
    created = BASE_TIME + timedelta(minutes=created_offset)
    return Task(
        id=task_id,
        title=title or f"Task {task_id}",
        status=TaskStatus(status),
        completed=TaskStatus(status) == TaskStatus.completed,
        priority=TaskPriority(priority),
        created_at=created,
        updated_at=created,
        due_date=BASE_TIME + timedelta(minutes=due_offset) if due_offset is not None else None,
    )


class FakeSubscription:
    def __init__(self):
        self.active = True
        self.unsubscribe_calls = 0

    def unsubscribe(self):
        self.unsubscribe_calls += 1
        self.active = False

    async def wait_closed(self):
        return None


class FakeAdapter:
    """Adapter double: write calls are AsyncMocks, snapshots are pushed by hand."""

    def __init__(self):
        self.create = AsyncMock(return_value="new-id")
        self.update = AsyncMock(return_value=None)
        self.delete = AsyncMock(return_value=None)
        self.on_snapshot = None
        self.on_error = None
        self.subscriptions = []

    def subscribe(self, on_snapshot, on_error=None):
        self.on_snapshot = on_snapshot
        self.on_error = on_error
        subscription = FakeSubscription()
        self.subscriptions.append(subscription)
        return subscription

    def push(self, tasks):
        self.on_snapshot(list(tasks))


