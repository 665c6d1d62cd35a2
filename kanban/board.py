"""Board session: the object a UI binds to.

Composes the adapter, the cache, the filter spec, the drag controller and
form submission. It owns the subscription for as long as the board is shown
and exposes one dismissible error message for failed writes.
"""

from __future__ import annotations

import logging
from collections.abc import Awaitable
from typing import Any, Optional, TypeVar

from kanban.adapter import Subscription, TaskStoreAdapter
from kanban.cache import TaskCache
from kanban.drag import DragController, DragEvent, DragOutcome
from kanban.errors import RemoteOperationError, SubscriptionError
from kanban.forms import TaskForm
from kanban.records import FilterSpec, NewTaskData, Task, TaskStatus
from kanban.views import ViewMemo, count_by_status, group_by_status

logger = logging.getLogger(__name__)

T = TypeVar("T")

ERROR_MESSAGES = {
    "add": "Failed to add the task.",
    "update": "Failed to update the task.",
    "remove": "Failed to delete the task.",
    "toggle": "Failed to change the completion state.",
    "move": "Failed to move the task.",
}


class BoardSession:
    """Live board state backed by one snapshot subscription.

    Usage::

        async with BoardSession(TaskStoreAdapter()) as board:
            board.set_filter(status="todo", sort_by="priority")
            for task in board.view:
                ...
    """

    def __init__(
        self,
        adapter: TaskStoreAdapter,
        cache: Optional[TaskCache] = None,
        filter_spec: Optional[FilterSpec] = None,
    ) -> None:
        self.adapter = adapter
        self.cache = cache or TaskCache()
        self.filter = filter_spec or FilterSpec()
        self.error: Optional[str] = None
        self.channel_error: Optional[SubscriptionError] = None
        self.drag = DragController(adapter, self.cache.get)
        self._memo = ViewMemo()
        self._subscription: Optional[Subscription] = None

    # -- lifetime ------------------------------------------------------------

    def start(self) -> None:
        """Open the snapshot subscription (no-op when already open)."""
        if self._subscription is not None and self._subscription.active:
            return
        self._subscription = self.cache.attach(self.adapter, self._on_channel_error)
        logger.info("Board session started")

    def stop(self) -> None:
        if self._subscription is not None:
            self._subscription.unsubscribe()

    async def __aenter__(self) -> "BoardSession":
        self.start()
        return self

    async def __aexit__(self, *exc_info) -> None:
        self.stop()
        if self._subscription is not None:
            await self._subscription.wait_closed()

    def _on_channel_error(self, error: SubscriptionError) -> None:
        # Not surfaced as a blocking error; the cache keeps the last snapshot.
        self.channel_error = error

    # -- derived state -------------------------------------------------------

    @property
    def loading(self) -> bool:
        return not self.cache.loaded

    @property
    def tasks(self) -> tuple[Task, ...]:
        return self.cache.tasks

    @property
    def view(self) -> list[Task]:
        return self._memo.get(self.cache.version, self.cache.tasks, self.filter)

    @property
    def columns(self) -> dict[TaskStatus, list[Task]]:
        return group_by_status(self.view)

    @property
    def counts(self) -> dict[str, int]:
        """Per-status totals over the unfiltered collection."""
        return count_by_status(self.cache.tasks)

    def set_filter(self, **changes: Any) -> FilterSpec:
        self.filter = self.filter.with_changes(**changes)
        return self.filter

    def clear_error(self) -> None:
        self.error = None

    # -- actions -------------------------------------------------------------

    async def _report(self, action: str, operation: Awaitable[T]) -> T:
        self.error = None
        try:
            return await operation
        except RemoteOperationError as exc:
            self.error = ERROR_MESSAGES[action]
            logger.error("%s: %s", self.error, exc)
            raise

    async def add_task(self, data: NewTaskData) -> str:
        return await self._report("add", self.adapter.create(data))

    async def update_task(self, task_id: str, **fields: Any) -> None:
        await self._report("update", self.adapter.update(task_id, fields))

    async def remove_task(self, task_id: str) -> None:
        await self._report("remove", self.adapter.delete(task_id))

    async def toggle_complete(self, task_id: str, completed: bool) -> None:
        """Check or uncheck a task; unchecking sends it back to ``todo``."""
        status = TaskStatus.completed if completed else TaskStatus.todo
        await self._report(
            "toggle",
            self.adapter.update(task_id, {"status": status, "completed": completed}),
        )

    async def move_task(self, task_id: str, status: TaskStatus) -> bool:
        """Move without dragging. Returns False when already in ``status``."""
        task = self.cache.get(task_id)
        if task is not None and task.status == TaskStatus(status):
            return False
        await self._report("move", self.adapter.update(task_id, {"status": status}))
        return True

    async def dispatch_drag(self, event: DragEvent) -> DragOutcome:
        """Feed a drag event to the controller.

        The pending error message is only replaced by a drop that writes.
        """
        try:
            outcome = await self.drag.handle(event)
        except RemoteOperationError as exc:
            self.error = ERROR_MESSAGES["move"]
            logger.error("%s: %s", self.error, exc)
            raise
        if outcome.updated:
            self.error = None
        return outcome

    async def submit_form(self, form: TaskForm) -> bool:
        """Submit an add or edit form through the adapter."""
        if form.is_edit:
            async def handler(data: NewTaskData) -> None:
                await self.update_task(form.task_id, **data.to_fields())
        else:
            handler = self.add_task
        return await form.submit(handler)
