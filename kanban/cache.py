"""Local mirror of the task collection.

The cache holds exactly the latest snapshot pushed by the adapter. It is
replaced wholesale on every push and never patched locally, so whatever the
view shows is something the store actually sent.
"""

from __future__ import annotations

import logging
from collections.abc import Callable, Iterable
from typing import Optional

from kanban.records import Task

logger = logging.getLogger(__name__)

Listener = Callable[["TaskCache"], None]


class TaskCache:
    """Snapshot holder with a version counter and change listeners."""

    def __init__(self) -> None:
        self._tasks: tuple[Task, ...] = ()
        self._by_id: dict[str, Task] = {}
        self._version = 0
        self._listeners: list[Listener] = []

    # -- reads ---------------------------------------------------------------

    @property
    def tasks(self) -> tuple[Task, ...]:
        return self._tasks

    @property
    def version(self) -> int:
        """Number of snapshots applied so far."""
        return self._version

    @property
    def loaded(self) -> bool:
        return self._version > 0

    def get(self, task_id: str) -> Optional[Task]:
        return self._by_id.get(task_id)

    def __len__(self) -> int:
        return len(self._tasks)

    # -- writes --------------------------------------------------------------

    def replace(self, snapshot: Iterable[Task]) -> None:
        """Swap in a new snapshot and notify listeners."""
        tasks = tuple(snapshot)
        self._tasks = tasks
        self._by_id = {task.id: task for task in tasks}
        self._version += 1
        logger.debug("Cache v%d holds %d task(s)", self._version, len(tasks))
        for listener in list(self._listeners):
            listener(self)

    def attach(self, adapter, on_error=None):
        """Subscribe to ``adapter`` with :meth:`replace` as the only writer.

        Returns the adapter's subscription handle.
        """
        return adapter.subscribe(self.replace, on_error)

    # -- listeners -----------------------------------------------------------

    def add_listener(self, listener: Listener) -> Callable[[], None]:
        """Register a change listener; returns a callable that removes it."""
        self._listeners.append(listener)

        def remove() -> None:
            if listener in self._listeners:
                self._listeners.remove(listener)

        return remove
