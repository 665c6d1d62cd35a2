"""Remote store adapter: the only write path to the task collection.

Writes go over HTTP to the task store; reads arrive as full snapshots on a
Server-Sent-Events channel. Every snapshot is migrated record by record and
ordered by creation time, newest first, before it reaches a subscriber.
"""

from __future__ import annotations

import asyncio
import contextlib
import json
import logging
from collections.abc import AsyncIterator, Callable, Mapping
from datetime import datetime, timedelta
from typing import Any, Optional

import httpx

from kanban.config import REQUEST_TIMEOUT, RETRY_DELAY, STORE_URL
from kanban.errors import RemoteOperationError, SubscriptionError
from kanban.records import (
    NewTaskData,
    Task,
    TaskPriority,
    TaskStatus,
    encode_update,
    utcnow,
)

logger = logging.getLogger(__name__)

TASKS_PATH = "/api/tasks/"
STREAM_PATH = "/api/tasks/stream"
HEALTH_PATH = "/api/health"

# Three missed keep-alives from the store before the channel counts as dead.
STREAM_READ_TIMEOUT = 45.0

SnapshotCallback = Callable[[list[Task]], None]
ErrorCallback = Callable[[SubscriptionError], None]


async def parse_sse(lines: AsyncIterator[str]) -> AsyncIterator[tuple[str, str]]:
    """Group raw SSE lines into ``(event, data)`` pairs. Comments are skipped."""
    event = "message"
    data: list[str] = []
    async for line in lines:
        line = line.rstrip("\r")
        if not line:
            if data:
                yield event, "\n".join(data)
            event, data = "message", []
            continue
        if line.startswith(":"):
            continue
        name, _, value = line.partition(":")
        value = value[1:] if value.startswith(" ") else value
        if name == "event":
            event = value
        elif name == "data":
            data.append(value)
    if data:
        yield event, "\n".join(data)


def to_snapshot(documents: Any) -> list[Task]:
    """Migrate raw documents and order them newest first (stable)."""
    if not isinstance(documents, list):
        raise ValueError(f"Snapshot payload must be a list, got {type(documents).__name__}")
    tasks = [Task.from_document(doc) for doc in documents]
    return sorted(tasks, key=lambda t: t.created_at, reverse=True)


class TaskStoreAdapter:
    """Async client for the task store.

    Parameters
    ----------
    base_url : str
        Root URL of the task store service.
    client : httpx.AsyncClient, optional
        Pre-built client (tests inject one with a mock or ASGI transport).
        A client passed in is not closed by :meth:`aclose`.
    retry_delay : float
        Seconds to wait before reopening a failed snapshot channel.
    """

    def __init__(
        self,
        base_url: str = STORE_URL,
        *,
        client: Optional[httpx.AsyncClient] = None,
        timeout: float = REQUEST_TIMEOUT,
        retry_delay: float = RETRY_DELAY,
    ) -> None:
        self._owns_client = client is None
        self._client = client or httpx.AsyncClient(base_url=base_url, timeout=timeout)
        self._timeout = timeout
        self.retry_delay = retry_delay

    async def __aenter__(self) -> "TaskStoreAdapter":
        return self

    async def __aexit__(self, *exc_info) -> None:
        await self.aclose()

    async def aclose(self) -> None:
        if self._owns_client:
            await self._client.aclose()

    # -- writes --------------------------------------------------------------

    async def _request(
        self, op: str, method: str, url: str, task_id: Optional[str] = None, **kwargs
    ) -> httpx.Response:
        try:
            response = await self._client.request(method, url, **kwargs)
            response.raise_for_status()
        except httpx.HTTPStatusError as exc:
            logger.error(
                "Task %s failed (HTTP %s) id=%s", op, exc.response.status_code, task_id
            )
            raise RemoteOperationError(
                op, exc, task_id=task_id, status_code=exc.response.status_code
            ) from exc
        except httpx.HTTPError as exc:
            logger.error("Task %s failed: %s id=%s", op, exc, task_id)
            raise RemoteOperationError(op, exc, task_id=task_id) from exc
        return response

    async def create(self, data: NewTaskData) -> str:
        """Store a new task in the ``todo`` stage and return its id."""
        payload = {
            **data.to_fields(),
            "status": TaskStatus.todo.value,
            "completed": False,
        }
        response = await self._request("create", "POST", TASKS_PATH, json=payload)
        task_id = response.json()["id"]
        logger.debug("Created task %s", task_id)
        return task_id

    async def update(
        self, task_id: str, partial: Optional[Mapping[str, Any]] = None, **fields: Any
    ) -> None:
        """Merge the given fields into a task; the store stamps ``updatedAt``.

        Whenever ``status`` is present, ``completed`` is set to match it,
        overriding any value the caller gave. ``completed`` without
        ``status`` is sent as-is; rows lacking a status then resolve through
        the read-side migration.

        Raises:
            ValueError: If an immutable or unknown field is named (no I/O).
            RemoteOperationError: If the store rejects or cannot be reached.
        """
        payload = encode_update({**(partial or {}), **fields})
        if "status" in payload:
            completed = payload["status"] == TaskStatus.completed.value
            if payload.get("completed", completed) != completed:
                logger.warning(
                    "Task %s: completed=%r contradicts status=%r; sending completed=%r",
                    task_id, payload["completed"], payload["status"], completed,
                )
            payload["completed"] = completed
        elif "completed" in payload:
            logger.warning(
                "Task %s: 'completed' updated without 'status'; relying on read-side migration",
                task_id,
            )
        await self._request(
            "update", "PATCH", f"{TASKS_PATH}{task_id}", task_id=task_id, json=payload
        )
        logger.debug("Updated task %s fields=%s", task_id, sorted(payload))

    async def delete(self, task_id: str) -> None:
        """Remove a task. A missing task is an error."""
        await self._request("delete", "DELETE", f"{TASKS_PATH}{task_id}", task_id=task_id)
        logger.debug("Deleted task %s", task_id)

    async def clear_all(self) -> None:
        """Remove every task in the collection."""
        await self._request("clear", "DELETE", TASKS_PATH)
        logger.warning("Cleared all tasks")

    # -- reads ---------------------------------------------------------------

    async def fetch_all(self) -> list[Task]:
        """One-shot read of the ordered, migrated collection."""
        try:
            response = await self._client.get(TASKS_PATH)
            response.raise_for_status()
        except httpx.HTTPError as exc:
            logger.error("Task fetch failed: %s", exc)
            raise RemoteOperationError("fetch", exc) from exc
        return to_snapshot(response.json())

    async def check_connection(self) -> bool:
        """Probe health and a collection read; log the cause on failure."""
        try:
            health = await self._client.get(HEALTH_PATH)
            health.raise_for_status()
            await self.fetch_all()
        except (httpx.HTTPError, RemoteOperationError) as exc:
            logger.error("Task store unreachable: %s", exc)
            return False
        logger.info("Task store connection OK")
        return True

    async def snapshot_stream(self) -> AsyncIterator[list]:
        """Yield the raw document list of each ``snapshot`` event."""
        timeout = httpx.Timeout(self._timeout, read=STREAM_READ_TIMEOUT)
        async with self._client.stream(
            "GET", STREAM_PATH, headers={"Accept": "text/event-stream"}, timeout=timeout
        ) as response:
            response.raise_for_status()
            async for event, data in parse_sse(response.aiter_lines()):
                if event == "snapshot":
                    yield json.loads(data)

    def subscribe(
        self,
        on_snapshot: SnapshotCallback,
        on_error: Optional[ErrorCallback] = None,
    ) -> "Subscription":
        """Open the push channel; must be called from a running event loop."""
        return Subscription(self, on_snapshot, on_error)


class Subscription:
    """Handle for one open snapshot channel.

    The channel reconnects after every failure until :meth:`unsubscribe` is
    called. Once unsubscribed, no callback fires again.
    """

    def __init__(
        self,
        adapter: TaskStoreAdapter,
        on_snapshot: SnapshotCallback,
        on_error: Optional[ErrorCallback] = None,
    ) -> None:
        self._adapter = adapter
        self._on_snapshot = on_snapshot
        self._on_error = on_error
        self._active = True
        self.snapshots_received = 0
        self.failures = 0
        self._task = asyncio.get_running_loop().create_task(
            self._run(), name="kanban-snapshot-channel"
        )

    @property
    def active(self) -> bool:
        return self._active

    def unsubscribe(self) -> None:
        """Tear down the channel. Safe to call more than once."""
        if not self._active:
            return
        self._active = False
        self._task.cancel()
        logger.info("Snapshot channel closed")

    __call__ = unsubscribe

    async def wait_closed(self) -> None:
        """Wait for the background channel task to finish."""
        with contextlib.suppress(asyncio.CancelledError):
            await self._task

    async def _run(self) -> None:
        while self._active:
            try:
                async with contextlib.aclosing(self._adapter.snapshot_stream()) as stream:
                    async for documents in stream:
                        if not self._active:
                            return
                        self._deliver(to_snapshot(documents))
                self._report(SubscriptionError(ConnectionError("stream closed by store")))
            except (httpx.HTTPError, ValueError, KeyError, TypeError) as exc:
                self._report(SubscriptionError(exc))
            if self._active:
                await asyncio.sleep(self._adapter.retry_delay)

    def _deliver(self, tasks: list[Task]) -> None:
        if not self._active:
            return
        self.snapshots_received += 1
        logger.debug("Snapshot #%d with %d task(s)", self.snapshots_received, len(tasks))
        try:
            self._on_snapshot(tasks)
        except Exception:
            logger.exception("Snapshot callback raised")

    def _report(self, error: SubscriptionError) -> None:
        if not self._active:
            return
        self.failures += 1
        logger.error("%s (reconnecting in %ss)", error, self._adapter.retry_delay)
        if self._on_error is not None:
            try:
                self._on_error(error)
            except Exception:
                logger.exception("Subscription error callback raised")


SAMPLE_TASKS = [
    ("Write the project proposal", "Draft the proposal for the new web application.", TaskPriority.high, 3),
    ("Review UI/UX design", "Go through the interface mockups and collect feedback.", TaskPriority.medium, 5),
    ("Code review", "Review teammates' pull requests and suggest improvements.", TaskPriority.medium, 2),
    ("Update documentation", "Bring the API docs and user guide up to date.", TaskPriority.low, 7),
    ("Write test cases", "Add test cases for the new features.", TaskPriority.high, 1),
]


async def create_sample_data(
    adapter: TaskStoreAdapter, now: Optional[datetime] = None
) -> list[str]:
    """Seed the collection with a handful of example tasks."""
    now = now or utcnow()
    logger.info("Creating %d sample tasks", len(SAMPLE_TASKS))
    ids = []
    for title, description, priority, days in SAMPLE_TASKS:
        ids.append(
            await adapter.create(
                NewTaskData(
                    title=title,
                    description=description,
                    priority=priority,
                    due_date=now + timedelta(days=days),
                )
            )
        )
    return ids
