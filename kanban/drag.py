"""Drag-and-drop reconciliation between board columns.

A pointer gesture is reduced to a tagged event stream
(``DragStart`` / ``DragDrop`` / ``DragCancel``) by :class:`PointerSensor`;
:class:`DragController` consumes that stream and issues at most one store
update per drop. The controller never touches the cache: the card moves once
the next snapshot arrives.
"""

from __future__ import annotations

import logging
import math
from collections.abc import Callable
from dataclasses import dataclass
from enum import Enum
from typing import Optional, Union

from kanban.config import DRAG_ACTIVATION_DISTANCE
from kanban.records import Task, TaskStatus

logger = logging.getLogger(__name__)


class DragPhase(str, Enum):
    idle = "idle"
    dragging = "dragging"
    resolved = "resolved"
    cancelled = "cancelled"


@dataclass(frozen=True)
class DragStart:
    task_id: str


@dataclass(frozen=True)
class DragDrop:
    task_id: str
    target: Optional[str]


@dataclass(frozen=True)
class DragCancel:
    task_id: str


DragEvent = Union[DragStart, DragDrop, DragCancel]


@dataclass(frozen=True)
class DragOutcome:
    """What one event did. ``updated`` is True only when a store write was made."""
    phase: DragPhase
    task_id: Optional[str]
    target: Optional[TaskStatus] = None
    updated: bool = False
    ignored: bool = False


def resolve_target(target: Optional[str]) -> Optional[TaskStatus]:
    """Map a drop target id to a column, or None when it is not a column."""
    if target is None:
        return None
    try:
        return TaskStatus(target)
    except ValueError:
        return None


class PointerSensor:
    """Turns raw pointer input into drag events.

    A gesture only becomes a drag once the pointer has travelled strictly
    further than ``activation_distance`` from where it went down; shorter
    gestures are clicks and produce nothing.
    """

    def __init__(self, activation_distance: float = DRAG_ACTIVATION_DISTANCE) -> None:
        self.activation_distance = activation_distance
        self._task_id: Optional[str] = None
        self._origin: Optional[tuple[float, float]] = None
        self._activated = False

    @property
    def activated(self) -> bool:
        return self._activated

    def pointer_down(self, task_id: str, x: float, y: float) -> None:
        self._task_id = task_id
        self._origin = (x, y)
        self._activated = False

    def pointer_move(self, x: float, y: float) -> Optional[DragStart]:
        if self._origin is None or self._activated:
            return None
        ox, oy = self._origin
        if math.hypot(x - ox, y - oy) > self.activation_distance:
            self._activated = True
            return DragStart(self._task_id)
        return None

    def pointer_up(self, over: Optional[str]) -> Optional[DragDrop]:
        event = DragDrop(self._task_id, over) if self._activated else None
        self._reset()
        return event

    def abort(self) -> Optional[DragCancel]:
        event = DragCancel(self._task_id) if self._activated else None
        self._reset()
        return event

    def _reset(self) -> None:
        self._task_id = None
        self._origin = None
        self._activated = False


class DragController:
    """State machine: idle -> dragging -> resolved | cancelled -> idle.

    Parameters
    ----------
    adapter
        Anything with an awaitable ``update(task_id, partial)``.
    lookup
        Returns the cached task for an id (or None); the drop compares
        against the status currently shown, not the one at drag start.
    """

    def __init__(self, adapter, lookup: Callable[[str], Optional[Task]]) -> None:
        self._adapter = adapter
        self._lookup = lookup
        self._phase = DragPhase.idle
        self._active_id: Optional[str] = None
        self.last_outcome: Optional[DragOutcome] = None

    @property
    def phase(self) -> DragPhase:
        return self._phase

    @property
    def active_id(self) -> Optional[str]:
        return self._active_id

    async def handle(self, event: DragEvent) -> DragOutcome:
        if isinstance(event, DragStart):
            outcome = self._start(event)
        elif isinstance(event, DragDrop):
            outcome = await self._drop(event)
        elif isinstance(event, DragCancel):
            outcome = self._cancel(event)
        else:
            raise TypeError(f"Unsupported drag event: {event!r}")
        if not outcome.ignored:
            self.last_outcome = outcome
        return outcome

    def _ignored(self, event: DragEvent) -> DragOutcome:
        logger.debug(
            "Ignoring %s in phase=%s active=%s",
            type(event).__name__, self._phase.value, self._active_id,
        )
        return DragOutcome(phase=self._phase, task_id=event.task_id, ignored=True)

    def _start(self, event: DragStart) -> DragOutcome:
        if self._phase is not DragPhase.idle:
            return self._ignored(event)
        self._phase = DragPhase.dragging
        self._active_id = event.task_id
        logger.debug("Drag started for %s", event.task_id)
        return DragOutcome(phase=DragPhase.dragging, task_id=event.task_id)

    async def _drop(self, event: DragDrop) -> DragOutcome:
        if self._phase is not DragPhase.dragging or event.task_id != self._active_id:
            return self._ignored(event)

        target = resolve_target(event.target)
        task = self._lookup(event.task_id)
        if target is None or task is None:
            return self._finish(DragPhase.cancelled, event.task_id)

        if task.status == target:
            return self._finish(DragPhase.resolved, event.task_id, target)

        self._phase = DragPhase.resolved
        try:
            await self._adapter.update(
                event.task_id,
                {"status": target, "completed": target == TaskStatus.completed},
            )
        finally:
            self._phase = DragPhase.idle
            self._active_id = None
        logger.info("Moved task %s: %s -> %s", event.task_id, task.status.value, target.value)
        return DragOutcome(
            phase=DragPhase.resolved, task_id=event.task_id, target=target, updated=True
        )

    def _cancel(self, event: DragCancel) -> DragOutcome:
        if self._phase is not DragPhase.dragging or event.task_id != self._active_id:
            return self._ignored(event)
        return self._finish(DragPhase.cancelled, event.task_id)

    def _finish(
        self, phase: DragPhase, task_id: str, target: Optional[TaskStatus] = None
    ) -> DragOutcome:
        self._phase = DragPhase.idle
        self._active_id = None
        logger.debug("Drag of %s ended: %s", task_id, phase.value)
        return DragOutcome(phase=phase, task_id=task_id, target=target)
