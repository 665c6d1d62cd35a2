# taskstore/feed.py
"""In-process change notification and the Server-Sent-Events snapshot stream.

Every write to the collection calls :meth:`ChangeFeed.publish`. Each open
stream owns one queue; on any notification it re-reads the full collection
and emits it as one ``snapshot`` event, so a burst of writes that lands
before the stream wakes up collapses into a single frame.
"""

from __future__ import annotations

import asyncio
import json
import logging
import threading
from collections.abc import AsyncIterator

from sqlalchemy.engine import Engine
from sqlmodel import Session

from taskstore.models import fetch_documents

logger = logging.getLogger(__name__)

KEEPALIVE_SECONDS = 15.0


class ChangeFeed:
    """Thread-safe fan-out of change notifications to asyncio subscribers.

    Sync route handlers run in the threadpool, so notifications are handed to
    each subscriber's own loop with ``call_soon_threadsafe``.

    Internal state:
        _subscribers: list of (loop, queue) pairs, one per open stream
        _version: count of published changes
    """

    def __init__(self) -> None:
        self._subscribers: list[tuple[asyncio.AbstractEventLoop, asyncio.Queue]] = []
        self._version = 0
        self._lock = threading.Lock()

    @property
    def version(self) -> int:
        with self._lock:
            return self._version

    @property
    def subscriber_count(self) -> int:
        with self._lock:
            return len(self._subscribers)

    def subscribe(self) -> asyncio.Queue:
        """Register a queue bound to the running loop and return it."""
        loop = asyncio.get_running_loop()
        queue: asyncio.Queue = asyncio.Queue()
        with self._lock:
            self._subscribers = [*self._subscribers, (loop, queue)]
        return queue

    def unsubscribe(self, queue: asyncio.Queue) -> None:
        """Drop a queue. Unknown queues are ignored."""
        with self._lock:
            self._subscribers = [
                (loop, q) for loop, q in self._subscribers if q is not queue
            ]

    def publish(self) -> int:
        """Notify every subscriber that the collection changed."""
        with self._lock:
            self._version += 1
            version = self._version
            targets = list(self._subscribers)
        for loop, queue in targets:
            try:
                loop.call_soon_threadsafe(queue.put_nowait, version)
            except RuntimeError:
                # Subscriber loop already closed; its stream will unsubscribe.
                logger.debug("Skipping notification for closed loop")
        return version


feed = ChangeFeed()


def get_feed() -> ChangeFeed:
    """Return the process-wide change feed; overridden in tests."""
    return feed


def format_event(documents: list[dict], event: str = "snapshot") -> str:
    """Encode one SSE frame carrying a JSON payload."""
    return f"event: {event}\ndata: {json.dumps(documents)}\n\n"


def _load_documents(db_engine: Engine) -> list[dict]:
    with Session(db_engine) as session:
        return fetch_documents(session)


async def snapshot_events(
    db_engine: Engine,
    change_feed: ChangeFeed,
    keepalive: float = KEEPALIVE_SECONDS,
) -> AsyncIterator[str]:
    """Yield the current snapshot, then a fresh one after every change.

    Idle periods produce SSE comment lines so dead connections surface on
    both ends.
    """
    queue = change_feed.subscribe()
    logger.info("Snapshot stream opened (subscribers=%d)", change_feed.subscriber_count)
    try:
        yield format_event(await asyncio.to_thread(_load_documents, db_engine))
        while True:
            try:
                await asyncio.wait_for(queue.get(), timeout=keepalive)
            except asyncio.TimeoutError:
                yield ": keep-alive\n\n"
                continue
            while not queue.empty():
                queue.get_nowait()
            yield format_event(await asyncio.to_thread(_load_documents, db_engine))
    finally:
        change_feed.unsubscribe(queue)
        logger.info("Snapshot stream closed (subscribers=%d)", change_feed.subscriber_count)
