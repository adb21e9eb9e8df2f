"""Connection state-change notifications.

StateNotifier is a small observer: any number of listeners can subscribe
with a callback, or consume changes as an async stream. Publishing never
raises; a failing listener is logged and skipped.
"""

from __future__ import annotations

import asyncio
import logging
import threading
from collections.abc import AsyncIterator, Callable
from dataclasses import dataclass

from ...core.enums import ConnectionState

logger = logging.getLogger(__name__)

StateListener = Callable[["ConnectionStateChange"], None]


@dataclass(frozen=True)
class ConnectionStateChange:
    """One state transition."""

    previous: ConnectionState
    current: ConnectionState
    error: BaseException | None = None


class StateNotifier:
    """Fans state changes out to callbacks and async stream consumers."""

    def __init__(self) -> None:
        self._lock = threading.Lock()
        self._listeners: list[StateListener] = []
        self._queues: list[asyncio.Queue[ConnectionStateChange | None]] = []

    def subscribe(self, listener: StateListener) -> Callable[[], None]:
        """Register a callback; returns a function that unregisters it."""
        with self._lock:
            self._listeners.append(listener)

        def unsubscribe() -> None:
            with self._lock:
                if listener in self._listeners:
                    self._listeners.remove(listener)

        return unsubscribe

    @property
    def listener_count(self) -> int:
        with self._lock:
            return len(self._listeners) + len(self._queues)

    def publish(self, change: ConnectionStateChange) -> None:
        with self._lock:
            listeners = list(self._listeners)
            queues = list(self._queues)

        for listener in listeners:
            try:
                listener(change)
            except Exception as e:  # noqa: BLE001
                logger.warning(f"State listener {listener!r} raised: {e}")

        for queue in queues:
            queue.put_nowait(change)

    async def stream(self) -> AsyncIterator[ConnectionStateChange]:
        """Yield changes published after the stream starts, until close()."""
        queue: asyncio.Queue[ConnectionStateChange | None] = asyncio.Queue()
        with self._lock:
            self._queues.append(queue)
        try:
            while True:
                change = await queue.get()
                if change is None:
                    return
                yield change
        finally:
            with self._lock:
                if queue in self._queues:
                    self._queues.remove(queue)

    def close(self) -> None:
        """End every active stream(); callbacks stay registered."""
        with self._lock:
            queues = list(self._queues)
        for queue in queues:
            queue.put_nowait(None)
