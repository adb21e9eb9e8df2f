"""Client-side token bucket rate limiter.

Every outbound REST call passes through ``acquire()`` before the network is
touched. Tokens refill continuously at ``refill_rate`` per second up to
``capacity``. Waiters are admitted strictly in arrival order.
"""

from __future__ import annotations

import asyncio
import logging
import threading
import time
from collections.abc import Callable

from ..core.exceptions import RateLimiterClosedError, RateLimiterQueueFullError

logger = logging.getLogger(__name__)


class TokenBucketRateLimiter:
    """Async token bucket admission gate.

    Features:
    - Continuous refill (not stepped)
    - FIFO admission through a single asyncio gate
    - Bounded wait queue; callers beyond ``max_queue`` fail immediately
    - ``close()`` fails all pending and future acquisitions
    """

    LOW_WATER_RATIO = 0.25

    def __init__(
        self,
        capacity: int = 20,
        refill_rate: float = 10.0,
        max_queue: int = 100,
        *,
        clock: Callable[[], float] = time.monotonic,
    ) -> None:
        """Initialize rate limiter.

        Args:
            capacity: Burst size (maximum stored tokens)
            refill_rate: Tokens added per second
            max_queue: Maximum number of concurrently waiting callers
            clock: Monotonic time source in seconds
        """
        if capacity <= 0:
            raise ValueError("capacity must be positive")
        if refill_rate <= 0:
            raise ValueError("refill_rate must be positive")
        if max_queue <= 0:
            raise ValueError("max_queue must be positive")

        self.capacity = capacity
        self.refill_rate = float(refill_rate)
        self.max_queue = max_queue
        self._clock = clock

        # Token math may be read from any thread (is_throttling)
        self._lock = threading.Lock()
        self._tokens = float(capacity)
        self._last_refill = clock()

        self._gate = asyncio.Lock()
        self._closed = asyncio.Event()
        self._waiting = 0

    def _refill(self) -> None:
        now = self._clock()
        elapsed = max(0.0, now - self._last_refill)
        self._tokens = min(float(self.capacity), self._tokens + elapsed * self.refill_rate)
        self._last_refill = now

    def _try_take(self) -> float:
        """Take one token if available; otherwise return seconds until one is."""
        with self._lock:
            self._refill()
            if self._tokens >= 1.0:
                self._tokens -= 1.0
                return 0.0
            return (1.0 - self._tokens) / self.refill_rate

    @property
    def available_tokens(self) -> float:
        with self._lock:
            self._refill()
            return self._tokens

    @property
    def is_throttling(self) -> bool:
        """True while available tokens are below the low-water mark."""
        return self.available_tokens < self.capacity * self.LOW_WATER_RATIO

    @property
    def pending(self) -> int:
        return self._waiting

    @property
    def closed(self) -> bool:
        return self._closed.is_set()

    async def acquire(self) -> None:
        """Wait until a token is available and consume it.

        Raises:
            RateLimiterClosedError: Limiter is closed, or was closed while waiting
            RateLimiterQueueFullError: ``max_queue`` callers are already waiting
            asyncio.CancelledError: Caller was cancelled while waiting
        """
        if self._closed.is_set():
            raise RateLimiterClosedError("Rate limiter is closed")
        if self._waiting >= self.max_queue:
            raise RateLimiterQueueFullError(
                f"Rate limiter queue is full ({self.max_queue} waiting)"
            )

        self._waiting += 1
        try:
            async with self._gate:
                while True:
                    if self._closed.is_set():
                        raise RateLimiterClosedError("Rate limiter is closed")
                    delay = self._try_take()
                    if delay <= 0:
                        return
                    try:
                        await asyncio.wait_for(self._closed.wait(), timeout=delay)
                    except asyncio.TimeoutError:
                        continue
                    raise RateLimiterClosedError("Rate limiter closed while waiting")
        finally:
            self._waiting -= 1

    def close(self) -> None:
        """Shut down; idempotent."""
        if self._closed.is_set():
            return
        self._closed.set()
        if self._waiting:
            logger.debug(f"Rate limiter closed with {self._waiting} pending acquisitions")

    async def __aenter__(self) -> TokenBucketRateLimiter:
        await self.acquire()
        return self

    async def __aexit__(self, exc_type, exc, tb) -> None:
        return None

    def __repr__(self) -> str:
        return (
            f"TokenBucketRateLimiter(capacity={self.capacity}, "
            f"refill_rate={self.refill_rate}, max_queue={self.max_queue})"
        )
