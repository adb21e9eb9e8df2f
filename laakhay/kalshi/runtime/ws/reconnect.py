"""Reconnect delay policies.

A policy maps a 1-based attempt number to the delay before that attempt, or
``None`` to stop retrying. The attempt counter itself lives in the caller.
"""

from __future__ import annotations

import random
from abc import ABC, abstractmethod

from ...core.config import ClientOptions


class ReconnectPolicy(ABC):
    """Decides how long to wait before reconnect attempt ``n``."""

    @abstractmethod
    def next_delay(self, attempt: int) -> float | None:
        """Seconds to wait before ``attempt``, or None to give up."""

    def reset(self) -> None:  # noqa: B027
        """Hook for stateful policies; called after a successful connect."""


class ExponentialBackoffPolicy(ReconnectPolicy):
    """``min(initial * multiplier ** (attempt - 1), max_delay)`` with +/- jitter."""

    def __init__(
        self,
        initial_delay: float = 1.0,
        max_delay: float = 30.0,
        max_attempts: int | None = None,
        multiplier: float = 2.0,
        jitter: float = 0.1,
        rng: random.Random | None = None,
    ) -> None:
        if initial_delay <= 0:
            raise ValueError("initial_delay must be positive")
        if max_delay < initial_delay:
            raise ValueError("max_delay must be >= initial_delay")
        if multiplier <= 1.0:
            raise ValueError("multiplier must be greater than 1")
        if max_attempts is not None and max_attempts <= 0:
            raise ValueError("max_attempts must be positive when set")
        if not 0.0 <= jitter < 1.0:
            raise ValueError("jitter must be in [0, 1)")

        self.initial_delay = initial_delay
        self.max_delay = max_delay
        self.max_attempts = max_attempts
        self.multiplier = multiplier
        self.jitter = jitter
        self._rng = rng or random.Random()

    @classmethod
    def from_options(cls, options: ClientOptions) -> ExponentialBackoffPolicy:
        return cls(
            initial_delay=options.reconnect_initial_delay,
            max_delay=options.reconnect_max_delay,
            max_attempts=options.reconnect_max_attempts,
            multiplier=options.reconnect_multiplier,
        )

    def base_delay(self, attempt: int) -> float:
        """Delay for ``attempt`` before jitter."""
        if attempt <= 0:
            raise ValueError("attempt must be >= 1")
        # Cap the exponent so large attempt numbers cannot overflow
        exponent = min(attempt - 1, 64)
        return min(self.initial_delay * (self.multiplier**exponent), self.max_delay)

    def next_delay(self, attempt: int) -> float | None:
        if attempt <= 0:
            raise ValueError("attempt must be >= 1")
        if self.max_attempts is not None and attempt > self.max_attempts:
            return None
        delay = self.base_delay(attempt)
        if self.jitter:
            delay *= 1.0 + self._rng.uniform(-self.jitter, self.jitter)
        return max(0.0, delay)

    def __repr__(self) -> str:
        return (
            f"ExponentialBackoffPolicy(initial_delay={self.initial_delay}, "
            f"max_delay={self.max_delay}, multiplier={self.multiplier}, "
            f"max_attempts={self.max_attempts})"
        )
