"""Subscription values and the registry that survives reconnects."""

from __future__ import annotations

import threading
from collections.abc import Iterable, Iterator
from dataclasses import dataclass, field
from typing import Any

from ...core.enums import Channel


def _normalize_tickers(tickers: Iterable[str]) -> tuple[str, ...]:
    seen: dict[str, None] = {}
    for ticker in tickers:
        ticker = ticker.strip()
        if not ticker:
            raise ValueError("market ticker must be a non-empty string")
        seen.setdefault(ticker, None)
    return tuple(seen)


@dataclass(frozen=True)
class Subscription:
    """A channel plus an ordered, de-duplicated set of market tickers.

    Equality covers both fields, so the same channel with a different ticker
    set is a distinct subscription.
    """

    channel: str
    market_tickers: tuple[str, ...] = field(default_factory=tuple)

    def __post_init__(self) -> None:
        channel = self.channel.value if isinstance(self.channel, Channel) else self.channel
        if not channel or not str(channel).strip():
            raise ValueError("channel must be a non-empty string")
        object.__setattr__(self, "channel", str(channel).strip())
        object.__setattr__(self, "market_tickers", _normalize_tickers(self.market_tickers))

    @classmethod
    def of(cls, channel: Channel | str, *tickers: str) -> Subscription:
        return cls(channel, tuple(tickers))

    @classmethod
    def orderbook(cls, *tickers: str) -> Subscription:
        return cls.of(Channel.ORDERBOOK_DELTA, *tickers)

    @classmethod
    def trades(cls, *tickers: str) -> Subscription:
        return cls.of(Channel.TRADE, *tickers)

    @classmethod
    def ticker(cls, *tickers: str) -> Subscription:
        return cls.of(Channel.TICKER, *tickers)

    @classmethod
    def orders(cls, *tickers: str) -> Subscription:
        return cls.of(Channel.ORDER, *tickers)

    @classmethod
    def fills(cls, *tickers: str) -> Subscription:
        return cls.of(Channel.FILL, *tickers)

    @classmethod
    def market_positions(cls, *tickers: str) -> Subscription:
        return cls.of(Channel.MARKET_POSITIONS, *tickers)

    def to_command(self, cmd: str, command_id: int) -> dict[str, Any]:
        """Build a ``subscribe``/``unsubscribe`` command payload."""
        params: dict[str, Any] = {"channels": [self.channel]}
        if self.market_tickers:
            params["market_tickers"] = list(self.market_tickers)
        return {"id": command_id, "cmd": cmd, "params": params}


class SubscriptionRegistry:
    """Thread-safe set of desired subscriptions.

    Held by the streaming client rather than the connection, so the set is
    replayed after every reconnect.
    """

    def __init__(self) -> None:
        self._lock = threading.Lock()
        # dict keeps insertion order for deterministic replay
        self._items: dict[Subscription, None] = {}

    def add(self, subscription: Subscription) -> bool:
        """Add; returns False if it was already present."""
        with self._lock:
            if subscription in self._items:
                return False
            self._items[subscription] = None
            return True

    def remove(self, subscription: Subscription) -> bool:
        """Remove; returns False if it was not present."""
        with self._lock:
            return self._items.pop(subscription, False) is None

    def snapshot(self) -> list[Subscription]:
        """Point-in-time copy, safe to iterate without holding the lock."""
        with self._lock:
            return list(self._items)

    def clear(self) -> None:
        with self._lock:
            self._items.clear()

    def __contains__(self, subscription: object) -> bool:
        with self._lock:
            return subscription in self._items

    def __len__(self) -> int:
        with self._lock:
            return len(self._items)

    def __iter__(self) -> Iterator[Subscription]:
        return iter(self.snapshot())
