"""Streaming connection: one socket plus its lifecycle state machine.

Architecture:
    BaseConnection owns the ConnectionState machine and publishes every
    transition through a StateNotifier. Subclasses only provide raw I/O
    (_open/_send/_receive/_close_socket). WebSocketConnection implements the
    I/O on top of the ``websockets`` asyncio client.

State Rules:
    - connect() is legal only from DISCONNECTED
    - mark_authenticated() is legal only from CONNECTED
    - mark_subscribed() is legal only from AUTHENTICATED
    - reset() and close() force DISCONNECTED from any state
"""

from __future__ import annotations

import asyncio
import logging
import threading
from abc import ABC, abstractmethod
from dataclasses import dataclass
from enum import Enum
from typing import Any

import websockets
from websockets.exceptions import ConnectionClosed, InvalidStatus

from ...core.enums import ConnectionState
from ...core.exceptions import (
    AuthenticationError,
    ConnectionStateError,
    KalshiConnectionError,
    KalshiError,
)
from .notifier import ConnectionStateChange, StateNotifier

logger = logging.getLogger(__name__)


class FrameKind(str, Enum):
    TEXT = "text"
    BINARY = "binary"
    CLOSE = "close"


@dataclass(frozen=True)
class Frame:
    """One complete message read from the socket."""

    kind: FrameKind
    data: str | bytes | None = None
    close_code: int | None = None
    close_reason: str = ""

    @property
    def is_close(self) -> bool:
        return self.kind == FrameKind.CLOSE

    @classmethod
    def text(cls, data: str) -> Frame:
        return cls(FrameKind.TEXT, data)

    @classmethod
    def close(cls, code: int | None = None, reason: str = "") -> Frame:
        return cls(FrameKind.CLOSE, None, code, reason)


class BaseConnection(ABC):
    """State machine and notifications shared by every connection type."""

    def __init__(self, notifier: StateNotifier | None = None) -> None:
        self._state_lock = threading.Lock()
        self._state = ConnectionState.DISCONNECTED
        self.notifier = notifier or StateNotifier()

    @property
    def state(self) -> ConnectionState:
        with self._state_lock:
            return self._state

    @property
    def is_open(self) -> bool:
        return self.state not in (ConnectionState.DISCONNECTED, ConnectionState.CONNECTING)

    def _transition(
        self,
        new: ConnectionState,
        error: BaseException | None = None,
        *,
        allowed_from: tuple[ConnectionState, ...] | None = None,
    ) -> None:
        with self._state_lock:
            previous = self._state
            if allowed_from is not None and previous not in allowed_from:
                raise ConnectionStateError(
                    f"Cannot move to {new.value} from {previous.value}", state=previous
                )
            if previous == new and error is None:
                return
            self._state = new

        logger.debug(f"Connection state {previous.value} -> {new.value}")
        self.notifier.publish(ConnectionStateChange(previous, new, error))

    # --- raw I/O -----------------------------------------------------------

    @abstractmethod
    async def _open(self, uri: str, headers: dict[str, str] | None) -> None: ...

    @abstractmethod
    async def _send(self, data: str | bytes) -> None: ...

    @abstractmethod
    async def _receive(self) -> Frame: ...

    @abstractmethod
    async def _close_socket(self, code: int, reason: str) -> None: ...

    # --- lifecycle ---------------------------------------------------------

    async def connect(self, uri: str, headers: dict[str, str] | None = None) -> None:
        """Open the socket; state ends at CONNECTED or back at DISCONNECTED."""
        self._transition(
            ConnectionState.CONNECTING, allowed_from=(ConnectionState.DISCONNECTED,)
        )
        try:
            await self._open(uri, headers)
        except asyncio.CancelledError:
            await self.reset()
            raise
        except KalshiError as e:
            await self.reset(e)
            raise
        except Exception as e:
            error = KalshiConnectionError(f"Failed to connect to {uri}: {e}")
            await self.reset(error)
            raise error from e
        self._transition(ConnectionState.CONNECTED)

    def mark_authenticated(self) -> None:
        self._transition(
            ConnectionState.AUTHENTICATED, allowed_from=(ConnectionState.CONNECTED,)
        )

    def mark_subscribed(self) -> None:
        self._transition(
            ConnectionState.SUBSCRIBED, allowed_from=(ConnectionState.AUTHENTICATED,)
        )

    async def send(self, data: str | bytes) -> None:
        if not self.is_open:
            raise ConnectionStateError(
                f"Cannot send while {self.state.value}", state=self.state
            )
        try:
            await self._send(data)
        except KalshiError:
            raise
        except Exception as e:
            raise KalshiConnectionError(f"Send failed: {e}") from e

    async def receive(self) -> Frame:
        """Read the next complete frame; a closed socket yields a CLOSE frame."""
        if not self.is_open:
            raise ConnectionStateError(
                f"Cannot receive while {self.state.value}", state=self.state
            )
        try:
            return await self._receive()
        except KalshiError:
            raise
        except Exception as e:
            raise KalshiConnectionError(f"Receive failed: {e}") from e

    async def close(self, code: int = 1000, reason: str = "") -> None:
        """Close gracefully; never raises."""
        try:
            await self._close_socket(code, reason)
        except Exception as e:  # noqa: BLE001
            logger.debug(f"Error while closing socket: {e}")
        self._transition(ConnectionState.DISCONNECTED)

    async def reset(self, error: BaseException | None = None) -> None:
        """Drop the socket unconditionally and force DISCONNECTED."""
        try:
            await self._close_socket(1011 if error else 1000, "reset")
        except Exception as e:  # noqa: BLE001
            logger.debug(f"Error while dropping socket: {e}")
        self._transition(ConnectionState.DISCONNECTED, error)


class WebSocketConnection(BaseConnection):
    """BaseConnection over the ``websockets`` asyncio client."""

    def __init__(
        self,
        *,
        ping_interval: float | None = 20.0,
        ping_timeout: float | None = 20.0,
        open_timeout: float | None = 10.0,
        close_timeout: float = 5.0,
        max_size: int | None = 2**22,
        notifier: StateNotifier | None = None,
    ) -> None:
        super().__init__(notifier)
        self.ping_interval = ping_interval
        self.ping_timeout = ping_timeout
        self.open_timeout = open_timeout
        self.close_timeout = close_timeout
        self.max_size = max_size
        self._ws: Any = None

    def _connect_kwargs(self) -> dict[str, Any]:
        return {
            "ping_interval": self.ping_interval,
            "ping_timeout": self.ping_timeout,
            "open_timeout": self.open_timeout,
            "close_timeout": self.close_timeout,
            "max_size": self.max_size,
        }

    async def _open(self, uri: str, headers: dict[str, str] | None) -> None:
        try:
            self._ws = await websockets.connect(
                uri, additional_headers=headers or None, **self._connect_kwargs()
            )
        except InvalidStatus as e:
            status = e.response.status_code
            if status in (401, 403):
                raise AuthenticationError(
                    f"Streaming handshake rejected (HTTP {status})", status
                ) from e
            raise KalshiConnectionError(f"Streaming handshake failed (HTTP {status})") from e
        logger.info(f"WebSocket connected to {uri}")

    async def _send(self, data: str | bytes) -> None:
        ws = self._ws
        if ws is None:
            raise ConnectionStateError("Socket is not open", state=self.state)
        try:
            await ws.send(data)
        except ConnectionClosed as e:
            raise KalshiConnectionError(f"Socket closed during send: {e}") from e

    async def _receive(self) -> Frame:
        ws = self._ws
        if ws is None:
            raise ConnectionStateError("Socket is not open", state=self.state)
        try:
            data = await ws.recv()
        except ConnectionClosed as e:
            rcvd = getattr(e, "rcvd", None)
            code = rcvd.code if rcvd is not None else None
            reason = rcvd.reason if rcvd is not None else ""
            logger.warning(f"WebSocket closed by peer (code={code}, reason={reason!r})")
            return Frame.close(code, reason)
        if isinstance(data, bytes | bytearray):
            return Frame(FrameKind.BINARY, bytes(data))
        return Frame.text(data)

    async def _close_socket(self, code: int, reason: str) -> None:
        ws, self._ws = self._ws, None
        if ws is None:
            return
        await asyncio.wait_for(ws.close(code, reason), timeout=self.close_timeout)
