"""Streaming client: authentication, subscriptions, receive loop, reconnects.

Architecture:
    KalshiWebSocketClient owns one connection, one reconnect policy and one
    subscription registry. A single background task runs the receive loop;
    every decoded message is put on an unbounded queue consumed through
    messages(). Outbound commands are serialized behind one send lock.

Reconnect Flow:
    receive failure / close frame
        -> reset connection
        -> attempt += 1, delay = policy.next_delay(attempt)
        -> sleep, reconnect, re-authenticate, replay registry snapshot
        -> attempt = 0 on success, loop again on failure
    The loop stops when the policy returns None, when the server rejects
    credentials, or when disconnect() disables auto-reconnect.

Design Decisions:
    - The registry is cleared only by disconnect(), never by a transient drop
    - Transient errors are reported through state-change notifications; they
      never propagate out of the background task
    - Authentication failures are terminal and are not retried
"""

from __future__ import annotations

import asyncio
import json
import logging
from collections.abc import AsyncIterator, Callable
from typing import Any
from urllib.parse import urlsplit

from ...auth.signer import RequestSigner, create_signer
from ...core.config import ClientOptions
from ...core.enums import ConnectionState, WsAuthMode
from ...core.exceptions import AuthenticationError, ConnectionStateError, KalshiError
from ...models.messages import InboundMessage, decode_message
from .connection import BaseConnection, WebSocketConnection
from .notifier import ConnectionStateChange, StateNotifier
from .reconnect import ExponentialBackoffPolicy, ReconnectPolicy
from .subscriptions import Subscription, SubscriptionRegistry

logger = logging.getLogger(__name__)

_END = object()


class KalshiWebSocketClient:
    """Authenticated, self-healing streaming client."""

    def __init__(
        self,
        options: ClientOptions,
        *,
        connection: BaseConnection | None = None,
        reconnect_policy: ReconnectPolicy | None = None,
        signer: RequestSigner | None = None,
    ) -> None:
        """Initialize the client.

        Args:
            options: Client configuration
            connection: Connection to drive; defaults to a WebSocketConnection
            reconnect_policy: Delay policy; defaults to exponential backoff
                built from ``options``
            signer: Request signer; defaults to the scheme in ``options``.
                Key material is validated here, not on first use.
        """
        self.options = options
        self._connection = connection or WebSocketConnection(
            ping_interval=options.ping_interval,
            ping_timeout=options.ping_timeout,
            close_timeout=options.shutdown_timeout,
        )
        self._policy = reconnect_policy or ExponentialBackoffPolicy.from_options(options)
        self._signer = signer or create_signer(options)
        self._registry = SubscriptionRegistry()

        self._send_lock = asyncio.Lock()
        self._queue: asyncio.Queue[Any] = asyncio.Queue()
        self._stream_ended = False
        self._receive_task: asyncio.Task[None] | None = None
        self._auto_reconnect = options.auto_reconnect
        self._reconnect_attempt = 0
        self._command_id = 0
        self._closed = False
        self.last_error: BaseException | None = None

        self._unsubscribe_state = self._connection.notifier.subscribe(self._on_state_change)

    # --- properties --------------------------------------------------------

    @property
    def state(self) -> ConnectionState:
        return self._connection.state

    @property
    def is_connected(self) -> bool:
        return self.state.is_authenticated

    @property
    def state_changes(self) -> StateNotifier:
        """Observer for connection state transitions."""
        return self._connection.notifier

    @property
    def subscriptions(self) -> list[Subscription]:
        return self._registry.snapshot()

    @property
    def reconnect_attempt(self) -> int:
        return self._reconnect_attempt

    def on_state_change(
        self, listener: Callable[[ConnectionStateChange], None]
    ) -> Callable[[], None]:
        """Register a state-change callback; returns an unsubscribe function."""
        return self._connection.notifier.subscribe(listener)

    # --- lifecycle ---------------------------------------------------------

    async def connect(self) -> None:
        """Open, authenticate and start the receive loop.

        Raises:
            ConnectionStateError: Not DISCONNECTED, a reconnect is in progress,
                or the client is closed
            AuthenticationError: Handshake rejected
            KalshiConnectionError: Socket could not be opened
        """
        if self._closed:
            raise ConnectionStateError("Client is closed", state=self.state)
        if self.state != ConnectionState.DISCONNECTED:
            raise ConnectionStateError(
                f"Cannot connect from state {self.state.value}. Must be disconnected.",
                state=self.state,
            )
        if self._receive_task is not None and not self._receive_task.done():
            raise ConnectionStateError("Reconnect already in progress", state=self.state)

        uri = self.options.get_ws_url()
        logger.debug(f"Connecting to WebSocket at {uri}")
        try:
            await self._open_and_authenticate(uri)
        except Exception as e:
            logger.error(f"WebSocket connection failed to {uri}: {e}")
            raise

        self._reconnect_attempt = 0
        self._policy.reset()
        self._auto_reconnect = self.options.auto_reconnect
        if self._stream_ended:
            self._queue = asyncio.Queue()
            self._stream_ended = False
        self._receive_task = asyncio.create_task(self._receive_loop(), name="kalshi-ws-receive")
        logger.info(f"WebSocket connected to {uri}")

    async def disconnect(self) -> None:
        """Stop reconnecting, stop the receive loop, close the socket, clear subscriptions."""
        self._auto_reconnect = False

        task, self._receive_task = self._receive_task, None
        if task is not None and not task.done():
            task.cancel()
            done, _ = await asyncio.wait({task}, timeout=self.options.shutdown_timeout)
            if not done:
                logger.warning("Receive task did not complete within timeout")

        await self._connection.close(1000, "Client disconnect")
        self._registry.clear()
        self._end_stream()
        logger.info("WebSocket disconnected")

    async def close(self) -> None:
        """Dispose the client; idempotent and never raises."""
        if self._closed:
            return
        self._closed = True
        try:
            await self.disconnect()
        except Exception as e:  # noqa: BLE001
            logger.debug(f"Ignoring error during close: {e}")
        self._unsubscribe_state()
        self._connection.notifier.close()
        logger.debug("WebSocket client closed")

    async def __aenter__(self) -> KalshiWebSocketClient:
        await self.connect()
        return self

    async def __aexit__(self, exc_type, exc, tb) -> None:
        await self.close()

    # --- subscriptions -----------------------------------------------------

    async def subscribe(self, subscription: Subscription) -> None:
        """Send a subscribe command; the registry is updated only after the send succeeds."""
        self._ensure_authenticated()
        await self._send_json(subscription.to_command("subscribe", self._next_command_id()))
        self._registry.add(subscription)
        if self.state == ConnectionState.AUTHENTICATED:
            self._connection.mark_subscribed()
        logger.info(
            f"Subscribed to {subscription.channel} for "
            f"{len(subscription.market_tickers)} market(s)"
        )

    async def unsubscribe(self, subscription: Subscription) -> None:
        self._ensure_authenticated()
        await self._send_json(subscription.to_command("unsubscribe", self._next_command_id()))
        self._registry.remove(subscription)
        logger.info(f"Unsubscribed from {subscription.channel}")

    # --- message stream ----------------------------------------------------

    async def messages(self) -> AsyncIterator[InboundMessage]:
        """Yield decoded messages in arrival order until the client disconnects.

        Consumers share one queue: each message is delivered to exactly one
        active iterator. Messages received before iteration starts stay
        buffered until read.
        """
        queue = self._queue
        while True:
            item = await queue.get()
            if item is _END:
                # Leave the marker for any other consumer of this queue
                queue.put_nowait(_END)
                return
            yield item

    def __aiter__(self) -> AsyncIterator[InboundMessage]:
        return self.messages()

    # --- internals ---------------------------------------------------------

    def _next_command_id(self) -> int:
        self._command_id += 1
        return self._command_id

    def _ensure_authenticated(self) -> None:
        state = self.state
        if not state.is_authenticated:
            raise ConnectionStateError(
                f"Cannot perform operation in state {state.value}. Must be authenticated.",
                state=state,
            )

    def _handshake_headers(self, uri: str) -> dict[str, str]:
        path = urlsplit(uri).path or "/"
        return self._signer.sign("GET", path).headers()

    async def _open_and_authenticate(self, uri: str) -> None:
        headers = None
        if self.options.ws_auth_mode == WsAuthMode.HEADERS:
            headers = self._handshake_headers(uri)

        await self._connection.connect(uri, headers)
        try:
            if self.options.ws_auth_mode == WsAuthMode.LOGIN:
                await self._send_json(
                    {
                        "id": self._next_command_id(),
                        "cmd": "login",
                        "params": {"api_key": self.options.api_key},
                    }
                )
            self._connection.mark_authenticated()
        except BaseException as e:
            # Never leave a half-authenticated connection behind
            await self._connection.reset(e if isinstance(e, Exception) else None)
            raise
        logger.debug("WebSocket authenticated")

    async def _send_json(self, payload: dict[str, Any]) -> None:
        data = json.dumps(payload, separators=(",", ":"))
        async with self._send_lock:
            await self._connection.send(data)

    def _dispatch(self, data: str | bytes) -> None:
        self._queue.put_nowait(decode_message(data))

    def _end_stream(self) -> None:
        if not self._stream_ended:
            self._stream_ended = True
            self._queue.put_nowait(_END)

    def _on_state_change(self, change: ConnectionStateChange) -> None:
        if change.error is not None:
            self.last_error = change.error
        logger.debug(
            f"WebSocket state {change.previous.value} -> {change.current.value}"
            + (f" ({change.error})" if change.error is not None else "")
        )

    async def _receive_loop(self) -> None:
        try:
            while True:
                error = await self._pump()
                if not await self._recover(error):
                    return
        finally:
            self._end_stream()

    async def _pump(self) -> BaseException | None:
        """Read until the socket closes or fails; returns the failure, if any."""
        while True:
            try:
                frame = await self._connection.receive()
            except KalshiError as e:
                logger.warning(f"WebSocket error occurred: {e}")
                return e
            except Exception as e:
                logger.error(f"Error in receive loop: {e}")
                return e

            if frame.is_close:
                logger.warning(
                    f"WebSocket close received: {frame.close_code} {frame.close_reason}".rstrip()
                )
                return None
            if frame.data is not None:
                self._dispatch(frame.data)

    async def _recover(self, error: BaseException | None) -> bool:
        """Reset and reconnect; returns True once a new connection is live."""
        await self._connection.reset(error)

        while self._auto_reconnect and not self._closed:
            self._reconnect_attempt += 1
            delay = self._policy.next_delay(self._reconnect_attempt)
            if delay is None:
                logger.error(f"Max reconnect attempts ({self._reconnect_attempt - 1}) reached")
                return False

            logger.info(f"Attempting reconnect #{self._reconnect_attempt} in {delay:.1f}s")
            await asyncio.sleep(delay)
            if not self._auto_reconnect or self._closed:
                return False

            try:
                await self._reconnect()
            except AuthenticationError as e:
                logger.error(f"Reconnect rejected by server, giving up: {e}")
                return False
            except Exception as e:
                logger.error(f"Reconnection attempt failed: {e}")
                if self.state != ConnectionState.DISCONNECTED:
                    await self._connection.reset(e)
                continue
            return True

        return False

    async def _reconnect(self) -> None:
        await self._open_and_authenticate(self.options.get_ws_url())

        subscriptions = self._registry.snapshot()
        for subscription in subscriptions:
            await self._send_json(
                subscription.to_command("subscribe", self._next_command_id())
            )
        # A concurrent subscribe() may already have moved the state on
        if subscriptions and self.state == ConnectionState.AUTHENTICATED:
            self._connection.mark_subscribed()

        self._reconnect_attempt = 0
        self._policy.reset()
        logger.info(f"Reconnected successfully, restored {len(subscriptions)} subscription(s)")
