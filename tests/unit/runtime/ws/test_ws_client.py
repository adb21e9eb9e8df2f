"""Unit tests for KalshiWebSocketClient.

The client is driven through a scripted in-memory connection so that the
receive loop, reconnects and resubscription can be observed frame by frame.
"""

from __future__ import annotations

import asyncio
import json

import pytest

from laakhay.kalshi.auth import (
    ACCESS_KEY_HEADER,
    ACCESS_SIGNATURE_HEADER,
    ACCESS_TIMESTAMP_HEADER,
    HmacSha256Signer,
    SignedRequest,
)
from laakhay.kalshi.core import (
    AuthenticationError,
    ConnectionState,
    ConnectionStateError,
    KalshiConnectionError,
    WsAuthMode,
)
from laakhay.kalshi.models import PARSE_ERROR, TradeMessage, UnknownMessage
from laakhay.kalshi.runtime.ws import (
    BaseConnection,
    ExponentialBackoffPolicy,
    Frame,
    KalshiWebSocketClient,
    Subscription,
)

TRADE_FRAME = (
    '{"type":"trade","seq":999,"msg":{"market_ticker":"X","side":"yes",'
    '"yes_price":65,"no_price":35,"count":50}}'
)


class ScriptedConnection(BaseConnection):
    """In-memory connection fed by the test."""

    def __init__(self) -> None:
        super().__init__()
        self.frames: asyncio.Queue = asyncio.Queue()
        self.sent: list[str] = []
        self.open_calls: list[tuple[str, dict[str, str] | None]] = []
        self.open_errors: list[BaseException] = []
        self.closed_with: list[tuple[int, str]] = []
        self.block_open = False
        self.send_gate: asyncio.Event | None = None

    async def _open(self, uri, headers):
        self.open_calls.append((uri, headers))
        if self.block_open:
            await asyncio.Event().wait()
        if self.open_errors:
            raise self.open_errors.pop(0)

    async def _send(self, data):
        self.sent.append(data)
        if self.send_gate is not None:
            await self.send_gate.wait()

    async def _receive(self):
        item = await self.frames.get()
        if isinstance(item, BaseException):
            raise item
        return item

    async def _close_socket(self, code, reason):
        self.closed_with.append((code, reason))

    def push(self, data: str) -> None:
        self.frames.put_nowait(Frame.text(data))

    def drop(self) -> None:
        self.frames.put_nowait(Frame.close(1006, "abnormal closure"))

    def commands(self, cmd: str) -> list[dict]:
        decoded = [json.loads(s) for s in self.sent]
        return [c for c in decoded if c.get("cmd") == cmd]


async def wait_for_condition(predicate, timeout: float = 2.0) -> None:
    loop = asyncio.get_running_loop()
    deadline = loop.time() + timeout
    while not predicate():
        if loop.time() > deadline:
            raise AssertionError("Condition not met within timeout")
        await asyncio.sleep(0.005)


async def collect(client: KalshiWebSocketClient, timeout: float = 2.0) -> list:
    async def _drain():
        return [m async for m in client.messages()]

    return await asyncio.wait_for(_drain(), timeout=timeout)


@pytest.fixture
def connection():
    return ScriptedConnection()


@pytest.fixture
def fast_policy():
    return ExponentialBackoffPolicy(initial_delay=0.01, max_delay=0.01, jitter=0)


@pytest.fixture
def client(hmac_options, connection, fast_policy):
    return KalshiWebSocketClient(
        hmac_options, connection=connection, reconnect_policy=fast_policy
    )


class TestKalshiWebSocketClientLifecycle:
    @pytest.mark.asyncio
    async def test_connect_authenticates(self, client, connection):
        changes = []
        client.on_state_change(changes.append)

        await client.connect()

        assert client.state == ConnectionState.AUTHENTICATED
        assert client.is_connected
        assert [(c.previous, c.current) for c in changes] == [
            (ConnectionState.DISCONNECTED, ConnectionState.CONNECTING),
            (ConnectionState.CONNECTING, ConnectionState.CONNECTED),
            (ConnectionState.CONNECTED, ConnectionState.AUTHENTICATED),
        ]
        assert connection.open_calls[0][0] == "wss://api.elections.kalshi.com/trade-api/ws/v2"
        await client.close()

    @pytest.mark.asyncio
    async def test_header_auth_signs_handshake(self, client, connection):
        await client.connect()

        headers = connection.open_calls[0][1]
        assert headers[ACCESS_KEY_HEADER] == "test-key-id"
        signed = SignedRequest(
            headers[ACCESS_KEY_HEADER],
            int(headers[ACCESS_TIMESTAMP_HEADER]),
            headers[ACCESS_SIGNATURE_HEADER],
        )
        signer = HmacSha256Signer("test-key-id", "test-secret")
        assert signer.verify(signed, "GET", "/trade-api/ws/v2")
        # Header mode sends no login frame
        assert connection.sent == []
        await client.close()

    @pytest.mark.asyncio
    async def test_login_mode_sends_login_command(self, hmac_options, connection, fast_policy):
        options = hmac_options.model_copy(update={"ws_auth_mode": WsAuthMode.LOGIN})
        client = KalshiWebSocketClient(
            options, connection=connection, reconnect_policy=fast_policy
        )

        await client.connect()

        assert connection.open_calls[0][1] is None
        assert json.loads(connection.sent[0]) == {
            "id": 1,
            "cmd": "login",
            "params": {"api_key": "test-key-id"},
        }
        assert client.state == ConnectionState.AUTHENTICATED
        await client.close()

    @pytest.mark.asyncio
    async def test_connect_twice_fails(self, client):
        await client.connect()
        with pytest.raises(ConnectionStateError):
            await client.connect()
        await client.close()

    @pytest.mark.asyncio
    async def test_failed_connect_returns_to_disconnected(self, client, connection):
        connection.open_errors = [OSError("refused")]

        with pytest.raises(KalshiConnectionError):
            await client.connect()

        assert client.state == ConnectionState.DISCONNECTED
        assert isinstance(client.last_error, KalshiConnectionError)

    @pytest.mark.asyncio
    async def test_cancelled_connect_returns_to_disconnected(self, client, connection):
        connection.block_open = True
        task = asyncio.create_task(client.connect())
        await wait_for_condition(lambda: client.state == ConnectionState.CONNECTING)

        task.cancel()
        with pytest.raises(asyncio.CancelledError):
            await task

        assert client.state == ConnectionState.DISCONNECTED

    @pytest.mark.asyncio
    async def test_disconnect_clears_subscriptions_and_ends_stream(self, client, connection):
        await client.connect()
        await client.subscribe(Subscription.ticker("X"))

        await client.disconnect()

        assert client.state == ConnectionState.DISCONNECTED
        assert client.subscriptions == []
        assert (1000, "Client disconnect") in connection.closed_with
        assert await collect(client) == []
        # No reconnect after an explicit disconnect
        await asyncio.sleep(0.05)
        assert len(connection.open_calls) == 1

    @pytest.mark.asyncio
    async def test_reconnect_after_disconnect_yields_fresh_stream(self, client, connection):
        await client.connect()
        await client.disconnect()
        assert await collect(client) == []

        await client.connect()
        connection.push(TRADE_FRAME)
        stream = client.messages()
        message = await asyncio.wait_for(stream.__anext__(), timeout=1.0)
        assert isinstance(message, TradeMessage)
        await stream.aclose()
        await client.close()

    @pytest.mark.asyncio
    async def test_close_is_idempotent(self, client):
        await client.connect()
        await client.close()
        await client.close()

        assert client.state == ConnectionState.DISCONNECTED
        with pytest.raises(ConnectionStateError):
            await client.connect()

    @pytest.mark.asyncio
    async def test_context_manager(self, client):
        async with client as ws:
            assert ws.is_connected
        assert client.state == ConnectionState.DISCONNECTED


class TestKalshiWebSocketClientSubscriptions:
    @pytest.mark.asyncio
    async def test_subscribe_requires_authentication(self, client, connection):
        with pytest.raises(ConnectionStateError):
            await client.subscribe(Subscription.trades("X"))
        assert connection.sent == []
        assert client.subscriptions == []

    @pytest.mark.asyncio
    async def test_subscribe_sends_command_and_registers(self, client, connection):
        await client.connect()

        await client.subscribe(Subscription.orderbook("X", "Y"))

        assert client.state == ConnectionState.SUBSCRIBED
        assert connection.commands("subscribe") == [
            {
                "id": 1,
                "cmd": "subscribe",
                "params": {"channels": ["orderbook_delta"], "market_tickers": ["X", "Y"]},
            }
        ]
        assert client.subscriptions == [Subscription.orderbook("X", "Y")]
        await client.close()

    @pytest.mark.asyncio
    async def test_unsubscribe_removes_from_registry(self, client, connection):
        await client.connect()
        sub = Subscription.trades("X")
        await client.subscribe(sub)

        await client.unsubscribe(sub)

        assert client.subscriptions == []
        assert connection.commands("unsubscribe")[0]["params"] == {
            "channels": ["trade"],
            "market_tickers": ["X"],
        }
        await client.close()


class TestKalshiWebSocketClientMessages:
    @pytest.mark.asyncio
    async def test_trade_frame_is_decoded(self, client, connection):
        await client.connect()
        await client.subscribe(Subscription.trades("X"))
        connection.push(TRADE_FRAME)

        stream = client.messages()
        message = await asyncio.wait_for(stream.__anext__(), timeout=1.0)

        assert isinstance(message, TradeMessage)
        assert message.seq == 999
        assert message.msg.market_ticker == "X"
        assert message.msg.count == 50
        await stream.aclose()
        await client.close()

    @pytest.mark.asyncio
    async def test_unknown_and_malformed_frames_do_not_stop_stream(self, client, connection):
        await client.connect()
        connection.push('{"type":"mystery","seq":1}')
        connection.push("not json at all")
        connection.push(TRADE_FRAME)

        stream = client.messages()
        received = [await asyncio.wait_for(stream.__anext__(), timeout=1.0) for _ in range(3)]

        assert isinstance(received[0], UnknownMessage)
        assert received[0].raw_type == "mystery"
        assert isinstance(received[1], UnknownMessage)
        assert received[1].raw_type == PARSE_ERROR
        assert isinstance(received[2], TradeMessage)
        await stream.aclose()
        await client.close()

    @pytest.mark.asyncio
    async def test_messages_buffered_before_iteration(self, client, connection):
        await client.connect()
        connection.push(TRADE_FRAME)
        connection.push(TRADE_FRAME)
        await wait_for_condition(lambda: connection.frames.empty())
        await asyncio.sleep(0.01)

        await client.disconnect()
        received = await collect(client)

        assert len(received) == 2
        assert all(isinstance(m, TradeMessage) for m in received)


class TestKalshiWebSocketClientReconnect:
    @pytest.mark.asyncio
    async def test_drop_triggers_single_resubscribe(self, client, connection):
        await client.connect()
        await client.subscribe(Subscription.orderbook("X"))
        assert len(connection.commands("subscribe")) == 1

        connection.drop()
        await wait_for_condition(
            lambda: len(connection.open_calls) == 2
            and client.state == ConnectionState.SUBSCRIBED
        )

        subscribes = connection.commands("subscribe")
        assert len(subscribes) == 2
        assert subscribes[1]["params"] == {
            "channels": ["orderbook_delta"],
            "market_tickers": ["X"],
        }
        assert client.reconnect_attempt == 0
        assert client.subscriptions == [Subscription.orderbook("X")]

        # Stream continues on the new connection
        connection.push(TRADE_FRAME)
        stream = client.messages()
        message = await asyncio.wait_for(stream.__anext__(), timeout=1.0)
        assert isinstance(message, TradeMessage)
        await stream.aclose()
        await client.close()

    @pytest.mark.asyncio
    async def test_every_subscription_is_restored_exactly_once(self, client, connection):
        subs = [
            Subscription.orderbook("A"),
            Subscription.trades("B", "C"),
            Subscription.ticker("D"),
            Subscription.fills(),
        ]
        await client.connect()
        for sub in subs:
            await client.subscribe(sub)

        connection.drop()
        await wait_for_condition(
            lambda: len(connection.open_calls) == 2
            and len(connection.commands("subscribe")) == 2 * len(subs)
            and client.state == ConnectionState.SUBSCRIBED
        )
        await asyncio.sleep(0.05)

        replayed = connection.commands("subscribe")[len(subs):]
        assert [c["params"] for c in replayed] == [
            {"channels": ["orderbook_delta"], "market_tickers": ["A"]},
            {"channels": ["trade"], "market_tickers": ["B", "C"]},
            {"channels": ["ticker"], "market_tickers": ["D"]},
            {"channels": ["fill"]},
        ]
        ids = [c["id"] for c in connection.commands("subscribe")]
        assert len(set(ids)) == len(ids)
        assert len(connection.open_calls) == 2
        assert client.subscriptions == subs
        await client.close()

    @pytest.mark.asyncio
    async def test_subscribe_during_replay_keeps_connection(self, client, connection):
        await client.connect()
        await client.subscribe(Subscription.orderbook("A"))
        await client.subscribe(Subscription.ticker("C"))

        gate = asyncio.Event()
        connection.send_gate = gate
        connection.drop()
        # First replayed command is parked on the gate while holding the send lock
        await wait_for_condition(
            lambda: len(connection.open_calls) == 2
            and len(connection.commands("subscribe")) == 3
        )
        assert client.state == ConnectionState.AUTHENTICATED

        late = asyncio.create_task(client.subscribe(Subscription.trades("B")))
        await asyncio.sleep(0.01)
        gate.set()
        await asyncio.wait_for(late, timeout=1.0)

        await wait_for_condition(lambda: len(connection.commands("subscribe")) == 5)
        await asyncio.sleep(0.05)

        assert len(connection.open_calls) == 2
        assert client.state == ConnectionState.SUBSCRIBED
        assert client.reconnect_attempt == 0
        assert Subscription.trades("B") in client.subscriptions
        assert len(client.subscriptions) == 3
        await client.close()

    @pytest.mark.asyncio
    async def test_receive_error_is_reported_and_recovered(self, client, connection):
        changes = []
        client.on_state_change(changes.append)
        await client.connect()

        connection.frames.put_nowait(ConnectionResetError("peer reset"))
        await wait_for_condition(
            lambda: len(connection.open_calls) == 2
            and client.state == ConnectionState.AUTHENTICATED
        )

        assert isinstance(client.last_error, KalshiConnectionError)
        assert any(
            c.current == ConnectionState.DISCONNECTED and c.error is not None for c in changes
        )
        # Nothing to restore
        assert connection.commands("subscribe") == []
        await client.close()

    @pytest.mark.asyncio
    async def test_failed_attempts_are_retried(self, client, connection):
        await client.connect()
        connection.open_errors = [OSError("refused"), OSError("refused")]

        connection.drop()
        await wait_for_condition(
            lambda: len(connection.open_calls) == 4
            and client.state == ConnectionState.AUTHENTICATED
        )

        assert client.reconnect_attempt == 0
        await client.close()

    @pytest.mark.asyncio
    async def test_gives_up_after_max_attempts(self, hmac_options, connection):
        policy = ExponentialBackoffPolicy(
            initial_delay=0.01, max_delay=0.01, max_attempts=2, jitter=0
        )
        client = KalshiWebSocketClient(
            hmac_options, connection=connection, reconnect_policy=policy
        )
        await client.connect()
        connection.open_errors = [OSError("refused")] * 3

        connection.push(TRADE_FRAME)
        connection.drop()
        received = await collect(client)

        assert len(received) == 1
        assert isinstance(received[0], TradeMessage)
        assert len(connection.open_calls) == 3
        assert client.state == ConnectionState.DISCONNECTED
        await client.close()

    @pytest.mark.asyncio
    async def test_authentication_failure_is_terminal(self, client, connection):
        await client.connect()
        connection.open_errors = [AuthenticationError("Unauthorized", 401)]

        connection.drop()
        assert await collect(client) == []

        assert len(connection.open_calls) == 2
        assert client.state == ConnectionState.DISCONNECTED
        assert isinstance(client.last_error, AuthenticationError)
        await client.close()

    @pytest.mark.asyncio
    async def test_no_reconnect_when_disabled(self, hmac_options, connection, fast_policy):
        options = hmac_options.model_copy(update={"auto_reconnect": False})
        client = KalshiWebSocketClient(
            options, connection=connection, reconnect_policy=fast_policy
        )
        await client.connect()

        connection.drop()
        assert await collect(client) == []

        assert len(connection.open_calls) == 1
        assert client.state == ConnectionState.DISCONNECTED
        await client.close()
