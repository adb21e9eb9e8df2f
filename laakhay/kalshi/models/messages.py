"""Inbound streaming messages.

Architecture:
    Every frame carries a ``type`` tag plus optional ``seq``/``ts``/``sid``/``id``
    envelope fields. The type-specific payload arrives either nested under
    ``msg`` or inline next to the envelope fields; both shapes normalize to the
    ``msg`` attribute of the matching variant.

    The set of variants is closed (MESSAGE_TYPES). Anything else, including
    frames that fail to parse or validate, decodes to UnknownMessage carrying
    the raw tag and payload, so one bad frame never stops the stream.
"""

from __future__ import annotations

import json
import logging
from typing import Any, Literal

from pydantic import BaseModel, ConfigDict, Field
from pydantic import ValidationError as PydanticValidationError

from ..core.enums import OrderSide
from ..core.exceptions import MessageDecodeError

logger = logging.getLogger(__name__)

PARSE_ERROR = "parse_error"
UNKNOWN_TYPE = "unknown"

_ENVELOPE_KEYS = ("type", "seq", "sid", "id")


class _Body(BaseModel):
    # Payloads keep fields this library does not model yet
    model_config = ConfigDict(frozen=True, extra="allow")


class OrderBookDelta(_Body):
    market_ticker: str
    market_id: str | None = None
    price: int | None = None
    price_dollars: str | None = None
    delta: int
    side: OrderSide
    client_order_id: str | None = None
    ts: int | str | None = None


class OrderBookSnapshot(_Body):
    market_ticker: str
    market_id: str | None = None
    # [[price_cents, quantity], ...]
    yes: list[list[int]] = Field(default_factory=list)
    no: list[list[int]] = Field(default_factory=list)


class Trade(_Body):
    market_ticker: str
    count: int
    trade_id: str | None = None
    side: OrderSide | None = None
    yes_price: int | None = None
    no_price: int | None = None
    taker_side: OrderSide | None = None
    ts: int | None = None


class Ticker(_Body):
    market_ticker: str
    market_id: str | None = None
    price: int | None = None
    yes_bid: int | None = None
    yes_ask: int | None = None
    volume: int | None = None
    open_interest: int | None = None
    dollar_volume: int | None = None
    dollar_open_interest: int | None = None
    ts: int | None = None

    @property
    def no_bid(self) -> int | None:
        return None if self.yes_ask is None else 100 - self.yes_ask

    @property
    def no_ask(self) -> int | None:
        return None if self.yes_bid is None else 100 - self.yes_bid


class OrderUpdate(_Body):
    order_id: str
    ticker: str | None = None
    user_id: str | None = None
    status: str | None = None
    side: OrderSide | None = None
    yes_price_dollars: str | None = None
    fill_count_fp: str | None = None
    remaining_count_fp: str | None = None
    initial_count_fp: str | None = None
    client_order_id: str | None = None
    created_time: str | None = None
    last_update_time: str | None = None


class Fill(_Body):
    trade_id: str
    order_id: str
    market_ticker: str
    is_taker: bool | None = None
    side: OrderSide | None = None
    yes_price: int | None = None
    count: int | None = None
    action: str | None = None
    client_order_id: str | None = None
    post_position: int | None = None
    ts: int | None = None


class MarketPosition(_Body):
    market_ticker: str
    user_id: str | None = None
    position: int = 0
    position_cost: int = 0
    realized_pnl: int = 0
    fees_paid: int = 0
    volume: int = 0


class Ack(_Body):
    channel: str | None = None
    sid: int | None = None
    market_tickers: list[str] = Field(default_factory=list)
    market_ids: list[str] = Field(default_factory=list)


class ErrorBody(_Body):
    code: int | str | None = None
    msg: str | None = None


class InboundMessage(BaseModel):
    """Envelope fields shared by every variant."""

    type: str
    seq: int | None = None
    ts: int | str | None = None
    sid: int | None = None
    id: int | None = None

    model_config = ConfigDict(frozen=True, extra="ignore")

    @property
    def is_unknown(self) -> bool:
        return False


class OrderBookDeltaMessage(InboundMessage):
    type: Literal["orderbook_delta"] = "orderbook_delta"
    msg: OrderBookDelta


class OrderBookSnapshotMessage(InboundMessage):
    type: Literal["orderbook_snapshot"] = "orderbook_snapshot"
    msg: OrderBookSnapshot


class TradeMessage(InboundMessage):
    type: Literal["trade"] = "trade"
    msg: Trade


class TickerMessage(InboundMessage):
    type: Literal["ticker", "ticker_v2"] = "ticker"
    msg: Ticker


class OrderUpdateMessage(InboundMessage):
    type: Literal["order", "user_order"] = "order"
    msg: OrderUpdate


class FillMessage(InboundMessage):
    type: Literal["fill"] = "fill"
    msg: Fill


class MarketPositionMessage(InboundMessage):
    type: Literal["market_position"] = "market_position"
    msg: MarketPosition


class HeartbeatMessage(InboundMessage):
    type: Literal["heartbeat"] = "heartbeat"
    msg: Ack = Field(default_factory=Ack)


class OkMessage(InboundMessage):
    type: Literal["ok"] = "ok"
    msg: Ack = Field(default_factory=Ack)


class SubscribedMessage(InboundMessage):
    type: Literal["subscribed"] = "subscribed"
    msg: Ack = Field(default_factory=Ack)


class UnsubscribedMessage(InboundMessage):
    type: Literal["unsubscribed"] = "unsubscribed"
    msg: Ack = Field(default_factory=Ack)


class ErrorMessage(InboundMessage):
    type: Literal["error"] = "error"
    msg: ErrorBody = Field(default_factory=ErrorBody)


class UnknownMessage(InboundMessage):
    """Unrecognized tag, unparsable frame or payload that failed validation."""

    type: Literal["unknown"] = "unknown"
    raw_type: str
    raw_payload: Any = None
    error: str | None = None

    @property
    def is_unknown(self) -> bool:
        return True


MESSAGE_TYPES: dict[str, type[InboundMessage]] = {
    "orderbook_delta": OrderBookDeltaMessage,
    "orderbook_snapshot": OrderBookSnapshotMessage,
    "trade": TradeMessage,
    "ticker": TickerMessage,
    "ticker_v2": TickerMessage,
    "order": OrderUpdateMessage,
    "user_order": OrderUpdateMessage,
    "fill": FillMessage,
    "market_position": MarketPositionMessage,
    "heartbeat": HeartbeatMessage,
    "ok": OkMessage,
    "subscribed": SubscribedMessage,
    "unsubscribed": UnsubscribedMessage,
    "error": ErrorMessage,
}


def _normalize(obj: dict[str, Any]) -> dict[str, Any]:
    envelope = {k: obj[k] for k in ("seq", "ts", "sid", "id") if k in obj}
    envelope["type"] = obj["type"]
    nested = obj.get("msg")
    if isinstance(nested, dict):
        envelope["msg"] = nested
    else:
        envelope["msg"] = {k: v for k, v in obj.items() if k not in _ENVELOPE_KEYS}
    return envelope


def _unknown(raw_type: str, payload: Any, error: str | None, strict: bool) -> UnknownMessage:
    if strict and error is not None:
        raise MessageDecodeError(error, raw=payload)
    envelope: dict[str, Any] = {}
    if isinstance(payload, dict):
        envelope = {k: payload[k] for k in ("seq", "sid", "id") if isinstance(payload.get(k), int)}
    return UnknownMessage(raw_type=raw_type, raw_payload=payload, error=error, **envelope)


def decode_message(raw: str | bytes | dict[str, Any], *, strict: bool = False) -> InboundMessage:
    """Decode one inbound frame.

    Args:
        raw: JSON text, UTF-8 bytes or an already-parsed object
        strict: Raise MessageDecodeError instead of returning UnknownMessage
            for frames that cannot be parsed or validated

    Returns:
        The matching variant, or UnknownMessage
    """
    if isinstance(raw, bytes | bytearray):
        try:
            raw = bytes(raw).decode("utf-8")
        except UnicodeDecodeError as e:
            logger.warning(f"Dropping undecodable binary frame: {e}")
            return _unknown(PARSE_ERROR, bytes(raw), f"Invalid UTF-8: {e}", strict)

    if isinstance(raw, str):
        try:
            obj = json.loads(raw)
        except ValueError as e:
            logger.warning(f"Failed to parse message: {e}")
            return _unknown(PARSE_ERROR, raw, f"Invalid JSON: {e}", strict)
    else:
        obj = raw

    if not isinstance(obj, dict):
        return _unknown(PARSE_ERROR, obj, "Expected a JSON object", strict)

    tag = obj.get("type")
    if not isinstance(tag, str) or not tag:
        return _unknown(UNKNOWN_TYPE, obj, None, strict)

    model = MESSAGE_TYPES.get(tag)
    if model is None:
        logger.debug(f"Unrecognized message type {tag!r}")
        return _unknown(tag, obj, None, strict)

    try:
        return model.model_validate(_normalize(obj))
    except PydanticValidationError as e:
        logger.warning(f"Invalid {tag!r} payload: {e.error_count()} validation error(s)")
        return _unknown(tag, obj, str(e), strict)


class SequenceTracker:
    """Detects ``seq`` gaps per (stream family, sid).

    Not wired into the client: callers that need continuity feed messages
    through observe() and resync (e.g. re-request a snapshot) on a gap.
    """

    _FAMILIES = {
        "orderbook_snapshot": "orderbook",
        "orderbook_delta": "orderbook",
    }

    def __init__(self) -> None:
        self._last: dict[tuple[str, int | None], int] = {}

    def observe(self, message: InboundMessage) -> int | None:
        """Record ``message``; returns the number of missing messages, if any."""
        if message.seq is None:
            return None
        family = self._FAMILIES.get(message.type, message.type)
        key = (family, message.sid)

        if message.type == "orderbook_snapshot":
            self._last[key] = message.seq
            return None

        last = self._last.get(key)
        if last is None or message.seq > last:
            self._last[key] = message.seq
        if last is not None and message.seq > last + 1:
            gap = message.seq - last - 1
            logger.warning(f"Sequence gap of {gap} on {family} sid={message.sid}")
            return gap
        return None

    def reset(self) -> None:
        self._last.clear()
