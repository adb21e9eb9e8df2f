"""Streaming message models."""

from .messages import (
    MESSAGE_TYPES,
    PARSE_ERROR,
    UNKNOWN_TYPE,
    ErrorMessage,
    FillMessage,
    HeartbeatMessage,
    InboundMessage,
    MarketPositionMessage,
    OkMessage,
    OrderBookDeltaMessage,
    OrderBookSnapshotMessage,
    OrderUpdateMessage,
    SequenceTracker,
    SubscribedMessage,
    TickerMessage,
    TradeMessage,
    UnknownMessage,
    UnsubscribedMessage,
    decode_message,
)

__all__ = [
    "InboundMessage",
    "OrderBookDeltaMessage",
    "OrderBookSnapshotMessage",
    "TradeMessage",
    "TickerMessage",
    "OrderUpdateMessage",
    "FillMessage",
    "MarketPositionMessage",
    "HeartbeatMessage",
    "OkMessage",
    "SubscribedMessage",
    "UnsubscribedMessage",
    "ErrorMessage",
    "UnknownMessage",
    "MESSAGE_TYPES",
    "PARSE_ERROR",
    "UNKNOWN_TYPE",
    "decode_message",
    "SequenceTracker",
]
