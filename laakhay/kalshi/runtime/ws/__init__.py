"""Runtime WebSocket components."""

from .client import KalshiWebSocketClient
from .connection import BaseConnection, Frame, FrameKind, WebSocketConnection
from .notifier import ConnectionStateChange, StateNotifier
from .reconnect import ExponentialBackoffPolicy, ReconnectPolicy
from .subscriptions import Subscription, SubscriptionRegistry

__all__ = [
    "KalshiWebSocketClient",
    "BaseConnection",
    "WebSocketConnection",
    "Frame",
    "FrameKind",
    "ConnectionStateChange",
    "StateNotifier",
    "ReconnectPolicy",
    "ExponentialBackoffPolicy",
    "Subscription",
    "SubscriptionRegistry",
]
