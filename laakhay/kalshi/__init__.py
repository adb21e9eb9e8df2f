"""Laakhay Kalshi - async REST and streaming client for the Kalshi exchange."""

from .api import KalshiRESTClient
from .auth import (
    HmacSha256Signer,
    RequestSigner,
    RsaPssSigner,
    SignedRequest,
    create_signer,
)
from .clients import KalshiClient
from .core import (
    APIError,
    AuthenticationError,
    Channel,
    ClientOptions,
    ConnectionState,
    ConnectionStateError,
    Environment,
    KalshiConnectionError,
    KalshiError,
    MessageDecodeError,
    NotFoundError,
    OrderSide,
    RateLimiterClosedError,
    RateLimiterQueueFullError,
    RateLimitError,
    SignerConfigurationError,
    SigningScheme,
    ValidationError,
    WsAuthMode,
)
from .models import (
    InboundMessage,
    OrderBookDeltaMessage,
    OrderBookSnapshotMessage,
    SequenceTracker,
    TradeMessage,
    UnknownMessage,
    decode_message,
)
from .runtime import TokenBucketRateLimiter
from .runtime.rest import KalshiHTTPClient
from .runtime.ws import (
    ConnectionStateChange,
    ExponentialBackoffPolicy,
    KalshiWebSocketClient,
    ReconnectPolicy,
    Subscription,
    SubscriptionRegistry,
)

__version__ = "0.1.0"

__all__ = [
    # Clients
    "KalshiClient",
    "KalshiRESTClient",
    "KalshiWebSocketClient",
    "KalshiHTTPClient",
    # Configuration
    "ClientOptions",
    "Environment",
    "SigningScheme",
    "WsAuthMode",
    # Auth
    "RequestSigner",
    "RsaPssSigner",
    "HmacSha256Signer",
    "SignedRequest",
    "create_signer",
    # Streaming
    "Channel",
    "ConnectionState",
    "ConnectionStateChange",
    "Subscription",
    "SubscriptionRegistry",
    "ReconnectPolicy",
    "ExponentialBackoffPolicy",
    "InboundMessage",
    "TradeMessage",
    "OrderBookDeltaMessage",
    "OrderBookSnapshotMessage",
    "UnknownMessage",
    "decode_message",
    "SequenceTracker",
    "OrderSide",
    # Rate limiting
    "TokenBucketRateLimiter",
    # Exceptions
    "KalshiError",
    "APIError",
    "AuthenticationError",
    "NotFoundError",
    "ValidationError",
    "RateLimitError",
    "KalshiConnectionError",
    "ConnectionStateError",
    "MessageDecodeError",
    "SignerConfigurationError",
    "RateLimiterClosedError",
    "RateLimiterQueueFullError",
]
