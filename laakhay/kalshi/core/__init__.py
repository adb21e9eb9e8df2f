"""Core types: configuration, enums and exceptions."""

from .config import REST_BASE_URLS, WS_URLS, ClientOptions, KalshiEnvSettings
from .enums import (
    Channel,
    ConnectionState,
    Environment,
    OrderSide,
    SigningScheme,
    WsAuthMode,
)
from .exceptions import (
    APIError,
    AuthenticationError,
    ConnectionStateError,
    KalshiConnectionError,
    KalshiError,
    MessageDecodeError,
    NotFoundError,
    RateLimiterClosedError,
    RateLimiterQueueFullError,
    RateLimitError,
    SignerConfigurationError,
    ValidationError,
    error_from_response,
)

__all__ = [
    "ClientOptions",
    "KalshiEnvSettings",
    "REST_BASE_URLS",
    "WS_URLS",
    "Channel",
    "ConnectionState",
    "Environment",
    "OrderSide",
    "SigningScheme",
    "WsAuthMode",
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
    "error_from_response",
]
