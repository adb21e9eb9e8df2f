"""Core enumerations shared by the REST and streaming layers.

Architecture:
    String enums so values serialize directly to the wire and compare equal
    to the raw strings found in configuration and server payloads.

Key Types:
    - ConnectionState: Streaming connection lifecycle
    - Environment: Production vs demo venue
    - SigningScheme: Request signature algorithm
    - WsAuthMode: How the streaming handshake authenticates
    - Channel: Streaming channel identifiers
    - OrderSide: Yes/No contract side
"""

from enum import Enum


class ConnectionState(str, Enum):
    """Streaming connection lifecycle.

    Transitions::

        DISCONNECTED -> CONNECTING -> CONNECTED -> AUTHENTICATED -> SUBSCRIBED
              ^              |            |              |               |
              +--------------+------------+--------------+---------------+
                                   (on error/close)
    """

    DISCONNECTED = "disconnected"
    CONNECTING = "connecting"
    CONNECTED = "connected"
    AUTHENTICATED = "authenticated"
    SUBSCRIBED = "subscribed"

    @property
    def is_authenticated(self) -> bool:
        return self in (ConnectionState.AUTHENTICATED, ConnectionState.SUBSCRIBED)


class Environment(str, Enum):
    """Venue environment."""

    PRODUCTION = "production"
    DEMO = "demo"


class SigningScheme(str, Enum):
    """Request signing algorithm."""

    RSA_PSS = "rsa_pss"
    HMAC_SHA256 = "hmac_sha256"


class WsAuthMode(str, Enum):
    """Streaming handshake authentication style.

    HEADERS signs the upgrade request with the same headers REST uses.
    LOGIN sends an explicit login command as the first frame after open.
    """

    HEADERS = "headers"
    LOGIN = "login"


class Channel(str, Enum):
    """Streaming channel identifiers."""

    ORDERBOOK_DELTA = "orderbook_delta"
    TICKER = "ticker"
    TRADE = "trade"
    ORDER = "order"
    FILL = "fill"
    MARKET_POSITIONS = "market_positions"

    @property
    def is_private(self) -> bool:
        return self in (Channel.ORDER, Channel.FILL, Channel.MARKET_POSITIONS)


class OrderSide(str, Enum):
    """Contract side."""

    YES = "yes"
    NO = "no"
