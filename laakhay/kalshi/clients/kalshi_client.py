"""High-level client combining REST and streaming access.

Both halves are built from one ClientOptions value and share one signer, so
key material is parsed once. Streaming is created lazily on first use:

    async with KalshiClient(options) as client:
        markets = await client.rest.get_markets(limit=10)
        await client.ws.connect()
        await client.ws.subscribe(Subscription.trades("KXBTC-25"))
        async for message in client.ws.messages():
            ...
"""

from __future__ import annotations

import logging

from ..api.rest_client import KalshiRESTClient
from ..auth.signer import RequestSigner, create_signer
from ..core.config import ClientOptions
from ..runtime.rest import KalshiHTTPClient
from ..runtime.ws.client import KalshiWebSocketClient

logger = logging.getLogger(__name__)


class KalshiClient:
    """Facade owning a KalshiRESTClient and a KalshiWebSocketClient."""

    def __init__(self, options: ClientOptions, *, signer: RequestSigner | None = None) -> None:
        self.options = options
        self._signer = signer or create_signer(options)
        self._rest = KalshiRESTClient(
            options, http=KalshiHTTPClient.from_options(options, signer=self._signer)
        )
        self._ws: KalshiWebSocketClient | None = None
        self._closed = False

    @classmethod
    def from_env(cls, **overrides) -> KalshiClient:
        return cls(ClientOptions.from_env(**overrides))

    @property
    def rest(self) -> KalshiRESTClient:
        return self._rest

    @property
    def ws(self) -> KalshiWebSocketClient:
        if self._ws is None:
            self._ws = KalshiWebSocketClient(self.options, signer=self._signer)
        return self._ws

    @property
    def closed(self) -> bool:
        return self._closed

    async def close(self) -> None:
        """Dispose streaming first, then the HTTP session and rate limiter."""
        if self._closed:
            return
        self._closed = True
        if self._ws is not None:
            await self._ws.close()
        try:
            await self._rest.close()
        except Exception as e:  # noqa: BLE001
            logger.debug(f"Ignoring error while closing REST client: {e}")

    async def __aenter__(self) -> KalshiClient:
        return self

    async def __aexit__(self, exc_type, exc_val, exc_tb) -> None:
        await self.close()
