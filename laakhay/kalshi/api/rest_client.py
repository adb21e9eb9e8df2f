"""Typed-call REST surface.

Each method is a direct mapping to one endpoint in ``endpoints``; responses
are returned as decoded JSON. List endpoints return the whole page so the
``cursor`` field stays available for pagination.
"""

from __future__ import annotations

import logging
from typing import Any

from ..auth.signer import RequestSigner
from ..core.config import ClientOptions
from ..runtime.rest import KalshiHTTPClient, RestEndpointSpec, RestRunner
from ..runtime.rest.runner import ResponseAdapter
from . import endpoints as ep

logger = logging.getLogger(__name__)


class KalshiRESTClient:
    """REST client bound to one signed, rate-limited HTTP client."""

    def __init__(
        self,
        options: ClientOptions | None = None,
        *,
        http: KalshiHTTPClient | None = None,
        signer: RequestSigner | None = None,
    ) -> None:
        if http is None:
            if options is None:
                raise ValueError("Either options or http must be provided")
            http = KalshiHTTPClient.from_options(options, signer=signer)
        self.options = options
        self._http = http
        self._runner = RestRunner(http)

    @property
    def http(self) -> KalshiHTTPClient:
        return self._http

    async def _run(
        self,
        spec: RestEndpointSpec,
        adapter: ResponseAdapter | None = None,
        **params: Any,
    ) -> Any:
        return await self._runner.run(spec=spec, adapter=adapter, params=params)

    # Exchange

    async def get_exchange_status(self) -> dict[str, Any]:
        return await self._run(ep.EXCHANGE_STATUS)

    async def get_exchange_schedule(self) -> dict[str, Any]:
        return await self._run(ep.EXCHANGE_SCHEDULE)

    # Markets

    async def get_markets(
        self,
        *,
        limit: int | None = None,
        cursor: str | None = None,
        event_ticker: str | None = None,
        series_ticker: str | None = None,
        status: str | None = None,
        tickers: list[str] | None = None,
    ) -> dict[str, Any]:
        return await self._run(
            ep.MARKETS,
            limit=limit,
            cursor=cursor,
            event_ticker=event_ticker,
            series_ticker=series_ticker,
            status=status,
            tickers=tickers,
        )

    async def get_market(self, ticker: str) -> dict[str, Any]:
        return await self._run(ep.MARKET, ep.MARKET_ADAPTER, ticker=ticker)

    async def get_market_orderbook(self, ticker: str, depth: int | None = None) -> dict[str, Any]:
        return await self._run(ep.MARKET_ORDERBOOK, ep.ORDERBOOK_ADAPTER, ticker=ticker, depth=depth)

    async def get_trades(
        self,
        ticker: str | None = None,
        *,
        limit: int | None = None,
        cursor: str | None = None,
        min_ts: int | None = None,
        max_ts: int | None = None,
    ) -> dict[str, Any]:
        return await self._run(
            ep.MARKET_TRADES, ticker=ticker, limit=limit, cursor=cursor, min_ts=min_ts, max_ts=max_ts
        )

    # Events

    async def get_events(
        self,
        *,
        limit: int | None = None,
        cursor: str | None = None,
        status: str | None = None,
        series_ticker: str | None = None,
        with_nested_markets: bool | None = None,
    ) -> dict[str, Any]:
        return await self._run(
            ep.EVENTS,
            limit=limit,
            cursor=cursor,
            status=status,
            series_ticker=series_ticker,
            with_nested_markets=with_nested_markets,
        )

    async def get_event(
        self, event_ticker: str, *, with_nested_markets: bool | None = None
    ) -> dict[str, Any]:
        return await self._run(
            ep.EVENT, event_ticker=event_ticker, with_nested_markets=with_nested_markets
        )

    # Portfolio

    async def get_balance(self) -> dict[str, Any]:
        return await self._run(ep.BALANCE)

    async def get_positions(
        self,
        *,
        limit: int | None = None,
        cursor: str | None = None,
        ticker: str | None = None,
        event_ticker: str | None = None,
        count_filter: str | None = None,
        settlement_status: str | None = None,
    ) -> dict[str, Any]:
        return await self._run(
            ep.POSITIONS,
            limit=limit,
            cursor=cursor,
            ticker=ticker,
            event_ticker=event_ticker,
            count_filter=count_filter,
            settlement_status=settlement_status,
        )

    async def get_fills(
        self,
        *,
        ticker: str | None = None,
        order_id: str | None = None,
        min_ts: int | None = None,
        max_ts: int | None = None,
        limit: int | None = None,
        cursor: str | None = None,
    ) -> dict[str, Any]:
        return await self._run(
            ep.FILLS,
            ticker=ticker,
            order_id=order_id,
            min_ts=min_ts,
            max_ts=max_ts,
            limit=limit,
            cursor=cursor,
        )

    async def get_orders(
        self,
        *,
        ticker: str | None = None,
        event_ticker: str | None = None,
        status: str | None = None,
        limit: int | None = None,
        cursor: str | None = None,
    ) -> dict[str, Any]:
        return await self._run(
            ep.ORDERS,
            ticker=ticker,
            event_ticker=event_ticker,
            status=status,
            limit=limit,
            cursor=cursor,
        )

    async def get_order(self, order_id: str) -> dict[str, Any]:
        return await self._run(ep.ORDER, ep.ORDER_ADAPTER, order_id=order_id)

    async def create_order(self, order: dict[str, Any]) -> dict[str, Any]:
        """Place an order.

        Args:
            order: Order fields (``ticker``, ``side``, ``action``, ``count`` are
                required; ``type`` defaults to ``"limit"``; prices in cents via
                ``yes_price``/``no_price``; optional ``client_order_id``)

        Returns:
            The created order
        """
        result = await self._run(ep.CREATE_ORDER, ep.ORDER_ADAPTER, order=order)
        logger.info(f"Order created for {order.get('ticker')}")
        return result

    async def cancel_order(self, order_id: str) -> dict[str, Any]:
        result = await self._run(ep.CANCEL_ORDER, ep.ORDER_ADAPTER, order_id=order_id)
        logger.info(f"Order {order_id} cancel requested")
        return result

    async def close(self) -> None:
        await self._http.close()

    async def __aenter__(self) -> KalshiRESTClient:
        return self

    async def __aexit__(self, exc_type, exc_val, exc_tb) -> None:
        await self.close()
