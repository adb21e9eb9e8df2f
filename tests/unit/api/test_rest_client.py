"""Unit tests for KalshiRESTClient endpoint mapping."""

from __future__ import annotations

from unittest.mock import AsyncMock, MagicMock

import pytest

from laakhay.kalshi.api import KalshiRESTClient
from laakhay.kalshi.core import NotFoundError
from laakhay.kalshi.runtime.rest import KalshiHTTPClient


@pytest.fixture
def mock_http():
    http = MagicMock(spec=KalshiHTTPClient)
    http.get = AsyncMock(return_value={})
    http.post = AsyncMock(return_value={})
    http.delete = AsyncMock(return_value={})
    http.close = AsyncMock()
    return http


@pytest.fixture
def client(mock_http):
    return KalshiRESTClient(http=mock_http)


class TestKalshiRESTClientConstruction:
    def test_requires_options_or_http(self):
        with pytest.raises(ValueError):
            KalshiRESTClient()

    def test_builds_http_client_from_options(self, hmac_options):
        client = KalshiRESTClient(hmac_options)
        assert isinstance(client.http, KalshiHTTPClient)
        assert client.http.base_url == hmac_options.get_effective_base_url()

    @pytest.mark.asyncio
    async def test_close_closes_http(self, client, mock_http):
        async with client:
            pass
        mock_http.close.assert_awaited_once()


class TestKalshiRESTClientMarkets:
    @pytest.mark.asyncio
    async def test_get_markets_forwards_set_filters(self, client, mock_http):
        mock_http.get.return_value = {"markets": [], "cursor": "next"}

        page = await client.get_markets(limit=10, status="open", tickers=["A", "B"])

        assert page == {"markets": [], "cursor": "next"}
        mock_http.get.assert_awaited_once_with(
            "/markets",
            params={"limit": 10, "status": "open", "tickers": ["A", "B"]},
            headers=None,
        )

    @pytest.mark.asyncio
    async def test_get_market_unwraps_market(self, client, mock_http):
        mock_http.get.return_value = {"market": {"ticker": "KXBTC-25"}}

        market = await client.get_market("KXBTC-25")

        assert market == {"ticker": "KXBTC-25"}
        mock_http.get.assert_awaited_once_with("/markets/KXBTC-25", params=None, headers=None)

    @pytest.mark.asyncio
    async def test_get_market_quotes_path_segment(self, client, mock_http):
        await client.get_market("A/B")
        assert mock_http.get.call_args.args[0] == "/markets/A%2FB"

    @pytest.mark.asyncio
    async def test_blank_identifier_rejected(self, client, mock_http):
        with pytest.raises(ValueError):
            await client.get_market("  ")
        mock_http.get.assert_not_called()

    @pytest.mark.asyncio
    async def test_get_market_orderbook(self, client, mock_http):
        mock_http.get.return_value = {"orderbook": {"yes": [[40, 10]], "no": None}}

        book = await client.get_market_orderbook("X", depth=5)

        assert book == {"yes": [[40, 10]], "no": None}
        mock_http.get.assert_awaited_once_with(
            "/markets/X/orderbook", params={"depth": 5}, headers=None
        )

    @pytest.mark.asyncio
    async def test_get_trades(self, client, mock_http):
        await client.get_trades("X", limit=100)
        mock_http.get.assert_awaited_once_with(
            "/markets/trades", params={"ticker": "X", "limit": 100}, headers=None
        )

    @pytest.mark.asyncio
    async def test_errors_propagate(self, client, mock_http):
        mock_http.get.side_effect = NotFoundError("market not found", 404)
        with pytest.raises(NotFoundError):
            await client.get_market("MISSING")


class TestKalshiRESTClientExchangeAndEvents:
    @pytest.mark.asyncio
    async def test_exchange_endpoints(self, client, mock_http):
        await client.get_exchange_status()
        await client.get_exchange_schedule()

        paths = [call.args[0] for call in mock_http.get.call_args_list]
        assert paths == ["/exchange/status", "/exchange/schedule"]

    @pytest.mark.asyncio
    async def test_get_event_with_nested_markets(self, client, mock_http):
        await client.get_event("EV-1", with_nested_markets=True)
        mock_http.get.assert_awaited_once_with(
            "/events/EV-1", params={"with_nested_markets": True}, headers=None
        )

    @pytest.mark.asyncio
    async def test_get_events(self, client, mock_http):
        await client.get_events(series_ticker="KXBTC", cursor="c1")
        mock_http.get.assert_awaited_once_with(
            "/events", params={"cursor": "c1", "series_ticker": "KXBTC"}, headers=None
        )


class TestKalshiRESTClientPortfolio:
    @pytest.mark.asyncio
    async def test_portfolio_reads(self, client, mock_http):
        await client.get_balance()
        await client.get_positions(ticker="X")
        await client.get_fills(order_id="o-1")
        await client.get_orders(status="resting")

        calls = [(c.args[0], c.kwargs["params"]) for c in mock_http.get.call_args_list]
        assert calls == [
            ("/portfolio/balance", None),
            ("/portfolio/positions", {"ticker": "X"}),
            ("/portfolio/fills", {"order_id": "o-1"}),
            ("/portfolio/orders", {"status": "resting"}),
        ]

    @pytest.mark.asyncio
    async def test_get_order_unwraps_order(self, client, mock_http):
        mock_http.get.return_value = {"order": {"order_id": "o-1", "status": "resting"}}
        order = await client.get_order("o-1")
        assert order == {"order_id": "o-1", "status": "resting"}

    @pytest.mark.asyncio
    async def test_create_order(self, client, mock_http):
        mock_http.post.return_value = {"order": {"order_id": "o-9"}}

        order = await client.create_order(
            {
                "ticker": "X",
                "side": "yes",
                "action": "buy",
                "count": 2,
                "yes_price": 40,
                "client_order_id": None,
            }
        )

        assert order == {"order_id": "o-9"}
        mock_http.post.assert_awaited_once_with(
            "/portfolio/orders",
            json={
                "ticker": "X",
                "side": "yes",
                "action": "buy",
                "count": 2,
                "yes_price": 40,
                "type": "limit",
            },
            headers=None,
        )

    @pytest.mark.asyncio
    @pytest.mark.parametrize(
        "order",
        [
            {"side": "yes", "action": "buy", "count": 1},
            {"ticker": "X", "action": "buy", "count": 1},
            {"ticker": "X", "side": "yes", "count": 1},
            {"ticker": "X", "side": "yes", "action": "buy", "count": 0},
        ],
    )
    async def test_create_order_validates_before_sending(self, client, mock_http, order):
        with pytest.raises(ValueError):
            await client.create_order(order)
        mock_http.post.assert_not_called()

    @pytest.mark.asyncio
    async def test_cancel_order(self, client, mock_http):
        mock_http.delete.return_value = {"order": {"order_id": "o-1", "status": "canceled"}}

        order = await client.cancel_order("o-1")

        assert order["status"] == "canceled"
        mock_http.delete.assert_awaited_once_with(
            "/portfolio/orders/o-1", params=None, headers=None
        )
