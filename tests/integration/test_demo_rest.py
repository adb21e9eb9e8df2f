"""Integration tests for the REST surface against the demo environment."""

import pytest

from laakhay.kalshi import KalshiRESTClient

pytestmark = pytest.mark.integration


class TestDemoRest:
    @pytest.mark.asyncio
    async def test_exchange_status(self, demo_options):
        async with KalshiRESTClient(demo_options) as client:
            status = await client.get_exchange_status()
        assert "trading_active" in status

    @pytest.mark.asyncio
    async def test_markets_page(self, demo_options):
        async with KalshiRESTClient(demo_options) as client:
            page = await client.get_markets(limit=5, status="open")
        assert len(page["markets"]) <= 5
        for market in page["markets"]:
            assert market["ticker"]

    @pytest.mark.asyncio
    async def test_signed_balance(self, demo_options):
        async with KalshiRESTClient(demo_options) as client:
            balance = await client.get_balance()
        assert "balance" in balance
