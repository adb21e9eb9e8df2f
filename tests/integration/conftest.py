"""Shared fixtures for integration tests against the Kalshi demo environment."""

import os

import pytest

from laakhay.kalshi import ClientOptions, Environment

# Skip unless RUN_KALSHI_NETWORK_TESTS=1 and demo credentials are configured
NETWORK_ENABLED = os.environ.get("RUN_KALSHI_NETWORK_TESTS") == "1"


@pytest.fixture
def demo_options() -> ClientOptions:
    if not NETWORK_ENABLED:
        pytest.skip("Requires network access. Set RUN_KALSHI_NETWORK_TESTS=1 to run")
    if not os.environ.get("KALSHI_API_KEY"):
        pytest.skip("Requires KALSHI_API_KEY and KALSHI_PRIVATE_KEY_PATH for the demo venue")
    return ClientOptions.from_env(environment=Environment.DEMO)
