"""REST endpoint definitions.

Each SPEC maps one client method to an HTTP verb, path and payload. Paths
are relative to the client's base URL (``.../trade-api/v2``).
"""

from __future__ import annotations

from typing import Any
from urllib.parse import quote

from ..runtime.rest import FieldAdapter, RestEndpointSpec


def _segment(value: str) -> str:
    if not value or not str(value).strip():
        raise ValueError("path identifier must be a non-empty string")
    return quote(str(value).strip(), safe="")


def _pick(*names: str):
    """Query builder that forwards the named params that are set."""

    def build(params: dict[str, Any]) -> dict[str, Any]:
        return {name: params[name] for name in names if params.get(name) is not None}

    return build


# --- exchange -------------------------------------------------------------

EXCHANGE_STATUS = RestEndpointSpec(
    id="exchange_status",
    method="GET",
    build_path=lambda p: "/exchange/status",
)

EXCHANGE_SCHEDULE = RestEndpointSpec(
    id="exchange_schedule",
    method="GET",
    build_path=lambda p: "/exchange/schedule",
)

# --- markets --------------------------------------------------------------

MARKETS = RestEndpointSpec(
    id="markets",
    method="GET",
    build_path=lambda p: "/markets",
    build_query=_pick(
        "limit",
        "cursor",
        "event_ticker",
        "series_ticker",
        "status",
        "tickers",
        "min_close_ts",
        "max_close_ts",
    ),
)

MARKET = RestEndpointSpec(
    id="market",
    method="GET",
    build_path=lambda p: f"/markets/{_segment(p['ticker'])}",
)

MARKET_ORDERBOOK = RestEndpointSpec(
    id="market_orderbook",
    method="GET",
    build_path=lambda p: f"/markets/{_segment(p['ticker'])}/orderbook",
    build_query=_pick("depth"),
)

MARKET_TRADES = RestEndpointSpec(
    id="market_trades",
    method="GET",
    build_path=lambda p: "/markets/trades",
    build_query=_pick("ticker", "limit", "cursor", "min_ts", "max_ts"),
)

# --- events ---------------------------------------------------------------

EVENTS = RestEndpointSpec(
    id="events",
    method="GET",
    build_path=lambda p: "/events",
    build_query=_pick("limit", "cursor", "status", "series_ticker", "with_nested_markets"),
)

EVENT = RestEndpointSpec(
    id="event",
    method="GET",
    build_path=lambda p: f"/events/{_segment(p['event_ticker'])}",
    build_query=_pick("with_nested_markets"),
)

# --- portfolio ------------------------------------------------------------

BALANCE = RestEndpointSpec(
    id="balance",
    method="GET",
    build_path=lambda p: "/portfolio/balance",
)

POSITIONS = RestEndpointSpec(
    id="positions",
    method="GET",
    build_path=lambda p: "/portfolio/positions",
    build_query=_pick(
        "limit", "cursor", "ticker", "event_ticker", "count_filter", "settlement_status"
    ),
)

FILLS = RestEndpointSpec(
    id="fills",
    method="GET",
    build_path=lambda p: "/portfolio/fills",
    build_query=_pick("ticker", "order_id", "min_ts", "max_ts", "limit", "cursor"),
)

ORDERS = RestEndpointSpec(
    id="orders",
    method="GET",
    build_path=lambda p: "/portfolio/orders",
    build_query=_pick("ticker", "event_ticker", "status", "min_ts", "max_ts", "limit", "cursor"),
)

ORDER = RestEndpointSpec(
    id="order",
    method="GET",
    build_path=lambda p: f"/portfolio/orders/{_segment(p['order_id'])}",
)


def _build_order_body(params: dict[str, Any]) -> dict[str, Any]:
    order = dict(params["order"])
    for required in ("ticker", "side", "action", "count"):
        if order.get(required) in (None, ""):
            raise ValueError(f"order is missing required field {required!r}")
    if int(order["count"]) <= 0:
        raise ValueError("order count must be positive")
    order.setdefault("type", "limit")
    return {k: v for k, v in order.items() if v is not None}


CREATE_ORDER = RestEndpointSpec(
    id="create_order",
    method="POST",
    build_path=lambda p: "/portfolio/orders",
    build_body=_build_order_body,
)

CANCEL_ORDER = RestEndpointSpec(
    id="cancel_order",
    method="DELETE",
    build_path=lambda p: f"/portfolio/orders/{_segment(p['order_id'])}",
)


# --- adapters -------------------------------------------------------------

MARKET_ADAPTER = FieldAdapter("market")
ORDERBOOK_ADAPTER = FieldAdapter("orderbook")
ORDER_ADAPTER = FieldAdapter("order")
