"""REST runtime abstractions."""

from .http_client import KalshiHTTPClient
from .runner import FieldAdapter, ResponseAdapter, RestEndpointSpec, RestRunner

__all__ = [
    "KalshiHTTPClient",
    "RestRunner",
    "RestEndpointSpec",
    "ResponseAdapter",
    "FieldAdapter",
]
