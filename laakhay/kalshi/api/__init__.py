"""REST API surface."""

from .rest_client import KalshiRESTClient

__all__ = ["KalshiRESTClient"]
