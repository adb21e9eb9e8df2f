"""High-level clients."""

from .kalshi_client import KalshiClient

__all__ = ["KalshiClient"]
