"""Runtime components: rate limiting, REST transport and streaming."""

from .rate_limiter import TokenBucketRateLimiter

__all__ = ["TokenBucketRateLimiter"]
