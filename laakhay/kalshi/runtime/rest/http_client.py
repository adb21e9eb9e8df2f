"""Signed, rate-limited async HTTP client.

Every request:
    1. waits out any server-imposed throttle window
    2. takes a token from the client-side rate limiter
    3. is signed with fresh KALSHI-ACCESS-* headers
    4. maps non-2xx responses to the exception hierarchy
"""

from __future__ import annotations

import asyncio
import inspect
import json
import logging
import time
import uuid
from collections.abc import Awaitable, Callable, Mapping
from typing import Any
from urllib.parse import urlencode, urlsplit

import aiohttp

from ...auth.signer import RequestSigner, create_signer, redact_headers
from ...core.config import ClientOptions
from ...core.exceptions import APIError, KalshiConnectionError, RateLimitError, error_from_response
from ..rate_limiter import TokenBucketRateLimiter

logger = logging.getLogger(__name__)

ResponseHook = Callable[[aiohttp.ClientResponse], Awaitable[float | None] | float | None]

REQUEST_ID_HEADER = "X-Request-Id"
DEFAULT_RATE_LIMIT_BACKOFF = 1.0


def _encode_query(params: Mapping[str, Any] | None) -> str:
    if not params:
        return ""
    items: list[tuple[str, str]] = []
    for key, value in params.items():
        if value is None:
            continue
        if isinstance(value, bool):
            value = "true" if value else "false"
        elif isinstance(value, list | tuple):
            value = ",".join(str(v) for v in value)
        items.append((key, str(value)))
    return urlencode(items)


class KalshiHTTPClient:
    """Async HTTP client wrapper with signing and admission control."""

    def __init__(
        self,
        base_url: str | None = None,
        *,
        signer: RequestSigner | None = None,
        rate_limiter: TokenBucketRateLimiter | None = None,
        timeout: float = 30.0,
        owns_rate_limiter: bool = False,
    ) -> None:
        self.base_url = base_url.rstrip("/") if base_url else None
        self.timeout = aiohttp.ClientTimeout(total=timeout)
        self.signer = signer
        self.rate_limiter = rate_limiter
        self._owns_rate_limiter = owns_rate_limiter
        self._session: aiohttp.ClientSession | None = None
        self._response_hooks: list[ResponseHook] = []
        self._throttle_until: float | None = None

    @classmethod
    def from_options(
        cls, options: ClientOptions, *, signer: RequestSigner | None = None
    ) -> KalshiHTTPClient:
        limiter = None
        if options.enable_rate_limiting:
            limiter = TokenBucketRateLimiter(
                capacity=options.rate_limit_capacity,
                refill_rate=options.rate_limit_refill_rate,
                max_queue=options.rate_limit_max_queue,
            )
        return cls(
            options.get_effective_base_url(),
            signer=signer or create_signer(options),
            rate_limiter=limiter,
            timeout=options.timeout,
            owns_rate_limiter=True,
        )

    @property
    def session(self) -> aiohttp.ClientSession:
        """Get or create session."""
        if self._session is None or self._session.closed:
            self._session = aiohttp.ClientSession(
                timeout=self.timeout, headers={"Accept": "application/json"}
            )
        return self._session

    def set_throttle(self, seconds: float) -> None:
        """Hold all requests for ``seconds``; a shorter window never shrinks a longer one."""
        if seconds <= 0:
            return
        until = time.time() + seconds
        if self._throttle_until is None or until > self._throttle_until:
            self._throttle_until = until

    async def _wait_for_throttle(self) -> None:
        # Re-read after each sleep; the window may have been extended meanwhile
        while self._throttle_until is not None:
            delay = self._throttle_until - time.time()
            if delay <= 0:
                self._throttle_until = None
                return
            logger.debug(f"Throttled, waiting {delay:.2f}s")
            await asyncio.sleep(delay)

    def add_response_hook(self, hook: ResponseHook) -> None:
        """Register a hook; a positive numeric return value sets a throttle window."""
        self._response_hooks.append(hook)

    async def _run_response_hooks(self, response: aiohttp.ClientResponse) -> None:
        for hook in self._response_hooks:
            try:
                result = hook(response)
                if inspect.isawaitable(result):
                    result = await result
                if isinstance(result, int | float) and result > 0:
                    self.set_throttle(float(result))
            except Exception as e:  # noqa: BLE001
                logger.debug(f"Response hook {hook!r} failed: {e}")

    def _url(self, path: str) -> str:
        if path.startswith("http://") or path.startswith("https://"):
            return path
        if not self.base_url:
            raise ValueError(f"Relative path {path!r} requires a base_url")
        return f"{self.base_url}/{path.lstrip('/')}"

    def _sign_headers(self, method: str, url: str, query: str, body: bytes) -> dict[str, str]:
        if self.signer is None:
            return {}
        path = urlsplit(url).path
        return self.signer.sign(method, path, query=query or None, body=body).headers()

    async def request(
        self,
        method: str,
        path: str,
        *,
        params: Mapping[str, Any] | None = None,
        json_body: Any = None,
        headers: Mapping[str, str] | None = None,
    ) -> Any:
        """Send a request and return the decoded JSON body (None when empty).

        Raises:
            AuthenticationError, NotFoundError, ValidationError, RateLimitError,
            APIError: Mapped from the response status
            KalshiConnectionError: Network failure before a response arrived
            RateLimiterClosedError, RateLimiterQueueFullError: Admission failed
        """
        method = method.upper()
        url = self._url(path)
        query = _encode_query(params)
        full_url = f"{url}?{query}" if query else url
        body = b"" if json_body is None else json.dumps(json_body, separators=(",", ":")).encode()

        await self._wait_for_throttle()
        if self.rate_limiter is not None:
            await self.rate_limiter.acquire()

        request_id = uuid.uuid4().hex
        request_headers: dict[str, str] = {REQUEST_ID_HEADER: request_id}
        if body:
            request_headers["Content-Type"] = "application/json"
        # Signed per request; signatures are never reused
        request_headers.update(self._sign_headers(method, url, query, body))
        if headers:
            request_headers.update(headers)

        logger.debug(f"{method} {full_url} headers={redact_headers(request_headers)}")
        try:
            async with self.session.request(
                method, full_url, data=body or None, headers=request_headers
            ) as response:
                await self._run_response_hooks(response)
                text = await response.text()
                status = response.status
                response_headers = response.headers
        except aiohttp.ClientError as e:
            raise KalshiConnectionError(f"{method} {url} failed: {e}") from e

        if status >= 400:
            error = error_from_response(status, text, response_headers, request_id)
            if isinstance(error, RateLimitError):
                self.set_throttle(error.retry_after or DEFAULT_RATE_LIMIT_BACKOFF)
            logger.warning(
                f"{method} {url} -> HTTP {status} ({type(error).__name__}, request_id={request_id})"
            )
            raise error

        if not text:
            return None
        try:
            return json.loads(text)
        except ValueError as e:
            raise APIError(
                "Response body is not valid JSON",
                status,
                raw_response=text,
                request_id=request_id,
            ) from e

    async def get(
        self,
        path: str,
        params: Mapping[str, Any] | None = None,
        headers: Mapping[str, str] | None = None,
    ) -> Any:
        return await self.request("GET", path, params=params, headers=headers)

    async def post(
        self,
        path: str,
        json: Any = None,
        headers: Mapping[str, str] | None = None,
    ) -> Any:
        return await self.request("POST", path, json_body=json, headers=headers)

    async def delete(
        self,
        path: str,
        params: Mapping[str, Any] | None = None,
        headers: Mapping[str, str] | None = None,
    ) -> Any:
        return await self.request("DELETE", path, params=params, headers=headers)

    async def close(self) -> None:
        """Close session (and the rate limiter when owned); idempotent."""
        if self._session is not None and not self._session.closed:
            await self._session.close()
        self._session = None
        if self._owns_rate_limiter and self.rate_limiter is not None:
            self.rate_limiter.close()

    async def __aenter__(self) -> KalshiHTTPClient:
        return self

    async def __aexit__(self, exc_type, exc_val, exc_tb) -> None:
        await self.close()
