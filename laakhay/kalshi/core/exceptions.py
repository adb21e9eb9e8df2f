"""Custom exception hierarchy.

Architecture:
    Every error raised by the library derives from KalshiError so callers can
    catch one base class. REST failures are mapped from HTTP status codes by
    error_from_response(); streaming failures surface either as
    ConnectionStateError (wrong lifecycle state, raised immediately) or
    through connection state-change notifications (transient I/O).

Design Decisions:
    - AuthenticationError is terminal: the streaming client never retries it
    - RateLimitError carries the server's retry hint when one is provided
    - ConnectionStateError subclasses RuntimeError so generic callers that
      expect "invalid operation" semantics keep working
"""

from __future__ import annotations

import json
from collections.abc import Mapping
from typing import Any


class KalshiError(Exception):
    """Base exception for all library errors."""

    pass


class APIError(KalshiError):
    """Error response returned by the REST API."""

    def __init__(
        self,
        message: str,
        status_code: int | None = None,
        *,
        error_code: str | None = None,
        raw_response: str | None = None,
        request_id: str | None = None,
    ) -> None:
        super().__init__(message)
        self.status_code = status_code
        self.error_code = error_code
        self.raw_response = raw_response
        self.request_id = request_id


class AuthenticationError(APIError):
    """Credentials or signature were rejected (401/403)."""

    pass


class NotFoundError(APIError):
    """Requested resource does not exist (404)."""

    pass


class ValidationError(APIError):
    """Request was malformed (400/422)."""

    def __init__(
        self,
        message: str,
        status_code: int | None = 400,
        *,
        errors: Mapping[str, list[str]] | None = None,
        **kwargs: Any,
    ) -> None:
        super().__init__(message, status_code, **kwargs)
        self.errors = dict(errors or {})


class RateLimitError(APIError):
    """Remote rate limit exceeded (429)."""

    def __init__(self, message: str, retry_after: float | None = None, **kwargs: Any) -> None:
        kwargs.setdefault("status_code", 429)
        super().__init__(message, **kwargs)
        self.retry_after = retry_after


class KalshiConnectionError(KalshiError, ConnectionError):
    """Transport-level failure while connecting, reading or writing."""

    pass


class ConnectionStateError(KalshiError, RuntimeError):
    """Operation invoked from the wrong connection state."""

    def __init__(self, message: str, state: Any = None) -> None:
        super().__init__(message)
        self.state = state


class MessageDecodeError(KalshiError):
    """Inbound frame could not be decoded."""

    def __init__(self, message: str, raw: Any = None) -> None:
        super().__init__(message)
        self.raw = raw


class SignerConfigurationError(KalshiError, ValueError):
    """Signing key material is missing or unusable."""

    pass


class RateLimiterClosedError(KalshiError):
    """Rate limiter has been shut down."""

    pass


class RateLimiterQueueFullError(KalshiError):
    """Too many callers are already waiting for a rate limiter token."""

    pass


def _parse_retry_after(headers: Mapping[str, str] | None) -> float | None:
    if not headers:
        return None
    value = headers.get("Retry-After") or headers.get("retry-after")
    if value is None:
        return None
    try:
        return max(0.0, float(value))
    except (TypeError, ValueError):
        return None


def error_from_response(
    status: int,
    body: str | None,
    headers: Mapping[str, str] | None = None,
    request_id: str | None = None,
) -> APIError:
    """Map an unsuccessful HTTP response to an exception instance.

    The API returns ``{"error": {"code": ..., "message": ...}}`` on most
    failures; older endpoints return ``{"code": ..., "message": ...}`` at the
    top level. Either shape is accepted, and a non-JSON body falls back to a
    generic message.
    """
    error_code: str | None = None
    message: str | None = None
    field_errors: dict[str, list[str]] = {}

    if body:
        try:
            payload = json.loads(body)
        except ValueError:
            payload = None
        if isinstance(payload, dict):
            detail = payload.get("error", payload)
            if isinstance(detail, dict):
                code = detail.get("code")
                error_code = str(code) if code is not None else None
                message = detail.get("message") or detail.get("details")
                errors = detail.get("errors") or payload.get("errors")
                if isinstance(errors, dict):
                    field_errors = {
                        str(k): [str(item) for item in (v if isinstance(v, list) else [v])]
                        for k, v in errors.items()
                    }

    message = message or f"Kalshi API error: HTTP {status}"
    common: dict[str, Any] = {
        "error_code": error_code,
        "raw_response": body,
        "request_id": request_id,
    }

    if status in (401, 403):
        return AuthenticationError(message, status, **common)
    if status == 404:
        return NotFoundError(message, status, **common)
    if status in (400, 422):
        return ValidationError(message, status, errors=field_errors, **common)
    if status == 429:
        return RateLimitError(message, retry_after=_parse_retry_after(headers), **common)
    return APIError(message, status, **common)
