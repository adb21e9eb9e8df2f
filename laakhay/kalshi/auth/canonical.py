"""Canonical request construction for request signing.

Two canonical forms exist:

- RSA-PSS: ``{timestamp_ms}{METHOD}{path}`` with no separators, no query
  string and no body.
- HMAC-SHA256: ``{timestamp_ms}\\n{METHOD}\\n{path_and_query}\\n{body}``.
"""

from __future__ import annotations

from urllib.parse import urlsplit


def split_path(path: str) -> tuple[str, str]:
    """Split ``/a/b?x=1`` into ``("/a/b", "x=1")``; absolute URLs are reduced to their path."""
    if "://" in path:
        parts = urlsplit(path)
        return parts.path or "/", parts.query
    base, _, query = path.partition("?")
    return base or "/", query


def path_and_query(path: str, query: str | None = None) -> str:
    base, embedded = split_path(path)
    combined = "&".join(q for q in (embedded, query or "") if q)
    return f"{base}?{combined}" if combined else base


def build_rsa_message(timestamp_ms: int, method: str, path: str) -> bytes:
    base, _ = split_path(path)
    return f"{int(timestamp_ms)}{method.upper()}{base}".encode()


def build_hmac_message(
    timestamp_ms: int,
    method: str,
    path: str,
    query: str | None = None,
    body: bytes | str = b"",
) -> bytes:
    if isinstance(body, str):
        body = body.encode()
    head = f"{int(timestamp_ms)}\n{method.upper()}\n{path_and_query(path, query)}\n"
    return head.encode() + (body or b"")
