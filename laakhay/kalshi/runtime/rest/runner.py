"""REST request runner using endpoint specs and response adapters."""

from __future__ import annotations

from collections.abc import Callable
from dataclasses import dataclass
from typing import Any

from .http_client import KalshiHTTPClient


@dataclass(frozen=True)
class RestEndpointSpec:
    id: str
    method: str  # "GET" | "POST" | "DELETE"
    build_path: Callable[[dict[str, Any]], str]
    build_query: Callable[[dict[str, Any]], dict[str, Any]] | None = None
    build_body: Callable[[dict[str, Any]], dict[str, Any]] | None = None
    build_headers: Callable[[dict[str, Any]], dict[str, str]] | None = None


class ResponseAdapter:
    def parse(self, response: Any, params: dict[str, Any]) -> Any:
        return response


class FieldAdapter(ResponseAdapter):
    """Returns one top-level field of the response."""

    def __init__(self, field: str, default: Any = None) -> None:
        self.field = field
        self.default = default

    def parse(self, response: Any, params: dict[str, Any]) -> Any:
        if not isinstance(response, dict):
            return self.default
        return response.get(self.field, self.default)


class RestRunner:
    def __init__(self, http: KalshiHTTPClient) -> None:
        self._http = http

    async def run(
        self,
        *,
        spec: RestEndpointSpec,
        params: dict[str, Any],
        adapter: ResponseAdapter | None = None,
    ) -> Any:
        path = spec.build_path(params)
        query = spec.build_query(params) if spec.build_query else None
        body = spec.build_body(params) if spec.build_body else None
        headers = spec.build_headers(params) if spec.build_headers else None

        method = spec.method.upper()
        if method == "GET":
            data = await self._http.get(path, params=query, headers=headers)
        elif method == "DELETE":
            data = await self._http.delete(path, params=query, headers=headers)
        elif method == "POST":
            data = await self._http.post(path, json=body, headers=headers)
        else:
            raise ValueError(f"Unsupported method {spec.method!r} for endpoint {spec.id}")

        return (adapter or ResponseAdapter()).parse(data, params)
