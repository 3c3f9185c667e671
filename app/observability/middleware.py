from __future__ import annotations

import uuid
from time import perf_counter
from typing import Any, Callable

import structlog
from starlette.routing import Match

from app.observability.metrics import get_metrics


UNMATCHED_ENDPOINT = "<unmatched>"


def _request_target(scope: dict[str, Any]) -> str:
    path = scope.get("path") or "/"
    query = scope.get("query_string") or b""
    if query:
        return f"{path}?{query.decode('latin-1')}"
    return path


def _client_address(scope: dict[str, Any]) -> str:
    client = scope.get("client")
    if not client:
        return "-"
    host, port = client[0], client[1]
    return f"{host}:{port}"


def _endpoint_label(scope: dict[str, Any]) -> str:
    """Route template for the request, so ``/deals/42`` and ``/deals/43`` share a series.

    A path matched only by another method's route (405) uses that route's
    template; paths no route matches at all share one label.
    """

    router = getattr(scope.get("app"), "router", None)
    partial: str | None = None
    for route in getattr(router, "routes", []):
        match, _ = route.matches(scope)
        if match == Match.FULL:
            return route.path
        if match == Match.PARTIAL and partial is None:
            partial = route.path
    return partial or UNMATCHED_ENDPOINT


class LoggingMiddleware:
    """Binds request context for structlog and logs every inbound request."""

    def __init__(self, app: Callable[..., Any]) -> None:
        self.app = app

    async def __call__(self, scope: dict[str, Any], receive: Callable[..., Any], send: Callable[..., Any]) -> None:
        if scope.get("type") != "http":
            await self.app(scope, receive, send)
            return

        structlog.contextvars.bind_contextvars(
            request_id=str(uuid.uuid4()),
            path=scope.get("path"),
            method=scope.get("method"),
        )
        structlog.get_logger("access").info(
            "http_request",
            target=_request_target(scope),
            client=_client_address(scope),
        )

        try:
            await self.app(scope, receive, send)
        finally:
            structlog.contextvars.clear_contextvars()


class MetricsMiddleware:
    """Counts requests and times them per (method, route template)."""

    def __init__(self, app: Callable[..., Any]) -> None:
        self.app = app

    async def __call__(self, scope: dict[str, Any], receive: Callable[..., Any], send: Callable[..., Any]) -> None:
        if scope.get("type") != "http":
            await self.app(scope, receive, send)
            return

        method = scope.get("method", "")
        endpoint = _endpoint_label(scope)
        metrics = get_metrics()
        metrics.increment(method, endpoint)

        start = perf_counter()
        try:
            await self.app(scope, receive, send)
        finally:
            metrics.observe(method, endpoint, perf_counter() - start)
