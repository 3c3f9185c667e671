from __future__ import annotations

import re
from dataclasses import dataclass, field
from time import perf_counter
from typing import Any

import httpx
import structlog

from app.config import get_settings

ALLOWED_METHODS = frozenset({"GET", "POST", "PUT"})

_TOKEN_RE = re.compile(r"(api_token=)[^&]*")

_forwarder: Any | None = None


class UpstreamTransportError(Exception):
    """The outbound call could not be built or completed."""


@dataclass(frozen=True)
class UpstreamResponse:
    status_code: int
    content: bytes
    headers: dict[str, str] = field(default_factory=dict)


def redact_token(url: str) -> str:
    return _TOKEN_RE.sub(r"\1***", url)


class UpstreamForwarder:
    """Issues every outbound call to the CRM API.

    One attempt per call, no retries. The response body is read in full so the
    connection is back in the pool before the caller sees the result.
    """

    def __init__(self, timeout: float = 10.0, client: httpx.AsyncClient | None = None) -> None:
        self.timeout = timeout
        self._client = client or httpx.AsyncClient(timeout=httpx.Timeout(timeout))

    async def forward(self, method: str, url: str, body: bytes | None = None) -> UpstreamResponse:
        method = method.upper()
        if method not in ALLOWED_METHODS:
            raise ValueError(f"Unsupported upstream method: {method}")

        log = structlog.get_logger("upstream")
        safe_url = redact_token(url)
        start = perf_counter()
        try:
            response = await self._client.request(
                method,
                url,
                content=body,
                headers={"Content-Type": "application/json"},
                timeout=self.timeout,
            )
        except (httpx.HTTPError, httpx.InvalidURL) as exc:
            elapsed_ms = (perf_counter() - start) * 1000.0
            log.warning(
                "upstream_request_failed",
                method=method,
                url=safe_url,
                error=type(exc).__name__,
                elapsed_ms=round(elapsed_ms, 2),
            )
            raise UpstreamTransportError(str(exc) or type(exc).__name__) from exc

        elapsed_ms = (perf_counter() - start) * 1000.0
        log.info(
            "upstream_request",
            method=method,
            url=safe_url,
            status_code=response.status_code,
            elapsed_ms=round(elapsed_ms, 2),
        )
        return UpstreamResponse(
            status_code=response.status_code,
            content=response.content,
            headers=dict(response.headers),
        )

    async def aclose(self) -> None:
        await self._client.aclose()


def set_forwarder(forwarder: Any | None) -> None:
    global _forwarder
    _forwarder = forwarder


def get_forwarder() -> Any:
    global _forwarder
    if _forwarder is None:
        settings = get_settings()
        _forwarder = UpstreamForwarder(timeout=settings.upstream_timeout_seconds)
    return _forwarder
