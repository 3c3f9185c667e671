from __future__ import annotations

from collections.abc import AsyncIterator
from dataclasses import dataclass

import pytest
from httpx import ASGITransport, AsyncClient

from app.config import get_settings
from app.main import app
from app.observability.metrics import InMemoryMetrics, set_metrics
from app.services.forwarder import UpstreamResponse, UpstreamTransportError, set_forwarder


@dataclass
class ForwardedCall:
    method: str
    url: str
    body: bytes | None


class StubForwarder:
    """Records outbound calls and replays a canned upstream response."""

    def __init__(self) -> None:
        self.calls: list[ForwardedCall] = []
        self.response = UpstreamResponse(status_code=200, content=b'{"success":true,"data":[]}')
        self.error: Exception | None = None

    async def forward(self, method: str, url: str, body: bytes | None = None) -> UpstreamResponse:
        self.calls.append(ForwardedCall(method=method, url=url, body=body))
        if self.error is not None:
            raise self.error
        return self.response

    def fail_with_timeout(self) -> None:
        self.error = UpstreamTransportError("timed out")

    async def aclose(self) -> None:
        return None


@pytest.fixture(autouse=True)
def test_environment(monkeypatch: pytest.MonkeyPatch) -> None:
    monkeypatch.setenv("PIPEDRIVE_API_TOKEN", "test-token")
    monkeypatch.setenv("PIPEDRIVE_COMPANY_DOMAIN", "acme")
    monkeypatch.setenv("METRICS_BACKEND", "memory")
    get_settings.cache_clear()

    yield

    set_forwarder(None)
    set_metrics(None)
    get_settings.cache_clear()


@pytest.fixture
def forwarder() -> StubForwarder:
    stub = StubForwarder()
    set_forwarder(stub)
    return stub


@pytest.fixture
def metrics() -> InMemoryMetrics:
    recorder = InMemoryMetrics()
    set_metrics(recorder)
    return recorder


@pytest.fixture
async def api_client(forwarder: StubForwarder, metrics: InMemoryMetrics) -> AsyncIterator[AsyncClient]:
    transport = ASGITransport(app=app)
    async with AsyncClient(transport=transport, base_url="http://test") as client:
        yield client
