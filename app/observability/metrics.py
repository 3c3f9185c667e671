from __future__ import annotations

import json
from dataclasses import asdict, dataclass
from threading import Lock
from typing import Any, Protocol

from prometheus_client import CONTENT_TYPE_LATEST, CollectorRegistry, Counter, Histogram, generate_latest

from app.config import get_settings


class RequestMetrics(Protocol):
    def increment(self, method: str, endpoint: str) -> None: ...

    def observe(self, method: str, endpoint: str, seconds: float) -> None: ...

    def render(self) -> tuple[bytes, str]: ...


class PrometheusMetrics:
    """Request counter + latency histogram in a private registry."""

    def __init__(self, registry: CollectorRegistry | None = None) -> None:
        self.registry = registry or CollectorRegistry()
        self.http_requests_total = Counter(
            "http_requests_total",
            "Total number of HTTP requests.",
            ["method", "endpoint"],
            registry=self.registry,
        )
        self.http_request_duration_seconds = Histogram(
            "http_request_duration_seconds",
            "Duration of HTTP requests in seconds.",
            ["method", "endpoint"],
            registry=self.registry,
        )

    def increment(self, method: str, endpoint: str) -> None:
        self.http_requests_total.labels(method, endpoint).inc()

    def observe(self, method: str, endpoint: str, seconds: float) -> None:
        self.http_request_duration_seconds.labels(method, endpoint).observe(seconds)

    def render(self) -> tuple[bytes, str]:
        return generate_latest(self.registry), CONTENT_TYPE_LATEST


@dataclass
class _LatencyAgg:
    count: int = 0
    sum_ms: float = 0.0
    max_ms: float = 0.0

    def observe(self, elapsed_ms: float) -> None:
        self.count += 1
        self.sum_ms += float(elapsed_ms)
        if elapsed_ms > self.max_ms:
            self.max_ms = float(elapsed_ms)


class InMemoryMetrics:
    """Thread-safe, process-local metrics (resets on restart)."""

    def __init__(self) -> None:
        self._lock = Lock()
        self.http_requests_total: dict[tuple[str, str], int] = {}
        self.http_request_ms: dict[tuple[str, str], _LatencyAgg] = {}

    def increment(self, method: str, endpoint: str) -> None:
        key = (method, endpoint)
        with self._lock:
            self.http_requests_total[key] = self.http_requests_total.get(key, 0) + 1

    def observe(self, method: str, endpoint: str, seconds: float) -> None:
        key = (method, endpoint)
        with self._lock:
            self.http_request_ms.setdefault(key, _LatencyAgg()).observe(seconds * 1000.0)

    def count(self, method: str, endpoint: str) -> int:
        with self._lock:
            return self.http_requests_total.get((method, endpoint), 0)

    def observations(self, method: str, endpoint: str) -> int:
        with self._lock:
            agg = self.http_request_ms.get((method, endpoint))
            return agg.count if agg else 0

    def snapshot(self) -> dict[str, Any]:
        with self._lock:
            return {
                "counters": {
                    "http_requests_total": [
                        {"method": method, "endpoint": endpoint, "value": value}
                        for (method, endpoint), value in sorted(self.http_requests_total.items())
                    ],
                },
                "latency_ms": {
                    "http_request_ms": [
                        {"method": method, "endpoint": endpoint, **asdict(agg)}
                        for (method, endpoint), agg in sorted(self.http_request_ms.items())
                    ],
                },
            }

    def render(self) -> tuple[bytes, str]:
        return json.dumps(self.snapshot()).encode("utf-8"), "application/json"

    def reset(self) -> None:
        with self._lock:
            self.http_requests_total = {}
            self.http_request_ms = {}


_METRICS: RequestMetrics | None = None


def build_metrics(backend: str) -> RequestMetrics:
    if backend == "memory":
        return InMemoryMetrics()
    return PrometheusMetrics()


def get_metrics() -> RequestMetrics:
    global _METRICS
    if _METRICS is None:
        _METRICS = build_metrics(get_settings().metrics_backend)
    return _METRICS


def set_metrics(metrics: RequestMetrics | None) -> None:
    global _METRICS
    _METRICS = metrics


def reset_metrics() -> None:
    """Drop the process metrics instance (used by tests)."""

    set_metrics(None)
