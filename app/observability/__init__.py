"""Request observability: structlog access logs and per-route request metrics."""

from app.observability.logging import configure_logging

__all__ = ["configure_logging"]
