from fastapi import FastAPI

from app.api.deals import router as deals_router
from app.api.metrics import router as metrics_router
from app.config import ensure_upstream_configured, get_settings
from app.observability.logging import configure_logging
from app.observability.middleware import LoggingMiddleware, MetricsMiddleware
from app.services.forwarder import get_forwarder, set_forwarder


app = FastAPI(
    title="Pipedrive Deals API",
    version="1.0.0",
    description="A simple proxy to Pipedrive API for managing deals.",
)
# Last added runs first: logging wraps metrics.
app.add_middleware(MetricsMiddleware)
app.add_middleware(LoggingMiddleware)
app.include_router(deals_router)
app.include_router(metrics_router)


@app.on_event("startup")
def _startup() -> None:
    settings = get_settings()
    configure_logging(settings.log_level, json_output=settings.log_json)
    ensure_upstream_configured(settings)


@app.on_event("shutdown")
async def _shutdown() -> None:
    await get_forwarder().aclose()
    set_forwarder(None)


@app.get("/health")
async def health() -> dict[str, str]:
    return {"status": "ok"}
