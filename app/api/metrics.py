from __future__ import annotations

from fastapi import APIRouter, HTTPException, Response

from app.config import get_settings
from app.observability.metrics import get_metrics


router = APIRouter(tags=["metrics"])


@router.get("/metrics")
async def metrics() -> Response:
    settings = get_settings()
    if not settings.enable_metrics_endpoint:
        raise HTTPException(status_code=404, detail="Not found")
    content, media_type = get_metrics().render()
    return Response(content=content, media_type=media_type)
