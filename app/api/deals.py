from __future__ import annotations

import asyncio
from typing import Any, Awaitable

import structlog
from fastapi import APIRouter, Depends, HTTPException, Request, Response

from app.config import Settings, get_settings
from app.models.schemas import CreateDeal, UpdateDeal, UpdateDealWithId, request_body_schema
from app.services import deals
from app.services.forwarder import UpstreamResponse, UpstreamTransportError, get_forwarder

router = APIRouter(tags=["deals"])

# nginx's "client closed request".
CLIENT_CLOSED_REQUEST = 499


def _relay(upstream: UpstreamResponse) -> Response:
    return Response(content=upstream.content, status_code=upstream.status_code, media_type="application/json")


async def _forward_until_disconnect(
    request: Request, call: Awaitable[UpstreamResponse], poll_seconds: float
) -> UpstreamResponse | None:
    """Await the upstream call, cancelling it if the caller goes away first."""

    upstream = asyncio.ensure_future(call)
    try:
        while True:
            done, _ = await asyncio.wait({upstream}, timeout=poll_seconds)
            if done:
                return upstream.result()
            if await request.is_disconnected():
                upstream.cancel()
                try:
                    await upstream
                except asyncio.CancelledError:
                    pass
                structlog.get_logger("deals").info("client_disconnected")
                return None
    finally:
        # The handler itself may be cancelled mid-wait; never leave the call running.
        if not upstream.done():
            upstream.cancel()


async def _respond(request: Request, settings: Settings, call: Awaitable[UpstreamResponse]) -> Response:
    try:
        upstream = await _forward_until_disconnect(request, call, settings.disconnect_poll_seconds)
    except deals.InvalidDealPayload as exc:
        raise HTTPException(status_code=400, detail=str(exc)) from exc
    except UpstreamTransportError as exc:
        raise HTTPException(status_code=500, detail=str(exc)) from exc
    if upstream is None:
        return Response(status_code=CLIENT_CLOSED_REQUEST)
    return _relay(upstream)


@router.get("/deals", summary="Retrieve all deals")
async def get_deals(
    request: Request,
    settings: Settings = Depends(get_settings),
    forwarder: Any = Depends(get_forwarder),
) -> Response:
    """Retrieves deals from Pipedrive; query parameters are passed through."""

    raw_query = request.scope.get("query_string", b"").decode("latin-1")
    return await _respond(request, settings, deals.list_deals(settings, forwarder, raw_query))


@router.post("/deals", summary="Create a new deal", openapi_extra=request_body_schema(CreateDeal))
async def add_deal(
    request: Request,
    settings: Settings = Depends(get_settings),
    forwarder: Any = Depends(get_forwarder),
) -> Response:
    body = await request.body()
    return await _respond(request, settings, deals.create_deal(settings, forwarder, body))


@router.put("/deals/{deal_id}", summary="Update an existing deal", openapi_extra=request_body_schema(UpdateDeal))
async def update_deal(
    deal_id: int,
    request: Request,
    settings: Settings = Depends(get_settings),
    forwarder: Any = Depends(get_forwarder),
) -> Response:
    body = await request.body()
    return await _respond(request, settings, deals.update_deal(settings, forwarder, deal_id, body))


@router.put(
    "/deals",
    summary="Update a deal by the id in its body",
    deprecated=True,
    openapi_extra=request_body_schema(UpdateDealWithId),
)
async def update_deal_by_body(
    request: Request,
    settings: Settings = Depends(get_settings),
    forwarder: Any = Depends(get_forwarder),
) -> Response:
    """Use ``PUT /deals/{deal_id}`` instead; the ``id`` field is moved into the URL."""

    body = await request.body()
    return await _respond(request, settings, deals.update_deal_from_body(settings, forwarder, body))
