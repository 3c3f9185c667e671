from __future__ import annotations

import json
import math
from typing import Any

from app.config import Settings
from app.services.forwarder import UpstreamResponse

DEAL_ID_FIELD = "id"


class InvalidDealPayload(ValueError):
    """The inbound update body cannot be routed to a deal."""


def deals_url(settings: Settings, deal_id: int | None = None) -> str:
    url = f"{settings.pipedrive_base_url}/deals"
    if deal_id is not None:
        url = f"{url}/{deal_id}"
    return f"{url}?api_token={settings.pipedrive_api_token}"


def split_query(raw_query: str) -> list[str]:
    """Split a raw query string into ``key=value`` segments, encoding untouched."""

    return [part for part in raw_query.split("&") if part]


def list_deals_url(settings: Settings, raw_query: str) -> str:
    url = deals_url(settings)
    for part in split_query(raw_query):
        url += "&" + part
    return url


def extract_deal_id(body: bytes) -> tuple[int, bytes]:
    """Pull the deal id out of a JSON object body.

    Returns the id and the re-encoded body without the id field. Fractional ids
    are truncated toward zero (``42.9`` -> ``42``), not rounded.
    """

    # ValueError covers bad UTF-8, malformed JSON and oversized integer literals.
    try:
        payload = json.loads(body)
    except (ValueError, RecursionError) as exc:
        raise InvalidDealPayload(f"Request body is not valid JSON: {exc}") from exc

    if not isinstance(payload, dict):
        raise InvalidDealPayload("Request body must be a JSON object")
    if DEAL_ID_FIELD not in payload:
        raise InvalidDealPayload(f"Missing '{DEAL_ID_FIELD}' field in request body")

    raw_id: Any = payload.pop(DEAL_ID_FIELD)
    # bool is an int subclass but never a valid id.
    if isinstance(raw_id, bool) or not isinstance(raw_id, (int, float)):
        raise InvalidDealPayload(f"'{DEAL_ID_FIELD}' must be a number")
    if isinstance(raw_id, float) and not math.isfinite(raw_id):
        raise InvalidDealPayload(f"'{DEAL_ID_FIELD}' must be a finite number")

    reduced = json.dumps(payload, separators=(",", ":"), ensure_ascii=False).encode("utf-8")
    return int(raw_id), reduced


async def list_deals(settings: Settings, forwarder: Any, raw_query: str) -> UpstreamResponse:
    return await forwarder.forward("GET", list_deals_url(settings, raw_query), None)


async def create_deal(settings: Settings, forwarder: Any, body: bytes) -> UpstreamResponse:
    return await forwarder.forward("POST", deals_url(settings), body)


async def update_deal(settings: Settings, forwarder: Any, deal_id: int, body: bytes) -> UpstreamResponse:
    return await forwarder.forward("PUT", deals_url(settings, deal_id), body)


async def update_deal_from_body(settings: Settings, forwarder: Any, body: bytes) -> UpstreamResponse:
    deal_id, reduced = extract_deal_id(body)
    return await update_deal(settings, forwarder, deal_id, reduced)
