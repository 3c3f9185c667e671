import json
import sys

import pytest

from app.services.forwarder import UpstreamResponse

DEALS_URL = "https://acme.pipedrive.com/api/v1/deals?api_token=test-token"


async def test_list_deals_forwards_query_in_order(api_client, forwarder) -> None:
    resp = await api_client.get("/deals?status=open&limit=5&status=won")
    assert resp.status_code == 200
    assert resp.json() == {"success": True, "data": []}

    assert len(forwarder.calls) == 1
    call = forwarder.calls[0]
    assert call.method == "GET"
    assert call.body is None
    assert call.url == DEALS_URL + "&status=open&limit=5&status=won"


async def test_list_deals_keeps_percent_encoding(api_client, forwarder) -> None:
    resp = await api_client.get("/deals?term=big%20deal&sort=add_time%20DESC")
    assert resp.status_code == 200
    assert forwarder.calls[0].url == DEALS_URL + "&term=big%20deal&sort=add_time%20DESC"


async def test_list_deals_without_query_sends_only_token(api_client, forwarder) -> None:
    await api_client.get("/deals")
    assert forwarder.calls[0].url == DEALS_URL


async def test_same_list_request_twice_is_forwarded_twice(api_client, forwarder) -> None:
    await api_client.get("/deals?start=0")
    await api_client.get("/deals?start=0")
    assert len(forwarder.calls) == 2
    assert forwarder.calls[0].url == forwarder.calls[1].url


async def test_create_deal_forwards_body_verbatim(api_client, forwarder) -> None:
    # Odd spacing and key order must survive untouched.
    body = b'{ "title":"Test Deal",  "value": "1000", "probability": 75.50 }'
    resp = await api_client.post("/deals", content=body, headers={"Content-Type": "application/json"})
    assert resp.status_code == 200

    call = forwarder.calls[0]
    assert call.method == "POST"
    assert call.url == DEALS_URL
    assert call.body == body


async def test_create_deal_does_not_validate_body(api_client, forwarder) -> None:
    forwarder.response = UpstreamResponse(status_code=400, content=b'{"success":false,"error":"Bad request"}')
    resp = await api_client.post("/deals", content=b"not json")
    assert resp.status_code == 400
    assert resp.json()["error"] == "Bad request"
    assert forwarder.calls[0].body == b"not json"


async def test_update_deal_by_path(api_client, forwarder) -> None:
    body = b'{"title":"Updated Deal Title"}'
    resp = await api_client.put("/deals/42", content=body)
    assert resp.status_code == 200

    call = forwarder.calls[0]
    assert call.method == "PUT"
    assert call.url == "https://acme.pipedrive.com/api/v1/deals/42?api_token=test-token"
    assert call.body == body


async def test_update_deal_rejects_non_numeric_path_id(api_client, forwarder) -> None:
    resp = await api_client.put("/deals/abc", content=b"{}")
    assert resp.status_code == 422
    assert forwarder.calls == []


async def test_update_deal_by_body_moves_id_into_url(api_client, forwarder) -> None:
    resp = await api_client.put("/deals", content=json.dumps({"id": 42, "title": "X"}))
    assert resp.status_code == 200

    call = forwarder.calls[0]
    assert call.url == "https://acme.pipedrive.com/api/v1/deals/42?api_token=test-token"
    assert call.body == b'{"title":"X"}'


async def test_update_deal_by_body_without_id_is_client_error(api_client, forwarder) -> None:
    resp = await api_client.put("/deals", content=json.dumps({"title": "X"}))
    assert resp.status_code == 400
    assert "id" in resp.json()["detail"]
    assert forwarder.calls == []


async def test_update_deal_by_body_with_invalid_json_is_client_error(api_client, forwarder) -> None:
    resp = await api_client.put("/deals", content=b"{not json")
    assert resp.status_code == 400
    assert forwarder.calls == []


async def test_update_deal_by_body_too_deeply_nested_is_client_error(api_client, forwarder) -> None:
    resp = await api_client.put("/deals", content=b"[" * 100000)
    assert resp.status_code == 400
    assert forwarder.calls == []


@pytest.mark.skipif(not hasattr(sys, "get_int_max_str_digits"), reason="no integer digit limit")
async def test_update_deal_by_body_with_oversized_number_is_client_error(api_client, forwarder) -> None:
    body = b'{"id": 1, "value": ' + b"9" * 5000 + b"}"
    resp = await api_client.put("/deals", content=body)
    assert resp.status_code == 400
    assert forwarder.calls == []


async def test_upstream_errors_are_relayed(api_client, forwarder) -> None:
    forwarder.response = UpstreamResponse(
        status_code=404,
        content=b'{"success":false,"error":"Deal not found"}',
        headers={"content-type": "text/plain"},
    )
    resp = await api_client.put("/deals/7", content=b"{}")
    assert resp.status_code == 404
    assert resp.content == b'{"success":false,"error":"Deal not found"}'
    assert resp.headers["content-type"] == "application/json"


async def test_response_content_type_is_always_json(api_client, forwarder) -> None:
    forwarder.response = UpstreamResponse(status_code=200, content=b"ok", headers={"content-type": "text/html"})
    resp = await api_client.get("/deals")
    assert resp.headers["content-type"] == "application/json"
    assert resp.content == b"ok"


async def test_transport_errors_become_500(api_client, forwarder) -> None:
    forwarder.fail_with_timeout()

    listed = await api_client.get("/deals")
    created = await api_client.post("/deals", content=b"{}")
    updated = await api_client.put("/deals/1", content=b"{}")
    updated_by_body = await api_client.put("/deals", content=b'{"id": 1}')

    for resp in (listed, created, updated, updated_by_body):
        assert resp.status_code == 500
        assert resp.json()["detail"] == "timed out"
    assert len(forwarder.calls) == 4


async def test_client_error_is_distinguishable_from_transport_error(api_client, forwarder) -> None:
    forwarder.fail_with_timeout()
    client_error = await api_client.put("/deals", content=b'{"id": "abc"}')
    transport_error = await api_client.put("/deals", content=b'{"id": 3}')
    assert client_error.status_code == 400
    assert transport_error.status_code == 500


async def test_health(api_client) -> None:
    resp = await api_client.get("/health")
    assert resp.status_code == 200
    assert resp.json() == {"status": "ok"}


async def test_openapi_documents_deal_bodies(api_client) -> None:
    resp = await api_client.get("/openapi.json")
    assert resp.status_code == 200
    paths = resp.json()["paths"]
    create_schema = paths["/deals"]["post"]["requestBody"]["content"]["application/json"]["schema"]
    assert "title" in create_schema["properties"]
    assert paths["/deals"]["put"]["deprecated"] is True
    assert "put" in paths["/deals/{deal_id}"]
