from __future__ import annotations

import json

import httpx
import pytest
import respx

from khural_admin.domain.exceptions.remote import (
    RemoteForbidden,
    RemoteNotFound,
    RemoteUnavailable,
    RemoteValidationError,
)
from khural_admin.infrastructure.external_apis.khural.client import KhuralApiClient
from khural_admin.infrastructure.logging.logger import operation_context
from khural_admin.infrastructure.resilience.retry import RetryPolicy

BASE = "http://api.test/v1"
FAST_RETRY = RetryPolicy(total=2, base=0.0, cap=0.0, jitter=False)


def _client(http: httpx.AsyncClient, **kwargs) -> KhuralApiClient:
    return KhuralApiClient(
        base_url=f"{BASE}/", token="secret", retry_policy=FAST_RETRY, http=http, **kwargs
    )


@pytest.mark.asyncio
@respx.mock
async def test_list_unwraps_data_envelope_and_sends_auth() -> None:
    route = respx.get(f"{BASE}/persons").mock(
        return_value=httpx.Response(200, json={"data": [{"id": 1, "name": "A"}, "junk"]})
    )
    async with httpx.AsyncClient() as http:
        rows = await _client(http).list("persons")

    assert rows == [{"id": 1, "name": "A"}]
    request = route.calls.last.request
    assert request.headers["Authorization"] == "Bearer secret"
    assert request.headers["Accept"] == "application/json"


@pytest.mark.asyncio
@respx.mock
async def test_list_accepts_items_envelope_and_bare_lists() -> None:
    respx.get(f"{BASE}/news").mock(
        return_value=httpx.Response(200, json={"items": [{"id": "n1"}], "total": 1})
    )
    respx.get(f"{BASE}/pages").mock(return_value=httpx.Response(200, json=[{"id": "p1"}]))
    async with httpx.AsyncClient() as http:
        client = _client(http)
        assert await client.list("news") == [{"id": "n1"}]
        assert await client.list("pages") == [{"id": "p1"}]


@pytest.mark.asyncio
@respx.mock
async def test_list_rejects_non_list_payload() -> None:
    respx.get(f"{BASE}/news").mock(return_value=httpx.Response(200, json={"data": {"id": 1}}))
    async with httpx.AsyncClient() as http:
        with pytest.raises(RemoteValidationError):
            await _client(http).list("news")


@pytest.mark.asyncio
@respx.mock
async def test_create_posts_body_and_is_not_retried() -> None:
    route = respx.post(f"{BASE}/committees").mock(return_value=httpx.Response(503))
    async with httpx.AsyncClient() as http:
        with pytest.raises(RemoteUnavailable):
            await _client(http).create("committees", {"title": "Budget"})
    assert route.call_count == 1


@pytest.mark.asyncio
@respx.mock
async def test_create_returns_unwrapped_entity() -> None:
    route = respx.post(f"{BASE}/committees").mock(
        return_value=httpx.Response(201, json={"data": {"id": 55, "title": "Budget"}})
    )
    async with httpx.AsyncClient() as http:
        created = await _client(http).create("committees", {"title": "Budget"})
    assert created == {"id": 55, "title": "Budget"}
    assert json.loads(route.calls.last.request.content) == {"title": "Budget"}


@pytest.mark.asyncio
@pytest.mark.parametrize(
    "response",
    [httpx.Response(201), httpx.Response(204), httpx.Response(201, text="Created")],
)
async def test_create_accepted_without_entity_body_returns_empty_mapping(
    response: httpx.Response,
) -> None:
    with respx.mock:
        route = respx.post(f"{BASE}/committees").mock(return_value=response)
        async with httpx.AsyncClient() as http:
            assert await _client(http).create("committees", {"title": "Budget"}) == {}
    assert route.call_count == 1


@pytest.mark.asyncio
@respx.mock
async def test_update_retries_transient_failures() -> None:
    route = respx.patch(f"{BASE}/persons/7").mock(
        side_effect=[
            httpx.Response(502),
            httpx.ConnectError("reset"),
            httpx.Response(200, json={"id": 7, "name": "B"}),
        ]
    )
    async with httpx.AsyncClient() as http:
        updated = await _client(http).update("persons", "7", {"name": "B"})
    assert updated == {"id": 7, "name": "B"}
    assert route.call_count == 3


@pytest.mark.asyncio
@respx.mock
async def test_update_with_empty_body_returns_empty_mapping() -> None:
    respx.patch(f"{BASE}/persons/7").mock(return_value=httpx.Response(204))
    async with httpx.AsyncClient() as http:
        assert await _client(http).update("persons", "7", {"name": "B"}) == {}


@pytest.mark.asyncio
@respx.mock
async def test_remove_sends_delete_and_request_id() -> None:
    route = respx.delete(f"{BASE}/news/3").mock(return_value=httpx.Response(204))
    async with httpx.AsyncClient() as http:
        with operation_context("op-123"):
            assert await _client(http).remove("news", "3") is None
    assert route.calls.last.request.headers["X-Request-ID"] == "op-123"


@pytest.mark.asyncio
@pytest.mark.parametrize(
    ("status", "exc_type"),
    [
        (400, RemoteValidationError),
        (422, RemoteValidationError),
        (401, RemoteForbidden),
        (403, RemoteForbidden),
        (404, RemoteNotFound),
        (429, RemoteUnavailable),
        (500, RemoteUnavailable),
    ],
)
async def test_status_mapping(status: int, exc_type: type[Exception]) -> None:
    with respx.mock:
        respx.delete(f"{BASE}/news/3").mock(
            return_value=httpx.Response(status, json={"message": "nope"})
        )
        async with httpx.AsyncClient() as http:
            with pytest.raises(exc_type) as ei:
                await _client(http).remove("news", "3")
    assert ei.value.details["status"] == status
    assert ei.value.details["message"] == "nope"


@pytest.mark.asyncio
@respx.mock
async def test_non_retryable_errors_are_attempted_once() -> None:
    route = respx.patch(f"{BASE}/news/3").mock(return_value=httpx.Response(422, json={}))
    async with httpx.AsyncClient() as http:
        with pytest.raises(RemoteValidationError):
            await _client(http).update("news", "3", {"title": ""})
    assert route.call_count == 1


@pytest.mark.asyncio
@respx.mock
async def test_timeout_after_retries_is_unavailable() -> None:
    route = respx.get(f"{BASE}/news").mock(side_effect=httpx.ReadTimeout("slow"))
    async with httpx.AsyncClient() as http:
        with pytest.raises(RemoteUnavailable) as ei:
            await _client(http).list("news")
    assert route.call_count == 3
    assert ei.value.kind.value == "network"


@pytest.mark.asyncio
@respx.mock
async def test_non_json_success_body_is_a_validation_error() -> None:
    respx.get(f"{BASE}/news").mock(return_value=httpx.Response(200, text="<html>"))
    async with httpx.AsyncClient() as http:
        with pytest.raises(RemoteValidationError):
            await _client(http).list("news")


@pytest.mark.asyncio
async def test_owned_client_is_closed_and_shared_client_is_not() -> None:
    owned = KhuralApiClient(base_url=BASE)
    await owned.aclose()
    assert owned._client.is_closed

    async with httpx.AsyncClient() as http:
        shared = KhuralApiClient(base_url=BASE, http=http)
        await shared.aclose()
        assert not http.is_closed
    assert shared.base_url == BASE
