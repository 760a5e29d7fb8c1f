"""Tests for the ticketing provider read proxy."""

import httpx
import pytest
from factories import make_tenant

from helpdesk.errors import ExternalServiceError
from helpdesk.provider import ProviderClient
from helpdesk.tenancy.context import TenantSnapshot

TENANT = TenantSnapshot.from_orm(make_tenant())


def _client(handler: httpx.MockTransport) -> ProviderClient:
    return ProviderClient(httpx.AsyncClient(transport=handler))


async def test_list_articles_sends_tenant_credentials() -> None:
    seen: list[httpx.Request] = []

    def handler(request: httpx.Request) -> httpx.Response:
        seen.append(request)
        return httpx.Response(200, json=[{"id": 1, "subject": "VPN setup"}])

    articles = await _client(httpx.MockTransport(handler)).list_articles(TENANT, 7)

    assert articles == [{"id": 1, "subject": "VPN setup"}]
    request = seen[0]
    assert str(request.url) == (
        "https://helpdesk.acme.test/api/kb.articles.by.category?category_id=7"
    )
    assert request.headers["Authorization"].startswith("Basic ")


async def test_mapping_payload_flattened() -> None:
    transport = httpx.MockTransport(
        lambda _r: httpx.Response(200, json={"1": {"id": 1}, "2": {"id": 2}})
    )
    articles = await _client(transport).list_articles(TENANT, 7)
    assert articles == [{"id": 1}, {"id": 2}]


@pytest.mark.parametrize(
    "response",
    [
        httpx.Response(500, text="boom"),
        httpx.Response(401, text="nope"),
        httpx.Response(200, text="<html>not json</html>"),
        httpx.Response(200, json="just a string"),
    ],
)
async def test_bad_responses_are_external_errors(response: httpx.Response) -> None:
    transport = httpx.MockTransport(lambda _r: response)
    with pytest.raises(ExternalServiceError):
        await _client(transport).list_articles(TENANT, 7)


async def test_transport_failure_is_external_error() -> None:
    def handler(request: httpx.Request) -> httpx.Response:
        raise httpx.ConnectError("refused", request=request)

    with pytest.raises(ExternalServiceError):
        await _client(httpx.MockTransport(handler)).list_articles(TENANT, 7)


@pytest.mark.parametrize(
    ("method", "path"),
    [
        ("list_categories", "/api/categories"),
        ("list_statuses", "/api/incident.attributes.status"),
    ],
)
async def test_reference_lists(method: str, path: str) -> None:
    seen: list[httpx.Request] = []

    def handler(request: httpx.Request) -> httpx.Response:
        seen.append(request)
        return httpx.Response(200, json={"1": {"id": 1, "name": "Open"}})

    items = await getattr(_client(httpx.MockTransport(handler)), method)(TENANT)

    assert items == [{"id": 1, "name": "Open"}]
    assert seen[0].url.path == path
    assert seen[0].url.query == b""
    assert seen[0].headers["Authorization"].startswith("Basic ")


async def test_ticket_meta_combines_priorities_and_types() -> None:
    def handler(request: httpx.Request) -> httpx.Response:
        if request.url.path.endswith("priority"):
            return httpx.Response(200, json=[{"id": 1, "name": "High"}])
        return httpx.Response(200, json=[{"id": 2, "name": "Incident"}])

    meta = await _client(httpx.MockTransport(handler)).get_ticket_meta(TENANT)

    assert meta == {
        "priorities": [{"id": 1, "name": "High"}],
        "types": [{"id": 2, "name": "Incident"}],
    }


async def test_ticket_meta_fails_if_either_call_fails() -> None:
    def handler(request: httpx.Request) -> httpx.Response:
        if request.url.path.endswith("type"):
            return httpx.Response(503, text="down")
        return httpx.Response(200, json=[])

    with pytest.raises(ExternalServiceError):
        await _client(httpx.MockTransport(handler)).get_ticket_meta(TENANT)
