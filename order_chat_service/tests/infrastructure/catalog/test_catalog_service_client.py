# Unit Tests for the Catalog Service Client
import httpx
import pytest

from order_chat_service.app.service.exceptions import CatalogUnavailableError
from order_chat_service.infrastructure.catalog.catalog_service_client import HttpCatalogClient

BASE_URL = "http://fake-catalog.test/api/v1/"


def _client(handler):
    return HttpCatalogClient(httpx.AsyncClient(transport=httpx.MockTransport(handler)), BASE_URL)


@pytest.mark.asyncio
async def test_get_service_unwraps_data_envelope():
    requested = []

    def handler(request: httpx.Request):
        requested.append(str(request.url))
        return httpx.Response(200, json={"success": True, "data": {
            "id": "svc-1",
            "title": "Passport renewal",
            "is_active": True,
            "additional_fields": {"category": {"label": "Category", "type": "select", "options": ["normal", "tatkal"]}},
            "price": 1500,
        }})

    service = await _client(handler).get_service("svc-1")

    assert requested == ["http://fake-catalog.test/api/v1/products/svc-1"]
    assert service.title == "Passport renewal"
    assert service.additional_fields["category"].options == ["normal", "tatkal"]


@pytest.mark.asyncio
async def test_get_service_accepts_bare_product():
    service = await _client(lambda request: httpx.Response(200, json={"id": "svc-2"})).get_service("svc-2")
    assert service.id == "svc-2"
    assert service.additional_fields == {}


@pytest.mark.asyncio
async def test_get_service_not_found_returns_none():
    assert await _client(lambda request: httpx.Response(404, json={"error": "nope"})).get_service("svc-9") is None


@pytest.mark.asyncio
@pytest.mark.parametrize("response", [
    httpx.Response(503, text="maintenance"),
    httpx.Response(200, text="<html>not json</html>"),
    httpx.Response(200, json={"id": "svc-1", "additional_fields": {"x": {"type": "text"}}}),
])
async def test_bad_responses_become_catalog_unavailable(response):
    with pytest.raises(CatalogUnavailableError):
        await _client(lambda request: response).get_service("svc-1")


@pytest.mark.asyncio
async def test_network_failure_becomes_catalog_unavailable():
    def handler(request: httpx.Request):
        raise httpx.ConnectError("connection refused", request=request)

    with pytest.raises(CatalogUnavailableError) as exc_info:
        await _client(handler).get_service("svc-1")
    assert exc_info.value.public_message == "Service catalog unavailable"


@pytest.mark.asyncio
async def test_missing_base_url_is_reported():
    client = HttpCatalogClient(httpx.AsyncClient(), base_url=None)
    client.base_url = ""
    with pytest.raises(CatalogUnavailableError):
        await client.get_service("svc-1")
