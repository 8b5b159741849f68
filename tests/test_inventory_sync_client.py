from __future__ import annotations

import json

import httpx
import pytest

from supplier_import.business.errors import SyncFailure
from supplier_import.services.inventory_sync_client import InventorySyncClient

PRODUCTS = [{"external_id": "ext-1", "offers": []}]


def _client(handler) -> InventorySyncClient:
    return InventorySyncClient("https://inventory.example/", "secret", transport=httpx.MockTransport(handler))


@pytest.mark.asyncio
async def test_batch_is_posted_with_api_key() -> None:
    seen = []

    def handler(request: httpx.Request) -> httpx.Response:
        seen.append(request)
        return httpx.Response(200, json={"status": "ok"})

    await _client(handler).push_batch(PRODUCTS)

    request = seen[0]
    assert request.method == "POST"
    assert str(request.url) == "https://inventory.example/api/products/batch"
    assert request.headers["X-Api-Key"] == "secret"
    assert json.loads(request.content) == {"products": PRODUCTS}


@pytest.mark.asyncio
async def test_http_error_raises_sync_failure() -> None:
    with pytest.raises(SyncFailure):
        await _client(lambda request: httpx.Response(503)).push_batch(PRODUCTS)


@pytest.mark.asyncio
async def test_error_payload_raises_sync_failure() -> None:
    with pytest.raises(SyncFailure):
        await _client(lambda request: httpx.Response(200, json={"status": "error", "message": "bad"})).push_batch(PRODUCTS)
    with pytest.raises(SyncFailure):
        await _client(lambda request: httpx.Response(200, json={"success": False})).push_batch(PRODUCTS)


@pytest.mark.asyncio
async def test_missing_base_url_raises_sync_failure() -> None:
    with pytest.raises(SyncFailure):
        await InventorySyncClient("", "secret").push_batch(PRODUCTS)
