from __future__ import annotations

from decimal import Decimal
from unittest.mock import AsyncMock

import pytest

from supplier_import.business.errors import SyncFailure
from supplier_import.business.offers import OfferRow
from supplier_import.business.supplier_registry import SupplierRegistry
from supplier_import.business.sync_batcher import RateLimiter, SyncBatcher, build_product_payload

from fakes import FakeCatalog, FakeClock, product


def _batcher(catalog, client, *, batch_size=100, limiter=None) -> SyncBatcher:
    clock = FakeClock()
    return SyncBatcher(
        catalog,
        client,
        SupplierRegistry(),
        limiter or RateLimiter(30, 0, clock=clock, sleep=clock.sleep),
        batch_size=batch_size,
    )


@pytest.mark.asyncio
async def test_fourth_call_waits_for_the_minute_window() -> None:
    clock = FakeClock()
    limiter = RateLimiter(max_calls=3, min_delay=0, clock=clock, sleep=clock.sleep)

    for t in (0, 10, 20):
        clock.now = t
        await limiter.acquire()
    clock.now = 30
    await limiter.acquire()

    assert clock.now >= 60
    assert clock.sleeps == [30]
    assert limiter.recent_calls == [10, 20, 60]


@pytest.mark.asyncio
async def test_min_delay_between_consecutive_calls() -> None:
    clock = FakeClock()
    limiter = RateLimiter(max_calls=30, min_delay=2.0, clock=clock, sleep=clock.sleep)

    await limiter.acquire()
    clock.now = 0.5
    await limiter.acquire()

    assert clock.sleeps == [1.5]
    assert clock.now == 2.0


@pytest.mark.asyncio
async def test_old_calls_fall_out_of_the_window() -> None:
    clock = FakeClock()
    limiter = RateLimiter(max_calls=2, min_delay=0, clock=clock, sleep=clock.sleep)

    await limiter.acquire()
    clock.now = 1
    await limiter.acquire()
    clock.now = 100
    await limiter.acquire()

    assert clock.sleeps == []


def test_payload_lists_offers_with_supplier_identity() -> None:
    item = product(5, "A", external_id="ext-5", offers=[OfferRow(14, 6, Decimal("124.20"))])

    payload = build_product_payload(item, SupplierRegistry())

    assert payload == {
        "external_id": "ext-5",
        "offers": [
            {
                "supplier_id": 14,
                "supplier_name": "DobrePneu.cz",
                "supplier_uid": "69835a7f1657c0b4f0d1674c",
                "quantity": 6,
                "price": 124.2,
            }
        ],
    }


@pytest.mark.asyncio
async def test_products_without_external_id_are_skipped_without_call() -> None:
    catalog = FakeCatalog([product(1, "A"), product(2, "B", external_id="  ")])
    client = AsyncMock()

    stats = await _batcher(catalog, client).sync([1, 2, 3])

    assert (stats.synced, stats.errors, stats.skipped) == (0, 0, 3)
    client.push_batch.assert_not_called()


@pytest.mark.asyncio
async def test_batches_are_split_and_deduplicated() -> None:
    catalog = FakeCatalog([product(i, f"S{i}", external_id=f"e{i}") for i in range(1, 6)])
    client = AsyncMock()

    stats = await _batcher(catalog, client, batch_size=2).sync([1, 2, 2, 3, 4, 5, 1])

    assert stats.synced == 5
    sent = [[p["external_id"] for p in call.args[0]] for call in client.push_batch.await_args_list]
    assert sent == [["e1", "e2"], ["e3", "e4"], ["e5"]]


@pytest.mark.asyncio
async def test_failed_batch_counts_every_product_as_error() -> None:
    catalog = FakeCatalog([product(i, f"S{i}", external_id=f"e{i}") for i in range(1, 4)])
    catalog.products[3].external_system_id = None
    client = AsyncMock()
    client.push_batch.side_effect = [SyncFailure("503")]

    stats = await _batcher(catalog, client, batch_size=3).sync([1, 2, 3])

    assert (stats.synced, stats.errors, stats.skipped) == (0, 2, 1)


@pytest.mark.asyncio
async def test_rate_limiter_is_consulted_before_each_call() -> None:
    catalog = FakeCatalog([product(i, f"S{i}", external_id=f"e{i}") for i in range(1, 4)])
    limiter = AsyncMock(spec=RateLimiter)

    await _batcher(catalog, AsyncMock(), batch_size=1, limiter=limiter).sync([1, 2, 3])

    assert limiter.acquire.await_count == 3
