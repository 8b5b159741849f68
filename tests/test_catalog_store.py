from __future__ import annotations

from decimal import Decimal

import pytest
from sqlalchemy import select
from sqlalchemy.ext.asyncio import AsyncSession, create_async_engine
from sqlalchemy.orm import sessionmaker

from supplier_import.business.offers import OfferRow, StockStatus, derive_stock_status
from supplier_import.models import Base, Product, SupplierCoefficient
from supplier_import.services.catalog_store import CatalogStore
from supplier_import.services.coefficient_store import CoefficientStore


async def _session_factory():
    engine = create_async_engine("sqlite+aiosqlite:///:memory:")
    async with engine.begin() as conn:
        await conn.run_sync(Base.metadata.create_all)
    return engine, sessionmaker(engine, class_=AsyncSession, expire_on_commit=False)


async def _seed(factory, *objects) -> None:
    async with factory() as session:
        async with session.begin():
            session.add_all(list(objects))


@pytest.mark.asyncio
async def test_offers_round_trip_and_stock_status_write() -> None:
    engine, factory = await _session_factory()
    try:
        await _seed(
            factory,
            Product(id=1, sku="A", local_stock_quantity=0, price=Decimal("50.00"), type="tyre", brand="Nokian",
                    external_system_id="ext-1"),
            Product(id=2, sku="B", local_stock_quantity=3),
        )
        store = CatalogStore(factory)

        assert await store.resolve_skus(["A", " B ", "", "missing"]) == {"A": 1, "B": 2}

        offers = [OfferRow(5, 8, Decimal("40.00")), OfferRow(2, 4, Decimal("35.50"))]
        await store.write_offers({1: offers})
        await store.write_offers({1: [offers[0], OfferRow(2, 9, Decimal("30.00"))]})

        snapshot = (await store.load_product_snapshot([1, 2]))[1]
        assert [o.supplier_id for o in snapshot.offers] == [5, 2]
        assert snapshot.offers[1] == OfferRow(2, 9, Decimal("30.00"))
        assert (snapshot.type, snapshot.brand, snapshot.external_system_id) == ("tyre", "Nokian", "ext-1")
        assert snapshot.price == Decimal("50.00")

        await store.write_stock_status({1: derive_stock_status(0, snapshot.offers)})
        async with factory() as session:
            row = (await session.execute(select(Product).where(Product.id == 1))).scalar_one()
        assert row.stock_status == StockStatus.BACKORDER.value
        assert row.best_offer_quantity == 9
        assert Decimal(row.best_offer_price) == Decimal("30.00")
    finally:
        await engine.dispose()


@pytest.mark.asyncio
async def test_extra_fields_upsert_per_product() -> None:
    engine, factory = await _session_factory()
    try:
        await _seed(factory, Product(id=1, sku="A"), Product(id=2, sku="B"))
        store = CatalogStore(factory)

        await store.write_supplier_extra_fields({1: {"eprel": "111", "dot": "2319"}, 2: {"eprel": "222"}})
        await store.write_supplier_extra_fields({1: {"eprel": "333"}})

        assert await store.get_extra_fields(1) == {"eprel": "333", "dot": "2319"}
        assert await store.get_extra_fields(2) == {"eprel": "222"}
    finally:
        await engine.dispose()


@pytest.mark.asyncio
async def test_coefficient_lookup_prefers_most_specific_row() -> None:
    engine, factory = await _session_factory()
    try:
        await _seed(
            factory,
            SupplierCoefficient(supplier="A", type="tyre", brand=None, coefficient=Decimal("1.1")),
            SupplierCoefficient(supplier="A", type="", brand="", coefficient=Decimal("1.0")),
            SupplierCoefficient(supplier="A", type="Tyre", brand="Nokian", coefficient=Decimal("1.3")),
        )
        store = CoefficientStore(factory)

        assert await store.lookup("a", "tyre", "brandX") == Decimal("1.1")
        assert await store.lookup("A", "TYRE", "nokian") == Decimal("1.3")
        assert await store.lookup("A", "wheel", None) == Decimal("1.0")
        assert await store.lookup("B", None, None) is None

        listed = await store.list_all()
        assert len(listed) == 3
        assert all(c.supplier == "A" for c in listed)
    finally:
        await engine.dispose()


@pytest.mark.asyncio
async def test_coefficient_add_normalises_empty_to_wildcard() -> None:
    engine, factory = await _session_factory()
    try:
        store = CoefficientStore(factory)

        created = await store.add(" GPD ", "", "Michelin", Decimal("1.25"))

        assert created.id is not None
        assert (created.supplier, created.type, created.brand) == ("GPD", None, "Michelin")
        assert await store.lookup("gpd", None, "michelin") == Decimal("1.25")
    finally:
        await engine.dispose()
