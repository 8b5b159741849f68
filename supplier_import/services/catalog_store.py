from __future__ import annotations

import logging
from decimal import Decimal
from typing import Dict, List, Mapping, Optional, Sequence

from sqlalchemy import and_, delete, insert, select, update
from sqlalchemy.exc import SQLAlchemyError

from supplier_import.business.errors import PersistenceFailure
from supplier_import.business.offers import OfferRow, StockDecision
from supplier_import.business.records import ProductSnapshot
from supplier_import.models import Product, ProductAttribute, ProductOffer

logger = logging.getLogger(__name__)


class CatalogStore:
    """
    Узкий интерфейс к каталогу товаров для импорта поставщиков.
    Каждая пакетная запись выполняется в одной транзакции.
    """

    def __init__(self, session_factory=None):
        if session_factory is None:
            from supplier_import.database import AsyncSessionLocal
            session_factory = AsyncSessionLocal
        self._session_factory = session_factory

    async def resolve_skus(self, skus: Sequence[str]) -> Dict[str, int]:
        """
        SKU -> product_id одним запросом.
        :param skus: список SKU (пустые отбрасываются)
        :return: словарь только для найденных SKU
        """
        clean = list(dict.fromkeys(s.strip() for s in skus if s and s.strip()))
        if not clean:
            return {}
        async with self._session_factory() as session:
            rows = await session.execute(select(Product.sku, Product.id).where(Product.sku.in_(clean)))
            return {sku: int(pid) for sku, pid in rows.all()}

    async def load_product_snapshot(self, product_ids: Sequence[int]) -> Dict[int, ProductSnapshot]:
        ids = list(dict.fromkeys(int(p) for p in product_ids))
        if not ids:
            return {}
        async with self._session_factory() as session:
            products = (await session.execute(select(Product).where(Product.id.in_(ids)))).scalars().all()
            offers = (
                await session.execute(
                    select(ProductOffer)
                    .where(ProductOffer.product_id.in_(ids))
                    .order_by(ProductOffer.product_id, ProductOffer.position)
                )
            ).scalars().all()

        snapshots: Dict[int, ProductSnapshot] = {
            int(p.id): ProductSnapshot(
                product_id=int(p.id),
                sku=p.sku,
                local_stock_quantity=max(int(p.local_stock_quantity or 0), 0),
                price=Decimal(p.price) if p.price is not None else Decimal("0"),
                type=p.type or None,
                brand=p.brand or None,
                external_system_id=p.external_system_id or None,
            )
            for p in products
        }
        for o in offers:
            snap = snapshots.get(int(o.product_id))
            if snap is not None:
                snap.offers.append(OfferRow(int(o.supplier_id), int(o.quantity), Decimal(o.price)))
        return snapshots

    async def write_offers(self, offers: Mapping[int, List[OfferRow]]) -> None:
        """Полная коллекция офферов товара перезаписывается целиком (порядок сохраняется)."""
        if not offers:
            return
        rows = [
            {
                "product_id": pid,
                "supplier_id": o.supplier_id,
                "position": pos,
                "quantity": max(int(o.quantity), 0),
                "price": o.price,
            }
            for pid, collection in offers.items()
            for pos, o in enumerate(collection)
        ]
        try:
            async with self._session_factory() as session:
                async with session.begin():
                    await session.execute(delete(ProductOffer).where(ProductOffer.product_id.in_(list(offers))))
                    if rows:
                        await session.execute(insert(ProductOffer), rows)
        except SQLAlchemyError as e:
            logger.error("Ошибка записи офферов (%s товаров): %s", len(offers), e)
            raise PersistenceFailure(f"write_offers failed: {e}") from e

    async def write_stock_status(self, statuses: Mapping[int, StockDecision]) -> None:
        if not statuses:
            return
        params = [
            {
                "id": pid,
                "stock_status": d.status.value,
                "best_offer_quantity": d.best_quantity,
                "best_offer_price": d.best_price,
            }
            for pid, d in statuses.items()
        ]
        try:
            async with self._session_factory() as session:
                async with session.begin():
                    await session.execute(update(Product), params)
        except SQLAlchemyError as e:
            logger.error("Ошибка записи stock_status (%s товаров): %s", len(statuses), e)
            raise PersistenceFailure(f"write_stock_status failed: {e}") from e

    async def write_supplier_extra_fields(self, fields: Mapping[int, Mapping[str, str]]) -> None:
        items = {pid: dict(f) for pid, f in fields.items() if f}
        if not items:
            return
        try:
            async with self._session_factory() as session:
                async with session.begin():
                    for pid, values in items.items():
                        await session.execute(
                            delete(ProductAttribute).where(
                                and_(ProductAttribute.product_id == pid, ProductAttribute.key.in_(list(values)))
                            )
                        )
                    await session.execute(
                        insert(ProductAttribute),
                        [
                            {"product_id": pid, "key": key, "value": value}
                            for pid, values in items.items()
                            for key, value in values.items()
                        ],
                    )
        except SQLAlchemyError as e:
            logger.error("Ошибка записи доп. полей (%s товаров): %s", len(items), e)
            raise PersistenceFailure(f"write_supplier_extra_fields failed: {e}") from e

    async def get_extra_fields(self, product_id: int) -> Dict[str, Optional[str]]:
        async with self._session_factory() as session:
            rows = await session.execute(
                select(ProductAttribute.key, ProductAttribute.value).where(ProductAttribute.product_id == product_id)
            )
            return {k: v for k, v in rows.all()}
