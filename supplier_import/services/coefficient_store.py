from __future__ import annotations

import logging
from decimal import Decimal
from typing import List, Optional

from sqlalchemy import and_, case, func, or_, select
from sqlalchemy.exc import SQLAlchemyError

from supplier_import.business.coefficients import Coefficient
from supplier_import.business.errors import PersistenceFailure
from supplier_import.models import SupplierCoefficient

logger = logging.getLogger(__name__)


def _is_wildcard(column):
    # NULL и пустая строка (старые записи): wildcard
    return or_(column.is_(None), column == "")


def _attr_condition(column, requested: Optional[str]):
    if requested is None:
        return _is_wildcard(column)
    return or_(_is_wildcard(column), func.lower(column) == requested.lower())


def _to_domain(row: SupplierCoefficient) -> Coefficient:
    return Coefficient(
        supplier=row.supplier,
        type=row.type or None,
        brand=row.brand or None,
        multiplier=Decimal(row.coefficient),
        id=row.id,
    )


class CoefficientStore:
    def __init__(self, session_factory=None):
        if session_factory is None:
            from supplier_import.database import AsyncSessionLocal
            session_factory = AsyncSessionLocal
        self._session_factory = session_factory

    async def lookup(self, supplier: str, type: Optional[str], brand: Optional[str]) -> Optional[Decimal]:
        """
        Самый специфичный коэффициент: тип+бренд > тип > бренд > wildcard.
        :return: множитель или None, если ничего не подошло
        """
        t = SupplierCoefficient
        has_type = ~_is_wildcard(t.type)
        has_brand = ~_is_wildcard(t.brand)
        rank = case(
            (and_(has_type, has_brand), 1),
            (has_type, 2),
            (has_brand, 3),
            else_=4,
        )
        stmt = (
            select(t.coefficient)
            .where(
                func.lower(t.supplier) == (supplier or "").lower(),
                _attr_condition(t.type, (type or "").strip() or None),
                _attr_condition(t.brand, (brand or "").strip() or None),
            )
            .order_by(rank, t.id)
            .limit(1)
        )
        async with self._session_factory() as session:
            value = (await session.execute(stmt)).scalar_one_or_none()
        return Decimal(value) if value is not None else None

    async def list_all(self) -> List[Coefficient]:
        t = SupplierCoefficient
        async with self._session_factory() as session:
            rows = (await session.execute(select(t).order_by(t.supplier, t.type, t.brand))).scalars().all()
        return [_to_domain(r) for r in rows]

    async def add(self, supplier: str, type: Optional[str], brand: Optional[str], coefficient: Decimal) -> Coefficient:
        row = SupplierCoefficient(
            supplier=supplier.strip(),
            type=(type or "").strip() or None,
            brand=(brand or "").strip() or None,
            coefficient=Decimal(coefficient),
        )
        try:
            async with self._session_factory() as session:
                async with session.begin():
                    session.add(row)
                    await session.flush()
                    created = _to_domain(row)
        except SQLAlchemyError as e:
            raise PersistenceFailure(f"Не удалось сохранить коэффициент: {e}") from e
        logger.info("Добавлен коэффициент %s/%s/%s = %s", created.supplier, created.type, created.brand, created.multiplier)
        return created
