from __future__ import annotations

import logging
import time
from dataclasses import dataclass
from decimal import Decimal, ROUND_HALF_UP
from typing import Callable, Dict, Iterable, List, Optional, Protocol, Tuple

logger = logging.getLogger(__name__)

DEFAULT_COEFFICIENT = Decimal("1.0")
_MONEY_Q = Decimal("0.01")
# срок жизни записи кэша коэффициентов, c
CACHE_TTL_SECONDS = 3600

__all__ = [
    "Coefficient",
    "CoefficientSource",
    "CoefficientResolver",
    "specificity",
    "matches",
    "pick_coefficient",
    "round_money",
    "calculate_price",
]


@dataclass(frozen=True)
class Coefficient:
    """type/brand = None означает «любой» (wildcard)."""
    supplier: str
    type: Optional[str]
    brand: Optional[str]
    multiplier: Decimal
    id: Optional[int] = None


class CoefficientSource(Protocol):
    async def lookup(self, supplier: str, type: Optional[str], brand: Optional[str]) -> Optional[Decimal]: ...

    async def list_all(self) -> List[Coefficient]: ...


def _norm(value: Optional[str]) -> Optional[str]:
    if value is None:
        return None
    value = value.strip()
    return value or None


def _attr_matches(stored: Optional[str], requested: Optional[str]) -> bool:
    # wildcard в хранилище подходит к любому запросу,
    # пустой запрос подходит только к wildcard
    if stored is None:
        return True
    if requested is None:
        return False
    return stored.lower() == requested.lower()


def matches(coef: Coefficient, supplier: str, type: Optional[str], brand: Optional[str]) -> bool:
    if coef.supplier.lower() != (supplier or "").lower():
        return False
    return _attr_matches(_norm(coef.type), _norm(type)) and _attr_matches(_norm(coef.brand), _norm(brand))


def specificity(coef: Coefficient) -> int:
    """1 = тип и бренд, 2 = только тип, 3 = только бренд, 4 = полный wildcard."""
    has_type = _norm(coef.type) is not None
    has_brand = _norm(coef.brand) is not None
    if has_type and has_brand:
        return 1
    if has_type:
        return 2
    if has_brand:
        return 3
    return 4


def pick_coefficient(
    rows: Iterable[Coefficient],
    supplier: str,
    type: Optional[str],
    brand: Optional[str],
) -> Optional[Coefficient]:
    best: Optional[Coefficient] = None
    for row in rows:
        if not matches(row, supplier, type, brand):
            continue
        if best is None or specificity(row) < specificity(best):
            best = row
    return best


def round_money(x: Decimal) -> Decimal:
    return Decimal(x).quantize(_MONEY_Q, rounding=ROUND_HALF_UP)


def calculate_price(base_price: Decimal, coefficient: Decimal, surcharge: Decimal = Decimal("0")) -> Decimal:
    """round(base × coefficient, 2) + фиксированная надбавка поставщика (после округления)."""
    price = round_money(Decimal(base_price) * Decimal(coefficient))
    if surcharge:
        price = round_money(price + Decimal(surcharge))
    return price


class CoefficientResolver:
    """
    supplier + type + brand -> множитель наценки.
    Кэш по (supplier, type, brand) c версией и сроком жизни записи;
    bump_version() сбрасывает все записи.
    """

    def __init__(
        self,
        source: CoefficientSource,
        *,
        ttl_seconds: float = CACHE_TTL_SECONDS,
        clock: Callable[[], float] = time.monotonic,
    ):
        self._source = source
        self._version = 1
        self._ttl = ttl_seconds
        self._clock = clock
        self._cache: Dict[Tuple[int, str, Optional[str], Optional[str]], Tuple[Decimal, float]] = {}

    @property
    def source(self) -> CoefficientSource:
        return self._source

    @property
    def version(self) -> int:
        return self._version

    def bump_version(self) -> int:
        self._version += 1
        self._cache.clear()
        logger.info("Coefficient cache version bumped to %s", self._version)
        return self._version

    async def get_coefficient(self, supplier: str, type: Optional[str], brand: Optional[str]) -> Decimal:
        key = (self._version, (supplier or "").lower(), _norm(type), _norm(brand))
        now = self._clock()
        cached = self._cache.get(key)
        if cached is not None and cached[1] > now:
            return cached[0]

        value = await self._source.lookup(supplier, _norm(type), _norm(brand))
        coefficient = Decimal(value) if value is not None else DEFAULT_COEFFICIENT
        self._cache[key] = (coefficient, now + self._ttl)
        return coefficient

    async def list_all(self) -> List[Coefficient]:
        return await self._source.list_all()
