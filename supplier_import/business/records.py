from __future__ import annotations

from dataclasses import dataclass, field, asdict
from decimal import Decimal
from enum import Enum
from typing import Dict, List, Optional

from .offers import OfferRow, StockStatus

__all__ = [
    "RunMode",
    "SupplierFeedRow",
    "ProductSnapshot",
    "ImportRunStats",
    "SyncRunStats",
    "OfferRow",
    "StockStatus",
]


class RunMode(str, Enum):
    INTERACTIVE = "interactive"
    BULK = "bulk"


@dataclass(frozen=True)
class SupplierFeedRow:
    sku: str
    quantity: int
    price: Decimal
    extra: Dict[str, str] = field(default_factory=dict)


@dataclass
class ProductSnapshot:
    """Срез товара для одного чанка: всё, что нужно для сведения офферов."""
    product_id: int
    sku: str
    local_stock_quantity: int = 0
    price: Decimal = Decimal("0")
    type: Optional[str] = None
    brand: Optional[str] = None
    external_system_id: Optional[str] = None
    offers: List[OfferRow] = field(default_factory=list)


@dataclass
class ImportRunStats:
    processed: int = 0
    updated: int = 0
    errors: int = 0
    skipped: int = 0
    partial: bool = False

    def merge(self, other: "ImportRunStats") -> "ImportRunStats":
        self.processed += other.processed
        self.updated += other.updated
        self.errors += other.errors
        self.skipped += other.skipped
        self.partial = self.partial or other.partial
        return self

    def as_dict(self) -> dict:
        return asdict(self)


@dataclass
class SyncRunStats:
    synced: int = 0
    errors: int = 0
    skipped: int = 0

    def merge(self, other: "SyncRunStats") -> "SyncRunStats":
        self.synced += other.synced
        self.errors += other.errors
        self.skipped += other.skipped
        return self

    def as_dict(self) -> dict:
        return asdict(self)
