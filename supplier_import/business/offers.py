from __future__ import annotations

from dataclasses import dataclass
from decimal import Decimal
from enum import Enum
from typing import Iterable, List, Optional

# Порог количества у внешнего предложения для статуса "под заказ"
BACKORDER_MIN_QUANTITY = 4


class StockStatus(str, Enum):
    IN_STOCK = "in_stock"
    BACKORDER = "backorder"
    OUT_OF_STOCK = "out_of_stock"


@dataclass(frozen=True)
class OfferRow:
    supplier_id: int
    quantity: int
    price: Decimal


@dataclass(frozen=True)
class StockDecision:
    status: StockStatus
    best_offer: Optional[OfferRow] = None

    @property
    def best_quantity(self) -> int:
        return self.best_offer.quantity if self.best_offer else 0

    @property
    def best_price(self) -> Optional[Decimal]:
        return self.best_offer.price if self.best_offer else None


def merge_offer(offers: Iterable[OfferRow], new_offer: OfferRow) -> List[OfferRow]:
    """
    Вливает предложение поставщика в коллекцию товара.
    Строка с тем же supplier_id заменяется на своём месте, иначе добавляется в конец.
    """
    merged: List[OfferRow] = []
    replaced = False
    for offer in offers:
        if offer.supplier_id == new_offer.supplier_id:
            if not replaced:
                merged.append(new_offer)
                replaced = True
            continue
        merged.append(offer)
    if not replaced:
        merged.append(new_offer)
    return merged


def best_external_offer(offers: Iterable[OfferRow]) -> Optional[OfferRow]:
    """Самое дешёвое предложение с quantity >= 4 и price > 0 (при равенстве цен: первое)."""
    best: Optional[OfferRow] = None
    for offer in offers:
        if offer.quantity < BACKORDER_MIN_QUANTITY or offer.price <= 0:
            continue
        if best is None or offer.price < best.price:
            best = offer
    return best


def derive_stock_status(local_stock_quantity: int, offers: Iterable[OfferRow]) -> StockDecision:
    best = best_external_offer(offers)
    if local_stock_quantity > 0:
        return StockDecision(StockStatus.IN_STOCK, best)
    if best is not None:
        return StockDecision(StockStatus.BACKORDER, best)
    return StockDecision(StockStatus.OUT_OF_STOCK, None)
