from __future__ import annotations

from decimal import Decimal

from supplier_import.business.offers import OfferRow, StockStatus, derive_stock_status, merge_offer


def _offer(supplier_id: int, qty: int, price: str) -> OfferRow:
    return OfferRow(supplier_id, qty, Decimal(price))


def test_merge_replaces_existing_supplier_in_place() -> None:
    offers = [_offer(1, 5, "10"), _offer(2, 7, "12"), _offer(3, 1, "9")]

    merged = merge_offer(offers, _offer(2, 0, "11"))

    assert [o.supplier_id for o in merged] == [1, 2, 3]
    assert merged[1] == _offer(2, 0, "11")
    # the input collection is left untouched
    assert offers[1] == _offer(2, 7, "12")


def test_merge_appends_new_supplier() -> None:
    merged = merge_offer([_offer(1, 5, "10")], _offer(4, 8, "20"))

    assert [o.supplier_id for o in merged] == [1, 4]


def test_merge_is_idempotent_for_repeated_supplier_rows() -> None:
    offers: list[OfferRow] = []
    for supplier_id in (1, 2, 3):
        offers = merge_offer(offers, _offer(supplier_id, 5, "10"))

    again = merge_offer(offers, _offer(2, 5, "10"))
    again = merge_offer(again, _offer(2, 5, "10"))

    assert len(again) == 3
    assert again == offers


def test_out_of_stock_when_external_quantity_below_threshold() -> None:
    decision = derive_stock_status(0, [_offer(1, 3, "10")])

    assert decision.status is StockStatus.OUT_OF_STOCK
    assert decision.best_offer is None
    assert decision.best_quantity == 0


def test_backorder_picks_cheapest_qualifying_offer() -> None:
    decision = derive_stock_status(0, [_offer(1, 5, "10"), _offer(2, 10, "8")])

    assert decision.status is StockStatus.BACKORDER
    assert decision.best_offer == _offer(2, 10, "8")
    assert decision.best_price == Decimal("8")


def test_offers_without_price_do_not_qualify() -> None:
    decision = derive_stock_status(0, [_offer(1, 50, "0")])

    assert decision.status is StockStatus.OUT_OF_STOCK


def test_local_stock_wins_regardless_of_offers() -> None:
    assert derive_stock_status(2, []).status is StockStatus.IN_STOCK
    assert derive_stock_status(2, [_offer(1, 10, "5")]).status is StockStatus.IN_STOCK


def test_price_tie_keeps_first_offer() -> None:
    decision = derive_stock_status(0, [_offer(1, 4, "9"), _offer(2, 40, "9")])

    assert decision.best_offer.supplier_id == 1
