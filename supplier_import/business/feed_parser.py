from __future__ import annotations

import csv
import io
import logging
import re
from dataclasses import dataclass, field
from decimal import Decimal, InvalidOperation, ROUND_HALF_UP
from typing import Callable, Dict, List, Optional, Sequence, Tuple

from .records import ProductSnapshot, SupplierFeedRow

logger = logging.getLogger(__name__)

Row = Sequence[str]

_LEADING_NUMBER = re.compile(r"^\s*[+-]?(\d+(\.\d*)?|\.\d+)")
_ZERO = Decimal("0")


# ---------------------------
# числа из CSV
# ---------------------------
def _cell(row: Row, idx: int) -> str:
    if idx < 0 or idx >= len(row):
        return ""
    return (row[idx] or "").strip()


def _to_decimal(value: str, decimal_comma: bool = False) -> Decimal:
    """
    Ведущее число строки: "12.5 EUR" -> 12.5, "abc" -> 0.
    decimal_comma=True: "12,50" -> 12.50 (и пробелы-разделители тысяч убираются).
    """
    s = (value or "").strip()
    if decimal_comma:
        s = s.replace(" ", "").replace("\xa0", "").replace(",", ".")
    m = _LEADING_NUMBER.match(s)
    if not m:
        return _ZERO
    try:
        return Decimal(m.group(0).strip())
    except InvalidOperation:
        return _ZERO


def _to_int(value: str, round_half: bool = False, decimal_comma: bool = False) -> int:
    number = _to_decimal(value, decimal_comma)
    if round_half:
        number = number.quantize(Decimal("1"), rounding=ROUND_HALF_UP)
    qty = int(number)
    return qty if qty > 0 else 0


# ---------------------------
# описание формата поставщика
# ---------------------------
@dataclass(frozen=True)
class SupplierFormat:
    """
    Правила разбора фида одного поставщика: только данные.
    price_from_product=True: в фиде нет цены, база берётся из карточки товара.
    """
    name: str
    sku_columns: Tuple[int, ...]
    quantity_columns: Tuple[int, ...]
    price_column: Optional[int] = None
    skip_rows: int = 0
    delimiter: str = ";"
    decimal_comma: bool = False
    round_quantity: bool = False
    round_price: bool = False
    price_from_product: bool = False
    surcharge: Decimal = _ZERO
    sku_as_int: bool = False
    required_columns: Tuple[int, ...] = ()
    reject: Optional[Callable[[Row], bool]] = None
    extra_fields: Optional[Callable[[Row], Dict[str, str]]] = None
    sources: Tuple[object, ...] = field(default=(), compare=False)

    def extract_sku(self, row: Row) -> str:
        for idx in self.sku_columns:
            value = _cell(row, idx)
            if not value:
                continue
            if self.sku_as_int:
                number = int(_to_decimal(value))
                return str(number) if number > 0 else ""
            return value
        return ""

    def extract_quantity(self, row: Row) -> int:
        return sum(_to_int(_cell(row, idx), self.round_quantity, self.decimal_comma) for idx in self.quantity_columns)

    def extract_price(self, row: Row) -> Decimal:
        if self.price_column is None:
            return _ZERO
        price = _to_decimal(_cell(row, self.price_column), self.decimal_comma)
        if self.round_price:
            price = price.quantize(Decimal("0.01"), rounding=ROUND_HALF_UP)
        return price if price > 0 else _ZERO

    def get_base_price_from_product(self, product: ProductSnapshot, row: Optional[SupplierFeedRow] = None) -> Decimal:
        if not self.price_from_product:
            return _ZERO
        price = Decimal(product.price or 0)
        return price if price > 0 else _ZERO


@dataclass
class ParsedFeed:
    rows: List[SupplierFeedRow] = field(default_factory=list)
    rejected: int = 0
    dropped: int = 0
    errors: int = 0


def decode_feed(data: bytes) -> str:
    """utf-8 (с BOM или без), при неудаче cp1250: чешские/словацкие поставщики."""
    try:
        return data.decode("utf-8-sig")
    except UnicodeDecodeError:
        return data.decode("cp1250", errors="replace")


def _parse_row(raw: Row, fmt: SupplierFormat, result: ParsedFeed) -> None:
    if any(not _cell(raw, idx) for idx in fmt.required_columns):
        result.dropped += 1
        return

    sku = fmt.extract_sku(raw)
    if not sku:
        result.dropped += 1
        return

    if fmt.reject is not None and fmt.reject(raw):
        result.rejected += 1
        return

    extra = fmt.extra_fields(raw) if fmt.extra_fields else {}
    result.rows.append(
        SupplierFeedRow(
            sku=sku,
            quantity=fmt.extract_quantity(raw),
            price=fmt.extract_price(raw),
            extra=extra,
        )
    )


def parse_feed(data: bytes, fmt: SupplierFormat) -> ParsedFeed:
    """
    Байты фида -> строки SupplierFeedRow.
    Пустой SKU: строка отбрасывается молча (dropped, не skipped).
    Строки, отклонённые предикатом поставщика, считаются в rejected.
    Битая строка считается в errors, разбор продолжается со следующей.
    """
    result = ParsedFeed()
    reader = csv.reader(io.StringIO(decode_feed(data)), delimiter=fmt.delimiter)

    line_no = -1
    while True:
        line_no += 1
        try:
            raw = next(reader)
        except StopIteration:
            break
        except csv.Error as e:
            if line_no >= fmt.skip_rows:
                result.errors += 1
                logger.error("[%s] Ошибка CSV в строке %s: %s", fmt.name, reader.line_num, e)
            continue

        if line_no < fmt.skip_rows:
            continue
        if not raw or not any(c.strip() for c in raw):
            continue

        try:
            _parse_row(raw, fmt, result)
        except Exception as e:
            result.errors += 1
            logger.error("[%s] Ошибка разбора строки %s: %s", fmt.name, reader.line_num, e)

    logger.info(
        "[%s] разобрано строк: %s, отклонено: %s, без SKU: %s, ошибок: %s",
        fmt.name, len(result.rows), result.rejected, result.dropped, result.errors,
    )
    return result


def numeric_field(column: int, key: str = "eprel") -> Callable[[Row], Dict[str, str]]:
    """Доп. поле из колонки, только если значение целиком числовое."""
    def _extract(row: Row) -> Dict[str, str]:
        value = _cell(row, column)
        return {key: value} if value.isdigit() else {}
    return _extract
