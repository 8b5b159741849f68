from __future__ import annotations

import logging
import os
import time
from dataclasses import dataclass, field
from decimal import Decimal
from typing import Callable, Dict, Iterable, List, Mapping, Protocol, Sequence

from .coefficients import CoefficientResolver, calculate_price
from .feed_parser import SupplierFormat
from .offers import OfferRow, StockDecision, derive_stock_status, merge_offer
from .records import ImportRunStats, ProductSnapshot, RunMode, SupplierFeedRow
from .supplier_registry import SupplierIdentity

logger = logging.getLogger(__name__)

MEMORY_THRESHOLD = 0.9
BULK_LOG_EVERY = 10

__all__ = [
    "CatalogGateway",
    "RunGuard",
    "ReconciliationEngine",
    "chunk_size_for",
    "current_memory_bytes",
]


class CatalogGateway(Protocol):
    async def resolve_skus(self, skus: Sequence[str]) -> Dict[str, int]: ...

    async def load_product_snapshot(self, product_ids: Sequence[int]) -> Dict[int, ProductSnapshot]: ...

    async def write_offers(self, offers: Mapping[int, List[OfferRow]]) -> None: ...

    async def write_stock_status(self, statuses: Mapping[int, StockDecision]) -> None: ...

    async def write_supplier_extra_fields(self, fields: Mapping[int, Mapping[str, str]]) -> None: ...


STATM_PATH = "/proc/self/statm"


def current_memory_bytes(statm_path: str = STATM_PATH) -> int:
    """
    Текущий RSS процесса (второе поле statm, в страницах).
    Без /proc (не Linux) возвращает 0: проверка памяти не срабатывает.
    """
    try:
        with open(statm_path, "r", encoding="ascii") as fh:
            resident_pages = int(fh.read().split()[1])
    except (OSError, IndexError, ValueError):
        return 0
    return resident_pages * os.sysconf("SC_PAGE_SIZE")


def chunk_size_for(total_rows: int, mode: RunMode, default: int = 50) -> int:
    """В фоне большие фиды идут крупными чанками: >10000 строк -> 200, >5000 -> 100."""
    if mode == RunMode.BULK:
        if total_rows > 10000:
            return max(default, 200)
        if total_rows > 5000:
            return max(default, 100)
    return default


class RunGuard:
    """Лимиты памяти и времени на один прогон поставщика. Проверяются раз в чанк."""

    def __init__(
        self,
        *,
        time_limit: float,
        time_buffer: float,
        memory_limit_bytes: int,
        clock: Callable[[], float] = time.monotonic,
        memory_usage: Callable[[], int] = current_memory_bytes,
    ):
        self.time_limit = time_limit
        self.time_buffer = time_buffer
        self.memory_limit_bytes = memory_limit_bytes
        self._clock = clock
        self._memory_usage = memory_usage
        self._started = clock()

    @classmethod
    def for_mode(cls, mode: RunMode, settings, **kwargs) -> "RunGuard":
        if mode == RunMode.BULK:
            limit, buffer = settings.time_limit_bulk, settings.time_buffer_bulk
        else:
            limit, buffer = settings.time_limit_interactive, settings.time_buffer_interactive
        return cls(
            time_limit=limit,
            time_buffer=buffer,
            memory_limit_bytes=settings.memory_limit_mb * 1024 * 1024,
            **kwargs,
        )

    def elapsed(self) -> float:
        return self._clock() - self._started

    def memory_exceeded(self) -> bool:
        if self.memory_limit_bytes <= 0:
            return False
        return self._memory_usage() > self.memory_limit_bytes * MEMORY_THRESHOLD

    def time_exhausted(self) -> bool:
        return self.time_limit - self.elapsed() < self.time_buffer


@dataclass
class _StagedOffer:
    offer: OfferRow
    extra: Dict[str, str] = field(default_factory=dict)


class ReconciliationEngine:
    """
    Сведение строк фида поставщика с каталогом чанками:
    SKU -> product_id одним запросом, предзагрузка товаров, расчёт цены,
    пакетная запись офферов, пересчёт stock_status, учёт изменённых товаров.
    """

    def __init__(
        self,
        supplier: SupplierIdentity,
        fmt: SupplierFormat,
        store: CatalogGateway,
        coefficients: CoefficientResolver,
        *,
        guard: RunGuard,
        mode: RunMode = RunMode.INTERACTIVE,
        chunk_size: int = 50,
    ):
        self.supplier = supplier
        self.fmt = fmt
        self.store = store
        self.coefficients = coefficients
        self.guard = guard
        self.mode = mode
        self.chunk_size = chunk_size
        self.changed_product_ids: List[int] = []
        self._changed = set()
        self._logged_products = 0

    async def reconcile(self, rows: Sequence[SupplierFeedRow]) -> ImportRunStats:
        stats = ImportRunStats()
        total = len(rows)
        if not total:
            return stats

        size = chunk_size_for(total, self.mode, self.chunk_size)
        logger.info("[%s] строк: %s, чанк: %s, режим: %s", self.supplier.name, total, size, self.mode.value)

        for offset in range(0, total, size):
            if self.guard.memory_exceeded():
                logger.warning(
                    "[%s] ⚠️ Память выше %d%% лимита, остановка на строке %s из %s (частичный импорт)",
                    self.supplier.name, int(MEMORY_THRESHOLD * 100), offset, total,
                )
                stats.partial = True
                break

            stats.merge(await self._process_chunk(rows[offset:offset + size]))

            if offset + size < total and self.guard.time_exhausted():
                logger.warning(
                    "[%s] ⚠️ Заканчивается время (%.0f c), остановка после строки %s из %s (частичный импорт)",
                    self.supplier.name, self.guard.elapsed(), offset + size, total,
                )
                stats.partial = True
                break

        return stats

    async def _final_price(self, row: SupplierFeedRow, product: ProductSnapshot) -> Decimal:
        base = row.price if row.price > 0 else self.fmt.get_base_price_from_product(product, row)
        if base <= 0:
            return Decimal("0")
        coefficient = await self.coefficients.get_coefficient(self.supplier.name, product.type, product.brand)
        return calculate_price(base, coefficient, self.fmt.surcharge)

    def _log_product(self, product_id: int, offer: OfferRow) -> None:
        self._logged_products += 1
        if self.mode == RunMode.BULK and self._logged_products % BULK_LOG_EVERY:
            return
        logger.debug(
            "[%s] product %s: qty=%s price=%s", self.supplier.name, product_id, offer.quantity, offer.price
        )

    async def _process_chunk(self, chunk: Sequence[SupplierFeedRow]) -> ImportRunStats:
        stats = ImportRunStats()

        skus = list(dict.fromkeys(r.sku.strip() for r in chunk if r.sku.strip()))
        sku_map = await self.store.resolve_skus(skus)
        if not sku_map:
            stats.skipped += len(chunk)
            return stats

        snapshots = await self.store.load_product_snapshot(list(dict.fromkeys(sku_map.values())))

        staged: Dict[int, _StagedOffer] = {}
        price_skips_logged = 0
        for row in chunk:
            try:
                product_id = sku_map.get(row.sku.strip())
                product = snapshots.get(product_id) if product_id is not None else None
                if product is None:
                    stats.skipped += 1
                    continue

                price = await self._final_price(row, product)
                if price <= 0:
                    stats.skipped += 1
                    if price_skips_logged < 3:
                        logger.debug("[%s] SKU %s: нет цены, пропуск", self.supplier.name, row.sku)
                        price_skips_logged += 1
                    continue

                offer = OfferRow(self.supplier.id, max(int(row.quantity), 0), price)
                staged[product_id] = _StagedOffer(offer, dict(row.extra))
                stats.processed += 1
                self._log_product(product_id, offer)
            except Exception as e:
                stats.errors += 1
                logger.error("[%s] Ошибка обработки строки SKU %r: %s", self.supplier.name, row.sku, e)

        if staged:
            merged = {pid: merge_offer(snapshots[pid].offers, s.offer) for pid, s in staged.items()}
            await self.store.write_offers(merged)
            for pid, offers in merged.items():
                snapshots[pid].offers = offers
            stats.updated += len(merged)
            self._track(merged.keys())

            extras = {pid: s.extra for pid, s in staged.items() if s.extra}
            if extras:
                await self.store.write_supplier_extra_fields(extras)

        # статус пересчитывается для всех найденных товаров чанка, не только обновлённых
        decisions = {
            pid: derive_stock_status(snap.local_stock_quantity, snap.offers)
            for pid, snap in snapshots.items()
        }
        if decisions:
            await self.store.write_stock_status(decisions)

        return stats

    def _track(self, product_ids: Iterable[int]) -> None:
        for pid in product_ids:
            if pid not in self._changed:
                self._changed.add(pid)
                self.changed_product_ids.append(pid)
