from __future__ import annotations

import asyncio
import logging
from dataclasses import dataclass, field
from pathlib import Path
from typing import Any, Awaitable, Callable, List, Optional, Sequence

from supplier_import.business.coefficients import CoefficientResolver
from supplier_import.business.errors import PersistenceFailure, UnknownSupplierError
from supplier_import.business.feed_parser import ParsedFeed, parse_feed
from supplier_import.business.reconciliation import CatalogGateway, ReconciliationEngine, RunGuard
from supplier_import.business.records import ImportRunStats, RunMode, SupplierFeedRow
from supplier_import.business.supplier_registry import SupplierRegistry, load_supplier_registry
from supplier_import.business.suppliers import find_supplier_format
from supplier_import.business.sync_batcher import RateLimiter, SyncBatcher
from supplier_import.config import ImportSettings, load_import_settings
from supplier_import.services.feed_fetcher import FeedSource, fetch_feed
from supplier_import.services.supplier_logger import supplier_log

logger = logging.getLogger(__name__)

Fetcher = Callable[[FeedSource, Path], Awaitable[Optional[Path]]]


@dataclass
class ImportContext:
    """Всё, что нужно прогону импорта; в тестах подменяется целиком."""
    settings: ImportSettings
    store: CatalogGateway
    coefficients: CoefficientResolver
    registry: SupplierRegistry
    sync_batcher: SyncBatcher
    fetch: Fetcher = fetch_feed
    sleep: Callable[[float], Awaitable[Any]] = asyncio.sleep
    guard_factory: Optional[Callable[[RunMode], RunGuard]] = None
    # id товаров, изменённых последним прогоном (для ручной синхронизации)
    last_changed_ids: List[int] = field(default_factory=list)

    def new_guard(self, mode: RunMode) -> RunGuard:
        if self.guard_factory is not None:
            return self.guard_factory(mode)
        return RunGuard.for_mode(mode, self.settings)


def build_import_context(settings: Optional[ImportSettings] = None) -> ImportContext:
    from supplier_import.services.catalog_store import CatalogStore
    from supplier_import.services.coefficient_store import CoefficientStore
    from supplier_import.services.inventory_sync_client import InventorySyncClient

    settings = settings or load_import_settings()
    store = CatalogStore()
    registry = load_supplier_registry(settings.supplier_mapping_path)
    batcher = SyncBatcher(
        store,
        InventorySyncClient(settings.inventory_sync_url, settings.inventory_sync_api_key),
        registry,
        RateLimiter(settings.sync_rate_limit_per_minute, settings.sync_min_delay_seconds),
        batch_size=settings.sync_batch_size,
    )
    return ImportContext(
        settings=settings,
        store=store,
        coefficients=CoefficientResolver(CoefficientStore()),
        registry=registry,
        sync_batcher=batcher,
    )


def apply_row_limit(rows: Sequence[SupplierFeedRow], row_limit: Optional[int]) -> Sequence[SupplierFeedRow]:
    if row_limit is None or row_limit <= 0 or len(rows) <= row_limit:
        return rows
    logger.info("Лимит строк: обрабатываем %s из %s", row_limit, len(rows))
    return rows[:row_limit]


class SupplierImporter:
    """Один прогон поставщика: скачать фид(ы), разобрать, свести с каталогом."""

    def __init__(self, supplier_name: str, context: ImportContext, mode: RunMode = RunMode.INTERACTIVE):
        identity = context.registry.get(supplier_name)
        fmt = find_supplier_format(supplier_name)
        if identity is None or fmt is None:
            raise UnknownSupplierError(f"Неизвестный поставщик: {supplier_name!r}")

        self.identity = identity
        self.fmt = fmt
        self.context = context
        self.mode = mode
        self.engine = ReconciliationEngine(
            identity,
            fmt,
            context.store,
            context.coefficients,
            guard=context.new_guard(mode),
            mode=mode,
            chunk_size=context.settings.chunk_size,
        )

    @property
    def changed_product_ids(self) -> List[int]:
        return list(self.engine.changed_product_ids)

    async def _load_rows(self, source: FeedSource) -> Optional[ParsedFeed]:
        path = await self.context.fetch(source, self.context.settings.temp_dir)
        if path is None:
            logger.error("[%s] Файл не получен, импорт из источника пропущен", self.identity.name)
            return None
        try:
            feed = parse_feed(path.read_bytes(), self.fmt)
        finally:
            path.unlink(missing_ok=True)
        return feed

    async def run(self, row_limit: Optional[int] = None) -> ImportRunStats:
        stats = ImportRunStats()
        name = self.identity.name

        with supplier_log(self.context.settings.log_dir, name):
            logger.info("▶️ [%s] Старт импорта (режим %s)", name, self.mode.value)
            for source in self.fmt.sources:
                feed = await self._load_rows(source)
                if feed is None:
                    continue

                stats.skipped += feed.rejected
                stats.errors += feed.errors
                rows = apply_row_limit(feed.rows, row_limit)
                try:
                    stats.merge(await self.engine.reconcile(rows))
                except PersistenceFailure as e:
                    logger.error("❌ [%s] Ошибка записи в каталог, импорт прерван: %s", name, e)
                    raise
                if stats.partial:
                    break

            logger.info(
                "✅ [%s] Импорт завершён: processed=%s updated=%s errors=%s skipped=%s%s",
                name, stats.processed, stats.updated, stats.errors, stats.skipped,
                " (частично)" if stats.partial else "",
            )
        return stats
