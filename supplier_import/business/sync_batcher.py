from __future__ import annotations

import asyncio
import logging
import time
from collections import deque
from typing import Any, Awaitable, Callable, Deque, Dict, Iterable, List, Protocol, Sequence

from .offers import OfferRow
from .records import ProductSnapshot, SyncRunStats
from .supplier_registry import SupplierRegistry

logger = logging.getLogger(__name__)

WINDOW_SECONDS = 60.0


class RateLimiter:
    """
    Ограничение частоты вызовов внешнего API:
    не больше max_calls за скользящие 60 с и не чаще min_delay между соседними вызовами.
    Состояние живёт в объекте; acquire() сериализован через asyncio.Lock (один процесс).
    """

    def __init__(
        self,
        max_calls: int = 30,
        min_delay: float = 2.0,
        *,
        clock: Callable[[], float] = time.monotonic,
        sleep: Callable[[float], Awaitable[Any]] = asyncio.sleep,
    ):
        self.max_calls = max_calls
        self.min_delay = min_delay
        self._clock = clock
        self._sleep = sleep
        self._calls: Deque[float] = deque()
        self._lock = asyncio.Lock()

    def _prune(self, now: float) -> None:
        while self._calls and now - self._calls[0] >= WINDOW_SECONDS:
            self._calls.popleft()

    async def acquire(self) -> None:
        async with self._lock:
            now = self._clock()
            self._prune(now)

            if self.max_calls > 0 and len(self._calls) >= self.max_calls:
                wait = WINDOW_SECONDS - (now - self._calls[0])
                if wait > 0:
                    logger.info("Rate limit: %s вызовов за минуту, ожидание %.1f c", len(self._calls), wait)
                    await self._sleep(wait)
                now = self._clock()
                self._prune(now)

            if self._calls and self.min_delay > 0:
                since_last = now - self._calls[-1]
                if since_last < self.min_delay:
                    await self._sleep(self.min_delay - since_last)
                    now = self._clock()

            self._calls.append(now)

    @property
    def recent_calls(self) -> List[float]:
        return list(self._calls)


class SyncProductSource(Protocol):
    async def load_product_snapshot(self, product_ids: Sequence[int]) -> Dict[int, ProductSnapshot]: ...


class SyncClient(Protocol):
    async def push_batch(self, products: List[Dict[str, Any]]) -> None: ...


def unique_ids(product_ids: Iterable[int]) -> List[int]:
    return list(dict.fromkeys(int(pid) for pid in product_ids))


def _offer_payload(offer: OfferRow, registry: SupplierRegistry) -> Dict[str, Any]:
    return {
        "supplier_id": offer.supplier_id,
        "supplier_name": registry.get_supplier_name(offer.supplier_id),
        "supplier_uid": registry.get_supplier_uid(offer.supplier_id),
        "quantity": offer.quantity,
        "price": float(offer.price),
    }


def build_product_payload(product: ProductSnapshot, registry: SupplierRegistry) -> Dict[str, Any]:
    return {
        "external_id": product.external_system_id,
        "offers": [_offer_payload(o, registry) for o in product.offers],
    }


class SyncBatcher:
    """Отправка изменённых товаров во внешнюю систему пакетами."""

    def __init__(
        self,
        store: SyncProductSource,
        client: SyncClient,
        registry: SupplierRegistry,
        rate_limiter: RateLimiter,
        *,
        batch_size: int = 100,
    ):
        self.store = store
        self.client = client
        self.registry = registry
        self.rate_limiter = rate_limiter
        self.batch_size = max(1, batch_size)

    async def sync(self, product_ids: Iterable[int]) -> SyncRunStats:
        ids = unique_ids(product_ids)
        stats = SyncRunStats()
        if not ids:
            return stats

        for start in range(0, len(ids), self.batch_size):
            stats.merge(await self._sync_batch(ids[start:start + self.batch_size]))

        logger.info(
            "Синхронизация завершена: synced=%s errors=%s skipped=%s",
            stats.synced, stats.errors, stats.skipped,
        )
        return stats

    async def _sync_batch(self, batch: Sequence[int]) -> SyncRunStats:
        stats = SyncRunStats()
        snapshots = await self.store.load_product_snapshot(list(batch))

        payload: List[Dict[str, Any]] = []
        for pid in batch:
            product = snapshots.get(pid)
            if product is None or not (product.external_system_id or "").strip():
                stats.skipped += 1
                continue
            payload.append(build_product_payload(product, self.registry))

        if not payload:
            return stats

        await self.rate_limiter.acquire()
        try:
            await self.client.push_batch(payload)
        except Exception as e:
            stats.errors += len(payload)
            logger.error("❌ Ошибка синхронизации пакета из %s товаров: %s", len(payload), e)
            return stats

        stats.synced += len(payload)
        return stats
