from __future__ import annotations

import logging
from typing import Any, Dict, List, Optional

import httpx

from supplier_import.business.errors import SyncFailure

logger = logging.getLogger(__name__)

BATCH_ENDPOINT = "/api/products/batch"


class InventorySyncClient:
    """
    Клиент внешней системы остатков: один POST на пакет товаров.
    Ответ без поштучных статусов: либо весь пакет принят, либо нет.
    """

    def __init__(
        self,
        base_url: str,
        api_key: str,
        *,
        timeout: float = 60.0,
        transport: Optional[httpx.AsyncBaseTransport] = None,
    ):
        self.base_url = (base_url or "").rstrip("/")
        self.api_key = api_key or ""
        self.timeout = timeout
        self._transport = transport

    async def push_batch(self, products: List[Dict[str, Any]]) -> None:
        if not self.base_url:
            raise SyncFailure("INVENTORY_SYNC_URL не задан")

        headers = {"X-Api-Key": self.api_key, "Content-Type": "application/json"}
        try:
            async with httpx.AsyncClient(timeout=self.timeout, transport=self._transport) as client:
                resp = await client.post(f"{self.base_url}{BATCH_ENDPOINT}", json={"products": products}, headers=headers)
                resp.raise_for_status()
                data = resp.json() if resp.content else {}
        except (httpx.HTTPError, ValueError) as e:
            raise SyncFailure(f"Ошибка запроса синхронизации: {e}") from e

        if isinstance(data, dict) and (data.get("status") == "error" or data.get("success") is False):
            raise SyncFailure(f"API вернул ошибку: {data.get('message') or data}")

        logger.info("Пакет из %s товаров принят API", len(products))
