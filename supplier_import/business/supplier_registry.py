from __future__ import annotations

import logging
from dataclasses import dataclass
from pathlib import Path
from typing import Any, Dict, List, Mapping, Optional

import yaml

logger = logging.getLogger(__name__)


@dataclass(frozen=True)
class SupplierIdentity:
    id: int
    name: str
    external_uid: str = ""


# id поставщика не меняется никогда: он записан в product_offers.supplier_id
DEFAULT_SUPPLIERS: Dict[int, SupplierIdentity] = {
    s.id: s
    for s in (
        SupplierIdentity(1, "Handlopex", "68babc6770df45e41adc5d0e"),
        SupplierIdentity(2, "Vredestein", "68babc7470df45e41adc5d0f"),
        SupplierIdentity(3, "Goodyear", "698359811657c0b4f0d1668c"),
        SupplierIdentity(4, "Alcar", "698359a31657c0b4f0d166a4"),
        SupplierIdentity(5, "VandenbanCZ", "698359ba1657c0b4f0d166b6"),
        SupplierIdentity(6, "VandenbanNL", "698359d11657c0b4f0d166c7"),
        SupplierIdentity(7, "GPD", "698359e71657c0b4f0d166d8"),
        SupplierIdentity(8, "Continental", "698359fb1657c0b4f0d166e9"),
        SupplierIdentity(9, "Bridgestone", "69835a0c1657c0b4f0d166f8"),
        SupplierIdentity(10, "Goodyear2-Nemecko", "69835a271657c0b4f0d1670d"),
        SupplierIdentity(11, "Michelin", "69835a3b1657c0b4f0d1671e"),
        SupplierIdentity(12, "Latex", "69835a4f1657c0b4f0d1672f"),
        SupplierIdentity(13, "IHLE", "69835a641657c0b4f0d1673e"),
        SupplierIdentity(14, "DobrePneu.cz", "69835a7f1657c0b4f0d1674c"),
        SupplierIdentity(15, "Asteel", "69835a951657c0b4f0d1675f"),
    )
}


def _parse_entry(raw_id: Any, raw: Any) -> Optional[SupplierIdentity]:
    try:
        supplier_id = int(raw_id)
    except (TypeError, ValueError):
        return None
    if supplier_id <= 0 or not isinstance(raw, Mapping):
        return None
    name = str(raw.get("name") or "").strip()
    if not name:
        return None
    uid = str(raw.get("uid") or raw.get("external_uid") or "").strip()
    return SupplierIdentity(supplier_id, name, uid)


class SupplierRegistry:
    """Стабильные id и внешние UID поставщиков. Сохранённые записи перекрывают дефолтные по id."""

    def __init__(self, overrides: Optional[Mapping[Any, Any]] = None):
        merged: Dict[int, SupplierIdentity] = dict(DEFAULT_SUPPLIERS)
        for raw_id, raw in (overrides or {}).items():
            if isinstance(raw, SupplierIdentity):
                entry = raw
            else:
                entry = _parse_entry(raw_id, raw)
            if entry is None:
                logger.warning("Пропущена некорректная запись поставщика: %r -> %r", raw_id, raw)
                continue
            owner = next((s.id for s in merged.values() if s.name == entry.name and s.id != entry.id), None)
            if owner is not None:
                logger.warning(
                    "Пропущена запись поставщика id=%s: имя %r уже принадлежит id=%s", entry.id, entry.name, owner
                )
                continue
            merged[entry.id] = entry
        self._by_id = dict(sorted(merged.items()))
        self._by_name = {s.name: s for s in self._by_id.values()}

    def get_supplier_id(self, name: str) -> int:
        entry = self._by_name.get(name)
        return entry.id if entry else 0

    def get_supplier_name(self, supplier_id: int) -> str:
        entry = self._by_id.get(supplier_id)
        return entry.name if entry else ""

    def get_supplier_uid(self, supplier_id: int) -> str:
        entry = self._by_id.get(supplier_id)
        return entry.external_uid if entry else ""

    def get(self, name: str) -> Optional[SupplierIdentity]:
        return self._by_name.get(name)

    def identities(self) -> List[SupplierIdentity]:
        return list(self._by_id.values())

    def names(self) -> List[str]:
        return [s.name for s in self._by_id.values()]

    def update_uid_mapping(self, mapping: Mapping[int, str]) -> "SupplierRegistry":
        """Новый реестр с обновлёнными UID; неизвестные id игнорируются."""
        entries: Dict[int, SupplierIdentity] = dict(self._by_id)
        for raw_id, uid in mapping.items():
            try:
                supplier_id = int(raw_id)
            except (TypeError, ValueError):
                continue
            current = entries.get(supplier_id)
            if current is None:
                logger.warning("UID для неизвестного поставщика id=%s пропущен", raw_id)
                continue
            entries[supplier_id] = SupplierIdentity(current.id, current.name, str(uid or "").strip())
        return SupplierRegistry(entries)


def load_supplier_registry(path: Path) -> SupplierRegistry:
    """
    YAML вида:
        suppliers:
          1: {name: Handlopex, uid: 68babc...}
    Файла нет: работаем на дефолтах.
    """
    if not path.exists():
        return SupplierRegistry()
    data = yaml.safe_load(path.read_text(encoding="utf-8")) or {}
    return SupplierRegistry(data.get("suppliers") or {})


def save_supplier_registry(registry: SupplierRegistry, path: Path) -> None:
    payload = {
        "suppliers": {
            s.id: {"name": s.name, "uid": s.external_uid} for s in registry.identities()
        }
    }
    path.parent.mkdir(parents=True, exist_ok=True)
    path.write_text(yaml.safe_dump(payload, allow_unicode=True, sort_keys=True), encoding="utf-8")
