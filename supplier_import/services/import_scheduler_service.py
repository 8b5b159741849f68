import argparse
import asyncio
import gc
import json
import logging
from dataclasses import dataclass, field
from datetime import date, datetime, timedelta
from typing import Dict, Iterable, List, Optional

from supplier_import.business.errors import UnknownSupplierError
from supplier_import.business.records import ImportRunStats, RunMode, SyncRunStats
from supplier_import.business.suppliers import find_supplier_format
from supplier_import.business.sync_batcher import unique_ids
from supplier_import.services.cleanup_service import cleanup_old_logs, cleanup_temp_files
from supplier_import.services.notification_service import send_notification
from supplier_import.services.supplier_importer import ImportContext, SupplierImporter, build_import_context

logger = logging.getLogger(__name__)


@dataclass
class ImportRunSummary:
    suppliers: Dict[str, ImportRunStats] = field(default_factory=dict)
    failed: List[str] = field(default_factory=list)
    sync: SyncRunStats = field(default_factory=SyncRunStats)
    changed_product_ids: List[int] = field(default_factory=list)

    def as_dict(self) -> dict:
        return {
            "suppliers": {name: s.as_dict() for name, s in self.suppliers.items()},
            "failed": list(self.failed),
            "sync": self.sync.as_dict(),
            "changed_products": len(self.changed_product_ids),
        }


async def notify_error(message: str, source: str = "supplier_import"):
    logger.error(message)
    # send_notification: синхронная функция
    send_notification(message, source)


def suppliers_to_run(context: ImportContext, supplier_name: Optional[str] = None) -> List[str]:
    """Имя поставщика или все зарегистрированные, у которых есть формат импорта."""
    if supplier_name and supplier_name.lower() != "all":
        if context.registry.get(supplier_name) is None or find_supplier_format(supplier_name) is None:
            raise UnknownSupplierError(f"Неизвестный поставщик: {supplier_name!r}")
        return [supplier_name]

    names = []
    for name in context.registry.names():
        if find_supplier_format(name) is None:
            logger.info("Поставщик %s без формата импорта, пропуск", name)
            continue
        names.append(name)
    return names


async def run_import(
    supplier_name: Optional[str] = None,
    *,
    row_limit: Optional[int] = None,
    mode: RunMode = RunMode.BULK,
    context: Optional[ImportContext] = None,
) -> ImportRunSummary:
    """
    Последовательный импорт поставщиков с паузой между ними,
    затем одна общая синхронизация изменённых товаров (без дублей).
    """
    context = context or build_import_context()
    names = suppliers_to_run(context, supplier_name)
    summary = ImportRunSummary()
    collected: List[int] = []
    delay = context.settings.supplier_delay_seconds

    for index, name in enumerate(names):
        importer = None
        # коэффициенты могли поменяться через API в другом процессе
        context.coefficients.bump_version()
        try:
            importer = SupplierImporter(name, context, mode)
            summary.suppliers[name] = await importer.run(row_limit)
        except Exception as e:
            summary.failed.append(name)
            await notify_error(f"Ошибка импорта поставщика {name}: {e}", name)
        finally:
            if importer is not None:
                collected.extend(importer.changed_product_ids)

        # кэши прогона поставщика живут в importer/engine
        importer = None
        gc.collect()

        if index < len(names) - 1 and delay > 0:
            logger.info("⏳ Пауза %s c перед следующим поставщиком...", delay)
            await context.sleep(delay)

    unique = unique_ids(collected)
    summary.changed_product_ids = unique
    context.last_changed_ids = list(unique)

    if len(collected) != len(unique):
        logger.info("Удалено дублей товаров между поставщиками: %s", len(collected) - len(unique))

    if unique:
        logger.info("🔄 Синхронизация %s изменённых товаров", len(unique))
        summary.sync = await context.sync_batcher.sync(unique)
    else:
        logger.info("Нет товаров для синхронизации")

    return summary


async def import_supplier_now(
    supplier_name: str,
    *,
    row_limit: Optional[int] = None,
    context: Optional[ImportContext] = None,
) -> Dict[str, object]:
    """Ручной запуск одного поставщика: импорт и сразу синхронизация его товаров."""
    context = context or build_import_context()
    importer = SupplierImporter(supplier_name, context, RunMode.INTERACTIVE)
    stats = await importer.run(row_limit)

    changed = importer.changed_product_ids
    context.last_changed_ids = list(changed)
    sync = await context.sync_batcher.sync(changed) if changed else SyncRunStats()
    return {"import": stats, "sync": sync}


async def sync_products(
    product_ids: Optional[Iterable[int]] = None,
    *,
    context: Optional[ImportContext] = None,
) -> SyncRunStats:
    """Синхронизация заданных товаров; без списка: товары последнего прогона."""
    context = context or build_import_context()
    ids = unique_ids(product_ids) if product_ids else list(context.last_changed_ids)
    if not ids:
        logger.error("Нет товаров для синхронизации: список пуст и прошлый прогон ничего не изменил")
        return SyncRunStats()
    return await context.sync_batcher.sync(ids)


def run_cleanup(context: ImportContext) -> Dict[str, int]:
    settings = context.settings
    return {
        "temp_files": cleanup_temp_files(settings.temp_dir, settings.temp_retention_seconds),
        "logs": cleanup_old_logs(settings.log_dir, settings.log_retention_days),
    }


async def schedule_import_tasks(context: Optional[ImportContext] = None):
    """
    Главный цикл импорта поставщиков:
    - раз в IMPORT_INTERVAL_MINUTES запускает импорт всех поставщиков (фоновый режим);
    - раз в сутки чистит временные файлы и старые логи.
    """
    context = context or build_import_context()
    interval = timedelta(minutes=max(context.settings.import_interval_minutes, 1))
    last_cleanup: Optional[date] = None
    try:
        while True:
            started = datetime.now()
            logger.info("🚀 Запуск планировщика импорта поставщиков...")
            try:
                summary = await run_import(context=context)
                if summary.failed:
                    logger.warning("Поставщики с ошибками: %s", ", ".join(summary.failed))
            except Exception as e:
                await notify_error(f"Ошибка цикла импорта поставщиков: {e}", "import_scheduler")

            if last_cleanup != started.date():
                run_cleanup(context)
                last_cleanup = started.date()

            wait = max((started + interval - datetime.now()).total_seconds(), 0)
            logger.info("⏳ Ожидание %.0f c перед следующим циклом импорта...", wait)
            await asyncio.sleep(wait)
    except Exception as main_error:
        await notify_error(f"🔥 Критическая ошибка в планировщике импорта: {main_error}", "import_scheduler")
    finally:
        await notify_error("❌ Сервис import_scheduler неожиданно остановлен.", "import_scheduler")


def _build_parser() -> argparse.ArgumentParser:
    parser = argparse.ArgumentParser(description="Импорт остатков и цен поставщиков")
    sub = parser.add_subparsers(dest="command", required=True)

    run = sub.add_parser("run", help="импорт поставщика (или всех) и синхронизация")
    run.add_argument("--supplier", default=None, help="имя поставщика, по умолчанию все")
    run.add_argument("--row-limit", type=int, default=None, help="обработать только первые N строк")

    sync = sub.add_parser("sync", help="синхронизировать товары по id")
    sync.add_argument("product_ids", nargs="+", type=int)

    sub.add_parser("schedule", help="запустить планировщик")
    sub.add_parser("cleanup", help="удалить старые временные файлы и логи")
    return parser


async def _main(args: argparse.Namespace) -> Optional[dict]:
    context = build_import_context()
    if args.command == "run":
        if args.supplier:
            result = await import_supplier_now(args.supplier, row_limit=args.row_limit, context=context)
            return {k: v.as_dict() for k, v in result.items()}
        return (await run_import(row_limit=args.row_limit, context=context)).as_dict()
    if args.command == "sync":
        return (await sync_products(args.product_ids, context=context)).as_dict()
    if args.command == "cleanup":
        return run_cleanup(context)
    await schedule_import_tasks(context)
    return None


if __name__ == "__main__":
    logging.basicConfig(level=logging.INFO, format="%(asctime)s - %(levelname)s - %(message)s")
    result = asyncio.run(_main(_build_parser().parse_args()))
    if result is not None:
        print(json.dumps(result, ensure_ascii=False, indent=2))
