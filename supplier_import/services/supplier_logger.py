import logging
from contextlib import contextmanager
from datetime import datetime
from pathlib import Path
from typing import Iterator, Optional

LOG_FORMAT = "%(asctime)s - %(levelname)s - %(message)s"
ROOT_LOGGER = "supplier_import"


def supplier_log_path(log_dir: Path, supplier: str, now: Optional[datetime] = None) -> Path:
    stamp = (now or datetime.now()).strftime("%Y-%m-%d_%H-%M-%S")
    safe = "".join(ch if ch.isalnum() or ch in "-._" else "_" for ch in supplier)
    return log_dir / f"{safe}_{stamp}.log"


@contextmanager
def supplier_log(log_dir: Path, supplier: str, level: int = logging.DEBUG) -> Iterator[Path]:
    """Отдельный лог-файл на один прогон поставщика; хендлер снимается после прогона."""
    log_dir.mkdir(parents=True, exist_ok=True)
    path = supplier_log_path(log_dir, supplier)
    handler = logging.FileHandler(path, encoding="utf-8")
    handler.setLevel(level)
    handler.setFormatter(logging.Formatter(LOG_FORMAT))

    logger = logging.getLogger(ROOT_LOGGER)
    previous_level = logger.level
    if logger.level == logging.NOTSET or logger.level > level:
        logger.setLevel(level)
    logger.addHandler(handler)
    try:
        yield path
    finally:
        logger.removeHandler(handler)
        logger.setLevel(previous_level)
        handler.close()
