import logging
import time
from pathlib import Path
from typing import Optional


def _remove_older_than(directory: Path, pattern: str, max_age_seconds: float, now: Optional[float] = None) -> int:
    if not directory.is_dir():
        return 0
    threshold = (now if now is not None else time.time()) - max_age_seconds
    removed = 0
    for path in directory.glob(pattern):
        if not path.is_file():
            continue
        try:
            if path.stat().st_mtime < threshold:
                path.unlink()
                removed += 1
        except OSError as e:
            logging.error(f"Ошибка при удалении {path}: {e}")
    return removed


def cleanup_temp_files(temp_dir: Path, max_age_seconds: int = 3600, now: Optional[float] = None) -> int:
    """
    Удаляет временные файлы фидов старше max_age_seconds.
    :param temp_dir: папка временных файлов
    :return: количество удалённых файлов
    """
    removed = _remove_older_than(temp_dir, "*", max_age_seconds, now)
    logging.info(f"Удалено {removed} временных файлов из {temp_dir}.")
    return removed


def cleanup_old_logs(log_dir: Path, days: int = 7, now: Optional[float] = None) -> int:
    """Удаляет *.log старше days дней."""
    removed = _remove_older_than(log_dir, "*.log", days * 86400, now)
    logging.info(f"Удалено {removed} лог-файлов старше {days} дней из {log_dir}.")
    return removed
