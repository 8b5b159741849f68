from __future__ import annotations

import os
import time
from pathlib import Path

from supplier_import.services.cleanup_service import cleanup_old_logs, cleanup_temp_files


def _touch(path: Path, age_seconds: float, now: float) -> Path:
    path.write_text("x", encoding="utf-8")
    os.utime(path, (now - age_seconds, now - age_seconds))
    return path


def test_temp_files_older_than_an_hour_are_removed(tmp_path: Path) -> None:
    now = time.time()
    old = _touch(tmp_path / "feed_1.csv", 7200, now)
    fresh = _touch(tmp_path / "feed_2.csv", 60, now)

    assert cleanup_temp_files(tmp_path, 3600, now=now) == 1
    assert not old.exists()
    assert fresh.exists()


def test_only_log_files_older_than_retention_are_removed(tmp_path: Path) -> None:
    now = time.time()
    old_log = _touch(tmp_path / "GPD_2024-01-01_00-00-00.log", 8 * 86400, now)
    new_log = _touch(tmp_path / "GPD_2024-01-09_00-00-00.log", 86400, now)
    other = _touch(tmp_path / "notes.txt", 30 * 86400, now)

    assert cleanup_old_logs(tmp_path, 7, now=now) == 1
    assert not old_log.exists()
    assert new_log.exists()
    assert other.exists()


def test_missing_directory_is_a_no_op(tmp_path: Path) -> None:
    assert cleanup_temp_files(tmp_path / "absent") == 0
