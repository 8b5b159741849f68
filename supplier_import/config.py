import os
from dataclasses import dataclass, field
from pathlib import Path
from typing import List

from dotenv import load_dotenv

# Загрузка .env файла
load_dotenv()


def _env_int(name: str, default: int) -> int:
    raw = os.getenv(name)
    if raw is None or not raw.strip():
        return default
    try:
        return int(raw)
    except ValueError:
        return default


def _env_float(name: str, default: float) -> float:
    raw = os.getenv(name)
    if raw is None or not raw.strip():
        return default
    try:
        return float(raw.replace(",", "."))
    except ValueError:
        return default


class Config:
    DATABASE_URL = os.getenv("DATABASE_URL")
    DEBUG = os.getenv("DEBUG", "false").lower() == "true"


class DevelopmentConfig(Config):
    ENV = "development"


class TestingConfig(Config):
    ENV = "testing"


class ProductionConfig(Config):
    ENV = "production"


# Словарь конфигураций
CONFIGS = {
    "development": DevelopmentConfig,
    "testing": TestingConfig,
    "production": ProductionConfig,
}

ENV = os.getenv("APP_ENV", "development")
config = CONFIGS.get(ENV, DevelopmentConfig)


@dataclass(frozen=True)
class ImportSettings:
    """Параметры импорта поставщиков и синхронизации (всё из окружения)."""
    chunk_size: int = 50
    supplier_delay_seconds: float = 5.0
    sync_batch_size: int = 100
    sync_rate_limit_per_minute: int = 30
    sync_min_delay_seconds: float = 2.0
    memory_limit_mb: int = 512
    time_limit_interactive: int = 600
    time_limit_bulk: int = 3600
    time_buffer_interactive: int = 30
    time_buffer_bulk: int = 120
    temp_dir: Path = Path("/tmp/supplier-import-temp")
    log_dir: Path = Path("logs/suppliers")
    temp_retention_seconds: int = 3600
    log_retention_days: int = 7
    inventory_sync_url: str = ""
    inventory_sync_api_key: str = ""
    supplier_mapping_path: Path = Path("config/suppliers.yaml")
    import_interval_minutes: int = 60
    telegram_chat_ids: List[int] = field(default_factory=list)


def load_import_settings() -> ImportSettings:
    chat_ids = [
        int(x) for x in (os.getenv("TELEGRAM_CHAT_IDS") or "").replace(" ", "").split(",")
        if x.lstrip("-").isdigit()
    ]
    return ImportSettings(
        chunk_size=_env_int("IMPORT_CHUNK_SIZE", 50),
        supplier_delay_seconds=_env_float("IMPORT_SUPPLIER_DELAY_SECONDS", 5.0),
        sync_batch_size=_env_int("SYNC_BATCH_SIZE", 100),
        sync_rate_limit_per_minute=_env_int("SYNC_RATE_LIMIT_PER_MINUTE", 30),
        sync_min_delay_seconds=_env_float("SYNC_MIN_DELAY_SECONDS", 2.0),
        memory_limit_mb=_env_int("IMPORT_MEMORY_LIMIT_MB", 512),
        time_limit_interactive=_env_int("IMPORT_TIME_LIMIT_INTERACTIVE", 600),
        time_limit_bulk=_env_int("IMPORT_TIME_LIMIT_BULK", 3600),
        time_buffer_interactive=_env_int("IMPORT_TIME_BUFFER_INTERACTIVE", 30),
        time_buffer_bulk=_env_int("IMPORT_TIME_BUFFER_BULK", 120),
        temp_dir=Path(os.getenv("IMPORT_TEMP_DIR", "/tmp/supplier-import-temp")),
        log_dir=Path(os.getenv("IMPORT_LOG_DIR", "logs/suppliers")),
        temp_retention_seconds=_env_int("TEMP_RETENTION_SECONDS", 3600),
        log_retention_days=_env_int("LOG_RETENTION_DAYS", 7),
        inventory_sync_url=(os.getenv("INVENTORY_SYNC_URL") or "").rstrip("/"),
        inventory_sync_api_key=os.getenv("INVENTORY_SYNC_API_KEY") or "",
        supplier_mapping_path=Path(os.getenv("SUPPLIER_MAPPING_PATH", "config/suppliers.yaml")),
        import_interval_minutes=_env_int("IMPORT_INTERVAL_MINUTES", 60),
        telegram_chat_ids=chat_ids,
    )
