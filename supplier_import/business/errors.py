class SupplierImportError(Exception):
    """Базовая ошибка импорта поставщиков."""


class UnknownSupplierError(SupplierImportError):
    pass


class TransportFailure(SupplierImportError):
    """Файл поставщика не получен (нет доступа, таймаут, файл не найден, пустой файл)."""


class PersistenceFailure(SupplierImportError):
    """Ошибка пакетной записи в каталог. Прерывает импорт текущего поставщика."""


class SyncFailure(SupplierImportError):
    """Внешний API синхронизации вернул ошибку для пакета."""
