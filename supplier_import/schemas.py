from decimal import Decimal
from typing import Dict, List, Optional

from pydantic import BaseModel, Field


# Схема для авторизации
class LoginSchema(BaseModel):
    login: str
    password: str


class ImportStatsSchema(BaseModel):
    processed: int = 0
    updated: int = 0
    errors: int = 0
    skipped: int = 0
    partial: bool = False

    class Config:
        from_attributes = True


class SyncStatsSchema(BaseModel):
    synced: int = 0
    errors: int = 0
    skipped: int = 0

    class Config:
        from_attributes = True


class SupplierImportResultSchema(BaseModel):
    supplier: str
    import_stats: ImportStatsSchema
    sync_stats: SyncStatsSchema


class ImportRunSummarySchema(BaseModel):
    suppliers: Dict[str, ImportStatsSchema]
    failed: List[str] = []
    sync: SyncStatsSchema
    changed_products: int = 0


class SyncRequestSchema(BaseModel):
    product_ids: List[int] = Field(default_factory=list)


class SupplierSchema(BaseModel):
    id: int
    name: str
    external_uid: str
    has_feed_format: bool = False

    class Config:
        from_attributes = True


class CoefficientSchema(BaseModel):
    id: Optional[int] = None
    supplier: str
    type: Optional[str] = None
    brand: Optional[str] = None
    multiplier: Decimal

    class Config:
        from_attributes = True


class CoefficientCreateSchema(BaseModel):
    supplier: str
    type: Optional[str] = None
    brand: Optional[str] = None
    coefficient: Decimal = Field(gt=0)
