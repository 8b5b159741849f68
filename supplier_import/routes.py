from dotenv import load_dotenv
load_dotenv()

import logging
from datetime import timedelta
from functools import lru_cache
from typing import List, Optional

from fastapi import APIRouter, BackgroundTasks, Depends, HTTPException, Query

from supplier_import.auth import check_credentials, create_access_token, verify_token
from supplier_import.business.errors import UnknownSupplierError
from supplier_import.business.suppliers import find_supplier_format
from supplier_import.schemas import (
    CoefficientCreateSchema,
    CoefficientSchema,
    ImportStatsSchema,
    LoginSchema,
    SupplierImportResultSchema,
    SupplierSchema,
    SyncRequestSchema,
    SyncStatsSchema,
)
from supplier_import.services.import_scheduler_service import (
    import_supplier_now,
    notify_error,
    run_import,
    sync_products,
)
from supplier_import.services.supplier_importer import ImportContext, build_import_context

logger = logging.getLogger(__name__)

router = APIRouter(prefix="/supplier_import", tags=["Supplier Import"])


@lru_cache(maxsize=1)
def _shared_context() -> ImportContext:
    return build_import_context()


def get_import_context() -> ImportContext:
    return _shared_context()


# 🔐 Авторизация
@router.post("/login/", summary="Login")
async def login(credentials: LoginSchema):
    if not check_credentials(credentials.login, credentials.password):
        raise HTTPException(status_code=401, detail="Invalid login or password.")
    access_token = create_access_token(data={"sub": credentials.login}, expires_delta=timedelta(hours=1))
    return {"access_token": access_token, "token_type": "bearer"}


@router.post("/imports/{supplier}", response_model=SupplierImportResultSchema)
async def import_supplier(
    supplier: str,
    row_limit: Optional[int] = Query(default=None, ge=1),
    context: ImportContext = Depends(get_import_context),
    token: dict = Depends(verify_token),
):
    """Импорт одного поставщика с немедленной синхронизацией его товаров."""
    try:
        result = await import_supplier_now(supplier, row_limit=row_limit, context=context)
    except UnknownSupplierError as e:
        raise HTTPException(status_code=404, detail=str(e))
    return SupplierImportResultSchema(
        supplier=supplier,
        import_stats=ImportStatsSchema.model_validate(result["import"]),
        sync_stats=SyncStatsSchema.model_validate(result["sync"]),
    )


async def _run_all_in_background(context: ImportContext, row_limit: Optional[int]):
    try:
        summary = await run_import(row_limit=row_limit, context=context)
        logger.info("Фоновый импорт завершён: %s", summary.as_dict())
    except Exception as e:
        await notify_error(f"Ошибка фонового импорта: {e}", "api")


@router.post("/imports", status_code=202)
async def import_all(
    background_tasks: BackgroundTasks,
    row_limit: Optional[int] = Query(default=None, ge=1),
    context: ImportContext = Depends(get_import_context),
    token: dict = Depends(verify_token),
):
    background_tasks.add_task(_run_all_in_background, context, row_limit)
    return {"status": "accepted"}


@router.post("/sync", response_model=SyncStatsSchema)
async def sync(
    payload: SyncRequestSchema,
    context: ImportContext = Depends(get_import_context),
    token: dict = Depends(verify_token),
):
    stats = await sync_products(payload.product_ids or None, context=context)
    return SyncStatsSchema.model_validate(stats)


@router.get("/suppliers", response_model=List[SupplierSchema])
async def list_suppliers(
    context: ImportContext = Depends(get_import_context),
    token: dict = Depends(verify_token),
):
    return [
        SupplierSchema(
            id=s.id,
            name=s.name,
            external_uid=s.external_uid,
            has_feed_format=find_supplier_format(s.name) is not None,
        )
        for s in context.registry.identities()
    ]


@router.get("/coefficients", response_model=List[CoefficientSchema])
async def list_coefficients(
    context: ImportContext = Depends(get_import_context),
    token: dict = Depends(verify_token),
):
    return [CoefficientSchema.model_validate(c) for c in await context.coefficients.list_all()]


@router.post("/coefficients", response_model=CoefficientSchema, status_code=201)
async def create_coefficient(
    payload: CoefficientCreateSchema,
    context: ImportContext = Depends(get_import_context),
    token: dict = Depends(verify_token),
):
    created = await context.coefficients.source.add(payload.supplier, payload.type, payload.brand, payload.coefficient)
    context.coefficients.bump_version()
    return CoefficientSchema.model_validate(created)
