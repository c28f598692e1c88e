"""
API Routes для промокодов.
"""

import logging
import math
from typing import Any, Dict, List, Optional

from fastapi import APIRouter, Body, Depends, HTTPException, Request
from fastapi.exception_handlers import request_validation_exception_handler
from fastapi.exceptions import RequestValidationError
from fastapi.responses import JSONResponse
from pydantic import ValidationError

from ..models.discount import (
    CartSnapshot,
    DiscountCode,
    DiscountCodeCreate,
    DiscountCodeUpdate,
    DiscountRejection,
    DiscountValidate,
    composite_config_error,
)
from ..services.database import DatabaseService, get_db
from ..services.discount_engine import DiscountResolver
from ..services.discount_store import DiscountStore, DiscountStoreError
from .users import get_token_claims, require_admin, resolve_identity

router = APIRouter()
logger = logging.getLogger(__name__)


def get_discount_store(db: DatabaseService = Depends(get_db)) -> DiscountStore:
    return DiscountStore(db)


def get_discount_resolver(store: DiscountStore = Depends(get_discount_store)) -> DiscountResolver:
    return DiscountResolver(store)


def _error(status_code: int, message: str) -> JSONResponse:
    return JSONResponse(status_code=status_code, content={"error": message})


def _validation_message(error: ValidationError) -> str:
    first = error.errors()[0]
    location = ".".join(str(part) for part in first.get("loc", ()))
    return f"{location}: {first['msg']}" if location else first["msg"]


def _is_number(value: Any) -> bool:
    return isinstance(value, (int, float)) and not isinstance(value, bool) and math.isfinite(value)


async def validate_request_error_handler(request: Request, exc: RequestValidationError):
    """Тело /validate, которое не разобрать (не JSON или не объект), даёт 400, а не 422."""
    if request.url.path.rstrip("/").endswith("/discount-codes/validate"):
        logger.info(f"[DISCOUNT] Invalid request body: {len(exc.errors())} error(s)")
        return _error(400, "Invalid request body")
    return await request_validation_exception_handler(request, exc)


@router.post("/validate")
async def validate_discount_code(
    payload: DiscountValidate,
    claims: Optional[Dict[str, Any]] = Depends(get_token_claims),
    resolver: DiscountResolver = Depends(get_discount_resolver)
):
    """Проверяет промокод для корзины и возвращает размер скидки."""
    if not payload.code:
        return _error(400, "Discount code is required")

    if not isinstance(payload.code, str):
        return _error(400, "Discount code must be a string")

    if payload.order_amount is not None and not _is_number(payload.order_amount):
        return _error(400, "Order amount must be a number")

    if payload.email is not None and not isinstance(payload.email, str):
        return _error(400, "Email must be a string")

    # Пустые значения items (false, 0, "") означают, что корзины нет
    if payload.items and not isinstance(payload.items, list):
        return _error(400, "Items must be an array")

    try:
        cart = CartSnapshot(order_amount=payload.order_amount or 0, items=payload.items or [])
    except ValidationError as e:
        logger.info(f"[DISCOUNT] Invalid cart items: {e.error_count()} error(s)")
        return _error(400, "Invalid cart items")

    identity = resolve_identity(claims, payload.email)

    try:
        result = await resolver.resolve(payload.code, cart, identity)
    except DiscountStoreError:
        logger.exception("[DISCOUNT] Store error while validating discount code")
        return _error(500, "Failed to validate discount code")
    except Exception:
        logger.exception("[DISCOUNT] Discount validation error")
        return _error(500, "An error occurred while validating discount code")

    if isinstance(result, DiscountRejection):
        return JSONResponse(status_code=400, content=result.to_response())
    return result.to_response()


@router.get("/")
async def get_discount_codes(
    admin: Dict[str, Any] = Depends(require_admin),
    store: DiscountStore = Depends(get_discount_store)
) -> List[Dict[str, Any]]:
    """Получает список промокодов, новые первыми."""
    try:
        codes = await store.list_codes()
    except DiscountStoreError:
        raise HTTPException(status_code=500, detail="Failed to fetch discount codes")
    return [code.admin_view() for code in codes]


@router.post("/")
async def create_discount_code(
    payload: Dict[str, Any] = Body(...),
    admin: Dict[str, Any] = Depends(require_admin),
    store: DiscountStore = Depends(get_discount_store)
):
    """Создает новый промокод."""
    try:
        code_data = DiscountCodeCreate.model_validate(payload)
    except ValidationError as e:
        raise HTTPException(status_code=400, detail=_validation_message(e))

    row = code_data.to_row()
    try:
        if await store.code_exists(row["code"]):
            raise HTTPException(status_code=400, detail="Discount code already exists")
        created = await store.create_code(row)
    except DiscountStoreError:
        raise HTTPException(status_code=500, detail="Failed to create discount code")

    return {"success": True, "discountCode": created.admin_view()}


@router.put("/{code_id}")
async def update_discount_code(
    code_id: int,
    payload: Dict[str, Any] = Body(...),
    admin: Dict[str, Any] = Depends(require_admin),
    store: DiscountStore = Depends(get_discount_store)
):
    """Обновляет промокод (в том числе включает и выключает его)."""
    try:
        update = DiscountCodeUpdate.model_validate(payload)
    except ValidationError as e:
        raise HTTPException(status_code=400, detail=_validation_message(e))

    try:
        existing = await store.get_code(code_id)
        if existing is None:
            raise HTTPException(status_code=404, detail="Discount code not found")

        row = update.to_row()
        if "code" in row and await store.code_exists(row["code"], exclude_id=code_id):
            raise HTTPException(status_code=400, detail="Discount code already exists")

        # Составной тип проверяем на итоговой записи, а не только на присланных полях
        merged = DiscountCode(**{**existing.model_dump(), **row})
        error = composite_config_error(merged.kind, merged.buy_x, merged.get_x, merged.discount_percentage)
        if error:
            raise HTTPException(status_code=400, detail=error)

        updated = await store.update_code(code_id, row)
    except DiscountStoreError:
        raise HTTPException(status_code=500, detail="Failed to update discount code")

    if updated is None:
        raise HTTPException(status_code=404, detail="Discount code not found")
    return {"success": True, "discountCode": updated.admin_view()}


@router.delete("/{code_id}")
async def delete_discount_code(
    code_id: int,
    admin: Dict[str, Any] = Depends(require_admin),
    store: DiscountStore = Depends(get_discount_store)
):
    """Удаляет промокод."""
    try:
        deleted = await store.delete_code(code_id)
    except DiscountStoreError:
        raise HTTPException(status_code=500, detail="Failed to delete discount code")

    if not deleted:
        raise HTTPException(status_code=404, detail="Discount code not found")
    return {"success": True}
