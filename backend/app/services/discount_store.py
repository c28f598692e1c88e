"""
Хранилище промокодов: чтения для проверки скидки и запись для админ-панели.
"""

import logging
from contextlib import asynccontextmanager
from datetime import datetime, timezone
from typing import Any, Dict, List, Optional

import aiosqlite

from ..models.discount import DiscountCode
from .database import DatabaseService


logger = logging.getLogger(__name__)


class DiscountStoreError(Exception):
    """Хранилище недоступно или запрос завершился ошибкой."""


@asynccontextmanager
async def _store_errors(action: str):
    try:
        yield
    except aiosqlite.Error as e:
        logger.error(f"[DB] Failed to {action}: {e}")
        raise DiscountStoreError(f"Failed to {action}") from e


class DiscountStore:
    """Запросы к таблицам discount_codes и orders."""

    def __init__(self, db: DatabaseService):
        self.db = db

    async def find_active_code(self, normalized_code: str) -> Optional[DiscountCode]:
        """Ищет активный промокод без учёта регистра. Неактивные коды не видны."""
        async with _store_errors("fetch discount code"):
            row = await self.db.fetch_one(
                """SELECT * FROM discount_codes
                   WHERE is_active = 1 AND unicode_upper(code) = ?
                   ORDER BY id
                   LIMIT 1""",
                (normalized_code,)
            )
        return DiscountCode(**row) if row else None

    async def count_user_usage(self, user_id: str, code: str) -> int:
        """Сколько заказов пользователя оформлено с этим промокодом."""
        async with _store_errors("count discount usage for user"):
            count = await self.db.fetch_value(
                "SELECT COUNT(*) FROM orders WHERE user_id = ? AND discount_code = ?",
                (user_id, code)
            )
        return count or 0

    async def count_guest_usage(self, email: str, code: str) -> int:
        """Сколько заказов с этим email в адресе доставки оформлено с промокодом."""
        async with _store_errors("count discount usage for guest"):
            count = await self.db.fetch_value(
                """SELECT COUNT(*) FROM orders
                   WHERE json_valid(shipping_address)
                     AND json_extract(shipping_address, '$.email') = ?
                     AND discount_code = ?""",
                (email, code)
            )
        return count or 0

    async def list_codes(self) -> List[DiscountCode]:
        async with _store_errors("fetch discount codes"):
            rows = await self.db.fetch_all(
                "SELECT * FROM discount_codes ORDER BY created_at DESC, id DESC"
            )
        return [DiscountCode(**row) for row in rows]

    async def get_code(self, code_id: int) -> Optional[DiscountCode]:
        async with _store_errors("fetch discount code"):
            row = await self.db.fetch_one(
                "SELECT * FROM discount_codes WHERE id = ?",
                (code_id,)
            )
        return DiscountCode(**row) if row else None

    async def code_exists(self, code: str, exclude_id: Optional[int] = None) -> bool:
        """Проверяет, занят ли код другим промокодом."""
        async with _store_errors("check discount code"):
            row = await self.db.fetch_one(
                "SELECT id FROM discount_codes WHERE unicode_upper(code) = ? AND id != ?",
                (code.upper(), exclude_id if exclude_id is not None else -1)
            )
        return row is not None

    async def create_code(self, data: Dict[str, Any]) -> DiscountCode:
        now = datetime.now(timezone.utc).isoformat()
        async with _store_errors("create discount code"):
            code_id = await self.db.insert(
                "discount_codes",
                {**data, "created_at": now, "updated_at": now}
            )
            row = await self.db.fetch_one("SELECT * FROM discount_codes WHERE id = ?", (code_id,))
        logger.info(f"[DISCOUNT] Created discount code {data.get('code')} (id={code_id})")
        return DiscountCode(**row)

    async def update_code(self, code_id: int, data: Dict[str, Any]) -> Optional[DiscountCode]:
        data = {**data, "updated_at": datetime.now(timezone.utc).isoformat()}
        async with _store_errors("update discount code"):
            updated = await self.db.update("discount_codes", data, "id = ?", (code_id,))
        if not updated:
            return None
        logger.info(f"[DISCOUNT] Updated discount code id={code_id}: {sorted(data)}")
        return await self.get_code(code_id)

    async def delete_code(self, code_id: int) -> bool:
        async with _store_errors("delete discount code"):
            deleted = await self.db.delete("discount_codes", "id = ?", (code_id,))
        if deleted:
            logger.info(f"[DISCOUNT] Deleted discount code id={code_id}")
        return bool(deleted)
