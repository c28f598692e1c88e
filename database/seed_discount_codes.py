"""
Скрипт для добавления тестовых промокодов всех типов в базу данных.
Использование: python database/seed_discount_codes.py
"""

import asyncio
import sys
from pathlib import Path
from datetime import datetime, timedelta, timezone

# Добавляем корень проекта в путь для импорта
PROJECT_ROOT = Path(__file__).parent.parent
sys.path.insert(0, str(PROJECT_ROOT))

from backend.app.config import settings
from backend.app.models.discount import DiscountCodeCreate
from backend.app.services.database import get_db_context
from backend.app.services.discount_store import DiscountStore, DiscountStoreError
from backend.app.services.migrations import apply_migrations


def build_test_codes():
    """Список тестовых промокодов в формате админ-панели."""
    now = datetime.now(timezone.utc)
    return [
        # ========== Процентные скидки ==========
        {"code": "SAVE10", "type": "percentage", "value": 10,
         "description": "10% off the whole order"},
        {"code": "ATELIER20", "type": "percentage", "value": 20, "maxDiscount": 50,
         "minOrderAmount": 100, "expiresAt": (now + timedelta(days=30)).isoformat(),
         "description": "20% off orders over 100, up to 50"},
        # ========== Фиксированные скидки ==========
        {"code": "WELCOME15", "type": "fixed", "value": 15, "maxUses": 1,
         "description": "15 off the first order"},
        # ========== Составные скидки ==========
        {"code": "B1G1", "type": "buyXgetX", "buyX": 1, "getX": 1,
         "description": "Buy 1 get 1 free (cheapest item free)"},
        {"code": "B2G50", "type": "buyXgetYpercent", "buyX": 2, "discountPercentage": 50,
         "description": "Buy 2, get 50% off the next item"},
        # ========== Ещё не действует ==========
        {"code": "SPRING25", "type": "percentage", "value": 25,
         "validFrom": (now + timedelta(days=90)).isoformat(),
         "description": "Spring collection launch"},
    ]


async def seed_discount_codes() -> None:
    """Добавляет тестовые промокоды, пропуская уже существующие."""
    async with get_db_context(settings.DATABASE_PATH) as db:
        print(f"[INFO] Подключение к базе данных: {settings.DATABASE_PATH}")
        await apply_migrations(db)
        store = DiscountStore(db)

        added_count = 0
        skipped_count = 0
        for payload in build_test_codes():
            row = DiscountCodeCreate.model_validate(payload).to_row()
            try:
                if await store.code_exists(row["code"]):
                    print(f"[SKIP] Промокод {row['code']} уже существует")
                    skipped_count += 1
                    continue
                created = await store.create_code(row)
            except DiscountStoreError as e:
                print(f"[ERROR] Ошибка при добавлении промокода {row['code']}: {e}")
                continue
            print(f"[OK] Добавлен промокод: {created.code} (ID: {created.id}) - {created.description}")
            added_count += 1

        print(f"\n[SUCCESS] Добавлено промокодов: {added_count}, пропущено: {skipped_count}")

        print("\n" + "=" * 80)
        print(f"{'Код':<15} {'Тип':<18} {'Значение':<12} {'Статус':<12} {'Действует до':<25}")
        print("=" * 80)
        for code in await store.list_codes():
            view = code.admin_view()
            status_text = "Активен" if view["isActive"] else "Неактивен"
            print(
                f"{view['code']:<15} {view['type']:<18} {view['value']:<12} "
                f"{status_text:<12} {view['expiresAt'] or 'Без срока':<25}"
            )
        print("=" * 80)


if __name__ == "__main__":
    print("=" * 80)
    print("Добавление тестовых промокодов в базу данных")
    print("=" * 80)
    asyncio.run(seed_discount_codes())
