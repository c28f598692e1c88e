"""
Скрипт инициализации базы данных SQLite.
Создаёт таблицы промокодов и заказов.
Использование: python database/init_db.py [--reset]
"""

import asyncio
import os
import sys
from pathlib import Path

# Добавляем корень проекта в путь для импорта
PROJECT_ROOT = Path(__file__).parent.parent
sys.path.insert(0, str(PROJECT_ROOT))

from backend.app.config import settings
from backend.app.services.database import get_db_context
from backend.app.services.migrations import apply_migrations


async def init_database(reset: bool = False) -> None:
    """
    Инициализирует базу данных.

    Args:
        reset: Если True, удаляет существующую базу и создаёт новую.
    """
    database_path = Path(settings.DATABASE_PATH)
    if reset and database_path.exists():
        os.remove(database_path)
        print(f"[OK] Удалена существующая база данных: {database_path}")

    database_path.parent.mkdir(parents=True, exist_ok=True)

    async with get_db_context(database_path) as db:
        await apply_migrations(db)

        print(f"\n[OK] База данных готова: {database_path}")
        print("\n=== Статистика базы данных ===")
        print("-" * 40)
        for table, label in (("discount_codes", "Промокодов"), ("orders", "Заказов")):
            count = await db.fetch_value(f"SELECT COUNT(*) FROM {table}")
            print(f"  {label}: {count}")


if __name__ == "__main__":
    import argparse

    parser = argparse.ArgumentParser(description="Инициализация базы данных")
    parser.add_argument(
        "--reset",
        action="store_true",
        help="Удалить существующую базу и создать новую"
    )

    args = parser.parse_args()

    print("=" * 50)
    print("  Atelier - Инициализация БД")
    print("=" * 50)
    print()

    asyncio.run(init_database(reset=args.reset))
