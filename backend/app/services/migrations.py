"""
Создание и миграции схемы базы данных при старте приложения.
"""

import logging
from typing import Dict

from .database import DatabaseService


logger = logging.getLogger(__name__)


DISCOUNT_CODES_TABLE = """
    CREATE TABLE IF NOT EXISTS discount_codes (
        id INTEGER PRIMARY KEY AUTOINCREMENT,
        code TEXT NOT NULL UNIQUE,
        description TEXT,
        discount_type TEXT NOT NULL DEFAULT 'percentage',
        discount_value REAL NOT NULL DEFAULT 0,
        original_type TEXT,
        min_purchase REAL,
        max_discount REAL,
        valid_from TIMESTAMP,
        valid_until TIMESTAMP,
        usage_limit INTEGER,
        usage_count INTEGER DEFAULT 0,
        is_active INTEGER DEFAULT 1,
        buy_x INTEGER,
        get_x INTEGER,
        discount_percentage REAL,
        created_at TIMESTAMP DEFAULT CURRENT_TIMESTAMP,
        updated_at TIMESTAMP DEFAULT CURRENT_TIMESTAMP
    )
"""

ORDERS_TABLE = """
    CREATE TABLE IF NOT EXISTS orders (
        id INTEGER PRIMARY KEY AUTOINCREMENT,
        order_number TEXT UNIQUE,
        user_id TEXT,
        shipping_address TEXT DEFAULT '{}',
        total_amount REAL DEFAULT 0,
        discount_code TEXT,
        discount_amount REAL DEFAULT 0,
        status TEXT DEFAULT 'pending',
        created_at TIMESTAMP DEFAULT CURRENT_TIMESTAMP,
        updated_at TIMESTAMP DEFAULT CURRENT_TIMESTAMP
    )
"""

# Колонки, которых может не быть в таблицах, созданных до появления составных скидок
DISCOUNT_CODES_COLUMNS: Dict[str, str] = {
    "description": "TEXT",
    "original_type": "TEXT",
    "min_purchase": "REAL",
    "max_discount": "REAL",
    "valid_from": "TIMESTAMP",
    "valid_until": "TIMESTAMP",
    "usage_limit": "INTEGER",
    "usage_count": "INTEGER DEFAULT 0",
    "is_active": "INTEGER DEFAULT 1",
    "buy_x": "INTEGER",
    "get_x": "INTEGER",
    "discount_percentage": "REAL",
    "created_at": "TIMESTAMP",
    "updated_at": "TIMESTAMP",
}

ORDERS_COLUMNS: Dict[str, str] = {
    "shipping_address": "TEXT DEFAULT '{}'",
    "discount_code": "TEXT",
    "discount_amount": "REAL DEFAULT 0",
}


async def _table_exists(db: DatabaseService, table: str) -> bool:
    rows = await db.fetch_all(
        "SELECT name FROM sqlite_master WHERE type='table' AND name=?",
        (table,)
    )
    return bool(rows)


async def _add_missing_columns(db: DatabaseService, table: str, required: Dict[str, str]) -> None:
    """Добавляет в таблицу недостающие колонки."""
    columns = await db.fetch_all(f"PRAGMA table_info({table})")
    existing = {col["name"] for col in columns}

    for column_name, column_definition in required.items():
        if column_name in existing:
            continue
        logger.info(f"[MIGRATION] Adding {column_name} column to {table} table...")
        await db.execute(f"ALTER TABLE {table} ADD COLUMN {column_name} {column_definition}")
        await db.commit()


async def apply_migrations(db: DatabaseService) -> None:
    """Создаёт таблицы скидок и заказов и дополняет старые схемы."""
    for table, ddl, required in (
        ("discount_codes", DISCOUNT_CODES_TABLE, DISCOUNT_CODES_COLUMNS),
        ("orders", ORDERS_TABLE, ORDERS_COLUMNS),
    ):
        if not await _table_exists(db, table):
            logger.info(f"[MIGRATION] Creating {table} table...")
            await db.execute(ddl)
            await db.commit()
        else:
            await _add_missing_columns(db, table, required)

    # Индексы под запросы подсчёта использований промокода
    await db.execute(
        "CREATE INDEX IF NOT EXISTS idx_orders_user_discount ON orders (user_id, discount_code)"
    )
    await db.execute(
        "CREATE INDEX IF NOT EXISTS idx_orders_discount_code ON orders (discount_code)"
    )
    await db.commit()
    logger.info("[MIGRATION] Schema is up to date")
