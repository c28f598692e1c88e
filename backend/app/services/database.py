"""
Сервис для работы с базой данных SQLite.
"""

import aiosqlite
import logging
from pathlib import Path
from typing import Optional, List, Dict, Any, AsyncGenerator
from contextlib import asynccontextmanager

from ..config import settings


logger = logging.getLogger(__name__)


def _unicode_upper(value: Any) -> Any:
    # Встроенный UPPER() в SQLite переводит в верхний регистр только ASCII
    return value.upper() if isinstance(value, str) else value


class DatabaseService:
    """Асинхронный сервис для работы с SQLite."""

    def __init__(self, db_path: Path = settings.DATABASE_PATH):
        self.db_path = db_path
        self._connection: Optional[aiosqlite.Connection] = None

    async def connect(self) -> None:
        """Устанавливает соединение с базой данных."""
        self._connection = await aiosqlite.connect(self.db_path)
        self._connection.row_factory = aiosqlite.Row
        await self._connection.execute("PRAGMA foreign_keys = ON")
        await self._connection.execute("PRAGMA encoding = 'UTF-8'")
        await self._connection.create_function("unicode_upper", 1, _unicode_upper, deterministic=True)
        logger.info(f"[DB] Connected: {self.db_path}")

    async def disconnect(self) -> None:
        """Закрывает соединение с базой данных."""
        if self._connection:
            await self._connection.close()
            self._connection = None
            logger.info("[DB] Disconnected")

    @property
    def connection(self) -> aiosqlite.Connection:
        """Возвращает текущее соединение."""
        if not self._connection:
            raise RuntimeError("Database not connected. Call connect() first.")
        return self._connection

    async def execute(
        self,
        query: str,
        params: tuple = ()
    ) -> aiosqlite.Cursor:
        """Выполняет SQL запрос."""
        return await self.connection.execute(query, params)

    async def commit(self) -> None:
        """Фиксирует транзакцию."""
        await self.connection.commit()

    async def rollback(self) -> None:
        """Откатывает транзакцию."""
        await self.connection.rollback()

    async def fetch_one(
        self,
        query: str,
        params: tuple = ()
    ) -> Optional[Dict[str, Any]]:
        """Выполняет запрос и возвращает одну строку."""
        cursor = await self.execute(query, params)
        row = await cursor.fetchone()
        return dict(row) if row else None

    async def fetch_all(
        self,
        query: str,
        params: tuple = ()
    ) -> List[Dict[str, Any]]:
        """Выполняет запрос и возвращает все строки."""
        cursor = await self.execute(query, params)
        rows = await cursor.fetchall()
        return [dict(row) for row in rows]

    async def fetch_value(
        self,
        query: str,
        params: tuple = ()
    ) -> Any:
        """Выполняет запрос и возвращает первое поле первой строки (например, COUNT(*))."""
        cursor = await self.execute(query, params)
        row = await cursor.fetchone()
        return row[0] if row else None

    async def insert(
        self,
        table: str,
        data: Dict[str, Any]
    ) -> int:
        """Вставляет запись и возвращает ID."""
        columns = ", ".join(data.keys())
        placeholders = ", ".join(["?" for _ in data])
        query = f"INSERT INTO {table} ({columns}) VALUES ({placeholders})"

        cursor = await self.execute(query, tuple(data.values()))
        await self.commit()
        return cursor.lastrowid

    async def update(
        self,
        table: str,
        data: Dict[str, Any],
        where: str,
        where_params: tuple = ()
    ) -> int:
        """Обновляет записи и возвращает количество затронутых строк."""
        set_clause = ", ".join([f"{k} = ?" for k in data.keys()])
        query = f"UPDATE {table} SET {set_clause} WHERE {where}"

        cursor = await self.execute(query, tuple(data.values()) + where_params)
        await self.commit()
        return cursor.rowcount

    async def delete(
        self,
        table: str,
        where: str,
        where_params: tuple = ()
    ) -> int:
        """Удаляет записи и возвращает количество затронутых строк."""
        query = f"DELETE FROM {table} WHERE {where}"
        cursor = await self.execute(query, where_params)
        await self.commit()
        return cursor.rowcount


# Глобальный экземпляр сервиса
_db_service: Optional[DatabaseService] = None


async def get_db() -> AsyncGenerator[DatabaseService, None]:
    """Dependency для FastAPI - возвращает сервис базы данных."""
    global _db_service

    if _db_service is None:
        # Используем глобальный экземпляр, если он уже создан в lifespan
        # Иначе создаем новый с путем по умолчанию
        _db_service = DatabaseService()
        await _db_service.connect()

    yield _db_service


@asynccontextmanager
async def get_db_context(db_path: Path = settings.DATABASE_PATH) -> AsyncGenerator[DatabaseService, None]:
    """Контекстный менеджер для работы с базой данных."""
    db = DatabaseService(db_path=db_path)
    await db.connect()
    try:
        yield db
    finally:
        await db.disconnect()
