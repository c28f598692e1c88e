"""Общие фикстуры тестов промокодов."""

import json
import os
import sqlite3
import tempfile
from datetime import datetime

# Настройки читаются при импорте приложения, поэтому задаём их до импорта backend
_TEST_DIR = tempfile.mkdtemp(prefix="atelier-tests-")
os.environ["DATABASE_PATH"] = os.path.join(_TEST_DIR, "app.db")
os.environ["JWT_SECRET"] = "atelier-test-secret-key-0123456789abcdef"

import jwt
import pytest
import pytest_asyncio
from fastapi.testclient import TestClient

from backend.app.config import settings
from backend.app.main import app
from backend.app.services.database import DatabaseService
from backend.app.services.discount_store import DiscountStore
from backend.app.services.migrations import apply_migrations


def _code_row(code: str, **fields) -> dict:
    row = {
        "code": code,
        "discount_type": "percentage",
        "discount_value": 10,
        "is_active": 1,
        "usage_count": 0,
    }
    row.update(fields)
    for key, value in row.items():
        if isinstance(value, datetime):
            row[key] = value.isoformat()
    return row


def _order_row(discount_code: str, user_id=None, email=None) -> dict:
    address = {"email": email, "city": "Paris"} if email else {"city": "Paris"}
    return {
        "user_id": user_id,
        "shipping_address": json.dumps(address),
        "discount_code": discount_code,
        "total_amount": 100,
    }


# ---------------------------------------------------------------------------
# Асинхронная база для тестов сервиса
# ---------------------------------------------------------------------------

@pytest_asyncio.fixture
async def db(tmp_path):
    """Чистая база в отдельном файле на каждый тест."""
    service = DatabaseService(db_path=tmp_path / "discounts.db")
    await service.connect()
    await apply_migrations(service)
    yield service
    await service.disconnect()


@pytest.fixture
def store(db):
    return DiscountStore(db)


@pytest.fixture
def add_code(db):
    """Добавляет промокод напрямую в таблицу discount_codes."""
    async def _add(code: str, **fields) -> int:
        return await db.insert("discount_codes", _code_row(code, **fields))
    return _add


@pytest.fixture
def add_order(db):
    """Добавляет заказ, оформленный с промокодом."""
    async def _add(discount_code: str, user_id=None, email=None) -> int:
        return await db.insert("orders", _order_row(discount_code, user_id, email))
    return _add


# ---------------------------------------------------------------------------
# HTTP-клиент поверх общей тестовой базы приложения
# ---------------------------------------------------------------------------

@pytest.fixture
def client():
    """TestClient с запущенным lifespan и очищенными таблицами."""
    with TestClient(app) as test_client:
        with sqlite3.connect(settings.DATABASE_PATH) as conn:
            conn.execute("DELETE FROM orders")
            conn.execute("DELETE FROM discount_codes")
        yield test_client


@pytest.fixture
def sql():
    """Синхронный доступ к базе приложения для подготовки данных."""
    class _Sql:
        def add_code(self, code: str, **fields) -> int:
            return self._insert("discount_codes", _code_row(code, **fields))

        def add_order(self, discount_code: str, user_id=None, email=None) -> int:
            return self._insert("orders", _order_row(discount_code, user_id, email))

        def execute(self, query: str, params: tuple = ()):
            with sqlite3.connect(settings.DATABASE_PATH) as conn:
                conn.execute(query, params)

        def fetch_one(self, query: str, params: tuple = ()):
            with sqlite3.connect(settings.DATABASE_PATH) as conn:
                conn.row_factory = sqlite3.Row
                row = conn.execute(query, params).fetchone()
                return dict(row) if row else None

        def _insert(self, table: str, data: dict) -> int:
            columns = ", ".join(data)
            placeholders = ", ".join("?" for _ in data)
            with sqlite3.connect(settings.DATABASE_PATH) as conn:
                cursor = conn.execute(
                    f"INSERT INTO {table} ({columns}) VALUES ({placeholders})",
                    tuple(data.values())
                )
                return cursor.lastrowid

    return _Sql()


def make_token(**claims) -> str:
    return jwt.encode(claims, settings.JWT_SECRET, algorithm=settings.JWT_ALGORITHM)


@pytest.fixture
def user_headers():
    def _headers(user_id="user-1"):
        return {"Authorization": f"Bearer {make_token(userId=user_id, role='customer')}"}
    return _headers


@pytest.fixture
def admin_headers():
    return {"Authorization": f"Bearer {make_token(userId='admin-1', role='admin')}"}
