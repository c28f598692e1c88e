"""
Atelier storefront - FastAPI Backend
"""

import logging
from contextlib import asynccontextmanager
from fastapi import FastAPI
from fastapi.exceptions import RequestValidationError
from fastapi.middleware.cors import CORSMiddleware

from .config import settings
from .services import database
from .services.database import DatabaseService
from .services.migrations import apply_migrations
from .routes import users_router, discount_codes_router
from .routes.discount_codes import validate_request_error_handler


logging.basicConfig(
    level=settings.LOG_LEVEL.upper(),
    format="%(asctime)s %(levelname)s %(name)s %(message)s",
)
logger = logging.getLogger(__name__)


@asynccontextmanager
async def lifespan(app: FastAPI):
    """Lifecycle управление приложением."""
    # Startup
    # Используем путь из настроек, чтобы он был единым для всего приложения
    database._db_service = DatabaseService(db_path=settings.DATABASE_PATH)
    await database._db_service.connect()

    try:
        await apply_migrations(database._db_service)
    except Exception as migration_error:
        logger.warning(f"[MIGRATION] Migration error: {migration_error}")
        await database._db_service.rollback()

    yield

    # Shutdown
    if database._db_service:
        await database._db_service.disconnect()
        database._db_service = None


# Создаём приложение
app = FastAPI(
    title=settings.APP_NAME,
    version=settings.APP_VERSION,
    description="API магазина ателье: промокоды и расчёт скидок",
    lifespan=lifespan,
)

# CORS middleware
app.add_middleware(
    CORSMiddleware,
    allow_origins=settings.CORS_ORIGINS,
    allow_credentials=True,
    allow_methods=["*"],
    allow_headers=["*"],
)

# Подключаем роутеры
app.include_router(users_router, prefix="/api/users", tags=["Users"])
app.include_router(discount_codes_router, prefix="/api/discount-codes", tags=["Discount codes"])

# Ошибки разбора тела /validate отдаём в формате {"error": ...}
app.add_exception_handler(RequestValidationError, validate_request_error_handler)


@app.get("/health")
@app.get("/api/health")
async def health_check():
    """Проверка здоровья сервиса."""
    return {"status": "healthy"}
