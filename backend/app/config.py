"""
Конфигурация приложения.
"""

import logging
from pathlib import Path
from pydantic_settings import BaseSettings, SettingsConfigDict


# Определяем корень проекта (где лежит .env)
PROJECT_ROOT = Path(__file__).parent.parent.parent
ENV_FILE = PROJECT_ROOT / ".env"


class Settings(BaseSettings):
    """Настройки приложения."""

    model_config = SettingsConfigDict(
        env_file=str(ENV_FILE),
        env_file_encoding="utf-8",
        extra="ignore",
    )

    # Приложение
    APP_NAME: str = "Atelier"
    APP_VERSION: str = "0.1.0"
    DEBUG: bool = True
    LOG_LEVEL: str = "INFO"

    # Сервер
    HOST: str = "0.0.0.0"
    PORT: int = 8000

    # База данных
    DATABASE_PATH: Path = PROJECT_ROOT / "database" / "atelier.db"

    # CORS
    CORS_ORIGINS: list = ["*"]

    # Безопасность
    JWT_SECRET: str = "your-secret-key-change-in-production"
    JWT_ALGORITHM: str = "HS256"


# Глобальный экземпляр настроек
settings = Settings()

logger = logging.getLogger(__name__)
logger.debug(f"[CONFIG] Loading from: {ENV_FILE} (exists: {ENV_FILE.exists()})")
