"""
Запуск API сервера.
"""

import os
import uvicorn
from dotenv import load_dotenv

# Загружаем переменные окружения
load_dotenv()


def run_api_server(reload: bool = False) -> None:
    """Запускает FastAPI сервер."""
    from backend.app.config import settings

    host = os.getenv("HOST", settings.HOST)
    port = int(os.getenv("PORT", settings.PORT))

    print(f"[INFO] Starting API server on http://{host}:{port}")
    print(f"[INFO] Docs: http://{host}:{port}/docs")

    uvicorn.run(
        "backend.app.main:app",
        host=host,
        port=port,
        reload=reload,
        log_level=settings.LOG_LEVEL.lower(),
    )


if __name__ == "__main__":
    try:
        run_api_server(reload=os.getenv("RELOAD", "").lower() in ("1", "true", "yes"))
    except KeyboardInterrupt:
        print("\n[INFO] Shutting down...")
    finally:
        print("[INFO] Stopped")
