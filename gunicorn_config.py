"""
Конфигурация Gunicorn для production.
Запуск: gunicorn -c gunicorn_config.py backend.app.main:app
"""

import multiprocessing
from pathlib import Path

# Количество воркеров
workers = multiprocessing.cpu_count() * 2 + 1

# Класс воркера (для async приложений)
worker_class = "uvicorn.workers.UvicornWorker"

# Биндинг
bind = "127.0.0.1:8000"

# Логи
log_dir = Path(__file__).parent / "logs"
log_dir.mkdir(exist_ok=True)

accesslog = str(log_dir / "access.log")
errorlog = str(log_dir / "error.log")
loglevel = "info"

# Таймауты
timeout = 30
keepalive = 5

# Перезагрузка воркеров
max_requests = 1000
max_requests_jitter = 50

capture_output = True
