"""
Сборка приложения FastAPI StockVault: rate limiter, обработчик
необработанных ошибок, CORS для веб-консоли.
"""
import uuid
import traceback
from typing import List

from fastapi import FastAPI, Request
from fastapi.responses import JSONResponse
from fastapi.middleware.cors import CORSMiddleware
from slowapi import Limiter, _rate_limit_exceeded_handler
from slowapi.util import get_remote_address
from slowapi.errors import RateLimitExceeded

from utils.config_loader import get_config_value
from utils.logging import log

DEFAULT_CORS_ORIGINS = ["http://localhost:3000", "http://127.0.0.1:3000"]

# Заголовки, которые веб-консоль читает из ответов экспорта/импорта
EXPOSED_HEADERS = ["Content-Disposition", "X-Export-Stats", "X-Error-Code"]

limiter = Limiter(
    key_func=get_remote_address,
    enabled=bool(get_config_value('security', 'security.rate_limit.enabled', default=True))
)


async def unhandled_exception_handler(request: Request, exc: Exception) -> JSONResponse:
    """
    JSON 500 с коротким id ошибки; по id запись находится в логе.

    Текст исключения отдаётся клиенту только в debug-режиме.
    """
    error_id = uuid.uuid4().hex[:12]
    log(f"[ERROR-{error_id}] {request.method} {request.url.path}: {type(exc).__name__}: {exc}", level="ERROR")
    log(f"[ERROR-{error_id}] {traceback.format_exc()}", level="DEBUG")

    return JSONResponse(
        status_code=500,
        content={
            "detail": str(exc) if request.app.debug else "Internal server error",
            "error_id": error_id,
            "type": type(exc).__name__,
        }
    )


def create_app() -> FastAPI:
    """
    Создать приложение без роутеров (их подключает main.py или тест).

    Returns:
        FastAPI: Приложение с limiter, обработчиком ошибок и CORS
    """
    app = FastAPI(
        title=get_config_value('app', 'app.name', default='StockVault Console'),
        description="Зашифрованный экспорт и импорт данных сущностей складской консоли",
        version=get_config_value('app', 'app.version', default='1.0.0'),
        debug=bool(get_config_value('app', 'app.debug', default=False))
    )

    app.state.limiter = limiter
    app.add_exception_handler(RateLimitExceeded, _rate_limit_exceeded_handler)
    app.add_exception_handler(Exception, unhandled_exception_handler)

    setup_cors(app)
    return app


def setup_cors(app: FastAPI) -> None:
    """CORS для веб-консоли; origins из app.yaml (cors.origins)"""
    origins: List[str] = get_config_value('app', 'cors.origins', default=None) or DEFAULT_CORS_ORIGINS
    allow_all = "*" in origins

    app.add_middleware(
        CORSMiddleware,
        allow_origins=["*"] if allow_all else origins,
        allow_credentials=not allow_all,
        allow_methods=["GET", "POST", "OPTIONS"],
        allow_headers=["Content-Type", "Accept", "X-User-Id"],
        expose_headers=EXPOSED_HEADERS,
    )
