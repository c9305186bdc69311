"""
События запуска и остановки приложения

Startup и shutdown handlers для FastAPI.
Отвечает за создание хранилища и логирование старта/остановки.
"""
from pathlib import Path
from typing import TYPE_CHECKING, Optional

from models.store import InMemoryStore
from utils.logging import log
from utils.config_loader import get_config_value

if TYPE_CHECKING:
    from fastapi import FastAPI

BACKEND_DIR = Path(__file__).parent.parent


def create_store(seed_file: Optional[str] = None) -> InMemoryStore:
    """
    Создать хранилище приложения.

    Args:
        seed_file: JSON с начальными данными (по умолчанию store.seed_file из app.yaml);
                   относительный путь считается от backend/

    Returns:
        InMemoryStore: Пустое или заполненное хранилище
    """
    if seed_file is None:
        seed_file = get_config_value('app', 'store.seed_file', default=None)

    if not seed_file:
        return InMemoryStore()

    path = Path(seed_file)
    if not path.is_absolute():
        path = BACKEND_DIR / path

    if not path.exists():
        log(f"[STARTUP] Seed file not found: {path}, starting with empty store", level="WARNING")
        return InMemoryStore()

    return InMemoryStore.from_file(path)


async def startup_handler(app: 'FastAPI') -> None:
    """Обработчик запуска приложения"""
    store = app.state.store
    log(f"[STARTUP] {app.title} v{app.version} started")
    log(f"[STARTUP] Store: {len(store.entities)} entities, {len(store.users)} users, "
        f"{len(store.products)} products, {len(store.orders)} orders")


async def shutdown_handler(app: 'FastAPI') -> None:
    """Обработчик остановки приложения"""
    log(f"[SHUTDOWN] Audit log entries this session: {len(app.state.store.audit_log)}")
    log("[SHUTDOWN] Application stopped")


def register_startup_events(app: 'FastAPI') -> None:
    """
    Зарегистрировать события запуска.

    Args:
        app: Экземпляр FastAPI приложения
    """
    @app.on_event("startup")
    async def startup_event() -> None:
        await startup_handler(app)


def register_shutdown_events(app: 'FastAPI') -> None:
    """
    Зарегистрировать события остановки.

    Args:
        app: Экземпляр FastAPI приложения
    """
    @app.on_event("shutdown")
    async def shutdown_event() -> None:
        await shutdown_handler(app)
