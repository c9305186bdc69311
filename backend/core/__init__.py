"""
Core module

Основные компоненты приложения
"""
from .config import create_app, limiter
from .events import create_store, register_startup_events, register_shutdown_events

__all__ = [
    'create_app',
    'limiter',
    'create_store',
    'register_startup_events',
    'register_shutdown_events',
]
