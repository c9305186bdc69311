"""
Simple API for Logging
"""

import logging
from typing import Optional


ROOT_LOGGER_NAME = "stockvault"

_LEVELS = {
    "DEBUG": logging.DEBUG,
    "INFO": logging.INFO,
    "WARNING": logging.WARNING,
    "WARN": logging.WARNING,
    "ERROR": logging.ERROR,
    "CRITICAL": logging.CRITICAL,
}


def log(message: str, level: str = "INFO"):
    """
    Простой API для логирования

    Args:
        message: Сообщение для логирования
        level: Уровень логирования (DEBUG, INFO, WARNING, ERROR, CRITICAL)

    Examples:
        log("[STARTUP] Application initialized")
        log("[IMPORT] Decryption failed", level="ERROR")
    """
    logger = logging.getLogger(ROOT_LOGGER_NAME)
    logger.log(_LEVELS.get(level.upper(), logging.INFO), message)


def get_logger(name: Optional[str] = None) -> logging.Logger:
    """
    Получить logger для модуля (advanced API)

    Args:
        name: Имя модуля (обычно __name__)

    Returns:
        logging.Logger instance
    """
    return logging.getLogger(name or ROOT_LOGGER_NAME)
