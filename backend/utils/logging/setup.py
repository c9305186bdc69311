"""
Logger Configuration and Setup
"""

import sys
import logging
from logging.handlers import RotatingFileHandler
from pathlib import Path
from typing import Optional

from .filters import SensitiveDataFilter
from .formatters import ColoredFormatter


PROJECT_ROOT = Path(__file__).resolve().parent.parent.parent.parent
DEFAULT_LOG_DIR = PROJECT_ROOT / "logs"

DATE_FORMAT = '%Y-%m-%d %H:%M:%S'


def setup_logging(
    log_dir: Optional[str] = None,
    log_file: str = "stockvault.log",
    console_level: int = logging.INFO,
    file_level: int = logging.DEBUG,
    max_bytes: int = 50 * 1024 * 1024,  # 50MB per file
    backup_count: int = 20,
    enable_colors: bool = True,
    enable_file: bool = True
):
    """
    Настройка системы логирования

    Args:
        log_dir: Директория для логов (по умолчанию <project>/logs)
        log_file: Имя файла лога
        console_level: Уровень логирования для консоли
        file_level: Уровень логирования для файла
        max_bytes: Максимальный размер файла лога (байты)
        backup_count: Количество backup файлов
        enable_colors: Включить цветной вывод
        enable_file: Писать ли лог в файл
    """
    root_logger = logging.getLogger()
    root_logger.setLevel(logging.DEBUG)
    root_logger.handlers.clear()

    # ==================
    # CONSOLE HANDLER
    # ==================

    console_handler = logging.StreamHandler(sys.stdout)
    console_handler.setLevel(console_level)

    if enable_colors and sys.stdout.isatty():
        console_formatter = ColoredFormatter(
            '[%(asctime)s.%(msecs)03d] [%(levelname)s] %(message)s',
            datefmt=DATE_FORMAT
        )
    else:
        console_formatter = logging.Formatter(
            '[%(asctime)s.%(msecs)03d] [%(levelname)-8s] %(message)s',
            datefmt=DATE_FORMAT
        )

    console_handler.setFormatter(console_formatter)
    console_handler.addFilter(SensitiveDataFilter())
    root_logger.addHandler(console_handler)

    # ==================
    # FILE HANDLER (with rotation)
    # ==================

    log_path = Path(log_dir) if log_dir else DEFAULT_LOG_DIR
    if enable_file:
        log_path.mkdir(parents=True, exist_ok=True)
        file_handler = RotatingFileHandler(
            log_path / log_file,
            maxBytes=max_bytes,
            backupCount=backup_count,
            encoding='utf-8'
        )
        file_handler.setLevel(file_level)
        file_handler.setFormatter(logging.Formatter(
            '[%(asctime)s.%(msecs)03d] [%(levelname)-8s] [%(name)s] %(message)s',
            datefmt=DATE_FORMAT
        ))
        file_handler.addFilter(SensitiveDataFilter())
        root_logger.addHandler(file_handler)

    logging.info("=" * 60)
    logging.info("StockVault Logging System Initialized")
    if enable_file:
        logging.info(f"   Log file: {(log_path / log_file).absolute()}")
        logging.info(f"   Max file size: {max_bytes / (1024*1024):.1f}MB, backups: {backup_count}")
    logging.info("=" * 60)

    for logger_name in ('urllib3', 'httpx', 'httpcore', 'asyncio', 'watchfiles'):
        logging.getLogger(logger_name).setLevel(logging.WARNING)
