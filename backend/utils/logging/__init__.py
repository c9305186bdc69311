"""
Logging System for StockVault
=============================

Features:
- Millisecond precision timestamps
- Colored console output (level-based)
- Automatic password/hash/token filtering
- File rotation
- Simple API: log(message, level="INFO")

Usage:
    from utils.logging import log, get_logger, setup_logging

    # Simple API:
    log("[EXPORT] Entity exported")
    log("Failed to decrypt", level="ERROR")

    # Advanced API:
    logger = get_logger(__name__)
    logger.info("Processing data...")
"""

from .api import log, get_logger
from .setup import setup_logging
from .filters import SensitiveDataFilter
from .formatters import Colors, ColoredFormatter

__all__ = [
    'log',
    'get_logger',
    'setup_logging',
    'SensitiveDataFilter',
    'Colors',
    'ColoredFormatter',
]
