"""
Colored Formatter for Console Output
"""

import logging


class Colors:
    """ANSI color codes for terminal output"""
    RESET = '\033[0m'

    DEBUG = '\033[36m'      # Cyan
    INFO = '\033[32m'       # Green
    WARNING = '\033[33m'    # Yellow
    ERROR = '\033[31m'      # Red
    CRITICAL = '\033[35m'   # Magenta

    TIMESTAMP = '\033[90m'  # Dark gray


class ColoredFormatter(logging.Formatter):
    """Форматтер с цветным уровнем и серым timestamp для консоли"""

    LEVEL_COLORS = {
        logging.DEBUG: Colors.DEBUG,
        logging.INFO: Colors.INFO,
        logging.WARNING: Colors.WARNING,
        logging.ERROR: Colors.ERROR,
        logging.CRITICAL: Colors.CRITICAL,
    }

    def format(self, record):
        levelname_original = record.levelname
        level_color = self.LEVEL_COLORS.get(record.levelno, Colors.RESET)
        record.levelname = f"{level_color}{record.levelname:<8}{Colors.RESET}"
        try:
            formatted = super().format(record)
        finally:
            # Другие handlers должны видеть оригинальное имя уровня
            record.levelname = levelname_original

        timestamp, sep, rest = formatted.partition(']')
        if not sep:
            return formatted
        return f"{Colors.TIMESTAMP}{timestamp}]{Colors.RESET}{rest}"
