"""
Sensitive Data Filter for Logging
"""

import logging
import re


class SensitiveDataFilter(logging.Filter):
    """Автоматически скрывает пароли, хэши паролей и токены в лог-сообщениях"""

    PATTERNS = [
        # Хэши паролей passlib ($pbkdf2-sha256$..., $2b$...)
        (re.compile(r'\$(?:pbkdf2-sha256|pbkdf2-sha512|2[aby])\$[^\s"\',}]+'),
         '***HASH***'),

        # passwordHash / password_hash
        (re.compile(r'password_?hash["\']?\s*[:=]\s*["\']?([^"\'\s,}]+)', re.IGNORECASE),
         'passwordHash=***HIDDEN***'),

        # Passwords
        (re.compile(r'password["\']?\s*[:=]\s*["\']?([^"\'\s,}]+)', re.IGNORECASE),
         'password=***HIDDEN***'),

        # Tokens
        (re.compile(r'Bearer\s+([A-Za-z0-9\-._~+/]+)'), 'Bearer ***HIDDEN***'),
        (re.compile(r'token["\']?\s*[:=]\s*["\']?([^"\'\s,}]{20,})', re.IGNORECASE),
         'token=***HIDDEN***'),
    ]

    def filter(self, record):
        """Фильтрует чувствительные данные из лог-сообщений"""
        if record.args:
            try:
                message = record.getMessage()
            except (TypeError, ValueError):
                return True
            record.msg, record.args = message, None

        if isinstance(record.msg, str):
            for pattern, replacement in self.PATTERNS:
                record.msg = pattern.sub(replacement, record.msg)
        return True
