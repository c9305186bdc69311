"""
Утилиты для работы с датой и временем

Журнал аудита хранит время в UTC (ISO 8601 с суффиксом Z, как веб-консоль),
имя файла экспорта содержит календарную дату.
"""
from datetime import datetime, date, timezone
from typing import Optional


def utcnow() -> datetime:
    """Текущее время в UTC (aware)."""
    return datetime.now(timezone.utc)


def today() -> date:
    """Текущая дата по UTC."""
    return utcnow().date()


def format_iso(dt: Optional[datetime]) -> Optional[str]:
    """
    Форматировать datetime в ISO 8601 строку с миллисекундами.

    Пример:
        >>> format_iso(datetime(2024, 5, 1, 12, 0, 0, tzinfo=timezone.utc))
        '2024-05-01T12:00:00.000Z'
    """
    if dt is None:
        return None
    if dt.tzinfo is not None:
        dt = dt.astimezone(timezone.utc)
    return dt.strftime('%Y-%m-%dT%H:%M:%S.') + f"{dt.microsecond // 1000:03d}Z"


def iso_now() -> str:
    """Текущее время UTC в формате ISO 8601."""
    return format_iso(utcnow())
