"""
Генератор идентификаторов записей.

Формат: <prefix>_<uuid4 hex>, например "ent_3f2b...". Уникальность не
зависит от времени, поэтому в плотном цикле не бывает коллизий.
Импортёр принимает генератор как Callable[[str], str], тесты
подставляют детерминированный SequentialIdGenerator.
"""

import uuid
import threading
from typing import Callable, Dict

IdGenerator = Callable[[str], str]

ENTITY_PREFIX = "ent"
USER_PREFIX = "user"
PRODUCT_PREFIX = "prod"
ORDER_PREFIX = "ord"
AUDIT_PREFIX = "log"


def generate_id(prefix: str) -> str:
    """Новый глобально уникальный идентификатор с префиксом."""
    return f"{prefix}_{uuid.uuid4().hex}"


class SequentialIdGenerator:
    """
    Детерминированный генератор: <prefix>_<namespace><n>.

    Счётчик ведётся отдельно для каждого префикса.
    """

    def __init__(self, namespace: str = "new"):
        self.namespace = namespace
        self._counters: Dict[str, int] = {}
        self._lock = threading.Lock()

    def __call__(self, prefix: str) -> str:
        with self._lock:
            n = self._counters.get(prefix, 0) + 1
            self._counters[prefix] = n
        return f"{prefix}_{self.namespace}{n}"
