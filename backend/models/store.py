"""
Хранилище записей консоли в памяти.

Единственный объект состояния приложения: сущности, пользователи,
товары, заказы, категории, поставщики и журнал аудита. Передаётся
явно (app.state.store + Depends(get_store)), тесты подставляют свой.
Все изменения выполняются под блокировкой, наружу отдаются копии.
"""
import copy
import json
import logging
import threading
from pathlib import Path
from typing import Any, Dict, Iterable, List, Optional, Set

from fastapi import Request

from models.schemas import StoreSeed

logger = logging.getLogger(__name__)

Record = Dict[str, Any]

COLLECTIONS = ("entities", "users", "products", "orders", "categories", "suppliers", "audit_log")


class InMemoryStore:
    """
    Коллекции записей (dict с camelCase-ключами) в памяти процесса.
    """

    def __init__(
        self,
        entities: Optional[Iterable[Record]] = None,
        users: Optional[Iterable[Record]] = None,
        products: Optional[Iterable[Record]] = None,
        orders: Optional[Iterable[Record]] = None,
        categories: Optional[Iterable[Record]] = None,
        suppliers: Optional[Iterable[Record]] = None,
        audit_log: Optional[Iterable[Record]] = None,
    ):
        self._lock = threading.RLock()
        self.entities: List[Record] = copy.deepcopy(list(entities or []))
        self.users: List[Record] = copy.deepcopy(list(users or []))
        self.products: List[Record] = copy.deepcopy(list(products or []))
        self.orders: List[Record] = copy.deepcopy(list(orders or []))
        self.categories: List[Record] = copy.deepcopy(list(categories or []))
        self.suppliers: List[Record] = copy.deepcopy(list(suppliers or []))
        self.audit_log: List[Record] = copy.deepcopy(list(audit_log or []))

    @classmethod
    def from_file(cls, path: Path) -> "InMemoryStore":
        """Загрузить начальные данные из JSON-файла {"entities": [...], ...}"""
        with open(path, 'r', encoding='utf-8') as f:
            data = json.load(f)
        # Проверка структуры; в хранилище попадают исходные записи
        StoreSeed.model_validate(data)
        store = cls(**{name: data.get(name, []) for name in COLLECTIONS})
        logger.info(f"Хранилище загружено из {path}: сущностей {len(store.entities)}")
        return store

    # ==================== ЧТЕНИЕ ====================

    def list_entities(self) -> List[Record]:
        with self._lock:
            return copy.deepcopy(self.entities)

    def get_entity(self, entity_id: str) -> Optional[Record]:
        with self._lock:
            for entity in self.entities:
                if entity.get("id") == entity_id:
                    return copy.deepcopy(entity)
        return None

    def snapshot(self) -> Dict[str, List[Record]]:
        """Копия всех коллекций"""
        with self._lock:
            return {name: copy.deepcopy(getattr(self, name)) for name in COLLECTIONS}

    def count_for_entity(self, entity_id: str) -> Dict[str, int]:
        with self._lock:
            return {
                "users": sum(1 for u in self.users if u.get("entityId") == entity_id),
                "products": sum(1 for p in self.products if p.get("entityId") == entity_id),
                "orders": sum(1 for o in self.orders if o.get("entityId") == entity_id),
            }

    def find_user_by_email(self, email: str) -> Optional[Record]:
        needle = email.strip().lower()
        with self._lock:
            for user in self.users:
                if str(user.get("email", "")).lower() == needle:
                    return copy.deepcopy(user)
        return None

    def emails_in_use(self, exclude_entity_id: Optional[str] = None) -> Set[str]:
        """Email пользователей (в нижнем регистре), кроме пользователей exclude_entity_id"""
        with self._lock:
            return {
                str(u["email"]).lower()
                for u in self.users
                if u.get("email") and u.get("entityId") != exclude_entity_id
            }

    # ==================== ЗАПИСЬ ====================

    def add_entity_records(
        self,
        entity: Record,
        users: List[Record],
        products: List[Record],
        orders: List[Record]
    ) -> None:
        """
        Добавить новую сущность вместе с её записями.

        Raises:
            ValueError: Если сущность с таким id уже существует
        """
        with self._lock:
            if any(e.get("id") == entity.get("id") for e in self.entities):
                raise ValueError(f"Сущность {entity.get('id')} уже существует")
            self.entities.append(copy.deepcopy(entity))
            self.users.extend(copy.deepcopy(users))
            self.products.extend(copy.deepcopy(products))
            self.orders.extend(copy.deepcopy(orders))

    def replace_entity_records(
        self,
        entity_id: str,
        users: List[Record],
        products: List[Record],
        orders: List[Record]
    ) -> Dict[str, int]:
        """
        Заменить пользователей, товары и заказы сущности.

        Returns:
            Количество удалённых записей по коллекциям
        """
        with self._lock:
            removed = self.count_for_entity(entity_id)
            self.users = [u for u in self.users if u.get("entityId") != entity_id]
            self.products = [p for p in self.products if p.get("entityId") != entity_id]
            self.orders = [o for o in self.orders if o.get("entityId") != entity_id]
            self.users.extend(copy.deepcopy(users))
            self.products.extend(copy.deepcopy(products))
            self.orders.extend(copy.deepcopy(orders))
        return removed

    def append_audit(self, entry: Record) -> None:
        with self._lock:
            self.audit_log.append(dict(entry))


def get_store(request: Request) -> InMemoryStore:
    """Dependency: хранилище текущего приложения"""
    return request.app.state.store
