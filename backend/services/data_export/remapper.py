"""
Перенос записей из файла экспорта в пространство идентификаторов консоли.

Два режима:
- импорт как новой сущности: все id генерируются заново, ссылки заказов
  на пользователей и товары переписываются по таблицам old id -> new id;
- замена данных существующей сущности: id сохраняются, меняется только entityId.

Функции чистые: входной bundle не изменяется, результат не разделяет
с ним вложенных объектов. Хэширование паролей выполняет импортёр.
"""

import copy
import logging
from dataclasses import dataclass, field, asdict
from typing import Any, Dict, List, Mapping, Optional, Set

from services.id_generator import (
    IdGenerator,
    generate_id,
    ENTITY_PREFIX,
    USER_PREFIX,
    PRODUCT_PREFIX,
    ORDER_PREFIX,
)

logger = logging.getLogger(__name__)

Record = Dict[str, Any]

# Префикс id администратора в файлах старой веб-консоли
LEGACY_ADMIN_ID_PREFIX = "user_admin"

MAX_ID_ATTEMPTS = 100


@dataclass(frozen=True)
class DanglingReference:
    """Заказ ссылается на пользователя или товар, которого нет в файле."""
    kind: str          # "user" | "product"
    order_id: str      # id заказа в файле
    missing_id: str    # id, который не удалось разрешить

    def to_dict(self) -> Dict[str, str]:
        return asdict(self)


@dataclass
class RemappedRecords:
    """Записи, готовые к слиянию с хранилищем."""
    entity: Optional[Record]
    users: List[Record]
    products: List[Record]
    orders: List[Record]
    dangling_references: List[DanglingReference] = field(default_factory=list)
    user_id_map: Dict[str, str] = field(default_factory=dict)
    product_id_map: Dict[str, str] = field(default_factory=dict)
    order_id_map: Dict[str, str] = field(default_factory=dict)

    def counts(self) -> Dict[str, int]:
        return {
            "users": len(self.users),
            "products": len(self.products),
            "orders": len(self.orders),
        }


def _bundle_ids(bundle: Mapping[str, Any]) -> Set[str]:
    ids = {str(bundle["entity"].get("id"))}
    for name in ("users", "products", "orders"):
        ids.update(str(r.get("id")) for r in bundle.get(name) or [])
    return ids


class _FreshIds:
    """Выдаёт id, не пересекающиеся с id файла и между собой."""

    def __init__(self, id_generator: IdGenerator, reserved: Set[str]):
        self.id_generator = id_generator
        self.used = set(reserved)

    def next(self, prefix: str) -> str:
        for _ in range(MAX_ID_ATTEMPTS):
            new_id = self.id_generator(prefix)
            if new_id not in self.used:
                self.used.add(new_id)
                return new_id
        raise RuntimeError(f"Генератор id не выдал уникальный id с префиксом '{prefix}'")


def _is_admin(user: Mapping[str, Any]) -> bool:
    # Только настоящий bool; строки вроде "false" не считаются флагом
    if isinstance(user.get("isAdmin"), bool):
        return user["isAdmin"]
    return str(user.get("id", "")).startswith(LEGACY_ADMIN_ID_PREFIX)


def _resolve(
    old_id: Any,
    id_map: Mapping[str, str],
    kind: str,
    order_id: str,
    dangling: List[DanglingReference]
) -> Optional[str]:
    if old_id is None or old_id == "":
        return None
    new_id = id_map.get(old_id)
    if new_id is None:
        ref = DanglingReference(kind=kind, order_id=order_id, missing_id=str(old_id))
        dangling.append(ref)
        logger.warning(f"Заказ {order_id}: ссылка на {kind} {old_id} отсутствует в файле, сброшена")
    return new_id


def apply_import_as_new_entity(
    bundle: Mapping[str, Any],
    id_generator: IdGenerator = generate_id
) -> RemappedRecords:
    """
    Подготовить содержимое файла к добавлению как новой сущности.

    Args:
        bundle: Проверенное содержимое файла (entity, users, products, orders)
        id_generator: Источник новых id, вызывается с префиксом

    Returns:
        RemappedRecords с новыми id; неразрешимые ссылки заказов равны None
        и перечислены в dangling_references
    """
    fresh = _FreshIds(id_generator, _bundle_ids(bundle))

    entity = copy.deepcopy(dict(bundle["entity"]))
    old_entity_id = entity.get("id")
    new_entity_id = fresh.next(ENTITY_PREFIX)
    entity["id"] = new_entity_id

    user_id_map: Dict[str, str] = {}
    users: List[Record] = []
    for source in bundle.get("users") or []:
        user = copy.deepcopy(dict(source))
        user["isAdmin"] = _is_admin(source)
        user["id"] = fresh.next(USER_PREFIX)
        user["entityId"] = new_entity_id
        user_id_map.setdefault(source.get("id"), user["id"])
        users.append(user)

    product_id_map: Dict[str, str] = {}
    products: List[Record] = []
    for source in bundle.get("products") or []:
        product = copy.deepcopy(dict(source))
        product["id"] = fresh.next(PRODUCT_PREFIX)
        product["entityId"] = new_entity_id
        product_id_map.setdefault(source.get("id"), product["id"])
        products.append(product)

    dangling: List[DanglingReference] = []
    order_id_map: Dict[str, str] = {}
    orders: List[Record] = []
    for source in bundle.get("orders") or []:
        old_order_id = str(source.get("id"))
        order = copy.deepcopy(dict(source))
        order["id"] = fresh.next(ORDER_PREFIX)
        order["entityId"] = new_entity_id
        order["userId"] = _resolve(source.get("userId"), user_id_map, "user", old_order_id, dangling)
        order["items"] = [
            {**item, "productId": _resolve(item.get("productId"), product_id_map, "product", old_order_id, dangling)}
            for item in order.get("items") or []
        ]
        order_id_map.setdefault(old_order_id, order["id"])
        orders.append(order)

    logger.info(
        f"Сущность {old_entity_id} -> {new_entity_id}: пользователей {len(users)}, "
        f"товаров {len(products)}, заказов {len(orders)}, битых ссылок {len(dangling)}"
    )

    return RemappedRecords(
        entity=entity,
        users=users,
        products=products,
        orders=orders,
        dangling_references=dangling,
        user_id_map=user_id_map,
        product_id_map=product_id_map,
        order_id_map=order_id_map,
    )


def apply_import_replacing_entity(bundle: Mapping[str, Any], target_entity_id: str) -> RemappedRecords:
    """
    Подготовить содержимое файла к замене данных сущности target_entity_id.

    id записей не меняются, ссылки заказов не переписываются.
    Метаданные целевой сущности остаются прежними (entity=None).
    Повторный вызов с теми же аргументами даёт тот же результат.
    """
    def rebind(records) -> List[Record]:
        result = []
        for source in records or []:
            record = copy.deepcopy(dict(source))
            record["entityId"] = target_entity_id
            result.append(record)
        return result

    users = rebind(bundle.get("users"))
    for user in users:
        user["isAdmin"] = _is_admin(user)

    return RemappedRecords(
        entity=None,
        users=users,
        products=rebind(bundle.get("products")),
        orders=rebind(bundle.get("orders")),
    )
