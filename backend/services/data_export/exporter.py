"""
Модуль экспорта данных сущности.

Экспортирует данные одной сущности:
- Метаданные сущности
- Пользователи (с хешами паролей)
- Товары
- Заказы

Категории и поставщики в файл не входят.
"""

import re
import logging
from typing import Any, Dict, Iterable, List, Mapping, Optional

from utils.config_loader import get_config_value
from utils.datetime_utils import today, iso_now
from services.id_generator import generate_id, AUDIT_PREFIX

from .crypto import DataCrypto, DataCryptoError
from .remapper import DanglingReference

logger = logging.getLogger(__name__)

Record = Dict[str, Any]


class EntityNotFound(LookupError):
    """Сущность с указанным id отсутствует."""


class BundleIntegrityError(ValueError):
    """Заказы сущности ссылаются на записи вне экспортируемого набора."""

    def __init__(self, dangling_references: List[DanglingReference]):
        self.dangling_references = dangling_references
        super().__init__(f"Найдено битых ссылок: {len(dangling_references)}")


def build_export_bundle(
    entity_id: str,
    entities: Iterable[Mapping[str, Any]],
    users: Iterable[Mapping[str, Any]],
    products: Iterable[Mapping[str, Any]],
    orders: Iterable[Mapping[str, Any]]
) -> Dict[str, Any]:
    """
    Собрать содержимое файла экспорта для сущности.

    Записи фильтруются по entityId; входные коллекции не изменяются.

    Raises:
        EntityNotFound: Сущности нет среди entities
    """
    entity = next((e for e in entities if e.get("id") == entity_id), None)
    if entity is None:
        raise EntityNotFound(entity_id)

    return {
        "entity": dict(entity),
        "users": [dict(u) for u in users if u.get("entityId") == entity_id],
        "products": [dict(p) for p in products if p.get("entityId") == entity_id],
        "orders": [dict(o) for o in orders if o.get("entityId") == entity_id],
    }


def check_bundle_integrity(bundle: Mapping[str, Any]) -> List[DanglingReference]:
    """Найти ссылки заказов на пользователей и товары, отсутствующие в bundle."""
    user_ids = {u.get("id") for u in bundle.get("users") or []}
    product_ids = {p.get("id") for p in bundle.get("products") or []}

    dangling = []
    for order in bundle.get("orders") or []:
        order_id = str(order.get("id"))
        user_id = order.get("userId")
        if user_id and user_id not in user_ids:
            dangling.append(DanglingReference("user", order_id, str(user_id)))
        for item in order.get("items") or []:
            product_id = item.get("productId")
            if product_id and product_id not in product_ids:
                dangling.append(DanglingReference("product", order_id, str(product_id)))
    return dangling


def ensure_bundle_integrity(bundle: Mapping[str, Any]) -> None:
    """
    Raises:
        BundleIntegrityError: Если в bundle есть битые ссылки
    """
    dangling = check_bundle_integrity(bundle)
    if dangling:
        raise BundleIntegrityError(dangling)


def make_export_filename(entity_name: str, on_date=None) -> str:
    """<имя сущности>_backup_<YYYY-MM-DD>.json"""
    suffix = get_config_value('app', 'export.filename_suffix', default='_backup_')
    extension = get_config_value('app', 'export.filename_extension', default='.json')
    # Символы, недопустимые в именах файлов
    name = re.sub(r'[\\/:*?"<>|\x00-\x1f]', '_', entity_name or '').strip() or 'entity'
    return f"{name}{suffix}{(on_date or today()).isoformat()}{extension}"


class DataExporter:
    """
    Экспортёр данных сущности.

    Создаёт зашифрованный файл с данными одной сущности,
    который можно импортировать в эту же или другую консоль.
    """

    def __init__(self, store, crypto: Optional[DataCrypto] = None, strict_references: Optional[bool] = None):
        """
        Args:
            store: Хранилище записей
            crypto: Кодек (по умолчанию DataCrypto с настройками из конфигурации)
            strict_references: Отказывать в экспорте при битых ссылках
                               (по умолчанию export.strict_references)
        """
        self.store = store
        self.crypto = crypto or DataCrypto()
        if strict_references is None:
            strict_references = bool(get_config_value('app', 'export.strict_references', default=True))
        self.strict_references = strict_references

    def _failure(self, error: str, error_code: str, **extra) -> Dict[str, Any]:
        result = {
            "success": False,
            "data": None,
            "filename": None,
            "stats": {},
            "error": error,
            "error_code": error_code,
        }
        result.update(extra)
        return result

    def export_entity(
        self,
        entity_id: str,
        password: str,
        actor_id: Optional[str] = None,
        cancel_event=None
    ) -> Dict[str, Any]:
        """
        Экспортировать данные сущности.

        Args:
            entity_id: ID сущности
            password: Пароль для шифрования
            actor_id: ID пользователя для журнала аудита
            cancel_event: threading.Event для отмены

        Returns:
            {
                "success": bool,
                "data": str (текст зашифрованного файла) или None,
                "filename": str,
                "stats": dict,
                "dangling_references": list,
                "error": str или None,
                "error_code": str или None
            }
        """
        try:
            snapshot = self.store.snapshot()
            bundle = build_export_bundle(
                entity_id,
                snapshot["entities"],
                snapshot["users"],
                snapshot["products"],
                snapshot["orders"],
            )

            dangling = check_bundle_integrity(bundle)
            if dangling:
                logger.warning(f"Сущность {entity_id}: битых ссылок в заказах {len(dangling)}")
                if self.strict_references:
                    raise BundleIntegrityError(dangling)

            encrypted = self.crypto.encrypt(bundle, password, cancel_event=cancel_event)

            entity = bundle["entity"]
            filename = make_export_filename(entity.get("name", ""))
            stats = {name: len(bundle[name]) for name in ("users", "products", "orders")}

            self.store.append_audit({
                "id": generate_id(AUDIT_PREFIX),
                "entityId": entity_id,
                "userId": actor_id,
                "timestamp": iso_now(),
                "action": f'Экспортированы данные сущности "{entity.get("name", entity_id)}"',
            })

            logger.info(f"Экспорт завершён: {len(encrypted)} байт, {stats}")

            return {
                "success": True,
                "data": encrypted,
                "filename": filename,
                "stats": stats,
                "dangling_references": [d.to_dict() for d in dangling],
                "error": None,
                "error_code": None,
            }

        except EntityNotFound:
            return self._failure("Сущность не найдена", "entity_not_found")
        except BundleIntegrityError as e:
            return self._failure(
                "Заказы ссылаются на отсутствующих пользователей или товары",
                "dangling_references",
                dangling_references=[d.to_dict() for d in e.dangling_references],
            )
        except DataCryptoError as e:
            logger.error(f"Ошибка шифрования: {e}")
            return self._failure(e.user_message, e.code)
        except Exception as e:
            logger.error(f"Ошибка экспорта: {e}")
            return self._failure(str(e), "export_failed")

    def get_export_preview(self, entity_id: str) -> Dict[str, Any]:
        """
        Получить превью данных для экспорта (без экспорта).

        Returns:
            Статистика по данным которые будут экспортированы
        """
        entity = self.store.get_entity(entity_id)
        if entity is None:
            return {"error": "Сущность не найдена", "error_code": "entity_not_found"}

        tables = self.store.count_for_entity(entity_id)
        return {
            "entity": {"id": entity["id"], "name": entity.get("name"), "type": entity.get("type")},
            "tables": tables,
            "total_records": sum(tables.values()),
        }
