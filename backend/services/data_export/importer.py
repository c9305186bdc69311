"""
Модуль импорта данных сущности.

Расшифровывает файл экспорта и добавляет его данные в хранилище:
как новую сущность (с новыми id) или вместо данных существующей.
"""

import logging
from typing import Any, Dict, List, Optional

from services.id_generator import IdGenerator, generate_id

from .crypto import DataCrypto, DataCryptoError
from .exporter import check_bundle_integrity
from .importer_base import ImporterBaseMixin, ImportState, InvalidBundle
from .remapper import apply_import_as_new_entity, apply_import_replacing_entity

logger = logging.getLogger(__name__)


class DataImporter(ImporterBaseMixin):
    """
    Импортёр данных сущности.

    Каждая попытка с паролем независима: неверный пароль завершает
    операцию с state="failed", хранилище при этом не меняется.
    Пройденные состояния последней попытки лежат в transitions.
    """

    def __init__(
        self,
        store,
        crypto: Optional[DataCrypto] = None,
        id_generator: IdGenerator = generate_id
    ):
        """
        Args:
            store: Хранилище записей
            crypto: Кодек (по умолчанию DataCrypto с настройками из конфигурации)
            id_generator: Источник новых id
        """
        self.store = store
        self.crypto = crypto or DataCrypto()
        self.id_generator = id_generator
        self.state = ImportState.IDLE
        self.transitions: List[ImportState] = []

    def validate_file(self, content, password: str, cancel_event=None) -> Dict[str, Any]:
        """
        Валидировать файл экспорта без импорта.

        Returns:
            {
                "valid": bool,
                "state": str,
                "entity": dict,
                "counts": dict,
                "dangling_references": list,
                "error": str или None,
                "error_code": str или None
            }
        """
        missing_password = self._begin(password)
        if missing_password:
            return {"valid": False, **missing_password}

        try:
            bundle = self._decrypt_bundle(content, password, cancel_event)
        except (DataCryptoError, InvalidBundle) as e:
            return {"valid": False, **self._failed_from(e)}

        entity = bundle["entity"]
        return self._ready(
            valid=True,
            entity={"id": entity.get("id"), "name": entity.get("name"), "type": entity.get("type")},
            counts={name: len(bundle.get(name) or []) for name in ("users", "products", "orders")},
            dangling_references=[d.to_dict() for d in check_bundle_integrity(bundle)],
        )

    def import_as_new_entity(
        self,
        content,
        password: str,
        actor_id: Optional[str] = None,
        cancel_event=None
    ) -> Dict[str, Any]:
        """
        Импортировать файл как новую сущность.

        Все id генерируются заново, поэтому файл можно импортировать
        повторно и в ту же консоль, из которой он экспортирован.
        Email, уже занятые в консоли, перечисляются в email_conflicts.

        Returns:
            {
                "success": bool,
                "state": str,
                "entity_id": str,
                "counts": dict,
                "dangling_references": list,
                "email_conflicts": list,
                "error": str или None,
                "error_code": str или None
            }
        """
        missing_password = self._begin(password)
        if missing_password:
            return missing_password

        try:
            bundle = self._decrypt_bundle(content, password, cancel_event)
        except (DataCryptoError, InvalidBundle) as e:
            return self._failed_from(e)

        try:
            remapped = apply_import_as_new_entity(bundle, self.id_generator)
            self._secure_passwords(remapped.users)
            conflicts = self._email_conflicts(remapped.users)

            self._ensure_not_cancelled(cancel_event)
            self.store.add_entity_records(
                remapped.entity, remapped.users, remapped.products, remapped.orders
            )

            entity = remapped.entity
            self._audit(
                entity["id"],
                f'Импортирована новая сущность "{entity.get("name", entity["id"])}" из файла',
                actor_id,
            )

            logger.info(f"Импорт завершён: сущность {entity['id']}, {remapped.counts()}")

            return self._ready(
                success=True,
                entity_id=entity["id"],
                counts=remapped.counts(),
                dangling_references=[d.to_dict() for d in remapped.dangling_references],
                email_conflicts=conflicts,
            )

        except DataCryptoError as e:
            return self._failed_from(e)
        except Exception as e:
            logger.error(f"Ошибка импорта: {e}")
            return self._failed(str(e), "import_failed")

    def replace_entity_data(
        self,
        entity_id: str,
        content,
        password: str,
        actor_id: Optional[str] = None,
        cancel_event=None
    ) -> Dict[str, Any]:
        """
        Заменить пользователей, товары и заказы сущности данными файла.

        id записей из файла сохраняются, метаданные сущности не меняются.

        Returns:
            {
                "success": bool,
                "state": str,
                "entity_id": str,
                "counts": dict,
                "removed": dict,
                "email_conflicts": list,
                "error": str или None,
                "error_code": str или None
            }
        """
        missing_password = self._begin(password)
        if missing_password:
            return missing_password

        entity = self.store.get_entity(entity_id)
        if entity is None:
            return self._failed("Сущность не найдена", "entity_not_found")

        try:
            bundle = self._decrypt_bundle(content, password, cancel_event)
        except (DataCryptoError, InvalidBundle) as e:
            return self._failed_from(e)

        try:
            remapped = apply_import_replacing_entity(bundle, entity_id)
            self._secure_passwords(remapped.users)
            conflicts = self._email_conflicts(remapped.users, exclude_entity_id=entity_id)

            self._ensure_not_cancelled(cancel_event)
            removed = self.store.replace_entity_records(
                entity_id, remapped.users, remapped.products, remapped.orders
            )

            self._audit(
                entity_id,
                f'Заменены все данные сущности "{entity.get("name", entity_id)}" из файла',
                actor_id,
            )

            logger.info(f"Данные сущности {entity_id} заменены: {remapped.counts()}, удалено: {removed}")

            return self._ready(
                success=True,
                entity_id=entity_id,
                counts=remapped.counts(),
                removed=removed,
                email_conflicts=conflicts,
            )

        except DataCryptoError as e:
            return self._failed_from(e)
        except Exception as e:
            logger.error(f"Ошибка замены данных: {e}")
            return self._failed(str(e), "import_failed")
