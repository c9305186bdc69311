"""
Базовые методы для импортёра данных.

Содержит вспомогательные методы:
- Расшифровка и проверка содержимого файла
- Замена открытых паролей хешами
- Учёт состояния попытки импорта и журнал аудита
"""

import logging
import threading
from enum import Enum
from typing import Any, Dict, List, Optional

from pydantic import ValidationError

from models.schemas import ExportBundle
from services.auth import secure_user_password
from services.id_generator import AUDIT_PREFIX
from utils.datetime_utils import iso_now

from .crypto import DataCryptoError, OperationCancelled

logger = logging.getLogger(__name__)


class ImportState(str, Enum):
    """
    Состояния одной попытки импорта.

    IDLE -> AWAITING_PASSWORD -> DECRYPTING -> FAILED
                                            -> REMAPPING -> READY
    Новая попытка с другим паролем начинается заново.
    """
    IDLE = "idle"
    AWAITING_PASSWORD = "awaiting_password"
    DECRYPTING = "decrypting"
    REMAPPING = "remapping"
    READY = "ready"
    FAILED = "failed"


class InvalidBundle(ValueError):
    """Расшифрованный JSON не является файлом экспорта сущности."""

    code = "invalid_bundle"
    user_message = "Файл не содержит данных сущности"


class ImporterBaseMixin:
    """
    Mixin с базовыми методами для импортёра.

    Ожидает атрибуты store, crypto и id_generator.
    """

    state: ImportState = ImportState.IDLE

    def _begin(self, password: str) -> Optional[Dict[str, Any]]:
        """
        Начать попытку импорта.

        Returns:
            Результат-ошибку, если пароль не передан, иначе None
        """
        self.transitions: List[ImportState] = []
        self._enter(ImportState.AWAITING_PASSWORD)
        if not password:
            return self._result_without_password()
        return None

    def _enter(self, state: ImportState) -> None:
        self.state = state
        self.transitions.append(state)
        logger.debug(f"Импорт: состояние {state.value}")

    def _result_without_password(self) -> Dict[str, Any]:
        return {
            "success": False,
            "state": self.state.value,
            "error": "Пароль обязателен",
            "error_code": "password_required",
        }

    def _decrypt_bundle(self, content, password: str, cancel_event=None) -> Dict[str, Any]:
        """
        Расшифровать файл и проверить структуру содержимого.

        Returns:
            Содержимое файла (dict) в исходном виде

        Raises:
            DataCryptoError: Ошибка расшифровки
            InvalidBundle: Содержимое не соответствует ExportBundle
        """
        self._enter(ImportState.DECRYPTING)
        payload = self.crypto.decrypt(content, password, cancel_event=cancel_event)

        if not isinstance(payload, dict):
            raise InvalidBundle("Содержимое файла должно быть JSON-объектом")
        try:
            ExportBundle.model_validate(payload)
        except ValidationError as e:
            logger.warning(f"Содержимое файла не прошло проверку: {e.error_count()} ошибок")
            raise InvalidBundle(str(e)) from e

        entity_id = payload["entity"].get("id")
        foreign = sum(
            1
            for name in ("users", "products", "orders")
            for record in payload.get(name) or []
            if record.get("entityId") != entity_id
        )
        if foreign:
            logger.warning(f"В файле {foreign} записей с entityId, отличным от {entity_id}")

        self._enter(ImportState.REMAPPING)
        return payload

    @staticmethod
    def _ensure_not_cancelled(cancel_event: Optional[threading.Event]) -> None:
        """Не сливать записи в хранилище, если операцию уже отменили"""
        if cancel_event is not None and cancel_event.is_set():
            raise OperationCancelled()

    def _secure_passwords(self, users: List[Dict[str, Any]]) -> int:
        """Заменить открытые пароли хешами. Возвращает число захешированных."""
        secured = sum(1 for user in users if secure_user_password(user))
        if secured:
            logger.info(f"Открытые пароли заменены хешами: {secured}")
        return secured

    def _email_conflicts(
        self,
        users: List[Dict[str, Any]],
        exclude_entity_id: Optional[str] = None
    ) -> List[str]:
        """Email импортируемых пользователей, уже занятые в других сущностях"""
        in_use = self.store.emails_in_use(exclude_entity_id)
        conflicts = sorted({
            str(u["email"]).lower() for u in users
            if u.get("email") and str(u["email"]).lower() in in_use
        })
        if conflicts:
            logger.warning(f"Email уже используются другими пользователями: {len(conflicts)}")
        return conflicts

    def _audit(self, entity_id: str, action: str, actor_id: Optional[str] = None) -> None:
        self.store.append_audit({
            "id": self.id_generator(AUDIT_PREFIX),
            "entityId": entity_id,
            "userId": actor_id,
            "timestamp": iso_now(),
            "action": action,
        })

    def _ready(self, **fields) -> Dict[str, Any]:
        self._enter(ImportState.READY)
        result = {"state": self.state.value, "error": None, "error_code": None}
        result.update(fields)
        return result

    def _failed(self, error: str, error_code: str, **extra) -> Dict[str, Any]:
        self._enter(ImportState.FAILED)
        result = {
            "success": False,
            "state": self.state.value,
            "error": error,
            "error_code": error_code,
        }
        result.update(extra)
        return result

    def _failed_from(self, exc: Exception) -> Dict[str, Any]:
        """Результат для ошибки расшифровки или проверки файла"""
        if isinstance(exc, (DataCryptoError, InvalidBundle)):
            return self._failed(exc.user_message, exc.code)
        return self._failed(str(exc), "import_failed")
