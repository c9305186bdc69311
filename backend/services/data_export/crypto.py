"""
Криптографический модуль для шифрования данных экспорта сущности.

Использует:
- PBKDF2-HMAC-SHA256 для деривации ключа из пароля пользователя
- AES-256-GCM для шифрования данных (тег аутентификации в конце шифротекста)
- Уникальная соль и nonce для каждого экспорта

Формат зашифрованного файла (JSON, UTF-8):
    {
        "salt": "<base64, 16 байт>",
        "iv": "<base64, 12 байт>",
        "data": "<base64, ciphertext || tag>",
        "iterations": 600000          # необязательно, по умолчанию 100000
    }

Файлы без поля "iterations" создавались старой веб-консолью
(WebCrypto, 100000 итераций) и читаются без изменений.
"""

import os
import json
import base64
import binascii
import asyncio
import logging
import threading
from typing import Any, Callable, Optional, TypeVar, Union

from cryptography.exceptions import InvalidTag
from cryptography.hazmat.primitives import hashes
from cryptography.hazmat.primitives.ciphers.aead import AESGCM
from cryptography.hazmat.primitives.kdf.pbkdf2 import PBKDF2HMAC

from utils.config_loader import get_config_value

logger = logging.getLogger(__name__)


# =============================================================================
# Ошибки
# =============================================================================

class DataCryptoError(Exception):
    """Базовая ошибка кодека. user_message безопасно показывать пользователю."""

    code = "crypto_error"
    user_message = "Ошибка обработки зашифрованного файла"

    def __init__(self, message: Optional[str] = None):
        super().__init__(message or self.user_message)


class MalformedEnvelope(DataCryptoError):
    """Текст не является корректным конвертом (salt / iv / data)."""

    code = "malformed_envelope"
    user_message = "Файл повреждён или имеет неверный формат"


class AuthenticationFailure(DataCryptoError):
    """Тег AEAD не сошёлся: неверный пароль или повреждённый файл."""

    code = "authentication_failed"
    user_message = "Неверный пароль или файл повреждён"


class DeserializationError(DataCryptoError):
    """Расшифрованные байты не являются JSON."""

    code = "deserialization_error"
    user_message = "Файл расшифрован, но его содержимое повреждено"


class OperationCancelled(DataCryptoError):
    """Операция отменена вызывающей стороной до завершения."""

    code = "cancelled"
    user_message = "Операция отменена"


# =============================================================================
# Кодек
# =============================================================================

class DataCrypto:
    """
    Шифрование/дешифрование произвольного JSON-сериализуемого payload паролем.

    Особенности:
    - Ключ выводится из пароля медленной KDF (стоимость настраивается)
    - AES-GCM обеспечивает конфиденциальность и целостность
    - Каждый вызов encrypt() использует новые соль и nonce
    - Экземпляр не хранит изменяемого состояния, безопасен для потоков
    """

    SALT_SIZE = 16   # 128 бит
    NONCE_SIZE = 12  # 96 бит для GCM
    KEY_SIZE = 32    # 256 бит для AES-256
    TAG_SIZE = 16

    LEGACY_ITERATIONS = 100000
    MIN_ITERATIONS = 100000
    MAX_ITERATIONS = 10000000

    def __init__(self, iterations: Optional[int] = None):
        """
        Args:
            iterations: Число итераций PBKDF2 для новых файлов
                        (по умолчанию security.kdf.iterations из конфигурации)
        """
        self.legacy_iterations = int(get_config_value(
            'security', 'security.kdf.legacy_iterations', default=self.LEGACY_ITERATIONS))
        self.min_iterations = int(get_config_value(
            'security', 'security.kdf.min_iterations', default=self.MIN_ITERATIONS))
        self.max_iterations = int(get_config_value(
            'security', 'security.kdf.max_iterations', default=self.MAX_ITERATIONS))

        if iterations is None:
            iterations = int(get_config_value('security', 'security.kdf.iterations', default=600000))
        if not self.min_iterations <= iterations <= self.max_iterations:
            raise ValueError(
                f"iterations must be within [{self.min_iterations}, {self.max_iterations}], got {iterations}"
            )
        self.iterations = iterations

    def derive_key(self, password: str, salt: bytes, iterations: Optional[int] = None) -> bytes:
        """
        Получить ключ шифрования из пароля пользователя.

        Args:
            password: Пароль пользователя
            salt: Уникальная соль
            iterations: Стоимость KDF (по умолчанию self.iterations)

        Returns:
            32-байтный ключ для AES-256
        """
        kdf = PBKDF2HMAC(
            algorithm=hashes.SHA256(),
            length=self.KEY_SIZE,
            salt=salt,
            iterations=iterations or self.iterations,
        )
        return kdf.derive(password.encode('utf-8'))

    def encrypt(
        self,
        payload: Any,
        password: str,
        cancel_event: Optional[threading.Event] = None
    ) -> str:
        """
        Зашифровать payload паролем.

        Args:
            payload: JSON-сериализуемый объект
            password: Пароль пользователя
            cancel_event: Если установлен, операция прерывается OperationCancelled

        Returns:
            Текст конверта (JSON)

        Raises:
            TypeError / ValueError: payload не сериализуется в JSON
            OperationCancelled: cancel_event установлен
        """
        plaintext = json.dumps(payload, ensure_ascii=False, allow_nan=False).encode('utf-8')

        salt = os.urandom(self.SALT_SIZE)
        nonce = os.urandom(self.NONCE_SIZE)

        self._check_cancelled(cancel_event)
        key = self.derive_key(password, salt)
        self._check_cancelled(cancel_event)

        ciphertext = AESGCM(key).encrypt(nonce, plaintext, None)

        envelope = {
            "salt": self._b64encode(salt),
            "iv": self._b64encode(nonce),
            "data": self._b64encode(ciphertext),
            "iterations": self.iterations,
        }

        logger.info(f"Данные зашифрованы: {len(plaintext)} байт -> {len(ciphertext)} байт")

        return json.dumps(envelope)

    def decrypt(
        self,
        envelope_text: Union[str, bytes],
        password: str,
        cancel_event: Optional[threading.Event] = None
    ) -> Any:
        """
        Расшифровать конверт паролем.

        Args:
            envelope_text: Содержимое файла (str или bytes)
            password: Пароль пользователя
            cancel_event: Если установлен, операция прерывается OperationCancelled

        Returns:
            Исходный payload

        Raises:
            MalformedEnvelope: Некорректная структура конверта
            AuthenticationFailure: Неверный пароль или повреждённый файл
            DeserializationError: Расшифрованные данные не являются JSON
            OperationCancelled: cancel_event установлен
        """
        salt, nonce, ciphertext, iterations = self.parse_envelope(envelope_text)

        self._check_cancelled(cancel_event)
        key = self.derive_key(password, salt, iterations)
        self._check_cancelled(cancel_event)

        try:
            plaintext = AESGCM(key).decrypt(nonce, ciphertext, None)
        except InvalidTag:
            logger.warning("Проверка тега AES-GCM не пройдена")
            raise AuthenticationFailure()

        try:
            payload = json.loads(plaintext.decode('utf-8'))
        except (UnicodeDecodeError, json.JSONDecodeError) as e:
            logger.error(f"Расшифрованные данные не являются JSON: {type(e).__name__}")
            raise DeserializationError() from e

        logger.info(f"Данные расшифрованы: {len(ciphertext)} байт -> {len(plaintext)} байт")

        return payload

    def parse_envelope(self, envelope_text: Union[str, bytes]):
        """
        Разобрать конверт без расшифровки.

        Returns:
            (salt, nonce, ciphertext, iterations)

        Raises:
            MalformedEnvelope
        """
        try:
            if isinstance(envelope_text, (bytes, bytearray)):
                envelope_text = bytes(envelope_text).decode('utf-8-sig')
            envelope = json.loads(envelope_text)
        except (UnicodeDecodeError, json.JSONDecodeError, TypeError):
            raise MalformedEnvelope("Файл не является JSON")

        if not isinstance(envelope, dict):
            raise MalformedEnvelope("Конверт должен быть JSON-объектом")

        salt = self._decode_field(envelope, "salt")
        nonce = self._decode_field(envelope, "iv")
        ciphertext = self._decode_field(envelope, "data")

        if len(salt) < self.SALT_SIZE:
            raise MalformedEnvelope(f"Соль слишком короткая: {len(salt)} байт")
        if len(nonce) != self.NONCE_SIZE:
            raise MalformedEnvelope(f"Неверный размер nonce: {len(nonce)} байт")
        if len(ciphertext) < self.TAG_SIZE:
            raise MalformedEnvelope("Шифротекст короче тега аутентификации")

        iterations = envelope.get("iterations", self.legacy_iterations)
        if isinstance(iterations, bool) or not isinstance(iterations, int):
            raise MalformedEnvelope("Поле 'iterations' должно быть целым числом")
        if not self.min_iterations <= iterations <= self.max_iterations:
            raise MalformedEnvelope(f"Недопустимое число итераций KDF: {iterations}")

        return salt, nonce, ciphertext, iterations

    async def encrypt_async(self, payload: Any, password: str) -> str:
        """encrypt() в рабочем потоке; отмена задачи прерывает операцию."""
        return await run_cancellable(self.encrypt, payload, password)

    async def decrypt_async(self, envelope_text: Union[str, bytes], password: str) -> Any:
        """decrypt() в рабочем потоке; отмена задачи прерывает операцию."""
        return await run_cancellable(self.decrypt, envelope_text, password)

    @staticmethod
    def _check_cancelled(cancel_event: Optional[threading.Event]) -> None:
        if cancel_event is not None and cancel_event.is_set():
            raise OperationCancelled()

    @staticmethod
    def _b64encode(raw: bytes) -> str:
        return base64.b64encode(raw).decode('ascii')

    @staticmethod
    def _decode_field(envelope: dict, name: str) -> bytes:
        value = envelope.get(name)
        if not isinstance(value, str) or not value:
            raise MalformedEnvelope(f"Поле '{name}' отсутствует или не является строкой")
        try:
            return base64.b64decode(value, validate=True)
        except (binascii.Error, ValueError):
            raise MalformedEnvelope(f"Поле '{name}' не является корректным base64")


T = TypeVar("T")


async def run_cancellable(func: Callable[..., T], *args, **kwargs) -> T:
    """
    Выполнить func(*args, cancel_event=..., **kwargs) в рабочем потоке.

    При отмене ожидающей задачи выставляет cancel_event: поток доводит
    текущий шаг KDF до конца и завершается с OperationCancelled,
    результат отменённой операции никуда не попадает.
    """
    cancel_event = threading.Event()
    try:
        return await asyncio.to_thread(func, *args, cancel_event=cancel_event, **kwargs)
    except asyncio.CancelledError:
        cancel_event.set()
        raise
