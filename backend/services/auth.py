"""
Password hashing service
"""
from passlib.context import CryptContext
from typing import Optional, Dict, Any
from utils.logging import log
from utils.config_loader import get_config_value

# Загружаем настройки паролей
password_schemes = get_config_value('security', 'security.password.schemes', default=["pbkdf2_sha256"])
password_min_length = get_config_value('security', 'security.password.min_length', default=4)

pwd_context = CryptContext(schemes=password_schemes, deprecated="auto")


def verify_password(plain_password: str, hashed_password: str) -> bool:
    """
    Проверка пароля

    Args:
        plain_password: Открытый пароль
        hashed_password: Хешированный пароль

    Returns:
        bool: True если пароль верный
    """
    if not hashed_password:
        return False
    try:
        return pwd_context.verify(plain_password, hashed_password)
    except ValueError:
        # Хеш неизвестного формата
        log("[AUTH] Unrecognized password hash format", level="WARNING")
        return False


def get_password_hash(password: str) -> str:
    """
    Хеширование пароля

    Args:
        password: Открытый пароль

    Returns:
        str: Хешированный пароль
    """
    return pwd_context.hash(password)


def check_password_policy(password: Optional[str]) -> Optional[str]:
    """
    Проверить пароль файла экспорта по политике из security.yaml.

    Returns:
        Сообщение об ошибке или None, если пароль подходит
    """
    if not password:
        return "Пароль обязателен"
    if len(password) < password_min_length:
        return f"Пароль должен быть не менее {password_min_length} символов"
    return None


def secure_user_password(user: Dict[str, Any]) -> bool:
    """
    Заменить открытый пароль пользователя (поле password) на passwordHash.

    Изменяет user на месте. Если хеш уже есть, открытый пароль просто удаляется.

    Returns:
        bool: True если запись содержала открытый пароль
    """
    if "password" not in user:
        return False
    plain = user.pop("password")
    if plain and not user.get("passwordHash"):
        user["passwordHash"] = get_password_hash(str(plain))
    return True


def verify_user_password(store, email: str, password: str) -> Optional[Dict[str, Any]]:
    """
    Проверить пароль пользователя консоли по email.

    Args:
        store: Хранилище записей (InMemoryStore)
        email: Email пользователя
        password: Открытый пароль

    Returns:
        Запись пользователя без passwordHash или None
    """
    user = store.find_user_by_email(email)
    if user is None:
        return None
    if not verify_password(password, user.get("passwordHash", "")):
        return None
    user.pop("passwordHash", None)
    return user
