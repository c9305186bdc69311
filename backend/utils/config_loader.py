"""
Настройки StockVault из YAML-файлов backend/config/.

app.yaml      - приложение, CORS, экспорт, импорт, логи, хранилище
security.yaml - стоимость KDF, политика паролей, rate limit

Файлы читаются один раз за процесс. Отсутствующий файл или ключ
не ошибка: вызывающий код всегда передаёт значение по умолчанию.
"""
import threading
from functools import lru_cache
from pathlib import Path
from typing import Any, Dict

import yaml

CONFIG_DIR = Path(__file__).resolve().parent.parent / "config"


class ConfigLoader:
    """Кэш разобранных YAML-файлов одного каталога"""

    def __init__(self, config_dir: Path = CONFIG_DIR) -> None:
        self.config_dir = Path(config_dir)
        self._sections: Dict[str, Dict[str, Any]] = {}
        self._lock = threading.Lock()

    def section(self, config_name: str) -> Dict[str, Any]:
        """
        Содержимое <config_name>.yaml ({} если файла нет).

        Raises:
            ValueError: Файл есть, но верхний уровень не словарь
        """
        with self._lock:
            if config_name not in self._sections:
                self._sections[config_name] = self._read(config_name)
            return self._sections[config_name]

    def _read(self, config_name: str) -> Dict[str, Any]:
        path = self.config_dir / f"{config_name}.yaml"
        if not path.is_file():
            return {}
        with path.open('r', encoding='utf-8') as f:
            data = yaml.safe_load(f)
        if data is None:
            return {}
        if not isinstance(data, dict):
            raise ValueError(f"{path}: ожидался словарь на верхнем уровне")
        return data

    def get(self, config_name: str, key: str, default: Any = None) -> Any:
        """Значение по пути 'section.key' или default"""
        node: Any = self.section(config_name)
        for part in key.split('.'):
            if not isinstance(node, dict) or part not in node:
                return default
            node = node[part]
        return node


@lru_cache()
def get_config_loader() -> ConfigLoader:
    return ConfigLoader()


def get_config_value(config_name: str, key: str, default: Any = None) -> Any:
    """
    Получить значение настройки.

    Args:
        config_name: 'app' или 'security'
        key: Путь через точку, например 'security.kdf.iterations'
        default: Значение, если файла или ключа нет

    Returns:
        Any: Значение из YAML или default
    """
    return get_config_loader().get(config_name, key, default)
