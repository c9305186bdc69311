"""
Тесты фильтра чувствительных данных и настройки логирования
"""
import logging

from services.auth import get_password_hash
from utils.logging import SensitiveDataFilter, setup_logging


def _filtered(msg, *args):
    record = logging.LogRecord("test", logging.INFO, __file__, 1, msg, args, None)
    SensitiveDataFilter().filter(record)
    return record.getMessage()


def test_password_is_hidden():
    message = _filtered('export request {"password": "hunter22"}')

    assert "hunter22" not in message
    assert "***HIDDEN***" in message


def test_password_hash_is_hidden():
    password_hash = get_password_hash("secret")

    message = _filtered("user %s has hash %s", "u1", password_hash)

    assert password_hash not in message
    assert "u1" in message


def test_bearer_token_is_hidden():
    assert "abc.def.ghi" not in _filtered("Authorization: Bearer abc.def.ghi")


def test_plain_message_unchanged():
    assert _filtered("Экспорт завершён: %d байт", 120) == "Экспорт завершён: 120 байт"


def test_setup_logging_writes_rotating_file(tmp_path):
    root = logging.getLogger()
    saved_handlers, saved_level = root.handlers[:], root.level
    try:
        setup_logging(log_dir=str(tmp_path), log_file="test.log", enable_colors=False)
        logging.getLogger("services.data_export").info("password=topsecret done")
        for handler in root.handlers:
            handler.flush()

        content = (tmp_path / "test.log").read_text(encoding="utf-8")
        assert "done" in content
        assert "topsecret" not in content
    finally:
        for handler in root.handlers:
            handler.close()
        root.handlers[:] = saved_handlers
        root.setLevel(saved_level)
