"""
Сервис экспорта/импорта данных сущности с шифрованием.

Позволяет пользователям:
- Экспортировать данные сущности в зашифрованный файл
- Импортировать файл как новую сущность или вместо данных существующей
- Использовать собственный пароль для шифрования
"""

from .crypto import (
    DataCrypto,
    DataCryptoError,
    MalformedEnvelope,
    AuthenticationFailure,
    DeserializationError,
    OperationCancelled,
    run_cancellable,
)
from .exporter import DataExporter, BundleIntegrityError, build_export_bundle, check_bundle_integrity
from .importer import DataImporter
from .importer_base import ImportState, InvalidBundle
from .remapper import (
    DanglingReference,
    RemappedRecords,
    apply_import_as_new_entity,
    apply_import_replacing_entity,
)

__all__ = [
    'DataExporter', 'DataImporter', 'DataCrypto',
    'DataCryptoError', 'MalformedEnvelope', 'AuthenticationFailure',
    'DeserializationError', 'OperationCancelled', 'run_cancellable',
    'BundleIntegrityError', 'build_export_bundle', 'check_bundle_integrity',
    'ImportState', 'InvalidBundle',
    'DanglingReference', 'RemappedRecords',
    'apply_import_as_new_entity', 'apply_import_replacing_entity',
]
