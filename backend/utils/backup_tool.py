"""
Утилита для работы с зашифрованными файлами экспорта сущности.

Использование (из каталога backend/):
    python -m utils.backup_tool inspect Almacen_backup_2024-05-01.json
    python -m utils.backup_tool rekey old.json new.json

rekey перешифровывает файл новым паролем с текущей стоимостью KDF,
файлы старой веб-консоли (100000 итераций) при этом обновляются.
"""
import sys
import getpass
import argparse
from pathlib import Path
from typing import List, Optional

from services.auth import check_password_policy
from services.data_export.crypto import DataCrypto, DataCryptoError
from services.data_export.exporter import check_bundle_integrity
from services.data_export.importer_base import ImporterBaseMixin, InvalidBundle


class _BundleReader(ImporterBaseMixin):
    """Расшифровка и проверка файла без хранилища"""

    def __init__(self, crypto: DataCrypto):
        self.crypto = crypto
        self.transitions = []


def _ask_password(prompt: str) -> str:
    return getpass.getpass(prompt)


def cmd_inspect(args: argparse.Namespace) -> int:
    crypto = DataCrypto()
    content = Path(args.file).read_bytes()

    _, _, ciphertext, iterations = crypto.parse_envelope(content)
    password = _ask_password("Пароль файла: ")
    bundle = _BundleReader(crypto)._decrypt_bundle(content, password)

    entity = bundle["entity"]
    print(f"Сущность:       {entity.get('name')} ({entity.get('id')})")
    print(f"Тип:            {entity.get('type') or '-'}")
    print(f"Итераций KDF:   {iterations}")
    print(f"Шифротекст:     {len(ciphertext)} байт")
    for name in ("users", "products", "orders"):
        print(f"{name + ':':<16}{len(bundle.get(name) or [])}")

    dangling = check_bundle_integrity(bundle)
    if dangling:
        print(f"Битых ссылок:   {len(dangling)}")
        for ref in dangling:
            print(f"  заказ {ref.order_id}: {ref.kind} {ref.missing_id}")
    return 0


def cmd_rekey(args: argparse.Namespace) -> int:
    out_path = Path(args.out)
    if out_path.exists() and not args.force:
        print(f"Файл {out_path} уже существует (используйте --force)", file=sys.stderr)
        return 1

    crypto = DataCrypto(iterations=args.iterations)
    content = Path(args.file).read_bytes()

    old_password = _ask_password("Текущий пароль файла: ")
    bundle = _BundleReader(crypto)._decrypt_bundle(content, old_password)

    new_password = _ask_password("Новый пароль: ")
    policy_error = check_password_policy(new_password)
    if policy_error:
        print(policy_error, file=sys.stderr)
        return 1
    if new_password != _ask_password("Повторите новый пароль: "):
        print("Пароли не совпадают", file=sys.stderr)
        return 1

    out_path.write_text(crypto.encrypt(bundle, new_password), encoding='utf-8')
    print(f"Файл перешифрован: {out_path} (итераций KDF: {crypto.iterations})")
    return 0


def build_parser() -> argparse.ArgumentParser:
    parser = argparse.ArgumentParser(description="Encrypted entity backup tool")
    subparsers = parser.add_subparsers(dest="command", required=True)

    inspect_parser = subparsers.add_parser("inspect", help="Show entity and record counts of a backup file")
    inspect_parser.add_argument("file", help="Encrypted backup file")
    inspect_parser.set_defaults(func=cmd_inspect)

    rekey_parser = subparsers.add_parser("rekey", help="Re-encrypt a backup file with a new password")
    rekey_parser.add_argument("file", help="Encrypted backup file")
    rekey_parser.add_argument("out", help="Output file")
    rekey_parser.add_argument(
        "--iterations",
        type=int,
        default=None,
        help="PBKDF2 iterations for the new file (default: security.kdf.iterations)"
    )
    rekey_parser.add_argument("--force", action="store_true", help="Overwrite output file")
    rekey_parser.set_defaults(func=cmd_rekey)

    return parser


def main(argv: Optional[List[str]] = None) -> int:
    args = build_parser().parse_args(argv)
    try:
        return args.func(args)
    except (DataCryptoError, InvalidBundle) as e:
        print(f"Ошибка: {e.user_message}", file=sys.stderr)
        return 2
    except ValueError as e:
        print(f"Ошибка: {e}", file=sys.stderr)
        return 2
    except OSError as e:
        print(f"Ошибка чтения/записи файла: {e}", file=sys.stderr)
        return 2


if __name__ == "__main__":
    sys.exit(main())
