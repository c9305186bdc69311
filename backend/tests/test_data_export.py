"""
Тесты экспорта и импорта данных сущности через хранилище
"""
import re
import json
import datetime
import threading
import pytest

from models.store import InMemoryStore
from services.auth import verify_user_password, get_password_hash
from services.data_export import DataExporter, DataImporter, ImportState
from services.data_export.exporter import (
    BundleIntegrityError,
    EntityNotFound,
    build_export_bundle,
    check_bundle_integrity,
    ensure_bundle_integrity,
    make_export_filename,
)


@pytest.fixture
def exporter(store, crypto) -> DataExporter:
    return DataExporter(store, crypto)


@pytest.fixture
def importer(store, crypto, id_generator) -> DataImporter:
    return DataImporter(store, crypto, id_generator)


@pytest.fixture
def exported(exporter) -> str:
    """Зашифрованный файл сущности ent_a (пароль 'secret-1')"""
    result = exporter.export_entity("ent_a", "secret-1")
    assert result["success"], result["error"]
    return result["data"]


class TestBuildBundle:
    def test_filters_by_entity(self, store_records):
        bundle = build_export_bundle(
            "ent_a", store_records["entities"], store_records["users"],
            store_records["products"], store_records["orders"]
        )

        assert bundle["entity"]["id"] == "ent_a"
        assert [u["id"] for u in bundle["users"]] == ["user_admin_1", "user_2"]
        assert [p["id"] for p in bundle["products"]] == ["prod_1", "prod_2"]
        assert [o["id"] for o in bundle["orders"]] == ["ORD-2024-001"]
        assert "categories" not in bundle

    def test_unknown_entity(self, store_records):
        with pytest.raises(EntityNotFound):
            build_export_bundle("ent_zzz", store_records["entities"], [], [], [])

    def test_integrity_check(self, minimal_bundle):
        assert check_bundle_integrity(minimal_bundle) == []

        minimal_bundle["orders"][0]["userId"] = "user_x"
        dangling = check_bundle_integrity(minimal_bundle)

        assert [(d.kind, d.order_id, d.missing_id) for d in dangling] == [("user", "ord_1", "user_x")]
        with pytest.raises(BundleIntegrityError) as exc_info:
            ensure_bundle_integrity(minimal_bundle)
        assert exc_info.value.dangling_references == dangling


class TestExporter:
    def test_export_result(self, exporter, crypto, store):
        result = exporter.export_entity("ent_a", "secret-1", actor_id="user_admin_1")

        assert result["success"] is True
        assert result["error"] is None
        assert result["stats"] == {"users": 2, "products": 2, "orders": 1}

        bundle = crypto.decrypt(result["data"], "secret-1")
        assert bundle["entity"]["name"] == "Almacén Central"
        assert len(bundle["users"]) == 2

        entry = store.audit_log[-1]
        assert entry["entityId"] == "ent_a"
        assert entry["userId"] == "user_admin_1"
        assert "Almacén Central" in entry["action"]

    def test_filename(self, exporter):
        result = exporter.export_entity("ent_a", "secret-1")

        assert re.fullmatch(r"Almacén Central_backup_\d{4}-\d{2}-\d{2}\.json", result["filename"])

    def test_make_export_filename_sanitizes_name(self):
        filename = make_export_filename('a/b:"c"', datetime.date(2024, 5, 1))

        assert filename == "a_b__c__backup_2024-05-01.json"

    def test_unknown_entity(self, exporter):
        result = exporter.export_entity("ent_zzz", "secret-1")

        assert result["success"] is False
        assert result["error_code"] == "entity_not_found"

    def test_dangling_references_refused(self, store_records, crypto):
        store_records["orders"][0]["userId"] = "user_deleted"
        store = InMemoryStore(**store_records)

        result = DataExporter(store, crypto, strict_references=True).export_entity("ent_a", "secret-1")

        assert result["success"] is False
        assert result["error_code"] == "dangling_references"
        assert result["dangling_references"] == [
            {"kind": "user", "order_id": "ORD-2024-001", "missing_id": "user_deleted"}
        ]
        assert store.audit_log == []

    def test_dangling_references_reported_when_not_strict(self, store_records, crypto):
        store_records["orders"][0]["items"][0]["productId"] = "prod_deleted"
        store = InMemoryStore(**store_records)

        result = DataExporter(store, crypto, strict_references=False).export_entity("ent_a", "secret-1")

        assert result["success"] is True
        assert result["dangling_references"][0]["missing_id"] == "prod_deleted"

    def test_cancelled(self, exporter):
        event = threading.Event()
        event.set()

        result = exporter.export_entity("ent_a", "secret-1", cancel_event=event)

        assert result["success"] is False
        assert result["error_code"] == "cancelled"

    def test_preview(self, exporter):
        preview = exporter.get_export_preview("ent_a")

        assert preview["entity"]["name"] == "Almacén Central"
        assert preview["tables"] == {"users": 2, "products": 2, "orders": 1}
        assert preview["total_records"] == 5

    def test_preview_unknown_entity(self, exporter):
        assert exporter.get_export_preview("ent_zzz")["error_code"] == "entity_not_found"


class TestImporter:
    def test_validate_file(self, importer, exported, store):
        before = store.snapshot()

        result = importer.validate_file(exported, "secret-1")

        assert result["valid"] is True
        assert result["state"] == "ready"
        assert result["entity"] == {"id": "ent_a", "name": "Almacén Central", "type": "MyPime"}
        assert result["counts"] == {"users": 2, "products": 2, "orders": 1}
        assert store.snapshot() == before

    @pytest.mark.parametrize("content, password, error_code", [
        ("not json", "secret-1", "malformed_envelope"),
        (None, "wrong", "authentication_failed"),
    ])
    def test_validate_failures(self, importer, exported, content, password, error_code):
        result = importer.validate_file(content or exported, password)

        assert result["valid"] is False
        assert result["state"] == "failed"
        assert result["error_code"] == error_code
        assert result["error"]

    def test_payload_that_is_not_a_bundle(self, importer, crypto):
        content = crypto.encrypt({"tables": {}}, "secret-1")

        result = importer.import_as_new_entity(content, "secret-1")

        assert result["success"] is False
        assert result["error_code"] == "invalid_bundle"

    def test_import_as_new_entity(self, importer, exported, store):
        result = importer.import_as_new_entity(exported, "secret-1", actor_id="user_3")

        assert result["success"] is True
        assert result["state"] == "ready"
        assert result["counts"] == {"users": 2, "products": 2, "orders": 1}
        assert result["dangling_references"] == []

        new_id = result["entity_id"]
        assert new_id not in ("ent_a", "ent_b")
        assert store.get_entity(new_id)["name"] == "Almacén Central"
        assert store.count_for_entity(new_id) == {"users": 2, "products": 2, "orders": 1}
        # Исходная сущность не затронута
        assert store.count_for_entity("ent_a") == {"users": 2, "products": 2, "orders": 1}

        order = next(o for o in store.orders if o["entityId"] == new_id)
        new_user_ids = {u["id"] for u in store.users if u["entityId"] == new_id}
        new_product_ids = {p["id"] for p in store.products if p["entityId"] == new_id}
        assert order["userId"] in new_user_ids
        assert {i["productId"] for i in order["items"]} == new_product_ids

        assert store.audit_log[-1]["entityId"] == new_id
        assert store.audit_log[-1]["userId"] == "user_3"

    def test_same_file_can_be_imported_twice(self, importer, exported, store):
        first = importer.import_as_new_entity(exported, "secret-1")
        second = importer.import_as_new_entity(exported, "secret-1")

        assert first["entity_id"] != second["entity_id"]
        ids = [u["id"] for u in store.users]
        assert len(ids) == len(set(ids))

    def test_failed_import_leaves_store_untouched(self, importer, exported, store):
        before = store.snapshot()

        result = importer.import_as_new_entity(exported, "wrong-password")

        assert result["success"] is False
        assert result["error_code"] == "authentication_failed"
        assert store.snapshot() == before

    def test_replace_entity_data(self, importer, exported, store):
        result = importer.replace_entity_data("ent_b", exported, "secret-1")

        assert result["success"] is True
        assert result["removed"] == {"users": 1, "products": 1, "orders": 1}
        assert result["counts"] == {"users": 2, "products": 2, "orders": 1}

        ent_b_users = [u for u in store.users if u["entityId"] == "ent_b"]
        assert {u["id"] for u in ent_b_users} == {"user_admin_1", "user_2"}
        assert not any(p["id"] == "prod_3" for p in store.products)
        # Метаданные сущности сохранены
        assert store.get_entity("ent_b")["name"] == "Tienda Norte"

    def test_replace_unknown_entity(self, importer, exported):
        result = importer.replace_entity_data("ent_zzz", exported, "secret-1")

        assert result["error_code"] == "entity_not_found"

    def test_legacy_file_with_plaintext_passwords(self, importer, store, legacy_envelope):
        legacy_bundle = {
            "entity": {"id": "ent_1700000000000", "name": "Legacy", "type": "TCP",
                       "exchangeRate": 120, "isStoreEnabled": False},
            "users": [
                {"id": "user_admin_1700000000000", "entityId": "ent_1700000000000",
                 "name": "Admin", "email": "admin@legacy.test", "role": "Administrador",
                 "avatarUrl": "https://i.pravatar.cc/150?u=admin", "password": "admin-pass"},
            ],
            "products": [],
            "orders": [],
        }
        content = legacy_envelope(legacy_bundle, "file-pass")

        result = importer.import_as_new_entity(content, "file-pass")

        assert result["success"] is True
        user = next(u for u in store.users if u["entityId"] == result["entity_id"])
        assert "password" not in user
        assert user["passwordHash"] != "admin-pass"
        assert user["isAdmin"] is True
        assert user["avatarUrl"] == "https://i.pravatar.cc/150?u=admin"

        verified = verify_user_password(store, "admin@legacy.test", "admin-pass")
        assert verified is not None
        assert "passwordHash" not in verified
        assert verify_user_password(store, "admin@legacy.test", "nope") is None

    def test_existing_hash_is_kept(self, importer, store, crypto):
        password_hash = get_password_hash("kept")
        bundle = {
            "entity": {"id": "ent_1", "name": "Hashed"},
            "users": [{"id": "u1", "entityId": "ent_1", "email": "h@x.test", "passwordHash": password_hash}],
        }

        result = importer.import_as_new_entity(crypto.encrypt(bundle, "pw1234"), "pw1234")

        user = next(u for u in store.users if u["entityId"] == result["entity_id"])
        assert user["passwordHash"] == password_hash

    def test_dangling_references_reported(self, importer, crypto, minimal_bundle, store):
        minimal_bundle["orders"][0]["items"][0]["productId"] = "prod_missing"
        content = crypto.encrypt(minimal_bundle, "pw1234")

        result = importer.import_as_new_entity(content, "pw1234")

        assert result["success"] is True
        assert result["dangling_references"] == [
            {"kind": "product", "order_id": "ord_1", "missing_id": "prod_missing"}
        ]
        order = next(o for o in store.orders if o["entityId"] == result["entity_id"])
        assert order["items"][0]["productId"] is None

    def test_round_trip_through_json_file(self, exporter, importer, tmp_path):
        result = exporter.export_entity("ent_b", "secret-1")
        path = tmp_path / result["filename"]
        path.write_text(result["data"], encoding="utf-8")

        imported = importer.validate_file(path.read_bytes(), "secret-1")

        assert imported["entity"]["id"] == "ent_b"
        assert json.loads(path.read_text(encoding="utf-8"))["iterations"] == 100000

    def test_string_admin_flag_is_rejected(self, importer, crypto, minimal_bundle, store):
        minimal_bundle["users"][0]["isAdmin"] = "false"
        before = store.snapshot()

        result = importer.import_as_new_entity(crypto.encrypt(minimal_bundle, "pw1234"), "pw1234")

        assert result["success"] is False
        assert result["error_code"] == "invalid_bundle"
        assert store.snapshot() == before

    def test_states_of_successful_import(self, importer, exported):
        assert importer.state == ImportState.IDLE

        importer.import_as_new_entity(exported, "secret-1")

        assert importer.transitions == [
            ImportState.AWAITING_PASSWORD,
            ImportState.DECRYPTING,
            ImportState.REMAPPING,
            ImportState.READY,
        ]

    def test_states_of_wrong_password(self, importer, exported):
        importer.replace_entity_data("ent_b", exported, "wrong")

        assert importer.transitions == [
            ImportState.AWAITING_PASSWORD,
            ImportState.DECRYPTING,
            ImportState.FAILED,
        ]
        assert importer.state == ImportState.FAILED

    def test_missing_password_waits_for_password(self, importer, exported, store):
        before = store.snapshot()

        result = importer.import_as_new_entity(exported, "")

        assert result["state"] == "awaiting_password"
        assert result["error_code"] == "password_required"
        assert importer.transitions == [ImportState.AWAITING_PASSWORD]
        assert store.snapshot() == before

    def test_cancelled_before_merge_leaves_store_untouched(self, importer, exported, store):
        before = store.snapshot()
        event = threading.Event()

        class CancelAfterDecrypt:
            def decrypt(self, content, password, cancel_event=None):
                result = importer_crypto.decrypt(content, password, cancel_event=cancel_event)
                event.set()
                return result

        importer_crypto = importer.crypto
        importer.crypto = CancelAfterDecrypt()

        result = importer.import_as_new_entity(exported, "secret-1", cancel_event=event)

        assert result["error_code"] == "cancelled"
        assert result["state"] == "failed"
        assert store.snapshot() == before

    def test_email_conflicts_reported(self, importer, exported, store):
        first = importer.import_as_new_entity(exported, "secret-1")
        replaced = importer.replace_entity_data("ent_b", exported, "secret-1")

        assert first["email_conflicts"] == ["ana@central.test", "luis@central.test"]
        assert replaced["email_conflicts"] == ["ana@central.test", "luis@central.test"]

    def test_no_email_conflicts_for_own_entity(self, importer, exported):
        result = importer.replace_entity_data("ent_a", exported, "secret-1")

        assert result["success"] is True
        assert result["email_conflicts"] == []
