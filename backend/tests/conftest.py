"""
Pytest fixtures для тестов StockVault

Содержит общие fixtures для всех тестов:
- Кодек с минимальной стоимостью KDF
- Тестовое хранилище (in-memory) с двумя сущностями
- Тестовый клиент FastAPI
"""
import os
import sys
import json
import base64
import pytest
from typing import Generator

# Добавляем backend в path
sys.path.insert(0, os.path.dirname(os.path.dirname(os.path.abspath(__file__))))

from cryptography.hazmat.primitives.ciphers.aead import AESGCM
from fastapi import FastAPI
from fastapi.testclient import TestClient

from core.config import create_app, limiter
from api.api_entity_data import router as entity_data_router
from models.store import InMemoryStore, get_store
from services.data_export import DataCrypto
from services.id_generator import SequentialIdGenerator


# ==================== CRYPTO FIXTURES ====================

@pytest.fixture
def crypto() -> DataCrypto:
    """
    Кодек с минимально допустимым числом итераций (быстрые тесты).

    Returns:
        DataCrypto: Экземпляр кодека
    """
    return DataCrypto(iterations=DataCrypto.MIN_ITERATIONS)


@pytest.fixture
def legacy_envelope():
    """
    Фабрика конвертов в формате старой веб-консоли (без поля iterations).

    Returns:
        Callable[[object, str], str]
    """
    def make(payload, password: str) -> str:
        salt = os.urandom(16)
        iv = os.urandom(12)
        key = DataCrypto(iterations=DataCrypto.LEGACY_ITERATIONS).derive_key(
            password, salt, DataCrypto.LEGACY_ITERATIONS
        )
        data = AESGCM(key).encrypt(iv, json.dumps(payload).encode('utf-8'), None)
        return json.dumps({
            "salt": base64.b64encode(salt).decode('ascii'),
            "iv": base64.b64encode(iv).decode('ascii'),
            "data": base64.b64encode(data).decode('ascii'),
        })
    return make


@pytest.fixture
def id_generator() -> SequentialIdGenerator:
    """Детерминированный генератор id"""
    return SequentialIdGenerator()


# ==================== DATA FIXTURES ====================

@pytest.fixture
def minimal_bundle() -> dict:
    """
    Минимальный файл экспорта: одна сущность, пользователь, товар и заказ.

    Returns:
        dict: Содержимое файла экспорта
    """
    return {
        "entity": {"id": "ent_1"},
        "users": [{"id": "user_1", "entityId": "ent_1"}],
        "products": [{"id": "prod_1", "entityId": "ent_1"}],
        "orders": [{
            "id": "ord_1",
            "entityId": "ent_1",
            "userId": "user_1",
            "items": [{"productId": "prod_1", "quantity": 2}],
        }],
    }


@pytest.fixture
def store_records() -> dict:
    """
    Записи двух сущностей для хранилища.

    Returns:
        dict: Коллекции в формате InMemoryStore
    """
    return {
        "entities": [
            {"id": "ent_a", "name": "Almacén Central", "type": "MyPime",
             "exchangeRate": 320, "isStoreEnabled": True, "storeSlug": "central"},
            {"id": "ent_b", "name": "Tienda Norte", "type": "TCP",
             "exchangeRate": 300, "isStoreEnabled": False},
        ],
        "users": [
            {"id": "user_admin_1", "entityId": "ent_a", "name": "Ana", "email": "ana@central.test",
             "role": "Administrador", "isAdmin": True},
            {"id": "user_2", "entityId": "ent_a", "name": "Luis", "email": "luis@central.test",
             "role": "Almacenero", "isAdmin": False},
            {"id": "user_3", "entityId": "ent_b", "name": "Eva", "email": "eva@norte.test",
             "role": "Administrador", "isAdmin": True},
        ],
        "products": [
            {"id": "prod_1", "entityId": "ent_a", "name": "Aceite", "price": 4.5, "quantity": 40,
             "location": {"warehouseType": "Seco", "section": "A", "row": "1"},
             "categoryId": "cat_1", "supplierId": "sup_1", "sku": "ACE-1"},
            {"id": "prod_2", "entityId": "ent_a", "name": "Arroz", "price": 2.0, "quantity": 100,
             "categoryId": "cat_1", "supplierId": "sup_1"},
            {"id": "prod_3", "entityId": "ent_b", "name": "Jabón", "price": 1.2, "quantity": 10},
        ],
        "orders": [
            {"id": "ORD-2024-001", "entityId": "ent_a", "userId": "user_2", "status": "Pendiente",
             "total": 13.0, "orderDate": "2024-05-01T10:00:00.000Z",
             "items": [{"productId": "prod_1", "quantity": 2}, {"productId": "prod_2", "quantity": 2}],
             "customerDetails": {"name": "Rosa", "lastName": "Paz", "address": "Calle 1",
                                 "email": "rosa@mail.test", "idCard": "123"}},
            {"id": "ORD-2024-002", "entityId": "ent_b", "userId": "user_3", "status": "Entregado",
             "total": 1.2, "orderDate": "2024-05-02T10:00:00.000Z",
             "items": [{"productId": "prod_3", "quantity": 1}]},
        ],
        "categories": [{"id": "cat_1", "entityId": "ent_a", "name": "Alimentos"}],
        "suppliers": [{"id": "sup_1", "entityId": "ent_a", "name": "Proveedor Uno"}],
    }


@pytest.fixture
def store(store_records: dict) -> InMemoryStore:
    """
    Тестовое хранилище.

    Returns:
        InMemoryStore: Хранилище с двумя сущностями
    """
    return InMemoryStore(**store_records)


# ==================== API FIXTURES ====================

@pytest.fixture
def test_app(store: InMemoryStore, monkeypatch) -> Generator[FastAPI, None, None]:
    """
    Создать приложение FastAPI с тестовым хранилищем.

    Сервисы API используют кодек с минимальной стоимостью KDF,
    rate limiter отключён.
    """
    monkeypatch.setattr(
        "services.data_export.exporter.DataCrypto",
        lambda: DataCrypto(iterations=DataCrypto.MIN_ITERATIONS)
    )
    monkeypatch.setattr(
        "services.data_export.importer.DataCrypto",
        lambda: DataCrypto(iterations=DataCrypto.MIN_ITERATIONS)
    )
    monkeypatch.setattr(limiter, "enabled", False)

    app = create_app()
    app.include_router(entity_data_router)
    app.state.store = store

    # Переопределяем dependency для хранилища
    app.dependency_overrides[get_store] = lambda: store

    yield app

    app.dependency_overrides.clear()


@pytest.fixture
def test_client(test_app: FastAPI) -> Generator[TestClient, None, None]:
    """
    Создать тестовый клиент FastAPI.

    Yields:
        TestClient: Клиент для тестирования API
    """
    with TestClient(test_app) as client:
        yield client
