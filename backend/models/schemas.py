"""
Pydantic-схемы записей консоли и файла экспорта.

Записи хранят camelCase-ключи (формат файлов веб-консоли), поэтому
у полей заданы alias. Неизвестные поля сохраняются как есть (extra="allow").
"""
from pydantic import BaseModel, ConfigDict, Field, StrictBool
from typing import Optional, List


RECORD_CONFIG = ConfigDict(extra="allow", populate_by_name=True)


# Record Schemas
class WarehouseLocation(BaseModel):
    model_config = RECORD_CONFIG

    warehouse_type: Optional[str] = Field(None, alias="warehouseType")
    section: Optional[str] = None
    row: Optional[str] = None


class Entity(BaseModel):
    model_config = RECORD_CONFIG

    id: str = Field(..., min_length=1)
    name: Optional[str] = None
    type: Optional[str] = None
    exchange_rate: Optional[float] = Field(None, alias="exchangeRate")
    is_store_enabled: bool = Field(False, alias="isStoreEnabled")


class EntityUser(BaseModel):
    """Пользователь сущности. Пароль хранится только как passwordHash."""
    model_config = RECORD_CONFIG

    id: str = Field(..., min_length=1)
    entity_id: str = Field(..., alias="entityId")
    name: Optional[str] = None
    email: Optional[str] = None
    role: Optional[str] = None
    is_admin: Optional[StrictBool] = Field(None, alias="isAdmin")
    password: Optional[str] = None  # только в старых файлах
    password_hash: Optional[str] = Field(None, alias="passwordHash")


class Product(BaseModel):
    model_config = RECORD_CONFIG

    id: str = Field(..., min_length=1)
    entity_id: str = Field(..., alias="entityId")
    name: Optional[str] = None
    price: Optional[float] = None
    quantity: Optional[float] = None
    location: Optional[WarehouseLocation] = None
    category_id: Optional[str] = Field(None, alias="categoryId")
    supplier_id: Optional[str] = Field(None, alias="supplierId")


class OrderItem(BaseModel):
    model_config = RECORD_CONFIG

    product_id: Optional[str] = Field(None, alias="productId")
    quantity: float = 0


class Order(BaseModel):
    model_config = RECORD_CONFIG

    id: str = Field(..., min_length=1)
    entity_id: str = Field(..., alias="entityId")
    user_id: Optional[str] = Field(None, alias="userId")
    items: List[OrderItem] = Field(default_factory=list)
    status: Optional[str] = None
    total: Optional[float] = None
    order_date: Optional[str] = Field(None, alias="orderDate")


class Category(BaseModel):
    model_config = RECORD_CONFIG

    id: str
    entity_id: str = Field(..., alias="entityId")
    name: str


class Supplier(BaseModel):
    model_config = RECORD_CONFIG

    id: str
    entity_id: str = Field(..., alias="entityId")
    name: str


class AuditLogEntry(BaseModel):
    model_config = ConfigDict(populate_by_name=True)

    id: str
    entity_id: str = Field(..., alias="entityId")
    user_id: Optional[str] = Field(None, alias="userId")
    timestamp: str
    action: str


# Export File Schemas
class ExportBundle(BaseModel):
    """Открытое содержимое файла экспорта"""
    model_config = ConfigDict(extra="allow")

    entity: Entity
    users: List[EntityUser] = Field(default_factory=list)
    products: List[Product] = Field(default_factory=list)
    orders: List[Order] = Field(default_factory=list)


class StoreSeed(BaseModel):
    """Файл начальных данных хранилища"""
    entities: List[Entity] = Field(default_factory=list)
    users: List[EntityUser] = Field(default_factory=list)
    products: List[Product] = Field(default_factory=list)
    orders: List[Order] = Field(default_factory=list)
    categories: List[Category] = Field(default_factory=list)
    suppliers: List[Supplier] = Field(default_factory=list)
    audit_log: List[AuditLogEntry] = Field(default_factory=list)


# API Schemas
class ExportRequest(BaseModel):
    """Запрос на экспорт данных сущности"""
    password: str


class EntitySummary(BaseModel):
    id: str
    name: Optional[str] = None
    type: Optional[str] = None


class EntityList(BaseModel):
    entities: List[EntitySummary]


class RecordCounts(BaseModel):
    users: int = 0
    products: int = 0
    orders: int = 0


class DanglingReferenceInfo(BaseModel):
    kind: str
    order_id: str
    missing_id: str


class ExportPreview(BaseModel):
    entity: EntitySummary
    tables: RecordCounts
    total_records: int


class ValidateResponse(BaseModel):
    valid: bool
    entity: EntitySummary
    counts: RecordCounts
    dangling_references: List[DanglingReferenceInfo] = Field(default_factory=list)


class ImportResponse(BaseModel):
    success: bool
    entity_id: str
    counts: RecordCounts
    dangling_references: List[DanglingReferenceInfo] = Field(default_factory=list)
    email_conflicts: List[str] = Field(default_factory=list)


class ReplaceResponse(BaseModel):
    success: bool
    entity_id: str
    counts: RecordCounts
    removed: RecordCounts
    email_conflicts: List[str] = Field(default_factory=list)
