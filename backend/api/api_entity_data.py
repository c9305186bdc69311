"""
API для экспорта и импорта данных сущности.

Эндпоинты:
- GET /api/entities - список сущностей
- GET /api/entities/{entity_id}/preview - превью данных для экспорта
- POST /api/entities/{entity_id}/export - экспортировать данные сущности
- POST /api/entities/validate - валидировать файл импорта
- POST /api/entities/import - импортировать файл как новую сущность
- POST /api/entities/{entity_id}/import - заменить данные сущности из файла
"""

import json
import logging
from typing import Optional
from urllib.parse import quote
from fastapi import APIRouter, HTTPException, UploadFile, File, Form, Depends, Header, Request
from fastapi.responses import Response

from core.config import limiter
from models.schemas import (
    ExportRequest,
    EntityList,
    ExportPreview,
    ValidateResponse,
    ImportResponse,
    ReplaceResponse,
)
from models.store import InMemoryStore, get_store
from services.auth import check_password_policy
from services.data_export import DataExporter, DataImporter, run_cancellable
from utils.config_loader import get_config_value

logger = logging.getLogger(__name__)

router = APIRouter(prefix="/api/entities", tags=["Entity Export/Import"])

EXPORT_RATE_LIMIT = get_config_value('security', 'security.rate_limit.export', default="30/minute")
IMPORT_RATE_LIMIT = get_config_value('security', 'security.rate_limit.import', default="10/minute")

# Коды ошибок сервиса -> HTTP статус
ERROR_STATUS = {
    "password_required": 400,
    "entity_not_found": 404,
    "dangling_references": 409,
    "malformed_envelope": 400,
    "authentication_failed": 400,
    "deserialization_error": 400,
    "invalid_bundle": 400,
    "cancelled": 400,
}


def _raise_for_result(result: dict) -> None:
    """HTTPException для неуспешного результата сервиса"""
    error_code = result.get("error_code")
    status_code = ERROR_STATUS.get(error_code, 500)
    raise HTTPException(
        status_code=status_code,
        detail=result.get("error") or "Ошибка обработки данных",
        headers={"X-Error-Code": error_code or "internal_error"},
    )


def _check_password(password: Optional[str]) -> None:
    policy_error = check_password_policy(password)
    if policy_error:
        raise HTTPException(status_code=400, detail=policy_error)


async def _read_upload(file: UploadFile) -> bytes:
    content = await file.read()

    if not content:
        raise HTTPException(status_code=400, detail="Файл пустой")

    max_size = get_config_value('app', 'import.max_file_size', default=20 * 1024 * 1024)
    if len(content) > max_size:
        raise HTTPException(status_code=413, detail="Файл слишком большой")

    return content


def _content_disposition(filename: str) -> str:
    fallback = filename.encode('ascii', 'replace').decode('ascii').replace('?', '_').replace('"', '_')
    return f'attachment; filename="{fallback}"; filename*=UTF-8\'\'{quote(filename)}'


@router.get("", response_model=EntityList)
async def list_entities(store: InMemoryStore = Depends(get_store)):
    """Список сущностей консоли"""
    return {
        "entities": [
            {"id": e.get("id"), "name": e.get("name"), "type": e.get("type")}
            for e in store.list_entities()
        ]
    }


@router.get("/{entity_id}/preview", response_model=ExportPreview)
async def get_export_preview(entity_id: str, store: InMemoryStore = Depends(get_store)):
    """
    Получить превью данных для экспорта.

    Возвращает количество записей, которые попадут в файл.
    """
    try:
        preview = DataExporter(store).get_export_preview(entity_id)

        if "error" in preview:
            raise HTTPException(status_code=404, detail=preview["error"])

        return preview

    except HTTPException:
        raise
    except Exception as e:
        logger.error(f"Ошибка получения превью: {e}")
        raise HTTPException(status_code=500, detail=str(e))


@router.post("/{entity_id}/export")
@limiter.limit(EXPORT_RATE_LIMIT)
async def export_entity(
    request: Request,
    entity_id: str,
    export_request: ExportRequest,
    store: InMemoryStore = Depends(get_store),
    x_user_id: Optional[str] = Header(None)
):
    """
    Экспортировать данные сущности.

    Создаёт зашифрованный файл с пользователями, товарами и заказами сущности.
    Пароль используется для шифрования - без него файл не расшифровать.

    Returns:
        Зашифрованный файл <имя>_backup_<дата>.json
    """
    try:
        _check_password(export_request.password)

        exporter = DataExporter(store)

        # KDF выполняется в потоке, отмена запроса прерывает операцию
        result = await run_cancellable(
            exporter.export_entity, entity_id, export_request.password, x_user_id
        )

        if not result["success"]:
            _raise_for_result(result)

        return Response(
            content=result["data"],
            media_type="application/json",
            headers={
                "Content-Disposition": _content_disposition(result["filename"]),
                "X-Export-Stats": json.dumps(result["stats"]),
            }
        )

    except HTTPException:
        raise
    except Exception as e:
        logger.error(f"Ошибка экспорта: {e}")
        raise HTTPException(status_code=500, detail=str(e))


@router.post("/validate", response_model=ValidateResponse)
@limiter.limit(IMPORT_RATE_LIMIT)
async def validate_import_file(
    request: Request,
    file: UploadFile = File(...),
    password: str = Form(...),
    store: InMemoryStore = Depends(get_store)
):
    """
    Валидировать файл импорта.

    Проверяет:
    - Правильность пароля
    - Целостность файла
    - Структуру данных сущности

    Возвращает информацию о содержимом файла.
    """
    try:
        content = await _read_upload(file)

        importer = DataImporter(store)
        result = await run_cancellable(importer.validate_file, content, password)

        if not result["valid"]:
            _raise_for_result(result)

        return {
            "valid": True,
            "entity": result["entity"],
            "counts": result["counts"],
            "dangling_references": result["dangling_references"],
        }

    except HTTPException:
        raise
    except Exception as e:
        logger.error(f"Ошибка валидации: {e}")
        raise HTTPException(status_code=500, detail=str(e))


@router.post("/import", response_model=ImportResponse)
@limiter.limit(IMPORT_RATE_LIMIT)
async def import_as_new_entity(
    request: Request,
    file: UploadFile = File(...),
    password: str = Form(...),
    store: InMemoryStore = Depends(get_store),
    x_user_id: Optional[str] = Header(None)
):
    """
    Импортировать файл как новую сущность.

    Все id записей генерируются заново. Ссылки заказов на пользователей
    и товары, отсутствующие в файле, сбрасываются и перечисляются
    в dangling_references.
    """
    try:
        content = await _read_upload(file)

        importer = DataImporter(store)
        result = await run_cancellable(importer.import_as_new_entity, content, password, x_user_id)

        if not result["success"]:
            _raise_for_result(result)

        return {
            "success": True,
            "entity_id": result["entity_id"],
            "counts": result["counts"],
            "dangling_references": result["dangling_references"],
            "email_conflicts": result["email_conflicts"],
        }

    except HTTPException:
        raise
    except Exception as e:
        logger.error(f"Ошибка импорта: {e}")
        raise HTTPException(status_code=500, detail=str(e))


@router.post("/{entity_id}/import", response_model=ReplaceResponse)
@limiter.limit(IMPORT_RATE_LIMIT)
async def replace_entity_data(
    request: Request,
    entity_id: str,
    file: UploadFile = File(...),
    password: str = Form(...),
    store: InMemoryStore = Depends(get_store),
    x_user_id: Optional[str] = Header(None)
):
    """
    Заменить данные сущности данными из файла.

    ВНИМАНИЕ: Все пользователи, товары и заказы сущности будут удалены!
    """
    try:
        content = await _read_upload(file)

        importer = DataImporter(store)
        result = await run_cancellable(
            importer.replace_entity_data, entity_id, content, password, x_user_id
        )

        if not result["success"]:
            _raise_for_result(result)

        return {
            "success": True,
            "entity_id": result["entity_id"],
            "counts": result["counts"],
            "removed": result["removed"],
            "email_conflicts": result["email_conflicts"],
        }

    except HTTPException:
        raise
    except Exception as e:
        logger.error(f"Ошибка замены данных: {e}")
        raise HTTPException(status_code=500, detail=str(e))
