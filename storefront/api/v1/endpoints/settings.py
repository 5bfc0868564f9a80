"""
API endpoints настроек сайта.

Админские эндпоинты монтируются в /admin/settings,
публичные (для витрины) в /settings.
"""

from collections import defaultdict

from fastapi import APIRouter, Depends, HTTPException, Request
from sqlalchemy.orm import Session

from storefront.api.v1.serializers import setting_out
from storefront.core.auth import require_admin, require_super_admin
from storefront.core.logging_config import get_logger
from storefront.db.database import get_db
from storefront.db.models import Severity, User
from storefront.schemas.admin import BulkSettingsUpdate, SettingUpdate
from storefront.services import audit_service, settings_service

logger = get_logger(__name__)

router = APIRouter()
public_router = APIRouter()

CRITICAL_KEYS = ("maintenance_mode",)


@router.get("", response_model=dict)
def list_settings(
    current_user: User = Depends(require_admin),
    db: Session = Depends(get_db),
):
    """Все настройки списком и сгруппированные по разделам."""
    rows = settings_service.list_settings(db)
    grouped = defaultdict(list)
    for row in rows:
        grouped[row.group].append(setting_out(row))
    return {"settings": [setting_out(r) for r in rows], "grouped": dict(grouped)}


@router.post("/reset", response_model=dict)
def reset_settings(
    request: Request,
    current_user: User = Depends(require_super_admin),
    db: Session = Depends(get_db),
):
    """Сбросить все настройки к значениям по умолчанию (только SUPER_ADMIN)."""
    previous = settings_service.reset_to_defaults(db)
    audit_service.record(
        db, "reset_settings", "SiteSettings",
        previous_values=previous, severity=Severity.CRITICAL,
        user=current_user, request=request,
    )
    return {
        "message": "Settings reset to defaults",
        "settings": [setting_out(r) for r in settings_service.list_settings(db)],
    }


@router.put("/bulk", response_model=dict)
def bulk_update_settings(
    payload: BulkSettingsUpdate,
    request: Request,
    current_user: User = Depends(require_admin),
    db: Session = Depends(get_db),
):
    """
    Обновить несколько настроек.

    Неизвестные ключи и неизмененные значения пропускаются.
    """
    settings_service.ensure_defaults(db)
    updated, previous = [], {}
    for item in payload.settings:
        row = settings_service.get_setting(db, item.key)
        if row is None or item.value is None:
            continue
        value = settings_service.to_setting_value(item.value)
        if value == row.value:
            continue
        previous[row.key] = row.value
        row.value = value
        row.updated_by = current_user.id
        updated.append(row)
    db.commit()

    if updated:
        critical = any(r.key in CRITICAL_KEYS for r in updated)
        audit_service.record(
            db, "bulk_update_settings", "SiteSettings",
            details={r.key: r.value for r in updated}, previous_values=previous,
            severity=Severity.WARNING if critical else Severity.INFO,
            user=current_user, request=request,
        )
    return {
        "message": f"{len(updated)} settings updated",
        "updated": [setting_out(r) for r in updated],
    }


@router.get("/{key}", response_model=dict)
def get_setting(
    key: str,
    current_user: User = Depends(require_admin),
    db: Session = Depends(get_db),
):
    settings_service.ensure_defaults(db)
    row = settings_service.get_setting(db, key)
    if row is None:
        raise HTTPException(404, detail="Setting not found")
    return {"setting": setting_out(row)}


@router.patch("/{key}", response_model=dict)
def update_setting(
    key: str,
    payload: SettingUpdate,
    request: Request,
    current_user: User = Depends(require_admin),
    db: Session = Depends(get_db),
):
    """
    Изменить одну настройку.

    Raises:
        HTTPException: Нет значения (400), ключ не найден (404)
    """
    if payload.value is None:
        raise HTTPException(400, detail="Value is required")
    settings_service.ensure_defaults(db)
    row = settings_service.get_setting(db, key)
    if row is None:
        raise HTTPException(404, detail="Setting not found")

    old_value = row.value
    row.value = settings_service.to_setting_value(payload.value)
    row.updated_by = current_user.id
    db.commit()
    db.refresh(row)

    if key in CRITICAL_KEYS:
        logger.warning("%s set to %s by %s", key, row.value, current_user.email)
    audit_service.record(
        db, "update_setting", "SiteSettings", resource_id=key,
        details={key: row.value}, previous_values={key: old_value},
        severity=Severity.WARNING if key in CRITICAL_KEYS else Severity.INFO,
        user=current_user, request=request,
    )
    return {"message": "Setting updated", "setting": setting_out(row)}


# ==================== ПУБЛИЧНЫЕ НАСТРОЙКИ ====================


@public_router.get("/public", response_model=dict)
def public_settings(db: Session = Depends(get_db)):
    """Настройки для витрины в виде словаря ключ -> значение."""
    return {"settings": {r.key: r.value for r in settings_service.public_settings(db)}}


@public_router.get("/public/{key}", response_model=dict)
def public_setting(key: str, db: Session = Depends(get_db)):
    if key not in settings_service.PUBLIC_KEYS:
        raise HTTPException(404, detail="Setting not found")
    return {"key": key, "value": settings_service.get_value(db, key)}
