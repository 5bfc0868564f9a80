"""
Сервис журнала аудита.

Запись в журнал никогда не ломает основной запрос: ошибки БД
логируются и транзакция откатывается.
"""

from typing import Any, Dict, Optional

from fastapi import Request
from sqlalchemy.exc import SQLAlchemyError
from sqlalchemy.orm import Session

from storefront.core.logging_config import get_logger
from storefront.db.models import AuditLog, Severity, User

logger = get_logger(__name__)


def client_ip(request: Optional[Request]) -> Optional[str]:
    """IP клиента с учетом X-Forwarded-For."""
    if request is None:
        return None
    forwarded = request.headers.get("x-forwarded-for")
    if forwarded:
        return forwarded.split(",")[0].strip()
    return request.client.host if request.client else None


def record(
    db: Session,
    action: str,
    resource: str,
    *,
    resource_id: Optional[str] = None,
    details: Optional[Dict[str, Any]] = None,
    previous_values: Optional[Dict[str, Any]] = None,
    severity: str = Severity.INFO,
    user: Optional[User] = None,
    user_email: Optional[str] = None,
    request: Optional[Request] = None,
) -> Optional[AuditLog]:
    """
    Добавить запись в журнал аудита и закоммитить ее.

    Вызывается после коммита основной операции.

    Args:
        db: Сессия базы данных
        action: Действие (user_login, update_order_status, ...)
        resource: Тип ресурса (User, Order, SiteSettings, ...)
        resource_id: ID ресурса
        details: Подробности (JSON)
        previous_values: Значения до изменения (JSON)
        severity: info / warning / critical
        user: Пользователь, совершивший действие
        user_email: Email, если пользователя нет (например, неудачный вход)
        request: HTTP запрос для IP и User-Agent

    Returns:
        Optional[AuditLog]: Запись или None при ошибке записи
    """
    entry = AuditLog(
        action=action,
        resource=resource,
        resource_id=str(resource_id) if resource_id is not None else None,
        details=details,
        previous_values=previous_values,
        severity=severity if severity in Severity.ALL else Severity.INFO,
        user_id=user.id if user else None,
        user_email=user.email if user else user_email,
        user_role=user.role if user else None,
        ip_address=client_ip(request),
        user_agent=request.headers.get("user-agent") if request is not None else None,
    )
    try:
        db.add(entry)
        db.commit()
    except SQLAlchemyError:
        db.rollback()
        logger.exception("Failed to write audit log entry %s/%s", action, resource)
        return None

    if severity == Severity.CRITICAL:
        logger.critical("AUDIT %s %s %s: %s", action, resource, resource_id, details)
    return entry
