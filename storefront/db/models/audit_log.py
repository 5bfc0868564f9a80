"""
Модель записи журнала аудита.
"""

from datetime import datetime
from typing import Optional

from sqlalchemy import DateTime, String, Text
from sqlalchemy.orm import Mapped, mapped_column

from .base import Base, JSONType, new_uuid, utcnow


class Severity:
    """Уровни важности записей аудита."""

    INFO = "info"
    WARNING = "warning"
    CRITICAL = "critical"

    ALL = (INFO, WARNING, CRITICAL)


class AuditLog(Base):
    """
    Запись аудита действия пользователя или администратора.

    Данные пользователя копируются в запись, чтобы журнал
    переживал удаление аккаунта.
    """

    __tablename__ = "audit_logs"

    id: Mapped[str] = mapped_column(String(36), primary_key=True, default=new_uuid)
    action: Mapped[str] = mapped_column(String(100), index=True, nullable=False)
    resource: Mapped[str] = mapped_column(String(100), index=True, nullable=False)
    resource_id: Mapped[Optional[str]] = mapped_column(String(100))
    details: Mapped[Optional[dict]] = mapped_column(JSONType)
    previous_values: Mapped[Optional[dict]] = mapped_column(JSONType)
    severity: Mapped[str] = mapped_column(String(20), default=Severity.INFO, nullable=False)

    user_id: Mapped[Optional[str]] = mapped_column(String(36), index=True)
    user_email: Mapped[Optional[str]] = mapped_column(String(255))
    user_role: Mapped[Optional[str]] = mapped_column(String(20))
    ip_address: Mapped[Optional[str]] = mapped_column(String(64))
    user_agent: Mapped[Optional[str]] = mapped_column(Text)

    created_at: Mapped[datetime] = mapped_column(
        DateTime, default=utcnow, index=True, nullable=False
    )
