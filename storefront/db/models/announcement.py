"""
Модель объявления (баннер на витрине).
"""

from datetime import datetime
from typing import Optional

from sqlalchemy import Boolean, CheckConstraint, DateTime, ForeignKey, Integer, String, Text
from sqlalchemy.orm import Mapped, mapped_column

from .base import Base, new_uuid, utcnow


class AnnouncementType:
    """Типы объявлений."""

    SALE = "SALE"
    INFO = "INFO"
    NEW_ARRIVAL = "NEW_ARRIVAL"
    WARNING = "WARNING"
    CUSTOM = "CUSTOM"

    ALL = (SALE, INFO, NEW_ARRIVAL, WARNING, CUSTOM)


class Announcement(Base):
    """
    Объявление, активное в окне start_date..end_date.

    Attributes:
        priority: Чем больше, тем выше в списке
        bg_color / text_color: Цвета баннера
        link_url / link_text: Необязательная ссылка
    """

    __tablename__ = "announcements"

    __table_args__ = (
        CheckConstraint(
            "type in ('SALE','INFO','NEW_ARRIVAL','WARNING','CUSTOM')",
            name="ck_announcements_type",
        ),
    )

    id: Mapped[str] = mapped_column(String(36), primary_key=True, default=new_uuid)
    title: Mapped[str] = mapped_column(String(200), nullable=False)
    message: Mapped[str] = mapped_column(Text, nullable=False)
    type: Mapped[str] = mapped_column(String(20), default=AnnouncementType.INFO, nullable=False)
    bg_color: Mapped[Optional[str]] = mapped_column(String(20))
    text_color: Mapped[Optional[str]] = mapped_column(String(20))
    link_url: Mapped[Optional[str]] = mapped_column(Text)
    link_text: Mapped[Optional[str]] = mapped_column(String(100))
    is_active: Mapped[bool] = mapped_column(Boolean, default=True, nullable=False)
    priority: Mapped[int] = mapped_column(Integer, default=0, nullable=False)
    start_date: Mapped[Optional[datetime]] = mapped_column(DateTime)
    end_date: Mapped[Optional[datetime]] = mapped_column(DateTime)
    created_by: Mapped[Optional[str]] = mapped_column(
        String(36), ForeignKey("users.id", ondelete="SET NULL")
    )
    created_at: Mapped[datetime] = mapped_column(DateTime, default=utcnow, nullable=False)
    updated_at: Mapped[datetime] = mapped_column(
        DateTime, default=utcnow, onupdate=utcnow, nullable=False
    )
