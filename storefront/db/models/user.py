"""
Модель пользователя и роли доступа.
"""

from datetime import datetime
from typing import TYPE_CHECKING, List, Optional

from sqlalchemy import Boolean, CheckConstraint, DateTime, String, Text
from sqlalchemy.orm import Mapped, mapped_column, relationship

from .base import Base, new_uuid, utcnow

if TYPE_CHECKING:
    from .address import Address
    from .order import Order


class Role:
    """Роли пользователей."""

    USER = "USER"
    ADMIN = "ADMIN"
    SUPER_ADMIN = "SUPER_ADMIN"

    ALL = (USER, ADMIN, SUPER_ADMIN)


class User(Base):
    """
    Модель пользователя.

    Attributes:
        id: UUID пользователя
        email: Email (хранится в нижнем регистре)
        password: bcrypt хеш пароля, пустой для OAuth аккаунтов
        role: USER / ADMIN / SUPER_ADMIN
        is_primary: Главный суперадмин, может выпускать инвайты
        is_suspended: Заблокирован администратором
        is_verified: Email подтвержден
        refresh_token: Текущий refresh токен
        password_changed_at: Время последней смены пароля
    """

    __tablename__ = "users"

    __table_args__ = (
        CheckConstraint("role in ('USER','ADMIN','SUPER_ADMIN')", name="ck_users_role"),
    )

    id: Mapped[str] = mapped_column(String(36), primary_key=True, default=new_uuid)
    email: Mapped[str] = mapped_column(String(255), unique=True, index=True, nullable=False)
    password: Mapped[Optional[str]] = mapped_column(String(255))
    first_name: Mapped[str] = mapped_column(String(100), nullable=False)
    last_name: Mapped[str] = mapped_column(String(100), nullable=False)
    phone: Mapped[Optional[str]] = mapped_column(String(30))
    avatar_url: Mapped[Optional[str]] = mapped_column(Text)

    # Права доступа
    role: Mapped[str] = mapped_column(String(20), default=Role.USER, nullable=False)
    is_primary: Mapped[bool] = mapped_column(Boolean, default=False, nullable=False)
    is_active: Mapped[bool] = mapped_column(Boolean, default=True, nullable=False)
    is_suspended: Mapped[bool] = mapped_column(Boolean, default=False, nullable=False)
    suspended_at: Mapped[Optional[datetime]] = mapped_column(DateTime)
    is_verified: Mapped[bool] = mapped_column(Boolean, default=False, nullable=False)
    is_agree: Mapped[bool] = mapped_column(Boolean, default=False, nullable=False)

    # Токены
    refresh_token: Mapped[Optional[str]] = mapped_column(Text)
    password_changed_at: Mapped[Optional[datetime]] = mapped_column(DateTime)

    # Временные метки
    created_at: Mapped[datetime] = mapped_column(DateTime, default=utcnow, nullable=False)
    updated_at: Mapped[datetime] = mapped_column(
        DateTime, default=utcnow, onupdate=utcnow, nullable=False
    )
    last_login: Mapped[Optional[datetime]] = mapped_column(DateTime)

    addresses: Mapped[List["Address"]] = relationship(
        back_populates="user", cascade="all,delete-orphan"
    )
    orders: Mapped[List["Order"]] = relationship(back_populates="user")

    def __repr__(self) -> str:
        return f"<User(id={self.id}, email='{self.email}', role='{self.role}')>"

    @property
    def full_name(self) -> str:
        return f"{self.first_name} {self.last_name}".strip()

    @property
    def is_admin(self) -> bool:
        return self.role in (Role.ADMIN, Role.SUPER_ADMIN)

    @property
    def is_super_admin(self) -> bool:
        return self.role == Role.SUPER_ADMIN

    def has_role(self, *roles: str) -> bool:
        """Суперадмин проходит любую проверку роли."""
        return self.is_super_admin or self.role in roles
