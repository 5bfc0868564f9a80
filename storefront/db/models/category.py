"""
Модели категорий и типов товаров.
"""

from datetime import datetime
from typing import List, Optional

from sqlalchemy import Boolean, DateTime, ForeignKey, String, Text, UniqueConstraint
from sqlalchemy.orm import Mapped, mapped_column, relationship

from .base import Base, new_uuid, utcnow


class Category(Base):
    """
    Модель категории (например, dresses, outerwear).

    Attributes:
        id: UUID категории
        name: Название
        slug: URL-slug, уникальный
        is_active: Неактивные категории скрыты из витрины
    """

    __tablename__ = "categories"

    id: Mapped[str] = mapped_column(String(36), primary_key=True, default=new_uuid)
    name: Mapped[str] = mapped_column(String(100), nullable=False)
    slug: Mapped[str] = mapped_column(String(120), unique=True, index=True, nullable=False)
    description: Mapped[Optional[str]] = mapped_column(Text)
    is_active: Mapped[bool] = mapped_column(Boolean, default=True, nullable=False)
    created_at: Mapped[datetime] = mapped_column(DateTime, default=utcnow, nullable=False)

    types: Mapped[List["ProductType"]] = relationship(
        back_populates="category",
        cascade="all,delete-orphan",
        order_by="ProductType.name",
    )


class ProductType(Base):
    """Тип товара внутри категории (например, maxi или slip у dresses)."""

    __tablename__ = "product_types"

    __table_args__ = (UniqueConstraint("category_id", "name", name="uq_product_type_name"),)

    id: Mapped[str] = mapped_column(String(36), primary_key=True, default=new_uuid)
    name: Mapped[str] = mapped_column(String(100), nullable=False)
    description: Mapped[Optional[str]] = mapped_column(Text)
    category_id: Mapped[str] = mapped_column(
        String(36), ForeignKey("categories.id", ondelete="CASCADE"), index=True, nullable=False
    )
    is_active: Mapped[bool] = mapped_column(Boolean, default=True, nullable=False)
    created_at: Mapped[datetime] = mapped_column(DateTime, default=utcnow, nullable=False)

    category: Mapped[Category] = relationship(back_populates="types")
