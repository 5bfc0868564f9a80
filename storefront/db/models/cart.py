"""
Модели корзины.
"""

from datetime import datetime
from typing import List, Optional

from sqlalchemy import DateTime, ForeignKey, Integer, String, UniqueConstraint, CheckConstraint
from sqlalchemy.orm import Mapped, mapped_column, relationship

from .base import Base, new_uuid, utcnow
from .product import Product


class Cart(Base):
    """Корзина пользователя, одна на пользователя."""

    __tablename__ = "carts"

    id: Mapped[str] = mapped_column(String(36), primary_key=True, default=new_uuid)
    user_id: Mapped[str] = mapped_column(
        String(36), ForeignKey("users.id", ondelete="CASCADE"), unique=True, nullable=False
    )
    created_at: Mapped[datetime] = mapped_column(DateTime, default=utcnow, nullable=False)
    updated_at: Mapped[datetime] = mapped_column(
        DateTime, default=utcnow, onupdate=utcnow, nullable=False
    )

    items: Mapped[List["CartItem"]] = relationship(
        back_populates="cart",
        cascade="all,delete-orphan",
        order_by="CartItem.created_at",
    )


class CartItem(Base):
    """
    Позиция корзины.

    Одна строка на сочетание товар + размер + цвет.
    """

    __tablename__ = "cart_items"

    __table_args__ = (
        UniqueConstraint("cart_id", "product_id", "size", "color", name="uq_cart_item_variant"),
        CheckConstraint("quantity >= 1", name="ck_cart_items_quantity"),
    )

    id: Mapped[str] = mapped_column(String(36), primary_key=True, default=new_uuid)
    cart_id: Mapped[str] = mapped_column(
        String(36), ForeignKey("carts.id", ondelete="CASCADE"), index=True, nullable=False
    )
    product_id: Mapped[str] = mapped_column(
        String(36), ForeignKey("products.id", ondelete="CASCADE"), nullable=False
    )
    quantity: Mapped[int] = mapped_column(Integer, default=1, nullable=False)
    size: Mapped[Optional[str]] = mapped_column(String(32))
    color: Mapped[Optional[str]] = mapped_column(String(32))
    created_at: Mapped[datetime] = mapped_column(DateTime, default=utcnow, nullable=False)

    cart: Mapped[Cart] = relationship(back_populates="items")
    product: Mapped[Optional[Product]] = relationship()
