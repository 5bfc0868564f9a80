"""
Модели заказа и позиций заказа.
"""

from datetime import datetime
from typing import List, Optional

from sqlalchemy import CheckConstraint, DateTime, ForeignKey, Integer, String, Text
from sqlalchemy.orm import Mapped, mapped_column, relationship

from .address import Address
from .base import Base, new_uuid, utcnow
from .user import User


class OrderStatus:
    """Статусы заказа."""

    PENDING = "PENDING"
    CONFIRMED = "CONFIRMED"
    PROCESSING = "PROCESSING"
    SHIPPED = "SHIPPED"
    DELIVERED = "DELIVERED"
    CANCELLED = "CANCELLED"
    REFUNDED = "REFUNDED"

    ALL = (PENDING, CONFIRMED, PROCESSING, SHIPPED, DELIVERED, CANCELLED, REFUNDED)


class PaymentStatus:
    """Статусы оплаты."""

    PENDING = "PENDING"
    PAID = "PAID"
    FAILED = "FAILED"
    REFUNDED = "REFUNDED"

    ALL = (PENDING, PAID, FAILED, REFUNDED)


class Order(Base):
    """
    Модель заказа.

    Attributes:
        order_number: Человекочитаемый номер (PREFIX-<ms>-<3 цифры>)
        status: Статус заказа, см. OrderStatus
        payment_status: Статус оплаты, см. PaymentStatus
        payment_intent_id: ID PaymentIntent в Stripe
        subtotal_cents / tax_cents / shipping_cents / discount_cents / total_cents:
            Суммы в центах
        shipping_address_id: Адрес доставки
        items: Позиции заказа
    """

    __tablename__ = "orders"

    __table_args__ = (
        CheckConstraint(
            "status in ('PENDING','CONFIRMED','PROCESSING','SHIPPED',"
            "'DELIVERED','CANCELLED','REFUNDED')",
            name="ck_orders_status",
        ),
        CheckConstraint(
            "payment_status in ('PENDING','PAID','FAILED','REFUNDED')",
            name="ck_orders_payment_status",
        ),
    )

    id: Mapped[str] = mapped_column(String(36), primary_key=True, default=new_uuid)
    order_number: Mapped[str] = mapped_column(String(40), unique=True, index=True, nullable=False)
    user_id: Mapped[str] = mapped_column(
        String(36), ForeignKey("users.id", ondelete="RESTRICT"), index=True, nullable=False
    )
    status: Mapped[str] = mapped_column(String(20), default=OrderStatus.PENDING, nullable=False)
    payment_status: Mapped[str] = mapped_column(
        String(20), default=PaymentStatus.PENDING, nullable=False
    )
    payment_method: Mapped[Optional[str]] = mapped_column(String(40))
    payment_intent_id: Mapped[Optional[str]] = mapped_column(String(255), index=True)
    currency: Mapped[str] = mapped_column(String(3), default="usd", nullable=False)

    # Финансовые данные
    subtotal_cents: Mapped[int] = mapped_column(Integer, default=0, nullable=False)
    tax_cents: Mapped[int] = mapped_column(Integer, default=0, nullable=False)
    shipping_cents: Mapped[int] = mapped_column(Integer, default=0, nullable=False)
    discount_cents: Mapped[int] = mapped_column(Integer, default=0, nullable=False)
    total_cents: Mapped[int] = mapped_column(Integer, default=0, nullable=False)
    promo_code: Mapped[Optional[str]] = mapped_column(String(40))

    notes: Mapped[Optional[str]] = mapped_column(Text)
    shipping_address_id: Mapped[Optional[str]] = mapped_column(
        String(36), ForeignKey("addresses.id", ondelete="RESTRICT")
    )

    # Доставка
    tracking_number: Mapped[Optional[str]] = mapped_column(String(100))
    estimated_delivery: Mapped[Optional[datetime]] = mapped_column(DateTime)
    shipped_at: Mapped[Optional[datetime]] = mapped_column(DateTime)
    delivered_at: Mapped[Optional[datetime]] = mapped_column(DateTime)
    cancelled_at: Mapped[Optional[datetime]] = mapped_column(DateTime)

    # Временные метки
    created_at: Mapped[datetime] = mapped_column(DateTime, default=utcnow, nullable=False)
    updated_at: Mapped[datetime] = mapped_column(
        DateTime, default=utcnow, onupdate=utcnow, nullable=False
    )

    user: Mapped[User] = relationship(back_populates="orders")
    shipping_address: Mapped[Optional[Address]] = relationship()
    items: Mapped[List["OrderItem"]] = relationship(
        back_populates="order",
        cascade="all,delete-orphan",
        lazy="selectin",
    )


class OrderItem(Base):
    """
    Модель позиции заказа.

    Название, цена и картинка товара сохраняются снимком на момент заказа.
    """

    __tablename__ = "order_items"

    id: Mapped[int] = mapped_column(Integer, primary_key=True, autoincrement=True)
    order_id: Mapped[str] = mapped_column(
        String(36), ForeignKey("orders.id", ondelete="CASCADE"), index=True, nullable=False
    )
    product_id: Mapped[str] = mapped_column(
        String(36), ForeignKey("products.id", ondelete="RESTRICT"), nullable=False
    )
    quantity: Mapped[int] = mapped_column(Integer, nullable=False)
    price_cents: Mapped[int] = mapped_column(Integer, nullable=False)
    product_name: Mapped[str] = mapped_column(Text, nullable=False)
    product_image: Mapped[Optional[str]] = mapped_column(Text)
    size: Mapped[Optional[str]] = mapped_column(String(32))
    color: Mapped[Optional[str]] = mapped_column(String(32))

    # Связь с заказом
    order: Mapped[Order] = relationship(back_populates="items")
