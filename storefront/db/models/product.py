"""
Модель товара.
"""

from datetime import datetime
from typing import TYPE_CHECKING, List, Optional

from sqlalchemy import Boolean, CheckConstraint, DateTime, ForeignKey, Integer, String, Text
from sqlalchemy.orm import Mapped, mapped_column, relationship

from .base import Base, JSONType, new_uuid, utcnow

if TYPE_CHECKING:
    from .category import Category, ProductType
    from .collection import Collection
    from .product_image import ProductImage
    from .review import Review


class Product(Base):
    """
    Модель товара (вещь second-hand / vintage).

    Attributes:
        id: UUID товара
        sku: Артикул, уникальный если задан
        price_cents: Цена в центах
        compare_price_cents: Старая цена в центах (для скидки)
        stock: Остаток на складе
        sizes / colors / tags: JSON списки строк
        condition: Состояние вещи (new_with_tags, excellent, good, fair)
        image_url: Главное изображение
        is_active: Мягкое удаление
        is_featured: Показывать на главной
    """

    __tablename__ = "products"

    __table_args__ = (
        CheckConstraint("stock >= 0", name="ck_products_stock"),
        CheckConstraint("price_cents >= 0", name="ck_products_price"),
    )

    id: Mapped[str] = mapped_column(String(36), primary_key=True, default=new_uuid)
    name: Mapped[str] = mapped_column(String(255), index=True, nullable=False)
    description: Mapped[Optional[str]] = mapped_column(Text)
    sku: Mapped[Optional[str]] = mapped_column(String(64), unique=True)
    brand: Mapped[Optional[str]] = mapped_column(String(120))
    condition: Mapped[Optional[str]] = mapped_column(String(32))

    price_cents: Mapped[int] = mapped_column(Integer, nullable=False)
    compare_price_cents: Mapped[Optional[int]] = mapped_column(Integer)
    stock: Mapped[int] = mapped_column(Integer, default=0, nullable=False)

    sizes: Mapped[list] = mapped_column(JSONType, default=list, nullable=False)
    colors: Mapped[list] = mapped_column(JSONType, default=list, nullable=False)
    tags: Mapped[list] = mapped_column(JSONType, default=list, nullable=False)
    image_url: Mapped[Optional[str]] = mapped_column(Text)

    is_active: Mapped[bool] = mapped_column(Boolean, default=True, nullable=False)
    is_featured: Mapped[bool] = mapped_column(Boolean, default=False, nullable=False)

    category_id: Mapped[Optional[str]] = mapped_column(
        String(36), ForeignKey("categories.id", ondelete="SET NULL"), index=True
    )
    collection_id: Mapped[Optional[str]] = mapped_column(
        String(36), ForeignKey("collections.id", ondelete="SET NULL"), index=True
    )
    type_id: Mapped[Optional[str]] = mapped_column(
        String(36), ForeignKey("product_types.id", ondelete="SET NULL"), index=True
    )

    created_at: Mapped[datetime] = mapped_column(DateTime, default=utcnow, nullable=False)
    updated_at: Mapped[datetime] = mapped_column(
        DateTime, default=utcnow, onupdate=utcnow, nullable=False
    )

    category: Mapped[Optional["Category"]] = relationship()
    product_type: Mapped[Optional["ProductType"]] = relationship()
    collection: Mapped[Optional["Collection"]] = relationship(back_populates="products")
    images: Mapped[List["ProductImage"]] = relationship(
        back_populates="product",
        cascade="all,delete-orphan",
        order_by="ProductImage.sort_order",
    )
    reviews: Mapped[List["Review"]] = relationship(
        back_populates="product", cascade="all,delete-orphan"
    )

    def __repr__(self) -> str:
        return f"<Product(id={self.id}, name='{self.name}')>"

    @property
    def is_in_stock(self) -> bool:
        return self.stock > 0

    @property
    def is_on_sale(self) -> bool:
        return bool(self.compare_price_cents and self.compare_price_cents > self.price_cents)

    @property
    def discount_percentage(self) -> int:
        """Скидка в процентах относительно compare_price, 0 если скидки нет."""
        if not self.is_on_sale:
            return 0
        return round(
            (self.compare_price_cents - self.price_cents) / self.compare_price_cents * 100
        )
