"""
Модели базы данных.

Импортирует все модели для корректной работы SQLAlchemy.
"""

from .address import Address
from .announcement import Announcement, AnnouncementType
from .audit_log import AuditLog, Severity
from .base import Base, new_uuid, utcnow
from .cart import Cart, CartItem
from .category import Category, ProductType
from .collection import Collection
from .feedback import Feedback
from .order import Order, OrderItem, OrderStatus, PaymentStatus
from .product import Product
from .product_image import ProductImage
from .review import Review
from .site_setting import SiteSetting
from .superadmin_token import SuperAdminToken
from .testimonial import Testimonial
from .user import Role, User
from .wishlist import WishlistItem

__all__ = [
    "Base",
    "new_uuid",
    "utcnow",
    "Address",
    "Announcement",
    "AnnouncementType",
    "AuditLog",
    "Severity",
    "Cart",
    "CartItem",
    "Category",
    "Collection",
    "Feedback",
    "Order",
    "OrderItem",
    "OrderStatus",
    "PaymentStatus",
    "Product",
    "ProductImage",
    "ProductType",
    "Review",
    "SiteSetting",
    "SuperAdminToken",
    "Testimonial",
    "Role",
    "User",
    "WishlistItem",
]
