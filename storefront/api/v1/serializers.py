"""
Преобразование моделей в JSON ответы API.
"""

from datetime import datetime
from typing import Any, Dict, Optional

from storefront.db.models import (
    Address,
    Announcement,
    AuditLog,
    Cart,
    CartItem,
    Category,
    Collection,
    Feedback,
    Order,
    OrderItem,
    Product,
    ProductImage,
    ProductType,
    Review,
    SiteSetting,
    SuperAdminToken,
    User,
)
from storefront.services import cart_service
from storefront.services.invite_service import token_status


def iso(value: Optional[datetime]) -> Optional[str]:
    return value.isoformat() if value else None


def user_out(user: User) -> Dict[str, Any]:
    return {
        "id": user.id,
        "email": user.email,
        "first_name": user.first_name,
        "last_name": user.last_name,
        "phone": user.phone,
        "avatar_url": user.avatar_url,
        "role": user.role,
        "is_primary": user.is_primary,
        "is_verified": user.is_verified,
        "is_suspended": user.is_suspended,
        "created_at": iso(user.created_at),
        "last_login": iso(user.last_login),
    }


def image_out(image: ProductImage) -> Dict[str, Any]:
    return {
        "id": image.id,
        "url": image.url,
        "path": image.path,
        "alt_text": image.alt_text,
        "sort_order": image.sort_order,
        "is_primary": image.is_primary,
        "width": image.width,
        "height": image.height,
    }


def category_out(category: Optional[Category]) -> Optional[Dict[str, Any]]:
    if category is None:
        return None
    return {"id": category.id, "name": category.name, "slug": category.slug}


def product_type_out(product_type: ProductType, include_category: bool = False) -> Dict[str, Any]:
    data = {
        "id": product_type.id,
        "name": product_type.name,
        "description": product_type.description,
        "category_id": product_type.category_id,
        "is_active": product_type.is_active,
    }
    if include_category:
        data["category"] = category_out(product_type.category)
    return data


def category_detail(category: Category) -> Dict[str, Any]:
    """Категория для админки и фильтров: с описанием и активными типами."""
    return {
        **category_out(category),
        "description": category.description,
        "is_active": category.is_active,
        "types": [product_type_out(t) for t in category.types if t.is_active],
    }


def collection_out(collection: Collection, product_count: Optional[int] = None) -> Dict[str, Any]:
    data = {
        "id": collection.id,
        "name": collection.name,
        "description": collection.description,
        "image_url": collection.image_url,
        "is_active": collection.is_active,
        "created_at": iso(collection.created_at),
        "updated_at": iso(collection.updated_at),
    }
    if product_count is not None:
        data["product_count"] = product_count
    return data


def product_out(
    product: Product,
    avg_rating: Optional[float] = None,
    review_count: int = 0,
    include_images: bool = True,
) -> Dict[str, Any]:
    """
    Товар с вычисляемыми полями.

    Args:
        product: Товар
        avg_rating: Средний рейтинг (None, если отзывов нет)
        review_count: Количество отзывов
        include_images: Включить загруженные изображения
    """
    data = {
        "id": product.id,
        "name": product.name,
        "description": product.description,
        "sku": product.sku,
        "brand": product.brand,
        "condition": product.condition,
        "price_cents": product.price_cents,
        "compare_price_cents": product.compare_price_cents,
        "stock": product.stock,
        "sizes": product.sizes or [],
        "colors": product.colors or [],
        "tags": product.tags or [],
        "image_url": product.image_url,
        "is_active": product.is_active,
        "is_featured": product.is_featured,
        "category": category_out(product.category),
        "type": (
            {"id": product.product_type.id, "name": product.product_type.name}
            if product.product_type
            else None
        ),
        "collection": (
            {"id": product.collection.id, "name": product.collection.name}
            if product.collection
            else None
        ),
        "avg_rating": round(avg_rating, 1) if avg_rating is not None else 0,
        "review_count": review_count,
        "discount_percentage": product.discount_percentage,
        "is_in_stock": product.is_in_stock,
        "is_on_sale": product.is_on_sale,
        "created_at": iso(product.created_at),
        "updated_at": iso(product.updated_at),
    }
    if include_images:
        data["images"] = [image_out(i) for i in product.images]
    return data


def product_brief(product: Product) -> Dict[str, Any]:
    return {
        "id": product.id,
        "name": product.name,
        "price_cents": product.price_cents,
        "compare_price_cents": product.compare_price_cents,
        "image_url": product.image_url,
        "stock": product.stock,
        "is_active": product.is_active,
    }


def cart_item_out(item: CartItem) -> Dict[str, Any]:
    product = item.product
    return {
        "id": item.id,
        "product_id": item.product_id,
        "name": product.name,
        "price_cents": product.price_cents,
        "image_url": product.image_url,
        "quantity": item.quantity,
        "size": item.size,
        "color": item.color,
        "stock": product.stock,
        "subtotal_cents": product.price_cents * item.quantity,
    }


def cart_out(cart: Optional[Cart]) -> Dict[str, Any]:
    items = [cart_item_out(i) for i in cart_service.cart_lines(cart)]
    return {
        "items": items,
        "item_count": sum(i["quantity"] for i in items),
        "total_cents": sum(i["subtotal_cents"] for i in items),
    }


def address_out(address: Optional[Address]) -> Optional[Dict[str, Any]]:
    if address is None:
        return None
    return {
        "id": address.id,
        "first_name": address.first_name,
        "last_name": address.last_name,
        "company": address.company,
        "address1": address.address1,
        "address2": address.address2,
        "city": address.city,
        "state": address.state,
        "postal_code": address.postal_code,
        "country": address.country,
        "phone": address.phone,
        "is_default": address.is_default,
        "created_at": iso(address.created_at),
    }


def order_item_out(item: OrderItem) -> Dict[str, Any]:
    return {
        "id": item.id,
        "product_id": item.product_id,
        "product_name": item.product_name,
        "product_image": item.product_image,
        "quantity": item.quantity,
        "price_cents": item.price_cents,
        "size": item.size,
        "color": item.color,
        "subtotal_cents": item.price_cents * item.quantity,
    }


def order_out(order: Order, include_user: bool = False) -> Dict[str, Any]:
    data = {
        "id": order.id,
        "order_number": order.order_number,
        "status": order.status,
        "payment_status": order.payment_status,
        "payment_method": order.payment_method,
        "currency": order.currency,
        "subtotal_cents": order.subtotal_cents,
        "tax_cents": order.tax_cents,
        "shipping_cents": order.shipping_cents,
        "discount_cents": order.discount_cents,
        "total_cents": order.total_cents,
        "promo_code": order.promo_code,
        "notes": order.notes,
        "tracking_number": order.tracking_number,
        "estimated_delivery": iso(order.estimated_delivery),
        "shipped_at": iso(order.shipped_at),
        "delivered_at": iso(order.delivered_at),
        "cancelled_at": iso(order.cancelled_at),
        "created_at": iso(order.created_at),
        "updated_at": iso(order.updated_at),
        "items": [order_item_out(i) for i in order.items],
        "shipping_address": address_out(order.shipping_address),
    }
    if include_user and order.user is not None:
        data["user"] = {
            "id": order.user.id,
            "email": order.user.email,
            "first_name": order.user.first_name,
            "last_name": order.user.last_name,
        }
    return data


def review_out(review: Review, include_product: bool = False) -> Dict[str, Any]:
    data = {
        "id": review.id,
        "product_id": review.product_id,
        "rating": review.rating,
        "title": review.title,
        "comment": review.comment,
        "created_at": iso(review.created_at),
        "user": (
            {"id": review.user.id, "first_name": review.user.first_name,
             "last_name": review.user.last_name}
            if review.user
            else None
        ),
    }
    if include_product and review.product is not None:
        data["product"] = {"id": review.product.id, "name": review.product.name}
    return data


def feedback_out(feedback: Feedback) -> Dict[str, Any]:
    return {
        "id": feedback.id,
        "type": feedback.type,
        "message": feedback.message,
        "page_url": feedback.page_url,
        "is_resolved": feedback.is_resolved,
        "is_featured": feedback.is_featured,
        "created_at": iso(feedback.created_at),
        "user": (
            {"id": feedback.user.id, "first_name": feedback.user.first_name,
             "last_name": feedback.user.last_name, "email": feedback.user.email}
            if feedback.user
            else None
        ),
    }


def announcement_out(announcement: Announcement) -> Dict[str, Any]:
    return {
        "id": announcement.id,
        "title": announcement.title,
        "message": announcement.message,
        "type": announcement.type,
        "bg_color": announcement.bg_color,
        "text_color": announcement.text_color,
        "link_url": announcement.link_url,
        "link_text": announcement.link_text,
        "is_active": announcement.is_active,
        "priority": announcement.priority,
        "start_date": iso(announcement.start_date),
        "end_date": iso(announcement.end_date),
        "created_at": iso(announcement.created_at),
        "updated_at": iso(announcement.updated_at),
    }


def setting_out(setting: SiteSetting) -> Dict[str, Any]:
    return {
        "key": setting.key,
        "value": setting.value,
        "group": setting.group,
        "label": setting.label,
        "updated_at": iso(setting.updated_at),
    }


def audit_out(entry: AuditLog) -> Dict[str, Any]:
    return {
        "id": entry.id,
        "action": entry.action,
        "resource": entry.resource,
        "resource_id": entry.resource_id,
        "details": entry.details,
        "previous_values": entry.previous_values,
        "severity": entry.severity,
        "user_id": entry.user_id,
        "user_email": entry.user_email,
        "user_role": entry.user_role,
        "ip_address": entry.ip_address,
        "user_agent": entry.user_agent,
        "created_at": iso(entry.created_at),
    }


def invite_token_out(row: SuperAdminToken) -> Dict[str, Any]:
    return {
        "id": row.id,
        "purpose": row.purpose,
        "created_by": row.created_by,
        "expires_at": iso(row.expires_at),
        "used_at": iso(row.used_at),
        "used_by": row.used_by,
        "is_revoked": row.is_revoked,
        "status": token_status(row),
        "created_at": iso(row.created_at),
    }


def testimonial_out(review: Review) -> Dict[str, Any]:
    data = review_out(review, include_product=True)
    if review.user is not None:
        data["user"]["avatar_url"] = review.user.avatar_url
    return data
