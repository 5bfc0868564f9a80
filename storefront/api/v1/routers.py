"""
Основной роутер API v1.

Подключает все endpoint'ы приложения.
"""

from fastapi import APIRouter

from storefront.api.v1.endpoints import (
    addresses,
    admin,
    admin_catalog,
    announcements,
    auth,
    cart,
    categories,
    collections,
    feedback,
    images,
    orders,
    password,
    payments,
    products,
    reviews,
    search,
    settings,
    testimonials,
    wishlist,
)

# Создание основного роутера API v1
api_router = APIRouter()

# Аккаунт
api_router.include_router(auth.router, prefix="/auth", tags=["auth"])
api_router.include_router(password.router, prefix="/password", tags=["password"])
api_router.include_router(addresses.router, prefix="/addresses", tags=["addresses"])

# Каталог
api_router.include_router(products.router, prefix="/products", tags=["products"])
api_router.include_router(search.router, prefix="/search", tags=["search"])
api_router.include_router(categories.router, prefix="/categories", tags=["categories"])
api_router.include_router(categories.types_router, prefix="/types", tags=["categories"])
api_router.include_router(collections.router, prefix="/collections", tags=["collections"])
api_router.include_router(images.router, tags=["images"])

# Покупки
api_router.include_router(cart.router, prefix="/cart", tags=["cart"])
api_router.include_router(wishlist.router, prefix="/wishlist", tags=["wishlist"])
api_router.include_router(orders.router, prefix="/orders", tags=["orders"])
api_router.include_router(payments.router, prefix="/payments", tags=["payments"])

# Контент
api_router.include_router(reviews.router, prefix="/reviews", tags=["reviews"])
api_router.include_router(feedback.router, prefix="/feedback", tags=["feedback"])
api_router.include_router(announcements.router, prefix="/announcements", tags=["announcements"])
api_router.include_router(testimonials.router, prefix="/testimonials", tags=["testimonials"])
api_router.include_router(settings.public_router, prefix="/settings", tags=["settings"])

# Администрирование
api_router.include_router(settings.router, prefix="/admin/settings", tags=["admin-settings"])
api_router.include_router(admin_catalog.router, prefix="/admin", tags=["admin-catalog"])
api_router.include_router(admin.router, prefix="/admin", tags=["admin"])
