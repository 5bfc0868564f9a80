"""
Сервис настроек сайта.

Настройки хранятся строками в таблице site_settings. Значения по умолчанию
досоздаются при первом чтении, существующие значения не перезаписываются.
"""

import json
from typing import Any, Dict, List, Optional

from sqlalchemy import select
from sqlalchemy.orm import Session

from storefront.db.models import SiteSetting

DEFAULT_SETTINGS: List[Dict[str, str]] = [
    # Магазин
    {"key": "store_name", "value": "The Babel Edit", "group": "general", "label": "Store Name"},
    {"key": "store_contact_email", "value": "", "group": "general", "label": "Contact Email"},
    {"key": "store_currency", "value": "USD", "group": "general", "label": "Currency"},
    {"key": "store_timezone", "value": "America/New_York", "group": "general", "label": "Timezone"},
    # Переключатели функций
    {"key": "maintenance_mode", "value": "false", "group": "features", "label": "Maintenance Mode"},
    {"key": "new_user_registration", "value": "true", "group": "features", "label": "New User Registration"},
    {"key": "email_notifications", "value": "true", "group": "features", "label": "Email Notifications"},
    {"key": "promotional_emails", "value": "false", "group": "features", "label": "Promotional Emails"},
    {"key": "guest_checkout", "value": "false", "group": "features", "label": "Guest Checkout"},
    {"key": "review_moderation", "value": "false", "group": "features", "label": "Review Moderation"},
    # Уведомления
    {"key": "notify_new_order", "value": "true", "group": "notifications", "label": "New Order Alert"},
    {"key": "notify_low_stock", "value": "true", "group": "notifications", "label": "Low Stock Alert"},
    {"key": "notify_new_review", "value": "false", "group": "notifications", "label": "New Review Alert"},
    {"key": "notify_new_user", "value": "false", "group": "notifications", "label": "New User Registration Alert"},
    {"key": "low_stock_threshold", "value": "5", "group": "notifications", "label": "Low Stock Threshold"},
    # Заказы
    {"key": "order_number_prefix", "value": "TBE", "group": "orders", "label": "Order Number Prefix"},
    {"key": "return_window_days", "value": "30", "group": "orders", "label": "Return Window (Days)"},
    {"key": "auto_cancel_hours", "value": "48", "group": "orders", "label": "Auto-Cancel Unpaid Orders (Hours)"},
    {"key": "min_order_amount", "value": "0", "group": "orders", "label": "Minimum Order Amount"},
    # Доставка
    {"key": "free_shipping_threshold", "value": "100", "group": "shipping", "label": "Free Shipping Threshold"},
    {"key": "flat_rate_shipping", "value": "10", "group": "shipping", "label": "Flat Rate Shipping"},
    {
        "key": "shipping_countries",
        "value": json.dumps(["GB", "US", "FR", "DE", "IT", "ES"]),
        "group": "shipping",
        "label": "Shipping Countries",
    },
    # Налоги
    {"key": "tax_rate", "value": "8", "group": "tax", "label": "Tax Rate (%)"},
    {"key": "tax_inclusive_pricing", "value": "false", "group": "tax", "label": "Prices Include Tax"},
    # Бренд и контакты
    {"key": "store_tagline", "value": "", "group": "branding", "label": "Store Tagline"},
    {"key": "store_description", "value": "", "group": "branding", "label": "Store Description"},
    {"key": "store_phone", "value": "", "group": "branding", "label": "Phone Number"},
    {"key": "store_address", "value": "", "group": "branding", "label": "Business Address"},
    {"key": "store_logo_url", "value": "", "group": "branding", "label": "Logo URL"},
    {"key": "social_facebook", "value": "", "group": "branding", "label": "Facebook URL"},
    {"key": "social_instagram", "value": "", "group": "branding", "label": "Instagram URL"},
    {"key": "social_twitter", "value": "", "group": "branding", "label": "Twitter / X URL"},
    {"key": "social_tiktok", "value": "", "group": "branding", "label": "TikTok URL"},
    # SEO
    {
        "key": "seo_meta_title",
        "value": "The Babel Edit | Curated Pre-Loved Fashion",
        "group": "seo",
        "label": "Default Meta Title",
    },
    {"key": "seo_meta_description", "value": "", "group": "seo", "label": "Default Meta Description"},
    {"key": "seo_og_image_url", "value": "", "group": "seo", "label": "Default OG Image URL"},
    {"key": "seo_google_analytics", "value": "", "group": "seo", "label": "Google Analytics ID"},
    {"key": "seo_facebook_pixel", "value": "", "group": "seo", "label": "Facebook Pixel ID"},
    # Склад
    {"key": "inventory_track_stock", "value": "true", "group": "inventory", "label": "Track Inventory"},
    {"key": "inventory_hide_out_of_stock", "value": "false", "group": "inventory", "label": "Hide Out-of-Stock Products"},
    {"key": "inventory_allow_backorders", "value": "false", "group": "inventory", "label": "Allow Backorders"},
    # Оплата
    {"key": "payment_stripe_enabled", "value": "true", "group": "payment", "label": "Stripe Payments"},
    {"key": "payment_cod_enabled", "value": "false", "group": "payment", "label": "Cash on Delivery"},
    {"key": "payment_bank_transfer", "value": "false", "group": "payment", "label": "Bank Transfer"},
    # Безопасность
    {"key": "security_max_login_attempts", "value": "5", "group": "security", "label": "Max Login Attempts"},
    {"key": "security_lockout_minutes", "value": "15", "group": "security", "label": "Lockout Duration (Minutes)"},
    {"key": "security_session_timeout", "value": "1440", "group": "security", "label": "Session Timeout (Minutes)"},
    {"key": "security_enforce_strong_pwd", "value": "true", "group": "security", "label": "Enforce Strong Passwords"},
]

DEFAULTS_BY_KEY = {s["key"]: s for s in DEFAULT_SETTINGS}

# Ключи, безопасные для витрины без авторизации
PUBLIC_KEYS = (
    "maintenance_mode", "store_name", "store_currency", "store_timezone",
    "store_contact_email", "store_tagline", "store_description", "store_phone",
    "store_address", "store_logo_url",
    "social_facebook", "social_instagram", "social_twitter", "social_tiktok",
    "seo_meta_title", "seo_meta_description", "seo_og_image_url",
    "seo_google_analytics", "seo_facebook_pixel",
    "free_shipping_threshold", "flat_rate_shipping", "shipping_countries",
    "tax_rate", "tax_inclusive_pricing",
    "return_window_days", "min_order_amount",
    "inventory_hide_out_of_stock", "inventory_allow_backorders",
    "payment_stripe_enabled", "payment_cod_enabled", "payment_bank_transfer",
    "guest_checkout", "new_user_registration",
)


def to_setting_value(value: Any) -> str:
    """Приведение значения к строке: объекты в JSON, bool в true/false."""
    if isinstance(value, bool):
        return "true" if value else "false"
    if isinstance(value, (dict, list)):
        return json.dumps(value)
    return str(value)


def ensure_defaults(db: Session) -> None:
    """Досоздать отсутствующие ключи без перезаписи существующих значений."""
    existing = set(db.scalars(select(SiteSetting.key)).all())
    missing = [s for s in DEFAULT_SETTINGS if s["key"] not in existing]
    if not missing:
        return
    for item in missing:
        db.add(SiteSetting(**item))
    db.commit()


def get_value(db: Session, key: str, default: Optional[str] = None) -> Optional[str]:
    """
    Значение настройки.

    Если строки нет, возвращается значение по умолчанию из DEFAULT_SETTINGS,
    затем параметр default.
    """
    row = db.scalar(select(SiteSetting).where(SiteSetting.key == key))
    if row is not None:
        return row.value
    if key in DEFAULTS_BY_KEY:
        return DEFAULTS_BY_KEY[key]["value"]
    return default


def is_enabled(db: Session, key: str) -> bool:
    return (get_value(db, key, "false") or "").strip().lower() == "true"


def get_int(db: Session, key: str, default: int) -> int:
    try:
        return int(float(get_value(db, key, str(default))))
    except (TypeError, ValueError):
        return default


def list_settings(db: Session) -> List[SiteSetting]:
    ensure_defaults(db)
    return list(db.scalars(select(SiteSetting).order_by(SiteSetting.key)).all())


def get_setting(db: Session, key: str) -> Optional[SiteSetting]:
    return db.scalar(select(SiteSetting).where(SiteSetting.key == key))


def reset_to_defaults(db: Session) -> Dict[str, str]:
    """
    Сбросить все настройки к значениям по умолчанию.

    Returns:
        Dict[str, str]: Значения до сброса
    """
    previous = {s.key: s.value for s in db.scalars(select(SiteSetting)).all()}
    db.query(SiteSetting).delete()
    for item in DEFAULT_SETTINGS:
        db.add(SiteSetting(**item))
    db.commit()
    return previous


def public_settings(db: Session) -> List[SiteSetting]:
    ensure_defaults(db)
    stmt = select(SiteSetting).where(SiteSetting.key.in_(PUBLIC_KEYS)).order_by(SiteSetting.key)
    return list(db.scalars(stmt).all())
