"""
Сервис аналитики для админки.

Метрики за период (today, week, month, year, lifetime) одним ответом:
выручка, заказы, покупатели, топ товаров и покупателей, журнал аудита.
"""

from datetime import datetime, timedelta
from typing import Any, Dict, Optional

from sqlalchemy import desc, func, select
from sqlalchemy.orm import Session

from storefront.db.models import (
    AuditLog,
    Collection,
    Feedback,
    Order,
    OrderItem,
    OrderStatus,
    Product,
    Review,
    Role,
    User,
    utcnow,
)
from storefront.services import settings_service

PERIODS = ("today", "week", "month", "year", "lifetime")
DEFAULT_PERIOD = "month"

# Не учитываются в выручке
EXCLUDED_STATUSES = (OrderStatus.CANCELLED, OrderStatus.REFUNDED)

TOP_LIMIT = 5
LOW_STOCK_LIMIT = 8


def period_start(period: str, now: datetime) -> Optional[datetime]:
    """
    Начало периода; None для lifetime.

    Неделя начинается с воскресенья.
    """
    midnight = now.replace(hour=0, minute=0, second=0, microsecond=0)
    if period == "today":
        return midnight
    if period == "week":
        return midnight - timedelta(days=(midnight.weekday() + 1) % 7)
    if period == "month":
        return midnight.replace(day=1)
    if period == "year":
        return midnight.replace(month=1, day=1)
    return None


def _since(column, start: Optional[datetime]) -> list:
    return [column >= start] if start is not None else []


def _count(db: Session, model, *conditions) -> int:
    return db.scalar(select(func.count()).select_from(model).where(*conditions)) or 0


def _top_products(db: Session, start: Optional[datetime]) -> list:
    revenue = func.sum(OrderItem.price_cents * OrderItem.quantity)
    rows = db.execute(
        select(
            OrderItem.product_id,
            func.max(OrderItem.product_name).label("name"),
            revenue.label("revenue"),
            func.sum(OrderItem.quantity).label("quantity"),
        )
        .join(Order, OrderItem.order_id == Order.id)
        .where(Order.status.notin_(EXCLUDED_STATUSES), *_since(Order.created_at, start))
        .group_by(OrderItem.product_id)
        .order_by(desc("revenue"))
        .limit(TOP_LIMIT)
    ).all()
    images = dict(
        db.execute(
            select(Product.id, Product.image_url).where(
                Product.id.in_([row.product_id for row in rows])
            )
        ).all()
    )
    return [
        {
            "id": row.product_id,
            "name": row.name,
            "image_url": images.get(row.product_id),
            "revenue_cents": int(row.revenue or 0),
            "quantity": int(row.quantity or 0),
        }
        for row in rows
    ]


def _top_customers(db: Session, start: Optional[datetime]) -> list:
    spent = func.sum(Order.total_cents)
    rows = db.execute(
        select(User, spent.label("spent"), func.count(Order.id).label("orders"))
        .join(Order, Order.user_id == User.id)
        .where(Order.status.notin_(EXCLUDED_STATUSES), *_since(Order.created_at, start))
        .group_by(User.id)
        .order_by(desc("spent"))
        .limit(TOP_LIMIT)
    ).all()
    return [
        {
            "email": user.email,
            "name": f"{user.first_name or ''} {user.last_name or ''}".strip() or user.email,
            "spent_cents": int(total or 0),
            "orders": orders,
        }
        for user, total, orders in rows
    ]


def build_analytics(db: Session, period: str, now: Optional[datetime] = None) -> Dict[str, Any]:
    """
    Собрать метрики за период.

    Args:
        db: Сессия базы данных
        period: today, week, month, year или lifetime
        now: Текущее время (UTC без tzinfo), по умолчанию utcnow()

    Returns:
        dict: Метрики периода и общие счетчики
    """
    now = now or utcnow()
    start = period_start(period, now)
    in_period = _since(Order.created_at, start)

    order_count = _count(db, Order, *in_period)
    revenue, completed = db.execute(
        select(func.sum(Order.total_cents), func.count(Order.id)).where(
            Order.status.notin_(EXCLUDED_STATUSES), *in_period
        )
    ).one()
    revenue = int(revenue or 0)
    breakdown = dict(
        db.execute(
            select(Order.status, func.count(Order.id)).where(*in_period).group_by(Order.status)
        ).all()
    )
    customers = db.scalar(select(func.count(func.distinct(Order.user_id))).where(*in_period)) or 0

    roles = dict(db.execute(select(User.role, func.count(User.id)).group_by(User.role)).all())
    total_users = sum(roles.values())

    threshold = settings_service.get_int(db, "low_stock_threshold", 5)
    low_stock = db.scalars(
        select(Product)
        .where(Product.is_active.is_(True), Product.stock <= threshold)
        .order_by(Product.stock, Product.name)
        .limit(LOW_STOCK_LIMIT)
    ).all()
    recent = db.scalars(
        select(Order).where(*in_period).order_by(desc(Order.created_at)).limit(TOP_LIMIT)
    ).all()

    audit_stats = {
        "total": _count(db, AuditLog),
        "today": _count(db, AuditLog, AuditLog.created_at >= period_start("today", now)),
        "this_week": _count(db, AuditLog, AuditLog.created_at >= period_start("week", now)),
        "this_month": _count(db, AuditLog, AuditLog.created_at >= period_start("month", now)),
        "this_year": _count(db, AuditLog, AuditLog.created_at >= period_start("year", now)),
    }

    return {
        "period": period,
        "period_start": start.isoformat() if start else None,
        "period_revenue_cents": revenue,
        "period_order_count": order_count,
        "period_customers": customers,
        "period_aov_cents": round(revenue / completed) if completed else 0,
        "breakdown": {s: int(breakdown.get(s, 0)) for s in OrderStatus.ALL},
        "pending_orders": int(
            breakdown.get(OrderStatus.PENDING, 0) + breakdown.get(OrderStatus.PROCESSING, 0)
        ),
        "total_users": total_users,
        "admin_count": roles.get(Role.ADMIN, 0) + roles.get(Role.SUPER_ADMIN, 0),
        "super_admin_count": roles.get(Role.SUPER_ADMIN, 0),
        "customer_user_count": roles.get(Role.USER, 0),
        "total_products": _count(db, Product),
        "active_products": _count(db, Product, Product.is_active.is_(True)),
        "low_stock": [
            {
                "id": p.id,
                "name": p.name,
                "stock": p.stock,
                "collection": p.collection.name if p.collection else None,
            }
            for p in low_stock
        ],
        "total_collections": _count(db, Collection),
        "period_review_count": _count(db, Review, *_since(Review.created_at, start)),
        "period_feedback_count": _count(db, Feedback, *_since(Feedback.created_at, start)),
        "unresolved_feedback": _count(db, Feedback, Feedback.is_resolved.is_(False)),
        "top_products": _top_products(db, start),
        "top_customers": _top_customers(db, start),
        "recent_orders": [
            {
                "id": o.id,
                "order_number": o.order_number,
                "total_cents": o.total_cents,
                "status": o.status,
                "created_at": o.created_at.isoformat(),
                "customer_email": o.user.email if o.user else None,
            }
            for o in recent
        ],
        "conversion_rate": round(customers / total_users * 100, 2) if total_users else 0,
        "audit_stats": audit_stats,
        "period_audit_count": (
            _count(db, AuditLog, *_since(AuditLog.created_at, start))
        ),
    }
