"""
API эндпоинты для административной панели.

Пользователи, статистика дашборда, журнал аудита и инвайт-токены
суперадминов.
"""

from typing import Optional

from fastapi import APIRouter, Depends, HTTPException, Query, Request
from sqlalchemy import desc, func, or_, select
from sqlalchemy.orm import Session

from storefront.api.v1.pagination import paginate
from storefront.api.v1.serializers import audit_out, invite_token_out, order_out, user_out
from storefront.core.auth import require_admin, require_primary_super_admin
from storefront.core.logging_config import get_logger
from storefront.db.database import get_db
from storefront.db.models import (
    AuditLog,
    Cart,
    CartItem,
    Order,
    OrderStatus,
    PaymentStatus,
    Product,
    Review,
    Role,
    Severity,
    SuperAdminToken,
    User,
    WishlistItem,
    utcnow,
)
from storefront.schemas.admin import AuditLogCreate, InviteTokenCreate, RoleUpdate, SuspendUpdate
from storefront.services import analytics_service, audit_service, invite_service, settings_service

logger = get_logger(__name__)

router = APIRouter()


def _get_user(db: Session, user_id: str) -> User:
    user = db.get(User, user_id)
    if user is None:
        raise HTTPException(404, detail="User not found")
    return user


# ==================== ПОЛЬЗОВАТЕЛИ ====================


@router.get("/users", response_model=dict)
def list_users(
    page: int = Query(1, ge=1, description="Номер страницы"),
    limit: int = Query(20, ge=1, le=100, description="Размер страницы"),
    search: Optional[str] = Query(None, description="Поиск по email и имени"),
    role: Optional[str] = Query(None, description="USER / ADMIN / SUPER_ADMIN"),
    suspended: Optional[bool] = Query(None),
    current_user: User = Depends(require_admin),
    db: Session = Depends(get_db),
):
    """Список пользователей с фильтрами и пагинацией."""
    query = db.query(User)
    if search and search.strip():
        term = search.strip()
        query = query.filter(
            or_(
                User.email.icontains(term, autoescape=True),
                User.first_name.icontains(term, autoescape=True),
                User.last_name.icontains(term, autoescape=True),
            )
        )
    if role:
        query = query.filter(User.role == role.upper())
    if suspended is not None:
        query = query.filter(User.is_suspended.is_(suspended))

    users, pagination = paginate(db, query.order_by(desc(User.created_at), User.id), page, limit)
    return {
        "users": [user_out(u) for u in users],
        "pagination": pagination,
    }


@router.get("/users/stats", response_model=dict)
def user_stats(
    current_user: User = Depends(require_admin),
    db: Session = Depends(get_db),
):
    """Количество пользователей по ролям и состояниям."""
    by_role = dict(db.query(User.role, func.count(User.id)).group_by(User.role).all())
    return {
        "total": db.query(User).count(),
        "verified": db.query(User).filter(User.is_verified.is_(True)).count(),
        "suspended": db.query(User).filter(User.is_suspended.is_(True)).count(),
        "by_role": {r: int(by_role.get(r, 0)) for r in Role.ALL},
    }


@router.get("/users/{user_id}", response_model=dict)
def get_user(
    user_id: str,
    current_user: User = Depends(require_admin),
    db: Session = Depends(get_db),
):
    """Пользователь с количеством заказов и суммой оплаченных заказов."""
    user = _get_user(db, user_id)
    order_count = db.query(Order).filter(Order.user_id == user.id).count()
    total_spent = (
        db.query(func.sum(Order.total_cents))
        .filter(Order.user_id == user.id, Order.payment_status == PaymentStatus.PAID)
        .scalar()
    )
    return {
        "user": {
            **user_out(user),
            "order_count": order_count,
            "total_spent_cents": int(total_spent or 0),
        }
    }


@router.put("/users/{user_id}/role", response_model=dict)
def change_role(
    user_id: str,
    payload: RoleUpdate,
    request: Request,
    current_user: User = Depends(require_admin),
    db: Session = Depends(get_db),
):
    """
    Смена роли пользователя.

    Raises:
        HTTPException: Неизвестная роль (400), своя роль или операции
            с SUPER_ADMIN без прав SUPER_ADMIN (403)
    """
    new_role = (payload.role or "").upper()
    if new_role not in Role.ALL:
        raise HTTPException(400, detail="Invalid role")
    user = _get_user(db, user_id)
    if user.id == current_user.id:
        raise HTTPException(403, detail="You cannot change your own role")
    touches_super = Role.SUPER_ADMIN in (new_role, user.role)
    if touches_super and not current_user.is_super_admin:
        raise HTTPException(403, detail="Only a super admin can grant or revoke super admin role")

    previous = user.role
    user.role = new_role
    db.commit()
    db.refresh(user)

    audit_service.record(
        db, "change_user_role", "User", resource_id=user.id,
        details={"role": new_role}, previous_values={"role": previous},
        severity=Severity.CRITICAL if touches_super else Severity.WARNING,
        user=current_user, request=request,
    )
    return {"message": "User role updated", "user": user_out(user)}


@router.patch("/users/{user_id}/suspend", response_model=dict)
def suspend_user(
    user_id: str,
    payload: SuspendUpdate,
    request: Request,
    current_user: User = Depends(require_admin),
    db: Session = Depends(get_db),
):
    """Блокировка или разблокировка; блокировка завершает сессии."""
    user = _get_user(db, user_id)
    if user.id == current_user.id:
        raise HTTPException(403, detail="You cannot suspend yourself")
    if user.is_super_admin and not current_user.is_super_admin:
        raise HTTPException(403, detail="Not enough permissions")

    user.is_suspended = payload.is_suspended
    user.suspended_at = utcnow() if payload.is_suspended else None
    if payload.is_suspended:
        user.refresh_token = None
    db.commit()
    db.refresh(user)

    audit_service.record(
        db, "suspend_user" if payload.is_suspended else "unsuspend_user", "User",
        resource_id=user.id, severity=Severity.WARNING,
        user=current_user, request=request,
    )
    return {
        "message": "User suspended" if user.is_suspended else "User unsuspended",
        "user": user_out(user),
    }


@router.patch("/users/{user_id}/verify", response_model=dict)
def verify_user(
    user_id: str,
    request: Request,
    current_user: User = Depends(require_admin),
    db: Session = Depends(get_db),
):
    user = _get_user(db, user_id)
    user.is_verified = True
    db.commit()
    db.refresh(user)
    audit_service.record(
        db, "verify_user", "User", resource_id=user.id, user=current_user, request=request
    )
    return {"message": "User verified", "user": user_out(user)}


@router.delete("/users/{user_id}", response_model=dict)
def delete_user(
    user_id: str,
    request: Request,
    current_user: User = Depends(require_admin),
    db: Session = Depends(get_db),
):
    """
    Удаление пользователя.

    Raises:
        HTTPException: Удаление себя, или админа не суперадмином (403),
            у пользователя есть заказы (400)
    """
    user = _get_user(db, user_id)
    if user.id == current_user.id:
        raise HTTPException(403, detail="You cannot delete your own account")
    if user.is_admin and not current_user.is_super_admin:
        raise HTTPException(403, detail="Only a super admin can delete admin accounts")
    if db.query(Order).filter(Order.user_id == user.id).count():
        raise HTTPException(
            400, detail="User has orders and cannot be deleted; suspend the account instead"
        )

    email, role = user.email, user.role
    cart_ids = select(Cart.id).where(Cart.user_id == user.id)
    db.query(CartItem).filter(CartItem.cart_id.in_(cart_ids)).delete(synchronize_session=False)
    db.query(Cart).filter(Cart.user_id == user.id).delete(synchronize_session=False)
    db.query(WishlistItem).filter(WishlistItem.user_id == user.id).delete(synchronize_session=False)
    db.query(Review).filter(Review.user_id == user.id).delete(synchronize_session=False)
    db.delete(user)
    db.commit()

    audit_service.record(
        db, "delete_user", "User", resource_id=user_id,
        details={"email": email, "role": role}, severity=Severity.CRITICAL,
        user=current_user, request=request,
    )
    return {"message": "User deleted"}


# ==================== ДАШБОРД ====================


@router.get("/dashboard/stats", response_model=dict)
def dashboard_stats(
    current_user: User = Depends(require_admin),
    db: Session = Depends(get_db),
):
    """
    Статистика для дашборда.

    Returns:
        dict: users, products (с низким остатком по настройке
            low_stock_threshold), orders по статусам, выручка оплаченных
            заказов и последние заказы
    """
    threshold = settings_service.get_int(db, "low_stock_threshold", 5)

    # Пользователи
    total_users = db.query(User).count()
    month_start = utcnow().replace(day=1, hour=0, minute=0, second=0, microsecond=0)
    new_users = db.query(User).filter(User.created_at >= month_start).count()

    # Товары
    active = db.query(Product).filter(Product.is_active.is_(True))
    product_stats = {
        "total": db.query(Product).count(),
        "active": active.count(),
        "out_of_stock": active.filter(Product.stock <= 0).count(),
        "low_stock": active.filter(Product.stock > 0, Product.stock <= threshold).count(),
        "low_stock_threshold": threshold,
    }

    # Заказы
    by_status = dict(db.query(Order.status, func.count(Order.id)).group_by(Order.status).all())
    revenue = (
        db.query(func.sum(Order.total_cents))
        .filter(Order.payment_status == PaymentStatus.PAID)
        .scalar()
    )
    recent = db.query(Order).order_by(desc(Order.created_at)).limit(5).all()

    return {
        "users": {"total": total_users, "new_this_month": new_users},
        "products": product_stats,
        "orders": {
            "total": sum(by_status.values()),
            "by_status": {s: int(by_status.get(s, 0)) for s in OrderStatus.ALL},
        },
        "revenue_cents": int(revenue or 0),
        "recent_orders": [order_out(o, include_user=True) for o in recent],
    }


@router.get("/analytics", response_model=dict)
def analytics(
    period: str = Query(
        analytics_service.DEFAULT_PERIOD, description="today / week / month / year / lifetime"
    ),
    current_user: User = Depends(require_admin),
    db: Session = Depends(get_db),
):
    """
    Аналитика за период: выручка без отмененных и возвращенных заказов,
    топ товаров и покупателей, счетчики журнала аудита.
    """
    if period not in analytics_service.PERIODS:
        raise HTTPException(400, detail="Invalid period")
    return analytics_service.build_analytics(db, period)


# ==================== ЖУРНАЛ АУДИТА ====================


@router.get("/audit-logs", response_model=dict)
def list_audit_logs(
    page: int = Query(1, ge=1),
    limit: int = Query(50, ge=1, le=200),
    action: Optional[str] = Query(None),
    resource: Optional[str] = Query(None),
    severity: Optional[str] = Query(None),
    user_id: Optional[str] = Query(None),
    current_user: User = Depends(require_admin),
    db: Session = Depends(get_db),
):
    """Журнал аудита, новые записи сверху."""
    query = db.query(AuditLog)
    if action:
        query = query.filter(AuditLog.action == action)
    if resource:
        query = query.filter(AuditLog.resource == resource)
    if severity:
        query = query.filter(AuditLog.severity == severity.lower())
    if user_id:
        query = query.filter(AuditLog.user_id == user_id)

    rows, pagination = paginate(
        db, query.order_by(desc(AuditLog.created_at), desc(AuditLog.id)), page, limit
    )
    return {
        "logs": [audit_out(r) for r in rows],
        "pagination": pagination,
    }


@router.get("/audit-logs/stats", response_model=dict)
def audit_log_stats(
    current_user: User = Depends(require_admin),
    db: Session = Depends(get_db),
):
    by_severity = dict(
        db.query(AuditLog.severity, func.count(AuditLog.id)).group_by(AuditLog.severity).all()
    )
    top_actions = (
        db.query(AuditLog.action, func.count(AuditLog.id).label("count"))
        .group_by(AuditLog.action)
        .order_by(desc("count"))
        .limit(10)
        .all()
    )
    return {
        "total": sum(by_severity.values()),
        "by_severity": {s: int(by_severity.get(s, 0)) for s in Severity.ALL},
        "top_actions": [{"action": a, "count": int(c)} for a, c in top_actions],
    }


@router.post("/audit-logs", response_model=dict, status_code=201)
def create_audit_log(
    payload: AuditLogCreate,
    request: Request,
    current_user: User = Depends(require_admin),
    db: Session = Depends(get_db),
):
    """Ручная запись в журнал (например, из админки фронтенда)."""
    if payload.severity not in Severity.ALL:
        raise HTTPException(400, detail=f"Invalid severity. Allowed: {', '.join(Severity.ALL)}")
    entry = audit_service.record(
        db, payload.action, payload.resource,
        resource_id=payload.resource_id, details=payload.details,
        severity=payload.severity, user=current_user, request=request,
    )
    if entry is None:
        raise HTTPException(500, detail="Failed to write audit log")
    return {"message": "Audit log created", "log": audit_out(entry)}


# ==================== ИНВАЙТ-ТОКЕНЫ СУПЕРАДМИНОВ ====================


@router.post("/superadmin/tokens", response_model=dict, status_code=201)
def create_invite_token(
    payload: InviteTokenCreate,
    request: Request,
    current_user: User = Depends(require_primary_super_admin),
    db: Session = Depends(get_db),
):
    """
    Выпустить инвайт-токен для регистрации суперадмина.

    Сам токен возвращается только один раз, в базе хранится хеш.
    """
    row, raw = invite_service.create_token(
        db, current_user, payload.expires_in_hours, payload.purpose
    )
    audit_service.record(
        db, "create_superadmin_token", "SuperAdminToken", resource_id=row.id,
        details={"expires_at": row.expires_at.isoformat(), "purpose": row.purpose},
        severity=Severity.CRITICAL, user=current_user, request=request,
    )
    return {
        "message": "Invite token created. Copy it now, it will not be shown again.",
        "token": raw,
        "invite": invite_token_out(row),
    }


@router.get("/superadmin/tokens", response_model=dict)
def list_invite_tokens(
    current_user: User = Depends(require_primary_super_admin),
    db: Session = Depends(get_db),
):
    rows = db.scalars(select(SuperAdminToken).order_by(desc(SuperAdminToken.created_at))).all()
    return {"tokens": [invite_token_out(r) for r in rows]}


@router.post("/superadmin/tokens/{token_id}/revoke", response_model=dict)
def revoke_invite_token(
    token_id: str,
    request: Request,
    current_user: User = Depends(require_primary_super_admin),
    db: Session = Depends(get_db),
):
    row = db.get(SuperAdminToken, token_id)
    if row is None:
        raise HTTPException(404, detail="Token not found")
    if row.used_at is not None:
        raise HTTPException(400, detail="Token has already been used")
    row.is_revoked = True
    db.commit()
    db.refresh(row)

    audit_service.record(
        db, "revoke_superadmin_token", "SuperAdminToken", resource_id=row.id,
        severity=Severity.WARNING, user=current_user, request=request,
    )
    return {"message": "Token revoked", "invite": invite_token_out(row)}
