"""
API endpoints для работы с заказами.

Оформление заказа из формы checkout или из корзины, просмотр, отмена,
подтверждение оплаты, а также управление заказами администратором.
"""

from typing import Optional

from fastapi import APIRouter, Depends, HTTPException, Query, Request
from sqlalchemy import desc, or_, select
from sqlalchemy.orm import Session

from storefront.api.v1.pagination import paginate
from storefront.api.v1.serializers import order_out
from storefront.core.auth import get_current_active_user, require_admin
from storefront.core.logging_config import get_logger
from storefront.db.database import get_db
from storefront.db.models import Order, OrderStatus, Severity, User
from storefront.schemas.order import CheckoutOrderCreate, OrderFromCart, OrderStatusUpdate
from storefront.services import audit_service, email_service, order_service, settings_service
from storefront.services.order_service import LineRequest
from storefront.services.payment_service import PaymentGateway, get_payment_gateway

logger = get_logger(__name__)

router = APIRouter()


def _notify(db: Session) -> bool:
    return settings_service.is_enabled(db, "email_notifications")


def _check_status_filter(status: Optional[str]) -> Optional[str]:
    if not status:
        return None
    status = status.upper()
    if status not in OrderStatus.ALL:
        raise HTTPException(400, detail=f"Invalid status: {status}")
    return status


@router.post("", response_model=dict, status_code=201)
def create_checkout_order(
    payload: CheckoutOrderCreate,
    request: Request,
    current_user: User = Depends(get_current_active_user),
    db: Session = Depends(get_db),
):
    """
    Создать заказ из формы checkout перед оплатой через Stripe.

    Цены и остатки проверяются на сервере, корзина не очищается.

    Raises:
        HTTPException: Email не подтвержден (403), неверные данные
            или недостаточно товара (400), товар не найден (404)
    """
    details = payload.shipping_details.model_dump() if payload.shipping_details else None
    order = order_service.create_order_from_checkout(
        db,
        current_user,
        [LineRequest(i.product_id, i.quantity, i.size, i.color) for i in payload.items],
        total_amount_cents=payload.total_amount_cents,
        shipping_cost_cents=payload.shipping_cost_cents,
        shipping_method=payload.shipping_method,
        shipping_details=details,
    )
    audit_service.record(
        db, "create_order", "Order", resource_id=order.id,
        details={"order_number": order.order_number, "total_cents": order.total_cents},
        user=current_user, request=request,
    )
    return {"message": "Order created successfully", "order": order_out(order)}


@router.post("/from-cart", response_model=dict, status_code=201)
def create_order_from_cart(
    payload: OrderFromCart,
    request: Request,
    current_user: User = Depends(get_current_active_user),
    db: Session = Depends(get_db),
):
    """
    Оформить заказ из корзины.

    Корзина очищается, остатки списываются в той же транзакции.
    """
    order = order_service.create_order_from_cart(
        db,
        current_user,
        payload.shipping_address_id,
        payment_method=payload.payment_method,
        notes=payload.notes,
        promo_code=payload.promo_code,
    )
    if _notify(db):
        email_service.send_order_confirmation_emails(order)
    audit_service.record(
        db, "create_order", "Order", resource_id=order.id,
        details={"order_number": order.order_number, "total_cents": order.total_cents,
                 "source": "cart"},
        user=current_user, request=request,
    )
    return {"message": "Order created successfully", "order": order_out(order)}


@router.get("", response_model=dict)
def list_my_orders(
    page: int = Query(1, ge=1, description="Номер страницы"),
    limit: int = Query(10, ge=1, le=100, description="Размер страницы"),
    status: Optional[str] = Query(None, description="Фильтр по статусу"),
    current_user: User = Depends(get_current_active_user),
    db: Session = Depends(get_db),
):
    """Заказы текущего пользователя, новые сверху."""
    status = _check_status_filter(status)
    conditions = [Order.user_id == current_user.id]
    if status:
        conditions.append(Order.status == status)

    stmt = select(Order).where(*conditions).order_by(desc(Order.created_at), Order.id)
    rows, pagination = paginate(db, stmt, page, limit)
    return {
        "orders": [order_out(o) for o in rows],
        "pagination": pagination,
    }


# ==================== АДМИНИСТРИРОВАНИЕ ====================


@router.get("/admin/all", response_model=dict)
def admin_list_orders(
    page: int = Query(1, ge=1),
    limit: int = Query(20, ge=1, le=100),
    status: Optional[str] = Query(None, description="Фильтр по статусу"),
    search: Optional[str] = Query(None, description="Номер заказа или email покупателя"),
    current_user: User = Depends(require_admin),
    db: Session = Depends(get_db),
):
    """Все заказы с фильтрами и пагинацией."""
    status = _check_status_filter(status)
    conditions = []
    if status:
        conditions.append(Order.status == status)
    if search and search.strip():
        term = search.strip()
        conditions.append(or_(
            Order.order_number.icontains(term, autoescape=True),
            User.email.icontains(term, autoescape=True),
        ))

    stmt = (
        select(Order)
        .join(User, Order.user_id == User.id)
        .where(*conditions)
        .order_by(desc(Order.created_at), Order.id)
    )
    rows, pagination = paginate(db, stmt, page, limit)
    return {
        "orders": [order_out(o, include_user=True) for o in rows],
        "pagination": pagination,
    }


@router.get("/admin/{order_id}", response_model=dict)
def admin_get_order(
    order_id: str,
    current_user: User = Depends(require_admin),
    db: Session = Depends(get_db),
):
    order = db.get(Order, order_id)
    if order is None:
        raise HTTPException(404, detail="Order not found")
    return {"order": order_out(order, include_user=True)}


@router.patch("/admin/{order_id}/status", response_model=dict)
def admin_update_status(
    order_id: str,
    payload: OrderStatusUpdate,
    request: Request,
    current_user: User = Depends(require_admin),
    db: Session = Depends(get_db),
    gateway: PaymentGateway = Depends(get_payment_gateway),
):
    """
    Смена статуса заказа, трек-номера и даты доставки.

    Возврат в Stripe при ошибке не блокирует смену статуса,
    ошибка пишется в журнал аудита как критическая.

    Raises:
        HTTPException: Заказ не найден (404), неверный статус или переход (400)
    """
    order = db.get(Order, order_id)
    if order is None:
        raise HTTPException(404, detail="Order not found")
    if not payload.status and payload.tracking_number is None and payload.estimated_delivery is None:
        raise HTTPException(400, detail="Nothing to update")

    new_status = payload.status.upper() if payload.status else None
    change = order_service.update_status(
        db,
        order,
        new_status,
        gateway,
        tracking_number=payload.tracking_number,
        estimated_delivery=payload.estimated_delivery,
    )
    order = change.order

    if change.refund_error:
        audit_service.record(
            db, "stripe_refund_failed", "Order", resource_id=order.id,
            details={"order_number": order.order_number, "error": change.refund_error},
            severity=Severity.CRITICAL, user=current_user, request=request,
        )

    if _notify(db):
        if change.status_changed:
            email_service.send_status_change_email(order, order.status)
        elif change.tracking_changed and order.tracking_number:
            email_service.send_tracking_update_email(order)

    audit_service.record(
        db, "update_order_status", "Order", resource_id=order.id,
        details={
            "order_number": order.order_number,
            "status": order.status,
            "tracking_number": order.tracking_number,
        },
        previous_values={
            "status": change.previous_status,
            "tracking_number": change.previous_tracking,
        },
        severity=(
            Severity.WARNING
            if order.status in (OrderStatus.CANCELLED, OrderStatus.REFUNDED)
            and change.status_changed
            else Severity.INFO
        ),
        user=current_user, request=request,
    )

    response = {"message": "Order updated successfully", "order": order_out(order, include_user=True)}
    if change.refund_error:
        response["refund_error"] = change.refund_error
    return response


# ==================== ЗАКАЗ ПОКУПАТЕЛЯ ====================


@router.get("/{order_id}", response_model=dict)
def get_my_order(
    order_id: str,
    current_user: User = Depends(get_current_active_user),
    db: Session = Depends(get_db),
):
    """Заказ пользователя с позициями и адресом доставки."""
    return {"order": order_out(order_service.get_user_order(db, current_user, order_id))}


@router.patch("/{order_id}/cancel", response_model=dict)
def cancel_order(
    order_id: str,
    request: Request,
    current_user: User = Depends(get_current_active_user),
    db: Session = Depends(get_db),
):
    """Отмена заказа в статусе PENDING или CONFIRMED с возвратом остатков."""
    order = order_service.cancel_order(db, current_user, order_id)
    audit_service.record(
        db, "cancel_order", "Order", resource_id=order.id,
        details={"order_number": order.order_number}, user=current_user, request=request,
    )
    return {"message": "Order cancelled successfully", "order": order_out(order)}


@router.patch("/{order_id}/confirm-payment", response_model=dict)
def confirm_payment(
    order_id: str,
    request: Request,
    current_user: User = Depends(get_current_active_user),
    db: Session = Depends(get_db),
):
    """
    Подтверждение оплаты после успешного платежа на клиенте.

    Повторный вызов для оплаченного заказа ничего не меняет.
    """
    order, already = order_service.confirm_payment(db, current_user, order_id)
    if already:
        return {"message": "Payment already confirmed", "order": order_out(order)}
    audit_service.record(
        db, "confirm_order_payment", "Order", resource_id=order.id,
        details={
            "order_number": order.order_number,
            "status": order.status,
            "payment_status": order.payment_status,
        },
        user=current_user, request=request,
    )
    if _notify(db):
        email_service.send_order_confirmation_emails(order)
    logger.info("Payment confirmed for order %s", order.order_number)
    return {"message": "Payment confirmed", "order": order_out(order)}
