"""
API endpoints платежей Stripe: создание PaymentIntent и вебхук.
"""

from fastapi import APIRouter, Depends, HTTPException, Request
from sqlalchemy.orm import Session

from storefront.core.auth import get_current_active_user
from storefront.core.config import settings
from storefront.core.logging_config import get_logger
from storefront.db.database import get_db
from storefront.db.models import Order, PaymentStatus, Severity, User
from storefront.schemas.order import PaymentIntentCreate
from storefront.services import audit_service, email_service, order_service, settings_service
from storefront.services.payment_service import PaymentGateway, get_payment_gateway

logger = get_logger(__name__)

WEBHOOK_ACTOR = "stripe-webhook"

router = APIRouter()


@router.post("/create-payment-intent", response_model=dict)
def create_payment_intent(
    payload: PaymentIntentCreate,
    current_user: User = Depends(get_current_active_user),
    db: Session = Depends(get_db),
    gateway: PaymentGateway = Depends(get_payment_gateway),
):
    """
    Создать PaymentIntent для заказа.

    Returns:
        dict: client_secret и payment_intent_id

    Raises:
        HTTPException: Нет order_id, заказ оплачен или сумма меньше
            минимальной (400), заказ не найден (404)
    """
    if not payload.order_id:
        raise HTTPException(400, detail="Order ID is required")
    order = db.get(Order, payload.order_id)
    if order is None or order.user_id != current_user.id:
        raise HTTPException(404, detail="Order not found")
    if order.payment_status == PaymentStatus.PAID:
        raise HTTPException(400, detail="Order is already paid")
    if order.total_cents < settings.MIN_PAYMENT_CENTS:
        raise HTTPException(
            400,
            detail=f"Order total must be at least {settings.MIN_PAYMENT_CENTS} cents",
        )

    intent = gateway.create_payment_intent(
        amount_cents=order.total_cents,
        currency=(order.currency or settings.STRIPE_CURRENCY).lower(),
        metadata={
            "order_id": order.id,
            "order_number": order.order_number,
            "user_id": current_user.id,
        },
        description=f"Order {order.order_number}",
    )
    order.payment_intent_id = intent["id"]
    db.commit()

    logger.info("Payment intent %s created for order %s", intent["id"], order.order_number)
    return {"client_secret": intent["client_secret"], "payment_intent_id": intent["id"]}


async def raw_body(request: Request) -> bytes:
    """Тело запроса как есть (нужно для проверки подписи Stripe)."""
    return await request.body()


def _audit_webhook(db: Session, action: str, order: Order, intent: dict, severity: str, **details):
    audit_service.record(
        db, action, "Payment", resource_id=order.id,
        details={
            "order_id": order.id,
            "order_number": order.order_number,
            "payment_intent_id": intent.get("id"),
            **details,
        },
        severity=severity, user_email=WEBHOOK_ACTOR,
    )


@router.post("/webhook", response_model=dict)
def stripe_webhook(
    request: Request,
    body: bytes = Depends(raw_body),
    db: Session = Depends(get_db),
    gateway: PaymentGateway = Depends(get_payment_gateway),
):
    """
    Вебхук Stripe.

    Неизвестные типы событий подтверждаются без обработки. События для
    неизвестных, уже оплаченных или отмененных заказов тоже подтверждаются,
    заказ при этом не меняется.
    """
    event = gateway.construct_event(body, request.headers.get("stripe-signature"))
    intent = event["object"] or {}
    metadata = intent.get("metadata") or {}

    if event["type"] == "payment_intent.succeeded":
        order, changed = order_service.mark_paid_by_intent(
            db, metadata.get("order_id"), intent.get("id")
        )
        if changed:
            logger.info("Order %s paid via webhook", order.order_number)
            _audit_webhook(
                db, "payment_succeeded", order, intent, Severity.INFO,
                amount_cents=intent.get("amount"),
            )
            if settings_service.is_enabled(db, "email_notifications"):
                email_service.send_order_confirmation_emails(order)
        elif order is not None and order.payment_status != PaymentStatus.PAID:
            # Деньги списаны за заказ, который уже не ждет оплаты
            _audit_webhook(
                db, "payment_succeeded_for_inactive_order", order, intent, Severity.CRITICAL,
                status=order.status,
            )
    elif event["type"] == "payment_intent.payment_failed":
        order, changed = order_service.mark_failed_by_intent(
            db, metadata.get("order_id"), intent.get("id")
        )
        if changed:
            logger.warning("Payment failed for order %s", order.order_number)
            error = intent.get("last_payment_error") or {}
            _audit_webhook(
                db, "payment_failed", order, intent, Severity.WARNING,
                failure_message=error.get("message"),
            )
    else:
        logger.info("Unhandled Stripe event type %s", event["type"])

    return {"received": True}
