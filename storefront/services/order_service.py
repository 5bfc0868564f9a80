"""
Сервис заказов.

Содержит жизненный цикл статусов, расчет сумм, создание заказа из корзины
и из формы checkout, отмену, подтверждение оплаты и смену статуса
администратором. Все суммы в центах.
"""

import random
import time
from dataclasses import dataclass
from datetime import datetime
from typing import Dict, Iterable, List, Optional, Tuple

from sqlalchemy import select, update
from sqlalchemy.orm import Session

from storefront.core.config import settings
from storefront.core.exceptions import ForbiddenError, NotFoundError, PaymentError, ValidationError
from storefront.core.logging_config import get_logger
from storefront.db.models import (
    Address,
    Order,
    OrderItem,
    OrderStatus,
    PaymentStatus,
    Product,
    User,
    utcnow,
)
from storefront.services import cart_service, settings_service
from storefront.services.payment_service import PaymentGateway

logger = get_logger(__name__)

# Допустимые переходы статусов
ALLOWED_TRANSITIONS: Dict[str, Tuple[str, ...]] = {
    OrderStatus.PENDING: (OrderStatus.CONFIRMED, OrderStatus.CANCELLED),
    OrderStatus.CONFIRMED: (OrderStatus.PROCESSING, OrderStatus.CANCELLED),
    OrderStatus.PROCESSING: (OrderStatus.SHIPPED, OrderStatus.CANCELLED),
    OrderStatus.SHIPPED: (OrderStatus.DELIVERED,),
    OrderStatus.DELIVERED: (OrderStatus.REFUNDED,),
    OrderStatus.CANCELLED: (),
    OrderStatus.REFUNDED: (),
}

USER_CANCELLABLE = (OrderStatus.PENDING, OrderStatus.CONFIRMED)
WEBHOOK_PAYABLE = (OrderStatus.PENDING, OrderStatus.CONFIRMED)

PROMO_SAVE10 = "SAVE10"
PROMO_FREESHIP = "FREESHIP"

# Допустимое расхождение суммы клиента и сервера, в центах
TOTAL_TOLERANCE_CENTS = 100


def can_transition(current: str, new: str) -> bool:
    return new in ALLOWED_TRANSITIONS.get(current, ())


@dataclass
class Totals:
    subtotal_cents: int
    tax_cents: int
    shipping_cents: int
    discount_cents: int

    @property
    def total_cents(self) -> int:
        return self.subtotal_cents + self.tax_cents + self.shipping_cents - self.discount_cents


def calculate_tax(subtotal_cents: int) -> int:
    return round(subtotal_cents * settings.TAX_RATE_PERCENT / 100)


def calculate_totals(subtotal_cents: int, promo_code: Optional[str] = None) -> Totals:
    """
    Суммы заказа из корзины.

    Доставка бесплатна, если подытог больше порога. SAVE10 дает 10%
    от подытога, FREESHIP компенсирует доставку.
    """
    shipping = (
        0 if subtotal_cents > settings.FREE_SHIPPING_THRESHOLD_CENTS else settings.FLAT_SHIPPING_CENTS
    )
    discount = 0
    code = (promo_code or "").strip().upper()
    if code == PROMO_SAVE10:
        discount = round(subtotal_cents * 0.10)
    elif code == PROMO_FREESHIP:
        discount = shipping
    return Totals(
        subtotal_cents=subtotal_cents,
        tax_cents=calculate_tax(subtotal_cents),
        shipping_cents=shipping,
        discount_cents=discount,
    )


def generate_order_number(db: Session) -> str:
    """Номер вида TBE-<ms>-<3 цифры>, уникальный в таблице заказов."""
    prefix = settings_service.get_value(db, "order_number_prefix", "TBE") or "TBE"
    while True:
        number = f"{prefix}-{int(time.time() * 1000)}-{random.randint(0, 999):03d}"
        exists = db.scalar(select(Order.id).where(Order.order_number == number))
        if exists is None:
            return number


def _reserve_stock(db: Session, product_id: str, quantity: int) -> bool:
    """Атомарное списание остатка, False если товара не хватает."""
    result = db.execute(
        update(Product)
        .where(Product.id == product_id, Product.stock >= quantity)
        .values(stock=Product.stock - quantity)
    )
    return result.rowcount == 1


def restore_stock(db: Session, order: Order) -> None:
    """Вернуть на склад количество всех позиций заказа."""
    for item in order.items:
        db.execute(
            update(Product)
            .where(Product.id == item.product_id)
            .values(stock=Product.stock + item.quantity)
        )


def _stock_message(issues: List[dict]) -> str:
    parts = "; ".join(
        f"{i['product_name']}: requested {i['requested']}, only {i['available']} available"
        for i in issues
    )
    return f"Insufficient stock. {parts}"


@dataclass
class LineRequest:
    product_id: str
    quantity: int
    size: Optional[str] = None
    color: Optional[str] = None


def _build_order(
    db: Session,
    user: User,
    lines: Iterable[Tuple[LineRequest, Product]],
    totals: Totals,
    **fields,
) -> Order:
    """
    Создать заказ и списать остатки в текущей транзакции.

    Raises:
        ValidationError: Остаток изменился до списания
    """
    order = Order(
        user_id=user.id,
        order_number=generate_order_number(db),
        status=OrderStatus.PENDING,
        payment_status=PaymentStatus.PENDING,
        currency=settings.STRIPE_CURRENCY,
        subtotal_cents=totals.subtotal_cents,
        tax_cents=totals.tax_cents,
        shipping_cents=totals.shipping_cents,
        discount_cents=totals.discount_cents,
        total_cents=totals.total_cents,
        **fields,
    )
    db.add(order)

    for line, product in lines:
        if not _reserve_stock(db, product.id, line.quantity):
            db.rollback()
            db.refresh(product)
            raise ValidationError(
                f"Insufficient stock for {product.name}: only {product.stock} available, "
                f"requested {line.quantity}"
            )
        order.items.append(
            OrderItem(
                product_id=product.id,
                quantity=line.quantity,
                price_cents=product.price_cents,
                product_name=product.name,
                product_image=product.image_url,
                size=cart_service.normalize_variant(line.size),
                color=cart_service.normalize_variant(line.color),
            )
        )
    return order


def _load_lines(db: Session, lines: List[LineRequest]) -> List[Tuple[LineRequest, Product]]:
    """
    Загрузить товары и проверить остатки до транзакции.

    Raises:
        NotFoundError: Товар не найден
        ValidationError: Неверное количество или недостаточно товара
    """
    loaded = []
    issues = []
    for line in lines:
        if line.quantity is None or line.quantity < 1:
            raise ValidationError("Quantity must be at least 1")
        product = db.get(Product, line.product_id)
        if product is None or not product.is_active:
            raise NotFoundError(f"Product not found: {line.product_id}")
        if product.stock < line.quantity:
            issues.append({
                "product_id": product.id,
                "product_name": product.name,
                "requested": line.quantity,
                "available": product.stock,
            })
        loaded.append((line, product))
    if issues:
        raise ValidationError(_stock_message(issues), {"stock_issues": issues})
    return loaded


def create_order_from_cart(
    db: Session,
    user: User,
    shipping_address_id: str,
    payment_method: Optional[str] = None,
    notes: Optional[str] = None,
    promo_code: Optional[str] = None,
) -> Order:
    """
    Оформить заказ из корзины пользователя.

    Корзина очищается в той же транзакции.

    Raises:
        ForbiddenError: Email не подтвержден
        ValidationError: Пустая корзина, неверный адрес, нехватка товара
    """
    if not user.is_verified:
        raise ForbiddenError("Please verify your email before placing an order.")

    lines = cart_service.cart_lines(cart_service.get_cart(db, user))
    if not lines:
        raise ValidationError("Cart is empty")

    address = db.get(Address, shipping_address_id) if shipping_address_id else None
    if address is None or address.user_id != user.id:
        raise ValidationError("Invalid shipping address")

    loaded = _load_lines(
        db,
        [LineRequest(i.product_id, i.quantity, i.size, i.color) for i in lines],
    )
    subtotal = sum(product.price_cents * line.quantity for line, product in loaded)
    totals = calculate_totals(subtotal, promo_code)

    order = _build_order(
        db,
        user,
        loaded,
        totals,
        payment_method=payment_method,
        notes=notes,
        promo_code=(promo_code or "").strip().upper() or None,
        shipping_address_id=address.id,
    )
    cart_service.clear_cart(db, user, commit=False)
    db.commit()
    db.refresh(order)
    logger.info("Order %s created from cart for user %s", order.order_number, user.id)
    return order


def create_order_from_checkout(
    db: Session,
    user: User,
    lines: List[LineRequest],
    total_amount_cents: int,
    shipping_cost_cents: int = 0,
    shipping_method: Optional[str] = None,
    shipping_details: Optional[dict] = None,
) -> Order:
    """
    Создать заказ из формы checkout (оплата через Stripe).

    Цены берутся с сервера, сумма клиента только сверяется.

    Raises:
        ForbiddenError: Email не подтвержден
        ValidationError: Нет позиций, неверная сумма, нехватка товара
        NotFoundError: Товар не найден
    """
    if not user.is_verified:
        raise ForbiddenError("Please verify your email before placing an order.")
    if not lines:
        raise ValidationError("Order must contain at least one item")
    if not total_amount_cents or total_amount_cents <= 0:
        raise ValidationError("Invalid total amount")
    if shipping_cost_cents < 0:
        raise ValidationError("Invalid shipping cost")

    loaded = _load_lines(db, lines)
    subtotal = sum(product.price_cents * line.quantity for line, product in loaded)
    totals = Totals(
        subtotal_cents=subtotal,
        tax_cents=calculate_tax(subtotal),
        shipping_cents=shipping_cost_cents,
        discount_cents=0,
    )
    if abs(totals.total_cents - total_amount_cents) > TOTAL_TOLERANCE_CENTS:
        logger.warning(
            "Total mismatch for user %s: client=%s server=%s",
            user.id, total_amount_cents, totals.total_cents,
        )

    address_id = None
    details = shipping_details or {}
    if details.get("address"):
        address = Address(
            user_id=user.id,
            first_name=details.get("first_name") or "",
            last_name=details.get("last_name") or "",
            address1=details["address"],
            city=details.get("city") or "",
            state=details.get("state") or "",
            postal_code=details.get("zip_code") or "",
            country=details.get("country") or "US",
            phone=details.get("phone") or None,
        )
        db.add(address)
        db.flush()
        address_id = address.id

    order = _build_order(
        db,
        user,
        loaded,
        totals,
        payment_method="STRIPE",
        notes=f"Shipping: {shipping_method}" if shipping_method else None,
        shipping_address_id=address_id,
    )
    db.commit()
    db.refresh(order)
    logger.info("Order %s created from checkout for user %s", order.order_number, user.id)
    return order


def get_user_order(db: Session, user: User, order_id: str) -> Order:
    order = db.get(Order, order_id)
    if order is None or order.user_id != user.id:
        raise NotFoundError("Order not found")
    return order


def cancel_order(db: Session, user: User, order_id: str) -> Order:
    """
    Отмена заказа покупателем (только PENDING или CONFIRMED).

    Остатки возвращаются на склад.
    """
    order = get_user_order(db, user, order_id)
    if order.status not in USER_CANCELLABLE:
        raise ValidationError(f"Order cannot be cancelled in status {order.status}")

    restore_stock(db, order)
    order.status = OrderStatus.CANCELLED
    order.cancelled_at = utcnow()
    if order.payment_status == PaymentStatus.PAID:
        order.payment_status = PaymentStatus.REFUNDED
    db.commit()
    db.refresh(order)
    return order


def confirm_payment(db: Session, user: User, order_id: str) -> Tuple[Order, bool]:
    """
    Подтверждение оплаты после успешного платежа на клиенте.

    Returns:
        Tuple[Order, bool]: заказ и признак, что оплата уже была подтверждена
    """
    order = get_user_order(db, user, order_id)
    if order.payment_status == PaymentStatus.PAID:
        return order, True
    if order.status != OrderStatus.PENDING:
        raise ValidationError(f"Cannot confirm payment for order in status {order.status}")

    order.status = OrderStatus.CONFIRMED
    order.payment_status = PaymentStatus.PAID
    if not order.payment_method:
        order.payment_method = "STRIPE"
    db.commit()
    db.refresh(order)
    return order, False


@dataclass
class StatusChange:
    order: Order
    previous_status: str
    previous_tracking: Optional[str]
    status_changed: bool
    tracking_changed: bool
    refund_error: Optional[str] = None


def update_status(
    db: Session,
    order: Order,
    new_status: Optional[str],
    gateway: PaymentGateway,
    tracking_number: Optional[str] = None,
    estimated_delivery: Optional[datetime] = None,
) -> StatusChange:
    """
    Смена статуса заказа администратором.

    Args:
        db: Сессия базы данных
        order: Заказ
        new_status: Новый статус (None, если меняется только трек-номер)
        gateway: Платежный шлюз для возврата денег
        tracking_number: Трек-номер
        estimated_delivery: Ожидаемая дата доставки

    Returns:
        StatusChange: Результат, включая ошибку возврата Stripe, если была

    Raises:
        ValidationError: Неизвестный статус или запрещенный переход
    """
    previous = order.status
    previous_tracking = order.tracking_number
    target = new_status or previous

    if target not in OrderStatus.ALL:
        raise ValidationError(f"Invalid status: {target}")
    status_changed = target != previous
    if status_changed and not can_transition(previous, target):
        allowed = ", ".join(ALLOWED_TRANSITIONS.get(previous, ())) or "none"
        raise ValidationError(
            f"Cannot change status from {previous} to {target}. Allowed: {allowed}",
            {"allowed_transitions": list(ALLOWED_TRANSITIONS.get(previous, ()))},
        )

    if tracking_number is not None:
        order.tracking_number = tracking_number.strip() or None
    if estimated_delivery is not None:
        order.estimated_delivery = estimated_delivery

    refund_error = None
    if status_changed:
        now = utcnow()
        order.status = target
        if target == OrderStatus.SHIPPED:
            order.shipped_at = now
            order.payment_status = PaymentStatus.PAID
        elif target == OrderStatus.DELIVERED:
            order.delivered_at = now
        elif target in (OrderStatus.CANCELLED, OrderStatus.REFUNDED):
            if target == OrderStatus.CANCELLED:
                order.cancelled_at = now
            was_paid = order.payment_status == PaymentStatus.PAID
            if (
                target == OrderStatus.REFUNDED
                and was_paid
                and order.payment_method == "STRIPE"
                and order.payment_intent_id
            ):
                try:
                    gateway.refund(order.payment_intent_id)
                except PaymentError as e:
                    refund_error = e.detail
                    logger.error("Refund failed for order %s: %s", order.order_number, e.detail)
            restore_stock(db, order)
            if was_paid:
                order.payment_status = PaymentStatus.REFUNDED

    db.commit()
    db.refresh(order)
    return StatusChange(
        order=order,
        previous_status=previous,
        previous_tracking=previous_tracking,
        status_changed=status_changed,
        tracking_changed=order.tracking_number != previous_tracking,
        refund_error=refund_error,
    )


def _order_for_intent(
    db: Session, order_id: Optional[str], payment_intent_id: Optional[str]
) -> Optional[Order]:
    order = db.get(Order, order_id) if order_id else None
    if order is None and payment_intent_id:
        order = db.scalar(select(Order).where(Order.payment_intent_id == payment_intent_id))
    if order is None:
        logger.warning("Webhook for unknown order %s / %s", order_id, payment_intent_id)
    return order


def _awaits_payment(order: Order) -> bool:
    return order.status in WEBHOOK_PAYABLE and order.payment_status != PaymentStatus.PAID


def mark_paid_by_intent(
    db: Session, order_id: Optional[str], payment_intent_id: Optional[str]
) -> Tuple[Optional[Order], bool]:
    """
    Вебхук payment_intent.succeeded: заказ подтвержден и оплачен.

    Меняется только неоплаченный заказ в статусе PENDING или CONFIRMED.
    Повторное событие для оплаченного заказа и платеж за отмененный
    заказ оставляют заказ как есть.

    Returns:
        Tuple[Optional[Order], bool]: заказ (None, если не найден) и
            признак, что заказ изменен
    """
    order = _order_for_intent(db, order_id, payment_intent_id)
    if order is None:
        return None, False
    if not _awaits_payment(order):
        if order.payment_status == PaymentStatus.PAID:
            logger.info("Order %s is already paid, webhook ignored", order.order_number)
        else:
            logger.warning(
                "Payment %s succeeded for order %s in status %s, order left unchanged",
                payment_intent_id, order.order_number, order.status,
            )
        return order, False

    order.status = OrderStatus.CONFIRMED
    order.payment_status = PaymentStatus.PAID
    order.payment_method = "STRIPE"
    order.payment_intent_id = order.payment_intent_id or payment_intent_id
    db.commit()
    db.refresh(order)
    return order, True


def mark_failed_by_intent(
    db: Session, order_id: Optional[str], payment_intent_id: Optional[str]
) -> Tuple[Optional[Order], bool]:
    """
    Вебхук payment_intent.payment_failed: оплата не прошла.

    Заказ возвращается в PENDING с FAILED, только если он еще ждет оплаты.
    Запоздавшее событие для оплаченного или отмененного заказа
    игнорируется.
    """
    order = _order_for_intent(db, order_id, payment_intent_id)
    if order is None:
        return None, False
    if not _awaits_payment(order):
        logger.warning(
            "Late payment failure %s for order %s (%s/%s) ignored",
            payment_intent_id, order.order_number, order.status, order.payment_status,
        )
        return order, False

    order.status = OrderStatus.PENDING
    order.payment_status = PaymentStatus.FAILED
    db.commit()
    db.refresh(order)
    return order, True
