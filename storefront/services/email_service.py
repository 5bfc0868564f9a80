"""
Сервис отправки писем через SMTP (SendGrid или любой другой relay).

Если SMTP не настроен, письмо не отправляется, а событие логируется.
Ошибки отправки никогда не пробрасываются в обработчики запросов.
"""

import smtplib
from datetime import datetime
from email.message import EmailMessage
from html import escape
from typing import Optional

from storefront.core.config import settings
from storefront.core.logging_config import get_logger
from storefront.db.models import Order, OrderStatus, User

logger = get_logger(__name__)

STORE_NAME = "The Babel Edit"


class EmailService:
    """SMTP отправитель писем."""

    def __init__(self, host: str = None, port: int = None, username: str = None,
                 password: str = None, sender: str = None):
        self.host = host if host is not None else settings.SMTP_HOST
        self.port = port or settings.SMTP_PORT
        self.username = username if username is not None else settings.SMTP_USERNAME
        self.password = password if password is not None else settings.SMTP_PASSWORD
        self.sender = sender if sender is not None else settings.EMAIL_FROM

    @property
    def is_configured(self) -> bool:
        return bool(self.host and self.sender)

    def send(self, to: str, subject: str, html: str, text: Optional[str] = None) -> bool:
        """
        Отправить письмо.

        Args:
            to: Адрес получателя
            subject: Тема
            html: HTML тело письма
            text: Текстовая версия (необязательно)

        Returns:
            bool: True, если письмо передано SMTP серверу
        """
        if not self.is_configured:
            logger.warning("Email service is not configured, skipping '%s' to %s", subject, to)
            return False

        message = EmailMessage()
        message["From"] = self.sender
        message["To"] = to
        message["Subject"] = subject
        message.set_content(text or "Please view this message in an HTML capable email client.")
        message.add_alternative(html, subtype="html")

        try:
            with smtplib.SMTP(self.host, self.port, timeout=15) as smtp:
                smtp.starttls()
                if self.username:
                    smtp.login(self.username, self.password)
                smtp.send_message(message)
        except (smtplib.SMTPException, OSError):
            logger.exception("Error sending email '%s' to %s", subject, to)
            return False

        logger.info("Email '%s' sent to %s", subject, to)
        return True


email_service = EmailService()


# ==================== ШАБЛОНЫ ====================


def _money(cents: int) -> str:
    return f"${cents / 100:.2f}"


def _frontend_url(path: str = "") -> str:
    return f"{settings.FRONTEND_URL.rstrip('/')}{path}"


def _layout(title: str, body: str) -> str:
    return f"""<!DOCTYPE html>
<html lang="en">
<head><meta charset="UTF-8"><title>{escape(title)}</title></head>
<body style="font-family: Helvetica, Arial, sans-serif; background-color: #f8f8f8; margin: 0;">
  <div style="max-width: 600px; margin: 40px auto; background: #ffffff; border: 1px solid #e0e0e0;">
    <div style="background: #000000; color: #ffffff; padding: 24px; text-align: center;">
      <h1 style="margin: 0; font-size: 24px;">{STORE_NAME}</h1>
    </div>
    <div style="padding: 32px; color: #333333;">{body}</div>
    <div style="background: #f2f2f2; padding: 24px; text-align: center; font-size: 12px; color: #888888;">
      &copy; {datetime.now().year} {STORE_NAME}. All rights reserved.
    </div>
  </div>
</body>
</html>"""


def _button(url: str, label: str) -> str:
    return (
        f'<a href="{escape(url)}" style="display: inline-block; padding: 12px 24px; '
        f'background: #000000; color: #ffffff; text-decoration: none;">{escape(label)}</a>'
    )


def _greeting(user: User) -> str:
    name = user.full_name or user.email
    return f"<h2>Hi {escape(name)},</h2>"


def _items_table(order: Order) -> str:
    rows = "".join(
        f"<tr><td>{escape(item.product_name)}</td><td>{item.quantity}</td>"
        f"<td>{_money(item.price_cents * item.quantity)}</td></tr>"
        for item in order.items
    )
    return (
        '<table style="width: 100%; border-collapse: collapse;">'
        "<tr><th align='left'>Item</th><th align='left'>Qty</th><th align='left'>Total</th></tr>"
        f"{rows}</table>"
    )


def send_welcome_email(user: User) -> bool:
    body = (
        f"{_greeting(user)}"
        f"<p>Welcome to {STORE_NAME}! Your account is ready.</p>"
        f"<p>Discover curated pre-loved and vintage pieces picked for you.</p>"
        f"{_button(_frontend_url('/en/products'), 'Start Shopping')}"
    )
    return email_service.send(user.email, f"Welcome to {STORE_NAME}", _layout("Welcome", body))


def send_password_reset_email(user: User, reset_url: str) -> bool:
    minutes = settings.PASSWORD_RESET_EXPIRE_MINUTES
    body = (
        f"{_greeting(user)}"
        "<p>We received a request to reset your password.</p>"
        f"{_button(reset_url, 'Reset Password')}"
        f"<p>This link expires in {minutes} minutes. If you did not request it, ignore this email.</p>"
    )
    text = f"Reset your password: {reset_url} (expires in {minutes} minutes)"
    return email_service.send(
        user.email, "Reset your password", _layout("Password Reset", body), text
    )


def send_password_changed_email(user: User) -> bool:
    body = (
        f"{_greeting(user)}"
        "<p>Your password was changed successfully.</p>"
        "<p>If you did not make this change, contact support immediately.</p>"
    )
    return email_service.send(
        user.email, "Your password has been changed", _layout("Password Changed", body)
    )


def send_order_confirmation_emails(order: Order) -> None:
    """Подтверждение заказа покупателю и копия магазину."""
    user = order.user
    order_url = _frontend_url(f"/en/orders/{order.id}")
    summary = (
        f"<p><strong>Order Number:</strong> {escape(order.order_number)}</p>"
        f"{_items_table(order)}"
        f"<p>Subtotal: {_money(order.subtotal_cents)}<br>"
        f"Shipping: {_money(order.shipping_cents)}<br>"
        f"Tax: {_money(order.tax_cents)}<br>"
        f"<strong>Total: {_money(order.total_cents)}</strong></p>"
    )
    if user is not None:
        body = (
            f"{_greeting(user)}<p>Thank you for your order! Your payment was received.</p>"
            f"{summary}{_button(order_url, 'View Your Order')}"
        )
        email_service.send(
            user.email,
            f"Order Confirmation #{order.order_number}",
            _layout("Order Confirmation", body),
        )
    if settings.COMPANY_EMAIL:
        customer = escape(user.email) if user is not None else "unknown"
        body = f"<h2>New paid order</h2><p>Customer: {customer}</p>{summary}"
        email_service.send(
            settings.COMPANY_EMAIL,
            f"New Order #{order.order_number}",
            _layout("New Order", body),
        )


_STATUS_MESSAGES = {
    OrderStatus.CONFIRMED: (
        "Your Order #{number} Has Been Confirmed",
        "Your order has been confirmed and is being prepared for processing.",
    ),
    OrderStatus.PROCESSING: (
        "Your Order #{number} Is Being Processed",
        "Your order is now being processed and will be shipped soon.",
    ),
    OrderStatus.SHIPPED: (
        "Your Order #{number} Has Been Shipped!",
        "Your order is on its way!",
    ),
    OrderStatus.DELIVERED: (
        "Your Order #{number} Has Been Delivered",
        "Your order has been delivered! We hope you enjoy your purchase.",
    ),
    OrderStatus.CANCELLED: (
        "Your Order #{number} Has Been Cancelled",
        "Your order has been cancelled. If you were charged, a refund will be processed shortly.",
    ),
    OrderStatus.REFUNDED: (
        "Your Order #{number} Has Been Refunded",
        "Your order has been refunded. The amount will be returned to your original "
        "payment method within 5-10 business days.",
    ),
}


def send_status_change_email(order: Order, new_status: str) -> bool:
    if order.user is None or new_status not in _STATUS_MESSAGES:
        return False

    subject_tpl, message = _STATUS_MESSAGES[new_status]
    extra = ""
    if new_status == OrderStatus.SHIPPED:
        if order.tracking_number:
            extra += f"<p>Tracking number: <strong>{escape(order.tracking_number)}</strong></p>"
        if order.estimated_delivery:
            extra += (
                "<p>Estimated delivery: <strong>"
                f"{order.estimated_delivery.strftime('%B %d, %Y')}</strong></p>"
            )
    if new_status == OrderStatus.DELIVERED:
        extra += "<p>How was your experience? Your review helps other shoppers.</p>"

    body = (
        f"{_greeting(order.user)}"
        f"<p>Order status: <strong>{new_status}</strong></p>"
        f"<p>{message}</p>{extra}"
        f"<p><strong>Order Number:</strong> {escape(order.order_number)}<br>"
        f"<strong>Order Total:</strong> {_money(order.total_cents)}</p>"
        f"{_button(_frontend_url(f'/en/orders/{order.id}'), 'View Your Order')}"
    )
    return email_service.send(
        order.user.email,
        subject_tpl.format(number=order.order_number),
        _layout("Order Status Update", body),
    )


def send_tracking_update_email(order: Order) -> bool:
    if order.user is None or not order.tracking_number:
        return False
    body = (
        f"{_greeting(order.user)}"
        f"<p>Your tracking information has been updated for order "
        f"<strong>#{escape(order.order_number)}</strong>.</p>"
        f"<p>Tracking Number: <strong>{escape(order.tracking_number)}</strong></p>"
        f"{_button(_frontend_url(f'/en/orders/{order.id}'), 'View Your Order')}"
    )
    return email_service.send(
        order.user.email,
        f"Tracking Update for Order #{order.order_number}",
        _layout("Tracking Number Updated", body),
    )
