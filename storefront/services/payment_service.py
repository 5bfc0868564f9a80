"""
Сервис платежей через Stripe.

Поддерживает реальный Stripe шлюз и заглушку для разработки.
Заглушка используется, если ключ не задан или является плейсхолдером,
в продакшене это ошибка конфигурации.
"""

import json
import time
import uuid
from abc import ABC, abstractmethod
from typing import Any, Dict, Optional

import stripe

from storefront.core.config import settings
from storefront.core.exceptions import PaymentError
from storefront.core.logging_config import get_logger

logger = get_logger(__name__)


def is_placeholder_key(key: Optional[str]) -> bool:
    """Ключ не задан или явно не настоящий."""
    key = (key or "").strip()
    return not key or "placeholder" in key or key == "sk_test_xxx" or len(key) < 20


class PaymentGateway(ABC):
    """
    Абстрактный платежный шлюз.
    """

    is_stub = False

    @abstractmethod
    def create_payment_intent(
        self, amount_cents: int, currency: str, metadata: Dict[str, str], description: str
    ) -> Dict[str, Any]:
        """Создать PaymentIntent, вернуть {"id", "client_secret"}."""

    @abstractmethod
    def refund(self, payment_intent_id: str) -> Dict[str, Any]:
        """Полный возврат по PaymentIntent."""

    @abstractmethod
    def construct_event(self, payload: bytes, signature: Optional[str]) -> Dict[str, Any]:
        """Проверить подпись вебхука и вернуть событие."""


class StripeGateway(PaymentGateway):
    """
    Реальный Stripe.
    """

    def __init__(self, api_key: str, webhook_secret: str = ""):
        stripe.api_key = api_key
        self.webhook_secret = webhook_secret

    def create_payment_intent(
        self, amount_cents: int, currency: str, metadata: Dict[str, str], description: str
    ) -> Dict[str, Any]:
        try:
            intent = stripe.PaymentIntent.create(
                amount=amount_cents,
                currency=currency,
                metadata=metadata,
                description=description,
                automatic_payment_methods={"enabled": True},
            )
        except stripe.InvalidRequestError as e:
            logger.warning("Stripe rejected payment intent: %s", e)
            raise PaymentError("Invalid payment request. Please try again.", 400)
        except stripe.AuthenticationError:
            logger.exception("Stripe authentication failed")
            raise PaymentError(
                "Payment service configuration error. Please contact support.", 500
            )
        except stripe.StripeError:
            logger.exception("Stripe error while creating payment intent")
            raise PaymentError("Error creating payment intent. Please try again.", 500)

        if not intent.client_secret:
            raise PaymentError(
                "Payment gateway returned an incomplete response. Please check your Stripe API keys.",
                500,
            )
        return {"id": intent.id, "client_secret": intent.client_secret}

    def refund(self, payment_intent_id: str) -> Dict[str, Any]:
        try:
            refund = stripe.Refund.create(payment_intent=payment_intent_id)
        except stripe.StripeError as e:
            raise PaymentError(f"Stripe refund failed: {e}", 502)
        return {"id": refund.id, "status": refund.status}

    def construct_event(self, payload: bytes, signature: Optional[str]) -> Dict[str, Any]:
        try:
            event = stripe.Webhook.construct_event(payload, signature or "", self.webhook_secret)
        except (ValueError, stripe.SignatureVerificationError) as e:
            raise PaymentError(f"Webhook Error: {e}", 400)
        return {
            "id": event["id"],
            "type": event["type"],
            "object": event["data"]["object"],
        }


class StubGateway(PaymentGateway):
    """
    Заглушка Stripe для разработки и тестов.

    Вебхук принимается без проверки подписи.
    """

    is_stub = True

    def create_payment_intent(
        self, amount_cents: int, currency: str, metadata: Dict[str, str], description: str
    ) -> Dict[str, Any]:
        intent_id = f"pi_stub_{int(time.time() * 1000)}_{uuid.uuid4().hex[:6]}"
        logger.info("Stub payment intent %s for %s %s", intent_id, amount_cents, currency)
        return {"id": intent_id, "client_secret": f"{intent_id}_secret_dev"}

    def refund(self, payment_intent_id: str) -> Dict[str, Any]:
        logger.info("Stub refund for %s", payment_intent_id)
        return {"id": f"re_stub_{uuid.uuid4().hex[:8]}", "status": "succeeded"}

    def construct_event(self, payload: bytes, signature: Optional[str]) -> Dict[str, Any]:
        try:
            event = json.loads(payload or b"{}")
            return {
                "id": event.get("id", "evt_stub"),
                "type": event["type"],
                "object": event["data"]["object"],
            }
        except (ValueError, KeyError, TypeError, AttributeError) as e:
            raise PaymentError(f"Webhook Error: {e}", 400)


_gateway: Optional[PaymentGateway] = None


def build_gateway() -> PaymentGateway:
    """Выбор шлюза по настройкам."""
    if is_placeholder_key(settings.STRIPE_SECRET_KEY):
        if settings.is_production:
            raise RuntimeError("STRIPE_SECRET_KEY is not defined in environment variables")
        logger.warning(
            "STRIPE_SECRET_KEY is not set or is a placeholder, using stub payment gateway"
        )
        return StubGateway()
    return StripeGateway(settings.STRIPE_SECRET_KEY.strip(), settings.STRIPE_WEBHOOK_SECRET)


def get_payment_gateway() -> PaymentGateway:
    """Dependency: платежный шлюз (создается один раз)."""
    global _gateway
    if _gateway is None:
        _gateway = build_gateway()
    return _gateway
