"""
Pydantic схемы заказов и платежей.
"""

from datetime import datetime
from typing import List, Optional

from pydantic import BaseModel, Field


class OrderFromCart(BaseModel):
    shipping_address_id: str
    payment_method: Optional[str] = None
    notes: Optional[str] = None
    promo_code: Optional[str] = None


class CheckoutItem(BaseModel):
    product_id: str
    quantity: int = Field(1, ge=1)
    size: Optional[str] = None
    color: Optional[str] = None


class ShippingDetails(BaseModel):
    first_name: Optional[str] = None
    last_name: Optional[str] = None
    address: Optional[str] = None
    city: Optional[str] = None
    state: Optional[str] = None
    zip_code: Optional[str] = None
    country: Optional[str] = None
    phone: Optional[str] = None


class CheckoutOrderCreate(BaseModel):
    """Заказ из формы checkout. Цены клиента не используются."""

    items: List[CheckoutItem] = Field(default_factory=list)
    shipping_cost_cents: int = 0
    total_amount_cents: int = 0
    shipping_method: Optional[str] = None
    shipping_details: Optional[ShippingDetails] = None


class OrderStatusUpdate(BaseModel):
    status: Optional[str] = None
    tracking_number: Optional[str] = None
    estimated_delivery: Optional[datetime] = None


class PaymentIntentCreate(BaseModel):
    order_id: Optional[str] = None
