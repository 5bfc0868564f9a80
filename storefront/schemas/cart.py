"""
Pydantic схемы корзины и избранного.
"""

from typing import List, Optional

from pydantic import BaseModel, Field


class CartAdd(BaseModel):
    product_id: Optional[str] = None
    quantity: int = 1
    size: Optional[str] = None
    color: Optional[str] = None


class CartUpdate(BaseModel):
    quantity: Optional[int] = None


class MoveToCart(BaseModel):
    quantity: int = 1
    size: Optional[str] = None
    color: Optional[str] = None


class WishlistAdd(BaseModel):
    product_id: str


class WishlistSync(BaseModel):
    product_ids: List[str] = Field(default_factory=list)
