"""
API endpoints корзины текущего пользователя.
"""

from fastapi import APIRouter, Depends
from sqlalchemy.orm import Session

from storefront.api.v1.serializers import cart_item_out, cart_out
from storefront.core.auth import get_current_active_user
from storefront.db.database import get_db
from storefront.db.models import User
from storefront.schemas.cart import CartAdd, CartUpdate
from storefront.services import cart_service

router = APIRouter()


@router.get("", response_model=dict)
def get_cart(
    current_user: User = Depends(get_current_active_user),
    db: Session = Depends(get_db),
):
    """Корзина: позиции, общее количество и сумма в центах."""
    return cart_out(cart_service.get_cart(db, current_user))


@router.post("/add", response_model=dict)
def add_to_cart(
    payload: CartAdd,
    current_user: User = Depends(get_current_active_user),
    db: Session = Depends(get_db),
):
    """
    Добавить товар в корзину.

    Тот же товар с тем же размером и цветом объединяется в одну позицию.
    """
    item = cart_service.add_to_cart(
        db,
        current_user,
        payload.product_id,
        payload.quantity,
        payload.size,
        payload.color,
    )
    return {
        "message": "Item added to cart",
        "item": cart_item_out(item),
        "cart": cart_out(cart_service.get_cart(db, current_user)),
    }


@router.put("/item/{item_id}", response_model=dict)
def update_cart_item(
    item_id: str,
    payload: CartUpdate,
    current_user: User = Depends(get_current_active_user),
    db: Session = Depends(get_db),
):
    item = cart_service.update_quantity(db, current_user, item_id, payload.quantity)
    return {
        "message": "Cart item updated",
        "item": cart_item_out(item),
        "cart": cart_out(cart_service.get_cart(db, current_user)),
    }


@router.delete("/item/{item_id}", response_model=dict)
def remove_cart_item(
    item_id: str,
    current_user: User = Depends(get_current_active_user),
    db: Session = Depends(get_db),
):
    cart_service.remove_item(db, current_user, item_id)
    return {
        "message": "Item removed from cart",
        "cart": cart_out(cart_service.get_cart(db, current_user)),
    }


@router.delete("/clear", response_model=dict)
def clear_cart(
    current_user: User = Depends(get_current_active_user),
    db: Session = Depends(get_db),
):
    cart_service.clear_cart(db, current_user)
    return {"message": "Cart cleared", "cart": cart_out(None)}
