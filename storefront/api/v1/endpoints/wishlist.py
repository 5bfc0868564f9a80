"""
API endpoints избранного.
"""

from fastapi import APIRouter, Depends, HTTPException, Query
from sqlalchemy import select
from sqlalchemy.orm import Session, selectinload

from storefront.api.v1.pagination import paginate
from storefront.api.v1.serializers import cart_out, iso, product_brief
from storefront.core.auth import get_current_active_user
from storefront.db.database import get_db
from storefront.db.models import Product, User, WishlistItem
from storefront.schemas.cart import MoveToCart, WishlistAdd, WishlistSync
from storefront.services import cart_service

router = APIRouter()


def _item_out(item: WishlistItem) -> dict:
    product = item.product
    return {
        "id": item.id,
        "product_id": item.product_id,
        "created_at": iso(item.created_at),
        "product": {
            **product_brief(product),
            "is_in_stock": product.is_in_stock,
            "discount_percentage": product.discount_percentage,
        },
    }


def _find(db: Session, user: User, product_id: str):
    return db.scalar(
        select(WishlistItem).where(
            WishlistItem.user_id == user.id, WishlistItem.product_id == product_id
        )
    )


def _page(db: Session, user: User, page: int, limit: int) -> dict:
    stmt = (
        select(WishlistItem)
        .options(selectinload(WishlistItem.product))
        .where(WishlistItem.user_id == user.id)
        .order_by(WishlistItem.created_at.desc(), WishlistItem.id)
    )
    rows, pagination = paginate(db, stmt, page, limit)
    return {
        "items": [_item_out(i) for i in rows],
        "pagination": pagination,
    }


@router.get("", response_model=dict)
def get_wishlist(
    page: int = Query(1, ge=1, description="Номер страницы"),
    limit: int = Query(20, ge=1, le=100, description="Размер страницы"),
    current_user: User = Depends(get_current_active_user),
    db: Session = Depends(get_db),
):
    """Избранное пользователя, новые сверху."""
    return _page(db, current_user, page, limit)


@router.post("/add", response_model=dict, status_code=201)
def add_to_wishlist(
    payload: WishlistAdd,
    current_user: User = Depends(get_current_active_user),
    db: Session = Depends(get_db),
):
    """
    Добавить товар в избранное.

    Raises:
        HTTPException: Товар не найден (404), уже в избранном (409)
    """
    product = db.get(Product, payload.product_id)
    if product is None or not product.is_active:
        raise HTTPException(404, detail="Product not found")
    if _find(db, current_user, product.id) is not None:
        raise HTTPException(409, detail="Product already in wishlist")

    item = WishlistItem(user_id=current_user.id, product_id=product.id)
    db.add(item)
    db.commit()
    db.refresh(item)
    return {"message": "Added to wishlist", "item": _item_out(item)}


@router.delete("/remove/{product_id}", response_model=dict)
def remove_from_wishlist(
    product_id: str,
    current_user: User = Depends(get_current_active_user),
    db: Session = Depends(get_db),
):
    item = _find(db, current_user, product_id)
    if item is None:
        raise HTTPException(404, detail="Item not found in wishlist")
    db.delete(item)
    db.commit()
    return {"message": "Removed from wishlist"}


@router.get("/check/{product_id}", response_model=dict)
def check_wishlist(
    product_id: str,
    current_user: User = Depends(get_current_active_user),
    db: Session = Depends(get_db),
):
    item = _find(db, current_user, product_id)
    return {"in_wishlist": item is not None, "wishlist_item_id": item.id if item else None}


@router.delete("/clear", response_model=dict)
def clear_wishlist(
    current_user: User = Depends(get_current_active_user),
    db: Session = Depends(get_db),
):
    removed = db.query(WishlistItem).filter(WishlistItem.user_id == current_user.id).delete()
    db.commit()
    return {"message": "Wishlist cleared", "removed": removed}


@router.post("/move-to-cart/{product_id}", response_model=dict)
def move_to_cart(
    product_id: str,
    payload: MoveToCart = None,
    current_user: User = Depends(get_current_active_user),
    db: Session = Depends(get_db),
):
    """
    Перенести товар из избранного в корзину одной транзакцией.

    Raises:
        HTTPException: Товара нет в избранном (404)
    """
    payload = payload or MoveToCart()
    item = _find(db, current_user, product_id)
    if item is None:
        raise HTTPException(404, detail="Item not found in wishlist")

    cart_service.add_to_cart(
        db,
        current_user,
        product_id,
        payload.quantity,
        payload.size,
        payload.color,
        commit=False,
    )
    db.delete(item)
    db.commit()
    return {
        "message": "Moved to cart",
        "cart": cart_out(cart_service.get_cart(db, current_user)),
    }


@router.post("/sync", response_model=dict)
def sync_wishlist(
    payload: WishlistSync,
    current_user: User = Depends(get_current_active_user),
    db: Session = Depends(get_db),
):
    """
    Слияние локального избранного после входа.

    Неизвестные, неактивные и уже добавленные товары пропускаются.
    """
    existing = set(
        db.scalars(
            select(WishlistItem.product_id).where(WishlistItem.user_id == current_user.id)
        ).all()
    )
    wanted = [pid for pid in dict.fromkeys(payload.product_ids) if pid and pid not in existing]
    added = 0
    if wanted:
        active_ids = set(
            db.scalars(
                select(Product.id).where(Product.id.in_(wanted), Product.is_active.is_(True))
            ).all()
        )
        for pid in wanted:
            if pid in active_ids:
                db.add(WishlistItem(user_id=current_user.id, product_id=pid))
                added += 1
        db.commit()
    return {"message": "Wishlist synced", "added": added, **_page(db, current_user, 1, 100)}
