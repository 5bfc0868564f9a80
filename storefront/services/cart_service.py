"""
Сервис корзины.

Позиция корзины уникальна по сочетанию товар + размер + цвет,
повторное добавление увеличивает количество с проверкой остатка.
"""

from typing import Optional

from sqlalchemy import select
from sqlalchemy.orm import Session

from storefront.core.exceptions import NotFoundError, ValidationError
from storefront.db.models import Cart, CartItem, Product, User


def normalize_variant(value: Optional[str]) -> Optional[str]:
    """Пустой размер или цвет хранится как NULL."""
    if value is None:
        return None
    value = value.strip()
    return value or None


def get_cart(db: Session, user: User) -> Optional[Cart]:
    return db.scalar(select(Cart).where(Cart.user_id == user.id))


def get_or_create_cart(db: Session, user: User) -> Cart:
    cart = get_cart(db, user)
    if cart is None:
        cart = Cart(user_id=user.id)
        db.add(cart)
        db.flush()
    return cart


def find_line(
    db: Session, cart: Cart, product_id: str, size: Optional[str], color: Optional[str]
) -> Optional[CartItem]:
    """Позиция с тем же товаром и вариантом (NULL сравнивается как значение)."""
    stmt = select(CartItem).where(
        CartItem.cart_id == cart.id,
        CartItem.product_id == product_id,
        CartItem.size.is_(None) if size is None else CartItem.size == size,
        CartItem.color.is_(None) if color is None else CartItem.color == color,
    )
    return db.scalar(stmt)


def add_to_cart(
    db: Session,
    user: User,
    product_id: str,
    quantity: int = 1,
    size: Optional[str] = None,
    color: Optional[str] = None,
    commit: bool = True,
) -> CartItem:
    """
    Добавить товар в корзину.

    Args:
        db: Сессия базы данных
        user: Владелец корзины
        product_id: ID товара
        quantity: Количество (>= 1)
        size: Размер
        color: Цвет
        commit: Коммитить транзакцию (False, если вызывается внутри другой операции)

    Returns:
        CartItem: Новая или объединенная позиция

    Raises:
        ValidationError: Неверное количество или недостаточно товара
        NotFoundError: Товар не найден
    """
    if not product_id:
        raise ValidationError("Product ID is required")
    if quantity < 1:
        raise ValidationError("Quantity must be at least 1")

    product = db.get(Product, product_id)
    if product is None or not product.is_active:
        raise NotFoundError("Product not found")

    size = normalize_variant(size)
    color = normalize_variant(color)

    if product.stock < quantity:
        raise ValidationError(
            "Insufficient stock", {"available": product.stock, "requested": quantity}
        )

    cart = get_or_create_cart(db, user)
    item = find_line(db, cart, product.id, size, color)
    if item is not None:
        new_quantity = item.quantity + quantity
        if product.stock < new_quantity:
            raise ValidationError(
                "Insufficient stock", {"available": product.stock, "requested": new_quantity}
            )
        item.quantity = new_quantity
    else:
        item = CartItem(
            cart_id=cart.id, product_id=product.id, quantity=quantity, size=size, color=color
        )
        db.add(item)

    if commit:
        db.commit()
        db.refresh(item)
    return item


def _owned_item(db: Session, user: User, item_id: str) -> CartItem:
    item = db.scalar(
        select(CartItem).join(Cart).where(CartItem.id == item_id, Cart.user_id == user.id)
    )
    if item is None:
        raise NotFoundError("Cart item not found")
    return item


def update_quantity(db: Session, user: User, item_id: str, quantity: int) -> CartItem:
    """
    Изменить количество позиции.

    Raises:
        ValidationError: quantity < 1 или больше остатка
        NotFoundError: Позиции нет в корзине пользователя
    """
    if quantity is None or quantity < 1:
        raise ValidationError("Quantity must be at least 1")

    item = _owned_item(db, user, item_id)
    product = item.product
    if product is None:
        raise NotFoundError("Product not found")
    if quantity > product.stock:
        raise ValidationError(
            "Insufficient stock", {"available": product.stock, "requested": quantity}
        )

    item.quantity = quantity
    db.commit()
    db.refresh(item)
    return item


def remove_item(db: Session, user: User, item_id: str) -> None:
    item = _owned_item(db, user, item_id)
    db.delete(item)
    db.commit()


def clear_cart(db: Session, user: User, commit: bool = True) -> None:
    cart = get_cart(db, user)
    if cart is None:
        return
    for item in list(cart.items):
        db.delete(item)
    if commit:
        db.commit()


def cart_lines(cart: Optional[Cart]) -> list:
    """Позиции корзины, у которых товар еще существует."""
    if cart is None:
        return []
    return [item for item in cart.items if item.product is not None]
