"""
Фабрики тестовых данных.
"""

from storefront.core.auth import AuthService
from storefront.db.models import (
    Address,
    Category,
    Collection,
    Product,
    Role,
    SiteSetting,
    User,
    utcnow,
)

PASSWORD = "secret123"


def make_user(db, email="shopper@example.com", role=Role.USER, verified=True, **fields):
    user = User(
        email=email,
        password=AuthService.get_password_hash(PASSWORD),
        first_name=fields.pop("first_name", "Ada"),
        last_name=fields.pop("last_name", "Lovelace"),
        role=role,
        is_verified=verified,
        password_changed_at=utcnow(),
        **fields,
    )
    db.add(user)
    db.commit()
    db.refresh(user)
    return user


def auth_headers(user):
    return {"Authorization": f"Bearer {AuthService.create_access_token(user)}"}


def make_category(db, name="Dresses", slug="dresses"):
    category = Category(name=name, slug=slug)
    db.add(category)
    db.commit()
    db.refresh(category)
    return category


def make_collection(db, name="Summer Edit", **fields):
    collection = Collection(name=name, **fields)
    db.add(collection)
    db.commit()
    db.refresh(collection)
    return collection


def make_product(db, name="Silk Slip Dress", price_cents=4500, stock=3, **fields):
    product = Product(name=name, price_cents=price_cents, stock=stock, **fields)
    db.add(product)
    db.commit()
    db.refresh(product)
    return product


def make_address(db, user, **fields):
    data = {
        "first_name": user.first_name,
        "last_name": user.last_name,
        "address1": "1 Carnaby Street",
        "city": "London",
        "state": "London",
        "postal_code": "W1F 9PS",
        "country": "GB",
        "is_default": True,
    }
    data.update(fields)
    address = Address(user_id=user.id, **data)
    db.add(address)
    db.commit()
    db.refresh(address)
    return address


def set_setting(db, key, value):
    row = db.query(SiteSetting).filter(SiteSetting.key == key).first()
    if row is None:
        db.add(SiteSetting(key=key, value=value, group="features", label=key))
    else:
        row.value = value
    db.commit()
