"""
Сервис каталога: фильтры списка товаров, рейтинги, подсказки поиска
и опции фильтров.
"""

import re
from dataclasses import dataclass, field
from typing import Dict, List, Optional, Tuple

from sqlalchemy import String, and_, cast, func, or_, select
from sqlalchemy.orm import Session

from storefront.db.models import Category, Collection, Product, Review


def split_csv(value: Optional[str]) -> List[str]:
    if not value:
        return []
    return [v.strip() for v in value.split(",") if v.strip()]


def slugify(value: str) -> str:
    return re.sub(r"[^a-z0-9]+", "-", value.strip().lower()).strip("-")


def _json_text(column):
    # JSON список как текст для нестрогого поиска
    return cast(column, String)


def resolve_category(db: Session, category: str) -> Optional[Category]:
    """Категория по slug, иначе по точному названию."""
    found = db.scalar(select(Category).where(Category.slug == slugify(category)))
    if found is None:
        found = db.scalar(select(Category).where(Category.name == category))
    return found


@dataclass
class ProductFilters:
    """Параметры фильтрации списка товаров."""

    search: Optional[str] = None
    category_id: Optional[str] = None
    type_id: Optional[str] = None
    collection: Optional[str] = None
    min_price: Optional[int] = None
    max_price: Optional[int] = None
    sizes: List[str] = field(default_factory=list)
    colors: List[str] = field(default_factory=list)
    tags: List[str] = field(default_factory=list)
    featured: bool = False
    in_stock: bool = False
    on_sale: bool = False
    include_inactive: bool = False


def _loose_match(column, values: List[str]):
    """Значение в JSON списке, либо в названии или описании товара."""
    conditions = []
    for value in values:
        conditions.extend([
            _json_text(column).icontains(value, autoescape=True),
            Product.name.icontains(value, autoescape=True),
            Product.description.icontains(value, autoescape=True),
        ])
    return or_(*conditions)


def build_conditions(filters: ProductFilters) -> list:
    """
    Условия WHERE для списка товаров.

    Группы размеров, цветов и тегов соединяются через AND,
    внутри группы совпадение нестрогое (OR).
    """
    conditions = []
    if not filters.include_inactive:
        conditions.append(Product.is_active.is_(True))
    if filters.search:
        term = filters.search.strip()
        conditions.append(or_(
            Product.name.icontains(term, autoescape=True),
            Product.description.icontains(term, autoescape=True),
            _json_text(Product.tags).icontains(term, autoescape=True),
        ))
    if filters.category_id:
        conditions.append(Product.category_id == filters.category_id)
    if filters.type_id:
        conditions.append(Product.type_id == filters.type_id)
    if filters.collection:
        conditions.append(
            Product.collection_id.in_(
                select(Collection.id).where(Collection.name == filters.collection)
            )
        )
    if filters.min_price is not None:
        conditions.append(Product.price_cents >= filters.min_price)
    if filters.max_price is not None:
        conditions.append(Product.price_cents <= filters.max_price)
    if filters.sizes:
        conditions.append(_loose_match(Product.sizes, filters.sizes))
    if filters.colors:
        conditions.append(_loose_match(Product.colors, filters.colors))
    if filters.tags:
        conditions.append(_loose_match(Product.tags, filters.tags))
    if filters.featured:
        conditions.append(Product.is_featured.is_(True))
    if filters.in_stock:
        conditions.append(Product.stock > 0)
    if filters.on_sale:
        conditions.append(and_(
            Product.compare_price_cents.isnot(None),
            Product.compare_price_cents > Product.price_cents,
        ))
    return conditions


def rating_stats(db: Session, product_ids: List[str]) -> Dict[str, Tuple[float, int]]:
    """Средний рейтинг и число отзывов для набора товаров."""
    if not product_ids:
        return {}
    rows = db.execute(
        select(Review.product_id, func.avg(Review.rating), func.count(Review.id))
        .where(Review.product_id.in_(product_ids))
        .group_by(Review.product_id)
    ).all()
    return {row[0]: (float(row[1]), int(row[2])) for row in rows}


def related_products(db: Session, product: Product, limit: int = 4) -> List[Product]:
    """Активные товары из той же коллекции."""
    if not product.collection_id:
        return []
    stmt = (
        select(Product)
        .where(
            Product.collection_id == product.collection_id,
            Product.id != product.id,
            Product.is_active.is_(True),
        )
        .order_by(Product.created_at.desc())
        .limit(limit)
    )
    return list(db.scalars(stmt).all())


def search_suggestions(db: Session, q: str) -> dict:
    """
    Подсказки для автодополнения.

    До 5 товаров, 3 коллекций и 3 тегов, содержащих строку запроса.
    """
    term = q
    products = db.scalars(
        select(Product)
        .where(Product.is_active.is_(True), Product.name.icontains(term, autoescape=True))
        .order_by(Product.name)
        .limit(5)
    ).all()
    collections = db.scalars(
        select(Collection)
        .where(Collection.is_active.is_(True), Collection.name.icontains(term, autoescape=True))
        .order_by(Collection.name)
        .limit(3)
    ).all()
    tag_rows = db.scalars(
        select(Product.tags)
        .where(
            Product.is_active.is_(True),
            _json_text(Product.tags).icontains(term, autoescape=True),
        )
        .limit(10)
    ).all()

    needle = q.lower()
    tags: List[str] = []
    for row in tag_rows:
        for tag in row or []:
            if needle in str(tag).lower() and tag not in tags:
                tags.append(tag)

    return {
        "products": [
            {"type": "product", "id": p.id, "name": p.name, "image_url": p.image_url,
             "price_cents": p.price_cents}
            for p in products
        ],
        "collections": [{"type": "collection", "name": c.name} for c in collections],
        "tags": [{"type": "tag", "name": t} for t in tags[:3]],
    }


def filter_options(db: Session, category_id: Optional[str] = None) -> dict:
    """Доступные размеры, цвета, категории, коллекции и диапазон цен."""
    stmt = select(Product.sizes, Product.colors, Product.price_cents).where(
        Product.is_active.is_(True)
    )
    if category_id:
        stmt = stmt.where(Product.category_id == category_id)
    rows = db.execute(stmt).all()

    sizes, colors = set(), set()
    prices = []
    for row_sizes, row_colors, price in rows:
        sizes.update(s for s in (row_sizes or []) if s)
        colors.update(c for c in (row_colors or []) if c)
        prices.append(price)

    categories = db.scalars(select(Category).order_by(Category.name)).all()
    collections = db.scalars(
        select(Collection).where(Collection.is_active.is_(True)).order_by(Collection.name)
    ).all()

    return {
        "sizes": sorted(sizes),
        "colors": sorted(colors),
        "categories": [{"id": c.id, "name": c.name, "slug": c.slug} for c in categories],
        "collections": [{"id": c.id, "name": c.name} for c in collections],
        "price_range": {
            "min_cents": min(prices) if prices else 0,
            "max_cents": max(prices) if prices else 0,
        },
    }


def active_product_counts(db: Session, collection_ids: List[str]) -> Dict[str, int]:
    if not collection_ids:
        return {}
    rows = db.execute(
        select(Product.collection_id, func.count(Product.id))
        .where(Product.collection_id.in_(collection_ids), Product.is_active.is_(True))
        .group_by(Product.collection_id)
    ).all()
    return {row[0]: int(row[1]) for row in rows}
