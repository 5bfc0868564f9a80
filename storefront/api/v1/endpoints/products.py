"""
API endpoints для витрины товаров.

Список с фильтрацией, сортировкой и пагинацией, карточка товара
с отзывами и похожими товарами, опции фильтров и проверка SKU.
"""

from typing import Any, Dict, List, Literal, Optional

from fastapi import APIRouter, Depends, HTTPException, Query
from sqlalchemy import and_, asc, desc, select
from sqlalchemy.orm import Session, selectinload

from storefront.api.v1.pagination import page_meta, paginate
from storefront.api.v1.serializers import product_brief, product_out, review_out
from storefront.core.auth import get_optional_user
from storefront.db.database import get_db
from storefront.db.models import Product, Review, User
from storefront.services import catalog_service
from storefront.services.catalog_service import ProductFilters

router = APIRouter()

SortField = Literal["name", "price", "created_at", "updated_at", "stock"]

SORT_COLUMNS = {
    "name": Product.name,
    "price": Product.price_cents,
    "created_at": Product.created_at,
    "updated_at": Product.updated_at,
    "stock": Product.stock,
}


@router.get("", response_model=dict)
def list_products(
    db: Session = Depends(get_db),
    current_user: Optional[User] = Depends(get_optional_user),
    page: int = Query(1, ge=1, description="Номер страницы"),
    limit: int = Query(22, ge=1, le=100, description="Размер страницы"),
    search: Optional[str] = Query(None, description="Поиск по названию, описанию и тегам"),
    category: Optional[str] = Query(None, description="Slug или название категории"),
    collection: Optional[str] = Query(None, description="Название коллекции"),
    type_id: Optional[str] = Query(None, description="ID типа товара"),
    min_price: Optional[int] = Query(None, ge=0, description="Минимальная цена в центах"),
    max_price: Optional[int] = Query(None, ge=0, description="Максимальная цена в центах"),
    sizes: Optional[str] = Query(None, description="Размеры через запятую"),
    colors: Optional[str] = Query(None, description="Цвета через запятую"),
    tags: Optional[str] = Query(None, description="Теги через запятую"),
    featured: bool = Query(False),
    in_stock: bool = Query(False),
    on_sale: bool = Query(False),
    include_inactive: bool = Query(False, description="Только для администраторов"),
    sort_by: str = Query("created_at", description="name, price, created_at, updated_at, stock"),
    sort_order: Literal["asc", "desc"] = Query("desc"),
):
    """
    Получить список товаров с фильтрацией, сортировкой и пагинацией.

    Неизвестная категория дает пустую страницу, неизвестное поле
    сортировки заменяется на created_at.

    Returns:
        dict: products, pagination, filters, sorting
    """
    filters = ProductFilters(
        search=search,
        type_id=type_id,
        collection=collection,
        min_price=min_price,
        max_price=max_price,
        sizes=catalog_service.split_csv(sizes),
        colors=catalog_service.split_csv(colors),
        tags=catalog_service.split_csv(tags),
        featured=featured,
        in_stock=in_stock,
        on_sale=on_sale,
        include_inactive=include_inactive and current_user is not None and current_user.is_admin,
    )

    applied = {
        "search": search, "category": category, "type_id": type_id, "collection": collection,
        "min_price": min_price, "max_price": max_price,
        "sizes": filters.sizes, "colors": filters.colors, "tags": filters.tags,
        "featured": featured, "in_stock": in_stock, "on_sale": on_sale,
    }
    if sort_by not in SORT_COLUMNS:
        sort_by = "created_at"
    sorting = {"sort_by": sort_by, "sort_order": sort_order}

    if category:
        found = catalog_service.resolve_category(db, category)
        if found is None:
            return {
                "products": [],
                "pagination": page_meta(page, limit, 0),
                "filters": applied,
                "sorting": sorting,
            }
        filters.category_id = found.id

    conditions = catalog_service.build_conditions(filters)
    where_clause = and_(*conditions) if conditions else None

    column = SORT_COLUMNS[sort_by]
    order = asc(column) if sort_order == "asc" else desc(column)
    stmt = (
        select(Product)
        .options(
            selectinload(Product.images),
            selectinload(Product.category),
            selectinload(Product.collection),
        )
        .order_by(order, Product.id)
    )
    if where_clause is not None:
        stmt = stmt.where(where_clause)
    rows, pagination = paginate(db, stmt, page, limit)

    stats = catalog_service.rating_stats(db, [p.id for p in rows])
    products: List[Dict[str, Any]] = []
    for product in rows:
        avg, count = stats.get(product.id, (None, 0))
        products.append(product_out(product, avg, count))

    return {
        "products": products,
        "pagination": pagination,
        "filters": applied,
        "sorting": sorting,
    }


@router.get("/featured", response_model=dict)
def featured_products(
    limit: int = Query(8, ge=1, le=50),
    db: Session = Depends(get_db),
):
    """Активные избранные товары для главной страницы."""
    rows = db.scalars(
        select(Product)
        .where(Product.is_active.is_(True), Product.is_featured.is_(True))
        .order_by(Product.created_at.desc())
        .limit(limit)
    ).all()
    stats = catalog_service.rating_stats(db, [p.id for p in rows])
    return {
        "products": [
            product_out(p, *stats.get(p.id, (None, 0)), include_images=False) for p in rows
        ]
    }


@router.get("/filter-options", response_model=dict)
def get_filter_options(
    category: Optional[str] = Query(None),
    db: Session = Depends(get_db),
):
    """Опции для UI фильтров."""
    category_id = None
    if category:
        found = catalog_service.resolve_category(db, category)
        category_id = found.id if found else None
    return catalog_service.filter_options(db, category_id)


@router.get("/check-sku", response_model=dict)
def check_sku(sku: str = Query(..., min_length=1), db: Session = Depends(get_db)):
    """Проверка занятости артикула."""
    exists = db.scalar(select(Product.id).where(Product.sku == sku.strip())) is not None
    return {"exists": exists}


@router.get("/{product_id}", response_model=dict)
def get_product(product_id: str, db: Session = Depends(get_db)):
    """
    Получить активный товар по ID.

    Включает последние 10 отзывов, средний рейтинг и до 4 похожих
    товаров из той же коллекции.

    Raises:
        HTTPException: Если товар не найден или неактивен
    """
    product = db.get(Product, product_id)
    if product is None or not product.is_active:
        raise HTTPException(404, detail="Product not found")

    avg, count = catalog_service.rating_stats(db, [product.id]).get(product.id, (None, 0))
    reviews = db.scalars(
        select(Review)
        .where(Review.product_id == product.id)
        .order_by(Review.created_at.desc())
        .limit(10)
    ).all()
    related = catalog_service.related_products(db, product)

    data = product_out(product, avg, count)
    data["reviews"] = [review_out(r) for r in reviews]
    data["related_products"] = [
        {**product_brief(p), "discount_percentage": p.discount_percentage,
         "is_in_stock": p.is_in_stock}
        for p in related
    ]
    return data
