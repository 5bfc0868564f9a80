"""
API endpoints для работы с категориями и типами товаров.
"""

import time
from typing import List

from fastapi import APIRouter, Depends, HTTPException
from sqlalchemy import select
from sqlalchemy.orm import Session

from storefront.api.v1.serializers import category_detail, product_type_out
from storefront.db.database import get_db
from storefront.db.models import Category, ProductType

router = APIRouter()
types_router = APIRouter()

# Простое in-memory кэширование для категорий
_categories_cache = None
_cache_timestamp = 0.0
CACHE_TTL = 300  # 5 минут


def invalidate_cache() -> None:
    """Сброс кэша после изменения категорий."""
    global _categories_cache, _cache_timestamp
    _categories_cache = None
    _cache_timestamp = 0.0


@router.get("", response_model=List[dict])
def list_categories(db: Session = Depends(get_db)):
    """
    Получить список активных категорий с кэшированием на 5 минут.

    Returns:
        List[dict]: Категории с id, name и slug, отсортированные по названию
    """
    global _categories_cache, _cache_timestamp

    current_time = time.time()
    if _categories_cache is not None and (current_time - _cache_timestamp) < CACHE_TTL:
        return _categories_cache

    rows = db.execute(
        select(Category.id, Category.name, Category.slug)
        .where(Category.is_active.is_(True))
        .order_by(Category.name)
    ).all()
    result = [{"id": row.id, "name": row.name, "slug": row.slug} for row in rows]

    _categories_cache = result
    _cache_timestamp = current_time
    return result


def _get_category(db: Session, category_id: str) -> Category:
    category = db.get(Category, category_id)
    if category is None:
        raise HTTPException(404, detail="Category not found")
    return category


@router.get("/{category_id}", response_model=dict)
def get_category(category_id: str, db: Session = Depends(get_db)):
    """Категория с активными типами."""
    return category_detail(_get_category(db, category_id))


@router.get("/{category_id}/types", response_model=dict)
def list_category_types(category_id: str, db: Session = Depends(get_db)):
    category = _get_category(db, category_id)
    return {"types": [product_type_out(t) for t in category.types if t.is_active]}


@types_router.get("", response_model=dict)
def list_types(db: Session = Depends(get_db)):
    """Все активные типы товаров с категориями (для фильтров витрины)."""
    rows = db.scalars(
        select(ProductType).where(ProductType.is_active.is_(True)).order_by(ProductType.name)
    ).all()
    return {"types": [product_type_out(t, include_category=True) for t in rows]}
