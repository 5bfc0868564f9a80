"""
API endpoints коллекций для витрины.
"""

from typing import Optional

from fastapi import APIRouter, Depends, HTTPException, Query
from sqlalchemy import or_, select
from sqlalchemy.orm import Session, selectinload

from storefront.api.v1.pagination import paginate
from storefront.api.v1.serializers import collection_out, product_out
from storefront.db.database import get_db
from storefront.db.models import Collection, Product
from storefront.services import catalog_service

router = APIRouter()


@router.get("", response_model=dict)
def list_collections(
    page: int = Query(1, ge=1),
    limit: int = Query(20, ge=1, le=100),
    search: Optional[str] = Query(None),
    db: Session = Depends(get_db),
):
    """Активные коллекции с количеством активных товаров."""
    stmt = select(Collection).where(Collection.is_active.is_(True))
    if search:
        term = search.strip()
        stmt = stmt.where(or_(
            Collection.name.icontains(term, autoescape=True),
            Collection.description.icontains(term, autoescape=True),
        ))

    rows, pagination = paginate(db, stmt.order_by(Collection.name), page, limit)
    counts = catalog_service.active_product_counts(db, [c.id for c in rows])
    return {
        "collections": [collection_out(c, counts.get(c.id, 0)) for c in rows],
        "pagination": pagination,
    }


def _find_active(db: Session, identifier: str) -> Collection:
    collection = db.get(Collection, identifier)
    if collection is None:
        collection = db.scalar(select(Collection).where(Collection.name == identifier))
    if collection is None or not collection.is_active:
        raise HTTPException(404, detail="Collection not found")
    return collection


@router.get("/{identifier}", response_model=dict)
def get_collection(identifier: str, db: Session = Depends(get_db)):
    """Коллекция по ID или названию."""
    collection = _find_active(db, identifier)
    count = catalog_service.active_product_counts(db, [collection.id]).get(collection.id, 0)
    return collection_out(collection, count)


@router.get("/{identifier}/products", response_model=dict)
def get_collection_products(
    identifier: str,
    page: int = Query(1, ge=1),
    limit: int = Query(22, ge=1, le=100),
    db: Session = Depends(get_db),
):
    """Активные товары коллекции."""
    collection = _find_active(db, identifier)
    stmt = select(Product).where(
        Product.collection_id == collection.id, Product.is_active.is_(True)
    )
    stmt = stmt.options(selectinload(Product.images)).order_by(Product.created_at.desc())
    rows, pagination = paginate(db, stmt, page, limit)
    stats = catalog_service.rating_stats(db, [p.id for p in rows])
    return {
        "collection": collection_out(collection),
        "products": [product_out(p, *stats.get(p.id, (None, 0))) for p in rows],
        "pagination": pagination,
    }
