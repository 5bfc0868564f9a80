"""
API endpoints отзывов о товарах.
"""

from fastapi import APIRouter, Depends, HTTPException, Query, Request
from sqlalchemy import select
from sqlalchemy.orm import Session, selectinload

from storefront.api.v1.pagination import paginate
from storefront.api.v1.serializers import review_out
from storefront.core.auth import require_admin, require_verified
from storefront.db.database import get_db
from storefront.db.models import Product, Review, Severity, User
from storefront.schemas.content import ReviewCreate
from storefront.services import audit_service

router = APIRouter()


@router.post("", response_model=dict, status_code=201)
def create_review(
    payload: ReviewCreate,
    current_user: User = Depends(require_verified),
    db: Session = Depends(get_db),
):
    """
    Оставить отзыв.

    Raises:
        HTTPException: Неверный рейтинг (400), товар не найден (404),
            отзыв уже есть (409)
    """
    product = db.get(Product, payload.product_id)
    if product is None:
        raise HTTPException(404, detail="Product not found")
    if payload.rating is None or not 1 <= payload.rating <= 5:
        raise HTTPException(400, detail="Rating must be an integer between 1 and 5")

    exists = db.scalar(
        select(Review.id).where(Review.user_id == current_user.id, Review.product_id == product.id)
    )
    if exists is not None:
        raise HTTPException(409, detail="You have already reviewed this product")

    review = Review(
        user_id=current_user.id,
        product_id=product.id,
        rating=payload.rating,
        title=(payload.title or "").strip() or None,
        comment=(payload.comment or "").strip() or None,
    )
    db.add(review)
    db.commit()
    db.refresh(review)
    return {"message": "Review created", "review": review_out(review)}


@router.get("", response_model=dict)
def admin_list_reviews(
    page: int = Query(1, ge=1),
    limit: int = Query(20, ge=1, le=100),
    current_user: User = Depends(require_admin),
    db: Session = Depends(get_db),
):
    """Все отзывы с автором и товаром."""
    stmt = (
        select(Review)
        .options(selectinload(Review.user), selectinload(Review.product))
        .order_by(Review.created_at.desc(), Review.id)
    )
    rows, pagination = paginate(db, stmt, page, limit)
    return {
        "reviews": [review_out(r, include_product=True) for r in rows],
        "pagination": pagination,
    }


@router.delete("/{review_id}", response_model=dict)
def admin_delete_review(
    review_id: str,
    request: Request,
    current_user: User = Depends(require_admin),
    db: Session = Depends(get_db),
):
    review = db.get(Review, review_id)
    if review is None:
        raise HTTPException(404, detail="Review not found")
    details = {"product_id": review.product_id, "rating": review.rating}
    db.delete(review)
    db.commit()

    audit_service.record(
        db, "delete_review", "Review", resource_id=review_id, details=details,
        severity=Severity.WARNING, user=current_user, request=request,
    )
    return {"message": "Review deleted"}
