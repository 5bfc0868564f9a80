"""
API endpoints отзывов, выбранных для главной страницы.
"""

from fastapi import APIRouter, Depends, HTTPException, Request
from sqlalchemy import select
from sqlalchemy.orm import Session, joinedload

from storefront.api.v1.serializers import testimonial_out
from storefront.core.auth import require_admin
from storefront.db.database import get_db
from storefront.db.models import Review, Severity, Testimonial, User
from storefront.schemas.content import TestimonialCreate
from storefront.services import audit_service

router = APIRouter()


def _review_ids(db: Session) -> list:
    stmt = select(Testimonial.review_id).join(Testimonial.review).order_by(Testimonial.created_at)
    return list(db.scalars(stmt).all())


@router.get("/public", response_model=dict)
def public_testimonials(db: Session = Depends(get_db)):
    """
    Выбранные отзывы с автором и товаром, в порядке добавления.

    Записи удаленных отзывов пропускаются.
    """
    rows = db.scalars(
        select(Testimonial)
        .join(Testimonial.review)
        .options(joinedload(Testimonial.review).joinedload(Review.user))
        .order_by(Testimonial.created_at)
    ).all()
    return {"testimonials": [testimonial_out(row.review) for row in rows]}


@router.get("", response_model=dict)
def list_testimonial_ids(
    current_user: User = Depends(require_admin),
    db: Session = Depends(get_db),
):
    return {"testimonial_ids": _review_ids(db)}


@router.post("", response_model=dict)
def add_testimonial(
    payload: TestimonialCreate,
    request: Request,
    current_user: User = Depends(require_admin),
    db: Session = Depends(get_db),
):
    """
    Добавить отзыв на главную. Повторное добавление ничего не меняет.

    Raises:
        HTTPException: Нет review_id (400), отзыв не найден (404)
    """
    if not payload.review_id:
        raise HTTPException(400, detail="Review ID is required")
    if db.get(Review, payload.review_id) is None:
        raise HTTPException(404, detail="Review not found")

    exists = db.scalar(select(Testimonial.id).where(Testimonial.review_id == payload.review_id))
    if exists is None:
        db.add(Testimonial(review_id=payload.review_id))
        db.commit()
        audit_service.record(
            db, "add_testimonial", "Testimonial", resource_id=payload.review_id,
            details={"review_id": payload.review_id}, user=current_user, request=request,
        )
    return {"message": "Review added as testimonial", "testimonial_ids": _review_ids(db)}


@router.delete("/{review_id}", response_model=dict)
def remove_testimonial(
    review_id: str,
    request: Request,
    current_user: User = Depends(require_admin),
    db: Session = Depends(get_db),
):
    row = db.scalar(select(Testimonial).where(Testimonial.review_id == review_id))
    if row is None:
        raise HTTPException(404, detail="Testimonial not found in featured list")
    db.delete(row)
    db.commit()

    audit_service.record(
        db, "remove_testimonial", "Testimonial", resource_id=review_id,
        details={"review_id": review_id}, severity=Severity.WARNING,
        user=current_user, request=request,
    )
    return {"message": "Review removed from testimonials", "testimonial_ids": _review_ids(db)}
