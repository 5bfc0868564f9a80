"""
API endpoints обратной связи.
"""

from typing import Optional

from fastapi import APIRouter, Depends, HTTPException, Query, Response
from sqlalchemy import select
from sqlalchemy.orm import Session

from storefront.api.v1.pagination import paginate
from storefront.api.v1.serializers import feedback_out
from storefront.core.auth import get_current_active_user, require_admin
from storefront.db.database import get_db
from storefront.db.models import Feedback, User
from storefront.schemas.content import FeedbackCreate, FeedbackUpdate

router = APIRouter()


@router.get("/featured", response_model=dict)
def featured_feedback(
    limit: int = Query(10, ge=1, le=50),
    db: Session = Depends(get_db),
):
    """Отзывы, отмеченные для показа на сайте."""
    rows = db.scalars(
        select(Feedback)
        .where(Feedback.is_featured.is_(True))
        .order_by(Feedback.created_at.desc())
        .limit(limit)
    ).all()
    return {"feedback": [feedback_out(f) for f in rows]}


@router.post("", response_model=dict, status_code=201)
def create_feedback(
    payload: FeedbackCreate,
    current_user: User = Depends(get_current_active_user),
    db: Session = Depends(get_db),
):
    """
    Отправить обратную связь.

    Raises:
        HTTPException: Пустой тип или сообщение (400)
    """
    kind = (payload.type or "").strip()
    message = (payload.message or "").strip()
    if not kind or not message:
        raise HTTPException(400, detail="Type and message are required")

    feedback = Feedback(
        user_id=current_user.id,
        type=kind,
        message=message,
        page_url=payload.page_url,
    )
    db.add(feedback)
    db.commit()
    db.refresh(feedback)
    return {"message": "Feedback submitted", "feedback": feedback_out(feedback)}


@router.get("", response_model=dict)
def admin_list_feedback(
    page: int = Query(1, ge=1),
    limit: int = Query(20, ge=1, le=100),
    is_resolved: Optional[bool] = Query(None),
    current_user: User = Depends(require_admin),
    db: Session = Depends(get_db),
):
    conditions = []
    if is_resolved is not None:
        conditions.append(Feedback.is_resolved.is_(is_resolved))
    stmt = select(Feedback).where(*conditions).order_by(Feedback.created_at.desc(), Feedback.id)
    rows, pagination = paginate(db, stmt, page, limit)
    return {
        "feedback": [feedback_out(f) for f in rows],
        "pagination": pagination,
    }


@router.put("/{feedback_id}", response_model=dict)
def admin_update_feedback(
    feedback_id: str,
    payload: FeedbackUpdate,
    current_user: User = Depends(require_admin),
    db: Session = Depends(get_db),
):
    feedback = db.get(Feedback, feedback_id)
    if feedback is None:
        raise HTTPException(404, detail="Feedback not found")
    for key, value in payload.model_dump(exclude_unset=True).items():
        if value is not None:
            setattr(feedback, key, value)
    db.commit()
    db.refresh(feedback)
    return {"message": "Feedback updated", "feedback": feedback_out(feedback)}


@router.delete("/{feedback_id}", status_code=204)
def admin_delete_feedback(
    feedback_id: str,
    current_user: User = Depends(require_admin),
    db: Session = Depends(get_db),
):
    feedback = db.get(Feedback, feedback_id)
    if feedback is None:
        raise HTTPException(404, detail="Feedback not found")
    db.delete(feedback)
    db.commit()
    return Response(status_code=204)
