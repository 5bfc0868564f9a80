"""
API endpoints объявлений (баннеры на витрине).
"""

from datetime import datetime, timezone
from typing import Optional

from fastapi import APIRouter, Depends, HTTPException, Request
from sqlalchemy import or_, select
from sqlalchemy.orm import Session

from storefront.api.v1.serializers import announcement_out
from storefront.core.auth import require_admin
from storefront.db.database import get_db
from storefront.db.models import Announcement, AnnouncementType, User, utcnow
from storefront.schemas.content import AnnouncementCreate, AnnouncementUpdate
from storefront.services import audit_service

router = APIRouter()


def _naive(value: Optional[datetime]) -> Optional[datetime]:
    """Даты хранятся как naive UTC."""
    if value is not None and value.tzinfo is not None:
        return value.astimezone(timezone.utc).replace(tzinfo=None)
    return value


def _check_type(value: str) -> str:
    value = (value or "").upper()
    if value not in AnnouncementType.ALL:
        raise HTTPException(
            400, detail=f"Invalid type. Allowed: {', '.join(AnnouncementType.ALL)}"
        )
    return value


def _check_dates(start: Optional[datetime], end: Optional[datetime]) -> None:
    if start and end and end <= start:
        raise HTTPException(400, detail="End date must be after start date")


@router.get("/active", response_model=dict)
def active_announcements(db: Session = Depends(get_db)):
    """Активные объявления в окне показа: сначала по приоритету, затем новые."""
    now = utcnow()
    rows = db.scalars(
        select(Announcement)
        .where(
            Announcement.is_active.is_(True),
            or_(Announcement.start_date.is_(None), Announcement.start_date <= now),
            or_(Announcement.end_date.is_(None), Announcement.end_date >= now),
        )
        .order_by(Announcement.priority.desc(), Announcement.created_at.desc())
    ).all()
    return {"announcements": [announcement_out(a) for a in rows]}


@router.get("", response_model=dict)
def list_announcements(
    current_user: User = Depends(require_admin),
    db: Session = Depends(get_db),
):
    rows = db.scalars(
        select(Announcement).order_by(Announcement.priority.desc(), Announcement.created_at.desc())
    ).all()
    return {"announcements": [announcement_out(a) for a in rows]}


@router.post("", response_model=dict, status_code=201)
def create_announcement(
    payload: AnnouncementCreate,
    request: Request,
    current_user: User = Depends(require_admin),
    db: Session = Depends(get_db),
):
    """
    Создать объявление.

    Raises:
        HTTPException: Нет заголовка или текста, неверный тип,
            конец раньше начала (400)
    """
    title = (payload.title or "").strip()
    message = (payload.message or "").strip()
    if not title or not message:
        raise HTTPException(400, detail="Title and message are required")
    start, end = _naive(payload.start_date), _naive(payload.end_date)
    _check_dates(start, end)

    announcement = Announcement(
        **{
            **payload.model_dump(),
            "title": title,
            "message": message,
            "type": _check_type(payload.type),
            "start_date": start,
            "end_date": end,
        },
        created_by=current_user.id,
    )
    db.add(announcement)
    db.commit()
    db.refresh(announcement)

    audit_service.record(
        db, "create_announcement", "Announcement", resource_id=announcement.id,
        details={"title": title}, user=current_user, request=request,
    )
    return {"message": "Announcement created", "announcement": announcement_out(announcement)}


@router.put("/{announcement_id}", response_model=dict)
def update_announcement(
    announcement_id: str,
    payload: AnnouncementUpdate,
    request: Request,
    current_user: User = Depends(require_admin),
    db: Session = Depends(get_db),
):
    """Изменить объявление; даты проверяются с учетом текущих значений."""
    announcement = db.get(Announcement, announcement_id)
    if announcement is None:
        raise HTTPException(404, detail="Announcement not found")

    changes = payload.changes()
    if "type" in changes:
        changes["type"] = _check_type(changes["type"])
    for key in ("start_date", "end_date"):
        if key in changes:
            changes[key] = _naive(changes[key])
    _check_dates(
        changes.get("start_date", announcement.start_date),
        changes.get("end_date", announcement.end_date),
    )

    for key, value in changes.items():
        setattr(announcement, key, value)
    db.commit()
    db.refresh(announcement)

    audit_service.record(
        db, "update_announcement", "Announcement", resource_id=announcement.id,
        details={"fields": sorted(changes)}, user=current_user, request=request,
    )
    return {"message": "Announcement updated", "announcement": announcement_out(announcement)}


@router.patch("/{announcement_id}/toggle", response_model=dict)
def toggle_announcement(
    announcement_id: str,
    current_user: User = Depends(require_admin),
    db: Session = Depends(get_db),
):
    announcement = db.get(Announcement, announcement_id)
    if announcement is None:
        raise HTTPException(404, detail="Announcement not found")
    announcement.is_active = not announcement.is_active
    db.commit()
    db.refresh(announcement)
    return {"message": "Announcement toggled", "announcement": announcement_out(announcement)}


@router.delete("/{announcement_id}", response_model=dict)
def delete_announcement(
    announcement_id: str,
    request: Request,
    current_user: User = Depends(require_admin),
    db: Session = Depends(get_db),
):
    announcement = db.get(Announcement, announcement_id)
    if announcement is None:
        raise HTTPException(404, detail="Announcement not found")
    title = announcement.title
    db.delete(announcement)
    db.commit()

    audit_service.record(
        db, "delete_announcement", "Announcement", resource_id=announcement_id,
        details={"title": title}, user=current_user, request=request,
    )
    return {"message": "Announcement deleted"}
