"""
Сервис инвайт-токенов для регистрации суперадминов.
"""

import secrets
from datetime import timedelta
from typing import Optional, Tuple

from sqlalchemy import select
from sqlalchemy.orm import Session

from storefront.core.auth import AuthService
from storefront.db.models import SuperAdminToken, User, utcnow

TOKEN_BYTES = 32


def create_token(
    db: Session, creator: User, expires_in_hours: int = 24, purpose: Optional[str] = None
) -> Tuple[SuperAdminToken, str]:
    """
    Выпустить токен.

    Returns:
        Tuple[SuperAdminToken, str]: запись и сам токен (показывается один раз)
    """
    raw = secrets.token_urlsafe(TOKEN_BYTES)
    row = SuperAdminToken(
        token_hash=AuthService.get_password_hash(raw),
        purpose=purpose,
        created_by=creator.id,
        expires_at=utcnow() + timedelta(hours=expires_in_hours),
    )
    db.add(row)
    db.commit()
    db.refresh(row)
    return row, raw


def find_valid_token(db: Session, raw: Optional[str]) -> Optional[SuperAdminToken]:
    """Неотозванный, неиспользованный и непросроченный токен с совпадающим хешем."""
    if not raw:
        return None
    candidates = db.scalars(
        select(SuperAdminToken).where(
            SuperAdminToken.is_revoked.is_(False),
            SuperAdminToken.used_at.is_(None),
            SuperAdminToken.expires_at > utcnow(),
        )
    ).all()
    for row in candidates:
        if AuthService.verify_password(raw, row.token_hash):
            return row
    return None


def mark_used(row: SuperAdminToken, user: User) -> None:
    row.used_at = utcnow()
    row.used_by = user.id


def token_status(row: SuperAdminToken) -> str:
    if row.is_revoked:
        return "revoked"
    if row.used_at is not None:
        return "used"
    if row.expires_at <= utcnow():
        return "expired"
    return "active"
