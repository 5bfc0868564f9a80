"""
API endpoints сброса и смены пароля.
"""

from urllib.parse import urlencode

from fastapi import APIRouter, Depends, HTTPException, Query, Request
from sqlalchemy import func, select
from sqlalchemy.orm import Session

from storefront.core.auth import AuthService, get_current_active_user
from storefront.core.config import settings
from storefront.core.logging_config import get_logger
from storefront.db.database import get_db
from storefront.db.models import Severity, User, utcnow
from storefront.schemas.auth import ChangePasswordRequest, PasswordReset, PasswordResetRequest
from storefront.services import audit_service, email_service

logger = get_logger(__name__)

router = APIRouter()

REQUEST_MESSAGE = "If an account with that email exists, a password reset link has been sent."


def _user_from_reset_token(db: Session, token: str) -> tuple:
    payload = AuthService.verify_password_reset_token(token) if token else None
    if payload is None or not payload.get("sub"):
        raise HTTPException(400, detail="Invalid or expired reset token")
    user = db.get(User, payload["sub"])
    if user is None:
        raise HTTPException(400, detail="Invalid or expired reset token")
    return payload, user


@router.post("/request", response_model=dict)
def request_reset(payload: PasswordResetRequest, request: Request, db: Session = Depends(get_db)):
    """
    Запрос ссылки для сброса пароля.

    Ответ одинаковый независимо от существования аккаунта.
    """
    user = db.scalar(select(User).where(func.lower(User.email) == payload.email.lower()))
    if user is not None and user.password:
        token = AuthService.create_password_reset_token(user)
        reset_url = f"{settings.FRONTEND_URL.rstrip('/')}/reset-password?{urlencode({'token': token})}"
        email_service.send_password_reset_email(user, reset_url)
        audit_service.record(
            db, "request_password_reset", "User", resource_id=user.id,
            user=user, request=request,
        )
    else:
        logger.info("Password reset requested for unknown or passwordless account")
    return {"message": REQUEST_MESSAGE}


@router.get("/verify", response_model=dict)
def verify_reset_token(token: str = Query(None), db: Session = Depends(get_db)):
    """Проверка токена сброса перед показом формы."""
    if not token:
        raise HTTPException(400, detail="Reset token is required")
    payload, user = _user_from_reset_token(db, token)
    if AuthService.reset_token_is_stale(payload, user):
        raise HTTPException(400, detail="This reset link has already been used")
    return {
        "message": "Token is valid",
        "user": {"email": user.email, "first_name": user.first_name},
    }


@router.post("/reset", response_model=dict)
def reset_password(payload: PasswordReset, request: Request, db: Session = Depends(get_db)):
    """
    Установка нового пароля по токену.

    Токен одноразовый: после смены пароля он становится устаревшим.
    Все сессии пользователя завершаются.
    """
    token_payload, user = _user_from_reset_token(db, payload.token)
    if AuthService.reset_token_is_stale(token_payload, user):
        raise HTTPException(400, detail="This reset link has already been used")

    user.password = AuthService.get_password_hash(payload.new_password)
    user.password_changed_at = utcnow()
    user.refresh_token = None
    db.commit()

    email_service.send_password_changed_email(user)
    audit_service.record(
        db, "reset_password", "User", resource_id=user.id,
        severity=Severity.WARNING, user=user, request=request,
    )
    return {"message": "Password has been reset successfully"}


@router.put("/change", response_model=dict)
def change_password(
    payload: ChangePasswordRequest,
    request: Request,
    current_user: User = Depends(get_current_active_user),
    db: Session = Depends(get_db),
):
    """
    Смена пароля авторизованным пользователем.

    Raises:
        HTTPException: Текущий пароль неверен (400)
    """
    if not AuthService.verify_password(payload.current_password, current_user.password):
        raise HTTPException(400, detail="Current password is incorrect")

    current_user.password = AuthService.get_password_hash(payload.new_password)
    current_user.password_changed_at = utcnow()
    db.commit()

    email_service.send_password_changed_email(current_user)
    audit_service.record(
        db, "change_password", "User", resource_id=current_user.id,
        user=current_user, request=request,
    )
    return {"message": "Password changed successfully"}
