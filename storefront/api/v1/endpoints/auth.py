"""
API endpoints аутентификации.

Регистрация (включая суперадминов по инвайт-токену), вход, обновление
токенов через refresh cookie, выход и профиль пользователя.
"""

from fastapi import APIRouter, Depends, HTTPException, Request, Response, status
from sqlalchemy import func, select
from sqlalchemy.orm import Session

from storefront.api.v1.serializers import user_out
from storefront.core.auth import (
    REFRESH_COOKIE,
    SUSPENDED_DETAIL,
    AuthService,
    get_current_active_user,
)
from storefront.core.config import settings
from storefront.core.logging_config import get_logger
from storefront.db.database import get_db
from storefront.db.models import Role, Severity, User, utcnow
from storefront.schemas.auth import LoginRequest, ProfileUpdate, RegisterRequest
from storefront.services import audit_service, email_service, invite_service, settings_service

logger = get_logger(__name__)

router = APIRouter()


def _set_refresh_cookie(response: Response, token: str) -> None:
    response.set_cookie(
        key=REFRESH_COOKIE,
        value=token,
        httponly=True,
        secure=settings.is_production,
        samesite="lax",
        max_age=settings.REFRESH_COOKIE_MAX_AGE_DAYS * 24 * 60 * 60,
        path="/",
    )


def _issue_tokens(db: Session, user: User, response: Response) -> str:
    """Выдать access токен, сохранить refresh токен и положить его в cookie."""
    access_token = AuthService.create_access_token(user)
    refresh_token = AuthService.create_refresh_token(user)
    user.refresh_token = refresh_token
    db.commit()
    db.refresh(user)
    _set_refresh_cookie(response, refresh_token)
    return access_token


def _find_by_email(db: Session, email: str):
    return db.scalar(select(User).where(func.lower(User.email) == email.strip().lower()))


@router.post("/register", response_model=dict, status_code=201)
def register(
    payload: RegisterRequest,
    request: Request,
    response: Response,
    db: Session = Depends(get_db),
):
    """
    Регистрация пользователя.

    Роль SUPER_ADMIN выдается только по действующему инвайт-токену,
    любая другая запрошенная роль превращается в USER.

    Raises:
        HTTPException: Регистрация закрыта или неверный инвайт (403),
            email занят (409)
    """
    wants_super_admin = payload.role == Role.SUPER_ADMIN
    invite = None
    if wants_super_admin:
        invite = invite_service.find_valid_token(db, payload.invite_token)
        if invite is None:
            audit_service.record(
                db, "superadmin_register_denied", "User",
                details={"email": payload.email}, severity=Severity.CRITICAL,
                user_email=payload.email, request=request,
            )
            raise HTTPException(403, detail="Invalid or expired super admin invite token")
    elif not settings_service.is_enabled(db, "new_user_registration"):
        raise HTTPException(403, detail="New user registration is currently disabled")

    email = payload.email.strip().lower()
    if _find_by_email(db, email) is not None:
        raise HTTPException(409, detail="User with this email already exists")

    user = User(
        email=email,
        password=AuthService.get_password_hash(payload.password),
        first_name=payload.first_name.strip(),
        last_name=payload.last_name.strip(),
        role=Role.SUPER_ADMIN if wants_super_admin else Role.USER,
        is_verified=True,
        is_agree=payload.is_agree,
        password_changed_at=utcnow(),
        last_login=utcnow(),
    )
    db.add(user)
    db.flush()
    if invite is not None:
        invite_service.mark_used(invite, user)
    access_token = _issue_tokens(db, user, response)

    email_service.send_welcome_email(user)
    audit_service.record(
        db, "user_register", "User", resource_id=user.id,
        details={"role": user.role, "via_invite": invite is not None},
        severity=Severity.WARNING if wants_super_admin else Severity.INFO,
        user=user, request=request,
    )
    logger.info("User registered: %s (%s)", user.email, user.role)
    return {
        "message": "User registered successfully",
        "access_token": access_token,
        "user": user_out(user),
    }


@router.post("/login", response_model=dict)
def login(
    payload: LoginRequest,
    request: Request,
    response: Response,
    db: Session = Depends(get_db),
):
    """
    Вход по email и паролю.

    Raises:
        HTTPException: Неверные данные (401), аккаунт заблокирован (403)
    """
    user = _find_by_email(db, payload.email)
    if user is None or not AuthService.verify_password(payload.password, user.password):
        audit_service.record(
            db, "user_login_failed", "User",
            resource_id=user.id if user else None,
            details={"email": payload.email}, severity=Severity.WARNING,
            user_email=payload.email, request=request,
        )
        raise HTTPException(
            status_code=status.HTTP_401_UNAUTHORIZED,
            detail="Invalid email or password",
        )
    if user.is_suspended:
        raise HTTPException(status_code=status.HTTP_403_FORBIDDEN, detail=SUSPENDED_DETAIL)

    user.last_login = utcnow()
    access_token = _issue_tokens(db, user, response)

    audit_service.record(db, "user_login", "User", resource_id=user.id, user=user, request=request)
    return {"message": "Login successful", "access_token": access_token, "user": user_out(user)}


@router.post("/refresh", response_model=dict)
def refresh(request: Request, response: Response, db: Session = Depends(get_db)):
    """
    Обновление пары токенов по refresh cookie (с ротацией).

    Raises:
        HTTPException: Нет cookie, токен невалиден или уже заменен (401)
    """
    token = request.cookies.get(REFRESH_COOKIE)
    if not token:
        raise HTTPException(401, detail="Refresh token not found")

    payload = AuthService.verify_refresh_token(token)
    user = db.get(User, payload["sub"]) if payload and payload.get("sub") else None
    if user is None or user.refresh_token != token:
        raise HTTPException(401, detail="Invalid refresh token")
    if user.is_suspended:
        raise HTTPException(403, detail=SUSPENDED_DETAIL)

    access_token = _issue_tokens(db, user, response)
    return {"access_token": access_token, "user": user_out(user)}


@router.post("/logout", response_model=dict)
def logout(request: Request, response: Response, db: Session = Depends(get_db)):
    """Выход: сохраненный refresh токен стирается, cookie удаляется."""
    token = request.cookies.get(REFRESH_COOKIE)
    payload = AuthService.verify_refresh_token(token) if token else None
    if payload and payload.get("sub"):
        user = db.get(User, payload["sub"])
        if user is not None and user.refresh_token == token:
            user.refresh_token = None
            db.commit()
    response.delete_cookie(REFRESH_COOKIE, path="/")
    return {"message": "Logged out successfully"}


@router.get("/verify", response_model=dict)
def verify(current_user: User = Depends(get_current_active_user)):
    """Проверка access токена."""
    return {"user": user_out(current_user)}


@router.get("/profile", response_model=dict)
def get_profile(current_user: User = Depends(get_current_active_user)):
    return {"user": user_out(current_user)}


@router.put("/profile", response_model=dict)
def update_profile(
    payload: ProfileUpdate,
    current_user: User = Depends(get_current_active_user),
    db: Session = Depends(get_db),
):
    """Обновление имени, телефона и аватара."""
    for key, value in payload.changes().items():
        setattr(current_user, key, value)
    db.commit()
    db.refresh(current_user)
    return {"message": "Profile updated successfully", "user": user_out(current_user)}
