"""
Модуль аутентификации и авторизации.

Содержит функции для работы с JWT токенами (access, refresh, сброс пароля),
хеширования паролей и проверки прав доступа пользователей.
"""

import uuid
from datetime import datetime, timedelta, timezone
from typing import Optional

import jwt
from fastapi import Depends, HTTPException, Request, status
from fastapi.security import HTTPAuthorizationCredentials, HTTPBearer
from passlib.context import CryptContext
from sqlalchemy.orm import Session

from storefront.core.config import settings
from storefront.db.database import get_db
from storefront.db.models import Role, User

# Настройка хеширования паролей
pwd_context = CryptContext(schemes=["bcrypt"], deprecated="auto")

ALGORITHM = "HS256"
ACCESS_COOKIE = "accessToken"
REFRESH_COOKIE = "refreshToken"
RESET_PURPOSE = "password-reset"

SUSPENDED_DETAIL = "Your account has been suspended. Please contact support."

# HTTP Bearer схема; без auto_error, т.к. токен может прийти в cookie
security = HTTPBearer(auto_error=False)


class AuthService:
    """Сервис для работы с аутентификацией."""

    @staticmethod
    def verify_password(plain_password: str, hashed_password: Optional[str]) -> bool:
        """Проверка пароля."""
        if not hashed_password:
            return False
        return pwd_context.verify(plain_password, hashed_password)

    @staticmethod
    def get_password_hash(password: str) -> str:
        """Хеширование пароля."""
        return pwd_context.hash(password)

    @staticmethod
    def _encode(data: dict, secret: str, expires_delta: timedelta) -> str:
        now = datetime.now(timezone.utc)
        to_encode = data.copy()
        to_encode.update({"iat": now, "exp": now + expires_delta})
        return jwt.encode(to_encode, secret, algorithm=ALGORITHM)

    @staticmethod
    def _decode(token: str, secret: str) -> Optional[dict]:
        try:
            return jwt.decode(token, secret, algorithms=[ALGORITHM])
        except jwt.PyJWTError:
            return None

    @staticmethod
    def create_access_token(user: User, expires_delta: Optional[timedelta] = None) -> str:
        """Создание access токена с id, email и ролью пользователя."""
        return AuthService._encode(
            {"sub": user.id, "email": user.email, "role": user.role, "type": "access"},
            settings.SECRET_KEY,
            expires_delta or timedelta(minutes=settings.ACCESS_TOKEN_EXPIRE_MINUTES),
        )

    @staticmethod
    def create_refresh_token(user: User) -> str:
        """Создание refresh токена (jti делает каждый токен уникальным)."""
        return AuthService._encode(
            {"sub": user.id, "type": "refresh", "jti": uuid.uuid4().hex},
            settings.REFRESH_SECRET_KEY,
            timedelta(days=settings.REFRESH_TOKEN_EXPIRE_DAYS),
        )

    @staticmethod
    def create_password_reset_token(user: User) -> str:
        """
        Создание токена сброса пароля.

        В токен зашивается отметка последней смены пароля: после смены
        пароля все ранее выданные токены становятся недействительными.
        """
        changed = user.password_changed_at.isoformat() if user.password_changed_at else ""
        return AuthService._encode(
            {"sub": user.id, "email": user.email, "purpose": RESET_PURPOSE, "pwd": changed},
            settings.RESET_SECRET_KEY,
            timedelta(minutes=settings.PASSWORD_RESET_EXPIRE_MINUTES),
        )

    @staticmethod
    def verify_token(token: str) -> Optional[dict]:
        """Проверка access токена."""
        payload = AuthService._decode(token, settings.SECRET_KEY)
        if payload is None or payload.get("type") != "access":
            return None
        return payload

    @staticmethod
    def verify_refresh_token(token: str) -> Optional[dict]:
        """Проверка refresh токена."""
        payload = AuthService._decode(token, settings.REFRESH_SECRET_KEY)
        if payload is None or payload.get("type") != "refresh":
            return None
        return payload

    @staticmethod
    def verify_password_reset_token(token: str) -> Optional[dict]:
        """Проверка токена сброса пароля."""
        payload = AuthService._decode(token, settings.RESET_SECRET_KEY)
        if payload is None or payload.get("purpose") != RESET_PURPOSE:
            return None
        return payload

    @staticmethod
    def reset_token_is_stale(payload: dict, user: User) -> bool:
        """Пароль уже менялся после выдачи токена."""
        changed = user.password_changed_at.isoformat() if user.password_changed_at else ""
        return payload.get("pwd", "") != changed


auth_service = AuthService()


def extract_token(
    request: Request, credentials: Optional[HTTPAuthorizationCredentials]
) -> Optional[str]:
    """Токен из заголовка Authorization, иначе из cookie accessToken."""
    if credentials and credentials.credentials:
        return credentials.credentials
    return request.cookies.get(ACCESS_COOKIE)


def _user_from_token(token: Optional[str], db: Session) -> Optional[User]:
    if not token:
        return None
    payload = AuthService.verify_token(token)
    if payload is None or not payload.get("sub"):
        return None
    return db.get(User, payload["sub"])


def get_current_user(
    request: Request,
    credentials: Optional[HTTPAuthorizationCredentials] = Depends(security),
    db: Session = Depends(get_db),
) -> User:
    """Получение текущего пользователя из токена."""
    user = _user_from_token(extract_token(request, credentials), db)
    if user is None:
        raise HTTPException(
            status_code=status.HTTP_401_UNAUTHORIZED,
            detail="Not authenticated",
            headers={"WWW-Authenticate": "Bearer"},
        )
    return user


def get_optional_user(
    request: Request,
    credentials: Optional[HTTPAuthorizationCredentials] = Depends(security),
    db: Session = Depends(get_db),
) -> Optional[User]:
    """Пользователь, если токен передан и валиден, иначе None."""
    user = _user_from_token(extract_token(request, credentials), db)
    if user is None or user.is_suspended or not user.is_active:
        return None
    return user


def get_current_active_user(current_user: User = Depends(get_current_user)) -> User:
    """Получение активного, не заблокированного пользователя."""
    if current_user.is_suspended:
        raise HTTPException(status_code=status.HTTP_403_FORBIDDEN, detail=SUSPENDED_DETAIL)
    if not current_user.is_active:
        raise HTTPException(status_code=400, detail="Inactive user")
    return current_user


def require_verified(current_user: User = Depends(get_current_active_user)) -> User:
    """Проверка подтвержденного email."""
    if not current_user.is_verified:
        raise HTTPException(
            status_code=status.HTTP_403_FORBIDDEN,
            detail="Please verify your email address first",
        )
    return current_user


def require_admin(current_user: User = Depends(get_current_active_user)) -> User:
    """Проверка прав администратора."""
    if not current_user.has_role(Role.ADMIN):
        raise HTTPException(
            status_code=status.HTTP_403_FORBIDDEN, detail="Not enough permissions"
        )
    return current_user


def require_super_admin(current_user: User = Depends(get_current_active_user)) -> User:
    """Проверка прав супер-администратора."""
    if not current_user.is_super_admin:
        raise HTTPException(
            status_code=status.HTTP_403_FORBIDDEN, detail="Not enough permissions"
        )
    return current_user


def require_primary_super_admin(current_user: User = Depends(require_super_admin)) -> User:
    """Только главный суперадмин."""
    if not current_user.is_primary:
        raise HTTPException(
            status_code=status.HTTP_403_FORBIDDEN,
            detail="Only the primary super admin can manage invite tokens",
        )
    return current_user
