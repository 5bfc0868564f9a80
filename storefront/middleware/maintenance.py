"""
Middleware режима обслуживания.

Пока настройка maintenance_mode включена, запросы к API получают 503,
кроме служебных путей и запросов администраторов.
"""

from typing import Callable, Optional

from fastapi import Request
from fastapi.responses import JSONResponse
from sqlalchemy.exc import SQLAlchemyError
from starlette.concurrency import run_in_threadpool
from starlette.middleware.base import BaseHTTPMiddleware
from starlette.responses import Response

from storefront.core.auth import AuthService
from storefront.core.logging_config import get_logger
from storefront.db.models import Role, User
from storefront.services import settings_service

logger = get_logger(__name__)

API_PREFIX = "/api/v1"

EXEMPT_PREFIXES = (
    "/api/v1/admin/settings",
    "/api/v1/auth/login",
    "/api/v1/auth/refresh",
    "/api/v1/auth/verify",
    "/api/v1/settings/public",
)

MAINTENANCE_DETAIL = "The store is currently undergoing maintenance. Please try again later."


def _bearer_token(request: Request) -> Optional[str]:
    header = request.headers.get("authorization", "")
    if header.lower().startswith("bearer "):
        return header[7:].strip() or None
    return None


class MaintenanceMiddleware(BaseHTTPMiddleware):
    """
    Блокировка API в режиме обслуживания.

    Ошибка чтения настроек не блокирует трафик.
    """

    def __init__(self, app, session_factory: Callable):
        super().__init__(app)
        self.session_factory = session_factory

    def _check(self, token: Optional[str]) -> bool:
        """True, если запрос нужно отклонить."""
        db = self.session_factory()
        try:
            if not settings_service.is_enabled(db, "maintenance_mode"):
                return False
            payload = AuthService.verify_token(token) if token else None
            if payload and payload.get("sub"):
                user = db.get(User, payload["sub"])
                if user is not None and user.has_role(Role.ADMIN) and not user.is_suspended:
                    return False
            return True
        finally:
            db.close()

    async def dispatch(self, request: Request, call_next) -> Response:
        path = request.url.path
        if request.method == "OPTIONS" or not path.startswith(API_PREFIX):
            return await call_next(request)
        if path.startswith(EXEMPT_PREFIXES):
            return await call_next(request)

        try:
            blocked = await run_in_threadpool(self._check, _bearer_token(request))
        except SQLAlchemyError as e:
            logger.warning("Maintenance check failed, allowing request: %s", e)
            blocked = False

        if blocked:
            return JSONResponse(
                status_code=503,
                content={"detail": MAINTENANCE_DETAIL, "maintenance": True},
            )
        return await call_next(request)
