"""
Доменные исключения сервисного слоя.

Сервисы бросают их вместо HTTPException, обработчик в
storefront.exception_handlers превращает их в JSON ответ.
"""

from typing import Any, Dict, Optional


class StorefrontError(Exception):
    """Базовая ошибка магазина со статусом HTTP."""

    status_code = 400

    def __init__(self, detail: str, extra: Optional[Dict[str, Any]] = None):
        super().__init__(detail)
        self.detail = detail
        self.extra = extra or {}


class ValidationError(StorefrontError):
    status_code = 400


class ForbiddenError(StorefrontError):
    status_code = 403


class NotFoundError(StorefrontError):
    status_code = 404


class ConflictError(StorefrontError):
    status_code = 409


class PaymentError(StorefrontError):
    """Ошибка платежного шлюза."""

    status_code = 400

    def __init__(self, detail: str, status_code: int = 400, extra: Optional[Dict[str, Any]] = None):
        super().__init__(detail, extra)
        self.status_code = status_code
