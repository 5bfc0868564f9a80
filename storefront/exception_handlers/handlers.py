"""
Обработчики исключений FastAPI приложения.

Доменные ошибки сервисного слоя превращаются в JSON ответ с их статусом,
все необработанные исключения логируются с идентификатором ошибки
и возвращаются как 500.
"""

import uuid

from fastapi import FastAPI, Request
from fastapi.responses import JSONResponse

from storefront.core.exceptions import StorefrontError
from storefront.core.logging_config import get_logger

logger = get_logger(__name__)


async def storefront_error_handler(request: Request, exc: StorefrontError) -> JSONResponse:
    """
    Ответ для доменной ошибки.

    Args:
        request: HTTP запрос
        exc: Доменная ошибка

    Returns:
        JSONResponse: {"detail": ..., **extra} со статусом ошибки
    """
    logger.info(
        "%s %s -> %s: %s", request.method, request.url.path, exc.status_code, exc.detail
    )
    return JSONResponse(status_code=exc.status_code, content={"detail": exc.detail, **exc.extra})


async def global_exception_handler(request: Request, exc: Exception) -> JSONResponse:
    """
    Обработчик всех необработанных исключений.

    Логирует полный traceback и возвращает id ошибки, по которому
    ее можно найти в логах.
    """
    error_id = uuid.uuid4().hex[:12]
    logger.error(
        "Unhandled exception [%s] in %s %s: %s",
        error_id,
        request.method,
        request.url.path,
        exc,
        exc_info=True,
        extra={
            "error_id": error_id,
            "client": request.client.host if request.client else "unknown",
            "error_type": type(exc).__name__,
        },
    )
    return JSONResponse(
        status_code=500,
        content={"detail": "Internal server error", "error_id": error_id},
    )


def setup_exception_handlers(app: FastAPI) -> None:
    """Регистрация обработчиков исключений в приложении."""
    app.add_exception_handler(StorefrontError, storefront_error_handler)
    app.add_exception_handler(Exception, global_exception_handler)
    logger.debug("Exception handlers registered")
