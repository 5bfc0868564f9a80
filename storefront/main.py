"""
Главный модуль FastAPI приложения The Babel Edit API.

Содержит конфигурацию приложения, middleware, обработчики ошибок
и роутеры.
"""

from contextlib import asynccontextmanager
from pathlib import Path

from fastapi import FastAPI
from fastapi.middleware.cors import CORSMiddleware
from fastapi.responses import JSONResponse
from fastapi.staticfiles import StaticFiles
from sqlalchemy import text
from sqlalchemy.exc import SQLAlchemyError

from storefront.api.v1.routers import api_router
from storefront.core.config import settings
from storefront.core.logging_config import get_logger, setup_logging
from storefront.db.database import SessionLocal
from storefront.exception_handlers import setup_exception_handlers
from storefront.middleware import MaintenanceMiddleware

setup_logging()
logger = get_logger(__name__)

SERVICE_NAME = "The Babel Edit API"
VERSION = "1.0.0"


@asynccontextmanager
async def lifespan(app: FastAPI):
    """Запуск и остановка приложения."""
    logger.info("Starting %s (%s)", SERVICE_NAME, settings.ENVIRONMENT)
    yield
    logger.info("Shutting down %s", SERVICE_NAME)


# Создание экземпляра FastAPI приложения
app = FastAPI(
    title=SERVICE_NAME,
    description="API магазина винтажной одежды: каталог, корзина, заказы, оплата и админка",
    version=VERSION,
    docs_url="/docs",
    redoc_url="/redoc",
    lifespan=lifespan,
)

# Статические файлы локального хранилища
if settings.STORAGE_TYPE == "local":
    uploads_path = Path(settings.STORAGE_PATH).resolve()
    uploads_path.mkdir(parents=True, exist_ok=True)
    app.mount("/static", StaticFiles(directory=str(uploads_path)), name="static")
    logger.info("Static files mounted at /static from %s", uploads_path)

# Middleware, CORS внешний
app.add_middleware(MaintenanceMiddleware, session_factory=SessionLocal)
app.add_middleware(
    CORSMiddleware,
    allow_origins=settings.cors_origins,
    allow_credentials=True,
    allow_methods=["*"],
    allow_headers=["*"],
)

setup_exception_handlers(app)


@app.get("/healthz")
def healthz():
    """
    Health check endpoint для мониторинга состояния приложения.

    Returns:
        dict: Статус приложения и доступность базы данных
    """
    db = SessionLocal()
    try:
        db.execute(text("SELECT 1"))
    except SQLAlchemyError as e:
        logger.error("Health check database error: %s", e)
        return JSONResponse(
            status_code=503,
            content={"status": "error", "service": SERVICE_NAME, "database": "unavailable"},
        )
    finally:
        db.close()
    return {"status": "ok", "service": SERVICE_NAME, "version": VERSION, "database": "ok"}


# Подключение API роутеров
app.include_router(api_router, prefix="/api/v1")
