"""
Конфигурация базы данных.

Содержит движок SQLAlchemy, фабрику сессий и dependency get_db.
В продакшене используется PostgreSQL, SQLite допускается для разработки
и тестов.
"""

from typing import Generator

from sqlalchemy import create_engine
from sqlalchemy.engine import make_url
from sqlalchemy.orm import sessionmaker
from sqlalchemy.pool import StaticPool

from storefront.core.config import settings


def build_engine(url: str, echo: bool = False):
    """
    Создание движка с учетом особенностей SQLite.

    Args:
        url: URL подключения
        echo: Логирование SQL запросов

    Returns:
        Engine: Движок SQLAlchemy
    """
    parsed = make_url(url)
    kwargs = {"pool_pre_ping": True, "future": True, "echo": echo}
    if parsed.get_backend_name() == "sqlite":
        kwargs["connect_args"] = {"check_same_thread": False}
        # In-memory база живет только в одном соединении
        if not parsed.database or parsed.database == ":memory:":
            kwargs["poolclass"] = StaticPool
    return create_engine(url, **kwargs)


# Создание движка SQLAlchemy
engine = build_engine(settings.DATABASE_URL, echo=bool(settings.DEBUG))

# Фабрика сессий базы данных
SessionLocal = sessionmaker(bind=engine, autoflush=False, autocommit=False, future=True)


def get_db() -> Generator:
    """
    Dependency для получения сессии базы данных.

    Yields:
        Session: Сессия SQLAlchemy

    Note:
        Автоматически закрывает сессию после использования
    """
    db = SessionLocal()
    try:
        yield db
    finally:
        db.close()
