"""
Базовый класс для всех моделей SQLAlchemy и общие типы колонок.

Использует новый Declarative API SQLAlchemy 2.0.
"""

import uuid
from datetime import datetime, timezone

from sqlalchemy import JSON
from sqlalchemy.dialects.postgresql import JSONB
from sqlalchemy.orm import DeclarativeBase

# JSON колонка, на PostgreSQL хранится как JSONB
JSONType = JSON().with_variant(JSONB(), "postgresql")


def new_uuid() -> str:
    """Строковый UUID для первичных ключей."""
    return str(uuid.uuid4())


def utcnow() -> datetime:
    """Текущее время в UTC без tzinfo (так хранится в БД)."""
    return datetime.now(timezone.utc).replace(tzinfo=None)


class Base(DeclarativeBase):
    """
    Базовый класс для всех моделей.

    Наследуется от DeclarativeBase для использования нового API SQLAlchemy 2.0.
    """
    pass
