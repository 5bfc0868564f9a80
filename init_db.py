#!/usr/bin/env python3
"""
Скрипт для инициализации базы данных
"""

import sys
from pathlib import Path

# Добавляем путь к пакету storefront
sys.path.insert(0, str(Path(__file__).parent))

from sqlalchemy import inspect
from sqlalchemy.exc import SQLAlchemyError

from storefront.core.logging_config import get_logger, setup_logging
from storefront.db.database import SessionLocal, engine
from storefront.db.models import Base
from storefront.services import settings_service

logger = get_logger("init_db")


def init_database() -> bool:
    """Создает все таблицы и настройки сайта по умолчанию."""
    print("🗄️ Инициализация базы данных...")

    try:
        Base.metadata.create_all(bind=engine)
        db = SessionLocal()
        try:
            settings_service.ensure_defaults(db)
        finally:
            db.close()
    except SQLAlchemyError as e:
        logger.error("Ошибка создания таблиц: %s", e)
        print(f"❌ Ошибка создания таблиц: {e}")
        return False

    tables = inspect(engine).get_table_names()
    print(f"✅ Таблиц в базе: {len(tables)}")
    for table in tables:
        print(f"  - {table}")
    return True


if __name__ == "__main__":
    setup_logging()
    if not init_database():
        sys.exit(1)
