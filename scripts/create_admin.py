#!/usr/bin/env python3
"""
Скрипт для создания главного суперадминистратора.

Если пользователь с таким email уже есть, он становится главным
SUPER_ADMIN и получает новый пароль.

Usage:
    python scripts/create_admin.py --email admin@example.com --password secret123
"""

import argparse
import getpass
import sys
from pathlib import Path

# Добавляем путь к пакету storefront
sys.path.insert(0, str(Path(__file__).parent.parent))

from sqlalchemy import func, select

from storefront.core.auth import AuthService
from storefront.core.logging_config import get_logger, setup_logging
from storefront.db.database import SessionLocal, engine
from storefront.db.models import Base, Role, User, utcnow

logger = get_logger("create_admin")

MIN_PASSWORD_LENGTH = 6


def create_admin(email: str, password: str, first_name: str, last_name: str) -> User:
    """Создает или обновляет главного суперадмина."""
    Base.metadata.create_all(bind=engine)
    db = SessionLocal()
    try:
        email = email.strip().lower()
        user = db.scalar(select(User).where(func.lower(User.email) == email))
        if user is None:
            user = User(email=email, first_name=first_name, last_name=last_name)
            db.add(user)
            logger.info("Creating super admin %s", email)
        else:
            logger.info("Updating existing user %s to super admin", email)

        user.password = AuthService.get_password_hash(password)
        user.password_changed_at = utcnow()
        user.refresh_token = None
        user.role = Role.SUPER_ADMIN
        user.is_primary = True
        user.is_verified = True
        user.is_active = True
        user.is_suspended = False
        db.commit()
        db.refresh(user)
        return user
    finally:
        db.close()


def main() -> int:
    parser = argparse.ArgumentParser(description="Create or reset the primary super admin")
    parser.add_argument("--email", required=True)
    parser.add_argument("--password", help="If omitted, asked interactively")
    parser.add_argument("--first-name", default="Super")
    parser.add_argument("--last-name", default="Admin")
    args = parser.parse_args()

    password = args.password or getpass.getpass("Password: ")
    if len(password) < MIN_PASSWORD_LENGTH:
        print(f"❌ Пароль должен быть не короче {MIN_PASSWORD_LENGTH} символов")
        return 1

    print("🔑 Создание администратора...")
    print("=" * 50)
    user = create_admin(args.email, password, args.first_name, args.last_name)
    print("✅ Суперадминистратор готов:")
    print(f"   Email: {user.email}")
    print(f"   ID: {user.id}")
    print(f"   Роль: {user.role} (primary)")
    return 0


if __name__ == "__main__":
    setup_logging()
    sys.exit(main())
