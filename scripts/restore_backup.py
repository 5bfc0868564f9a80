#!/usr/bin/env python3
"""
Восстановление базы данных из JSON бэкапа.

Существующие строки восстанавливаемых таблиц заменяются.

Usage:
    python scripts/restore_backup.py backups/backup_2024-01-01_12-00-00.json
    python scripts/restore_backup.py --latest [--yes]
"""

import argparse
import sys
from pathlib import Path

# Добавляем путь к пакету storefront
sys.path.insert(0, str(Path(__file__).parent.parent))

from sqlalchemy.exc import SQLAlchemyError

from storefront.core.config import settings
from storefront.core.logging_config import get_logger, setup_logging
from storefront.db.database import engine
from storefront.services import backup_service

logger = get_logger("restore_backup")


def main() -> int:
    parser = argparse.ArgumentParser(description="Restore the database from a JSON backup")
    parser.add_argument("file", nargs="?", help="Backup file")
    parser.add_argument("--latest", action="store_true", help="Use the newest backup")
    parser.add_argument("--dir", default=settings.BACKUP_DIR, help="Backup directory")
    parser.add_argument("--yes", action="store_true", help="Do not ask for confirmation")
    args = parser.parse_args()

    if args.latest:
        backups = backup_service.list_backups(args.dir)
        if not backups:
            print(f"❌ Бэкапов нет в {args.dir}")
            return 1
        path = backups[0]
    elif args.file:
        path = Path(args.file)
    else:
        parser.error("pass a backup file or --latest")

    if not path.exists():
        print(f"❌ Файл не найден: {path}")
        return 1

    try:
        data = backup_service.load_backup(path)
    except ValueError as e:
        print(f"❌ {e}")
        return 1

    print(f"📦 Бэкап: {path.name} (создан {data.get('created_at', '?')})")
    for name, rows in data["tables"].items():
        print(f"  - {name}: {len(rows)}")

    if not args.yes:
        answer = input("⚠️  Текущие данные будут заменены. Продолжить? [y/N] ")
        if answer.strip().lower() not in ("y", "yes"):
            print("Отменено")
            return 1

    try:
        restored = backup_service.restore_tables(engine, data)
    except SQLAlchemyError as e:
        logger.error("Restore failed: %s", e)
        print(f"❌ Ошибка восстановления: {e}")
        return 1
    print(f"✅ Восстановлено строк: {sum(restored.values())} в {len(restored)} таблицах")
    return 0


if __name__ == "__main__":
    setup_logging()
    sys.exit(main())
