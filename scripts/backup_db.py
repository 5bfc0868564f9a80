#!/usr/bin/env python3
"""
Резервное копирование базы данных в JSON.

Usage:
    python scripts/backup_db.py [description]
    python scripts/backup_db.py --list
"""

import argparse
import sys
from datetime import datetime
from pathlib import Path

# Добавляем путь к пакету storefront
sys.path.insert(0, str(Path(__file__).parent.parent))

from sqlalchemy.exc import SQLAlchemyError

from storefront.core.config import settings
from storefront.core.logging_config import get_logger, setup_logging
from storefront.db.database import engine
from storefront.services import backup_service

logger = get_logger("backup_db")


def show_backups(backup_dir: str) -> None:
    backups = backup_service.list_backups(backup_dir)
    if not backups:
        print(f"📭 Бэкапов нет в {backup_dir}")
        return
    print(f"📦 Бэкапы в {backup_dir} (новые первыми):")
    for path in backups:
        stat = path.stat()
        modified = datetime.fromtimestamp(stat.st_mtime).strftime("%Y-%m-%d %H:%M:%S")
        print(f"  - {path.name}  {stat.st_size / 1024:.1f} KB  {modified}")


def main() -> int:
    parser = argparse.ArgumentParser(description="Backup every table to a JSON file")
    parser.add_argument("description", nargs="?", help="Suffix for the backup file name")
    parser.add_argument("--list", action="store_true", help="List existing backups")
    parser.add_argument("--dir", default=settings.BACKUP_DIR, help="Backup directory")
    args = parser.parse_args()

    if args.list:
        show_backups(args.dir)
        return 0

    print("💾 Создание резервной копии...")
    try:
        path = backup_service.write_backup(engine, args.dir, args.description)
    except SQLAlchemyError as e:
        logger.error("Backup failed: %s", e)
        print(f"❌ Ошибка резервного копирования: {e}")
        return 1
    print(f"✅ Бэкап сохранен: {path} ({path.stat().st_size / 1024:.1f} KB)")
    return 0


if __name__ == "__main__":
    setup_logging()
    sys.exit(main())
