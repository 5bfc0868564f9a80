#!/usr/bin/env python3
"""
Перенос данных из SQLite в PostgreSQL.

Все таблицы копируются в порядке зависимостей, целевые таблицы
предварительно очищаются. После переноса сравнивается количество строк.

Usage:
    python scripts/migrate_sqlite_to_postgres.py --sqlite sqlite:///./dev.db [--dry-run]
"""

import argparse
import sys
from pathlib import Path

# Добавляем путь к пакету storefront
sys.path.insert(0, str(Path(__file__).parent.parent))

from sqlalchemy.exc import SQLAlchemyError
from tqdm import tqdm

from storefront.core.config import settings
from storefront.core.logging_config import get_logger, setup_logging
from storefront.db.database import build_engine
from storefront.services import backup_service

logger = get_logger("migrate_sqlite_to_postgres")


def main() -> int:
    parser = argparse.ArgumentParser(description="Copy every table from SQLite to PostgreSQL")
    parser.add_argument("--sqlite", default="sqlite:///./dev.db", help="Source SQLite URL")
    parser.add_argument("--target", default=settings.DATABASE_URL, help="Target PostgreSQL URL")
    parser.add_argument("--dry-run", action="store_true", help="Only count rows")
    args = parser.parse_args()

    if not args.target.startswith("postgresql"):
        print("❌ Целевая база должна быть PostgreSQL (DATABASE_URL или --target)")
        return 1

    source = build_engine(args.sqlite)
    target = build_engine(args.target)
    print(f"🔄 {args.sqlite} -> PostgreSQL{' (dry run)' if args.dry_run else ''}")

    try:
        report = backup_service.copy_tables(
            source,
            target,
            dry_run=args.dry_run,
            progress=lambda rows, name: tqdm(rows, desc=name, unit="rows"),
        )
    except SQLAlchemyError as e:
        logger.error("Migration failed: %s", e)
        print(f"❌ Ошибка миграции: {e}")
        return 1

    print("=" * 50)
    mismatched = 0
    for name, counts in report.items():
        if args.dry_run:
            print(f"  {name}: {counts['source']}")
            continue
        ok = counts["source"] == counts["target"]
        mismatched += 0 if ok else 1
        print(f"  {'✅' if ok else '❌'} {name}: {counts['source']} -> {counts['target']}")

    if args.dry_run:
        print(f"📋 Таблиц: {len(report)}, строк: {sum(c['source'] for c in report.values())}")
        return 0
    if mismatched:
        print(f"❌ Не совпало таблиц: {mismatched}")
        return 1
    print("✅ Миграция завершена, количество строк совпадает")
    return 0


if __name__ == "__main__":
    setup_logging()
    sys.exit(main())
