"""
Сервис резервного копирования и переноса данных между базами.

Бэкап это JSON файл со всеми таблицами. Таблицы восстанавливаются
и копируются в порядке зависимостей внешних ключей.
"""

import json
from datetime import date, datetime
from pathlib import Path
from typing import Any, Callable, Dict, Iterable, List, Optional

from sqlalchemy import Date, DateTime, delete, func, insert, inspect, select
from sqlalchemy.engine import Engine

from storefront.core.logging_config import get_logger
from storefront.db.models import Base

logger = get_logger(__name__)

BACKUP_PREFIX = "backup"
FORMAT_VERSION = 1


def _json_default(value: Any) -> Any:
    if isinstance(value, (datetime, date)):
        return value.isoformat()
    raise TypeError(f"Object of type {type(value).__name__} is not JSON serializable")


def _restore_value(column, value: Any) -> Any:
    if value is None:
        return None
    if isinstance(column.type, DateTime) and isinstance(value, str):
        return datetime.fromisoformat(value)
    if isinstance(column.type, Date) and isinstance(value, str):
        return date.fromisoformat(value)
    return value


def existing_tables(engine: Engine) -> List:
    """Таблицы моделей, которые есть в базе, в порядке зависимостей."""
    present = set(inspect(engine).get_table_names())
    return [t for t in Base.metadata.sorted_tables if t.name in present]


def dump_tables(engine: Engine) -> Dict[str, Any]:
    """
    Выгрузить все таблицы.

    Returns:
        dict: {"version", "created_at", "tables": {name: [rows]}}
    """
    tables = {}
    with engine.connect() as conn:
        for table in existing_tables(engine):
            rows = conn.execute(select(table)).mappings().all()
            tables[table.name] = [dict(row) for row in rows]
            logger.info("Dumped %s: %d rows", table.name, len(rows))
    return {
        "version": FORMAT_VERSION,
        "created_at": datetime.now().isoformat(),
        "tables": tables,
    }


def backup_filename(description: Optional[str] = None, now: Optional[datetime] = None) -> str:
    stamp = (now or datetime.now()).strftime("%Y-%m-%d_%H-%M-%S")
    suffix = ""
    if description:
        cleaned = "".join(c if c.isalnum() else "-" for c in description.strip().lower())
        cleaned = "-".join(part for part in cleaned.split("-") if part)
        if cleaned:
            suffix = f"_{cleaned}"
    return f"{BACKUP_PREFIX}_{stamp}{suffix}.json"


def write_backup(engine: Engine, backup_dir: str, description: Optional[str] = None) -> Path:
    """Записать бэкап в каталог и вернуть путь к файлу."""
    directory = Path(backup_dir)
    directory.mkdir(parents=True, exist_ok=True)
    data = dump_tables(engine)
    if description:
        data["description"] = description
    path = directory / backup_filename(description)
    path.write_text(json.dumps(data, default=_json_default, indent=2), encoding="utf-8")
    return path


def list_backups(backup_dir: str) -> List[Path]:
    """Файлы бэкапов, новые первыми."""
    directory = Path(backup_dir)
    if not directory.exists():
        return []
    files = directory.glob(f"{BACKUP_PREFIX}_*.json")
    return sorted(files, key=lambda p: p.stat().st_mtime, reverse=True)


def load_backup(path: Path) -> Dict[str, Any]:
    """
    Прочитать файл бэкапа.

    Raises:
        ValueError: Файл не является бэкапом
    """
    data = json.loads(Path(path).read_text(encoding="utf-8"))
    if not isinstance(data, dict) or not isinstance(data.get("tables"), dict):
        raise ValueError(f"{path} is not a backup file")
    return data


def restore_tables(engine: Engine, data: Dict[str, Any]) -> Dict[str, int]:
    """
    Восстановить таблицы из бэкапа в одной транзакции.

    Существующие строки восстанавливаемых таблиц удаляются
    (в обратном порядке зависимостей), затем вставляются строки бэкапа.

    Returns:
        Dict[str, int]: Количество восстановленных строк по таблицам
    """
    Base.metadata.create_all(bind=engine)
    backup_tables = data["tables"]
    ordered = [t for t in Base.metadata.sorted_tables if t.name in backup_tables]
    restored = {}
    with engine.begin() as conn:
        for table in reversed(ordered):
            conn.execute(delete(table))
        for table in ordered:
            rows = [
                {
                    col.name: _restore_value(col, row.get(col.name))
                    for col in table.columns
                    if col.name in row
                }
                for row in backup_tables[table.name]
            ]
            if rows:
                conn.execute(insert(table), rows)
            restored[table.name] = len(rows)
            logger.info("Restored %s: %d rows", table.name, len(rows))
    return restored


def count_rows(engine: Engine, tables: Iterable) -> Dict[str, int]:
    with engine.connect() as conn:
        return {t.name: conn.scalar(select(func.count()).select_from(t)) or 0 for t in tables}


def copy_tables(
    source: Engine,
    target: Engine,
    dry_run: bool = False,
    batch_size: int = 500,
    progress: Optional[Callable[[Iterable, str], Iterable]] = None,
) -> Dict[str, Dict[str, int]]:
    """
    Скопировать все таблицы из одной базы в другую.

    Args:
        source: Исходная база (SQLite)
        target: Целевая база (PostgreSQL)
        dry_run: Только посчитать строки
        batch_size: Размер пачки вставки
        progress: Обертка итератора для отображения прогресса

    Returns:
        Dict: {table: {"source": n, "target": m}}
    """
    tables = existing_tables(source)
    source_counts = count_rows(source, tables)
    if dry_run:
        return {name: {"source": n, "target": 0} for name, n in source_counts.items()}

    Base.metadata.create_all(bind=target)
    with source.connect() as src, target.begin() as dst:
        for table in reversed(tables):
            dst.execute(delete(table))
        for table in tables:
            rows = src.execute(select(table)).mappings()
            iterator = progress(rows, table.name) if progress else rows
            batch = []
            for row in iterator:
                batch.append(dict(row))
                if len(batch) >= batch_size:
                    dst.execute(insert(table), batch)
                    batch = []
            if batch:
                dst.execute(insert(table), batch)
            logger.info("Copied %s: %d rows", table.name, source_counts[table.name])

    target_counts = count_rows(target, tables)
    return {
        name: {"source": n, "target": target_counts.get(name, 0)}
        for name, n in source_counts.items()
    }
