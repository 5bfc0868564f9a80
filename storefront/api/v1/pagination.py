"""
Пагинация списков API.

Списки отвечают конвертом {"<ключ>": [...], "pagination": {...}},
где pagination содержит page, limit, total и pages.
"""

from typing import Any, Dict, List, Tuple, Union

from sqlalchemy import func, select
from sqlalchemy.orm import Query, Session
from sqlalchemy.sql import Select


def page_meta(page: int, limit: int, total: int) -> Dict[str, int]:
    """Метаданные страницы; пустой список это одна страница."""
    pages = (total + limit - 1) // limit if total > 0 else 1
    return {"page": page, "limit": limit, "total": total, "pages": pages}


def paginate(
    db: Session, stmt: Union[Select, Query], page: int, limit: int
) -> Tuple[List[Any], Dict[str, int]]:
    """
    Выполнить запрос для одной страницы.

    Args:
        db: Сессия базы данных
        stmt: select() одной сущности или Query, уже отсортированный
        page: Номер страницы (с 1)
        limit: Размер страницы

    Returns:
        Tuple[List, Dict]: Строки страницы и page_meta
    """
    offset = (page - 1) * limit
    if isinstance(stmt, Query):
        total = stmt.order_by(None).count()
        rows = stmt.offset(offset).limit(limit).all()
    else:
        counted = stmt.order_by(None).subquery()
        total = db.scalar(select(func.count()).select_from(counted)) or 0
        rows = db.scalars(stmt.offset(offset).limit(limit)).all()
    return list(rows), page_meta(page, limit, total)
