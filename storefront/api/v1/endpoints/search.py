"""
API endpoints поиска.
"""

from fastapi import APIRouter, Depends, Query
from sqlalchemy.orm import Session

from storefront.db.database import get_db
from storefront.services import catalog_service

router = APIRouter()

MIN_QUERY_LENGTH = 2


@router.get("/suggestions", response_model=dict)
def get_search_suggestions(q: str = Query("", max_length=100), db: Session = Depends(get_db)):
    """
    Подсказки для автодополнения поиска.

    Для запроса короче 2 символов возвращает пустой список.
    """
    q = q.strip()
    if len(q) < MIN_QUERY_LENGTH:
        return {"suggestions": []}
    return {"suggestions": catalog_service.search_suggestions(db, q)}
