"""
Базовые схемы запросов.
"""

from typing import Any, ClassVar, Dict, Optional, Tuple

from pydantic import BaseModel

from storefront.core.exceptions import ValidationError


def required_text(value: Optional[str], field: str) -> str:
    """
    Обрезать обязательное текстовое поле.

    Raises:
        ValidationError: Значение пустое или из одних пробелов
    """
    cleaned = (value or "").strip()
    if not cleaned:
        raise ValidationError(f"{field} cannot be blank")
    return cleaned


class PartialUpdate(BaseModel):
    """
    Схема частичного обновления (PUT/PATCH).

    Непереданные поля не меняются. null очищает только поля из NULLABLE,
    для остальных (NOT NULL колонки) null игнорируется. Строки обрезаются,
    пустая строка в NULLABLE поле становится None, в REQUIRED_TEXT
    отклоняется.
    """

    NULLABLE: ClassVar[Tuple[str, ...]] = ()
    REQUIRED_TEXT: ClassVar[Tuple[str, ...]] = ()

    def changes(self) -> Dict[str, Any]:
        """
        Поля, которые нужно записать в модель.

        Raises:
            ValidationError: Пустое обязательное текстовое поле (400)
        """
        result = {}
        for key, value in self.model_dump(exclude_unset=True).items():
            if value is None and key not in self.NULLABLE:
                continue
            if key in self.REQUIRED_TEXT:
                value = required_text(value, key)
            elif isinstance(value, str):
                value = value.strip()
                if not value and key in self.NULLABLE:
                    value = None
            result[key] = value
        return result
