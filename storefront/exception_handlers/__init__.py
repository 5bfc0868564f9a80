"""
Обработчики исключений приложения.
"""

from .handlers import setup_exception_handlers

__all__ = ["setup_exception_handlers"]
