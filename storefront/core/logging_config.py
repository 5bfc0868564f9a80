"""
Настройка логирования приложения.
"""

import logging

from storefront.core.config import settings

LOG_FORMAT = "%(asctime)s - %(name)s - %(levelname)s - %(message)s"

_configured = False


def setup_logging() -> None:
    """Однократная настройка корневого логгера."""
    global _configured
    if _configured:
        return

    logging.basicConfig(
        level=logging.DEBUG if settings.DEBUG else logging.INFO,
        format=LOG_FORMAT,
    )
    # SQL логирует сам движок при DEBUG, остальное шумит
    logging.getLogger("httpx").setLevel(logging.WARNING)
    logging.getLogger("botocore").setLevel(logging.WARNING)
    _configured = True


def get_logger(name: str) -> logging.Logger:
    return logging.getLogger(name)
