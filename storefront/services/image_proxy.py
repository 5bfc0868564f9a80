"""
Прокси для внешних изображений.

Загружает картинку по URL и отдает ее с долгим кэшированием,
чтобы витрина не зависела от CORS и скорости внешнего хоста.
"""

from dataclasses import dataclass
from typing import Optional
from urllib.parse import unquote, urlparse

import httpx

from storefront.core.config import settings
from storefront.core.exceptions import ForbiddenError, StorefrontError, ValidationError
from storefront.core.logging_config import get_logger

logger = get_logger(__name__)

CACHE_CONTROL = "public, max-age=31536000, immutable"
DEFAULT_CONTENT_TYPE = "image/jpeg"


class UpstreamError(StorefrontError):
    """Ответ внешнего хоста с ошибкой, статус пробрасывается клиенту."""

    def __init__(self, status_code: int, detail: str):
        super().__init__(detail)
        self.status_code = status_code


@dataclass
class ProxiedImage:
    content: bytes
    content_type: str


def normalize_url(raw_url: Optional[str]) -> str:
    """
    Проверка и декодирование URL.

    Raises:
        ValidationError: URL не передан или не http/https
        ForbiddenError: Хост не входит в список разрешенных (по умолчанию
            только хост CDN_BASE_URL)
    """
    if not raw_url:
        raise ValidationError("Missing url parameter")

    url = unquote(raw_url)
    parsed = urlparse(url)
    if parsed.scheme not in ("http", "https") or not parsed.netloc:
        raise ValidationError("Invalid url parameter")

    allowed = settings.image_proxy_hosts
    host = (parsed.hostname or "").lower()
    if not any(host == h or host.endswith("." + h) for h in allowed):
        raise ForbiddenError("Host is not allowed")
    return url


async def fetch_image(raw_url: Optional[str], transport: httpx.AsyncBaseTransport = None) -> ProxiedImage:
    """
    Загрузить изображение.

    Args:
        raw_url: URL из query параметра
        transport: Транспорт httpx (подменяется в тестах)

    Returns:
        ProxiedImage: Байты и content-type

    Raises:
        UpstreamError: Внешний хост вернул ошибку, недоступен или
            изображение больше IMAGE_PROXY_MAX_BYTES (502)
    """
    url = normalize_url(raw_url)
    limit = settings.IMAGE_PROXY_MAX_BYTES
    try:
        async with httpx.AsyncClient(
            timeout=settings.IMAGE_PROXY_TIMEOUT, follow_redirects=True, transport=transport
        ) as client:
            async with client.stream("GET", url, headers={"Accept": "image/*"}) as response:
                if response.status_code >= 400:
                    raise UpstreamError(
                        response.status_code, f"Backend error: {response.reason_phrase}"
                    )
                declared = response.headers.get("content-length", "")
                if declared.isdigit() and int(declared) > limit:
                    raise UpstreamError(502, "Image is too large")

                chunks = []
                size = 0
                async for chunk in response.aiter_bytes():
                    size += len(chunk)
                    if size > limit:
                        raise UpstreamError(502, "Image is too large")
                    chunks.append(chunk)
                content_type = response.headers.get("content-type", DEFAULT_CONTENT_TYPE)
    except httpx.HTTPError as e:
        logger.warning("Image proxy fetch failed for %s: %s", url, e)
        raise UpstreamError(502, "Failed to fetch image")

    return ProxiedImage(content=b"".join(chunks), content_type=content_type)
