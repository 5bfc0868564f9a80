"""
Прокси для внешних изображений товаров.
"""

from typing import Optional

from fastapi import APIRouter, Query, Response

from storefront.services import image_proxy

router = APIRouter()


@router.get("/image")
async def proxy_image(url: Optional[str] = Query(None, description="URL изображения")):
    """
    Отдать внешнее изображение через API.

    Ответ кешируется браузером на год и доступен с любого origin.

    Raises:
        ValidationError: Нет или неверный url (400)
        ForbiddenError: Хост не разрешен (403)
        UpstreamError: Ошибка внешнего хоста (его статус) или сети (502)
    """
    image = await image_proxy.fetch_image(url)
    return Response(
        content=image.content,
        media_type=image.content_type,
        headers={
            "Cache-Control": image_proxy.CACHE_CONTROL,
            "Access-Control-Allow-Origin": "*",
        },
    )
