"""
Сервис для работы с загружаемыми изображениями товаров.

Валидация файла, чтение размеров через Pillow и генерация пути в хранилище.
"""

import hashlib
import uuid
from io import BytesIO
from pathlib import Path
from typing import Optional, Tuple

from PIL import Image, UnidentifiedImageError

from storefront.core.config import settings


class ImageService:
    """
    Сервис для работы с изображениями товаров.
    """

    # Поддерживаемые форматы
    SUPPORTED_FORMATS = {".jpg", ".jpeg", ".png", ".webp", ".gif"}
    SUPPORTED_MIME_TYPES = {
        "image/jpeg", "image/jpg", "image/png",
        "image/webp", "image/gif",
    }
    MAX_DIMENSIONS = (6000, 6000)

    def __init__(self, max_file_size: int = None):
        self.max_file_size = max_file_size or settings.MAX_IMAGE_SIZE

    def validate_file(
        self, filename: Optional[str], file_size: Optional[int], content_type: Optional[str] = None
    ) -> Tuple[bool, Optional[str]]:
        """
        Валидация загруженного файла.

        Args:
            filename: Имя файла
            file_size: Размер файла в байтах
            content_type: MIME тип из запроса

        Returns:
            Tuple[bool, Optional[str]]: (валиден, сообщение об ошибке)
        """
        if not filename:
            return False, "File name is required"

        if file_size is not None and file_size > self.max_file_size:
            return False, f"File size exceeds maximum allowed size of {self.max_file_size} bytes"

        file_ext = Path(filename).suffix.lower()
        if file_ext not in self.SUPPORTED_FORMATS:
            supported = ", ".join(sorted(self.SUPPORTED_FORMATS))
            return False, f"Unsupported file format: {file_ext or 'none'}. Supported: {supported}"

        if content_type and content_type not in self.SUPPORTED_MIME_TYPES:
            return False, f"Unsupported MIME type: {content_type}"

        return True, None

    def read_dimensions(self, content: bytes) -> Tuple[int, int]:
        """
        Размеры изображения.

        Raises:
            ValueError: Если содержимое не является изображением или слишком велико
        """
        try:
            with Image.open(BytesIO(content)) as img:
                img.verify()
                width, height = img.size
        except (UnidentifiedImageError, OSError) as e:
            raise ValueError(f"Invalid image file: {e}")

        if width > self.MAX_DIMENSIONS[0] or height > self.MAX_DIMENSIONS[1]:
            raise ValueError(
                f"Image dimensions {width}x{height} exceed {self.MAX_DIMENSIONS[0]}x{self.MAX_DIMENSIONS[1]}"
            )
        return width, height

    def generate_path(self, product_id: str, filename: str) -> str:
        """
        Путь в хранилище: products/<2 символа hash>/<product_id>/<uuid>.<ext>
        """
        ext = Path(filename).suffix.lower() or ".jpg"
        shard = hashlib.md5(product_id.encode()).hexdigest()[:2]
        return f"products/{shard}/{product_id}/{uuid.uuid4().hex}{ext}"


image_service = ImageService()
