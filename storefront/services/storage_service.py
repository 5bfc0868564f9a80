"""
Сервис для работы с хранилищами файлов.

Поддерживает локальное хранилище и Amazon S3 (или совместимые сервисы).
Обеспечивает единый интерфейс для работы с файлами
независимо от типа хранилища.
"""

import shutil
from abc import ABC, abstractmethod
from io import BytesIO
from pathlib import Path
from typing import BinaryIO, Optional

import boto3
from botocore.config import Config
from botocore.exceptions import BotoCoreError, ClientError

from storefront.core.config import settings
from storefront.core.logging_config import get_logger

logger = get_logger(__name__)


class StorageProvider(ABC):
    """
    Абстрактный базовый класс для провайдеров хранилища.
    """

    @abstractmethod
    def save_file(
        self, file_path: str, file_data: BinaryIO, content_type: str = None
    ) -> bool:
        pass

    @abstractmethod
    def get_file_url(self, file_path: str) -> Optional[str]:
        pass

    @abstractmethod
    def delete_file(self, file_path: str) -> bool:
        pass


class LocalStorageProvider(StorageProvider):
    """
    Локальное хранилище файлов, раздается через /static.
    """

    def __init__(self, base_path: str = None):
        self.base_path = Path(base_path or settings.STORAGE_PATH)
        self.base_path.mkdir(parents=True, exist_ok=True)

    def save_file(
        self, file_path: str, file_data: BinaryIO, content_type: str = None
    ) -> bool:
        full_path = self.base_path / file_path
        try:
            full_path.parent.mkdir(parents=True, exist_ok=True)
            with open(full_path, "wb") as f:
                shutil.copyfileobj(file_data, f)
        except OSError:
            logger.exception("Local storage: error saving %s", full_path)
            return False
        logger.info("Local storage: saved %s", full_path)
        return True

    def get_file_url(self, file_path: str) -> Optional[str]:
        if settings.CDN_BASE_URL:
            return f"{settings.CDN_BASE_URL.rstrip('/')}/{file_path.lstrip('/')}"
        return f"/static/{file_path}"

    def delete_file(self, file_path: str) -> bool:
        full_path = self.base_path / file_path
        try:
            if full_path.exists():
                full_path.unlink()
                return True
        except OSError:
            logger.exception("Local storage: error deleting %s", full_path)
        return False


class S3StorageProvider(StorageProvider):
    """
    Amazon S3 хранилище (или совместимые сервисы).
    """

    def __init__(self, bucket_name: str, region: str = None, endpoint_url: str = None):
        self.bucket_name = bucket_name
        self.region = region or "us-east-1"

        config = Config(
            retries={"max_attempts": 3, "mode": "adaptive"},
            connect_timeout=10,
            read_timeout=30,
            signature_version="s3v4",
            s3={"addressing_style": "path"},
        )

        self.s3_client = boto3.client(
            "s3",
            region_name=self.region,
            endpoint_url=endpoint_url or None,
            aws_access_key_id=settings.AWS_ACCESS_KEY_ID or None,
            aws_secret_access_key=settings.AWS_SECRET_ACCESS_KEY or None,
            config=config,
        )

    def save_file(
        self, file_path: str, file_data: BinaryIO, content_type: str = None
    ) -> bool:
        # ContentLength нужен S3-совместимым хранилищам
        file_data.seek(0)
        content = file_data.read()
        extra_args = {"ContentLength": len(content)}
        if content_type:
            extra_args["ContentType"] = content_type

        try:
            self.s3_client.put_object(
                Bucket=self.bucket_name, Key=file_path, Body=BytesIO(content), **extra_args
            )
        except (ClientError, BotoCoreError):
            logger.exception("S3 storage: error saving %s to %s", file_path, self.bucket_name)
            return False
        logger.info("S3 storage: uploaded %s", file_path)
        return True

    def get_file_url(self, file_path: str) -> Optional[str]:
        if settings.CDN_BASE_URL:
            return f"{settings.CDN_BASE_URL.rstrip('/')}/{file_path.lstrip('/')}"
        try:
            return self.s3_client.generate_presigned_url(
                "get_object",
                Params={"Bucket": self.bucket_name, "Key": file_path},
                ExpiresIn=3600,
            )
        except (ClientError, BotoCoreError):
            logger.exception("S3 storage: error generating URL for %s", file_path)
            return None

    def delete_file(self, file_path: str) -> bool:
        try:
            self.s3_client.delete_object(Bucket=self.bucket_name, Key=file_path)
            return True
        except (ClientError, BotoCoreError):
            logger.exception("S3 storage: error deleting %s", file_path)
            return False


def create_storage_provider() -> StorageProvider:
    """Создание провайдера по STORAGE_TYPE."""
    if settings.STORAGE_TYPE == "s3":
        logger.info("Using S3 storage, bucket %s", settings.S3_BUCKET_NAME)
        return S3StorageProvider(
            bucket_name=settings.S3_BUCKET_NAME,
            region=settings.AWS_REGION,
            endpoint_url=settings.S3_ENDPOINT_URL,
        )
    return LocalStorageProvider()


_storage: Optional[StorageProvider] = None


def get_storage() -> StorageProvider:
    """Dependency: провайдер хранилища (создается один раз)."""
    global _storage
    if _storage is None:
        _storage = create_storage_provider()
    return _storage
