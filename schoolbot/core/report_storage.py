"""Хранилище файлов отчетов (S3-совместимое, MinIO)."""

import asyncio
import uuid
from abc import ABC, abstractmethod
from datetime import timedelta
from pathlib import PurePath
from typing import BinaryIO, Optional
from urllib.parse import urlparse

from minio import Minio

from config.settings import settings
from schoolbot.utils.logger import get_logger

logger = get_logger(__name__)


def make_object_key(class_id: int, filename: str) -> str:
    """Ключ объекта вида {class_id}/{uuid}_{имя файла}."""
    # Только имя файла, без пути
    safe_name = PurePath(filename.replace("\\", "/")).name or "file"
    return f"{class_id}/{uuid.uuid4().hex}_{safe_name}"


class ReportBlobStore(ABC):
    """Загрузка и выдача файлов отчетов."""

    @abstractmethod
    async def upload(self, object_key: str, data: BinaryIO, content_type: str, size: int) -> str:
        """Загрузить файл. Returns: ключ объекта."""

    @abstractmethod
    async def presigned_url(self, object_key: str, ttl_seconds: int) -> Optional[str]:
        """Временная внешняя ссылка или None, если внешний адрес не настроен."""

    @abstractmethod
    async def read(self, object_key: str) -> bytes:
        """Прочитать содержимое файла."""

    @abstractmethod
    async def delete(self, object_key: str) -> None:
        """Удалить файл."""


class MinioReportStore(ReportBlobStore):
    """
    Отчеты в MinIO.

    Вызовы SDK блокирующие, поэтому выполняются в отдельном потоке.
    Ссылки подписываются клиентом с публичным адресом, если он задан, чтобы подпись
    совпадала с хостом, который откроет пользователь.
    """

    def __init__(self, client: Minio, bucket: str, public_client: Optional[Minio] = None):
        self.client = client
        self.bucket = bucket
        self.public_client = public_client
        self._bucket_ready = False

    async def _ensure_bucket(self) -> None:
        if self._bucket_ready:
            return
        exists = await asyncio.to_thread(self.client.bucket_exists, bucket_name=self.bucket)
        if not exists:
            await asyncio.to_thread(self.client.make_bucket, bucket_name=self.bucket)
            logger.info("minio_bucket_created", bucket=self.bucket)
        self._bucket_ready = True

    async def upload(self, object_key: str, data: BinaryIO, content_type: str, size: int) -> str:
        await self._ensure_bucket()
        await asyncio.to_thread(
            self.client.put_object,
            bucket_name=self.bucket,
            object_name=object_key,
            data=data,
            length=size,
            content_type=content_type or "application/octet-stream",
        )
        logger.info("report_uploaded", object_key=object_key, size=size)
        return object_key

    async def presigned_url(self, object_key: str, ttl_seconds: int) -> Optional[str]:
        signer = self.public_client or self.client
        return await asyncio.to_thread(
            signer.presigned_get_object,
            bucket_name=self.bucket,
            object_name=object_key,
            expires=timedelta(seconds=ttl_seconds),
        )

    async def read(self, object_key: str) -> bytes:
        return await asyncio.to_thread(self._read_sync, object_key)

    def _read_sync(self, object_key: str) -> bytes:
        response = self.client.get_object(bucket_name=self.bucket, object_name=object_key)
        try:
            return response.read()
        finally:
            response.close()
            response.release_conn()

    async def delete(self, object_key: str) -> None:
        await asyncio.to_thread(self.client.remove_object, bucket_name=self.bucket, object_name=object_key)
        logger.info("report_deleted", object_key=object_key)


def create_report_store() -> MinioReportStore:
    """Создать хранилище по настройкам."""
    client = Minio(
        settings.minio_endpoint,
        access_key=settings.minio_access_key,
        secret_key=settings.minio_secret_key,
        secure=settings.minio_secure,
        region=settings.minio_region,
    )
    public_client = None
    if settings.minio_public_endpoint:
        public = urlparse(settings.minio_public_endpoint)
        public_client = Minio(
            public.netloc,
            access_key=settings.minio_access_key,
            secret_key=settings.minio_secret_key,
            secure=public.scheme == "https",
            region=settings.minio_region,
        )
    return MinioReportStore(client, settings.minio_bucket, public_client)
