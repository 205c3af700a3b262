"""
Adapter: MinIO Storage Service

Implementação concreta do contrato IStorageService
usando MinIO (compatível com API S3).
"""

import asyncio
import hashlib
import io
import logging

from minio import Minio
from minio.error import MinioException
from urllib3.exceptions import HTTPError

from src.core.exceptions import StorageUnavailable
from src.core.interfaces.storage_service import IStorageService, StorageRef

logger = logging.getLogger(__name__)


class MinIOStorageService(IStorageService):
    """
    Storage de documentos usando MinIO.

    Em produção, trocar por S3 real sem mudar nenhum
    outro código; só muda as credenciais de conexão.
    O SDK é bloqueante, então cada chamada roda numa thread.
    """

    def __init__(
        self,
        endpoint: str,
        access_key: str,
        secret_key: str,
        bucket: str,
        secure: bool = False,
        public_url: str | None = None,
        client: Minio | None = None,
    ):
        self._bucket = bucket
        self._client = client or Minio(endpoint, access_key=access_key, secret_key=secret_key, secure=secure)
        scheme = "https" if secure else "http"
        self._public_url = (public_url or f"{scheme}://{endpoint}").rstrip("/")

    async def ensure_bucket(self) -> None:
        try:
            exists = await asyncio.to_thread(self._client.bucket_exists, self._bucket)
            if not exists:
                await asyncio.to_thread(self._client.make_bucket, self._bucket)
                logger.info(f"Created bucket {self._bucket}")
        except (MinioException, HTTPError, OSError) as e:
            raise StorageUnavailable(f"Cannot reach bucket {self._bucket}: {e}") from e

    async def upload(self, data: bytes, key: str, content_type: str = "application/octet-stream") -> StorageRef:
        try:
            await asyncio.to_thread(
                self._client.put_object,
                self._bucket,
                key,
                io.BytesIO(data),
                length=len(data),
                content_type=content_type,
            )
        except (MinioException, HTTPError, OSError) as e:
            logger.error(f"MinIO upload failed for {key}: {e}")
            raise StorageUnavailable(f"Upload failed for {key}") from e

        return StorageRef(
            bucket=self._bucket,
            key=key,
            size_bytes=len(data),
            sha256=hashlib.sha256(data).hexdigest(),
            content_type=content_type,
            url=await self.get_url(key),
        )

    async def get_url(self, key: str) -> str:
        return f"{self._public_url}/{self._bucket}/{key}"
