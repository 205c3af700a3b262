"""
Adapter: Local Filesystem Storage

Zero-setup storage for local dev. Files land under
`<root>/<bucket>/<key>` and are served by the API's /files mount.
"""

import asyncio
import hashlib
import logging
from pathlib import Path

from src.core.exceptions import StorageUnavailable, ValidationError
from src.core.interfaces.storage_service import IStorageService, StorageRef

logger = logging.getLogger(__name__)


class LocalStorageService(IStorageService):

    def __init__(self, root: str | Path, bucket: str, public_url: str):
        self._root = Path(root)
        self._bucket = bucket
        self._public_url = public_url.rstrip("/")

    @property
    def root(self) -> Path:
        return self._root

    def _path(self, key: str) -> Path:
        base = (self._root / self._bucket).resolve()
        path = (base / key).resolve()
        if base not in path.parents:
            raise ValidationError(f"Invalid storage key '{key}'")
        return path

    async def upload(self, data: bytes, key: str, content_type: str = "application/octet-stream") -> StorageRef:
        path = self._path(key)
        if path.exists():
            raise StorageUnavailable(f"Object {key} already exists")

        def _write():
            path.parent.mkdir(parents=True, exist_ok=True)
            path.write_bytes(data)

        try:
            await asyncio.to_thread(_write)
        except OSError as e:
            logger.error(f"Local upload failed for {key}: {e}")
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
