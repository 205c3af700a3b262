"""
Contract: Storage Service

Guarda os arquivos enviados pelos requerentes
(MinIO em produção, filesystem local em dev).
"""

from abc import ABC, abstractmethod
from dataclasses import dataclass


@dataclass
class StorageRef:
    """Onde um documento foi gravado."""
    bucket: str
    key: str
    size_bytes: int
    sha256: str
    content_type: str
    url: str = ""


class IStorageService(ABC):
    """
    Port: Storage Service

    Chaves seguem {homologation_id}/{tipo}_{timestamp_ms}.{ext} e nunca
    são sobrescritas. Falhas de I/O devem virar StorageUnavailable.
    """

    @abstractmethod
    async def upload(self, data: bytes, key: str, content_type: str = "application/octet-stream") -> StorageRef:
        """
        Grava o arquivo sob `key`.

        Returns:
            StorageRef com hash, tamanho e URL pública.
        """
        ...

    @abstractmethod
    async def get_url(self, key: str) -> str:
        """URL pública do objeto."""
        ...
