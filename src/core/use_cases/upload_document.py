"""
Use Case: Upload Document

Envia o arquivo para o storage, cria o registro do documento e
o anexa à homologação numa única escrita atômica.
"""

import logging
import uuid
from dataclasses import dataclass
from datetime import datetime
from typing import Callable

from src.core.clock import utcnow
from src.core.entities.document import DocType, Document
from src.core.entities.homologation import Homologation
from src.core.exceptions import HomologationNotEditable, HomologationNotFound, ValidationError
from src.core.interfaces.repositories import IHomologationRepository
from src.core.interfaces.storage_service import IStorageService

logger = logging.getLogger(__name__)


@dataclass
class UploadResult:
    document: Document
    url: str
    homologation: Homologation


class UploadDocumentUseCase:

    def __init__(
        self,
        homologations: IHomologationRepository,
        storage: IStorageService,
        max_upload_bytes: int = 10 * 1024 * 1024,
        clock: Callable[[], datetime] = utcnow,
    ):
        self._homologations = homologations
        self._storage = storage
        self._max_upload_bytes = max_upload_bytes
        self._clock = clock

    async def execute(
        self,
        homologation_id: str | None,
        document_type: str | None,
        document_name: str | None,
        filename: str | None,
        content_type: str | None,
        data: bytes | None,
    ) -> UploadResult:
        """
        1. Valida campos
        2. Confere que a homologação existe e ainda é rascunho
        3. Upload: {homologation_id}/{tipo}_{timestamp_ms}.{ext}
        4. Insere o documento + anexa à lista (atômico, incrementa versão)
        """
        if not homologation_id or not document_type or not document_name or data is None:
            raise ValidationError("Missing required parameters: file, homologationId, documentType, documentName")
        if len(data) == 0:
            raise ValidationError("Empty file")
        if len(data) > self._max_upload_bytes:
            raise ValidationError(
                f"File too large ({len(data)} bytes, max {self._max_upload_bytes})",
                max_bytes=self._max_upload_bytes,
            )
        try:
            doc_type = DocType(document_type)
        except ValueError:
            allowed = ", ".join(t.value for t in DocType)
            raise ValidationError(f"Unknown document type '{document_type}'. Expected one of: {allowed}") from None

        homologation = await self._homologations.get(homologation_id)
        if homologation is None:
            raise HomologationNotFound(homologation_id)
        if not homologation.is_editable:
            raise HomologationNotEditable(homologation_id, homologation.status.value)

        now = self._clock()
        extension = filename.rsplit(".", 1)[-1].lower() if filename and "." in filename else "bin"
        key = f"{homologation_id}/{doc_type.value}_{int(now.timestamp() * 1000)}.{extension}"
        mime_type = content_type or "application/octet-stream"

        ref = await self._storage.upload(data, key, content_type=mime_type)

        document = Document(
            id=str(uuid.uuid4()),
            homologation_id=homologation_id,
            name=document_name,
            doc_type=doc_type,
            file_url=ref.url,
            storage_key=ref.key,
            file_size=ref.size_bytes,
            mime_type=mime_type,
            uploaded_at=now,
        )
        try:
            updated = await self._homologations.append_document(document)
        except Exception:
            logger.warning(f"Document record failed after upload; orphaned blob {ref.bucket}/{ref.key}")
            raise

        logger.info(f"Uploaded {doc_type.value} document {document.id} for homologation {homologation_id}")
        return UploadResult(document=document, url=ref.url, homologation=updated)
