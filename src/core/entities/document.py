"""
Entity: Document

Arquivo enviado pelo requerente e vinculado a uma homologação.
Imutável depois de criado.
"""

from dataclasses import dataclass, field
from datetime import datetime
from enum import Enum

from src.core.clock import utcnow


class DocType(str, Enum):
    ID_CARD = "id_card"
    VEHICLE_TITLE = "vehicle_title"
    INSURANCE = "insurance"
    SAFETY_CERTIFICATE = "safety_certificate"
    PHOTO = "photo"
    OTHER = "other"


@dataclass(frozen=True)
class Document:
    """Entidade de domínio: Documento."""
    id: str
    homologation_id: str
    name: str
    doc_type: DocType = DocType.OTHER
    file_url: str = ""
    storage_key: str = ""                # chave no storage
    file_size: int = 0
    mime_type: str = "application/octet-stream"
    uploaded_at: datetime = field(default_factory=utcnow)
