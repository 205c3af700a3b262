"""
Entity: Homologation

Caso de homologação veicular de um requerente.
Modelo puro — sem dependência de framework ou banco.
"""

from dataclasses import dataclass, field
from datetime import datetime
from enum import Enum

from src.core.clock import utcnow


class HomologationStatus(str, Enum):
    DRAFT = "draft"
    SUBMITTED = "submitted"
    UNDER_REVIEW = "under_review"
    APPROVED = "approved"
    REJECTED = "rejected"
    COMPLETED = "completed"


class HomologationPaymentStatus(str, Enum):
    PENDING = "pending"
    PAID = "paid"
    REFUNDED = "refunded"


class VehicleType(str, Enum):
    TRAILER = "trailer"
    ROLLING_BOX = "rolling_box"
    MOTORHOME = "motorhome"


# Campos que o requerente pode editar enquanto o caso está em rascunho
EDITABLE_FIELDS = (
    "owner_full_name",
    "owner_national_id",
    "owner_email",
    "owner_phone",
    "vehicle_type",
    "brand",
    "model",
    "year",
    "vin",
    "license_plate",
    "axles",
    "notes",
)


@dataclass
class Homologation:
    """Entidade de domínio: Homologação."""
    id: str
    owner_full_name: str = ""
    owner_national_id: str = ""
    owner_email: str | None = None
    owner_phone: str | None = None

    # Veículo
    vehicle_type: VehicleType = VehicleType.TRAILER
    brand: str = ""
    model: str = ""
    year: int | None = None
    vin: str | None = None
    license_plate: str | None = None
    axles: int | None = None

    status: HomologationStatus = HomologationStatus.DRAFT
    payment_status: HomologationPaymentStatus = HomologationPaymentStatus.PENDING
    documents: list[str] = field(default_factory=list)   # ids em ordem de upload
    notes: str | None = None

    submission_date: datetime | None = None
    review_date: datetime | None = None
    completion_date: datetime | None = None
    created_at: datetime = field(default_factory=utcnow)
    updated_at: datetime = field(default_factory=utcnow)

    # Controle de concorrência otimista
    version: int = 1

    @property
    def is_editable(self) -> bool:
        return self.status == HomologationStatus.DRAFT

    @property
    def is_paid(self) -> bool:
        return self.payment_status == HomologationPaymentStatus.PAID


@dataclass
class AuditEntry:
    """Registro de auditoria de uma mudança de status."""
    id: str
    homologation_id: str
    actor: str
    previous_status: HomologationStatus
    new_status: HomologationStatus
    reason: str | None = None
    created_at: datetime = field(default_factory=utcnow)
