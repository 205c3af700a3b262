"""
Pydantic schemas — Response models para a API.
"""

from datetime import datetime
from decimal import Decimal

from pydantic import BaseModel, ConfigDict, Field

from src.core.entities.document import Document
from src.core.entities.homologation import AuditEntry, Homologation
from src.core.entities.payment import Payment


class HomologationResponse(BaseModel):
    id: str
    owner_full_name: str
    owner_national_id: str
    owner_email: str | None = None
    owner_phone: str | None = None
    vehicle_type: str
    brand: str
    model: str
    year: int | None = None
    vin: str | None = None
    license_plate: str | None = None
    axles: int | None = None
    status: str
    payment_status: str
    documents: list[str]
    notes: str | None = None
    submission_date: datetime | None = None
    review_date: datetime | None = None
    completion_date: datetime | None = None
    created_at: datetime
    updated_at: datetime
    version: int

    @classmethod
    def from_entity(cls, h: Homologation) -> "HomologationResponse":
        return cls(
            id=h.id,
            owner_full_name=h.owner_full_name,
            owner_national_id=h.owner_national_id,
            owner_email=h.owner_email,
            owner_phone=h.owner_phone,
            vehicle_type=h.vehicle_type.value,
            brand=h.brand,
            model=h.model,
            year=h.year,
            vin=h.vin,
            license_plate=h.license_plate,
            axles=h.axles,
            status=h.status.value,
            payment_status=h.payment_status.value,
            documents=list(h.documents),
            notes=h.notes,
            submission_date=h.submission_date,
            review_date=h.review_date,
            completion_date=h.completion_date,
            created_at=h.created_at,
            updated_at=h.updated_at,
            version=h.version,
        )


class HomologationListResponse(BaseModel):
    total: int
    data: list[HomologationResponse]


class DocumentResponse(BaseModel):
    id: str
    homologation_id: str
    name: str
    type: str
    file_url: str
    file_size: int
    mime_type: str
    uploaded_at: datetime

    @classmethod
    def from_entity(cls, d: Document) -> "DocumentResponse":
        return cls(
            id=d.id,
            homologation_id=d.homologation_id,
            name=d.name,
            type=d.doc_type.value,
            file_url=d.file_url,
            file_size=d.file_size,
            mime_type=d.mime_type,
            uploaded_at=d.uploaded_at,
        )


class UploadResponse(BaseModel):
    success: bool = True
    document: DocumentResponse
    url: str


class PaymentResponse(BaseModel):
    id: str
    homologation_id: str
    amount: Decimal
    currency: str
    preference_id: str | None = None
    gateway_payment_id: str | None = None
    status: str
    created_at: datetime
    updated_at: datetime

    @classmethod
    def from_entity(cls, p: Payment) -> "PaymentResponse":
        return cls(
            id=p.id,
            homologation_id=p.homologation_id,
            amount=p.amount,
            currency=p.currency,
            preference_id=p.preference_id,
            gateway_payment_id=p.gateway_payment_id,
            status=p.status.value,
            created_at=p.created_at,
            updated_at=p.updated_at,
        )


class PreferenceResponse(BaseModel):
    model_config = ConfigDict(populate_by_name=True)

    preference_id: str = Field(alias="preferenceId")
    init_point: str = Field(alias="initPoint")


class WebhookResponse(BaseModel):
    model_config = ConfigDict(populate_by_name=True)

    received: bool = True
    ignored: bool = False
    payment_status: str | None = Field(default=None, alias="paymentStatus")
    homologation_status: str | None = Field(default=None, alias="homologationStatus")


class AllowedTransitionsResponse(BaseModel):
    id: str
    status: str
    version: int
    allowed: list[str]


class AuditEntryResponse(BaseModel):
    id: str
    actor: str
    previous_status: str
    new_status: str
    reason: str | None = None
    created_at: datetime

    @classmethod
    def from_entity(cls, a: AuditEntry) -> "AuditEntryResponse":
        return cls(
            id=a.id,
            actor=a.actor,
            previous_status=a.previous_status.value,
            new_status=a.new_status.value,
            reason=a.reason,
            created_at=a.created_at,
        )


class ErrorResponse(BaseModel):
    error: str
    detail: str


class AuthResponse(BaseModel):
    success: bool
    token: str = ""
    message: str = ""
