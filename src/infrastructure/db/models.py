"""
Database Models — SQLAlchemy.

Tables:
  - homologations: one row per applicant case (version = optimistic lock)
  - documents: uploaded files, ordered per homologation by `position`
  - payments: payment attempts, one per preference request
  - homologation_audit_log: status changes
"""

from decimal import Decimal

from sqlalchemy import (
    Column, String, Integer, DateTime, Text, Numeric,
    ForeignKey, Index,
)
from sqlalchemy.orm import DeclarativeBase

from src.core.clock import utcnow
from src.core.entities.document import DocType, Document
from src.core.entities.homologation import (
    AuditEntry,
    Homologation,
    HomologationPaymentStatus,
    HomologationStatus,
    VehicleType,
)
from src.core.entities.payment import Payment, PaymentStatus


class Base(DeclarativeBase):
    pass


class HomologationRecord(Base):
    """One vehicle-certification case."""
    __tablename__ = "homologations"

    id = Column(String(36), primary_key=True)

    # Owner
    owner_full_name = Column(String(200), nullable=False, default="")
    owner_national_id = Column(String(50), nullable=False, default="", index=True)
    owner_email = Column(String(200))
    owner_phone = Column(String(50))

    # Vehicle
    vehicle_type = Column(String(20), nullable=False, default=VehicleType.TRAILER.value)
    brand = Column(String(100), default="")
    model = Column(String(100), default="")
    year = Column(Integer)
    vin = Column(String(50))
    license_plate = Column(String(20))
    axles = Column(Integer)

    # Workflow
    status = Column(String(20), nullable=False, default=HomologationStatus.DRAFT.value, index=True)
    payment_status = Column(String(20), nullable=False, default=HomologationPaymentStatus.PENDING.value)
    notes = Column(Text)
    submission_date = Column(DateTime)
    review_date = Column(DateTime)
    completion_date = Column(DateTime)

    created_at = Column(DateTime, default=utcnow, index=True)
    updated_at = Column(DateTime, default=utcnow)
    version = Column(Integer, nullable=False, default=1)

    def __repr__(self):
        return f"<Homologation {self.id} [{self.status}/{self.payment_status}] v{self.version}>"

    @classmethod
    def from_entity(cls, h: Homologation) -> "HomologationRecord":
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
            notes=h.notes,
            submission_date=h.submission_date,
            review_date=h.review_date,
            completion_date=h.completion_date,
            created_at=h.created_at,
            updated_at=h.updated_at,
            version=h.version,
        )

    def to_entity(self, document_ids: list[str]) -> Homologation:
        return Homologation(
            id=self.id,
            owner_full_name=self.owner_full_name or "",
            owner_national_id=self.owner_national_id or "",
            owner_email=self.owner_email,
            owner_phone=self.owner_phone,
            vehicle_type=VehicleType(self.vehicle_type),
            brand=self.brand or "",
            model=self.model or "",
            year=self.year,
            vin=self.vin,
            license_plate=self.license_plate,
            axles=self.axles,
            status=HomologationStatus(self.status),
            payment_status=HomologationPaymentStatus(self.payment_status),
            documents=list(document_ids),
            notes=self.notes,
            submission_date=self.submission_date,
            review_date=self.review_date,
            completion_date=self.completion_date,
            created_at=self.created_at,
            updated_at=self.updated_at,
            version=self.version,
        )


class DocumentRecord(Base):
    """Uploaded file. Never updated after insert."""
    __tablename__ = "documents"

    id = Column(String(36), primary_key=True)
    homologation_id = Column(String(36), ForeignKey("homologations.id"), nullable=False)
    # homologation version right after the append; unique per homologation
    position = Column(Integer, nullable=False)
    name = Column(String(200), nullable=False)
    type = Column(String(30), nullable=False)
    file_url = Column(Text, nullable=False, default="")
    storage_key = Column(String(300), nullable=False, default="")
    file_size = Column(Integer, default=0)
    mime_type = Column(String(100), default="application/octet-stream")
    uploaded_at = Column(DateTime, default=utcnow)

    __table_args__ = (
        Index("ix_documents_homologation_position", "homologation_id", "position", unique=True),
    )

    def __repr__(self):
        return f"<Document {self.id} [{self.type}] homologation={self.homologation_id}>"

    @classmethod
    def from_entity(cls, d: Document, position: int) -> "DocumentRecord":
        return cls(
            id=d.id,
            homologation_id=d.homologation_id,
            position=position,
            name=d.name,
            type=d.doc_type.value,
            file_url=d.file_url,
            storage_key=d.storage_key,
            file_size=d.file_size,
            mime_type=d.mime_type,
            uploaded_at=d.uploaded_at,
        )

    def to_entity(self) -> Document:
        return Document(
            id=self.id,
            homologation_id=self.homologation_id,
            name=self.name,
            doc_type=DocType(self.type),
            file_url=self.file_url,
            storage_key=self.storage_key,
            file_size=self.file_size or 0,
            mime_type=self.mime_type,
            uploaded_at=self.uploaded_at,
        )


class PaymentRecord(Base):
    """One payment attempt (one per gateway preference)."""
    __tablename__ = "payments"

    id = Column(String(36), primary_key=True)
    homologation_id = Column(String(36), ForeignKey("homologations.id"), nullable=False, index=True)
    amount = Column(Numeric(12, 2), nullable=False)
    currency = Column(String(3), nullable=False, default="ARS")
    preference_id = Column(String(100), index=True)
    gateway_payment_id = Column(String(100), unique=True)
    status = Column(String(20), nullable=False, default=PaymentStatus.PENDING.value)
    created_at = Column(DateTime, default=utcnow, index=True)
    updated_at = Column(DateTime, default=utcnow)
    version = Column(Integer, nullable=False, default=1)

    def __repr__(self):
        return f"<Payment {self.id} [{self.status}] gateway={self.gateway_payment_id}>"

    @classmethod
    def from_entity(cls, p: Payment) -> "PaymentRecord":
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
            version=p.version,
        )

    def to_entity(self) -> Payment:
        return Payment(
            id=self.id,
            homologation_id=self.homologation_id,
            amount=Decimal(self.amount),
            currency=self.currency,
            preference_id=self.preference_id,
            gateway_payment_id=self.gateway_payment_id,
            status=PaymentStatus(self.status),
            created_at=self.created_at,
            updated_at=self.updated_at,
            version=self.version,
        )


class AuditRecord(Base):
    """Status change of a homologation."""
    __tablename__ = "homologation_audit_log"

    id = Column(String(36), primary_key=True)
    homologation_id = Column(String(36), ForeignKey("homologations.id"), nullable=False, index=True)
    actor = Column(String(100), nullable=False)
    previous_status = Column(String(20), nullable=False)
    new_status = Column(String(20), nullable=False)
    reason = Column(Text)
    created_at = Column(DateTime, default=utcnow)

    @classmethod
    def from_entity(cls, a: AuditEntry) -> "AuditRecord":
        return cls(
            id=a.id,
            homologation_id=a.homologation_id,
            actor=a.actor,
            previous_status=a.previous_status.value,
            new_status=a.new_status.value,
            reason=a.reason,
            created_at=a.created_at,
        )

    def to_entity(self) -> AuditEntry:
        return AuditEntry(
            id=self.id,
            homologation_id=self.homologation_id,
            actor=self.actor,
            previous_status=HomologationStatus(self.previous_status),
            new_status=HomologationStatus(self.new_status),
            reason=self.reason,
            created_at=self.created_at,
        )
