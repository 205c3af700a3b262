"""
SQL Repositories — homologations (with documents and audit trail) and payments.

Every state-changing write is a conditional UPDATE:

    UPDATE ... SET ..., version = version + 1
    WHERE id = :id AND version = :expected

so two writers acting on the same version cannot both commit.
"""

import logging
from enum import Enum
from typing import Any

from sqlalchemy import desc, func, select, update
from sqlalchemy.ext.asyncio import AsyncSession

from src.core.clock import utcnow
from src.core.entities.document import Document
from src.core.entities.homologation import AuditEntry, Homologation, HomologationStatus
from src.core.entities.payment import Payment
from src.core.exceptions import (
    HomologationNotEditable,
    HomologationNotFound,
    NotFound,
    ValidationError,
    VersionConflict,
)
from src.core.interfaces.repositories import IHomologationRepository, IPaymentRepository
from src.infrastructure.db.database import Database
from src.infrastructure.db.models import AuditRecord, DocumentRecord, HomologationRecord, PaymentRecord

logger = logging.getLogger(__name__)

# Columns a conditional update may touch (version/updated_at are managed here)
HOMOLOGATION_MUTABLE = {
    "owner_full_name", "owner_national_id", "owner_email", "owner_phone",
    "vehicle_type", "brand", "model", "year", "vin", "license_plate", "axles",
    "status", "payment_status", "notes",
    "submission_date", "review_date", "completion_date",
}
PAYMENT_MUTABLE = {"status", "gateway_payment_id"}


def _to_columns(changes: dict[str, Any], allowed: set[str]) -> dict[str, Any]:
    unknown = set(changes) - allowed
    if unknown:
        raise ValidationError(f"Cannot update columns: {', '.join(sorted(unknown))}")
    return {k: (v.value if isinstance(v, Enum) else v) for k, v in changes.items()}


class SqlHomologationRepository(IHomologationRepository):
    """Homologations plus their documents and audit log."""

    def __init__(self, db: Database):
        self._db = db

    async def ping(self) -> None:
        await self._db.ping()

    async def add(self, homologation: Homologation) -> Homologation:
        async with self._db.session() as session:
            session.add(HomologationRecord.from_entity(homologation))
            await session.flush()
            logger.debug(f"Inserted homologation {homologation.id}")
            return await self._load(session, homologation.id)

    async def get(self, homologation_id: str) -> Homologation | None:
        async with self._db.session() as session:
            record = await session.get(HomologationRecord, homologation_id)
            if record is None:
                return None
            return record.to_entity(await self._document_ids(session, homologation_id))

    async def find(
        self,
        status: HomologationStatus | None = None,
        limit: int = 50,
        offset: int = 0,
    ) -> tuple[int, list[Homologation]]:
        async with self._db.session() as session:
            query = select(HomologationRecord)
            count_query = select(func.count()).select_from(HomologationRecord)
            if status is not None:
                query = query.where(HomologationRecord.status == status.value)
                count_query = count_query.where(HomologationRecord.status == status.value)

            total = (await session.execute(count_query)).scalar_one()
            records = (
                await session.execute(
                    query.order_by(desc(HomologationRecord.created_at)).offset(offset).limit(limit)
                )
            ).scalars().all()

            ids = [r.id for r in records]
            docs: dict[str, list[str]] = {i: [] for i in ids}
            if ids:
                rows = await session.execute(
                    select(DocumentRecord.homologation_id, DocumentRecord.id)
                    .where(DocumentRecord.homologation_id.in_(ids))
                    .order_by(DocumentRecord.position)
                )
                for homologation_id, document_id in rows:
                    docs[homologation_id].append(document_id)

            return total, [r.to_entity(docs[r.id]) for r in records]

    async def update(
        self,
        homologation_id: str,
        expected_version: int,
        changes: dict[str, Any],
        audit: AuditEntry | None = None,
    ) -> Homologation:
        values = _to_columns(changes, HOMOLOGATION_MUTABLE)
        values["version"] = HomologationRecord.version + 1
        values["updated_at"] = utcnow()

        async with self._db.session() as session:
            result = await session.execute(
                update(HomologationRecord)
                .where(
                    HomologationRecord.id == homologation_id,
                    HomologationRecord.version == expected_version,
                )
                .values(**values)
                .execution_options(synchronize_session=False)
            )
            if result.rowcount == 0:
                current = await session.get(HomologationRecord, homologation_id)
                if current is None:
                    raise HomologationNotFound(homologation_id)
                raise VersionConflict(homologation_id, expected_version, current.version)

            if audit is not None:
                session.add(AuditRecord.from_entity(audit))
            await session.flush()
            return await self._load(session, homologation_id)

    async def append_document(self, document: Document) -> Homologation:
        homologation_id = document.homologation_id
        async with self._db.session() as session:
            result = await session.execute(
                update(HomologationRecord)
                .where(
                    HomologationRecord.id == homologation_id,
                    HomologationRecord.status == HomologationStatus.DRAFT.value,
                )
                .values(version=HomologationRecord.version + 1, updated_at=utcnow())
                .execution_options(synchronize_session=False)
            )
            if result.rowcount == 0:
                current = await session.get(HomologationRecord, homologation_id)
                if current is None:
                    raise HomologationNotFound(homologation_id)
                raise HomologationNotEditable(homologation_id, current.status)

            # The row is locked by the update above; its new version is our slot.
            position = (
                await session.execute(
                    select(HomologationRecord.version).where(HomologationRecord.id == homologation_id)
                )
            ).scalar_one()
            session.add(DocumentRecord.from_entity(document, position=position))
            await session.flush()
            logger.info(f"Appended document {document.id} to homologation {homologation_id} at {position}")
            return await self._load(session, homologation_id)

    async def list_documents(self, homologation_id: str) -> list[Document]:
        async with self._db.session() as session:
            records = (
                await session.execute(
                    select(DocumentRecord)
                    .where(DocumentRecord.homologation_id == homologation_id)
                    .order_by(DocumentRecord.position)
                )
            ).scalars().all()
            return [r.to_entity() for r in records]

    async def list_audit(self, homologation_id: str) -> list[AuditEntry]:
        async with self._db.session() as session:
            records = (
                await session.execute(
                    select(AuditRecord)
                    .where(AuditRecord.homologation_id == homologation_id)
                    .order_by(AuditRecord.created_at)
                )
            ).scalars().all()
            return [r.to_entity() for r in records]

    @staticmethod
    async def _document_ids(session: AsyncSession, homologation_id: str) -> list[str]:
        rows = await session.execute(
            select(DocumentRecord.id)
            .where(DocumentRecord.homologation_id == homologation_id)
            .order_by(DocumentRecord.position)
        )
        return list(rows.scalars().all())

    async def _load(self, session: AsyncSession, homologation_id: str) -> Homologation:
        record = await session.get(HomologationRecord, homologation_id, populate_existing=True)
        return record.to_entity(await self._document_ids(session, homologation_id))


class SqlPaymentRepository(IPaymentRepository):
    """Payment attempts."""

    def __init__(self, db: Database):
        self._db = db

    async def add(self, payment: Payment) -> Payment:
        async with self._db.session() as session:
            record = PaymentRecord.from_entity(payment)
            session.add(record)
            await session.flush()
            logger.debug(f"Inserted payment {payment.id} (preference {payment.preference_id})")
            return record.to_entity()

    async def get(self, payment_id: str) -> Payment | None:
        async with self._db.session() as session:
            record = await session.get(PaymentRecord, payment_id)
            return record.to_entity() if record else None

    async def get_by_gateway_payment_id(self, gateway_payment_id: str) -> Payment | None:
        return await self._first(PaymentRecord.gateway_payment_id == gateway_payment_id)

    async def get_by_preference_id(self, preference_id: str) -> Payment | None:
        return await self._first(PaymentRecord.preference_id == preference_id)

    async def latest_unlinked_for_homologation(self, homologation_id: str) -> Payment | None:
        return await self._first(
            PaymentRecord.homologation_id == homologation_id,
            PaymentRecord.gateway_payment_id.is_(None),
        )

    async def list_for_homologation(self, homologation_id: str) -> list[Payment]:
        async with self._db.session() as session:
            records = (
                await session.execute(
                    select(PaymentRecord)
                    .where(PaymentRecord.homologation_id == homologation_id)
                    .order_by(desc(PaymentRecord.created_at))
                )
            ).scalars().all()
            return [r.to_entity() for r in records]

    async def update(self, payment_id: str, expected_version: int, changes: dict[str, Any]) -> Payment:
        values = _to_columns(changes, PAYMENT_MUTABLE)
        values["version"] = PaymentRecord.version + 1
        values["updated_at"] = utcnow()

        async with self._db.session() as session:
            result = await session.execute(
                update(PaymentRecord)
                .where(PaymentRecord.id == payment_id, PaymentRecord.version == expected_version)
                .values(**values)
                .execution_options(synchronize_session=False)
            )
            if result.rowcount == 0:
                current = await session.get(PaymentRecord, payment_id)
                if current is None:
                    raise NotFound(f"Payment {payment_id} not found", payment_id=payment_id)
                raise VersionConflict(payment_id, expected_version, current.version)

            record = await session.get(PaymentRecord, payment_id, populate_existing=True)
            return record.to_entity()

    async def _first(self, *criteria) -> Payment | None:
        async with self._db.session() as session:
            record = (
                await session.execute(
                    select(PaymentRecord)
                    .where(*criteria)
                    .order_by(desc(PaymentRecord.created_at))
                    .limit(1)
                )
            ).scalars().first()
            return record.to_entity() if record else None
