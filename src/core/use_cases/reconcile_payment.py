"""
Use Case: Reconcile Payment — webhook do gateway.

Converge o pagamento local (e a homologação vinculada) com o
registro autoritativo do gateway:

  Notificação → get_payment → mapeia status → localiza Payment
             → atualiza Payment (idempotente) → [aprovado] sincroniza Homologação

O pagamento é a verdade: falha ao sincronizar a homologação é logada,
nunca desfaz a atualização do pagamento.
"""

import logging
import uuid
from dataclasses import dataclass, replace
from datetime import datetime
from typing import Any, Callable, Mapping

from src.core.clock import utcnow
from src.core.entities.homologation import AuditEntry, HomologationPaymentStatus, HomologationStatus
from src.core.entities.payment import Payment, PaymentStatus
from src.core.exceptions import (
    InvalidTransition,
    PaymentRecordNotFound,
    ValidationError,
    VersionConflict,
)
from src.core.interfaces.payment_gateway import GatewayPayment, IPaymentGateway
from src.core.interfaces.repositories import IHomologationRepository, IPaymentRepository
from src.core.workflow.transitions import TransitionTable

logger = logging.getLogger(__name__)

WEBHOOK_ACTOR = "payment-webhook"

# Vocabulário do gateway → enum interno
GATEWAY_STATUS_MAP: dict[str, PaymentStatus] = {
    "pending": PaymentStatus.PENDING,
    "in_process": PaymentStatus.PENDING,
    "approved": PaymentStatus.APPROVED,
    "authorized": PaymentStatus.APPROVED,
    "rejected": PaymentStatus.REJECTED,
    "cancelled": PaymentStatus.REJECTED,
    "refunded": PaymentStatus.REFUNDED,
    "charged_back": PaymentStatus.REFUNDED,
}


def map_gateway_status(gateway_status: str | None) -> PaymentStatus:
    """Status desconhecido vira PENDING (warning, não erro)."""
    status = GATEWAY_STATUS_MAP.get(gateway_status or "")
    if status is None:
        logger.warning(f"Unknown gateway payment status '{gateway_status}', treating as pending")
        return PaymentStatus.PENDING
    return status


@dataclass
class GatewayNotification:
    """Notificação assíncrona do gateway."""
    type: str | None
    payment_id: str | None = None

    @classmethod
    def from_payload(cls, body: Mapping[str, Any] | None, query: Mapping[str, str] | None = None) -> "GatewayNotification":
        """
        Aceita o formato JSON ({"type", "data": {"id"}}) e os formatos
        de query string (?type=payment&data.id=.. ou ?topic=payment&id=..).
        """
        body = body or {}
        query = query or {}
        data = body.get("data") if isinstance(body.get("data"), Mapping) else {}

        event_type = body.get("type") or query.get("type") or query.get("topic")
        payment_id = data.get("id") or query.get("data.id") or query.get("id")
        return cls(
            type=event_type,
            payment_id=str(payment_id) if payment_id not in (None, "") else None,
        )

    @property
    def is_payment(self) -> bool:
        return self.type == "payment"


@dataclass
class ReconcileResult:
    """Resultado da reconciliação de uma notificação."""
    received: bool = True
    ignored: bool = False
    gateway_payment_id: str | None = None
    gateway_status: str | None = None
    payment_id: str | None = None
    payment_status: PaymentStatus | None = None
    payment_changed: bool = False
    stale: bool = False                                # notificação pedia um rebaixamento
    homologation_id: str | None = None
    homologation_synced: bool = False
    homologation_status: HomologationStatus | None = None


class ReconcilePaymentUseCase:
    """
    Use Case: aplica uma notificação de pagamento.

    Idempotente: reprocessar a mesma notificação não muda nada, e entregas
    fora de ordem convergem porque o status sempre vem do gateway.
    """

    def __init__(
        self,
        gateway: IPaymentGateway,
        payments: IPaymentRepository,
        homologations: IHomologationRepository,
        table: TransitionTable,
        sync_attempts: int = 3,
        clock: Callable[[], datetime] = utcnow,
    ):
        self._gateway = gateway
        self._payments = payments
        self._homologations = homologations
        self._table = table
        self._sync_attempts = max(1, sync_attempts)
        self._clock = clock

    async def execute(self, notification: GatewayNotification) -> ReconcileResult:
        """
        Raises:
            ValidationError: notificação de pagamento sem id.
            GatewayUnavailable: gateway fora do ar / timeout (re-tentável).
            PaymentRecordNotFound: nenhum pagamento local corresponde.
        """
        if not notification.is_payment:
            logger.info(f"Ignoring gateway notification of type '{notification.type}'")
            return ReconcileResult(ignored=True)

        if not notification.payment_id:
            raise ValidationError("Payment notification is missing data.id")

        # ── 1. Registro autoritativo do gateway ────────────
        gateway_payment = await self._gateway.get_payment(notification.payment_id)
        gateway_payment_id = str(gateway_payment.id or notification.payment_id)

        # ── 2. Mapeia status ───────────────────────────────
        new_status = map_gateway_status(gateway_payment.status)

        # ── 3. Localiza o pagamento local ──────────────────
        payment = await self._locate(gateway_payment_id, gateway_payment)
        if payment is None:
            logger.warning(f"No payment record for gateway payment {gateway_payment_id}")
            raise PaymentRecordNotFound(gateway_payment_id)

        result = ReconcileResult(
            gateway_payment_id=gateway_payment_id,
            gateway_status=gateway_payment.status,
            payment_id=payment.id,
            homologation_id=payment.homologation_id,
        )

        # ── 4. Atualiza o pagamento ────────────────────────
        payment, result.payment_changed, result.stale = await self._apply(
            payment, new_status, gateway_payment_id
        )
        result.payment_status = payment.status

        # ── 5. Sincroniza a homologação (best effort) ──────
        if payment.status == PaymentStatus.APPROVED:
            result.homologation_synced, result.homologation_status = await self._sync_homologation(payment)

        logger.info(
            f"Reconciled gateway payment {gateway_payment_id}: {gateway_payment.status} -> "
            f"{payment.status.value} (changed={result.payment_changed}, stale={result.stale})"
        )
        return result

    async def _locate(self, gateway_payment_id: str, gateway_payment: GatewayPayment) -> Payment | None:
        """
        Ordem: id do gateway → preference_id (sem vínculo) → external_reference
        (mais recente sem vínculo). Se só houver uma tentativa já rejeitada no
        mesmo checkout, o requerente tentou de novo: abre uma nova tentativa.
        """
        payment = await self._payments.get_by_gateway_payment_id(gateway_payment_id)
        if payment is not None:
            return payment

        # Primeira notificação: ainda não há id do gateway gravado
        previous = None
        if gateway_payment.preference_id:
            payment = await self._payments.get_by_preference_id(gateway_payment.preference_id)
            if payment is not None and payment.gateway_payment_id is None:
                return payment
            previous = payment

        if gateway_payment.external_reference:
            payment = await self._payments.latest_unlinked_for_homologation(gateway_payment.external_reference)
            if payment is not None:
                return payment
            if previous is None:
                attempts = await self._payments.list_for_homologation(gateway_payment.external_reference)
                previous = attempts[0] if attempts else None

        if previous is not None and previous.status == PaymentStatus.REJECTED:
            return await self._new_attempt(previous, gateway_payment_id)
        return None

    async def _new_attempt(self, rejected: Payment, gateway_payment_id: str) -> Payment:
        """Nova tentativa no mesmo checkout, já vinculada ao id do gateway."""
        attempt = Payment(
            id=str(uuid.uuid4()),
            homologation_id=rejected.homologation_id,
            amount=rejected.amount,
            currency=rejected.currency,
            preference_id=rejected.preference_id,
            gateway_payment_id=gateway_payment_id,
        )
        logger.info(
            f"Gateway payment {gateway_payment_id} retries rejected payment {rejected.id}; "
            f"recording new attempt {attempt.id}"
        )
        return await self._payments.add(attempt)

    async def _apply(
        self, payment: Payment, new_status: PaymentStatus, gateway_payment_id: str
    ) -> tuple[Payment, bool, bool]:
        """Retorna (pagamento, mudou, notificação atrasada)."""
        for _ in range(self._sync_attempts):
            changes: dict[str, Any] = {}
            stale = False
            if payment.gateway_payment_id != gateway_payment_id:
                changes["gateway_payment_id"] = gateway_payment_id
            if new_status != payment.status:
                if payment.can_move_to(new_status):
                    changes["status"] = new_status
                else:
                    stale = True
                    logger.warning(
                        f"Stale notification for payment {payment.id}: "
                        f"keeping {payment.status.value}, gateway says {new_status.value}"
                    )

            if not changes:
                return payment, False, stale

            try:
                updated = await self._payments.update(payment.id, payment.version, changes)
                return updated, True, stale
            except VersionConflict:
                logger.info(f"Payment {payment.id} changed concurrently, re-reading")
                payment = await self._payments.get(payment.id) or payment

        raise VersionConflict(payment.id, payment.version)

    async def _sync_homologation(self, payment: Payment) -> tuple[bool, HomologationStatus | None]:
        """
        Marca a homologação como paga e, se for rascunho apto, como enviada.

        Nunca levanta: o pagamento já foi gravado.
        """
        homologation_id = payment.homologation_id
        for attempt in range(1, self._sync_attempts + 1):
            try:
                homologation = await self._homologations.get(homologation_id)
                if homologation is None:
                    logger.error(f"Payment {payment.id} references missing homologation {homologation_id}")
                    return False, None
                if homologation.is_paid:
                    return False, homologation.status

                now = self._clock()
                changes: dict[str, Any] = {"payment_status": HomologationPaymentStatus.PAID}
                audit = None
                if homologation.status == HomologationStatus.DRAFT:
                    paid = replace(homologation, payment_status=HomologationPaymentStatus.PAID)
                    try:
                        rule = self._table.check(homologation.status, HomologationStatus.SUBMITTED, paid)
                        changes.update(rule.side_effects(now))
                        audit = AuditEntry(
                            id=str(uuid.uuid4()),
                            homologation_id=homologation_id,
                            actor=WEBHOOK_ACTOR,
                            previous_status=homologation.status,
                            new_status=HomologationStatus.SUBMITTED,
                            reason=f"payment {payment.gateway_payment_id} approved",
                            created_at=now,
                        )
                    except InvalidTransition as e:
                        logger.warning(f"Homologation {homologation_id} marked paid but not submitted: {e}")

                updated = await self._homologations.update(
                    homologation_id, homologation.version, changes, audit=audit
                )
                return True, updated.status

            except VersionConflict:
                logger.info(
                    f"Homologation {homologation_id} changed concurrently "
                    f"(attempt {attempt}/{self._sync_attempts})"
                )
            except Exception as e:
                logger.error(f"Failed to sync homologation {homologation_id} after payment {payment.id}: {e}")
                return False, None

        logger.error(f"Gave up syncing homologation {homologation_id} after {self._sync_attempts} attempts")
        return False, None
