"""
Entity: Payment

Uma tentativa de pagamento de uma homologação.
Criada como PENDING ao gerar a preferência; só o reconciliador muda o status.
"""

from dataclasses import dataclass, field
from datetime import datetime
from decimal import Decimal
from enum import Enum

from src.core.clock import utcnow


class PaymentStatus(str, Enum):
    PENDING = "pending"
    APPROVED = "approved"
    REJECTED = "rejected"
    REFUNDED = "refunded"


# Mudanças de status aceitas a partir do registro local.
# Notificações que pediriam outra mudança são tratadas como atrasadas.
PAYMENT_TRANSITIONS: dict[PaymentStatus, frozenset[PaymentStatus]] = {
    PaymentStatus.PENDING: frozenset(
        {PaymentStatus.APPROVED, PaymentStatus.REJECTED, PaymentStatus.REFUNDED}
    ),
    PaymentStatus.APPROVED: frozenset({PaymentStatus.REFUNDED}),
    PaymentStatus.REJECTED: frozenset(),
    PaymentStatus.REFUNDED: frozenset(),
}


@dataclass
class Payment:
    """Entidade de domínio: Pagamento."""
    id: str
    homologation_id: str
    amount: Decimal
    currency: str = "ARS"
    preference_id: str | None = None
    gateway_payment_id: str | None = None
    status: PaymentStatus = PaymentStatus.PENDING
    created_at: datetime = field(default_factory=utcnow)
    updated_at: datetime = field(default_factory=utcnow)
    version: int = 1

    def can_move_to(self, target: PaymentStatus) -> bool:
        return target in PAYMENT_TRANSITIONS[self.status]
