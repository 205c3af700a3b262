"""
Document/Payment Linkage Validator.

Uma homologação só pode ser enviada com os dados de contato do dono,
pelo menos um documento e pagamento confirmado. Avaliado no momento
da transição, nunca em cache.
"""

from src.core.entities.homologation import (
    Homologation,
    HomologationPaymentStatus,
    HomologationStatus,
)
from src.core.exceptions import InvalidTransition

# O órgão precisa contatar o dono durante a revisão
REQUIRED_FOR_SUBMISSION = (
    "owner_full_name",
    "owner_national_id",
    "owner_email",
    "owner_phone",
)


def missing_owner_fields(homologation: Homologation) -> list[str]:
    return [
        f for f in REQUIRED_FOR_SUBMISSION
        if not str(getattr(homologation, f) or "").strip()
    ]


def submission_blockers(homologation: Homologation) -> list[str]:
    """Lista os motivos que impedem o envio (vazia = pode enviar)."""
    reasons = []
    missing = missing_owner_fields(homologation)
    if missing:
        reasons.append(f"missing owner data: {', '.join(missing)}")
    if len(homologation.documents) < 1:
        reasons.append("at least one document is required")
    if homologation.payment_status != HomologationPaymentStatus.PAID:
        reasons.append(f"payment is {homologation.payment_status.value}, expected paid")
    return reasons


def can_submit(homologation: Homologation) -> bool:
    return not submission_blockers(homologation)


def ensure_can_submit(homologation: Homologation) -> None:
    """Levanta InvalidTransition com o motivo explícito se não puder enviar."""
    reasons = submission_blockers(homologation)
    if reasons:
        raise InvalidTransition(
            homologation.status.value,
            HomologationStatus.SUBMITTED.value,
            reason="; ".join(reasons),
        )
