"""
Use Case: Create Payment Preference

Cria a preferência de checkout no gateway e registra um
pagamento PENDING vinculado à homologação.
"""

import logging
import uuid
from dataclasses import dataclass
from decimal import Decimal, InvalidOperation

from src.core.entities.payment import Payment
from src.core.exceptions import HomologationNotFound, ValidationError
from src.core.interfaces.payment_gateway import IPaymentGateway, PreferenceItem, PreferenceRequest
from src.core.interfaces.repositories import IHomologationRepository, IPaymentRepository

logger = logging.getLogger(__name__)


@dataclass
class CreatedPreference:
    preference_id: str
    init_point: str
    payment: Payment


class CreatePaymentPreferenceUseCase:

    def __init__(
        self,
        homologations: IHomologationRepository,
        payments: IPaymentRepository,
        gateway: IPaymentGateway,
        site_url: str,
        notification_url: str,
        currency: str = "ARS",
    ):
        self._homologations = homologations
        self._payments = payments
        self._gateway = gateway
        self._site_url = site_url.rstrip("/")
        self._notification_url = notification_url
        self._currency = currency

    async def execute(
        self,
        homologation_id: str | None,
        amount: Decimal | float | str | None,
        description: str | None = None,
    ) -> CreatedPreference:
        if not homologation_id or amount in (None, ""):
            raise ValidationError("Missing required parameters: homologationId, amount")
        try:
            value = Decimal(str(amount))
        except InvalidOperation:
            raise ValidationError(f"Invalid amount '{amount}'") from None
        if not value.is_finite() or value <= 0:
            raise ValidationError("Amount must be greater than zero")

        homologation = await self._homologations.get(homologation_id)
        if homologation is None:
            raise HomologationNotFound(homologation_id)
        if homologation.is_paid:
            raise ValidationError(f"Homologation {homologation_id} is already paid")

        return_base = f"{self._site_url}/homologar/{homologation_id}/payment"
        request = PreferenceRequest(
            items=[
                PreferenceItem(
                    id=homologation_id,
                    title=description or f"Homologación {homologation_id}",
                    unit_price=value,
                    quantity=1,
                    currency_id=self._currency,
                )
            ],
            back_urls={
                "success": f"{return_base}/success",
                "failure": f"{return_base}/failure",
                "pending": f"{return_base}/pending",
            },
            notification_url=self._notification_url,
            external_reference=homologation_id,
        )
        preference = await self._gateway.create_preference(request)

        payment = await self._payments.add(
            Payment(
                id=str(uuid.uuid4()),
                homologation_id=homologation_id,
                amount=value,
                currency=self._currency,
                preference_id=preference.preference_id,
            )
        )
        logger.info(
            f"Created preference {preference.preference_id} for homologation {homologation_id} "
            f"({value} {self._currency})"
        )
        return CreatedPreference(
            preference_id=preference.preference_id,
            init_point=preference.init_point,
            payment=payment,
        )
