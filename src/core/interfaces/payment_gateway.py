"""
Contract: Payment Gateway

Cria preferências de checkout e consulta pagamentos
no gateway externo (MercadoPago).
"""

from abc import ABC, abstractmethod
from dataclasses import dataclass, field
from decimal import Decimal


@dataclass
class PreferenceItem:
    """Item cobrado numa preferência."""
    id: str
    title: str
    unit_price: Decimal
    quantity: int = 1
    currency_id: str = "ARS"


@dataclass
class PreferenceRequest:
    """Dados para criar uma preferência de pagamento."""
    items: list[PreferenceItem]
    back_urls: dict[str, str] = field(default_factory=dict)   # success / failure / pending
    notification_url: str = ""
    external_reference: str | None = None
    auto_return: str = "approved"


@dataclass
class Preference:
    """Preferência criada no gateway."""
    preference_id: str
    init_point: str


@dataclass
class GatewayPayment:
    """Registro autoritativo de um pagamento, como o gateway o vê."""
    id: str
    status: str                          # vocabulário do gateway ("approved", "in_process", ...)
    external_reference: str | None = None
    preference_id: str | None = None
    status_detail: str | None = None


class IPaymentGateway(ABC):
    """
    Port: Payment Gateway

    Falhas de rede ou timeout devem virar GatewayUnavailable.
    """

    @abstractmethod
    async def create_preference(self, request: PreferenceRequest) -> Preference:
        """Cria uma preferência e retorna id + URL de checkout."""
        ...

    @abstractmethod
    async def get_payment(self, payment_id: str) -> GatewayPayment:
        """Busca os detalhes completos de um pagamento."""
        ...
