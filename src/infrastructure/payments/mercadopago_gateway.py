"""
Adapter: MercadoPago Payment Gateway

Talks to the MercadoPago REST API with httpx:
  - POST /checkout/preferences   → preference id + init_point
  - GET  /v1/payments/{id}       → authoritative payment status

Timeouts and transport errors become GatewayUnavailable (retryable).
"""

import logging
import uuid
from typing import Any

import httpx

from src.core.exceptions import GatewayUnavailable, NotFound, ValidationError
from src.core.interfaces.payment_gateway import (
    GatewayPayment,
    IPaymentGateway,
    Preference,
    PreferenceRequest,
)

logger = logging.getLogger(__name__)

MERCADOPAGO_API_URL = "https://api.mercadopago.com"


class MercadoPagoGateway(IPaymentGateway):

    def __init__(
        self,
        access_token: str,
        base_url: str = MERCADOPAGO_API_URL,
        timeout: float = 10.0,
        transport: httpx.AsyncBaseTransport | None = None,
    ):
        self._client = httpx.AsyncClient(
            base_url=base_url,
            timeout=timeout,
            transport=transport,
            headers={
                "Authorization": f"Bearer {access_token}",
                "Content-Type": "application/json",
            },
        )

    async def aclose(self) -> None:
        await self._client.aclose()

    async def create_preference(self, request: PreferenceRequest) -> Preference:
        payload = {
            "items": [
                {
                    "id": item.id,
                    "title": item.title,
                    "quantity": item.quantity,
                    "unit_price": float(item.unit_price),
                    "currency_id": item.currency_id,
                }
                for item in request.items
            ],
            "back_urls": request.back_urls,
            "auto_return": request.auto_return,
            "external_reference": request.external_reference,
            "notification_url": request.notification_url,
        }
        data = await self._request(
            "POST",
            "/checkout/preferences",
            json=payload,
            headers={"X-Idempotency-Key": str(uuid.uuid4())},
        )
        return Preference(
            preference_id=str(data["id"]),
            init_point=data.get("init_point") or data.get("sandbox_init_point") or "",
        )

    async def get_payment(self, payment_id: str) -> GatewayPayment:
        data = await self._request("GET", f"/v1/payments/{payment_id}")
        metadata = data.get("metadata") or {}
        return GatewayPayment(
            id=str(data.get("id", payment_id)),
            status=data.get("status", ""),
            external_reference=data.get("external_reference") or None,
            preference_id=data.get("preference_id") or metadata.get("preference_id"),
            status_detail=data.get("status_detail"),
        )

    async def _request(self, method: str, path: str, **kwargs) -> dict[str, Any]:
        try:
            response = await self._client.request(method, path, **kwargs)
        except httpx.TimeoutException as e:
            logger.warning(f"MercadoPago timeout on {method} {path}")
            raise GatewayUnavailable(f"MercadoPago timed out on {method} {path}") from e
        except httpx.TransportError as e:
            logger.warning(f"MercadoPago transport error on {method} {path}: {e}")
            raise GatewayUnavailable(f"MercadoPago unreachable: {e}") from e

        if response.status_code == 404:
            raise NotFound(f"MercadoPago has no resource at {path}", path=path)
        if response.status_code in (401, 403, 429) or response.status_code >= 500:
            logger.error(f"MercadoPago {method} {path} -> {response.status_code}: {response.text[:200]}")
            raise GatewayUnavailable(
                f"MercadoPago returned {response.status_code}",
                gateway_status_code=response.status_code,
            )
        if response.status_code >= 400:
            raise ValidationError(
                f"MercadoPago rejected the request ({response.status_code})",
                gateway_response=response.text[:500],
            )

        try:
            return response.json()
        except ValueError as e:
            raise GatewayUnavailable(f"MercadoPago returned invalid JSON on {method} {path}") from e
