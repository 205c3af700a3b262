"""
Route: POST /webhooks/mercadopago — asynchronous payment notifications.

200 {received: true} for processed and ignored notifications,
404 when no local payment matches (the gateway retries),
503 when the gateway or the datastore is unreachable, 500 on anything unexpected.
"""

import json
import logging

from fastapi import APIRouter, Depends, Request

from src.api.dependencies import Services, ensure_datastore, get_services
from src.api.schemas.responses import WebhookResponse
from src.core.use_cases.reconcile_payment import GatewayNotification

logger = logging.getLogger(__name__)

router = APIRouter()


@router.post("/webhooks/mercadopago", response_model=WebhookResponse)
async def mercadopago_webhook(request: Request, services: Services = Depends(get_services)):
    try:
        body = await request.json()
    except (json.JSONDecodeError, UnicodeDecodeError):
        body = {}
    if not isinstance(body, dict):
        body = {}

    notification = GatewayNotification.from_payload(body, request.query_params)
    logger.info(f"Webhook received: type={notification.type} id={notification.payment_id}")

    # Only payment notifications touch the datastore; the rest are acknowledged even when degraded
    if notification.is_payment:
        await ensure_datastore(services)

    result = await services.reconcile.execute(notification)
    return WebhookResponse(
        received=True,
        ignored=result.ignored,
        payment_status=result.payment_status.value if result.payment_status else None,
        homologation_status=result.homologation_status.value if result.homologation_status else None,
    )
