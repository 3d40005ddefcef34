"""Payment endpoints: Mercado Pago webhook and payment status polling."""

from __future__ import annotations

import logging
from collections.abc import AsyncIterator

from fastapi import APIRouter, Depends
from sqlalchemy.ext.asyncio import AsyncSession

from remix.mercadopago_client import MercadoPagoClient
from remix.payments import check_payment_status, handle_webhook
from remixhub.auth import get_current_user_id
from remixhub.config import settings
from remixhub.database import get_db
from remixhub.schemas.payments import PaymentStatusResponse, WebhookAck, WebhookNotification

logger = logging.getLogger(__name__)

router = APIRouter(prefix="/payments", tags=["payments"])


async def get_mercadopago_client() -> AsyncIterator[MercadoPagoClient | None]:
    """Mercado Pago client, or None when no access token is configured."""
    if not settings.mercadopago_access_token:
        yield None
        return
    client = MercadoPagoClient()
    try:
        yield client
    finally:
        await client.close()


@router.post("/webhook", response_model=WebhookAck)
async def mercadopago_webhook(
    body: WebhookNotification,
    db: AsyncSession = Depends(get_db),
    client: MercadoPagoClient | None = Depends(get_mercadopago_client),
):
    """Mercado Pago payment notification; approved payments become credits."""
    result = await handle_webhook(db, client, body.model_dump())
    if result is not None:
        logger.info(
            "Webhook for payment %s: status=%s credited=%d",
            result.payment_id, result.status, result.credited,
        )
    return WebhookAck()


@router.get("/{payment_id}/status", response_model=PaymentStatusResponse)
async def payment_status(
    payment_id: str,
    user_id: str = Depends(get_current_user_id),
    db: AsyncSession = Depends(get_db),
    client: MercadoPagoClient | None = Depends(get_mercadopago_client),
):
    status = await check_payment_status(db, client, user_id, payment_id)
    return PaymentStatusResponse(payment_id=payment_id, status=status)
