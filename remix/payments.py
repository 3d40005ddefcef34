"""Payment reconciliation: turns approved Mercado Pago payments into credits."""

from __future__ import annotations

import logging
from dataclasses import dataclass
from datetime import datetime, timedelta, timezone
from typing import Any

from sqlalchemy import select
from sqlalchemy.ext.asyncio import AsyncSession

from remix.credits import add_credits
from remix.errors import PaymentProviderError, ValidationError
from remix.mercadopago_client import MercadoPagoClient
from remix.quota import as_utc
from remixhub.config import settings
from remixhub.entities.payment import Payment, PaymentStatus

logger = logging.getLogger(__name__)


@dataclass
class ExternalReference:
    user_id: str
    credits: int
    payment_id: str | None = None


@dataclass
class ReconcileResult:
    status: str
    payment_id: str | None = None
    user_id: str | None = None
    credited: int = 0


def parse_external_reference(value: str | None) -> ExternalReference:
    """Parse ``"<user_id>:<credits>[:<payment_id>]"``."""
    parts = (value or "").split(":")
    if len(parts) < 2 or not parts[0]:
        raise ValidationError(f"external_reference inválida: {value!r}")
    try:
        credits = int(parts[1])
    except ValueError as exc:
        raise ValidationError(f"external_reference inválida: {value!r}") from exc
    payment_id = parts[2] if len(parts) > 2 and parts[2] else None
    return ExternalReference(user_id=parts[0], credits=credits, payment_id=payment_id)


async def _find_payment(
    db: AsyncSession,
    ref: ExternalReference,
    mp_payment_id: str,
) -> Payment | None:
    if ref.payment_id:
        result = await db.execute(
            select(Payment).where(Payment.id == ref.payment_id, Payment.user_id == ref.user_id)
        )
        payment = result.scalar_one_or_none()
        if payment is not None:
            return payment

    result = await db.execute(select(Payment).where(Payment.mp_payment_id == mp_payment_id))
    payment = result.scalars().first()
    if payment is not None:
        return payment

    # Last resort: newest pending purchase of the same size for this user.
    # Two pending purchases of equal size cannot be told apart here.
    result = await db.execute(
        select(Payment)
        .where(
            Payment.user_id == ref.user_id,
            Payment.credits_purchased == ref.credits,
            Payment.status == PaymentStatus.PENDING.value,
        )
        .order_by(Payment.created_at.desc())
        .limit(1)
    )
    payment = result.scalar_one_or_none()
    if payment is not None:
        logger.warning(
            "Matched MP payment %s to local payment %s by (user, credits) only",
            mp_payment_id, payment.id,
        )
    return payment


async def reconcile_payment(db: AsyncSession, mp_payment: dict[str, Any]) -> ReconcileResult:
    """Credit the buyer of an approved Mercado Pago payment, at most once."""
    status = mp_payment.get("status", "unknown")
    mp_payment_id = str(mp_payment.get("id", ""))
    if status != PaymentStatus.APPROVED.value:
        return ReconcileResult(status=status)

    ref = parse_external_reference(mp_payment.get("external_reference"))
    payment = await _find_payment(db, ref, mp_payment_id)
    if payment is None:
        logger.warning("No local payment for approved MP payment %s (%s)", mp_payment_id, ref)
        return ReconcileResult(status=status, user_id=ref.user_id)

    if payment.status == PaymentStatus.APPROVED.value:
        logger.info("Payment %s already credited, ignoring duplicate notification", payment.id)
        return ReconcileResult(status=status, payment_id=payment.id, user_id=payment.user_id)

    payment.status = PaymentStatus.APPROVED.value
    payment.mp_payment_id = mp_payment_id or payment.mp_payment_id
    await add_credits(db, payment.user_id, payment.credits_purchased)
    return ReconcileResult(
        status=status,
        payment_id=payment.id,
        user_id=payment.user_id,
        credited=payment.credits_purchased,
    )


async def handle_webhook(
    db: AsyncSession,
    client: MercadoPagoClient | None,
    body: dict[str, Any],
) -> ReconcileResult | None:
    """Process a Mercado Pago notification; non-payment notifications are ignored."""
    data = body.get("data") or {}
    if body.get("type") != "payment" or not data.get("id"):
        return None
    if client is None:
        raise PaymentProviderError("Mercado Pago não configurado")
    mp_payment = await client.get_payment(data["id"])
    return await reconcile_payment(db, mp_payment)


async def check_payment_status(
    db: AsyncSession,
    client: MercadoPagoClient | None,
    user_id: str,
    payment_id: str,
    now: datetime | None = None,
) -> str:
    """Current status of one of ``user_id``'s payments, reconciling pending ones."""
    now = now or datetime.now(timezone.utc)
    result = await db.execute(
        select(Payment).where(Payment.id == payment_id, Payment.user_id == user_id)
    )
    payment = result.scalar_one_or_none()
    if payment is None:
        raise ValidationError("Pagamento não encontrado")

    if payment.status != PaymentStatus.PENDING.value:
        return payment.status

    if as_utc(payment.created_at) + timedelta(minutes=settings.payment_expiry_minutes) < now:
        payment.status = PaymentStatus.EXPIRED.value
        await db.commit()
        return payment.status

    if payment.mp_payment_id and client is not None:
        mp_payment = await client.get_payment(payment.mp_payment_id)
        outcome = await reconcile_payment(db, mp_payment)
        return outcome.status if outcome.payment_id == payment.id else payment.status

    return payment.status
