"""Admission control for remix requests: hourly quota and credit floor."""

from __future__ import annotations

import logging
import math
from dataclasses import dataclass
from datetime import datetime, timedelta, timezone

from sqlalchemy import select
from sqlalchemy.ext.asyncio import AsyncSession

from remix.errors import InsufficientCreditsError, QuotaExceededError, ValidationError
from remixhub.config import settings
from remixhub.entities.profile import Profile
from remixhub.entities.remix_history import QUOTA_STATUSES, RemixHistory

logger = logging.getLogger(__name__)


@dataclass
class QuotaDecision:
    allowed: bool
    recent_count: int
    wait_minutes: int = 0


def as_utc(value: datetime) -> datetime:
    """SQLite hands back naive datetimes; everything we store is UTC."""
    if value.tzinfo is None:
        return value.replace(tzinfo=timezone.utc)
    return value


async def check_quota(
    db: AsyncSession,
    user_id: str,
    now: datetime | None = None,
    limit: int | None = None,
    window_minutes: int | None = None,
) -> QuotaDecision:
    """Sliding-window count of remixes started by ``user_id``.

    Only jobs that actually started (processing or completed) count. When
    the limit is reached, ``wait_minutes`` is how long until the oldest
    counted job leaves the window, rounded up.
    """
    now = now or datetime.now(timezone.utc)
    limit = limit if limit is not None else settings.remix_hourly_limit
    window = timedelta(minutes=window_minutes or settings.remix_window_minutes)

    result = await db.execute(
        select(RemixHistory.created_at)
        .where(
            RemixHistory.user_id == user_id,
            RemixHistory.status.in_(QUOTA_STATUSES),
            RemixHistory.created_at > now - window,
        )
        .order_by(RemixHistory.created_at.asc())
    )
    started = [as_utc(ts) for ts in result.scalars().all()]

    if len(started) < limit:
        return QuotaDecision(allowed=True, recent_count=len(started))

    # Rows exactly one window old are already out, so unlock_at > now
    # and the wait is at least one minute.
    unlock_at = started[0] + window
    wait_minutes = math.ceil((unlock_at - now).total_seconds() / 60)
    return QuotaDecision(allowed=False, recent_count=len(started), wait_minutes=wait_minutes)


async def check_credits(db: AsyncSession, user_id: str) -> bool:
    result = await db.execute(select(Profile.credits).where(Profile.user_id == user_id))
    credits = result.scalar_one_or_none()
    if credits is None:
        raise ValidationError("Perfil não encontrado")
    return credits >= 1


async def enforce_admission(
    db: AsyncSession,
    user_id: str,
    now: datetime | None = None,
) -> None:
    """Raise unless ``user_id`` may start a remix right now."""
    decision = await check_quota(db, user_id, now=now)
    if not decision.allowed:
        plural = "s" if decision.wait_minutes > 1 else ""
        logger.info(
            "Quota reached for user %s (%d recent), wait %d min",
            user_id, decision.recent_count, decision.wait_minutes,
        )
        raise QuotaExceededError(
            f"Limite de {settings.remix_hourly_limit} remixes por hora atingido. "
            f"Tente novamente em {decision.wait_minutes} minuto{plural}.",
            wait_minutes=decision.wait_minutes,
        )

    if not await check_credits(db, user_id):
        raise InsufficientCreditsError("Créditos insuficientes. Recarregue na loja.")
