"""Credit balance bookkeeping.

Updates are read-then-write against the latest stored value. They are not
transactional, so two concurrent remixes can still both read the same
balance; re-reading right before the write only narrows that window.
"""

from __future__ import annotations

import logging

from sqlalchemy import select
from sqlalchemy.ext.asyncio import AsyncSession

from remix.errors import ValidationError
from remixhub.entities.profile import Profile

logger = logging.getLogger(__name__)


async def _load_profile(db: AsyncSession, user_id: str) -> Profile:
    result = await db.execute(
        select(Profile).where(Profile.user_id == user_id).execution_options(populate_existing=True)
    )
    profile = result.scalar_one_or_none()
    if profile is None:
        raise ValidationError("Perfil não encontrado")
    return profile


async def get_balance(db: AsyncSession, user_id: str) -> int:
    profile = await _load_profile(db, user_id)
    return profile.credits


async def deduct_credit(db: AsyncSession, user_id: str) -> int:
    """Take one credit from ``user_id``, never going below zero."""
    profile = await _load_profile(db, user_id)
    old = profile.credits
    profile.credits = max(0, old - 1)
    await db.commit()
    logger.info("Deducted credit from %s: %d -> %d", user_id, old, profile.credits)
    return profile.credits


async def add_credits(db: AsyncSession, user_id: str, amount: int) -> int:
    if amount < 0:
        raise ValueError("amount must be non-negative")
    profile = await _load_profile(db, user_id)
    old = profile.credits
    profile.credits = old + amount
    await db.commit()
    logger.info("Added %d credits to %s: %d -> %d", amount, user_id, old, profile.credits)
    return profile.credits
