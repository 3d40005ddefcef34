"""Seed demo profiles and remix history for local development."""

from __future__ import annotations

import secrets
from datetime import datetime, timedelta, timezone

from sqlalchemy import select
from sqlalchemy.ext.asyncio import AsyncSession

from remixhub.auth import hash_token
from remixhub.entities.audit_log import AuditLog
from remixhub.entities.payment import Payment, PaymentStatus
from remixhub.entities.profile import Profile
from remixhub.entities.remix_history import RemixHistory, RemixStatus

PROFILES = [
    {"user_id": "user_demo", "display_name": "Demo", "email": "demo@remixhub.dev", "credits": 5},
    {"user_id": "user_broke", "display_name": "Sem Créditos", "email": "broke@remixhub.dev", "credits": 0},
]

HISTORY = [
    ("octocat/Hello-World", "demo/hello-remix", RemixStatus.COMPLETED, None, 180),
    ("octocat/Spoon-Knife", "demo/spoon-remix", RemixStatus.ERROR, "GitHub API error 403: Resource not accessible by personal access token", 120),
]


async def seed_data(db: AsyncSession) -> dict[str, str]:
    """Create demo users (if missing) and return their freshly issued API tokens."""
    tokens: dict[str, str] = {}
    now = datetime.now(timezone.utc)

    for data in PROFILES:
        existing = await db.execute(select(Profile).where(Profile.user_id == data["user_id"]))
        if existing.scalar_one_or_none() is not None:
            continue
        token = f"rh_{secrets.token_urlsafe(24)}"
        tokens[data["user_id"]] = token
        db.add(Profile(**data, api_token_hash=hash_token(token)))
    await db.flush()

    if "user_demo" not in tokens:
        await db.commit()
        return tokens

    for source, target, status, error, minutes_ago in HISTORY:
        created = now - timedelta(minutes=minutes_ago)
        line = "✅ Remix concluído com sucesso!" if status == RemixStatus.COMPLETED else f"❌ Erro: {error}"
        history = RemixHistory(
            user_id="user_demo",
            source_repo=source,
            target_repo=target,
            status=status.value,
            error_message=error,
            logs=[f"🔍 Obtendo branch padrão de {source}...", line],
            created_at=created,
            completed_at=created + timedelta(minutes=1),
        )
        db.add(history)
        await db.flush()
        db.add(AuditLog(
            history_id=history.id,
            old_status=RemixStatus.PROCESSING.value,
            new_status=status.value,
            detail=error or "Remix completed",
        ))

    db.add(Payment(
        user_id="user_demo",
        amount_cents=250,
        credits_purchased=5,
        status=PaymentStatus.APPROVED.value,
        mp_payment_id="1234567890",
        created_at=now - timedelta(days=1),
    ))
    await db.commit()
    return tokens
