"""Bearer-token identity lookup for API callers.

Identity proper lives elsewhere; here a caller is whoever owns the profile
whose stored token hash matches the presented bearer token.
"""

from __future__ import annotations

import hashlib
import secrets

from fastapi import Depends, Header, HTTPException
from sqlalchemy import select
from sqlalchemy.ext.asyncio import AsyncSession

from remixhub.database import get_db
from remixhub.entities.profile import Profile


def hash_token(token: str) -> str:
    return hashlib.sha256(token.encode("utf-8")).hexdigest()


async def verify_token(db: AsyncSession, bearer_token: str) -> str | None:
    """Return the user id owning ``bearer_token``, or None."""
    if not bearer_token:
        return None
    digest = hash_token(bearer_token)
    result = await db.execute(select(Profile).where(Profile.api_token_hash == digest))
    profile = result.scalar_one_or_none()
    if profile is None or not secrets.compare_digest(profile.api_token_hash, digest):
        return None
    return profile.user_id


async def get_current_user_id(
    authorization: str = Header(default=""),
    db: AsyncSession = Depends(get_db),
) -> str:
    scheme, _, token = authorization.partition(" ")
    if scheme.lower() != "bearer" or not token.strip():
        raise HTTPException(status_code=401, detail="Não autenticado")
    user_id = await verify_token(db, token.strip())
    if user_id is None:
        raise HTTPException(status_code=401, detail="Usuário não autenticado")
    return user_id
