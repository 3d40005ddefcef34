"""Database connection and session management."""

import asyncio
import logging
from pathlib import Path

from sqlalchemy.ext.asyncio import AsyncSession, create_async_engine, async_sessionmaker
from sqlalchemy.orm import DeclarativeBase

from remixhub.config import settings

logger = logging.getLogger(__name__)


def _ensure_sqlite_directory(database_url: str) -> None:
    """Ensure parent directory exists for file-backed sqlite URLs."""
    if not database_url.startswith("sqlite+aiosqlite:///"):
        return

    sqlite_path = database_url.removeprefix("sqlite+aiosqlite:///")

    # Ignore in-memory sqlite URLs.
    if sqlite_path in {"", ":memory:"}:
        return

    db_parent = Path(sqlite_path).parent
    if db_parent and str(db_parent) != ".":
        db_parent.mkdir(parents=True, exist_ok=True)


_ensure_sqlite_directory(settings.database_url)

if "sqlite" in settings.database_url and "mode=memory" not in settings.database_url:
    logger.warning(
        "SQLite detected; credit and quota updates are not safe under concurrent writers. "
        "Set REMIXHUB_DATABASE_URL to a Postgres URL for production."
    )

engine = create_async_engine(settings.database_url, echo=settings.debug)
async_session = async_sessionmaker(engine, class_=AsyncSession, expire_on_commit=False)


class Base(DeclarativeBase):
    pass


async def get_db():
    async with async_session() as session:
        yield session


def get_session_factory() -> async_sessionmaker[AsyncSession]:
    """Session factory for work that outlives the request (remix jobs)."""
    return async_session


async def init_db():
    if "sqlite" in settings.database_url:
        # For SQLite (tests, dev), use create_all for fast setup
        import remixhub.entities  # noqa: F401

        async with engine.begin() as conn:
            await conn.run_sync(Base.metadata.create_all)
    else:
        # For production (Postgres), run Alembic migrations. env.py starts its
        # own event loop, so it must run off this one.
        from alembic.config import Config
        from alembic import command
        alembic_cfg = Config("alembic.ini")
        await asyncio.to_thread(command.upgrade, alembic_cfg, "head")


async def close_db() -> None:
    await engine.dispose()
