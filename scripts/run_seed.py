"""Seed the database with demo users.

Usage:
    python scripts/run_seed.py          # seed demo users, print their API tokens
    python scripts/run_seed.py --reset  # drop and recreate tables first
"""

from __future__ import annotations

import argparse
import asyncio
import sys
from pathlib import Path

# Ensure project root is importable
sys.path.insert(0, str(Path(__file__).resolve().parent.parent))

from remixhub.database import async_session, init_db, engine, Base
from remixhub.seed import seed_data
import remixhub.entities  # noqa: F401


async def main(reset: bool = False) -> None:
    if reset:
        print("Dropping all tables...")
        async with engine.begin() as conn:
            await conn.run_sync(Base.metadata.drop_all)

    print("Initializing database...")
    await init_db()

    async with async_session() as db:
        print("Seeding data...")
        tokens = await seed_data(db)

    for user_id, token in tokens.items():
        print(f"  {user_id}: {token}")
    if not tokens:
        print("  Demo users already exist; tokens are only shown on creation.")
    print("Done.")


if __name__ == "__main__":
    parser = argparse.ArgumentParser(description="Seed demo data")
    parser.add_argument(
        "--reset", action="store_true", help="Drop and recreate tables before seeding"
    )
    args = parser.parse_args()
    asyncio.run(main(reset=args.reset))
