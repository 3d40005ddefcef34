"""Entry point: python -m remix

Runs one remix for an existing user against the configured database and
prints the progress stream.

Usage:
    python -m remix --user-id user_demo \
        --source https://github.com/octocat/Hello-World \
        --target https://github.com/me/scratch
    # tokens: --source-token/--target-token or
    # REMIXHUB_SOURCE_TOKEN / REMIXHUB_TARGET_TOKEN
"""

from __future__ import annotations

import argparse
import asyncio
import logging
import os
import sys

from remix.errors import RemixError
from remix.events import RemixEventStream
from remix.orchestrator import RemixOrchestrator
from remixhub.config import settings
from remixhub.database import async_session, close_db, init_db


async def run(args: argparse.Namespace) -> int:
    await init_db()
    orchestrator = RemixOrchestrator(async_session, batch_size=args.batch_size)
    try:
        job = await orchestrator.prepare(
            args.user_id,
            args.source,
            args.target,
            args.source_token or os.getenv("REMIXHUB_SOURCE_TOKEN", ""),
            args.target_token or os.getenv("REMIXHUB_TARGET_TOKEN", ""),
        )
    except RemixError as exc:
        print(f"❌ {exc}", file=sys.stderr)
        await close_db()
        return 2

    print(f"Remix {job.history_id}: {job.source_repo} → {job.target_repo}")
    stream = RemixEventStream()
    task = asyncio.create_task(orchestrator.run(job, stream))
    async for event in stream.events():
        if "log" in event:
            print(event["log"])
        elif "error" in event:
            print(f"error: {event['error']}", file=sys.stderr)
    await task
    await close_db()
    return 0 if stream.terminal == {"done": True} else 1


def main() -> None:
    parser = argparse.ArgumentParser(description="Replace a repository's content with another's")
    parser.add_argument("--user-id", required=True, help="Profile that pays for the remix")
    parser.add_argument("--source", required=True, help="Source repository URL or owner/name")
    parser.add_argument("--target", required=True, help="Target repository URL or owner/name")
    parser.add_argument("--source-token", default="", help="Token with read access to the source")
    parser.add_argument("--target-token", default="", help="Token with write access to the target")
    parser.add_argument("--batch-size", type=int, default=None, help="Blobs copied concurrently")
    args = parser.parse_args()

    logging.basicConfig(
        level=settings.log_level,
        format="%(asctime)s %(levelname)s %(name)s: %(message)s",
    )
    sys.exit(asyncio.run(run(args)))


if __name__ == "__main__":
    main()
