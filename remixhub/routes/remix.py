"""Remix endpoint: validates, then streams the job's progress as SSE."""

from __future__ import annotations

import asyncio
import logging

from fastapi import APIRouter, Depends
from fastapi.responses import StreamingResponse
from sqlalchemy.ext.asyncio import AsyncSession, async_sessionmaker

from remix.events import RemixEventStream
from remix.orchestrator import RemixOrchestrator
from remixhub.auth import get_current_user_id
from remixhub.database import get_session_factory
from remixhub.schemas.remix import ErrorResponse, RemixRequest

logger = logging.getLogger(__name__)

router = APIRouter(prefix="/remix", tags=["remix"])

# Jobs keep running after the client disconnects; hold references so the
# event loop does not garbage-collect them mid-flight.
_running_jobs: set[asyncio.Task] = set()


def get_orchestrator(
    session_factory: async_sessionmaker[AsyncSession] = Depends(get_session_factory),
) -> RemixOrchestrator:
    return RemixOrchestrator(session_factory)


@router.post(
    "",
    response_class=StreamingResponse,
    responses={
        200: {"content": {"text/event-stream": {}}},
        400: {"model": ErrorResponse},
        402: {"model": ErrorResponse},
        429: {"model": ErrorResponse},
    },
)
async def start_remix(
    body: RemixRequest,
    user_id: str = Depends(get_current_user_id),
    orchestrator: RemixOrchestrator = Depends(get_orchestrator),
):
    """Replace the target repository's content with the source repository's tree.

    Rejections (bad input, quota, credits) come back as plain JSON errors
    before any stream is opened.
    """
    job = await orchestrator.prepare(
        user_id,
        body.source_repo,
        body.target_repo,
        body.source_token,
        body.target_token,
    )

    stream = RemixEventStream()
    task = asyncio.create_task(orchestrator.run(job, stream), name=f"remix-{job.history_id}")
    _running_jobs.add(task)
    task.add_done_callback(_running_jobs.discard)

    return StreamingResponse(
        stream.sse(),
        media_type="text/event-stream",
        headers={
            "Cache-Control": "no-cache",
            "Connection": "keep-alive",
            "X-Accel-Buffering": "no",
        },
    )
