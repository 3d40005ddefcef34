"""Remix history endpoints: list, inspect, export and delete past remixes."""

from __future__ import annotations

import csv
import io
from datetime import datetime, timezone

from fastapi import APIRouter, Depends, HTTPException, Query, Response
from sqlalchemy import select
from sqlalchemy.ext.asyncio import AsyncSession

from remixhub.auth import get_current_user_id
from remixhub.database import get_db
from remixhub.entities.remix_history import RemixHistory, RemixStatus
from remixhub.schemas.remix import HistoryDetailResponse, HistoryResponse

router = APIRouter(prefix="/history", tags=["history"])

_STATUS_LINES = {
    RemixStatus.COMPLETED.value: "✅ Remix concluído com sucesso!",
    RemixStatus.PROCESSING.value: "⏳ Remix ainda em andamento...",
    RemixStatus.PENDING.value: "🕐 Pendente...",
}


def build_transcript(history: RemixHistory) -> list[str]:
    """Stored logs, or a short summary for rows that never saved any."""
    if history.logs:
        return list(history.logs)
    lines = [
        f"📋 Remix: {history.source_repo} → {history.target_repo}",
        f"📅 Data: {history.created_at.isoformat()}",
        f"📊 Status: {history.status}",
    ]
    if history.status == RemixStatus.ERROR.value:
        lines.append(f"❌ Erro: {history.error_message or 'Desconhecido'}")
    else:
        lines.append(_STATUS_LINES.get(history.status, ""))
    return lines


async def _get_owned(db: AsyncSession, user_id: str, history_id: str) -> RemixHistory:
    result = await db.execute(
        select(RemixHistory).where(RemixHistory.id == history_id, RemixHistory.user_id == user_id)
    )
    history = result.scalar_one_or_none()
    if history is None:
        raise HTTPException(status_code=404, detail=f"Remix {history_id} não encontrado")
    return history


def _history_query(user_id: str, status: str | None):
    query = (
        select(RemixHistory)
        .where(RemixHistory.user_id == user_id)
        .order_by(RemixHistory.created_at.desc())
    )
    if status:
        query = query.where(RemixHistory.status == status)
    return query


@router.get("", response_model=list[HistoryResponse])
async def list_history(
    status: str | None = None,
    limit: int = Query(default=50, le=200),
    offset: int = 0,
    user_id: str = Depends(get_current_user_id),
    db: AsyncSession = Depends(get_db),
):
    """List the caller's remixes, newest first."""
    result = await db.execute(_history_query(user_id, status).limit(limit).offset(offset))
    return result.scalars().all()


@router.get("/export.csv")
async def export_history(
    status: str | None = None,
    user_id: str = Depends(get_current_user_id),
    db: AsyncSession = Depends(get_db),
):
    """Download the caller's history as CSV."""
    result = await db.execute(_history_query(user_id, status))

    buffer = io.StringIO()
    writer = csv.writer(buffer)
    writer.writerow(["Data", "Origem", "Destino", "Status", "Erro"])
    for row in result.scalars().all():
        writer.writerow([
            row.created_at.isoformat(),
            row.source_repo,
            row.target_repo,
            row.status,
            row.error_message or "",
        ])

    filename = f"remix-history-{datetime.now(timezone.utc).date().isoformat()}.csv"
    return Response(
        content=buffer.getvalue(),
        media_type="text/csv; charset=utf-8",
        headers={"Content-Disposition": f'attachment; filename="{filename}"'},
    )


@router.get("/{history_id}", response_model=HistoryDetailResponse)
async def get_history(
    history_id: str,
    user_id: str = Depends(get_current_user_id),
    db: AsyncSession = Depends(get_db),
):
    """One remix with its full log transcript."""
    history = await _get_owned(db, user_id, history_id)
    return HistoryDetailResponse(
        id=history.id,
        source_repo=history.source_repo,
        target_repo=history.target_repo,
        status=history.status,
        error_message=history.error_message,
        created_at=history.created_at,
        completed_at=history.completed_at,
        logs=list(history.logs or []),
        transcript=build_transcript(history),
    )


@router.delete("/{history_id}", status_code=204)
async def delete_history(
    history_id: str,
    user_id: str = Depends(get_current_user_id),
    db: AsyncSession = Depends(get_db),
):
    """Delete a finished remix from the caller's history."""
    history = await _get_owned(db, user_id, history_id)
    if history.status == RemixStatus.PROCESSING.value:
        raise HTTPException(status_code=409, detail="Remix ainda em andamento")
    await db.delete(history)
    await db.commit()
    return Response(status_code=204)
