"""Remix orchestrator: copies a source repository's tree over a target repository.

Lifecycle of one job:
VALIDATING -> HISTORY_CREATED -> READING_SOURCE -> COPYING_BLOBS -> BUILDING_TREE
-> COMMITTING -> UPDATING_REF -> DEDUCTING -> COMPLETED, with ERROR reachable
from every stage after HISTORY_CREATED.

The replacement is total and destructive: the new tree is built without a
base tree and the target branch is force-updated. The parent commit is the
target HEAD read before copying starts and nothing re-checks it before the
force update, so a push that lands in between is silently discarded. Two
jobs racing on one target behave the same way: the last ref update wins.
"""

from __future__ import annotations

import asyncio
import enum
import logging
from dataclasses import dataclass, field
from datetime import datetime, timezone

from sqlalchemy import select
from sqlalchemy.exc import SQLAlchemyError
from sqlalchemy.ext.asyncio import AsyncSession, async_sessionmaker

from remix.credits import deduct_credit
from remix.errors import EmptySourceError, InternalError, ValidationError
from remix.events import RemixEventStream
from remix.github_client import GitHubClient, TreeEntry
from remix.quota import enforce_admission
from remix.repo_ref import normalize_repo
from remixhub.config import settings
from remixhub.entities.audit_log import AuditLog
from remixhub.entities.remix_history import RemixHistory, RemixStatus

logger = logging.getLogger(__name__)


class RemixStage(str, enum.Enum):
    VALIDATING = "validating"
    HISTORY_CREATED = "history_created"
    READING_SOURCE = "reading_source"
    COPYING_BLOBS = "copying_blobs"
    BUILDING_TREE = "building_tree"
    COMMITTING = "committing"
    UPDATING_REF = "updating_ref"
    DEDUCTING = "deducting"
    COMPLETED = "completed"
    ERROR = "error"


_STAGE_ORDER = [
    RemixStage.VALIDATING,
    RemixStage.HISTORY_CREATED,
    RemixStage.READING_SOURCE,
    RemixStage.COPYING_BLOBS,
    RemixStage.BUILDING_TREE,
    RemixStage.COMMITTING,
    RemixStage.UPDATING_REF,
    RemixStage.DEDUCTING,
    RemixStage.COMPLETED,
]

_STATUS_TRANSITIONS = {
    RemixStatus.PENDING: {RemixStatus.PROCESSING},
    RemixStatus.PROCESSING: {RemixStatus.COMPLETED, RemixStatus.ERROR},
    RemixStatus.COMPLETED: set(),
    RemixStatus.ERROR: set(),
}


def batched(entries: list[TreeEntry], size: int) -> list[list[TreeEntry]]:
    """Split ``entries`` into consecutive chunks of at most ``size``."""
    if size < 1:
        raise ValueError("batch size must be at least 1")
    return [entries[i:i + size] for i in range(0, len(entries), size)]


@dataclass
class RemixJob:
    """In-memory state of one remix invocation.

    The log buffer belongs to this job alone; concurrent jobs never share one.
    """

    user_id: str
    source_repo: str
    target_repo: str
    source_token: str = field(repr=False)
    target_token: str = field(repr=False)
    status: RemixStatus = RemixStatus.PENDING
    stage: RemixStage = RemixStage.VALIDATING
    logs: list[str] = field(default_factory=list)
    error_message: str | None = None
    history_id: str | None = None
    created_at: datetime = field(default_factory=lambda: datetime.now(timezone.utc))
    completed_at: datetime | None = None

    @property
    def is_terminal(self) -> bool:
        return self.status in (RemixStatus.COMPLETED, RemixStatus.ERROR)

    def append_log(self, line: str) -> None:
        if self.is_terminal:
            raise RuntimeError(f"job {self.history_id} is {self.status.value}; logs are final")
        self.logs.append(line)

    def advance(self, stage: RemixStage) -> None:
        if self.stage == RemixStage.ERROR or self.stage == RemixStage.COMPLETED:
            raise RuntimeError(f"job {self.history_id} already finished at {self.stage.value}")
        if stage == RemixStage.ERROR:
            if _STAGE_ORDER.index(self.stage) < _STAGE_ORDER.index(RemixStage.HISTORY_CREATED):
                raise RuntimeError("a job can only fail after its history record exists")
        elif _STAGE_ORDER.index(stage) != _STAGE_ORDER.index(self.stage) + 1:
            raise RuntimeError(f"illegal stage change {self.stage.value} -> {stage.value}")
        self.stage = stage

    def set_status(self, status: RemixStatus) -> None:
        if status not in _STATUS_TRANSITIONS[self.status]:
            raise RuntimeError(f"illegal status change {self.status.value} -> {status.value}")
        self.status = status


async def _log_transition(
    db: AsyncSession,
    history_id: str,
    old_status: str | None,
    new_status: str,
    detail: str | None = None,
):
    """Insert an audit_log row for a history status transition."""
    db.add(AuditLog(
        history_id=history_id,
        old_status=old_status,
        new_status=new_status,
        detail=detail,
    ))


class RemixOrchestrator:
    def __init__(
        self,
        session_factory: async_sessionmaker[AsyncSession],
        github: GitHubClient | None = None,
        batch_size: int | None = None,
    ):
        self._session_factory = session_factory
        self._github = github
        self.batch_size = batch_size or settings.remix_batch_size

    async def prepare(
        self,
        user_id: str,
        source_repo: str | None,
        target_repo: str | None,
        source_token: str | None,
        target_token: str | None,
    ) -> RemixJob:
        """Validate the request and create its history record.

        Nothing is persisted unless every check passes. Raises
        ValidationError (bad input, quota, credits) or InternalError
        (history insert failed).
        """
        source = normalize_repo(source_repo, "repositório mãe")
        target = normalize_repo(target_repo, "repositório destino")
        if not (source_token or "").strip() or not (target_token or "").strip():
            raise ValidationError("Campos obrigatórios não preenchidos")

        job = RemixJob(
            user_id=user_id,
            source_repo=source,
            target_repo=target,
            source_token=source_token.strip(),
            target_token=target_token.strip(),
        )

        async with self._session_factory() as db:
            await enforce_admission(db, user_id)
            job.append_log("📝 Criando registro no histórico...")
            try:
                history = RemixHistory(
                    user_id=user_id,
                    source_repo=source,
                    target_repo=target,
                    status=RemixStatus.PROCESSING.value,
                    logs=list(job.logs),
                )
                db.add(history)
                await db.flush()
                await _log_transition(
                    db, history.id, RemixStatus.PENDING.value,
                    RemixStatus.PROCESSING.value, "Remix started",
                )
                await db.commit()
            except SQLAlchemyError as exc:
                await db.rollback()
                logger.exception("Failed to create history for user %s", user_id)
                raise InternalError(f"Erro ao salvar histórico: {exc}") from exc

        job.history_id = history.id
        job.created_at = history.created_at
        job.advance(RemixStage.HISTORY_CREATED)
        job.set_status(RemixStatus.PROCESSING)
        logger.info("Remix %s created: %s -> %s", job.history_id, source, target)
        return job

    async def run(self, job: RemixJob, stream: RemixEventStream) -> RemixJob:
        """Drive a prepared job to a terminal state.

        Never raises for pipeline failures: they end the job in ERROR, are
        written to the history record and close ``stream`` with an error event.
        """
        github = self._github or GitHubClient()
        try:
            # Lines buffered before the stream existed go out first.
            for line in job.logs:
                stream.log(line)
            await self._pipeline(job, stream, github)
        except Exception as exc:
            await self._fail(job, stream, exc)
        finally:
            if self._github is None:
                await github.close()
        return job

    def _log(self, job: RemixJob, stream: RemixEventStream, line: str) -> None:
        job.append_log(line)
        stream.log(line)

    async def _pipeline(
        self,
        job: RemixJob,
        stream: RemixEventStream,
        github: GitHubClient,
    ) -> None:
        def log(line: str) -> None:
            self._log(job, stream, line)

        source, target = job.source_repo, job.target_repo

        job.advance(RemixStage.READING_SOURCE)
        log(f"🔍 Obtendo branch padrão de {source}...")
        source_branch = await github.get_default_branch(source, job.source_token)
        log(f"   ↳ Branch: {source_branch}")

        log("🌳 Lendo árvore de arquivos do repositório mãe...")
        source_tree = await github.list_tree(source, source_branch, job.source_token)
        log(f"   ↳ {len(source_tree)} arquivos encontrados")
        if not source_tree:
            raise EmptySourceError("Repositório de origem não contém arquivos")

        log(f"🔍 Obtendo branch padrão de {target}...")
        target_branch = await github.get_default_branch(target, job.target_token)
        log(f"   ↳ Branch: {target_branch}")

        log("🗂️ Lendo árvore atual do destino...")
        target_tree = await github.list_tree(target, target_branch, job.target_token)
        log(f"   ↳ {len(target_tree)} arquivos atuais serão substituídos")

        log("📌 Obtendo referência HEAD do destino...")
        target_head = await github.get_ref(target, target_branch, job.target_token)
        log(f"   ↳ SHA: {target_head[:7]}")

        job.advance(RemixStage.COPYING_BLOBS)
        log("🚀 Copiando arquivos para o repositório destino...")
        log("   ⚠️  Todo conteúdo anterior do destino será substituído.")
        tree_entries = await self._copy_blobs(job, stream, github, source_tree)

        job.advance(RemixStage.BUILDING_TREE)
        log("🌲 Criando nova árvore (sem base_tree = apaga tudo antigo)...")
        tree_sha = await github.create_tree(target, tree_entries, job.target_token)
        log(f"   ↳ Tree SHA: {tree_sha[:7]}")

        job.advance(RemixStage.COMMITTING)
        log("💾 Criando commit...")
        commit_sha = await github.create_commit(
            target,
            settings.remix_commit_message.format(source=source),
            tree_sha,
            [target_head],
            job.target_token,
        )
        log(f"   ↳ Commit SHA: {commit_sha[:7]}")

        job.advance(RemixStage.UPDATING_REF)
        log(f"🔄 Atualizando referência da branch {target_branch}...")
        await github.update_ref(target, target_branch, commit_sha, job.target_token, force=True)

        job.advance(RemixStage.DEDUCTING)
        log("💰 Descontando 1 crédito...")
        async with self._session_factory() as db:
            await deduct_credit(db, job.user_id)

        log("✅ Remix concluído com sucesso!")
        await self._complete(job)
        stream.done()

    async def _copy_blobs(
        self,
        job: RemixJob,
        stream: RemixEventStream,
        github: GitHubClient,
        source_tree: list[TreeEntry],
    ) -> list[TreeEntry]:
        """Copy every blob, one batch at a time.

        Copies inside a batch run concurrently; the next batch starts only
        once every copy of the current one has resolved. The first failure
        of a batch aborts the job after the batch settles.
        """

        async def copy_one(entry: TreeEntry) -> TreeEntry:
            content = await github.get_blob_content(job.source_repo, entry.sha, job.source_token)
            new_sha = await github.create_blob(job.target_repo, content, job.target_token)
            return TreeEntry(path=entry.path, mode=entry.mode, sha=new_sha)

        batches = batched(source_tree, self.batch_size)
        copied: list[TreeEntry] = []
        for index, batch in enumerate(batches, start=1):
            self._log(job, stream, f"   📦 Lote {index}/{len(batches)} ({len(batch)} arquivos)...")
            results = await asyncio.gather(
                *(copy_one(entry) for entry in batch), return_exceptions=True
            )
            failures = [r for r in results if isinstance(r, BaseException)]
            if failures:
                logger.warning(
                    "Remix %s: %d/%d copies failed in batch %d",
                    job.history_id, len(failures), len(batch), index,
                )
                raise failures[0]
            copied.extend(results)
        return copied

    async def _load_history(self, db: AsyncSession, history_id: str) -> RemixHistory:
        result = await db.execute(select(RemixHistory).where(RemixHistory.id == history_id))
        history = result.scalar_one_or_none()
        if history is None:
            raise InternalError(f"Histórico {history_id} não encontrado")
        return history

    async def _complete(self, job: RemixJob) -> None:
        completed_at = datetime.now(timezone.utc)
        async with self._session_factory() as db:
            history = await self._load_history(db, job.history_id)
            old = history.status
            history.status = RemixStatus.COMPLETED.value
            history.completed_at = completed_at
            history.logs = list(job.logs)
            await _log_transition(db, history.id, old, history.status, "Remix completed")
            await db.commit()

        job.advance(RemixStage.COMPLETED)
        job.set_status(RemixStatus.COMPLETED)
        job.completed_at = completed_at
        logger.info("Remix %s completed", job.history_id)

    async def _fail(self, job: RemixJob, stream: RemixEventStream, exc: Exception) -> None:
        message = str(exc) or type(exc).__name__
        logger.warning("Remix %s failed at %s: %s", job.history_id, job.stage.value, message)
        self._log(job, stream, f"❌ Erro: {message}")

        try:
            async with self._session_factory() as db:
                history = await self._load_history(db, job.history_id)
                old = history.status
                history.status = RemixStatus.ERROR.value
                history.error_message = message
                history.logs = list(job.logs)
                await _log_transition(db, history.id, old, history.status, message)
                await db.commit()
        except Exception:
            # The row may stay in processing; the stream still gets its error.
            logger.exception("Failed to persist error state for remix %s", job.history_id)

        job.error_message = message
        job.advance(RemixStage.ERROR)
        job.set_status(RemixStatus.ERROR)
        job.completed_at = datetime.now(timezone.utc)
        stream.error(message)
