"""Background embedding refresh queue.

Content mutations return immediately and enqueue a job row; a single asyncio
worker drains the ``embedding_jobs`` table. A job is deleted only after its
vector has been stored, so delivery is at-least-once: a crash between the
provider call and the delete simply re-embeds the same content.

Failures never reach the original edit. They are logged, counted on the job
row, and after ``embedding_max_attempts`` the job is parked as ``failed``
until an operator re-queues it.
"""

from __future__ import annotations

import asyncio
from datetime import datetime, timezone
import logging
import time
from typing import List, Optional

from ..models.embedding import Collection, EmbeddingJob
from .config import get_config
from .database import DatabaseService
from .embedding_provider import EmbeddingProvider, EmbeddingProviderError, get_embedding_provider
from .embedding_store import EmbeddingStore, get_embedding_store

logger = logging.getLogger(__name__)


def _utcnow_iso() -> str:
    return datetime.now(timezone.utc).isoformat(timespec="seconds")


class EmbeddingQueue:
    """Persistent FIFO of embedding refresh jobs plus its worker task."""

    def __init__(
        self,
        db_service: DatabaseService | None = None,
        provider: EmbeddingProvider | None = None,
        store: EmbeddingStore | None = None,
        *,
        max_attempts: int | None = None,
        poll_interval: float | None = None,
    ) -> None:
        config = get_config()
        self.db_service = db_service or DatabaseService()
        self._provider = provider
        self._store = store
        self.max_attempts = max_attempts or config.embedding_max_attempts
        self.poll_interval = poll_interval or config.embedding_poll_interval
        self._task: Optional[asyncio.Task] = None
        self._wakeup: Optional[asyncio.Event] = None
        self._process_lock: Optional[asyncio.Lock] = None

    @property
    def provider(self) -> EmbeddingProvider:
        if self._provider is None:
            self._provider = get_embedding_provider()
        return self._provider

    @property
    def store(self) -> EmbeddingStore:
        if self._store is None:
            self._store = get_embedding_store()
        return self._store

    def enqueue(
        self, user_id: str, collection: Collection, entity_id: str, content: str
    ) -> int:
        """
        Record a refresh request; returns the job id.

        Older pending or failed jobs for the same entity are superseded, so a
        late retry can never store a vector for content the entity no longer has.
        """
        now = _utcnow_iso()
        conn = self.db_service.connect()
        try:
            with conn:
                superseded = conn.execute(
                    "DELETE FROM embedding_jobs WHERE collection = ? AND entity_id = ?",
                    (Collection(collection).value, entity_id),
                ).rowcount
                cursor = conn.execute(
                    """
                    INSERT INTO embedding_jobs (
                        user_id, collection, entity_id, content,
                        status, attempts, created_at, updated_at
                    ) VALUES (?, ?, ?, ?, 'pending', 0, ?, ?)
                    """,
                    (user_id, Collection(collection).value, entity_id, content, now, now),
                )
                job_id = int(cursor.lastrowid)
        finally:
            conn.close()

        logger.debug(
            "Embedding job enqueued",
            extra={
                "job_id": job_id,
                "collection": Collection(collection).value,
                "entity_id": entity_id,
                "superseded": superseded,
            },
        )
        if self._wakeup is not None:
            self._wakeup.set()
        return job_id

    def discard(self, collection: Collection, entity_id: str) -> int:
        """Drop outstanding jobs for an entity that is being deleted."""
        conn = self.db_service.connect()
        try:
            with conn:
                cursor = conn.execute(
                    "DELETE FROM embedding_jobs WHERE collection = ? AND entity_id = ?",
                    (Collection(collection).value, entity_id),
                )
                return cursor.rowcount
        finally:
            conn.close()

    async def embed_now(self, collection: Collection, entity_id: str, content: str) -> bool:
        """
        Embed the entity's current content and store it, propagating provider errors.

        Outstanding jobs for the entity carry the same or older content and are
        dropped first. Returns False when the entity disappeared before the write.
        """
        self.discard(collection, entity_id)
        vector = await self.provider.embed(content)
        return self.store.set_embedding(collection, entity_id, vector)

    async def process_pending(self, limit: int | None = None) -> int:
        """Drain pending jobs in FIFO order; returns how many were stored or dropped."""
        if self._process_lock is None:
            self._process_lock = asyncio.Lock()

        completed = 0
        last_id = 0
        async with self._process_lock:
            while limit is None or completed < limit:
                # A job that fails stays pending for the next sweep, not this one.
                job = self._next_pending(after_id=last_id)
                if job is None:
                    break
                last_id = job.id
                if await self._run_job(job):
                    completed += 1
        return completed

    async def _run_job(self, job: EmbeddingJob) -> bool:
        start_time = time.time()
        content = self._job_content(job.id)
        if content is None:
            return False

        try:
            vector = await self.provider.embed(content)
            if self._job_content(job.id) is None:
                # Superseded or discarded while the provider call was in flight
                logger.info(
                    "Embedding job superseded",
                    extra={"job_id": job.id, "entity_id": job.entity_id},
                )
                return True
            stored = self.store.set_embedding(job.collection, job.entity_id, vector)
        except (EmbeddingProviderError, ValueError) as exc:
            self._record_failure(job, str(exc))
            return False
        except Exception as exc:  # worker must survive unexpected errors
            logger.exception("Unexpected embedding failure for job %s", job.id)
            self._record_failure(job, f"Unexpected error: {exc}")
            return False

        self._delete_job(job.id)
        duration_ms = (time.time() - start_time) * 1000
        logger.info(
            "Embedding refreshed" if stored else "Embedding dropped for deleted entity",
            extra={
                "job_id": job.id,
                "user_id": job.user_id,
                "collection": job.collection.value,
                "entity_id": job.entity_id,
                "attempts": job.attempts + 1,
                "duration_ms": f"{duration_ms:.2f}",
            },
        )
        return True

    def list_jobs(self, user_id: str, status: str | None = None) -> List[EmbeddingJob]:
        query = (
            "SELECT id, user_id, collection, entity_id, status, attempts, last_error,"
            " created_at, updated_at FROM embedding_jobs WHERE user_id = ?"
        )
        params: list = [user_id]
        if status:
            query += " AND status = ?"
            params.append(status)
        query += " ORDER BY id"

        conn = self.db_service.connect()
        try:
            rows = conn.execute(query, params).fetchall()
        finally:
            conn.close()
        return [self._row_to_job(row) for row in rows]

    def retry_failed(self, user_id: str) -> int:
        """Re-queue the user's failed jobs with a fresh attempt budget."""
        conn = self.db_service.connect()
        try:
            with conn:
                cursor = conn.execute(
                    """
                    UPDATE embedding_jobs
                    SET status = 'pending', attempts = 0, updated_at = ?
                    WHERE user_id = ? AND status = 'failed'
                    """,
                    (_utcnow_iso(), user_id),
                )
                requeued = cursor.rowcount
        finally:
            conn.close()
        if requeued and self._wakeup is not None:
            self._wakeup.set()
        return requeued

    def start(self) -> None:
        """Start the worker on the running event loop."""
        if self._task is not None and not self._task.done():
            return
        self._wakeup = asyncio.Event()
        self._task = asyncio.create_task(self._run_forever(), name="embedding-queue")
        logger.info("Embedding queue worker started")

    async def stop(self) -> None:
        if self._task is None:
            return
        self._task.cancel()
        try:
            await self._task
        except asyncio.CancelledError:
            pass
        self._task = None
        self._wakeup = None
        logger.info("Embedding queue worker stopped")

    async def _run_forever(self) -> None:
        assert self._wakeup is not None
        while True:
            self._wakeup.clear()
            try:
                await self.process_pending()
            except Exception:
                logger.exception("Embedding queue sweep failed")
            try:
                await asyncio.wait_for(self._wakeup.wait(), timeout=self.poll_interval)
            except asyncio.TimeoutError:
                pass

    def _next_pending(self, after_id: int = 0) -> Optional[EmbeddingJob]:
        conn = self.db_service.connect()
        try:
            row = conn.execute(
                """
                SELECT id, user_id, collection, entity_id, status, attempts, last_error,
                       created_at, updated_at
                FROM embedding_jobs
                WHERE status = 'pending' AND id > ?
                ORDER BY id
                LIMIT 1
                """,
                (after_id,),
            ).fetchone()
        finally:
            conn.close()
        return self._row_to_job(row) if row else None

    def _job_content(self, job_id: int) -> Optional[str]:
        conn = self.db_service.connect()
        try:
            row = conn.execute(
                "SELECT content FROM embedding_jobs WHERE id = ?", (job_id,)
            ).fetchone()
        finally:
            conn.close()
        return row["content"] if row else None

    def _record_failure(self, job: EmbeddingJob, error: str) -> None:
        attempts = job.attempts + 1
        status = "failed" if attempts >= self.max_attempts else "pending"
        conn = self.db_service.connect()
        try:
            with conn:
                conn.execute(
                    """
                    UPDATE embedding_jobs
                    SET attempts = ?, status = ?, last_error = ?, updated_at = ?
                    WHERE id = ?
                    """,
                    (attempts, status, error, _utcnow_iso(), job.id),
                )
        finally:
            conn.close()
        logger.warning(
            "Embedding refresh failed",
            extra={
                "job_id": job.id,
                "user_id": job.user_id,
                "collection": job.collection.value,
                "entity_id": job.entity_id,
                "attempts": attempts,
                "status": status,
                "error": error,
            },
        )

    def _delete_job(self, job_id: int) -> None:
        conn = self.db_service.connect()
        try:
            with conn:
                conn.execute("DELETE FROM embedding_jobs WHERE id = ?", (job_id,))
        finally:
            conn.close()

    @staticmethod
    def _row_to_job(row) -> EmbeddingJob:
        return EmbeddingJob(
            id=row["id"],
            user_id=row["user_id"],
            collection=Collection(row["collection"]),
            entity_id=row["entity_id"],
            status=row["status"],
            attempts=row["attempts"],
            last_error=row["last_error"],
            created_at=datetime.fromisoformat(row["created_at"]),
            updated_at=datetime.fromisoformat(row["updated_at"]),
        )


_queue: Optional[EmbeddingQueue] = None


def get_embedding_queue() -> EmbeddingQueue:
    """Get or create the embedding queue singleton."""
    global _queue
    if _queue is None:
        _queue = EmbeddingQueue()
    return _queue


__all__ = ["EmbeddingQueue", "get_embedding_queue"]
