"""HTTP API routes for inspecting and retrying background embedding jobs."""

from __future__ import annotations

from typing import List, Literal, Optional

from fastapi import APIRouter, Depends, Query

from ..middleware import AuthContext, get_auth_context
from ...models.embedding import EmbeddingJob, RetryResponse
from ...services.embedding_queue import EmbeddingQueue, get_embedding_queue

router = APIRouter(prefix="/api/embeddings", tags=["embeddings"])


@router.get("/jobs", response_model=List[EmbeddingJob])
async def list_jobs(
    status: Optional[Literal["pending", "failed"]] = Query(None),
    auth: AuthContext = Depends(get_auth_context),
    queue: EmbeddingQueue = Depends(get_embedding_queue),
):
    """Outstanding refresh jobs for the caller, oldest first."""
    return queue.list_jobs(auth.user_id, status=status)


@router.post("/jobs/retry", response_model=RetryResponse)
async def retry_failed_jobs(
    auth: AuthContext = Depends(get_auth_context),
    queue: EmbeddingQueue = Depends(get_embedding_queue),
):
    """Put the caller's failed jobs back in the queue with a fresh attempt budget."""
    return RetryResponse(requeued=queue.retry_failed(auth.user_id))


__all__ = ["router"]
