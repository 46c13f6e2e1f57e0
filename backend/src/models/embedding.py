"""Embedding collections and background refresh job models."""

from __future__ import annotations

from datetime import datetime
from enum import Enum
from typing import Literal, Optional

from pydantic import BaseModel, Field


class Collection(str, Enum):
    """Independently embedded entity collections."""

    MESSAGES = "messages"
    NODES = "canvas_nodes"


class EmbeddingJob(BaseModel):
    """A queued embedding refresh for one entity."""

    id: int
    user_id: str
    collection: Collection
    entity_id: str
    status: Literal["pending", "failed"] = "pending"
    attempts: int = Field(0, ge=0)
    last_error: Optional[str] = None
    created_at: datetime
    updated_at: datetime


class EmbedResponse(BaseModel):
    success: bool = True


class RetryResponse(BaseModel):
    requeued: int = Field(..., ge=0)


__all__ = ["Collection", "EmbeddingJob", "EmbedResponse", "RetryResponse"]
