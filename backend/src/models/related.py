"""Relatedness query request/response models."""

from __future__ import annotations

from typing import List, Literal

from pydantic import BaseModel, Field

from .canvas import CanvasNode
from .message import Message


class RelatedMessage(Message):
    score: float = Field(..., ge=0.0, le=1.0, description="Similarity (higher is closer)")
    kind: Literal["message"] = "message"


class RelatedNode(CanvasNode):
    score: float = Field(..., ge=0.0, le=1.0, description="Similarity (higher is closer)")
    kind: Literal["node"] = "node"


class RelatedResult(BaseModel):
    """Per-collection hits, each list sorted by score descending."""

    messages: List[RelatedMessage] = Field(default_factory=list)
    nodes: List[RelatedNode] = Field(default_factory=list)


class RelatedRequest(BaseModel):
    query: str = Field(..., min_length=1, max_length=8192)
    limit: int = Field(5, ge=1, le=256)


class RankedItem(BaseModel):
    """Single entry of a cross-collection ranked list."""

    id: str
    content: str
    score: float
    type: Literal["message", "node"]


__all__ = ["RelatedMessage", "RelatedNode", "RelatedResult", "RelatedRequest", "RankedItem"]
