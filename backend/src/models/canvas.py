"""Canvas node and edge models."""

from __future__ import annotations

from datetime import datetime
from typing import List, Literal, Optional

from pydantic import BaseModel, ConfigDict, Field

NodeType = Literal["text", "chat_reference", "note"]
SourceType = Literal["manual", "voice", "chat", "ai_extracted", "web", "youtube", "readwise"]


class CanvasNode(BaseModel):
    """A note or text card placed on the canvas."""

    model_config = ConfigDict(
        json_schema_extra={
            "example": {
                "id": "5f0c2b1e9d7a4c4b8a3e0f6d2c1b9a87",
                "user_id": "alice",
                "type": "note",
                "content": "# Project Alpha\n\nSee [[Roadmap]].",
                "title": "Project Alpha",
                "x": 120.0,
                "y": 80.0,
                "width": 300.0,
                "height": 150.0,
                "source_type": "manual",
                "outgoing_links": ["Roadmap"],
                "has_embedding": True,
                "created_at": "2025-01-10T09:00:00+00:00",
                "updated_at": "2025-01-15T14:30:00+00:00",
            }
        }
    )

    id: str
    user_id: str = Field(..., description="Owner user ID")
    type: NodeType
    content: str
    title: str = Field(..., description="Explicit title or one derived from content")
    x: float = 0.0
    y: float = 0.0
    width: float = 300.0
    height: float = 150.0
    message_id: Optional[str] = None
    conversation_id: Optional[str] = None
    source_type: SourceType = "manual"
    source_id: Optional[str] = None
    source_url: Optional[str] = None
    parent_node_id: Optional[str] = None
    outgoing_links: List[str] = Field(default_factory=list)
    has_embedding: bool = False
    created_at: datetime
    updated_at: datetime


class CanvasNodeCreate(BaseModel):
    """Request payload to create a canvas node."""

    type: NodeType = "note"
    content: str = Field(..., max_length=1_048_576)
    title: Optional[str] = Field(None, max_length=256)
    x: float = 0.0
    y: float = 0.0
    width: Optional[float] = Field(None, gt=0)
    height: Optional[float] = Field(None, gt=0)
    message_id: Optional[str] = None
    conversation_id: Optional[str] = None
    source_type: SourceType = "manual"
    source_id: Optional[str] = None
    source_url: Optional[str] = None
    parent_node_id: Optional[str] = None
    outgoing_links: Optional[List[str]] = None


class CanvasNodeUpdate(BaseModel):
    """Partial update; omitted fields are left untouched."""

    content: Optional[str] = Field(None, max_length=1_048_576)
    title: Optional[str] = Field(None, max_length=256)
    x: Optional[float] = None
    y: Optional[float] = None
    width: Optional[float] = Field(None, gt=0)
    height: Optional[float] = Field(None, gt=0)


class CanvasEdge(BaseModel):
    """Directed connection between two canvas nodes."""

    id: str
    user_id: str
    source: str
    target: str
    label: Optional[str] = None
    created_at: datetime


class CanvasEdgeCreate(BaseModel):
    source: str
    target: str
    label: Optional[str] = Field(None, max_length=64)


class Backlink(BaseModel):
    """A node pointing at the current node through an explicit edge."""

    node: CanvasNode
    edge_id: str
    edge_label: Optional[str] = None


__all__ = [
    "NodeType",
    "SourceType",
    "CanvasNode",
    "CanvasNodeCreate",
    "CanvasNodeUpdate",
    "CanvasEdge",
    "CanvasEdgeCreate",
    "Backlink",
]
