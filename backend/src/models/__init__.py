"""Pydantic models for data validation and serialization."""

from .auth import JWTPayload, TokenResponse
from .canvas import (
    Backlink,
    CanvasEdge,
    CanvasEdgeCreate,
    CanvasNode,
    CanvasNodeCreate,
    CanvasNodeUpdate,
)
from .embedding import Collection, EmbeddingJob, EmbedResponse, RetryResponse
from .message import Conversation, ConversationCreate, Message, MessageCreate
from .related import RankedItem, RelatedMessage, RelatedNode, RelatedRequest, RelatedResult
from .user import User
from .wikilink import (
    WikiLinkOpenRequest,
    WikiLinkResolution,
    WikiLinkState,
    WikiLinkSuggestion,
    WikiLinkSuggestions,
)

__all__ = [
    "User",
    "TokenResponse",
    "JWTPayload",
    "CanvasNode",
    "CanvasNodeCreate",
    "CanvasNodeUpdate",
    "CanvasEdge",
    "CanvasEdgeCreate",
    "Backlink",
    "Collection",
    "EmbeddingJob",
    "EmbedResponse",
    "RetryResponse",
    "Conversation",
    "ConversationCreate",
    "Message",
    "MessageCreate",
    "RelatedMessage",
    "RelatedNode",
    "RelatedResult",
    "RelatedRequest",
    "RankedItem",
    "WikiLinkState",
    "WikiLinkSuggestion",
    "WikiLinkSuggestions",
    "WikiLinkOpenRequest",
    "WikiLinkResolution",
]
