"""Relatedness Engine - semantic neighbours of a text across messages and notes."""

from __future__ import annotations

import asyncio
import logging
import time
from typing import List, Optional, Sequence, Tuple

from ..models.embedding import Collection
from ..models.related import RankedItem, RelatedMessage, RelatedNode, RelatedResult
from .canvas_service import CanvasService, get_canvas_service
from .embedding_provider import EmbeddingProvider, get_embedding_provider
from .message_service import MessageService, get_message_service
from .vector_index import VectorIndex, get_vector_index

logger = logging.getLogger(__name__)

DEFAULT_LIMIT = 5
MAX_LIMIT = 256


class RelatednessEngine:
    """
    Embed a query once, search both collections independently and keep only
    the hits the requesting user owns.

    The vector index is global; ownership is enforced here by resolving every
    hit through the owner-checked lookups of the entity services.
    """

    def __init__(
        self,
        provider: EmbeddingProvider | None = None,
        vector_index: VectorIndex | None = None,
        message_service: MessageService | None = None,
        canvas_service: CanvasService | None = None,
    ) -> None:
        self.provider = provider or get_embedding_provider()
        self.vector_index = vector_index or get_vector_index()
        self.message_service = message_service or get_message_service()
        self.canvas_service = canvas_service or get_canvas_service()

    async def find_related(
        self, query: str, user_id: str, limit: int = DEFAULT_LIMIT
    ) -> RelatedResult:
        if not query or not query.strip():
            raise ValueError("Query must not be empty")
        if not 1 <= limit <= MAX_LIMIT:
            raise ValueError(f"limit must be between 1 and {MAX_LIMIT}")

        start_time = time.time()
        query_vector = await self.provider.embed(query)
        # sqlite reads and numpy scoring stay off the event loop
        messages, nodes = await asyncio.to_thread(self._collect_hits, query_vector, user_id, limit)

        duration_ms = (time.time() - start_time) * 1000
        logger.info(
            "Related search completed",
            extra={
                "user_id": user_id,
                "limit": limit,
                "message_hits": len(messages),
                "node_hits": len(nodes),
                "duration_ms": f"{duration_ms:.2f}",
            },
        )
        return RelatedResult(messages=messages, nodes=nodes)

    def _collect_hits(
        self, query_vector: Sequence[float], user_id: str, limit: int
    ) -> Tuple[List[RelatedMessage], List[RelatedNode]]:
        messages: List[RelatedMessage] = []
        for message_id, score in self.vector_index.search(
            Collection.MESSAGES, query_vector, limit
        ):
            message = self.message_service.get_message(message_id, user_id)
            if message is None:
                continue
            messages.append(RelatedMessage(**message.model_dump(), score=score))

        nodes: List[RelatedNode] = []
        for node_id, score in self.vector_index.search(Collection.NODES, query_vector, limit):
            node = self.canvas_service.get_node(node_id, user_id)
            if node is None:
                continue
            nodes.append(RelatedNode(**node.model_dump(), score=score))

        messages.sort(key=lambda hit: hit.score, reverse=True)
        nodes.sort(key=lambda hit: hit.score, reverse=True)
        return messages, nodes


def merge_ranked(result: RelatedResult, limit: Optional[int] = None) -> List[RankedItem]:
    """Interleave both collections into one list, best score first."""
    items = [
        RankedItem(id=hit.id, content=hit.content, score=hit.score, type="message")
        for hit in result.messages
    ]
    items.extend(
        RankedItem(id=hit.id, content=hit.content, score=hit.score, type="node")
        for hit in result.nodes
    )
    items.sort(key=lambda item: item.score, reverse=True)
    return items[:limit] if limit is not None else items


_engine: Optional[RelatednessEngine] = None


def get_relatedness_engine() -> RelatednessEngine:
    """Get or create the relatedness engine singleton."""
    global _engine
    if _engine is None:
        _engine = RelatednessEngine()
    return _engine


__all__ = ["RelatednessEngine", "merge_ranked", "get_relatedness_engine", "MAX_LIMIT"]
