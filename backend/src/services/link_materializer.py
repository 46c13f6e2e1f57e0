"""Turn relatedness hits into labelled canvas edges."""

from __future__ import annotations

import logging
from typing import Callable, Iterable, List, Optional

from ..models.canvas import CanvasEdge
from ..models.related import RelatedNode
from .canvas_service import CanvasService, get_canvas_service
from .config import get_config
from .relatedness import RelatednessEngine, get_relatedness_engine

logger = logging.getLogger(__name__)

DEFAULT_RELATED_LIMIT = 3

LabelFormatter = Callable[[float], str]


def percent_label(score: float) -> str:
    """0.874 -> '87%'."""
    return f"{round(score * 100)}%"


class LinkMaterializer:
    def __init__(
        self,
        canvas_service: CanvasService | None = None,
        engine: RelatednessEngine | None = None,
        *,
        dedupe: bool | None = None,
    ) -> None:
        self.canvas_service = canvas_service or get_canvas_service()
        self._engine = engine
        self.dedupe = get_config().dedupe_related_edges if dedupe is None else dedupe

    @property
    def engine(self) -> RelatednessEngine:
        if self._engine is None:
            self._engine = get_relatedness_engine()
        return self._engine

    def materialize_links(
        self,
        user_id: str,
        source_node_id: str,
        related_nodes: Iterable[RelatedNode],
        label_formatter: LabelFormatter = percent_label,
    ) -> List[CanvasEdge]:
        """
        Create one edge from ``source_node_id`` to each related node.

        Edges are written one by one; if a write fails the ones already
        created stay in place and the error propagates.
        """
        edges: List[CanvasEdge] = []
        for hit in related_nodes:
            if hit.id == source_node_id:
                continue
            edge = self.canvas_service.create_edge(
                user_id,
                source_node_id,
                hit.id,
                label_formatter(hit.score),
                upsert=self.dedupe,
            )
            if edge is None:
                logger.debug(
                    "Skipped edge to unavailable node",
                    extra={"user_id": user_id, "source": source_node_id, "target": hit.id},
                )
                continue
            edges.append(edge)

        logger.info(
            "Materialized related links",
            extra={"user_id": user_id, "source": source_node_id, "edges": len(edges)},
        )
        return edges

    async def link_related(
        self, user_id: str, node_id: str, limit: int = DEFAULT_RELATED_LIMIT
    ) -> Optional[List[CanvasEdge]]:
        """Find notes related to ``node_id`` and connect them. None if the node is not the user's."""
        node = self.canvas_service.get_node(node_id, user_id)
        if node is None:
            return None
        result = await self.engine.find_related(node.content, user_id, limit=limit)
        return self.materialize_links(user_id, node_id, result.nodes)


_materializer: Optional[LinkMaterializer] = None


def get_link_materializer() -> LinkMaterializer:
    global _materializer
    if _materializer is None:
        _materializer = LinkMaterializer()
    return _materializer


__all__ = ["LinkMaterializer", "percent_label", "get_link_materializer"]
