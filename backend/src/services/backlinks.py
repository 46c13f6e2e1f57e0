"""Backlink Resolver - who points at a note, via edges or via [[wiki-links]]."""

from __future__ import annotations

import logging
from typing import List, Optional

from ..models.canvas import Backlink, CanvasNode
from .canvas_service import CanvasService, get_canvas_service
from .markup import normalize_title, references_title

logger = logging.getLogger(__name__)


class BacklinkResolver:
    """
    Two independent notions of backlink:

    * direct: sources of canvas edges whose target is the node
    * wiki-link: notes whose content contains ``[[Title]]`` for the node's title

    They are not reconciled with each other.
    """

    def __init__(self, canvas_service: CanvasService | None = None) -> None:
        self.canvas_service = canvas_service or get_canvas_service()

    def get_direct_backlinks(self, user_id: str, node_id: str) -> List[Backlink]:
        if self.canvas_service.get_node(node_id, user_id) is None:
            return []

        backlinks: List[Backlink] = []
        for edge in self.canvas_service.list_incoming_edges(user_id, node_id):
            source = self.canvas_service.get_node(edge.source, user_id)
            if source is None:
                continue
            backlinks.append(Backlink(node=source, edge_id=edge.id, edge_label=edge.label))
        return backlinks

    def get_wikilink_backlinks(self, user_id: str, title: str) -> List[CanvasNode]:
        """Notes linking to ``title``, excluding notes that carry that title themselves."""
        wanted = normalize_title(title)
        if not wanted:
            return []

        results: List[CanvasNode] = []
        candidates = self.canvas_service.find_notes_mentioning(user_id, title)
        for note in candidates:
            if normalize_title(note.title) == wanted:
                continue
            if references_title(note.content, title):
                results.append(note)

        logger.debug(
            "Wiki-link backlinks resolved",
            extra={"user_id": user_id, "candidates": len(candidates), "matches": len(results)},
        )
        return results


_resolver: Optional[BacklinkResolver] = None


def get_backlink_resolver() -> BacklinkResolver:
    global _resolver
    if _resolver is None:
        _resolver = BacklinkResolver()
    return _resolver


__all__ = ["BacklinkResolver", "get_backlink_resolver"]
