"""Wiki-link suggestion and navigation for [[Title]] references."""

from __future__ import annotations

import logging
from typing import Callable, List, Optional

from ..models.canvas import CanvasNode, CanvasNodeCreate
from ..models.wikilink import (
    WikiLinkResolution,
    WikiLinkState,
    WikiLinkSuggestion,
    WikiLinkSuggestions,
)
from .canvas_service import CanvasService, get_canvas_service
from .markup import heading_for, normalize_title

logger = logging.getLogger(__name__)

MAX_SUGGESTIONS = 10

# user_id -> the user's notes in insertion order
TitleSource = Callable[[str], List[CanvasNode]]


class WikiLinkService:
    def __init__(
        self,
        canvas_service: CanvasService | None = None,
        title_source: TitleSource | None = None,
    ) -> None:
        self.canvas_service = canvas_service or get_canvas_service()
        self.title_source = title_source or self.canvas_service.list_notes

    def suggest(
        self, user_id: str, query: str, limit: int = MAX_SUGGESTIONS
    ) -> WikiLinkSuggestions:
        """Case-insensitive substring match over note titles."""
        limit = max(0, min(limit, MAX_SUGGESTIONS))
        needle = normalize_title(query)
        notes = self.title_source(user_id)

        items: List[WikiLinkSuggestion] = []
        exact = False
        for note in notes:
            title_key = normalize_title(note.title)
            if title_key == needle:
                exact = True
            if needle in title_key and len(items) < limit:
                items.append(WikiLinkSuggestion(id=note.id, title=note.title))

        return WikiLinkSuggestions(
            query=query,
            state=WikiLinkState.SUGGESTING,
            items=items,
            can_create=bool(needle) and not exact,
        )

    def resolve(self, user_id: str, title: str) -> Optional[CanvasNode]:
        """Earliest note whose title matches exactly, ignoring case."""
        matches = self.canvas_service.find_notes_by_title(user_id, title)
        return matches[0] if matches else None

    def open_link(
        self, user_id: str, title: str, create_if_missing: bool = True
    ) -> WikiLinkResolution:
        """Navigate to the note for ``title``, creating it when allowed."""
        title = title.strip()
        if not title:
            raise ValueError("Wiki-link title must not be empty")

        existing = self.resolve(user_id, title)
        if existing is not None:
            return WikiLinkResolution(
                title=existing.title,
                state=WikiLinkState.NAVIGATED,
                node_id=existing.id,
                created=False,
            )

        if not create_if_missing:
            raise LookupError(f"No note titled '{title}'")

        node = self.canvas_service.create_node(
            user_id,
            CanvasNodeCreate(type="note", content=heading_for(title), title=title),
        )
        logger.info(
            "Created note from wiki-link",
            extra={"user_id": user_id, "node_id": node.id, "title": title},
        )
        return WikiLinkResolution(
            title=node.title,
            state=WikiLinkState.NAVIGATED,
            node_id=node.id,
            created=True,
        )


_wikilink_service: Optional[WikiLinkService] = None


def get_wikilink_service() -> WikiLinkService:
    global _wikilink_service
    if _wikilink_service is None:
        _wikilink_service = WikiLinkService()
    return _wikilink_service


__all__ = ["WikiLinkService", "get_wikilink_service", "MAX_SUGGESTIONS"]
