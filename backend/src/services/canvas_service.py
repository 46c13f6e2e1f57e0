"""Canvas Service - owner-checked CRUD for canvas nodes and edges."""

from __future__ import annotations

from datetime import datetime, timezone
import html
import json
import logging
import sqlite3
import uuid
from typing import Any, Dict, List, Optional

from ..models.canvas import (
    CanvasEdge,
    CanvasNode,
    CanvasNodeCreate,
    CanvasNodeUpdate,
)
from ..models.embedding import Collection
from .database import DatabaseService
from .embedding_queue import EmbeddingQueue, get_embedding_queue
from .embedding_store import EmbeddingStore, get_embedding_store
from .markup import derive_title, extract_wikilinks, normalize_title

logger = logging.getLogger(__name__)

DEFAULT_NODE_WIDTH = 300.0
DEFAULT_NODE_HEIGHT = 150.0

NODE_COLUMNS = """
    id, user_id, type, content, title, x, y, width, height,
    message_id, conversation_id, source_type, source_id, source_url,
    parent_node_id, outgoing_links, created_at, updated_at,
    embedding IS NOT NULL AS has_embedding
"""


def _utcnow_iso() -> str:
    return datetime.now(timezone.utc).isoformat(timespec="seconds")


def _new_id() -> str:
    return uuid.uuid4().hex


def _escape_like(value: str) -> str:
    return value.replace("\\", "\\\\").replace("%", "\\%").replace("_", "\\_")


class CanvasService:
    """
    Storage for canvas nodes (notes) and the edges between them.

    Every read takes the requesting ``user_id``; a node that does not exist
    and a node owned by someone else are indistinguishable (``None``).
    """

    def __init__(
        self,
        db_service: DatabaseService | None = None,
        embedding_queue: EmbeddingQueue | None = None,
        embedding_store: EmbeddingStore | None = None,
    ) -> None:
        self._db = db_service or DatabaseService()
        self._queue = embedding_queue
        self._store = embedding_store

    @property
    def queue(self) -> EmbeddingQueue:
        if self._queue is None:
            self._queue = get_embedding_queue()
        return self._queue

    @property
    def store(self) -> EmbeddingStore:
        if self._store is None:
            self._store = get_embedding_store()
        return self._store

    # ------------------------------------------------------------------
    # Nodes
    # ------------------------------------------------------------------

    def list_nodes(self, user_id: str) -> List[CanvasNode]:
        return self._select_nodes(
            "WHERE user_id = ? ORDER BY created_at, rowid", (user_id,)
        )

    def list_notes(self, user_id: str) -> List[CanvasNode]:
        """Nodes of type ``note`` in insertion order."""
        return self._select_nodes(
            "WHERE user_id = ? AND type = 'note' ORDER BY created_at, rowid", (user_id,)
        )

    def list_nodes_by_source(self, user_id: str, source_id: str) -> List[CanvasNode]:
        """Nodes created from a given source (e.g. a voice note)."""
        return self._select_nodes(
            "WHERE user_id = ? AND source_id = ? ORDER BY created_at, rowid",
            (user_id, source_id),
        )

    def get_node(self, node_id: str, user_id: str) -> Optional[CanvasNode]:
        """Owner-checked lookup."""
        nodes = self._select_nodes("WHERE id = ? AND user_id = ?", (node_id, user_id))
        return nodes[0] if nodes else None

    def find_notes_by_title(self, user_id: str, title: str) -> List[CanvasNode]:
        """Notes whose display title equals ``title`` case-insensitively."""
        wanted = normalize_title(title)
        if not wanted:
            return []
        return [note for note in self.list_notes(user_id) if normalize_title(note.title) == wanted]

    def find_notes_mentioning(self, user_id: str, text: str) -> List[CanvasNode]:
        """
        Cheap SQL prefilter for notes whose content may reference ``text``.

        Matches on the longest word of ``text`` so whitespace differences in
        the content do not hide a candidate. Words that editor HTML would store
        entity-escaped (``R&D`` as ``R&amp;D``) cannot be matched literally and
        are skipped. Callers confirm with a real scan.
        """
        words = [word for word in text.split() if word]
        if not words:
            return []
        # sqlite lower() only folds ASCII
        searchable = [
            word for word in words if word.isascii() and html.escape(word) == word
        ]
        if not searchable:
            return self.list_notes(user_id)
        needle = max(searchable, key=len)
        return self._select_nodes(
            """
            WHERE user_id = ? AND type = 'note'
              AND lower(content) LIKE ? ESCAPE '\\'
            ORDER BY created_at, rowid
            """,
            (user_id, f"%{_escape_like(needle.lower())}%"),
        )

    def create_node(self, user_id: str, payload: CanvasNodeCreate) -> CanvasNode:
        node_id = _new_id()
        now = _utcnow_iso()
        outgoing = (
            payload.outgoing_links
            if payload.outgoing_links is not None
            else extract_wikilinks(payload.content)
        )

        conn = self._db.connect()
        try:
            with conn:
                conn.execute(
                    """
                    INSERT INTO canvas_nodes (
                        id, user_id, type, content, title, x, y, width, height,
                        message_id, conversation_id, source_type, source_id, source_url,
                        parent_node_id, outgoing_links, created_at, updated_at
                    ) VALUES (?, ?, ?, ?, ?, ?, ?, ?, ?, ?, ?, ?, ?, ?, ?, ?, ?, ?)
                    """,
                    (
                        node_id,
                        user_id,
                        payload.type,
                        payload.content,
                        payload.title,
                        payload.x,
                        payload.y,
                        payload.width or DEFAULT_NODE_WIDTH,
                        payload.height or DEFAULT_NODE_HEIGHT,
                        payload.message_id,
                        payload.conversation_id,
                        payload.source_type,
                        payload.source_id,
                        payload.source_url,
                        payload.parent_node_id,
                        json.dumps(outgoing),
                        now,
                        now,
                    ),
                )
        finally:
            conn.close()

        logger.info(
            "Canvas node created",
            extra={"user_id": user_id, "node_id": node_id, "node_type": payload.type},
        )
        self.queue.enqueue(user_id, Collection.NODES, node_id, payload.content)

        node = self.get_node(node_id, user_id)
        assert node is not None
        return node

    def update_node(
        self, node_id: str, user_id: str, update: CanvasNodeUpdate
    ) -> Optional[CanvasNode]:
        """
        Apply a partial update. A content change re-derives outgoing links
        and schedules an embedding refresh; until it lands, searches still
        see the previous vector.
        """
        current = self.get_node(node_id, user_id)
        if current is None:
            return None

        changes: Dict[str, Any] = update.model_dump(exclude_none=True)
        content_changed = "content" in changes and changes["content"] != current.content
        if content_changed:
            changes["outgoing_links"] = json.dumps(extract_wikilinks(changes["content"]))
        if not changes:
            return current

        changes["updated_at"] = _utcnow_iso()
        assignments = ", ".join(f"{column} = ?" for column in changes)

        conn = self._db.connect()
        try:
            with conn:
                conn.execute(
                    f"UPDATE canvas_nodes SET {assignments} WHERE id = ? AND user_id = ?",
                    (*changes.values(), node_id, user_id),
                )
        finally:
            conn.close()

        if content_changed:
            self.queue.enqueue(user_id, Collection.NODES, node_id, update.content)

        return self.get_node(node_id, user_id)

    def delete_node(self, node_id: str, user_id: str) -> bool:
        """Delete a node together with every edge touching it."""
        conn = self._db.connect()
        try:
            with conn:
                cursor = conn.execute(
                    "DELETE FROM canvas_nodes WHERE id = ? AND user_id = ?",
                    (node_id, user_id),
                )
                if cursor.rowcount == 0:
                    return False
                edges = conn.execute(
                    "DELETE FROM canvas_edges WHERE source = ? OR target = ?",
                    (node_id, node_id),
                )
                removed_edges = edges.rowcount
        finally:
            conn.close()

        self.store.remove_embedding(Collection.NODES, node_id)
        self.queue.discard(Collection.NODES, node_id)
        logger.info(
            "Canvas node deleted",
            extra={"user_id": user_id, "node_id": node_id, "edges_removed": removed_edges},
        )
        return True

    # ------------------------------------------------------------------
    # Edges
    # ------------------------------------------------------------------

    def list_edges(self, user_id: str) -> List[CanvasEdge]:
        conn = self._db.connect()
        try:
            rows = conn.execute(
                """
                SELECT id, user_id, source, target, label, created_at
                FROM canvas_edges
                WHERE user_id = ?
                ORDER BY created_at, rowid
                """,
                (user_id,),
            ).fetchall()
        finally:
            conn.close()
        return [self._row_to_edge(row) for row in rows]

    def list_incoming_edges(self, user_id: str, target_id: str) -> List[CanvasEdge]:
        conn = self._db.connect()
        try:
            rows = conn.execute(
                """
                SELECT id, user_id, source, target, label, created_at
                FROM canvas_edges
                WHERE user_id = ? AND target = ?
                ORDER BY created_at, rowid
                """,
                (user_id, target_id),
            ).fetchall()
        finally:
            conn.close()
        return [self._row_to_edge(row) for row in rows]

    def create_edge(
        self,
        user_id: str,
        source: str,
        target: str,
        label: Optional[str] = None,
        *,
        upsert: bool = False,
    ) -> Optional[CanvasEdge]:
        """
        Connect two owned nodes. Returns None if either endpoint is absent.

        By default this is a blind insert and the same pair may be linked
        more than once; ``upsert`` reuses an existing (source, target) edge
        and refreshes its label instead.
        """
        if self.get_node(source, user_id) is None or self.get_node(target, user_id) is None:
            return None

        conn = self._db.connect()
        try:
            with conn:
                existing = None
                if upsert:
                    existing = conn.execute(
                        """
                        SELECT id FROM canvas_edges
                        WHERE user_id = ? AND source = ? AND target = ?
                        ORDER BY created_at, rowid LIMIT 1
                        """,
                        (user_id, source, target),
                    ).fetchone()
                if existing is not None:
                    edge_id = existing["id"]
                    conn.execute(
                        "UPDATE canvas_edges SET label = ? WHERE id = ?", (label, edge_id)
                    )
                else:
                    edge_id = _new_id()
                    conn.execute(
                        """
                        INSERT INTO canvas_edges (id, user_id, source, target, label, created_at)
                        VALUES (?, ?, ?, ?, ?, ?)
                        """,
                        (edge_id, user_id, source, target, label, _utcnow_iso()),
                    )
                row = conn.execute(
                    "SELECT id, user_id, source, target, label, created_at FROM canvas_edges WHERE id = ?",
                    (edge_id,),
                ).fetchone()
        finally:
            conn.close()
        return self._row_to_edge(row)

    def delete_edge(self, edge_id: str, user_id: str) -> bool:
        conn = self._db.connect()
        try:
            with conn:
                cursor = conn.execute(
                    "DELETE FROM canvas_edges WHERE id = ? AND user_id = ?",
                    (edge_id, user_id),
                )
                return cursor.rowcount > 0
        finally:
            conn.close()

    # ------------------------------------------------------------------
    # Row mapping
    # ------------------------------------------------------------------

    def _select_nodes(self, clause: str, params: tuple) -> List[CanvasNode]:
        conn = self._db.connect()
        try:
            rows = conn.execute(
                f"SELECT {NODE_COLUMNS} FROM canvas_nodes {clause}", params
            ).fetchall()
        finally:
            conn.close()
        return [self._row_to_node(row) for row in rows]

    @staticmethod
    def _row_to_node(row: sqlite3.Row) -> CanvasNode:
        try:
            outgoing = json.loads(row["outgoing_links"] or "[]")
        except ValueError:
            outgoing = []
        return CanvasNode(
            id=row["id"],
            user_id=row["user_id"],
            type=row["type"],
            content=row["content"],
            title=derive_title(row["content"], row["title"]),
            x=row["x"],
            y=row["y"],
            width=row["width"],
            height=row["height"],
            message_id=row["message_id"],
            conversation_id=row["conversation_id"],
            source_type=row["source_type"],
            source_id=row["source_id"],
            source_url=row["source_url"],
            parent_node_id=row["parent_node_id"],
            outgoing_links=outgoing,
            has_embedding=bool(row["has_embedding"]),
            created_at=datetime.fromisoformat(row["created_at"]),
            updated_at=datetime.fromisoformat(row["updated_at"]),
        )

    @staticmethod
    def _row_to_edge(row: sqlite3.Row) -> CanvasEdge:
        return CanvasEdge(
            id=row["id"],
            user_id=row["user_id"],
            source=row["source"],
            target=row["target"],
            label=row["label"],
            created_at=datetime.fromisoformat(row["created_at"]),
        )


_canvas_service: Optional[CanvasService] = None


def get_canvas_service() -> CanvasService:
    """Get or create the canvas service singleton."""
    global _canvas_service
    if _canvas_service is None:
        _canvas_service = CanvasService()
    return _canvas_service


__all__ = ["CanvasService", "get_canvas_service"]
