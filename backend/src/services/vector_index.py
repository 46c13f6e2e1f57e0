"""Nearest-neighbour vector index over embedded entities."""

from __future__ import annotations

import abc
from datetime import datetime, timezone
import logging
import sqlite3
from typing import List, Optional, Sequence, Tuple

import numpy as np

from ..models.embedding import Collection
from .database import DatabaseService

logger = logging.getLogger(__name__)


def _utcnow_iso() -> str:
    return datetime.now(timezone.utc).isoformat(timespec="seconds")


def serialize_vector(vector: Sequence[float]) -> bytes:
    return np.asarray(vector, dtype=np.float32).tobytes()


def deserialize_vector(data: bytes) -> np.ndarray:
    return np.frombuffer(data, dtype=np.float32)


class VectorIndex(abc.ABC):
    """One logical index per collection, keyed by entity id."""

    @abc.abstractmethod
    def upsert(self, collection: Collection, entity_id: str, vector: Sequence[float]) -> None:
        """Insert or replace the vector stored for ``entity_id``."""

    @abc.abstractmethod
    def delete(self, collection: Collection, entity_id: str) -> None:
        """Remove ``entity_id`` from the index (no-op when absent)."""

    @abc.abstractmethod
    def search(
        self, collection: Collection, query_vector: Sequence[float], k: int
    ) -> List[Tuple[str, float]]:
        """Return up to ``k`` ``(entity_id, score)`` pairs, best first."""


class SQLiteVectorIndex(VectorIndex):
    """
    Exact cosine-similarity search over vectors stored in SQLite.

    Vectors are stored as float32 blobs and scored in one numpy pass per
    query. Results are not owner-scoped: callers must resolve every hit
    through an owner-checked lookup before returning it.
    """

    def __init__(self, db_service: DatabaseService | None = None) -> None:
        self.db_service = db_service or DatabaseService()

    def upsert(self, collection: Collection, entity_id: str, vector: Sequence[float]) -> None:
        conn = self.db_service.connect()
        try:
            with conn:
                self.upsert_with(conn, collection, entity_id, vector)
        finally:
            conn.close()

    def upsert_with(
        self,
        conn: sqlite3.Connection,
        collection: Collection,
        entity_id: str,
        vector: Sequence[float],
    ) -> None:
        """Upsert using a caller-owned connection (joins its transaction)."""
        conn.execute(
            """
            INSERT INTO vector_index (collection, entity_id, vector, dimensions, updated_at)
            VALUES (?, ?, ?, ?, ?)
            ON CONFLICT(collection, entity_id) DO UPDATE SET
                vector = excluded.vector,
                dimensions = excluded.dimensions,
                updated_at = excluded.updated_at
            """,
            (
                Collection(collection).value,
                entity_id,
                serialize_vector(vector),
                len(vector),
                _utcnow_iso(),
            ),
        )

    def delete(self, collection: Collection, entity_id: str) -> None:
        conn = self.db_service.connect()
        try:
            with conn:
                conn.execute(
                    "DELETE FROM vector_index WHERE collection = ? AND entity_id = ?",
                    (Collection(collection).value, entity_id),
                )
        finally:
            conn.close()

    def search(
        self, collection: Collection, query_vector: Sequence[float], k: int
    ) -> List[Tuple[str, float]]:
        if k < 1:
            return []

        query = np.asarray(query_vector, dtype=np.float32)
        conn = self.db_service.connect()
        try:
            rows = conn.execute(
                "SELECT entity_id, vector FROM vector_index WHERE collection = ? AND dimensions = ?",
                (Collection(collection).value, int(query.shape[0])),
            ).fetchall()
        finally:
            conn.close()

        if not rows:
            return []

        ids = [row["entity_id"] for row in rows]
        matrix = np.vstack([deserialize_vector(row["vector"]) for row in rows])
        scores = self._cosine_scores(matrix, query)

        # Stable sort keeps insertion order among equal scores.
        order = np.argsort(-scores, kind="stable")[:k]
        return [(ids[i], float(scores[i])) for i in order]

    @staticmethod
    def _cosine_scores(matrix: np.ndarray, query: np.ndarray) -> np.ndarray:
        query_norm = np.linalg.norm(query)
        row_norms = np.linalg.norm(matrix, axis=1)
        if query_norm == 0:
            return np.zeros(matrix.shape[0], dtype=np.float32)
        denom = row_norms * query_norm
        with np.errstate(divide="ignore", invalid="ignore"):
            scores = np.where(denom > 0, matrix @ query / denom, 0.0)
        return np.clip(scores, 0.0, 1.0)


_index: Optional[VectorIndex] = None


def get_vector_index() -> VectorIndex:
    """Get or create the vector index singleton."""
    global _index
    if _index is None:
        _index = SQLiteVectorIndex()
    return _index


__all__ = [
    "VectorIndex",
    "SQLiteVectorIndex",
    "get_vector_index",
    "serialize_vector",
    "deserialize_vector",
]
