"""Persistence of the current embedding for each message and canvas node."""

from __future__ import annotations

import logging
from typing import Dict, List, Optional, Sequence

from ..models.embedding import Collection
from .config import get_config
from .database import DatabaseService
from .vector_index import SQLiteVectorIndex, VectorIndex, deserialize_vector, serialize_vector

logger = logging.getLogger(__name__)

_ENTITY_TABLES: Dict[Collection, str] = {
    Collection.MESSAGES: "messages",
    Collection.NODES: "canvas_nodes",
}


class EmbeddingStore:
    """
    Keep exactly one current vector per entity, pushed into the vector index.

    Writes are internal: callers are expected to have verified ownership of
    the entity before asking for an embedding.
    """

    def __init__(
        self,
        db_service: DatabaseService | None = None,
        vector_index: VectorIndex | None = None,
        *,
        dimensions: int | None = None,
    ) -> None:
        self.db_service = db_service or DatabaseService()
        self.vector_index = vector_index or SQLiteVectorIndex(self.db_service)
        self.dimensions = dimensions or get_config().embedding_dimensions

    def set_embedding(
        self, collection: Collection, entity_id: str, vector: Sequence[float]
    ) -> bool:
        """
        Overwrite the entity's embedding and upsert it into the index.

        Returns False (and writes nothing) when the entity no longer exists,
        e.g. it was deleted while its embedding was being computed.
        """
        collection = Collection(collection)
        if len(vector) != self.dimensions:
            raise ValueError(
                f"Embedding must have {self.dimensions} dimensions, got {len(vector)}"
            )

        table = _ENTITY_TABLES[collection]
        conn = self.db_service.connect()
        try:
            with conn:
                cursor = conn.execute(
                    f"UPDATE {table} SET embedding = ? WHERE id = ?",
                    (serialize_vector(vector), entity_id),
                )
                if cursor.rowcount == 0:
                    logger.info(
                        "Dropping embedding for missing entity",
                        extra={"collection": collection.value, "entity_id": entity_id},
                    )
                    return False
                if isinstance(self.vector_index, SQLiteVectorIndex):
                    self.vector_index.upsert_with(conn, collection, entity_id, vector)
        finally:
            conn.close()

        if not isinstance(self.vector_index, SQLiteVectorIndex):
            self.vector_index.upsert(collection, entity_id, vector)
        return True

    def get_embedding(self, collection: Collection, entity_id: str) -> Optional[List[float]]:
        """Return the stored vector, or None if never embedded (or in flight)."""
        table = _ENTITY_TABLES[Collection(collection)]
        conn = self.db_service.connect()
        try:
            row = conn.execute(
                f"SELECT embedding FROM {table} WHERE id = ?", (entity_id,)
            ).fetchone()
        finally:
            conn.close()
        if row is None or row["embedding"] is None:
            return None
        return deserialize_vector(row["embedding"]).tolist()

    def remove_embedding(self, collection: Collection, entity_id: str) -> None:
        """Drop the entity from the vector index."""
        self.vector_index.delete(Collection(collection), entity_id)


_store: Optional[EmbeddingStore] = None


def get_embedding_store() -> EmbeddingStore:
    """Get or create the embedding store singleton."""
    global _store
    if _store is None:
        _store = EmbeddingStore()
    return _store


__all__ = ["EmbeddingStore", "get_embedding_store"]
