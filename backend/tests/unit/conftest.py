import hashlib
from pathlib import Path
from typing import Dict, List, Optional, Sequence

import pytest

from backend.src.services import config as config_module
from backend.src.services.canvas_service import CanvasService
from backend.src.services.database import DatabaseService
from backend.src.services.embedding_provider import EmbeddingProvider
from backend.src.services.embedding_queue import EmbeddingQueue
from backend.src.services.embedding_store import EmbeddingStore
from backend.src.services.message_service import MessageService
from backend.src.services.relatedness import RelatednessEngine
from backend.src.services.vector_index import SQLiteVectorIndex

DIMS = 4


class FakeEmbeddingProvider(EmbeddingProvider):
    """Deterministic provider: explicit vectors per text, hashed ones otherwise."""

    dimensions = DIMS

    def __init__(self, vectors: Optional[Dict[str, Sequence[float]]] = None) -> None:
        self.vectors: Dict[str, Sequence[float]] = dict(vectors or {})
        self.error: Optional[Exception] = None
        self.calls: List[str] = []

    async def embed(self, text: str) -> List[float]:
        self.calls.append(text)
        if self.error is not None:
            raise self.error
        if text in self.vectors:
            return [float(x) for x in self.vectors[text]]
        digest = hashlib.sha256(text.encode("utf-8")).digest()
        return [b / 255.0 + 0.01 for b in digest[:DIMS]]


@pytest.fixture(autouse=True)
def isolated_config(monkeypatch, tmp_path: Path):
    monkeypatch.setenv("DATABASE_PATH", str(tmp_path / "default.db"))
    monkeypatch.delenv("JWT_SECRET_KEY", raising=False)
    monkeypatch.delenv("DEDUPE_RELATED_EDGES", raising=False)
    config_module.reload_config()
    yield
    config_module.get_config.cache_clear()


@pytest.fixture()
def db_service(tmp_path: Path) -> DatabaseService:
    service = DatabaseService(tmp_path / "memex.db")
    service.initialize()
    return service


@pytest.fixture()
def provider() -> FakeEmbeddingProvider:
    return FakeEmbeddingProvider()


@pytest.fixture()
def vector_index(db_service: DatabaseService) -> SQLiteVectorIndex:
    return SQLiteVectorIndex(db_service)


@pytest.fixture()
def embedding_store(db_service: DatabaseService, vector_index: SQLiteVectorIndex) -> EmbeddingStore:
    return EmbeddingStore(db_service, vector_index, dimensions=DIMS)


@pytest.fixture()
def queue(
    db_service: DatabaseService,
    provider: FakeEmbeddingProvider,
    embedding_store: EmbeddingStore,
) -> EmbeddingQueue:
    return EmbeddingQueue(
        db_service, provider, embedding_store, max_attempts=3, poll_interval=0.05
    )


@pytest.fixture()
def canvas(
    db_service: DatabaseService, queue: EmbeddingQueue, embedding_store: EmbeddingStore
) -> CanvasService:
    return CanvasService(db_service, queue, embedding_store)


@pytest.fixture()
def messages(
    db_service: DatabaseService, queue: EmbeddingQueue, embedding_store: EmbeddingStore
) -> MessageService:
    return MessageService(db_service, queue, embedding_store)


@pytest.fixture()
def engine(
    provider: FakeEmbeddingProvider,
    vector_index: SQLiteVectorIndex,
    messages: MessageService,
    canvas: CanvasService,
) -> RelatednessEngine:
    return RelatednessEngine(provider, vector_index, messages, canvas)
