"""Service layer for business logic and external integrations."""

from .auth import AuthError, AuthService
from .backlinks import BacklinkResolver, get_backlink_resolver
from .canvas_service import CanvasService, get_canvas_service
from .config import AppConfig, get_config, reload_config
from .database import DatabaseService, init_database
from .embedding_provider import (
    EmbeddingProvider,
    EmbeddingProviderError,
    OpenAIEmbeddingProvider,
    get_embedding_provider,
)
from .embedding_queue import EmbeddingQueue, get_embedding_queue
from .embedding_store import EmbeddingStore, get_embedding_store
from .link_materializer import LinkMaterializer, get_link_materializer, percent_label
from .message_service import MessageService, get_message_service
from .relatedness import RelatednessEngine, get_relatedness_engine, merge_ranked
from .vector_index import SQLiteVectorIndex, VectorIndex, get_vector_index
from .wikilinks import WikiLinkService, get_wikilink_service

__all__ = [
    "AppConfig",
    "get_config",
    "reload_config",
    "DatabaseService",
    "init_database",
    "AuthService",
    "AuthError",
    "EmbeddingProvider",
    "EmbeddingProviderError",
    "OpenAIEmbeddingProvider",
    "get_embedding_provider",
    "VectorIndex",
    "SQLiteVectorIndex",
    "get_vector_index",
    "EmbeddingStore",
    "get_embedding_store",
    "EmbeddingQueue",
    "get_embedding_queue",
    "MessageService",
    "get_message_service",
    "CanvasService",
    "get_canvas_service",
    "RelatednessEngine",
    "get_relatedness_engine",
    "merge_ranked",
    "LinkMaterializer",
    "get_link_materializer",
    "percent_label",
    "BacklinkResolver",
    "get_backlink_resolver",
    "WikiLinkService",
    "get_wikilink_service",
]
