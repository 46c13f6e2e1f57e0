"""HTTP API route handlers."""

from . import auth, canvas, conversations, embeddings, notes, related

__all__ = ["auth", "canvas", "conversations", "embeddings", "notes", "related"]
