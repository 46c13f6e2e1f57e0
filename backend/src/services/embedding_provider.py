"""
Embedding provider clients.

The provider maps a text string to a fixed-length vector through a remote
OpenAI-compatible ``/embeddings`` endpoint. Calls are never retried here;
callers decide whether a failed embed is worth another attempt.
"""

from __future__ import annotations

import abc
import logging
import time
from typing import List, Optional

import httpx

from .config import AppConfig, get_config

logger = logging.getLogger(__name__)


class EmbeddingProviderError(Exception):
    """Raised when embedding generation fails."""

    def __init__(self, message: str, *, status_code: Optional[int] = None) -> None:
        super().__init__(message)
        self.message = message
        self.status_code = status_code


class EmbeddingProvider(abc.ABC):
    """Abstract text -> vector function."""

    dimensions: int

    @abc.abstractmethod
    async def embed(self, text: str) -> List[float]:
        """Return the embedding for ``text`` or raise EmbeddingProviderError."""


class OpenAIEmbeddingProvider(EmbeddingProvider):
    """Embeddings via the OpenAI HTTP API (text-embedding-3-small by default)."""

    def __init__(
        self,
        config: AppConfig | None = None,
        *,
        transport: httpx.AsyncBaseTransport | None = None,
    ) -> None:
        self.config = config or get_config()
        self.model = self.config.embedding_model
        self.base_url = self.config.embedding_base_url
        self.dimensions = self.config.embedding_dimensions
        self._transport = transport

    async def embed(self, text: str) -> List[float]:
        api_key = self.config.openai_api_key
        if not api_key:
            raise EmbeddingProviderError("OPENAI_API_KEY is not configured", status_code=401)

        start_time = time.time()
        try:
            async with httpx.AsyncClient(
                timeout=self.config.embedding_timeout, transport=self._transport
            ) as client:
                response = await client.post(
                    f"{self.base_url}/embeddings",
                    headers={
                        "Authorization": f"Bearer {api_key}",
                        "Content-Type": "application/json",
                    },
                    json={"model": self.model, "input": text},
                )
        except httpx.TimeoutException as exc:
            raise EmbeddingProviderError("Embedding API request timed out") from exc
        except httpx.RequestError as exc:
            raise EmbeddingProviderError(f"Network error calling embedding API: {exc}") from exc

        if response.status_code == 429:
            retry_after = response.headers.get("Retry-After", "60")
            raise EmbeddingProviderError(
                f"Rate limited. Retry after {retry_after} seconds.", status_code=429
            )

        if response.status_code != 200:
            raise EmbeddingProviderError(
                _error_message(response), status_code=response.status_code
            )

        try:
            data = response.json()
            embedding = data["data"][0]["embedding"]
        except (ValueError, KeyError, IndexError, TypeError) as exc:
            raise EmbeddingProviderError("No embedding data in API response") from exc

        if not isinstance(embedding, list) or not all(
            isinstance(x, (int, float)) for x in embedding
        ):
            raise EmbeddingProviderError("Invalid embedding format from API")
        if len(embedding) != self.dimensions:
            raise EmbeddingProviderError(
                f"Expected {self.dimensions} dimensions, got {len(embedding)}"
            )

        duration_ms = (time.time() - start_time) * 1000
        logger.debug(
            "Embedding generated",
            extra={
                "model": self.model,
                "input_chars": len(text),
                "duration_ms": f"{duration_ms:.2f}",
            },
        )
        return [float(x) for x in embedding]


def _error_message(response: httpx.Response) -> str:
    """Prefer the upstream ``error.message`` field, falling back to raw text."""
    try:
        payload = response.json()
    except ValueError:
        payload = None
    if isinstance(payload, dict):
        error = payload.get("error")
        if isinstance(error, dict) and error.get("message"):
            return str(error["message"])
    return f"Embedding API returned {response.status_code}: {response.text}"


_provider: Optional[EmbeddingProvider] = None


def get_embedding_provider() -> EmbeddingProvider:
    """Get or create the embedding provider singleton."""
    global _provider
    if _provider is None:
        _provider = OpenAIEmbeddingProvider()
    return _provider


__all__ = [
    "EmbeddingProvider",
    "EmbeddingProviderError",
    "OpenAIEmbeddingProvider",
    "get_embedding_provider",
]
