"""Text embedders for note search and tag ranking.

`OpenAIEmbedder` is used whenever an API key is configured; `HashingEmbedder`
keeps search usable offline and in tests.
"""

from __future__ import annotations

import os
from abc import ABC, abstractmethod
from hashlib import blake2b, sha1
from math import sqrt
from typing import Any

from notes_agent.obs.logging import get_logger

logger = get_logger(__name__)

EMBEDDING_MODEL = "text-embedding-3-small"


class Embedder(ABC):
    """Maps texts to vectors; similar texts get a high cosine similarity."""

    @abstractmethod
    def embed_documents(self, texts: list[str]) -> list[list[float]]:
        """Embed many texts, one vector per input in order."""

    @abstractmethod
    def embed_query(self, text: str) -> list[float]:
        """Embed one search query."""


class EmbeddingCache:
    """In-memory vectors keyed by model and the sha1 of the text."""

    def __init__(self) -> None:
        self._vectors: dict[tuple[str, str], list[float]] = {}

    def get(self, text: str, model: str) -> list[float] | None:
        return self._vectors.get((model, _digest(text)))

    def set(self, text: str, model: str, vector: list[float]) -> None:
        self._vectors[(model, _digest(text))] = vector

    def __len__(self) -> int:
        return len(self._vectors)


class OpenAIEmbedder(Embedder):
    """Model-backed embedder with a per-text cache.

    Only texts missing from the cache are sent to the model, in one batch.
    `client` is anything with LangChain's `Embeddings` methods.
    """

    def __init__(
        self,
        client: Any,
        *,
        model: str = EMBEDDING_MODEL,
        cache: EmbeddingCache | None = None,
    ) -> None:
        self.client = client
        self.model = model
        self.cache = cache if cache is not None else EmbeddingCache()

    def embed_documents(self, texts: list[str]) -> list[list[float]]:
        missing = list(dict.fromkeys(t for t in texts if self.cache.get(t, self.model) is None))
        if missing:
            vectors = self.client.embed_documents(missing)
            for text, vector in zip(missing, vectors, strict=True):
                self.cache.set(text, self.model, list(vector))
            logger.debug("embeddings_computed", model=self.model, computed=len(missing), requested=len(texts))
        return [self.cache.get(text, self.model) or [] for text in texts]

    def embed_query(self, text: str) -> list[float]:
        cached = self.cache.get(text, self.model)
        if cached is not None:
            return cached
        vector = list(self.client.embed_query(text))
        self.cache.set(text, self.model, vector)
        return vector


class HashingEmbedder(Embedder):
    """Signed feature hashing over lowercase whitespace tokens.

    Vectors are L2-normalized, so a dot product is the cosine similarity.
    """

    def __init__(self, dimension: int = 256) -> None:
        self.dimension = dimension

    def embed_documents(self, texts: list[str]) -> list[list[float]]:
        return [self._vector(text) for text in texts]

    def embed_query(self, text: str) -> list[float]:
        return self._vector(text)

    def _vector(self, text: str) -> list[float]:
        buckets = [0.0] * self.dimension
        for token in text.lower().split():
            digest = blake2b(token.encode("utf-8"), digest_size=8).digest()
            bucket = int.from_bytes(digest[:4], "little") % self.dimension
            buckets[bucket] += -1.0 if digest[4] & 1 else 1.0

        length = sqrt(sum(v * v for v in buckets))
        return [v / length for v in buckets] if length else buckets


def create_embedder(api_key: str | None = None) -> OpenAIEmbedder | None:
    """Build the model-backed embedder, or None without credentials."""

    key = api_key or os.getenv("OPENAI_API_KEY")
    if not key:
        return None

    from langchain_openai import OpenAIEmbeddings

    return OpenAIEmbedder(OpenAIEmbeddings(model=EMBEDDING_MODEL, api_key=key))


def cosine_similarity(a: list[float], b: list[float]) -> float:
    if not a or not b or len(a) != len(b):
        return 0.0
    numerator = sum(x * y for x, y in zip(a, b, strict=True))
    norm_a = sqrt(sum(x * x for x in a))
    norm_b = sqrt(sum(y * y for y in b))
    if norm_a == 0 or norm_b == 0:
        return 0.0
    return numerator / (norm_a * norm_b)


def _digest(text: str) -> str:
    return sha1(text.encode("utf-8")).hexdigest()
