from pathlib import Path

import pytest

from notes_agent.providers.local import LocalNotesProvider
from notes_agent.retrieval.embedder import (
    EMBEDDING_MODEL,
    EmbeddingCache,
    HashingEmbedder,
    OpenAIEmbedder,
    cosine_similarity,
    create_embedder,
)

TOPICS = ("weather", "embeddings", "prompts")


class FakeEmbeddings:
    """Stands in for LangChain's OpenAIEmbeddings: one axis per known topic."""

    def __init__(self) -> None:
        self.document_calls: list[list[str]] = []
        self.query_calls: list[str] = []

    def embed_documents(self, texts: list[str]) -> list[list[float]]:
        self.document_calls.append(list(texts))
        return [self._vector(text) for text in texts]

    def embed_query(self, text: str) -> list[float]:
        self.query_calls.append(text)
        return self._vector(text)

    def _vector(self, text: str) -> list[float]:
        lowered = text.lower()
        return [1.0 if topic in lowered else 0.0 for topic in TOPICS] + [0.1]


def test_documents_are_cached_per_text() -> None:
    client = FakeEmbeddings()
    embedder = OpenAIEmbedder(client)

    first = embedder.embed_documents(["about weather", "about prompts"])
    second = embedder.embed_documents(["about prompts", "about embeddings", "about weather"])

    assert client.document_calls == [["about weather", "about prompts"], ["about embeddings"]]
    assert second[0] == first[1]
    assert second[2] == first[0]
    assert len(embedder.cache) == 3


def test_duplicate_texts_are_embedded_once() -> None:
    client = FakeEmbeddings()

    vectors = OpenAIEmbedder(client).embed_documents(["same", "same"])

    assert client.document_calls == [["same"]]
    assert vectors[0] == vectors[1]


def test_query_uses_shared_cache() -> None:
    client = FakeEmbeddings()
    embedder = OpenAIEmbedder(client)
    embedder.embed_documents(["weather today"])

    vector = embedder.embed_query("weather today")
    embedder.embed_query("prompts")
    embedder.embed_query("prompts")

    assert vector == client._vector("weather today")
    assert client.query_calls == ["prompts"]


def test_cache_entries_are_scoped_by_model() -> None:
    cache = EmbeddingCache()
    cache.set("text", EMBEDDING_MODEL, [1.0])

    assert cache.get("text", EMBEDDING_MODEL) == [1.0]
    assert cache.get("text", "text-embedding-3-large") is None


def test_create_embedder_requires_api_key(monkeypatch: pytest.MonkeyPatch) -> None:
    monkeypatch.delenv("OPENAI_API_KEY", raising=False)

    assert create_embedder() is None


def test_hashing_embedder_is_normalized_and_deterministic() -> None:
    embedder = HashingEmbedder(dimension=32)

    vector = embedder.embed_query("Cosine similarity of embeddings")

    assert vector == embedder.embed_documents(["Cosine similarity of embeddings"])[0]
    assert sum(v * v for v in vector) == pytest.approx(1.0)
    assert embedder.embed_query("   ") == [0.0] * 32


def test_cosine_similarity_handles_mismatched_vectors() -> None:
    assert cosine_similarity([1.0, 0.0], [1.0, 0.0]) == pytest.approx(1.0)
    assert cosine_similarity([1.0, 0.0], [0.0, 1.0]) == 0.0
    assert cosine_similarity([1.0], [1.0, 0.0]) == 0.0
    assert cosine_similarity([0.0, 0.0], [1.0, 1.0]) == 0.0


@pytest.mark.asyncio
async def test_local_search_ranks_with_injected_embedder(tmp_path: Path) -> None:
    (tmp_path / "forecast.md").write_text("Weather in Austin this week.", encoding="utf-8")
    (tmp_path / "week-2.md").write_text("Embeddings and vector search.", encoding="utf-8")
    (tmp_path / "week-3.md").write_text("Prompts that reason step by step.", encoding="utf-8")
    client = FakeEmbeddings()
    provider = LocalNotesProvider(tmp_path, embedder=OpenAIEmbedder(client))

    hits = await provider.search("what did we learn about embeddings", top_k=2)
    await provider.search("embeddings again", top_k=2)

    assert [hit.file for hit in hits] == ["week-2.md", "forecast.md"]
    assert hits[0].score == pytest.approx(1.0)
    assert hits[1].score < 0.1
    assert hits[0].snippet == "Embeddings and vector search."
    assert len(client.document_calls) == 1
    assert client.query_calls == ["what did we learn about embeddings", "embeddings again"]
