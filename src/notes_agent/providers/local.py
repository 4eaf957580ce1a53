"""Filesystem-backed notes provider and the default weather provider."""

from __future__ import annotations

import asyncio
from pathlib import Path

from notes_agent.errors import ToolExecutionError
from notes_agent.providers.base import NoteHit, WeatherReading
from notes_agent.retrieval.embedder import Embedder, HashingEmbedder, cosine_similarity

NOTE_EXTENSIONS = (".md", ".txt")
SNIPPET_CHARS = 300


class LocalNotesProvider:
    """Serves markdown/text notes from a single directory.

    Reads are confined to `notes_dir`; note names are bare filenames.
    Semantic search embeds the query and every note with the configured
    embedder and ranks by cosine similarity.
    """

    def __init__(self, notes_dir: str | Path, embedder: Embedder | None = None) -> None:
        self.notes_dir = Path(notes_dir).resolve()
        self.embedder = embedder or HashingEmbedder()

    def list_files(self) -> list[Path]:
        if not self.notes_dir.is_dir():
            return []
        return sorted(
            path
            for path in self.notes_dir.iterdir()
            if path.is_file() and path.suffix.lower() in NOTE_EXTENSIONS
        )

    def read_note(self, name: str) -> str:
        path = (self.notes_dir / Path(name).name).resolve()
        if path.parent != self.notes_dir:
            raise ValueError(f"Path outside notes directory: {name}")
        return path.read_text(encoding="utf-8")

    async def list_notes(self) -> list[NoteHit]:
        files = await asyncio.to_thread(self.list_files)
        return [NoteHit(file=path.name, snippet="", score=1.0) for path in files]

    async def find_exact(self, query: str) -> NoteHit | None:
        return await asyncio.to_thread(self._find_exact, query)

    async def search(self, query: str, *, top_k: int) -> list[NoteHit]:
        return await asyncio.to_thread(self._search, query, top_k)

    def _find_exact(self, query: str) -> NoteHit | None:
        needle = query.strip().lower()
        for suffix in NOTE_EXTENSIONS:
            if needle.endswith(suffix):
                needle = needle[: -len(suffix)]
        if not needle:
            return None

        files = self.list_files()
        match = next((p for p in files if p.stem.lower() == needle), None)
        if match is None:
            match = next((p for p in files if needle in p.stem.lower()), None)
        if match is None:
            return None

        text = self.read_note(match.name)
        return NoteHit(file=match.name, snippet=_snippet(text), score=1.0)

    def _search(self, query: str, top_k: int) -> list[NoteHit]:
        files = self.list_files()
        if not files:
            return []
        texts = [self.read_note(path.name) for path in files]
        query_vector = self.embedder.embed_query(query)
        vectors = self.embedder.embed_documents(texts)

        scored = [
            NoteHit(file=path.name, snippet=_snippet(text), score=cosine_similarity(query_vector, vector))
            for path, text, vector in zip(files, texts, vectors, strict=True)
        ]
        scored.sort(key=lambda hit: hit.score or 0.0, reverse=True)
        return scored[:top_k]


class UnconfiguredWeatherProvider:
    """Weather provider used when no real weather backend is wired in."""

    async def current(self, location: str | None) -> WeatherReading:
        raise ToolExecutionError("weather", "weather provider not configured")


def _snippet(text: str) -> str:
    return text[:SNIPPET_CHARS].replace("\n", " ").strip()
