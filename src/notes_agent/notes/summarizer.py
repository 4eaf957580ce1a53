"""Streaming, per-file note summarization."""

from __future__ import annotations

import asyncio
import json
from collections.abc import AsyncIterator, Callable, Iterable
from dataclasses import dataclass, field
from enum import StrEnum
from typing import Any, Protocol

from notes_agent.config import SummarizerConfig
from notes_agent.llm.client import CompletionClient
from notes_agent.memory.store import SessionMemoryStore
from notes_agent.notes.cache import CachedSummary, SummaryCache
from notes_agent.notes.evaluation import evaluate_summary
from notes_agent.obs.logging import get_logger
from notes_agent.retrieval.embedder import Embedder, HashingEmbedder, cosine_similarity
from notes_agent.types import Message, NoteResult, SummaryEvaluation, Usage

logger = get_logger(__name__)

SUMMARIZER_SYSTEM_PROMPT = "You summarize and tag notes concisely."

DEFAULT_TAGS = (
    "LLM Basics",
    "Prompt Design",
    "Embeddings",
    "Tokenization",
    "Reasoning",
    "Nuxt",
    "Firebase",
    "Web App",
    "CLI",
    "OpenAI SDK",
)


class StreamEventType(StrEnum):
    OPEN = "open"
    SUMMARY = "summary"
    RESULT = "result"
    USAGE = "usage"
    EVALUATION = "evaluation"
    END = "end"
    ERROR = "error"


@dataclass(slots=True)
class StreamEvent:
    type: StreamEventType
    file: str
    data: dict[str, Any] = field(default_factory=dict)
    result: NoteResult | None = None


class NoteReader(Protocol):
    def read_note(self, name: str) -> str:
        """Return the text of a note by bare filename."""


class NotesStreamSummarizer:
    """Summarizes notes one file at a time as a stream of events.

    A file's events are ``open``, zero or more ``summary`` chunks, ``result``,
    optional ``usage`` and ``evaluation``, then ``end``; or ``open`` followed
    by ``error``. Batches run sequentially and one file's error never stops
    the next file.
    """

    def __init__(
        self,
        *,
        client: CompletionClient,
        notes: NoteReader,
        config: SummarizerConfig | None = None,
        cache: SummaryCache | None = None,
        memory: SessionMemoryStore | None = None,
        embedder: Embedder | None = None,
        tag_candidates: Iterable[str] = DEFAULT_TAGS,
    ) -> None:
        self.client = client
        self.notes = notes
        self.config = config or SummarizerConfig()
        self.cache = cache if cache is not None else SummaryCache()
        self.memory = memory
        self.embedder = embedder or HashingEmbedder()
        self.tag_candidates = list(tag_candidates)

    async def summarize_batch(
        self,
        files: Iterable[str],
        *,
        session_id: str | None = None,
        on_event: Callable[[StreamEvent], None] | None = None,
    ) -> list[NoteResult]:
        results: list[NoteResult] = []
        for file in files:
            async for event in self.summarize_file(file, session_id=session_id):
                if on_event is not None:
                    on_event(event)
                if event.type is StreamEventType.END and event.result is not None:
                    results.append(event.result)
        return results

    async def summarize_file(
        self, file: str, *, session_id: str | None = None
    ) -> AsyncIterator[StreamEvent]:
        yield StreamEvent(StreamEventType.OPEN, file)
        try:
            async for event in self._summarize(file, session_id):
                yield event
        except Exception as exc:
            logger.warning("note_summary_failed", file=file, error=str(exc))
            yield StreamEvent(StreamEventType.ERROR, file, {"error": str(exc) or type(exc).__name__})

    async def _summarize(self, file: str, session_id: str | None) -> AsyncIterator[StreamEvent]:
        model = self.config.model
        text = await asyncio.to_thread(self.notes.read_note, file)
        if not text or not text.strip():
            raise ValueError(f"No content to summarize: {file}")

        cached = self.cache.get(text, model)
        if cached is not None:
            logger.info("note_summary_cache_hit", file=file)
            summary, tags, usage = cached.summary, cached.tags[: self.config.max_tags], cached.usage
            yield StreamEvent(StreamEventType.RESULT, file, {"summary": summary, "tags": tags, "model": model})
        else:
            buffer: list[str] = []
            usage: Usage | None = None
            async for chunk in self.client.stream(
                model=model,
                temperature=self.config.temperature,
                max_tokens=self.config.max_tokens,
                messages=[
                    {"role": "system", "content": SUMMARIZER_SYSTEM_PROMPT},
                    {"role": "user", "content": _summary_instruction(text)},
                ],
            ):
                if chunk.text:
                    buffer.append(chunk.text)
                    yield StreamEvent(StreamEventType.SUMMARY, file, {"chunk": chunk.text})
                if chunk.usage is not None:
                    usage = chunk.usage

            summary, model_tags = _parse_summary("".join(buffer))
            tags = _merge_tags(model_tags, await self._ranked_tags(file, text), self.config.max_tags)
            self.cache.set(text, CachedSummary(model=model, summary=summary, tags=tags, usage=usage))
            yield StreamEvent(StreamEventType.RESULT, file, {"summary": summary, "tags": tags, "model": model})

        if usage is not None:
            yield StreamEvent(
                StreamEventType.USAGE,
                file,
                {
                    "prompt_tokens": usage.prompt_tokens,
                    "completion_tokens": usage.completion_tokens,
                    "total_tokens": usage.total_tokens,
                },
            )

        evaluation = await self._evaluate(file, text, summary)
        if evaluation is not None:
            yield StreamEvent(
                StreamEventType.EVALUATION,
                file,
                {
                    "coverage": evaluation.coverage,
                    "concision": evaluation.concision,
                    "formatting": evaluation.formatting,
                    "factuality": evaluation.factuality,
                    "feedback": evaluation.feedback,
                },
            )

        if session_id and self.memory is not None:
            async with self.memory.lock(session_id):
                await self.memory.append(
                    session_id,
                    Message(role="assistant", content=f"Summary: {summary}\nTags: {', '.join(tags)}"),
                )

        result = NoteResult(
            file=file, summary=summary, tags=tags, usage=usage, evaluation=evaluation, model=model
        )
        yield StreamEvent(StreamEventType.END, file, result=result)

    def rank_tags(self, text: str) -> list[str]:
        """Candidate tags ordered by embedding similarity to the note."""

        if not self.tag_candidates or self.config.ranked_tags == 0:
            return []
        note_vector = self.embedder.embed_query(text)
        tag_vectors = self.embedder.embed_documents(list(self.tag_candidates))
        scored = sorted(
            zip(self.tag_candidates, tag_vectors, strict=True),
            key=lambda pair: cosine_similarity(note_vector, pair[1]),
            reverse=True,
        )
        return [tag for tag, _ in scored[: self.config.ranked_tags]]

    async def _ranked_tags(self, file: str, text: str) -> list[str]:
        try:
            return await asyncio.to_thread(self.rank_tags, text)
        except Exception as exc:
            logger.warning("note_tag_ranking_failed", file=file, error=str(exc))
            return []

    async def _evaluate(self, file: str, text: str, summary: str) -> SummaryEvaluation | None:
        if not self.config.evaluate:
            return None
        try:
            return await evaluate_summary(self.client, text, summary, model=self.config.model)
        except Exception as exc:
            # The summary itself is complete; a failed grade only drops the evaluation event.
            logger.warning("note_evaluation_failed", file=file, error=str(exc))
            return None


def _summary_instruction(text: str) -> str:
    return (
        "Summarize the following note in 3-5 sentences. Then propose 5 short tags.\n"
        'Return JSON with {"summary": string, "tags": string[]}.\n'
        f"Note:\n\n{text}"
    )


def _parse_summary(raw: str) -> tuple[str, list[str]]:
    try:
        payload = json.loads(raw)
    except ValueError:
        return raw.strip(), []
    if not isinstance(payload, dict):
        return raw.strip(), []
    summary = payload.get("summary")
    tags = payload.get("tags")
    return (
        summary if isinstance(summary, str) and summary else raw.strip(),
        [t for t in tags if isinstance(t, str)] if isinstance(tags, list) else [],
    )


def _merge_tags(model_tags: list[str], ranked: list[str], limit: int) -> list[str]:
    merged: list[str] = []
    for tag in [*model_tags, *ranked]:
        if tag not in merged:
            merged.append(tag)
    return merged[:limit]
