"""Shared domain models."""

from __future__ import annotations

import math
from dataclasses import dataclass, field
from enum import StrEnum
from typing import Any


class Intent(StrEnum):
    """Closed set of intents the classifier may return."""

    LIST_NOTES = "list_notes"
    COUNT_NOTES = "count_notes"
    TITLES = "titles"
    FIND_NOTE = "find_note"
    SUMMARIZE_NOTE = "summarize_note"
    SEARCH_DOCS = "search_docs"
    WEATHER = "weather"
    CHAT = "chat"
    MULTI = "multi"


@dataclass(frozen=True, slots=True)
class ClassificationResult:
    """Output of an intent classifier; immutable once produced."""

    intent: Intent
    args: dict[str, Any]
    confidence: float

    @classmethod
    def default(cls) -> "ClassificationResult":
        return cls(intent=Intent.CHAT, args={}, confidence=0.0)


@dataclass(frozen=True, slots=True)
class ToolPlan:
    """Which tool categories a run should invoke."""

    wants_weather: bool = False
    wants_docs: bool = False
    wants_list: bool = False


@dataclass(slots=True)
class SourceCandidate:
    """A unit of evidence returned by a tool.

    `type` is one of `weather`, `doc` or `memory`. Document candidates are
    identified by `file`; weather candidates by `url` or `title`.
    """

    type: str
    file: str | None = None
    url: str | None = None
    title: str | None = None
    snippet: str | None = None
    score: float | None = None
    meta: dict[str, Any] | None = None

    @property
    def identity(self) -> str | None:
        if self.type == "doc":
            return self.file or None
        if self.type == "weather":
            return self.url or self.title or "weather"
        if self.type == "memory":
            return "memory"
        return self.file or self.url or None

    @property
    def rank_score(self) -> float:
        """Score used for ranking; missing or non-finite scores sort last."""
        if isinstance(self.score, bool) or not isinstance(self.score, (int, float)):
            return float("-inf")
        if not math.isfinite(self.score):
            return float("-inf")
        return float(self.score)

    def to_dict(self) -> dict[str, Any]:
        payload: dict[str, Any] = {"type": self.type}
        for key in ("file", "url", "title", "snippet", "score", "meta"):
            value = getattr(self, key)
            if value is not None:
                payload[key] = value
        return payload


@dataclass(slots=True)
class Message:
    """One chat turn stored in session memory."""

    role: str
    content: str

    def to_dict(self) -> dict[str, str]:
        return {"role": self.role, "content": self.content}


@dataclass(slots=True)
class Usage:
    """Token usage reported by a completion call."""

    prompt_tokens: int = 0
    completion_tokens: int = 0
    total_tokens: int = 0

    def __add__(self, other: "Usage") -> "Usage":
        return Usage(
            prompt_tokens=self.prompt_tokens + other.prompt_tokens,
            completion_tokens=self.completion_tokens + other.completion_tokens,
            total_tokens=self.total_tokens + other.total_tokens,
        )


@dataclass(slots=True)
class AgentStep:
    """Append-only timeline entry for one orchestrator stage."""

    name: str
    started_at: str
    finished_at: str
    duration_ms: float
    type: str | None = None
    meta: dict[str, Any] | None = None


@dataclass(slots=True)
class ToolTrace:
    """Trace record for an executed tool call."""

    name: str
    input_payload: dict[str, Any]
    candidate_count: int
    latency_ms: float
    error: str | None = None


@dataclass(slots=True)
class AgentRunResult:
    """The sole output of an orchestrator run."""

    answer: str
    sources: list[SourceCandidate]
    usage: Usage
    duration_ms: float
    steps: list[AgentStep]
    intent: str | None = None
    model: str | None = None
    cost_usd: float | None = None
    debug: dict[str, Any] | None = None


@dataclass(slots=True)
class SummaryEvaluation:
    """Quality grades for a note summary, each in [0, 1]."""

    coverage: float
    concision: float
    formatting: float
    factuality: float
    feedback: str = ""
    usage: Usage | None = None


@dataclass(slots=True)
class NoteResult:
    """Completed summary of one note file, ready to persist."""

    file: str
    summary: str
    tags: list[str] = field(default_factory=list)
    usage: Usage | None = None
    evaluation: SummaryEvaluation | None = None
    model: str | None = None
