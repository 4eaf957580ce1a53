"""Keyword heuristics: tool signals and argument extraction from raw prompts."""

from __future__ import annotations

import re
from dataclasses import dataclass

_WEATHER_TERMS = re.compile(r"\b(weather|temperature|forecast|rain|sunny|wind)\b")
_DOCS_TERMS = re.compile(
    r"\b(note|notes|week|phase|doc|docs|project|agent|embedding|prompt|summarize|summary"
    r"|title|titles|list|count|how\s+many)\b"
)
_LIST_TERMS = re.compile(r"\b(list|count|how\s+many)\b", flags=re.IGNORECASE)
_LIST_NOUNS = re.compile(r"\b(note|notes|doc|docs|title|titles)\b", flags=re.IGNORECASE)
_DOCS_QUERY_TERMS = re.compile(
    r"\b(note|notes|week|phase|doc|docs|project|agent|embedding|prompt|summarize|summary)\b",
    flags=re.IGNORECASE,
)
_CLAUSE_SPLIT = re.compile(r"[,.;!?]|\band\b|\bthen\b|\bbut\b|\bplease\b", flags=re.IGNORECASE)


@dataclass(frozen=True, slots=True)
class HeuristicSignal:
    wants_weather: bool
    wants_docs: bool
    wants_list: bool


def plan_tools(prompt: str) -> HeuristicSignal:
    """Cheap, deterministic pre-classification of a prompt.

    Never fails; a blank prompt simply produces an all-false signal.
    """

    text = str(prompt or "").lower()
    return HeuristicSignal(
        wants_weather=bool(_WEATHER_TERMS.search(text)),
        wants_docs=bool(_DOCS_TERMS.search(text)),
        wants_list=bool(_LIST_TERMS.search(text) and _LIST_NOUNS.search(text)),
    )


def extract_weather_location(prompt: str) -> str | None:
    text = str(prompt or "")
    match = re.search(
        r"\b(?:weather|forecast)\s+(?:in|for|at)\s+([A-Za-z][A-Za-z\s\-']{1,})",
        text,
        flags=re.IGNORECASE,
    )
    if match is None:
        match = re.search(r"\b(?:in|for|at)\s+([A-Za-z][A-Za-z\s\-']{1,})", text, flags=re.IGNORECASE)
    if match is None:
        return None

    location = _CLAUSE_SPLIT.split(match.group(1))[0]
    location = re.sub(r"\s+", " ", location).strip()
    return location or None


def extract_docs_query(prompt: str) -> str:
    text = str(prompt or "")
    clauses = [part.strip() for part in _CLAUSE_SPLIT.split(text) if part and part.strip()]
    for clause in clauses:
        if _DOCS_QUERY_TERMS.search(clause):
            return clause

    match = re.search(r"\b(?:summarize|summary)\s+([^.!?]+)", text, flags=re.IGNORECASE)
    if match:
        return match.group(1).strip()
    return text


def extract_doc_filename(prompt: str) -> str | None:
    """Find a note stem such as ``phase-1-week-2`` referenced in the prompt."""

    text = str(prompt or "").lower()

    match = re.search(r"\bphase\s*-?\s*(\d+)\b[^a-z0-9]+\bweek\s*-?\s*(\d+)\b", text)
    if match:
        return f"phase-{match.group(1)}-week-{match.group(2)}"

    match = re.search(r"\bweek\s*-?\s*(\d+)\b[^a-z0-9]+\bphase\s*-?\s*(\d+)\b", text)
    if match:
        return f"phase-{match.group(2)}-week-{match.group(1)}"

    match = re.search(r"\bp\s*-?\s*(\d+)\s*-?\s*w\s*-?\s*(\d+)\b", text)
    if match:
        return f"phase-{match.group(1)}-week-{match.group(2)}"

    match = re.search(r"\b([a-z0-9\-]+)\.md\b", text)
    if match:
        return match.group(1)
    return None
