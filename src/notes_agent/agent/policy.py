"""Combination of classifier signals into a tool plan, and plan resolution."""

from __future__ import annotations

from dataclasses import dataclass, field
from typing import Any

from notes_agent.agent.heuristics import (
    HeuristicSignal,
    extract_doc_filename,
    extract_docs_query,
    extract_weather_location,
)
from notes_agent.types import ClassificationResult, Intent, ToolPlan

DOCS_INTENTS = frozenset(
    {
        Intent.LIST_NOTES,
        Intent.COUNT_NOTES,
        Intent.TITLES,
        Intent.FIND_NOTE,
        Intent.SUMMARIZE_NOTE,
        Intent.SEARCH_DOCS,
        Intent.MULTI,
    }
)
LIST_INTENTS = frozenset({Intent.LIST_NOTES, Intent.COUNT_NOTES, Intent.TITLES})

WEATHER_TOOL = "weather"
DOCS_SEARCH_TOOL = "docs_search"
DOCS_EXACT_TOOL = "docs_exact"
DOCS_LIST_TOOL = "docs_list"


@dataclass(frozen=True, slots=True)
class ToolCall:
    tool: str
    payload: dict[str, Any] = field(default_factory=dict)


def combine_plan(signal: HeuristicSignal, classification: ClassificationResult) -> ToolPlan:
    """Merge heuristic flags with the classified intent.

    Both sources only ever add tools: a `chat` classification does not
    suppress a keyword trigger, and the absence of keywords does not suppress
    a tool the classifier asked for.
    """

    intent = classification.intent
    return ToolPlan(
        wants_weather=signal.wants_weather or intent in (Intent.WEATHER, Intent.MULTI),
        wants_docs=signal.wants_docs or intent in DOCS_INTENTS,
        wants_list=signal.wants_list or intent in LIST_INTENTS,
    )


def resolve_tool_calls(
    plan: ToolPlan,
    classification: ClassificationResult,
    prompt: str,
    *,
    docs_top_k: int = 3,
) -> list[ToolCall]:
    """Turn a plan into concrete tool invocations with arguments."""

    args = classification.args
    calls: list[ToolCall] = []

    if plan.wants_weather:
        location = _str_arg(args, "location") or extract_weather_location(prompt)
        calls.append(ToolCall(WEATHER_TOOL, {"location": location}))

    if plan.wants_docs:
        if plan.wants_list:
            calls.append(ToolCall(DOCS_LIST_TOOL, {}))

        filename = _str_arg(args, "filename") or extract_doc_filename(prompt)
        if filename:
            calls.append(ToolCall(DOCS_EXACT_TOOL, {"query": filename}))
        elif not plan.wants_list or classification.intent in (Intent.SEARCH_DOCS, Intent.MULTI):
            query = _str_arg(args, "query") or extract_docs_query(prompt)
            calls.append(ToolCall(DOCS_SEARCH_TOOL, {"query": query, "top_k": docs_top_k}))

    return calls


def _str_arg(args: dict[str, Any], key: str) -> str | None:
    value = args.get(key)
    if isinstance(value, str) and value.strip():
        return value.strip()
    return None
