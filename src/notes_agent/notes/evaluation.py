"""Summary quality grading."""

from __future__ import annotations

import json
import math
import re
from typing import Any

from notes_agent.llm.client import JSON_OBJECT, CompletionClient
from notes_agent.types import SummaryEvaluation

EVALUATOR_SYSTEM_PROMPT = (
    "You are an evaluator that grades summaries for coverage, concision, formatting, "
    "and factuality. Return strict JSON only."
)

_METRICS = ("coverage", "concision", "formatting", "factuality")


async def evaluate_summary(
    client: CompletionClient,
    text: str,
    summary: str,
    *,
    model: str = "gpt-4o-mini",
) -> SummaryEvaluation:
    """Grade `summary` against the original note.

    Every metric is clamped into [0, 1]. When the grader's reply is not valid
    JSON, a length-ratio heuristic is used instead. Provider errors propagate
    as `CompletionError`.
    """

    completion = await client.complete(
        model=model,
        temperature=0.0,
        max_tokens=200,
        response_format=JSON_OBJECT,
        messages=[
            {"role": "system", "content": EVALUATOR_SYSTEM_PROMPT},
            {
                "role": "user",
                "content": (
                    "Evaluate the following summary against the original note.\n\n"
                    f"Original note:\n{text}\n\nSummary:\n{summary}\n\n"
                    'Return JSON with {"coverage": number (0-1), "concision": number (0-1), '
                    '"formatting": number (0-1), "factuality": number (0-1), "feedback": string}.'
                ),
            },
        ],
    )

    try:
        payload: Any = json.loads(completion.text)
        if not isinstance(payload, dict):
            raise ValueError("evaluation is not an object")
    except ValueError:
        evaluation = heuristic_evaluation(text, summary)
        evaluation.usage = completion.usage
        return evaluation

    scores = {name: _clamp(payload.get(name)) for name in _METRICS}
    feedback = payload.get("feedback")
    return SummaryEvaluation(
        **scores,
        feedback=feedback if isinstance(feedback, str) else "",
        usage=completion.usage,
    )


def heuristic_evaluation(text: str, summary: str) -> SummaryEvaluation:
    ratio = min(1.0, (len(summary) or 1) / (len(text) or 1))
    sentences = len(re.findall(r"[.!?]\s", summary)) + (1 if summary.endswith(".") else 0)
    return SummaryEvaluation(
        coverage=max(0.2, min(1.0, ratio * 1.2)),
        concision=max(0.2, min(1.0, 1 - ratio * 0.5)),
        formatting=0.8 if 2 <= sentences <= 8 else 0.4,
        # No cheap signal for factuality; neutral baseline.
        factuality=0.5,
        feedback="Heuristic evaluation applied due to parsing failure.",
    )


def _clamp(value: Any) -> float:
    if isinstance(value, bool) or not isinstance(value, (int, float)) or not math.isfinite(value):
        return 0.0
    return max(0.0, min(1.0, float(value)))
