"""Prompt classifiers: a model-backed intent classifier and a keyword classifier."""

from __future__ import annotations

import json
import math
from dataclasses import dataclass
from typing import Any, Protocol

from notes_agent.agent.heuristics import HeuristicSignal, plan_tools
from notes_agent.config import AgentConfig
from notes_agent.llm.client import JSON_OBJECT, CompletionClient
from notes_agent.obs.logging import get_logger
from notes_agent.types import ClassificationResult, Intent, Usage

logger = get_logger(__name__)

CLASSIFIER_SYSTEM_PROMPT = (
    'Return STRICT JSON: {"intent": string, "args": object, "confidence": number}. '
    "intents: ["
    + ",".join(f'"{intent.value}"' for intent in Intent)
    + "]. Do not include markdown or commentary."
)


@dataclass(frozen=True, slots=True)
class DecodeOk:
    result: ClassificationResult


@dataclass(frozen=True, slots=True)
class DecodeFailed:
    errors: tuple[str, ...]

    @property
    def reason(self) -> str:
        return "; ".join(self.errors)


DecodeResult = DecodeOk | DecodeFailed


def decode_classification(text: str | None) -> DecodeResult:
    """Validate a model reply against the classification schema.

    Schema: ``{"intent": <Intent>, "args"?: object, "confidence"?: number}``.
    A body that is not a JSON object, a missing or unknown intent or a
    non-numeric ``confidence`` makes the whole reply invalid. A missing or
    non-object ``args`` becomes ``{}``; absent ``confidence`` is ``0``; numeric
    confidence is clamped into [0, 1].
    """

    try:
        payload: Any = json.loads(text or "{}")
    except (TypeError, ValueError) as exc:
        return DecodeFailed(errors=(f"invalid json: {exc}",))
    if not isinstance(payload, dict):
        return DecodeFailed(errors=(f"expected object, got {type(payload).__name__}",))

    errors: list[str] = []

    raw_intent = payload.get("intent")
    intent: Intent | None = None
    if isinstance(raw_intent, str):
        try:
            intent = Intent(raw_intent.strip().lower())
        except ValueError:
            pass
    if intent is None:
        errors.append(f"intent invalid: {raw_intent!r}")

    args = payload.get("args")
    if not isinstance(args, dict):
        args = {}

    raw_confidence = payload.get("confidence", 0)
    confidence = 0.0
    if isinstance(raw_confidence, bool) or not isinstance(raw_confidence, (int, float)):
        errors.append(f"confidence invalid: {raw_confidence!r}")
    elif math.isfinite(raw_confidence):
        confidence = min(1.0, max(0.0, float(raw_confidence)))

    if errors or intent is None:
        return DecodeFailed(errors=tuple(errors))
    return DecodeOk(result=ClassificationResult(intent=intent, args=dict(args), confidence=confidence))


@dataclass(frozen=True, slots=True)
class ClassificationOutcome:
    result: ClassificationResult
    degraded: bool = False
    reason: str | None = None
    usage: Usage | None = None


class PromptClassifier(Protocol):
    async def classify(self, prompt: str) -> ClassificationOutcome:
        """Classify a prompt. Implementations never raise."""


class LLMIntentClassifier:
    """Classifies intent with a single strict-JSON completion call.

    Any failure (transport, invalid JSON, schema violation, unexpected error)
    yields ``ClassificationResult.default()`` with ``degraded=True``.
    """

    def __init__(self, client: CompletionClient, config: AgentConfig | None = None) -> None:
        self.client = client
        self.config = config or AgentConfig()

    async def classify(self, prompt: str) -> ClassificationOutcome:
        messages = [
            {"role": "system", "content": CLASSIFIER_SYSTEM_PROMPT},
            {"role": "user", "content": str(prompt or "")},
        ]
        try:
            completion = await self.client.complete(
                model=self.config.classifier_model,
                temperature=0.0,
                max_tokens=self.config.classifier_max_tokens,
                messages=messages,
                response_format=JSON_OBJECT,
            )
        except Exception as exc:
            logger.warning("classification_degraded", reason="completion_error", error=str(exc))
            return ClassificationOutcome(
                result=ClassificationResult.default(), degraded=True, reason=str(exc)
            )

        try:
            decoded = decode_classification(completion.text)
        except Exception as exc:
            decoded = DecodeFailed(errors=(f"decode error: {exc}",))

        if isinstance(decoded, DecodeFailed):
            logger.warning("classification_degraded", reason=decoded.reason)
            return ClassificationOutcome(
                result=ClassificationResult.default(),
                degraded=True,
                reason=decoded.reason,
                usage=completion.usage,
            )
        return ClassificationOutcome(result=decoded.result, usage=completion.usage)


class HeuristicClassifier:
    """Keyword-only classifier behind the same interface as the model classifier.

    Its confidence is always 0: it is a routing hint, not a judgement.
    """

    async def classify(self, prompt: str) -> ClassificationOutcome:
        return ClassificationOutcome(result=intent_from_signal(plan_tools(prompt)))


def intent_from_signal(signal: HeuristicSignal) -> ClassificationResult:
    if signal.wants_weather and signal.wants_docs:
        intent = Intent.MULTI
    elif signal.wants_weather:
        intent = Intent.WEATHER
    elif signal.wants_list:
        intent = Intent.LIST_NOTES
    elif signal.wants_docs:
        intent = Intent.SEARCH_DOCS
    else:
        intent = Intent.CHAT
    return ClassificationResult(intent=intent, args={}, confidence=0.0)
