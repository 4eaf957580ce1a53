"""Token usage normalization and cost accounting."""

from __future__ import annotations

from collections.abc import Mapping
from dataclasses import dataclass, field
from typing import Any

from notes_agent.types import Usage

DEFAULT_PRICED_MODEL = "gpt-4o-mini"


def normalize_usage(raw: Mapping[str, Any] | Usage | None) -> Usage | None:
    """Accept OpenAI (snake_case), camelCase or LangChain usage shapes."""

    if raw is None:
        return None
    if isinstance(raw, Usage):
        return raw

    def _pick(*keys: str) -> int:
        for key in keys:
            value = raw.get(key)
            if isinstance(value, (int, float)) and not isinstance(value, bool):
                return int(value)
        return 0

    prompt = _pick("prompt_tokens", "promptTokens", "input_tokens")
    completion = _pick("completion_tokens", "completionTokens", "output_tokens")
    total = _pick("total_tokens", "totalTokens") or prompt + completion
    return Usage(prompt_tokens=prompt, completion_tokens=completion, total_tokens=total)


@dataclass(slots=True)
class ModelPrice:
    """USD per one million tokens."""

    input_per_m: float
    output_per_m: float


@dataclass(slots=True)
class PriceTable:
    """Per-model pricing; unknown models are billed at the default entry."""

    prices: dict[str, ModelPrice] = field(
        default_factory=lambda: {
            "gpt-4o-mini": ModelPrice(input_per_m=0.15, output_per_m=0.6),
            "gpt-4o": ModelPrice(input_per_m=2.5, output_per_m=10.0),
        }
    )
    default_model: str = DEFAULT_PRICED_MODEL

    def price_for(self, model: str | None) -> ModelPrice:
        if model and model in self.prices:
            return self.prices[model]
        return self.prices[self.default_model]

    def estimate_cost_usd(self, usage: Usage | None, model: str | None = None) -> float | None:
        if usage is None:
            return None
        price = self.price_for(model)
        cost = (usage.prompt_tokens / 1_000_000) * price.input_per_m + (
            usage.completion_tokens / 1_000_000
        ) * price.output_per_m
        return round(cost, 6)


def estimate_cost_usd(usage: Usage | None, model: str | None = None) -> float | None:
    return PriceTable().estimate_cost_usd(usage, model)
