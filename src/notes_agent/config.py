"""Configuration models for the notes agent."""

from __future__ import annotations

from pydantic import BaseModel, Field


class AgentConfig(BaseModel):
    """Configures orchestration, tool fan-out and composition defaults."""

    default_model: str = "gpt-4o-mini"
    temperature: float = Field(default=0.2, ge=0.0, le=2.0)
    max_tokens: int = Field(default=400, ge=1, le=4000)

    classifier_model: str = "gpt-4o-mini"
    classifier_max_tokens: int = Field(default=120, ge=16)

    docs_top_k: int = Field(default=3, ge=1, le=20)
    doc_cap: int = Field(default=10, ge=1)
    memory_window: int = Field(default=20, ge=1)
    tool_timeout_seconds: float = Field(default=10.0, gt=0.0)
    context_budget_ratio: float = Field(default=0.8, gt=0.0, le=1.0)
    fallback_answer_chars: int = Field(default=500, ge=1)


class MemoryConfig(BaseModel):
    """Configures the in-process session memory store."""

    max_items: int = Field(default=200, ge=1)


class SummarizerConfig(BaseModel):
    """Configures streaming note summarization."""

    model: str = "gpt-4o-mini"
    temperature: float = Field(default=0.2, ge=0.0, le=2.0)
    max_tokens: int = Field(default=300, ge=16, le=4000)
    max_tags: int = Field(default=7, ge=1)
    ranked_tags: int = Field(default=5, ge=0)
    evaluate: bool = True
