"""Request and model-reply schemas for agent runs."""

from __future__ import annotations

from typing import Any

from pydantic import BaseModel, ConfigDict, Field, field_validator


class AgentRunRequest(BaseModel):
    """Input of `AgentOrchestrator.run`."""

    model_config = ConfigDict(populate_by_name=True)

    prompt: str = Field(min_length=1)
    session_id: str | None = Field(default=None, alias="sessionId")
    use_memory: bool = Field(default=False, alias="useMemory")
    model: str | None = None
    temperature: float | None = Field(default=None, ge=0.0, le=2.0)
    max_tokens: int | None = Field(default=None, ge=1, le=4000, alias="maxTokens")
    debug: bool = False

    @field_validator("prompt")
    @classmethod
    def prompt_not_blank(cls, value: str) -> str:
        if not value.strip():
            raise ValueError("prompt must not be blank")
        return value


class ComposedAnswer(BaseModel):
    """Strict JSON reply expected from the composition call."""

    intent: str = "chat"
    answer: str
    sources: list[str | dict[str, Any]] = Field(default_factory=list)
