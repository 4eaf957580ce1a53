"""Completion service interface and LangChain-backed implementation."""

from __future__ import annotations

import os
from collections.abc import AsyncIterator, Callable, Sequence
from dataclasses import dataclass
from typing import Any, Protocol

from langchain_core.language_models.chat_models import BaseChatModel
from langchain_core.messages import BaseMessage, convert_to_messages

from notes_agent.errors import CompletionError
from notes_agent.llm.usage import normalize_usage
from notes_agent.obs.logging import get_logger
from notes_agent.types import Usage

logger = get_logger(__name__)

JSON_OBJECT = "json_object"

# Context windows (tokens) used for prompt trimming.
_CONTEXT_WINDOWS = {
    "gpt-4o-mini": 128_000,
    "gpt-4o": 128_000,
    "gpt-4.1-mini": 1_000_000,
    "gpt-3.5-turbo": 16_385,
}
_DEFAULT_CONTEXT_WINDOW = 8_192


@dataclass(slots=True)
class Completion:
    text: str
    usage: Usage | None = None


@dataclass(slots=True)
class CompletionChunk:
    text: str = ""
    usage: Usage | None = None


class CompletionClient(Protocol):
    """Completion capability injected into the agent core.

    Implementations raise `CompletionError` on provider or transport failure.
    """

    async def complete(
        self,
        *,
        model: str,
        temperature: float,
        max_tokens: int,
        messages: Sequence[dict[str, str]],
        response_format: str | None = None,
    ) -> Completion:
        """Run one completion and return its text and usage."""

    def stream(
        self,
        *,
        model: str,
        temperature: float,
        max_tokens: int,
        messages: Sequence[dict[str, str]],
    ) -> AsyncIterator[CompletionChunk]:
        """Yield incremental text chunks; the last chunk may carry usage."""


ChatModelFactory = Callable[[str, float, int], BaseChatModel]


class LangChainCompletionClient:
    """Adapts a LangChain chat model to the `CompletionClient` contract."""

    def __init__(self, model_factory: ChatModelFactory) -> None:
        self._model_factory = model_factory

    async def complete(
        self,
        *,
        model: str,
        temperature: float,
        max_tokens: int,
        messages: Sequence[dict[str, str]],
        response_format: str | None = None,
    ) -> Completion:
        chat_model: Any = self._model_factory(model, temperature, max_tokens)
        if response_format:
            chat_model = chat_model.bind(response_format={"type": response_format})
        try:
            response = await chat_model.ainvoke(_to_messages(messages))
        except Exception as exc:
            logger.warning("completion_failed", model=model, error=str(exc))
            raise CompletionError(f"completion failed: {exc}") from exc

        return Completion(
            text=_content_text(getattr(response, "content", response)),
            usage=normalize_usage(getattr(response, "usage_metadata", None)),
        )

    async def stream(
        self,
        *,
        model: str,
        temperature: float,
        max_tokens: int,
        messages: Sequence[dict[str, str]],
    ) -> AsyncIterator[CompletionChunk]:
        chat_model = self._model_factory(model, temperature, max_tokens)
        try:
            async for part in chat_model.astream(_to_messages(messages)):
                yield CompletionChunk(
                    text=_content_text(getattr(part, "content", "")),
                    usage=normalize_usage(getattr(part, "usage_metadata", None)),
                )
        except Exception as exc:
            logger.warning("completion_stream_failed", model=model, error=str(exc))
            raise CompletionError(f"completion stream failed: {exc}") from exc


class UnavailableCompletionClient:
    """Stands in when no provider credentials are configured; every call fails."""

    async def complete(self, *, model: str, **_: Any) -> Completion:
        raise CompletionError(f"no completion provider configured for {model}")

    async def stream(self, *, model: str, **_: Any) -> AsyncIterator[CompletionChunk]:
        raise CompletionError(f"no completion provider configured for {model}")
        yield CompletionChunk()  # pragma: no cover


def create_completion_client(api_key: str | None = None) -> LangChainCompletionClient | None:
    """Build the process-wide completion handle, or None without credentials."""

    key = api_key or os.getenv("OPENAI_API_KEY")
    if not key:
        return None

    from langchain_openai import ChatOpenAI

    def _factory(model: str, temperature: float, max_tokens: int) -> BaseChatModel:
        return ChatOpenAI(
            model=model,
            temperature=temperature,
            max_tokens=max_tokens,
            api_key=key,
            stream_usage=True,
        )

    return LangChainCompletionClient(_factory)


def get_model_context_window(model: str) -> int:
    return _CONTEXT_WINDOWS.get(model, _DEFAULT_CONTEXT_WINDOW)


def _to_messages(messages: Sequence[dict[str, str]]) -> list[BaseMessage]:
    return convert_to_messages([(m["role"], m["content"]) for m in messages])


def _content_text(content: Any) -> str:
    if isinstance(content, list):
        parts: list[str] = []
        for item in content:
            if isinstance(item, dict) and "text" in item:
                parts.append(str(item["text"]))
            elif isinstance(item, str):
                parts.append(item)
        return "".join(parts)
    return "" if content is None else str(content)
