"""Session memory: per-session message history and prompt-budget helpers."""

from __future__ import annotations

import asyncio
import json
from collections import defaultdict
from collections.abc import Sequence
from typing import Any, Protocol

from notes_agent.config import MemoryConfig
from notes_agent.obs.logging import get_logger
from notes_agent.obs.tracing import estimate_token_count
from notes_agent.types import Message

logger = get_logger(__name__)

DEFAULT_SESSION = "default"


class SessionMemoryStore(Protocol):
    """Conversation history keyed by session id.

    `lock(session_id)` returns the lock that serializes read-modify-append
    sequences for one session; different sessions never share a lock.
    """

    async def get(self, session_id: str, *, limit: int = 50) -> list[Message]:
        """Return the most recent `limit` messages, oldest first."""

    async def append(self, session_id: str, message: Message) -> None:
        """Append one message. The caller holds the session lock."""

    async def reset(self, session_id: str) -> None:
        """Drop every message of a session once no locked sequence is running."""

    def lock(self, session_id: str) -> asyncio.Lock:
        """Lock serializing access to one session."""


class InMemorySessionStore:
    """Process-local session store, clamped to `max_items` per session."""

    def __init__(self, config: MemoryConfig | None = None) -> None:
        self.config = config or MemoryConfig()
        self._sessions: dict[str, list[Message]] = {}
        self._locks: defaultdict[str, asyncio.Lock] = defaultdict(asyncio.Lock)

    def lock(self, session_id: str) -> asyncio.Lock:
        return self._locks[_key(session_id)]

    async def get(self, session_id: str, *, limit: int = 50) -> list[Message]:
        messages = self._sessions.get(_key(session_id), [])
        if limit <= 0:
            return []
        return [Message(role=m.role, content=m.content) for m in messages[-limit:]]

    async def append(self, session_id: str, message: Message) -> None:
        if not _is_valid(message):
            logger.info("memory_append_skipped", session_id=_key(session_id))
            return
        history = self._sessions.setdefault(_key(session_id), [])
        history.append(Message(role=message.role, content=message.content))
        overflow = len(history) - self.config.max_items
        if overflow > 0:
            del history[:overflow]

    async def reset(self, session_id: str) -> None:
        key = _key(session_id)
        lock = self._locks.get(key)
        if lock is not None and lock.locked():
            async with lock:
                self._sessions.pop(key, None)
            return
        # An idle lock leaves with its session.
        self._sessions.pop(key, None)
        self._locks.pop(key, None)


def count_message_tokens(messages: Sequence[dict[str, str]]) -> int:
    """Approximate prompt size: content tokens plus per-message overhead."""

    return sum(estimate_token_count(str(m.get("content", ""))) + 4 for m in messages) + 2


def trim_messages_to_token_budget(
    messages: Sequence[dict[str, str]], budget_tokens: int
) -> list[dict[str, str]]:
    """Drop the earliest non-system messages until the prompt fits the budget.

    System messages are always kept; the relative order of the remaining
    messages is preserved.
    """

    system = [m for m in messages if m.get("role") == "system"]
    others = [m for m in messages if m.get("role") != "system"]
    while others and count_message_tokens([*system, *others]) > budget_tokens:
        others.pop(0)
    kept = {id(m) for m in [*system, *others]}
    return [m for m in messages if id(m) in kept]


def serialize_context_to_system(context: dict[str, Any]) -> dict[str, str]:
    try:
        payload = json.dumps(context, ensure_ascii=False, default=str)
    except (TypeError, ValueError):
        return {"role": "system", "content": "Context unavailable"}
    return {"role": "system", "content": f"Context: {payload}"}


def _key(session_id: str | None) -> str:
    return str(session_id or DEFAULT_SESSION)


def _is_valid(message: Message) -> bool:
    return bool(message.role) and isinstance(message.role, str) and message.content is not None
