"""Summary cache keyed by note content and model."""

from __future__ import annotations

from dataclasses import dataclass, field
from hashlib import sha1

from notes_agent.types import Usage


@dataclass(slots=True)
class CachedSummary:
    model: str
    summary: str
    tags: list[str] = field(default_factory=list)
    usage: Usage | None = None


class SummaryCache:
    """In-memory cache so re-summarizing an unchanged note costs nothing.

    Entries are keyed by the sha1 of the note text; a hit requires the same
    model that produced the entry.
    """

    def __init__(self) -> None:
        self._entries: dict[str, CachedSummary] = {}

    def get(self, text: str, model: str) -> CachedSummary | None:
        entry = self._entries.get(_digest(text))
        if entry is not None and entry.model == model:
            return entry
        return None

    def set(self, text: str, entry: CachedSummary) -> None:
        self._entries[_digest(text)] = entry

    def __len__(self) -> int:
        return len(self._entries)


def _digest(text: str) -> str:
    return sha1(text.encode("utf-8")).hexdigest()
