"""Provider contracts consumed by the built-in tools."""

from __future__ import annotations

from dataclasses import dataclass, field
from typing import Any, Protocol


@dataclass(slots=True)
class NoteHit:
    """One note returned by a notes query."""

    file: str
    snippet: str | None = None
    score: float | None = None


@dataclass(slots=True)
class WeatherReading:
    """A single current-conditions reading."""

    location: str
    condition: str | None = None
    temp_c: float | None = None
    feelslike_c: float | None = None
    humidity: float | None = None
    wind_kph: float | None = None
    source_url: str | None = None
    raw: dict[str, Any] = field(default_factory=dict)

    def summary(self) -> str:
        def _fmt(value: object) -> str:
            return "?" if value is None else str(value)

        return (
            f"Weather for {self.location}: {self.condition or 'n/a'}, temp {_fmt(self.temp_c)}°C, "
            f"feels {_fmt(self.feelslike_c)}°C, humidity {_fmt(self.humidity)}%, "
            f"wind {_fmt(self.wind_kph)} kph."
        )


class NotesProvider(Protocol):
    async def search(self, query: str, *, top_k: int) -> list[NoteHit]:
        """Semantic search over notes, best match first."""

    async def find_exact(self, query: str) -> NoteHit | None:
        """Match a note by filename or partial name."""

    async def list_notes(self) -> list[NoteHit]:
        """Enumerate every available note."""


class WeatherProvider(Protocol):
    async def current(self, location: str | None) -> WeatherReading:
        """Return current conditions; `location=None` means the provider default."""
