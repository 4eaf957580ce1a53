"""Built-in tool implementations for the notes agent."""

from __future__ import annotations

from pydantic import BaseModel, Field

from notes_agent.agent.policy import (
    DOCS_EXACT_TOOL,
    DOCS_LIST_TOOL,
    DOCS_SEARCH_TOOL,
    WEATHER_TOOL,
)
from notes_agent.agent.registry import ToolRegistry, ToolSpec
from notes_agent.errors import ToolExecutionError
from notes_agent.providers.base import NoteHit, NotesProvider, WeatherProvider
from notes_agent.types import SourceCandidate

DEFAULT_DOCS_QUERY = "project overview"


class WeatherToolInput(BaseModel):
    location: str | None = None


class DocsSearchToolInput(BaseModel):
    query: str = DEFAULT_DOCS_QUERY
    top_k: int = Field(default=3, ge=1, le=20)


class DocsExactToolInput(BaseModel):
    query: str = Field(min_length=1)


class DocsListToolInput(BaseModel):
    pass


def register_builtin_tools(
    registry: ToolRegistry,
    *,
    notes: NotesProvider,
    weather: WeatherProvider,
) -> None:
    """Register the default tool set used by the orchestrator.

    Tools:
    - `weather`: current conditions as a single weather source.
    - `docs_search`: semantic note search with snippets and scores.
    - `docs_exact`: note matched by filename, with a leading snippet.
    - `docs_list`: bare enumeration of every note (no snippets).
    """

    async def _weather(input_data: WeatherToolInput) -> list[SourceCandidate]:
        try:
            reading = await weather.current(input_data.location)
        except ToolExecutionError:
            raise
        except Exception as exc:
            raise ToolExecutionError(WEATHER_TOOL, str(exc)) from exc
        return [
            SourceCandidate(
                type="weather",
                title=reading.location,
                url=reading.source_url,
                snippet=reading.summary(),
                meta={"temp_c": reading.temp_c, "condition": reading.condition},
            )
        ]

    async def _docs_search(input_data: DocsSearchToolInput) -> list[SourceCandidate]:
        query = input_data.query.strip() or DEFAULT_DOCS_QUERY
        try:
            hits = await notes.search(query, top_k=input_data.top_k)
        except Exception as exc:
            raise ToolExecutionError(DOCS_SEARCH_TOOL, str(exc)) from exc
        return [_doc_candidate(hit) for hit in hits]

    async def _docs_exact(input_data: DocsExactToolInput) -> list[SourceCandidate]:
        try:
            hit = await notes.find_exact(input_data.query)
        except Exception as exc:
            raise ToolExecutionError(DOCS_EXACT_TOOL, str(exc)) from exc
        if hit is None:
            raise ToolExecutionError(DOCS_EXACT_TOOL, f'No exact note match for "{input_data.query}"')
        return [_doc_candidate(hit)]

    async def _docs_list(input_data: DocsListToolInput) -> list[SourceCandidate]:
        try:
            hits = await notes.list_notes()
        except Exception as exc:
            raise ToolExecutionError(DOCS_LIST_TOOL, str(exc)) from exc
        return [SourceCandidate(type="doc", file=hit.file) for hit in hits]

    registry.register(
        ToolSpec(
            name=WEATHER_TOOL,
            description="Current weather conditions for a location.",
            args_schema=WeatherToolInput,
            handler=_weather,
            tags=["weather"],
        )
    )
    registry.register(
        ToolSpec(
            name=DOCS_SEARCH_TOOL,
            description="Semantic search over notes returning scored snippets.",
            args_schema=DocsSearchToolInput,
            handler=_docs_search,
            tags=["docs", "retrieval"],
        )
    )
    registry.register(
        ToolSpec(
            name=DOCS_EXACT_TOOL,
            description="Find one note by filename or partial name.",
            args_schema=DocsExactToolInput,
            handler=_docs_exact,
            tags=["docs"],
        )
    )
    registry.register(
        ToolSpec(
            name=DOCS_LIST_TOOL,
            description="List every available note.",
            args_schema=DocsListToolInput,
            handler=_docs_list,
            tags=["docs"],
        )
    )


def _doc_candidate(hit: NoteHit) -> SourceCandidate:
    return SourceCandidate(type="doc", file=hit.file, snippet=hit.snippet, score=hit.score)
