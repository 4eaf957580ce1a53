"""FastAPI entrypoint for agent runs, note summarization and session control."""

from __future__ import annotations

import os
from dataclasses import asdict
from typing import Any

from fastapi import FastAPI
from pydantic import BaseModel, ConfigDict, Field

from notes_agent.agent.classifier import HeuristicClassifier
from notes_agent.agent.orchestrator import AgentOrchestrator
from notes_agent.agent.registry import ToolRegistry
from notes_agent.agent.schemas import AgentRunRequest
from notes_agent.agent.tools import register_builtin_tools
from notes_agent.config import AgentConfig, MemoryConfig, SummarizerConfig
from notes_agent.llm.client import (
    CompletionClient,
    UnavailableCompletionClient,
    create_completion_client,
)
from notes_agent.memory.store import InMemorySessionStore, SessionMemoryStore
from notes_agent.notes.summarizer import NotesStreamSummarizer, StreamEvent, StreamEventType
from notes_agent.obs.logging import configure_logging, get_logger
from notes_agent.providers.base import WeatherProvider
from notes_agent.providers.local import LocalNotesProvider, UnconfiguredWeatherProvider
from notes_agent.retrieval.embedder import create_embedder
from notes_agent.types import AgentRunResult, ToolTrace

logger = get_logger(__name__)


class SummarizeRequest(BaseModel):
    model_config = ConfigDict(populate_by_name=True)

    files: list[str] = Field(min_length=1)
    session_id: str | None = Field(default=None, alias="sessionId")


def create_app(
    *,
    client: CompletionClient | None = None,
    notes: LocalNotesProvider | None = None,
    weather: WeatherProvider | None = None,
    memory: SessionMemoryStore | None = None,
) -> FastAPI:
    """Wire providers, tools, memory and the completion client into an app.

    Without an injected client, one is built from ``OPENAI_API_KEY``, as is
    the note embedder. With no key, intents come from keyword heuristics and
    notes are embedded by feature hashing; composition then falls back.
    """

    llm = client or create_completion_client()
    llm_configured = llm is not None
    completion: CompletionClient = llm if llm is not None else UnavailableCompletionClient()

    embedder = create_embedder()
    notes_provider = notes or LocalNotesProvider(os.getenv("NOTES_DIR", "notes"), embedder=embedder)
    session_memory = memory or InMemorySessionStore(MemoryConfig())

    registry = ToolRegistry()
    register_builtin_tools(
        registry,
        notes=notes_provider,
        weather=weather or UnconfiguredWeatherProvider(),
    )
    registry.set_observer(_log_tool_trace)

    config = AgentConfig(default_model=os.getenv("OPENAI_MODEL", "gpt-4o-mini"))
    orchestrator = AgentOrchestrator(
        client=completion,
        tool_registry=registry,
        memory=session_memory,
        classifier=HeuristicClassifier() if llm is None else None,
        config=config,
    )
    summarizer = NotesStreamSummarizer(
        client=completion,
        notes=notes_provider,
        config=SummarizerConfig(model=config.default_model),
        memory=session_memory,
        embedder=embedder,
    )

    app = FastAPI(title="Notes Agent", version="0.1.0")

    @app.get("/health")
    def health() -> dict[str, Any]:
        return {
            "status": "ok",
            "llm_configured": llm_configured,
            "notes_dir": str(notes_provider.notes_dir),
            "tools": [spec.name for spec in registry.specs()],
        }

    @app.post("/agent/run")
    async def agent_run(request: AgentRunRequest) -> dict[str, Any]:
        result = await orchestrator.run(request)
        return _result_payload(result)

    @app.post("/notes/summarize")
    async def notes_summarize(request: SummarizeRequest) -> dict[str, Any]:
        errors: list[dict[str, str]] = []

        def _collect(event: StreamEvent) -> None:
            if event.type is StreamEventType.ERROR:
                errors.append({"file": event.file, "error": str(event.data.get("error", ""))})

        results = await summarizer.summarize_batch(
            request.files, session_id=request.session_id, on_event=_collect
        )
        return {"results": [asdict(r) for r in results], "errors": errors}

    @app.delete("/sessions/{session_id}")
    async def reset_session(session_id: str) -> dict[str, Any]:
        await session_memory.reset(session_id)
        return {"session_id": session_id, "cleared": True}

    return app


def _log_tool_trace(trace: ToolTrace) -> None:
    logger.info(
        "tool_executed",
        tool=trace.name,
        candidates=trace.candidate_count,
        latency_ms=round(trace.latency_ms, 1),
        error=trace.error,
    )


def _result_payload(result: AgentRunResult) -> dict[str, Any]:
    payload = asdict(result)
    payload["sources"] = [source.to_dict() for source in result.sources]
    if payload["debug"] is None:
        payload.pop("debug")
    return payload


configure_logging(json_output=os.getenv("NOTES_AGENT_LOG_FORMAT", "json") == "json")
app = create_app()
