import asyncio
import json
from pathlib import Path

import pytest
from fastapi.testclient import TestClient

from notes_agent.agent.classifier import CLASSIFIER_SYSTEM_PROMPT
from notes_agent.llm.client import Completion, CompletionChunk
from notes_agent.memory.store import InMemorySessionStore
from notes_agent.providers.base import WeatherReading
from notes_agent.providers.local import LocalNotesProvider
from notes_agent.types import Message, Usage


class ScriptedClient:
    async def complete(self, *, model, temperature, max_tokens, messages, response_format=None) -> Completion:
        if messages[0]["content"] == CLASSIFIER_SYSTEM_PROMPT:
            return Completion(text='{"intent": "multi", "args": {}, "confidence": 0.7}', usage=Usage(8, 4, 12))
        if "Evaluate the following summary" in messages[-1]["content"]:
            return Completion(text='{"coverage": 1, "concision": 1, "formatting": 1, "factuality": 1, "feedback": ""}')
        return Completion(
            text='{"intent": "answer", "answer": "Mild weather; week 1 covered embeddings.", "sources": []}',
            usage=Usage(90, 15, 105),
        )

    async def stream(self, *, model, temperature, max_tokens, messages):
        yield CompletionChunk(text=json.dumps({"summary": "Embeddings basics.", "tags": ["Embeddings"]}))
        yield CompletionChunk(usage=Usage(20, 6, 26))


class StaticWeather:
    async def current(self, location: str | None) -> WeatherReading:
        return WeatherReading(location=location or "Austin", condition="Cloudy", temp_c=18.0)


def _client(tmp_path: Path, memory: InMemorySessionStore | None = None) -> TestClient:
    # Import inside the test so module-level wiring runs with the test environment.
    from notes_agent.api.main import create_app

    (tmp_path / "week-1.md").write_text("Week 1: embeddings and cosine similarity.", encoding="utf-8")
    app = create_app(
        client=ScriptedClient(),
        notes=LocalNotesProvider(tmp_path),
        weather=StaticWeather(),
        memory=memory,
    )
    return TestClient(app)


def test_api_health_and_agent_run(tmp_path: Path) -> None:
    client = _client(tmp_path)

    health = client.get("/health")
    assert health.status_code == 200
    assert health.json()["llm_configured"] is True
    assert set(health.json()["tools"]) == {"weather", "docs_search", "docs_exact", "docs_list"}

    run = client.post(
        "/agent/run",
        json={"prompt": "What's the weather and what did we learn last week?", "debug": True},
    )
    assert run.status_code == 200
    payload = run.json()
    assert payload["answer"] == "Mild weather; week 1 covered embeddings."
    assert [s["type"] for s in payload["sources"]] == ["weather", "doc"]
    assert payload["sources"][1]["file"] == "week-1.md"
    assert payload["usage"]["total_tokens"] == 117
    assert payload["debug"]["states"][-1] == "done"
    assert [step["name"] for step in payload["steps"]][:2] == ["classify", "plan"]


def test_api_rejects_blank_prompt(tmp_path: Path) -> None:
    client = _client(tmp_path)

    response = client.post("/agent/run", json={"prompt": "  "})

    assert response.status_code == 422


def test_api_summarize_reports_per_file_errors(tmp_path: Path) -> None:
    client = _client(tmp_path)

    response = client.post("/notes/summarize", json={"files": ["week-1.md", "missing.md"]})

    assert response.status_code == 200
    payload = response.json()
    assert [r["file"] for r in payload["results"]] == ["week-1.md"]
    assert payload["results"][0]["summary"] == "Embeddings basics."
    assert payload["results"][0]["tags"][0] == "Embeddings"
    assert [e["file"] for e in payload["errors"]] == ["missing.md"]


def test_api_session_reset(tmp_path: Path) -> None:
    memory = InMemorySessionStore()
    client = _client(tmp_path, memory=memory)

    client.post("/agent/run", json={"prompt": "Summarize my notes", "sessionId": "s1"})
    assert len(asyncio.run(memory.get("s1"))) == 2

    response = client.delete("/sessions/s1")

    assert response.status_code == 200
    assert response.json() == {"session_id": "s1", "cleared": True}
    assert asyncio.run(memory.get("s1")) == []


def test_api_session_reset_leaves_other_sessions(tmp_path: Path) -> None:
    memory = InMemorySessionStore()
    client = _client(tmp_path, memory=memory)
    asyncio.run(memory.append("other", Message(role="user", content="keep me")))

    response = client.delete("/sessions/unknown")

    assert response.status_code == 200
    assert [m.content for m in asyncio.run(memory.get("other"))] == ["keep me"]


def test_api_without_key_routes_by_keywords(tmp_path: Path, monkeypatch: pytest.MonkeyPatch) -> None:
    from notes_agent.api.main import create_app

    monkeypatch.delenv("OPENAI_API_KEY", raising=False)
    (tmp_path / "week-1.md").write_text("Week 1: embeddings.", encoding="utf-8")
    (tmp_path / "week-2.md").write_text("Week 2: prompting.", encoding="utf-8")
    client = TestClient(create_app(notes=LocalNotesProvider(tmp_path), weather=StaticWeather()))

    assert client.get("/health").json()["llm_configured"] is False
    response = client.post("/agent/run", json={"prompt": "how many notes?", "debug": True})

    assert response.status_code == 200
    payload = response.json()
    assert payload["intent"] == "list_notes"
    assert payload["debug"]["classification"]["degraded"] is False
    assert [s["file"] for s in payload["sources"]] == ["week-1.md", "week-2.md"]
    assert [step["name"] for step in payload["steps"]][:3] == ["classify", "plan", "tool:docs_list"]
