import pytest

from notes_agent.errors import CompletionError
from notes_agent.llm.client import Completion
from notes_agent.notes.cache import CachedSummary, SummaryCache
from notes_agent.notes.evaluation import evaluate_summary, heuristic_evaluation
from notes_agent.types import Usage


class GraderClient:
    def __init__(self, reply: str | Exception) -> None:
        self.reply = reply

    async def complete(self, **kwargs) -> Completion:
        if isinstance(self.reply, Exception):
            raise self.reply
        return Completion(text=self.reply, usage=Usage(40, 10, 50))


@pytest.mark.asyncio
async def test_metrics_are_clamped() -> None:
    client = GraderClient(
        '{"coverage": 1.4, "concision": -1, "formatting": 0.5, "factuality": "x", "feedback": "ok"}'
    )

    evaluation = await evaluate_summary(client, "note text", "summary")

    assert (evaluation.coverage, evaluation.concision, evaluation.formatting, evaluation.factuality) == (
        1.0,
        0.0,
        0.5,
        0.0,
    )
    assert evaluation.feedback == "ok"
    assert evaluation.usage == Usage(40, 10, 50)


@pytest.mark.asyncio
async def test_unparseable_grade_uses_heuristic() -> None:
    evaluation = await evaluate_summary(GraderClient("great summary!"), "a" * 400, "Short one. Two.")

    assert evaluation.feedback.startswith("Heuristic evaluation")
    assert 0.0 <= evaluation.coverage <= 1.0
    assert evaluation.usage == Usage(40, 10, 50)


@pytest.mark.asyncio
async def test_provider_errors_propagate() -> None:
    with pytest.raises(CompletionError):
        await evaluate_summary(GraderClient(CompletionError("down")), "text", "summary")


def test_heuristic_scores_stay_in_range() -> None:
    evaluation = heuristic_evaluation("", "")

    for value in (evaluation.coverage, evaluation.concision, evaluation.formatting, evaluation.factuality):
        assert 0.0 <= value <= 1.0


def test_cache_hit_requires_same_text_and_model() -> None:
    cache = SummaryCache()
    cache.set("note body", CachedSummary(model="gpt-4o-mini", summary="s", tags=["CLI"]))

    assert cache.get("note body", "gpt-4o-mini") is not None
    assert cache.get("note body", "gpt-4o") is None
    assert cache.get("other body", "gpt-4o-mini") is None
    assert len(cache) == 1
