import math
import random

import pytest

from notes_agent.retrieval.merge import merge_doc_sources
from notes_agent.types import SourceCandidate


def _doc(file: str | None, score: float | None = None, snippet: str | None = None) -> SourceCandidate:
    return SourceCandidate(type="doc", file=file, score=score, snippet=snippet)


def test_sorted_by_score_descending() -> None:
    merged = merge_doc_sources(
        doc_sources=[_doc("w2.md", 0.7, "b"), _doc("w1.md", 0.9, "a"), _doc("w3.md", None, "c")]
    )

    assert [c.file for c in merged] == ["w1.md", "w2.md", "w3.md"]


def test_snippet_beats_higher_score() -> None:
    bare = _doc("a.md", 0.99)
    with_snippet = _doc("a.md", 0.1, "text")

    merged = merge_doc_sources(doc_sources=[bare], doc_exact_sources=[with_snippet])

    assert merged == [with_snippet]


def test_higher_score_wins_and_ties_keep_first() -> None:
    first = _doc("a.md", 0.5, "x")
    second = _doc("a.md", 0.5, "y")
    better = _doc("b.md", 0.8, "z")

    merged = merge_doc_sources(doc_sources=[first, second, _doc("b.md", 0.2, "w"), better])

    assert merged[0] is better
    assert merged[1] is first


def test_missing_file_is_skipped() -> None:
    merged = merge_doc_sources(doc_sources=[_doc(None, 0.9, "x"), _doc("", 0.8, "y"), _doc("a.md", 0.1)])

    assert [c.file for c in merged] == ["a.md"]


def test_listing_only_used_when_pool_empty() -> None:
    listing = [_doc("one.md"), _doc("two.md")]

    assert [c.file for c in merge_doc_sources(doc_list_sources=listing)] == ["one.md", "two.md"]
    merged = merge_doc_sources(doc_sources=[_doc("hit.md", 0.4, "s")], doc_list_sources=listing)
    assert [c.file for c in merged] == ["hit.md"]


def test_normalized_sources_only_accept_docs() -> None:
    merged = merge_doc_sources(
        normalized_doc_sources=[
            SourceCandidate(type="weather", title="Paris"),
            _doc("cited.md"),
        ]
    )

    assert [c.file for c in merged] == ["cited.md"]


def test_cap_truncates() -> None:
    docs = [_doc(f"n{i}.md", i / 20, "s") for i in range(15)]

    merged = merge_doc_sources(doc_sources=docs, cap=10)

    assert len(merged) == 10
    assert merged[0].file == "n14.md"


def test_merge_is_idempotent_and_does_not_mutate_inputs() -> None:
    docs = [_doc("a.md", 0.3, "x"), _doc("b.md", 0.9), _doc("a.md", 0.6), _doc("c.md", None, "z")]
    snapshot = [(c.file, c.score, c.snippet) for c in docs]

    once = merge_doc_sources(doc_sources=docs)
    twice = merge_doc_sources(doc_sources=once)

    assert twice == once
    assert [(c.file, c.score, c.snippet) for c in docs] == snapshot


def _generated_pool(rng: random.Random, size: int) -> list[SourceCandidate]:
    scores = [None, math.nan, 0.0, 0.25, 0.5, 0.5, 0.9, math.inf]
    return [
        _doc(
            rng.choice(["a.md", "b.md", "c.md", "d.md", "e.md", None]),
            rng.choice(scores),
            rng.choice([None, "", "snippet"]),
        )
        for _ in range(size)
    ]


@pytest.mark.parametrize("seed", range(12))
def test_merge_is_idempotent_across_generated_pools(seed: int) -> None:
    rng = random.Random(seed)
    search = _generated_pool(rng, rng.randint(0, 12))
    exact = _generated_pool(rng, rng.randint(0, 3))
    listing = _generated_pool(rng, rng.randint(0, 4))
    cap = rng.randint(1, 4)

    once = merge_doc_sources(
        doc_sources=search, doc_exact_sources=exact, doc_list_sources=listing, cap=cap
    )
    twice = merge_doc_sources(doc_sources=once, cap=cap)

    assert [id(c) for c in twice] == [id(c) for c in once]
    assert len(once) <= cap
    files = [c.file for c in once]
    assert len(files) == len(set(files))
    assert all(files)
    ranks = [c.rank_score for c in once]
    assert ranks == sorted(ranks, reverse=True)
