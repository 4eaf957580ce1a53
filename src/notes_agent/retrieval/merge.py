"""Deduplication and ranking of document evidence from several tools."""

from __future__ import annotations

from collections.abc import Iterable

from notes_agent.types import SourceCandidate

DEFAULT_DOC_CAP = 10


def merge_doc_sources(
    *,
    doc_sources: Iterable[SourceCandidate] = (),
    doc_exact_sources: Iterable[SourceCandidate] = (),
    doc_list_sources: Iterable[SourceCandidate] = (),
    normalized_doc_sources: Iterable[SourceCandidate] = (),
    cap: int = DEFAULT_DOC_CAP,
) -> list[SourceCandidate]:
    """Merge document candidate pools into one ranked, deduplicated list.

    Merge process:
    1. Exact-match and search hits form the primary pool.
    2. Listing hits are kept only when the primary pool is empty.
    3. Normalized candidates of type ``doc`` are appended.
    4. Candidates are deduplicated by ``file``: one with a snippet beats one
       without; otherwise the higher score wins (missing score = -inf);
       ties keep the first seen. Candidates without ``file`` are skipped.
    5. Stable sort by score, descending, missing scores last.
    6. Truncate to ``cap``.

    The input candidates are returned by reference, never modified.
    """

    pool = [*doc_exact_sources, *doc_sources]
    listing = [] if pool else list(doc_list_sources)
    candidates = [
        *pool,
        *listing,
        *(item for item in normalized_doc_sources if item is not None and item.type == "doc"),
    ]

    by_file: dict[str, SourceCandidate] = {}
    for candidate in candidates:
        if candidate is None or not candidate.file:
            continue
        current = by_file.get(candidate.file)
        if current is None or _prefer(candidate, current):
            by_file[candidate.file] = candidate

    merged = sorted(by_file.values(), key=lambda item: item.rank_score, reverse=True)
    return merged[: max(0, cap)]


def _prefer(candidate: SourceCandidate, current: SourceCandidate) -> bool:
    has_snippet = bool(candidate.snippet)
    current_has_snippet = bool(current.snippet)
    if has_snippet != current_has_snippet:
        return has_snippet
    return candidate.rank_score > current.rank_score
