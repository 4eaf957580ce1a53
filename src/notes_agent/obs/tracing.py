"""Step timeline recording and token estimation."""

from __future__ import annotations

import re
import time
from collections.abc import Iterator
from contextlib import contextmanager
from datetime import datetime, timezone
from typing import Any

from notes_agent.types import AgentStep

_TOKEN_PATTERN = re.compile(r"\w+|[^\w\s]", flags=re.UNICODE)


class StepRecorder:
    """Append-only step timeline owned by a single run.

    Steps are recorded in the order they finish. `step()` yields a mutable
    meta dict so the caller can attach outcome details before the step closes.
    """

    def __init__(self) -> None:
        self._steps: list[AgentStep] = []

    @contextmanager
    def step(self, name: str, *, type: str | None = None) -> Iterator[dict[str, Any]]:
        meta: dict[str, Any] = {}
        started_at = _utc_now()
        start = time.perf_counter()
        try:
            yield meta
        finally:
            self._steps.append(
                AgentStep(
                    name=name,
                    type=type,
                    started_at=started_at,
                    finished_at=_utc_now(),
                    duration_ms=(time.perf_counter() - start) * 1000.0,
                    meta=meta or None,
                )
            )

    @property
    def steps(self) -> list[AgentStep]:
        return list(self._steps)


def estimate_token_count(text: str) -> int:
    return len(_TOKEN_PATTERN.findall(text))


def _utc_now() -> str:
    return datetime.now(timezone.utc).isoformat()
