"""Tool registry built on Pydantic v2 models."""

from __future__ import annotations

from collections.abc import Awaitable, Callable
from time import perf_counter
from typing import Any

from pydantic import BaseModel, ConfigDict, Field

from notes_agent.errors import UnknownToolError
from notes_agent.types import SourceCandidate, ToolTrace

ToolHandler = Callable[[Any], Awaitable[list[SourceCandidate]]]


class ToolSpec(BaseModel):
    """Declarative tool definition used for registration and argument validation."""

    model_config = ConfigDict(arbitrary_types_allowed=True)

    name: str
    description: str
    args_schema: type[BaseModel]
    handler: ToolHandler
    tags: list[str] = Field(default_factory=list)

    async def invoke(self, payload: dict[str, Any]) -> list[SourceCandidate]:
        data = self.args_schema.model_validate(payload)
        return await self.handler(data)


class ToolRegistry:
    """Stores tool specs and executes them by name.

    Every execution, successful or not, is reported to the observer (if set)
    as a `ToolTrace`. Failures are re-raised to the caller.
    """

    def __init__(self) -> None:
        self._tools: dict[str, ToolSpec] = {}
        self._observer: Callable[[ToolTrace], None] | None = None

    def register(self, spec: ToolSpec) -> None:
        if spec.name in self._tools:
            raise ValueError(f"Tool already registered: {spec.name}")
        self._tools[spec.name] = spec

    def set_observer(self, observer: Callable[[ToolTrace], None] | None) -> None:
        """Set an optional callback invoked after each tool execution."""
        self._observer = observer

    def has(self, name: str) -> bool:
        return name in self._tools

    def specs(self) -> list[ToolSpec]:
        return list(self._tools.values())

    async def execute(self, name: str, payload: dict[str, Any]) -> list[SourceCandidate]:
        spec = self._tools.get(name)
        if spec is None:
            raise UnknownToolError(f"Unknown tool: {name}")

        start = perf_counter()
        try:
            candidates = await spec.invoke(payload)
        except Exception as exc:
            self._notify(spec.name, payload, 0, start, error=str(exc))
            raise
        self._notify(spec.name, payload, len(candidates), start)
        return candidates

    def _notify(
        self,
        name: str,
        payload: dict[str, Any],
        count: int,
        start: float,
        *,
        error: str | None = None,
    ) -> None:
        if self._observer is None:
            return
        self._observer(
            ToolTrace(
                name=name,
                input_payload=payload,
                candidate_count=count,
                latency_ms=(perf_counter() - start) * 1000.0,
                error=error,
            )
        )
