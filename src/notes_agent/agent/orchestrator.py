"""Agent run orchestration: classify, plan, execute tools, merge, compose."""

from __future__ import annotations

import asyncio
import json
import uuid
from dataclasses import dataclass, field
from enum import StrEnum
from time import perf_counter
from typing import Any

import structlog
from pydantic import ValidationError

from notes_agent.agent.classifier import LLMIntentClassifier, PromptClassifier
from notes_agent.agent.heuristics import plan_tools
from notes_agent.agent.policy import (
    DOCS_EXACT_TOOL,
    DOCS_LIST_TOOL,
    DOCS_SEARCH_TOOL,
    WEATHER_TOOL,
    ToolCall,
    combine_plan,
    resolve_tool_calls,
)
from notes_agent.agent.prompts import AGENT_SYSTEM_PROMPT, INVALID_REQUEST_ANSWER, SAFE_ERROR_ANSWER
from notes_agent.agent.registry import ToolRegistry
from notes_agent.agent.schemas import AgentRunRequest, ComposedAnswer
from notes_agent.config import AgentConfig
from notes_agent.llm.client import JSON_OBJECT, CompletionClient, get_model_context_window
from notes_agent.llm.usage import PriceTable
from notes_agent.memory.store import (
    SessionMemoryStore,
    serialize_context_to_system,
    trim_messages_to_token_budget,
)
from notes_agent.obs.logging import get_logger
from notes_agent.obs.tracing import StepRecorder
from notes_agent.retrieval.merge import merge_doc_sources
from notes_agent.types import (
    AgentRunResult,
    ClassificationResult,
    Message,
    SourceCandidate,
    Usage,
)

logger = get_logger(__name__)

MEMORY_SNIPPET_CHARS = 500


class RunState(StrEnum):
    INIT = "init"
    CLASSIFYING = "classifying"
    PLANNING = "planning"
    EXECUTING_TOOLS = "executing_tools"
    MERGING = "merging"
    COMPOSING = "composing"
    DONE = "done"
    ERROR = "error"


@dataclass(slots=True)
class ToolOutcome:
    call: ToolCall
    candidates: list[SourceCandidate] = field(default_factory=list)
    error: str | None = None

    @property
    def ok(self) -> bool:
        return self.error is None


@dataclass(slots=True)
class _RunContext:
    """Mutable state of one run; owned by a single `run()` invocation."""

    run_id: str
    recorder: StepRecorder = field(default_factory=StepRecorder)
    states: list[RunState] = field(default_factory=lambda: [RunState.INIT])
    calls: list[tuple[str, Usage]] = field(default_factory=list)
    debug: dict[str, Any] = field(default_factory=dict)
    classification: ClassificationResult | None = None

    @property
    def state(self) -> RunState:
        return self.states[-1]

    def transition(self, state: RunState) -> None:
        self.states.append(state)

    def add_usage(self, model: str, usage: Usage | None) -> None:
        if usage is not None:
            self.calls.append((model, usage))


class AgentOrchestrator:
    """Drives one agent run end to end.

    `run()` never raises for ordinary failures: classifier problems fall back
    to the `chat` intent, failing tools are recorded and skipped, and a failed
    composition call yields a user-safe answer with the detail in `debug`.
    Cancellation of the awaiting task is not an ordinary failure and is
    propagated; results of tools still in flight are discarded.
    """

    def __init__(
        self,
        *,
        client: CompletionClient,
        tool_registry: ToolRegistry,
        memory: SessionMemoryStore | None = None,
        classifier: PromptClassifier | None = None,
        config: AgentConfig | None = None,
        price_table: PriceTable | None = None,
    ) -> None:
        self.client = client
        self.tool_registry = tool_registry
        self.memory = memory
        self.config = config or AgentConfig()
        self.classifier = classifier or LLMIntentClassifier(client, self.config)
        self.price_table = price_table or PriceTable()

    async def run(self, request: AgentRunRequest | dict[str, Any]) -> AgentRunResult:
        started = perf_counter()
        ctx = _RunContext(run_id=str(uuid.uuid4()))

        try:
            req = (
                request
                if isinstance(request, AgentRunRequest)
                else AgentRunRequest.model_validate(request)
            )
        except ValidationError as exc:
            ctx.transition(RunState.ERROR)
            ctx.debug["error"] = str(exc)
            ctx.transition(RunState.DONE)
            return self._assemble(
                ctx,
                answer=INVALID_REQUEST_ANSWER,
                sources=[],
                model=self.config.default_model,
                started=started,
                include_debug=True,
            )

        model = req.model or self.config.default_model
        with structlog.contextvars.bound_contextvars(run_id=ctx.run_id):
            logger.info("agent_run_started", model=model, use_memory=req.use_memory)
            try:
                result = await self._run(req, ctx, model, started)
            except Exception as exc:
                logger.exception("agent_run_failed", state=ctx.state.value)
                ctx.debug["error"] = f"{type(exc).__name__}: {exc}"
                ctx.transition(RunState.ERROR)
                ctx.transition(RunState.DONE)
                result = self._assemble(
                    ctx,
                    answer=SAFE_ERROR_ANSWER,
                    sources=[],
                    model=model,
                    started=started,
                    include_debug=req.debug,
                )
            logger.info(
                "agent_run_completed",
                intent=result.intent,
                sources=len(result.sources),
                duration_ms=round(result.duration_ms, 1),
            )
            return result

    async def _run(
        self, req: AgentRunRequest, ctx: _RunContext, model: str, started: float
    ) -> AgentRunResult:
        ctx.transition(RunState.CLASSIFYING)
        with ctx.recorder.step("classify", type="classify") as meta:
            signal = plan_tools(req.prompt)
            outcome = await self.classifier.classify(req.prompt)
            classification = outcome.result
            ctx.classification = classification
            ctx.add_usage(self.config.classifier_model, outcome.usage)
            plan = combine_plan(signal, classification)
            meta.update(
                intent=classification.intent.value,
                confidence=classification.confidence,
                degraded=outcome.degraded,
            )
            if outcome.reason:
                meta["reason"] = outcome.reason
        ctx.debug["classification"] = {
            "intent": classification.intent.value,
            "args": classification.args,
            "confidence": classification.confidence,
            "degraded": outcome.degraded,
        }
        ctx.debug["heuristics"] = {
            "wants_weather": signal.wants_weather,
            "wants_docs": signal.wants_docs,
            "wants_list": signal.wants_list,
        }

        ctx.transition(RunState.PLANNING)
        with ctx.recorder.step("plan", type="plan") as meta:
            calls = resolve_tool_calls(
                plan, classification, req.prompt, docs_top_k=self.config.docs_top_k
            )
            meta["tools"] = [call.tool for call in calls]
        ctx.debug["plan"] = {
            "wants_weather": plan.wants_weather,
            "wants_docs": plan.wants_docs,
            "wants_list": plan.wants_list,
            "tools": [{"tool": call.tool, "payload": call.payload} for call in calls],
        }

        ctx.transition(RunState.EXECUTING_TOOLS)
        outcomes = await self._execute_tools(calls, ctx)
        tool_errors = {o.call.tool: o.error for o in outcomes if not o.ok}
        if tool_errors:
            ctx.debug["tool_errors"] = tool_errors

        recent: list[Message] = []
        if req.use_memory and req.session_id and self.memory is not None:
            recent = await self._read_memory(self.memory, req.session_id, ctx)

        ctx.transition(RunState.MERGING)
        with ctx.recorder.step("merge", type="merge") as meta:
            pools = _pools_by_tool(outcomes)
            merged_docs = merge_doc_sources(
                doc_sources=pools[DOCS_SEARCH_TOOL],
                doc_exact_sources=pools[DOCS_EXACT_TOOL],
                doc_list_sources=pools[DOCS_LIST_TOOL],
                cap=self.config.doc_cap,
            )
            meta["docs"] = len(merged_docs)

        ctx.transition(RunState.COMPOSING)
        tool_context = _tool_context(outcomes)
        messages = self._build_messages(req, model, tool_context, merged_docs, recent)
        if req.debug:
            ctx.debug["messages"] = messages
            ctx.debug["tools"] = tool_context

        with ctx.recorder.step("compose", type="llm") as meta:
            try:
                completion = await self.client.complete(
                    model=model,
                    temperature=req.temperature if req.temperature is not None else self.config.temperature,
                    max_tokens=req.max_tokens or self.config.max_tokens,
                    messages=messages,
                    response_format=JSON_OBJECT,
                )
            except Exception as exc:
                meta.update(ok=False, error=str(exc))
                logger.warning("agent_composition_failed", error=str(exc))
                ctx.debug["error"] = f"composition failed: {exc}"
                completion = None
            else:
                meta["ok"] = True

        weather_sources = pools[WEATHER_TOOL]
        memory_sources = _memory_sources(recent)

        if completion is None:
            ctx.transition(RunState.ERROR)
            ctx.transition(RunState.DONE)
            return self._assemble(
                ctx,
                answer=SAFE_ERROR_ANSWER,
                sources=[*weather_sources, *merged_docs, *memory_sources],
                model=model,
                started=started,
                include_debug=req.debug,
            )

        ctx.add_usage(model, completion.usage)
        composed, validation_errors = _decode_answer(completion.text)
        if validation_errors:
            ctx.debug["validation_errors"] = validation_errors
        ctx.debug["composed_intent"] = composed.intent

        answer = composed.answer.strip() or _fallback_answer(
            tool_context, self.config.fallback_answer_chars
        )
        final_docs = merge_doc_sources(
            doc_sources=merged_docs,
            normalized_doc_sources=_normalized_sources(composed.sources),
            cap=self.config.doc_cap,
        )

        if req.session_id and self.memory is not None:
            await self._write_memory(self.memory, req.session_id, req.prompt, answer, ctx)

        ctx.transition(RunState.DONE)
        return self._assemble(
            ctx,
            answer=answer,
            sources=[*weather_sources, *final_docs, *memory_sources],
            model=model,
            started=started,
            include_debug=req.debug,
        )

    async def _execute_tools(self, calls: list[ToolCall], ctx: _RunContext) -> list[ToolOutcome]:
        if not calls:
            return []
        async with asyncio.TaskGroup() as group:
            tasks = [group.create_task(self._execute_tool(call, ctx)) for call in calls]
        return [task.result() for task in tasks]

    async def _execute_tool(self, call: ToolCall, ctx: _RunContext) -> ToolOutcome:
        with ctx.recorder.step(f"tool:{call.tool}", type="tool") as meta:
            meta["payload"] = call.payload
            try:
                candidates = await asyncio.wait_for(
                    self.tool_registry.execute(call.tool, call.payload),
                    timeout=self.config.tool_timeout_seconds,
                )
            except TimeoutError:
                error = f"timed out after {self.config.tool_timeout_seconds}s"
            except Exception as exc:
                error = str(exc) or type(exc).__name__
            else:
                meta.update(ok=True, candidates=len(candidates))
                return ToolOutcome(call=call, candidates=candidates)

            meta.update(ok=False, error=error)
            logger.warning("agent_tool_failed", tool=call.tool, error=error)
            return ToolOutcome(call=call, error=error)

    async def _read_memory(
        self, memory: SessionMemoryStore, session_id: str, ctx: _RunContext
    ) -> list[Message]:
        with ctx.recorder.step("memory:read", type="memory") as meta:
            try:
                async with memory.lock(session_id):
                    recent = await memory.get(session_id, limit=self.config.memory_window)
            except Exception as exc:
                meta.update(ok=False, error=str(exc))
                logger.warning("agent_memory_read_failed", error=str(exc))
                ctx.debug["memory_error"] = str(exc)
                return []
            meta["messages"] = len(recent)
            return recent

    async def _write_memory(
        self,
        memory: SessionMemoryStore,
        session_id: str,
        prompt: str,
        answer: str,
        ctx: _RunContext,
    ) -> None:
        with ctx.recorder.step("memory:append", type="memory") as meta:
            try:
                async with memory.lock(session_id):
                    await memory.append(session_id, Message(role="user", content=prompt))
                    await memory.append(session_id, Message(role="assistant", content=answer))
            except Exception as exc:
                meta.update(ok=False, error=str(exc))
                logger.warning("agent_memory_append_failed", error=str(exc))
                ctx.debug["memory_error"] = str(exc)
            else:
                meta["ok"] = True

    def _build_messages(
        self,
        req: AgentRunRequest,
        model: str,
        tool_context: dict[str, Any],
        merged_docs: list[SourceCandidate],
        recent: list[Message],
    ) -> list[dict[str, str]]:
        context: dict[str, Any] = {
            "tools": tool_context,
            "sources": [source.to_dict() for source in merged_docs],
        }
        base = [
            *(message.to_dict() for message in recent),
            {"role": "system", "content": AGENT_SYSTEM_PROMPT},
            serialize_context_to_system(context),
            {"role": "user", "content": req.prompt},
        ]
        budget = int(get_model_context_window(model) * self.config.context_budget_ratio)
        return trim_messages_to_token_budget(base, budget)

    def _assemble(
        self,
        ctx: _RunContext,
        *,
        answer: str,
        sources: list[SourceCandidate],
        model: str,
        started: float,
        include_debug: bool,
    ) -> AgentRunResult:
        usage = Usage()
        cost = 0.0
        for call_model, call_usage in ctx.calls:
            usage = usage + call_usage
            cost += self.price_table.estimate_cost_usd(call_usage, call_model) or 0.0

        debug: dict[str, Any] | None = None
        if include_debug:
            debug = {**ctx.debug, "run_id": ctx.run_id, "states": [s.value for s in ctx.states]}

        return AgentRunResult(
            answer=answer,
            sources=sources,
            usage=usage,
            duration_ms=(perf_counter() - started) * 1000.0,
            steps=ctx.recorder.steps,
            intent=ctx.classification.intent.value if ctx.classification else None,
            model=model,
            cost_usd=round(cost, 6) if ctx.calls else None,
            debug=debug,
        )


def _pools_by_tool(outcomes: list[ToolOutcome]) -> dict[str, list[SourceCandidate]]:
    pools: dict[str, list[SourceCandidate]] = {
        WEATHER_TOOL: [],
        DOCS_SEARCH_TOOL: [],
        DOCS_EXACT_TOOL: [],
        DOCS_LIST_TOOL: [],
    }
    for outcome in outcomes:
        if outcome.ok:
            pools.setdefault(outcome.call.tool, []).extend(outcome.candidates)
    return pools


def _tool_context(outcomes: list[ToolOutcome]) -> dict[str, Any]:
    """Summaries of each tool outcome, as shown to the composition model."""

    context: dict[str, Any] = {}
    for outcome in outcomes:
        name = outcome.call.tool
        if not outcome.ok:
            context[name] = {"ok": False, "summary": f"{name} error: {outcome.error}"}
            continue
        candidates = outcome.candidates
        if name == WEATHER_TOOL:
            summary = " ".join(c.snippet or "" for c in candidates).strip()
        elif name == DOCS_SEARCH_TOOL:
            summary = "\n".join(
                f"{i}. {c.file} (score {c.rank_score:.3f}): {c.snippet or ''}"
                for i, c in enumerate(candidates, start=1)
            )
        elif name == DOCS_EXACT_TOOL:
            summary = "Exact match: " + ", ".join(c.file or "" for c in candidates)
        elif name == DOCS_LIST_TOOL:
            summary = f"{len(candidates)} notes: " + ", ".join(c.file or "" for c in candidates)
        else:
            summary = f"{len(candidates)} results"
        context[name] = {
            "ok": True,
            "summary": summary,
            "results": [c.to_dict() for c in candidates],
        }
    return context


def _fallback_answer(tool_context: dict[str, Any], limit: int) -> str:
    for name in (DOCS_EXACT_TOOL, DOCS_SEARCH_TOOL, WEATHER_TOOL):
        entry = tool_context.get(name)
        if entry and entry.get("ok") and entry.get("summary"):
            return str(entry["summary"])[:limit]
    return ""


def _decode_answer(text: str) -> tuple[ComposedAnswer, list[str]]:
    try:
        payload = json.loads(text or "")
    except ValueError:
        stripped = (text or "").strip()
        return ComposedAnswer(answer=stripped), ["json parse failed"]
    try:
        return ComposedAnswer.model_validate(payload), []
    except ValidationError as exc:
        errors = [f"{'.'.join(str(p) for p in err['loc']) or 'reply'}: {err['msg']}" for err in exc.errors()]
        answer = payload.get("answer") if isinstance(payload, dict) else None
        return ComposedAnswer(answer=answer if isinstance(answer, str) else ""), errors


def _normalized_sources(raw: list[str | dict[str, Any]]) -> list[SourceCandidate]:
    normalized: list[SourceCandidate] = []
    for item in raw:
        if isinstance(item, str):
            if item.strip():
                normalized.append(SourceCandidate(type="doc", file=item.strip()))
        elif isinstance(item, dict) and item.get("type", "doc") == "doc":
            file = item.get("file")
            score = item.get("score")
            normalized.append(
                SourceCandidate(
                    type="doc",
                    file=file if isinstance(file, str) else None,
                    snippet=item.get("snippet") if isinstance(item.get("snippet"), str) else None,
                    score=score if isinstance(score, (int, float)) and not isinstance(score, bool) else None,
                )
            )
    return normalized


def _memory_sources(recent: list[Message]) -> list[SourceCandidate]:
    if not recent:
        return []
    excerpt = " | ".join(f"{m.role}: {m.content}" for m in recent[-6:])
    return [SourceCandidate(type="memory", snippet=excerpt[:MEMORY_SNIPPET_CHARS])]
