import pytest
from pydantic import BaseModel

from notes_agent.agent.registry import ToolRegistry, ToolSpec
from notes_agent.errors import ToolExecutionError
from notes_agent.types import SourceCandidate


class EchoInput(BaseModel):
    text: str


@pytest.mark.asyncio
async def test_tool_observer_captures_latency_and_payload() -> None:
    registry = ToolRegistry()

    async def _handler(data: EchoInput) -> list[SourceCandidate]:
        return [SourceCandidate(type="doc", file="echo.md", snippet=data.text.upper())]

    registry.register(
        ToolSpec(
            name="echo",
            description="uppercase",
            args_schema=EchoInput,
            handler=_handler,
        )
    )

    observed = []
    registry.set_observer(observed.append)
    result = await registry.execute("echo", {"text": "hello"})
    registry.set_observer(None)

    assert result[0].snippet == "HELLO"
    assert len(observed) == 1
    assert observed[0].name == "echo"
    assert observed[0].input_payload == {"text": "hello"}
    assert observed[0].candidate_count == 1
    assert observed[0].latency_ms >= 0.0
    assert observed[0].error is None


@pytest.mark.asyncio
async def test_tool_observer_records_failures() -> None:
    registry = ToolRegistry()

    async def _handler(data: EchoInput) -> list[SourceCandidate]:
        raise ToolExecutionError("broken", "backend offline")

    registry.register(
        ToolSpec(name="broken", description="always fails", args_schema=EchoInput, handler=_handler)
    )

    observed = []
    registry.set_observer(observed.append)
    with pytest.raises(ToolExecutionError):
        await registry.execute("broken", {"text": "x"})

    assert len(observed) == 1
    assert observed[0].candidate_count == 0
    assert observed[0].error == "broken: backend offline"
