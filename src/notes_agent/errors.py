"""Exception types raised inside the agent core."""

from __future__ import annotations


class AgentError(Exception):
    """Base class for notes agent errors."""

    def __init__(self, message: str) -> None:
        self.message = message
        super().__init__(message)


class CompletionError(AgentError):
    """Raised when the completion provider fails (transport, quota, bad response)."""


class ToolExecutionError(AgentError):
    """Raised by a tool executor that could not produce evidence."""

    def __init__(self, tool: str, message: str) -> None:
        self.tool = tool
        super().__init__(f"{tool}: {message}")


class UnknownToolError(KeyError):
    """Raised when a tool name is not registered."""
