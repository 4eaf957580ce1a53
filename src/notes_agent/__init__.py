"""Notes agent package."""

from .config import AgentConfig, MemoryConfig, SummarizerConfig

__all__ = ["AgentConfig", "MemoryConfig", "SummarizerConfig"]
