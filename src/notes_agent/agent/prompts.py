"""Prompt text used by the orchestrator."""

from __future__ import annotations

AGENT_SYSTEM_PROMPT = """
You are a concise AI agent. Return STRICT JSON only.
Schema: {"intent": string, "answer": string, "sources": string[]}
- intent: one of ["chat", "answer", "tool-summary"]
- answer: final short answer for user
- sources: filenames or urls you relied on
Rules:
- Prioritize answering the user's prompt directly.
- Use tool outputs only if relevant to the prompt.
- If no tools are used, return sources: [].
No markdown, no prose outside JSON.
""".strip()

SAFE_ERROR_ANSWER = (
    "Sorry, I couldn't generate an answer right now. Please try again in a moment."
)

INVALID_REQUEST_ANSWER = "The request could not be processed: a non-empty prompt is required."
