"""
Nudge shared types — the prompt messages sent to an LLM and the chunks
streamed back.

Provider adapters convert to/from their own wire formats.
"""

from __future__ import annotations

from dataclasses import dataclass
from enum import Enum


class StopReason(str, Enum):
    """Why the LLM stopped generating."""

    COMPLETE = "complete"
    MAX_TOKENS = "max_tokens"  # reply was cut off by the token limit


@dataclass(slots=True)
class Message:
    """A single prompt message for an LLM provider."""

    role: str  # "system" or "user"
    content: str

    @staticmethod
    def system(content: str) -> Message:
        return Message(role="system", content=content)

    @staticmethod
    def user(content: str) -> Message:
        return Message(role="user", content=content)


@dataclass(slots=True)
class LLMChunk:
    """
    A single chunk from a streaming LLM response.

    Text chunks carry only `text`. The final chunk carries `stop_reason`
    and the token counts the provider reported.
    """

    text: str = ""
    stop_reason: StopReason | None = None
    input_tokens: int = 0
    output_tokens: int = 0
