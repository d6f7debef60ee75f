"""
LLM Provider interface — the contract every LLM must implement.

The generative message source calls these methods. It never knows which
specific LLM is behind the interface.
"""

from __future__ import annotations

from abc import ABC, abstractmethod
from typing import AsyncIterator

from nudge.core.types import LLMChunk, Message


class LLMProvider(ABC):
    """
    Abstract base class for LLM providers.

    Implementations:
        OllamaProvider — local or remote models via Ollama
        MockLLMProvider — for testing
    """

    @abstractmethod
    async def generate(
        self,
        messages: list[Message],
        temperature: float = 0.7,
        max_tokens: int | None = None,
    ) -> AsyncIterator[LLMChunk]:
        """
        Generate a response from the LLM.

        Args:
            messages: Conversation in Nudge Message format
            temperature: Randomness (0.0 = deterministic, 1.0 = creative)
            max_tokens: Maximum tokens to generate (None = model default)

        Yields:
            LLMChunk objects with streaming text.
            The LAST chunk will have stop_reason set.

        Raises:
            LLMError: On API failures, rate limits, connection errors
        """
        ...

    @property
    @abstractmethod
    def model(self) -> str:
        """Model identifier, used in log lines (e.g. "ollama/llama3.1")."""
        ...

    async def close(self) -> None:
        """Release any network resources. Default: nothing to release."""
        return None
