"""
Mock LLM Provider — for testing.

Returns configurable responses without making any API calls.
Tracks all calls for test assertions.
"""

from __future__ import annotations

import asyncio
from typing import AsyncIterator

from nudge.core.errors import LLMError
from nudge.core.types import LLMChunk, Message, StopReason
from nudge.llm.base import LLMProvider


class MockLLMProvider(LLMProvider):
    """
    Mock LLM that returns pre-configured responses.

    Usage in tests:
        mock = MockLLMProvider()
        mock.set_response("Drink some water!")

        async for chunk in mock.generate([...]):
            print(chunk.text)

        # Check what was sent
        assert mock.last_messages[0].role == "system"

    Failure modes:
        mock.set_error(LLMError("boom"))   # next call raises
        mock.delay = 5.0                   # every call sleeps first
    """

    def __init__(self, model: str = "mock-model") -> None:
        self._model = model

        # Each generate() call pops the first queued response
        self._responses: list[list[LLMChunk] | Exception] = []

        self._default_response = "I'm a mock AI. Configure me with set_response()."
        self.delay: float = 0.0

        # Call tracking
        self.call_count: int = 0
        self.last_messages: list[Message] = []
        self.all_calls: list[dict] = []

    def set_response(self, text: str) -> None:
        """Queue a text response for the next generate() call."""
        self._responses.append(
            [
                LLMChunk(text=text),
                LLMChunk(
                    stop_reason=StopReason.COMPLETE,
                    input_tokens=len(text) // 4,
                    output_tokens=len(text) // 4,
                ),
            ]
        )

    def set_responses(self, texts: list[str]) -> None:
        """Queue multiple text responses for successive generate() calls."""
        for text in texts:
            self.set_response(text)

    def set_error(self, error: Exception | None = None) -> None:
        """Make the next generate() call raise."""
        self._responses.append(error or LLMError("mock failure", provider="mock"))

    async def generate(
        self,
        messages: list[Message],
        temperature: float = 0.7,
        max_tokens: int | None = None,
    ) -> AsyncIterator[LLMChunk]:
        """Return queued response or default."""
        self.call_count += 1
        self.last_messages = list(messages)
        self.all_calls.append(
            {
                "messages": list(messages),
                "temperature": temperature,
                "max_tokens": max_tokens,
                "call_number": self.call_count,
            }
        )

        if self.delay:
            await asyncio.sleep(self.delay)

        if self._responses:
            queued = self._responses.pop(0)
        else:
            queued = [
                LLMChunk(text=self._default_response),
                LLMChunk(stop_reason=StopReason.COMPLETE),
            ]

        if isinstance(queued, Exception):
            raise queued

        for chunk in queued:
            yield chunk

    @property
    def model(self) -> str:
        return f"mock/{self._model}"

    def reset(self) -> None:
        """Reset all state. Useful between tests."""
        self._responses.clear()
        self.call_count = 0
        self.last_messages = []
        self.all_calls = []
