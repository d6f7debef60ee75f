"""
GenerativeMessageSource — asks an LLM for a fresh nudge instead of
drawing from a static pool.

Each call picks a random prompt/persona pair, tells the model what it
already said (bounded history) so it does not repeat itself, and returns
the stripped text. The whole call is bounded by a timeout; any failure
surfaces as SelectionError so the registry can skip that window.
"""

from __future__ import annotations

import asyncio
import logging
import random
from collections import deque

from nudge.core.errors import LLMError, SelectionError
from nudge.core.types import Message, StopReason
from nudge.llm.base import LLMProvider
from nudge.messages.prompts import (
    HISTORY_INSTRUCTION,
    NUDGE_PROMPTS,
    STYLE_RULES,
    SYSTEM_PROMPTS,
)

logger = logging.getLogger(__name__)


class GenerativeMessageSource:
    """
    LLM-backed message source.

    Usage:
        source = GenerativeMessageSource(OllamaProvider(...), timeout=60)
        body = await source.generate()
    """

    def __init__(
        self,
        llm: LLMProvider,
        timeout: float = 60.0,
        history_size: int = 20,
        temperature: float = 0.9,
        rng: random.Random | None = None,
    ) -> None:
        self._llm = llm
        self._timeout = timeout
        self._temperature = temperature
        self._rng = rng or random.Random()
        self._history: deque[str] = deque(maxlen=max(history_size, 0))

    @property
    def history(self) -> list[str]:
        return list(self._history)

    async def generate(self) -> str:
        """
        Produce one message.

        Raises:
            SelectionError: on timeout, provider failure or an empty reply.
        """
        messages = self._build_messages()
        try:
            text = await asyncio.wait_for(self._collect(messages), timeout=self._timeout)
        except asyncio.TimeoutError as e:
            raise SelectionError(f"Message generation timed out after {self._timeout}s") from e
        except LLMError as e:
            raise SelectionError(f"Message generation failed: {e.message}") from e

        if not text:
            raise SelectionError("Message generation returned an empty reply")

        self._history.append(text)
        logger.debug(f"Generated message via {self._llm.model} ({len(text)} chars)")
        return text

    def _build_messages(self) -> list[Message]:
        prompt = ""
        if self._history:
            history = "\n".join(f"- {h}" for h in self._history)
            prompt = HISTORY_INSTRUCTION.format(history=history)
        prompt += self._rng.choice(list(NUDGE_PROMPTS.values()))
        prompt += "\n" + STYLE_RULES

        system = self._rng.choice(list(SYSTEM_PROMPTS.values()))
        return [Message.system(system), Message.user(prompt)]

    async def _collect(self, messages: list[Message]) -> str:
        parts: list[str] = []
        async for chunk in self._llm.generate(messages=messages, temperature=self._temperature):
            if chunk.text:
                parts.append(chunk.text)
            if chunk.stop_reason is StopReason.MAX_TOKENS:
                logger.warning(f"{self._llm.model} hit its token limit, nudge may be cut off")
            if chunk.stop_reason is not None:
                logger.debug(
                    f"{self._llm.model}: {chunk.input_tokens} prompt / {chunk.output_tokens} reply tokens"
                )
        return "".join(parts).strip()
