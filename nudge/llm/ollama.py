"""
OllamaProvider — asks a local (or LAN) Ollama server for nudge text.

Talks to POST /api/chat with "stream": true. Ollama answers with one JSON
object per line:

    {"message": {"role": "assistant", "content": "Time "}, "done": false}
    {"message": {"role": "assistant", "content": "to stretch!"}, "done": false}
    {"done": true, "done_reason": "stop", "prompt_eval_count": 41, "eval_count": 6}

Every failure (server down, HTTP error status, an {"error": ...} line)
surfaces as LLMError; the generative source turns that into a skipped
window.
"""

from __future__ import annotations

import json
import logging
from typing import Any, AsyncIterator

import httpx

from nudge.core.errors import LLMError
from nudge.core.types import LLMChunk, Message, StopReason
from nudge.llm.base import LLMProvider

logger = logging.getLogger(__name__)

_CHAT_PATH = "/api/chat"


class OllamaProvider(LLMProvider):
    """
    Usage:
        llm = OllamaProvider(base_url="http://localhost:11434", model="llama3.1")
        source = GenerativeMessageSource(llm)
    """

    def __init__(
        self,
        base_url: str = "http://localhost:11434",
        model: str = "llama3.1",
        transport: httpx.AsyncBaseTransport | None = None,
    ) -> None:
        self._base_url = base_url.rstrip("/")
        self._model = model
        self._transport = transport
        self._client: httpx.AsyncClient | None = None

    @property
    def model(self) -> str:
        return f"ollama/{self._model}"

    def _http(self) -> httpx.AsyncClient:
        # One client for the daemon's lifetime; recreated if close() ran
        if self._client is None or self._client.is_closed:
            self._client = httpx.AsyncClient(
                base_url=self._base_url,
                transport=self._transport,
                # A cold model load can take a minute before the first token
                timeout=httpx.Timeout(10.0, read=120.0),
            )
        return self._client

    async def generate(
        self,
        messages: list[Message],
        temperature: float = 0.7,
        max_tokens: int | None = None,
    ) -> AsyncIterator[LLMChunk]:
        options: dict[str, Any] = {"temperature": temperature}
        if max_tokens is not None:
            options["num_predict"] = max_tokens
        body = {
            "model": self._model,
            "messages": [{"role": m.role, "content": m.content} for m in messages],
            "stream": True,
            "options": options,
        }

        try:
            async with self._http().stream("POST", _CHAT_PATH, json=body) as resp:
                if resp.status_code != 200:
                    detail = (await resp.aread()).decode(errors="replace")
                    raise self._error(
                        f"Ollama returned HTTP {resp.status_code}: {detail}",
                        retryable=resp.status_code >= 500,
                    )

                async for line in resp.aiter_lines():
                    chunk = self._parse_line(line)
                    if chunk is None:
                        continue
                    yield chunk
                    if chunk.stop_reason is not None:
                        return
        except httpx.ConnectError as e:
            raise self._error(
                f"No Ollama server reachable at {self._base_url} ({e})", retryable=True
            ) from e
        except httpx.TimeoutException as e:
            raise self._error(f"Ollama did not answer in time ({e})", retryable=True) from e
        except httpx.HTTPError as e:
            raise self._error(f"Ollama request failed: {e}", retryable=False) from e

    def _parse_line(self, line: str) -> LLMChunk | None:
        """One NDJSON line → a chunk, or None for blank/garbled lines."""
        if not line.strip():
            return None
        try:
            data = json.loads(line)
        except json.JSONDecodeError:
            logger.debug(f"Skipping unparseable Ollama line: {line[:80]!r}")
            return None
        if not isinstance(data, dict):
            return None

        if "error" in data:
            raise self._error(f"Ollama reported an error mid-stream: {data['error']}", retryable=True)

        if data.get("done"):
            reason = StopReason.MAX_TOKENS if data.get("done_reason") == "length" else StopReason.COMPLETE
            return LLMChunk(
                text=(data.get("message") or {}).get("content", ""),
                stop_reason=reason,
                input_tokens=data.get("prompt_eval_count", 0),
                output_tokens=data.get("eval_count", 0),
            )

        text = (data.get("message") or {}).get("content", "")
        return LLMChunk(text=text) if text else None

    def _error(self, message: str, retryable: bool) -> LLMError:
        return LLMError(message, provider="ollama", model=self._model, retryable=retryable)

    async def close(self) -> None:
        if self._client is not None and not self._client.is_closed:
            await self._client.aclose()
