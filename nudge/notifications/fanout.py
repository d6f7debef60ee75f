"""
FanoutDelivery — sends one message through every registered backend.

Delivery rules:

    1. Every backend gets its own attempt, run concurrently. One backend
       failing, hanging or rate-limiting never affects the others.
    2. A backend that raises RateLimitedError with a retry_after gets
       exactly one more attempt after sleeping that long. The sleep is
       local to that backend's attempt.
    3. deliver() never raises. It returns one DeliveryOutcome per backend;
       a total failure is logged, not propagated, so the scheduler keeps
       running.
"""

from __future__ import annotations

import asyncio
import logging
from dataclasses import dataclass
from typing import Awaitable, Callable, Iterable

from nudge.core.errors import DeliveryError, RateLimitedError
from nudge.notifications.base import DeliveryBackend

logger = logging.getLogger(__name__)

MAX_ATTEMPTS = 2  # first try + one rate-limit retry


@dataclass(slots=True)
class DeliveryOutcome:
    """What happened on one backend for one message."""

    backend: str
    success: bool
    attempts: int = 1
    error: str | None = None


class FanoutDelivery:
    """
    Usage:
        fanout = FanoutDelivery([TelegramChannel(...), FileChannel(...)])
        outcomes = await fanout.deliver("Time to stretch!")
    """

    def __init__(
        self,
        backends: Iterable[DeliveryBackend] = (),
        timeout: float = 30.0,
        max_retry_after: float = 300.0,
        sleep: Callable[[float], Awaitable[None]] = asyncio.sleep,
    ) -> None:
        self._backends: list[DeliveryBackend] = []
        self._timeout = timeout
        self._max_retry_after = max_retry_after
        self._sleep = sleep
        for backend in backends:
            self.register(backend)

    def register(self, backend: DeliveryBackend) -> None:
        """Register a backend. Registration order is the log order."""
        self._backends.append(backend)
        logger.debug(f"Delivery backend registered: {backend.name}")

    @property
    def backend_names(self) -> list[str]:
        return [b.name for b in self._backends]

    async def deliver(self, message: str) -> list[DeliveryOutcome]:
        """Attempt delivery on every backend. Never raises."""
        if not self._backends:
            logger.error("No delivery backends registered, message dropped")
            return []

        outcomes = await asyncio.gather(
            *(self._attempt(backend, message) for backend in self._backends)
        )

        delivered = [o.backend for o in outcomes if o.success]
        if not delivered:
            logger.error(f"Delivery failed on all {len(outcomes)} backend(s)")
        elif len(delivered) < len(outcomes):
            logger.warning(f"Delivered via {len(delivered)}/{len(outcomes)} backends: {delivered}")
        else:
            logger.info(f"Delivered via all backends: {delivered}")
        return list(outcomes)

    async def _attempt(self, backend: DeliveryBackend, message: str) -> DeliveryOutcome:
        attempts = 0
        while True:
            attempts += 1
            try:
                await asyncio.wait_for(backend.send_message(message), timeout=self._timeout)
            except RateLimitedError as e:
                if attempts >= MAX_ATTEMPTS or e.retry_after is None:
                    return self._failed(backend, attempts, f"rate limited: {e.message}")
                delay = min(max(e.retry_after, 0.0), self._max_retry_after)
                logger.info(f"{backend.name} rate limited, retrying after {delay:.3f}s")
                await self._sleep(delay)
                continue
            except asyncio.TimeoutError:
                return self._failed(backend, attempts, f"timed out after {self._timeout}s")
            except DeliveryError as e:
                return self._failed(backend, attempts, e.message)
            except Exception as e:
                return self._failed(backend, attempts, f"{type(e).__name__}: {e}")

            logger.info(f"Message sent via {backend.name} (attempt {attempts})")
            return DeliveryOutcome(backend=backend.name, success=True, attempts=attempts)

    @staticmethod
    def _failed(backend: DeliveryBackend, attempts: int, reason: str) -> DeliveryOutcome:
        logger.warning(f"Delivery via {backend.name} failed: {reason}")
        return DeliveryOutcome(backend=backend.name, success=False, attempts=attempts, error=reason)

    async def close(self) -> None:
        for backend in self._backends:
            try:
                await backend.close()
            except Exception as e:
                logger.warning(f"Closing backend {backend.name} failed: {e}")
