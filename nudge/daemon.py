"""
NudgeDaemon — wires config into a running scheduler.

    config → clock, selector, (generator) → registry
           → backends → fanout
           → TimerScheduler

validate_for_run() and backend construction happen before anything is
started, so a ConfigError means the daemon never enters Running.
"""

from __future__ import annotations

import asyncio
import logging
import signal

import httpx

from nudge.core.clock import Clock, SystemClock
from nudge.core.config import NudgeConfig
from nudge.llm.base import LLMProvider
from nudge.messages.generator import GenerativeMessageSource
from nudge.messages.selector import MessageSelector
from nudge.notifications.channels import build_backends
from nudge.notifications.fanout import FanoutDelivery
from nudge.scheduler.engine import TimerScheduler
from nudge.scheduler.registry import NudgeRegistry
from nudge.scheduler.window import WindowTimeGenerator

logger = logging.getLogger(__name__)


class NudgeDaemon:
    """
    Usage:
        daemon = NudgeDaemon(NudgeConfig.load())
        await daemon.run_forever()      # until SIGINT / SIGTERM
    """

    def __init__(
        self,
        config: NudgeConfig,
        clock: Clock | None = None,
        llm: LLMProvider | None = None,
        transport: httpx.AsyncBaseTransport | None = None,
    ) -> None:
        config.validate_for_run()
        self.config = config
        self.clock = clock or SystemClock(config.tz)
        self.times = WindowTimeGenerator(self.clock)

        self.llm: LLMProvider | None = None
        generator: GenerativeMessageSource | None = None
        if config.generator.enabled:
            self.llm = llm or _make_llm(config)
            generator = GenerativeMessageSource(
                self.llm,
                timeout=config.generator.timeout,
                history_size=config.generator.history_size,
                temperature=config.llm.temperature,
            )

        self.registry = NudgeRegistry(
            self.times,
            MessageSelector(),
            fallback_message=config.scheduler.fallback_message,
            generator=generator,
        )
        self.delivery = FanoutDelivery(
            build_backends(config, transport=transport),
            timeout=config.scheduler.delivery_timeout,
            max_retry_after=config.scheduler.max_retry_after,
        )
        self.scheduler = TimerScheduler(
            self.registry,
            self.delivery,
            config.active_windows,
            self.clock,
            times=self.times,
        )
        self._stop_event: asyncio.Event | None = None

    async def start(self) -> None:
        logger.info("nudge daemon: starting...")
        await self.scheduler.start()
        logger.info(
            f"nudge daemon: started (timezone={self.config.scheduler.timezone}, "
            f"backends={self.delivery.backend_names})"
        )

    async def stop(self) -> None:
        logger.info("nudge daemon: stopping...")
        await self.scheduler.stop()
        await self.scheduler.wait_for_deliveries()
        await self.delivery.close()
        if self.llm is not None:
            await self.llm.close()
        logger.info("nudge daemon: stopped")

    def request_stop(self) -> None:
        if self._stop_event is not None:
            self._stop_event.set()

    async def run_forever(self) -> None:
        """Start, then block until a shutdown signal or request_stop()."""
        self._stop_event = asyncio.Event()
        loop = asyncio.get_running_loop()
        for sig in (signal.SIGINT, signal.SIGTERM):
            try:
                loop.add_signal_handler(sig, self.request_stop)
            except (NotImplementedError, RuntimeError):
                # Windows event loops do not support signal handlers
                pass

        await self.start()
        try:
            await self._stop_event.wait()
        finally:
            await self.stop()


def _make_llm(config: NudgeConfig) -> LLMProvider:
    from nudge.core.errors import ConfigError

    if config.llm.provider == "ollama":
        from nudge.llm.ollama import OllamaProvider

        return OllamaProvider(base_url=config.llm.base_url, model=config.llm.model)
    raise ConfigError(f"Unsupported LLM provider: {config.llm.provider!r}")
