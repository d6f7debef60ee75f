"""
Nudge — random-time daily reminders.

Public API:
    from nudge import NudgeConfig, NudgeDaemon, TimerScheduler
"""

__version__ = "0.1.0"

from nudge.core.config import NudgeConfig, TimeWindowConfig, MessageConfig
from nudge.core.errors import (
    NudgeError,
    ConfigError,
    SelectionError,
    NoMessagesAvailable,
    DeliveryError,
    RateLimitedError,
)
from nudge.messages.selector import MessageSelector
from nudge.notifications.fanout import FanoutDelivery, DeliveryOutcome
from nudge.scheduler.event import ScheduledEvent
from nudge.scheduler.registry import NudgeRegistry
from nudge.scheduler.window import WindowTimeGenerator
from nudge.scheduler.engine import TimerScheduler, SchedulerState
from nudge.daemon import NudgeDaemon

__all__ = [
    # Config
    "NudgeConfig",
    "TimeWindowConfig",
    "MessageConfig",
    # Errors
    "NudgeError",
    "ConfigError",
    "SelectionError",
    "NoMessagesAvailable",
    "DeliveryError",
    "RateLimitedError",
    # Core
    "MessageSelector",
    "FanoutDelivery",
    "DeliveryOutcome",
    "ScheduledEvent",
    "NudgeRegistry",
    "WindowTimeGenerator",
    "TimerScheduler",
    "SchedulerState",
    "NudgeDaemon",
]
