"""
Nudge exception hierarchy.

Every error in the system inherits from NudgeError.
Each subsystem has its own error class for targeted catching.

Only ConfigError is allowed to escape startup. The others are caught at
the narrowest scope (one window, one backend) and turned into log lines.

Usage:
    try:
        body = selector.select(window.messages)
    except NoMessagesAvailable:
        body = config.scheduler.fallback_message
    except SelectionError as e:
        # skip this window for today
"""


class NudgeError(Exception):
    """Base exception for all Nudge errors."""

    def __init__(self, message: str, details: dict | None = None):
        self.message = message
        self.details = details or {}
        super().__init__(message)


# ━━━ Startup ━━━


class ConfigError(NudgeError):
    """Configuration is invalid, missing, or malformed."""

    pass


# ━━━ Regeneration ━━━


class SelectionError(NudgeError):
    """Message selection or generation failed for one window."""

    pass


class NoMessagesAvailable(SelectionError):
    """The candidate list handed to the selector was empty."""

    pass


class LLMError(NudgeError):
    """LLM provider failure — API errors, timeouts, connection errors."""

    def __init__(
        self,
        message: str,
        provider: str = "",
        model: str = "",
        retryable: bool = False,
        details: dict | None = None,
    ):
        self.provider = provider
        self.model = model
        self.retryable = retryable
        super().__init__(message, details)


# ━━━ Delivery ━━━


class DeliveryError(NudgeError):
    """A backend rejected or failed to send a message."""

    def __init__(
        self,
        message: str,
        backend: str = "",
        details: dict | None = None,
    ):
        self.backend = backend
        super().__init__(message, details)


class RateLimitedError(DeliveryError):
    """A backend asked us to back off for retry_after seconds (None = unknown)."""

    def __init__(
        self,
        message: str,
        backend: str = "",
        retry_after: float | None = None,
        details: dict | None = None,
    ):
        self.retry_after = retry_after
        super().__init__(message, backend=backend, details=details)


# ━━━ Scheduling ━━━


class RegistryError(NudgeError):
    """Duplicate event id or other registry invariant violation."""

    pass
