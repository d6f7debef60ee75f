"""
Nudge Configuration — loads and merges config from multiple sources.

Precedence (highest to lowest):
1. Explicit overrides (passed in code)
2. Environment variables (NUDGE_*)
3. Project config (./nudge.toml)
4. User config (~/.nudge/config.toml)
5. Defaults (hardcoded)

The result is a single NudgeConfig value built once at startup and passed
into the scheduler, registry and channels. Core logic never reads the
environment itself.

Environment variable mapping:
    NUDGE_TIMEZONE → scheduler.timezone
    NUDGE_BACKENDS → backends (comma separated, e.g. "telegram,discord")
    NUDGE_TELEGRAM_TOKEN → telegram.token
    NUDGE_DISCORD_WEBHOOK_URL → discord.webhook_url
    ...
"""

from __future__ import annotations

import os
import re
import tomllib
from pathlib import Path
from typing import Any
from zoneinfo import ZoneInfo, ZoneInfoNotFoundError

from pydantic import BaseModel, Field, field_validator

from nudge.core.errors import ConfigError

KNOWN_BACKENDS = ("telegram", "discord", "brevo", "smtp", "file")

_HHMM = re.compile(r"^([01]?\d|2[0-3]):([0-5]\d)$")


def parse_hhmm(value: str) -> int:
    """
    Parse a 24-hour "HH:MM" string into minutes after midnight.

    Raises ConfigError for anything that is not a valid hour/minute pair.
    """
    match = _HHMM.match(value.strip()) if isinstance(value, str) else None
    if match is None:
        raise ConfigError(f"Invalid time {value!r}, expected 24-hour HH:MM")
    return int(match.group(1)) * 60 + int(match.group(2))


# ━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━
# Window Sub-Models
# ━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━


class MessageConfig(BaseModel):
    """One candidate message. weight=None means 'unweighted' (counts as 1)."""

    body: str
    weight: float | None = Field(default=None, gt=0)


class TimeWindowConfig(BaseModel):
    """A daily time range plus its pool of candidate messages."""

    name: str = ""
    start_time: str
    end_time: str
    enabled: bool = True
    messages: list[MessageConfig] = Field(default_factory=list)

    @field_validator("start_time", "end_time")
    @classmethod
    def _check_hhmm(cls, value: str) -> str:
        try:
            parse_hhmm(value)
        except ConfigError as e:
            raise ValueError(e.message) from e
        return value.strip()

    @property
    def start_minutes(self) -> int:
        return parse_hhmm(self.start_time)

    @property
    def end_minutes(self) -> int:
        return parse_hhmm(self.end_time)

    @property
    def crosses_midnight(self) -> bool:
        return self.end_minutes < self.start_minutes

    @property
    def label(self) -> str:
        return self.name or f"{self.start_time}-{self.end_time}"


# ━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━
# Backend Sub-Models
# ━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━


class TelegramConfig(BaseModel):
    """Telegram bot configuration."""

    token: str = ""
    chat_id: str = ""
    parse_mode: str = "HTML"
    disable_notification: bool = False

    @property
    def configured(self) -> bool:
        return bool(self.token and self.chat_id)


class DiscordConfig(BaseModel):
    """Discord webhook configuration."""

    webhook_url: str = ""
    username: str = "nudge bot"
    avatar_url: str = ""
    use_embeds: bool = True
    embed_color: int = 3447003

    @property
    def configured(self) -> bool:
        return bool(self.webhook_url)


class BrevoConfig(BaseModel):
    """Brevo transactional e-mail configuration."""

    api_key: str = ""
    sender_email: str = ""
    sender_name: str = ""
    to_email: str = ""
    subject: str = "nudge reminder"

    @property
    def configured(self) -> bool:
        return bool(self.api_key and self.sender_email and self.sender_name and self.to_email)


class SmtpConfig(BaseModel):
    """Plain SMTP e-mail configuration."""

    host: str = ""
    port: int = 587
    secure: bool = False  # True = implicit TLS (port 465), False = STARTTLS
    username: str = ""
    password: str = ""
    sender_email: str = ""
    to_email: str = ""
    subject: str = "nudge reminder"

    @property
    def configured(self) -> bool:
        return bool(self.host and self.sender_email and self.to_email)


class FileChannelConfig(BaseModel):
    """Append-only notification log."""

    path: str = "~/.nudge/notifications.log"

    @property
    def configured(self) -> bool:
        return bool(self.path)


# ━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━
# Runtime Sub-Models
# ━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━


class SchedulerConfig(BaseModel):
    """Scheduling and delivery behaviour."""

    timezone: str = "Europe/Istanbul"
    fallback_message: str = "hey, you forgot to set a message"
    delivery_timeout: float = 30.0  # seconds per backend attempt
    max_retry_after: float = 300.0  # cap on a backend's requested back-off


class LLMConfig(BaseModel):
    """LLM provider configuration."""

    provider: str = "ollama"
    model: str = "llama3.1"
    base_url: str = "http://localhost:11434"
    temperature: float = 0.9


class GeneratorConfig(BaseModel):
    """Generative message source (replaces static message pools when enabled)."""

    enabled: bool = False
    timeout: float = 60.0
    history_size: int = 20


class LoggingConfig(BaseModel):
    """Process logging configuration."""

    dir: str = "~/.nudge/logs"
    level: str = "INFO"


# ━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━
# Main Config
# ━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━


class NudgeConfig(BaseModel):
    """Root configuration for Nudge."""

    backends: list[str] = Field(default_factory=list)
    windows: list[TimeWindowConfig] = Field(default_factory=list)
    scheduler: SchedulerConfig = Field(default_factory=SchedulerConfig)
    telegram: TelegramConfig = Field(default_factory=TelegramConfig)
    discord: DiscordConfig = Field(default_factory=DiscordConfig)
    brevo: BrevoConfig = Field(default_factory=BrevoConfig)
    smtp: SmtpConfig = Field(default_factory=SmtpConfig)
    file: FileChannelConfig = Field(default_factory=FileChannelConfig)
    llm: LLMConfig = Field(default_factory=LLMConfig)
    generator: GeneratorConfig = Field(default_factory=GeneratorConfig)
    logging: LoggingConfig = Field(default_factory=LoggingConfig)

    @field_validator("backends", mode="before")
    @classmethod
    def _split_backends(cls, value: Any) -> Any:
        if isinstance(value, str):
            value = value.split(",")
        if isinstance(value, list):
            return [str(part).strip().lower() for part in value if str(part).strip()]
        return value

    @staticmethod
    def load(
        overrides: dict[str, Any] | None = None,
        project_path: Path | None = None,
        user_path: Path | None = None,
    ) -> NudgeConfig:
        """
        Load configuration from all sources and merge.

        Precedence: overrides > env vars > project toml > user toml > defaults
        """
        merged: dict[str, Any] = {}

        # Layer 1: User config (~/.nudge/config.toml)
        user_config_path = user_path or Path.home() / ".nudge" / "config.toml"
        if user_config_path.exists():
            _deep_merge(merged, _load_toml(user_config_path))

        # Layer 2: Project config (./nudge.toml)
        project_config_path = project_path or Path.cwd() / "nudge.toml"
        if project_config_path.exists():
            _deep_merge(merged, _load_toml(project_config_path))

        # Layer 3: Environment variables
        _deep_merge(merged, _load_from_env())

        # Layer 4: Explicit overrides
        if overrides:
            _deep_merge(merged, overrides)

        _substitute_env_vars(merged)

        try:
            return NudgeConfig(**merged)
        except Exception as e:
            raise ConfigError(f"Invalid configuration: {e}") from e

    @property
    def tz(self) -> ZoneInfo:
        """The configured timezone. Raises ConfigError if unknown."""
        try:
            return ZoneInfo(self.scheduler.timezone)
        except (ZoneInfoNotFoundError, ValueError) as e:
            raise ConfigError(f"Unknown timezone: {self.scheduler.timezone!r}") from e

    @property
    def active_windows(self) -> list[TimeWindowConfig]:
        return [w for w in self.windows if w.enabled]

    def validate_for_run(self) -> None:
        """
        Check everything the daemon needs before it may enter Running.

        Raises ConfigError listing every problem found.
        """
        problems: list[str] = []

        try:
            self.tz
        except ConfigError as e:
            problems.append(e.message)

        if not self.backends:
            problems.append("No backends configured (set 'backends' or NUDGE_BACKENDS)")
        for name in self.backends:
            if name not in KNOWN_BACKENDS:
                problems.append(f"Unknown backend: {name!r}")
                continue
            section = getattr(self, name)
            if not section.configured:
                problems.append(f"Backend {name!r} is enabled but not configured")

        if not self.active_windows:
            problems.append("No enabled time windows configured")
        if not self.generator.enabled:
            for window in self.active_windows:
                if not window.messages:
                    problems.append(f"Window {window.label!r} has no messages")

        if problems:
            raise ConfigError(
                "Configuration problems: " + "; ".join(problems),
                details={"problems": problems},
            )


# ━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━
# Internal Helpers
# ━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━


def _load_toml(path: Path) -> dict[str, Any]:
    """Load a TOML file."""
    try:
        with open(path, "rb") as f:
            return tomllib.load(f)
    except Exception as e:
        raise ConfigError(f"Failed to load config from {path}: {e}") from e


def _load_from_env() -> dict[str, Any]:
    """Load configuration from NUDGE_* environment variables."""
    result: dict[str, Any] = {}

    backends = os.environ.get("NUDGE_BACKENDS")
    if backends is not None:
        result["backends"] = backends

    env_mapping = {
        "NUDGE_TIMEZONE": ("scheduler", "timezone"),
        "NUDGE_FALLBACK_MESSAGE": ("scheduler", "fallback_message"),
        "NUDGE_TELEGRAM_TOKEN": ("telegram", "token"),
        "NUDGE_TELEGRAM_CHAT_ID": ("telegram", "chat_id"),
        "NUDGE_TELEGRAM_PARSE_MODE": ("telegram", "parse_mode"),
        "NUDGE_DISCORD_WEBHOOK_URL": ("discord", "webhook_url"),
        "NUDGE_DISCORD_USERNAME": ("discord", "username"),
        "NUDGE_BREVO_API_KEY": ("brevo", "api_key"),
        "NUDGE_BREVO_SENDER_EMAIL": ("brevo", "sender_email"),
        "NUDGE_BREVO_SENDER_NAME": ("brevo", "sender_name"),
        "NUDGE_BREVO_TO_EMAIL": ("brevo", "to_email"),
        "NUDGE_SMTP_HOST": ("smtp", "host"),
        "NUDGE_SMTP_PORT": ("smtp", "port"),
        "NUDGE_SMTP_SECURE": ("smtp", "secure"),
        "NUDGE_SMTP_USERNAME": ("smtp", "username"),
        "NUDGE_SMTP_PASSWORD": ("smtp", "password"),
        "NUDGE_SMTP_SENDER_EMAIL": ("smtp", "sender_email"),
        "NUDGE_SMTP_TO_EMAIL": ("smtp", "to_email"),
        "NUDGE_LLM_MODEL": ("llm", "model"),
        "NUDGE_LLM_BASE_URL": ("llm", "base_url"),
        "NUDGE_GENERATOR_ENABLED": ("generator", "enabled"),
        "NUDGE_LOG_LEVEL": ("logging", "level"),
    }

    # Only these are non-string fields; tokens and chat ids stay as text
    typed_keys = {("smtp", "port"), ("smtp", "secure"), ("generator", "enabled")}

    for env_var, (section, key) in env_mapping.items():
        value = os.environ.get(env_var)
        if value is not None:
            if section not in result:
                result[section] = {}
            if (section, key) in typed_keys:
                result[section][key] = _convert_value(value)
            else:
                result[section][key] = value

    return result


def _convert_value(value: str) -> Any:
    """Convert string value to appropriate type."""
    if value.lower() in ("true", "yes"):
        return True
    if value.lower() in ("false", "no"):
        return False
    try:
        return int(value)
    except ValueError:
        pass
    try:
        return float(value)
    except ValueError:
        pass
    return value


def _deep_merge(base: dict, override: dict) -> None:
    """Deep merge override into base (mutates base)."""
    for key, value in override.items():
        if key in base and isinstance(base[key], dict) and isinstance(value, dict):
            _deep_merge(base[key], value)
        else:
            base[key] = value


def _substitute_env_vars(data: dict) -> None:
    """Recursively substitute ${ENV_VAR} patterns in string values."""
    pattern = re.compile(r"\$\{([^}]+)\}")

    def _sub(text: str) -> str:
        for var_name in pattern.findall(text):
            text = text.replace(f"${{{var_name}}}", os.environ.get(var_name, ""))
        return text

    for key, value in data.items():
        if isinstance(value, dict):
            _substitute_env_vars(value)
        elif isinstance(value, str):
            data[key] = _sub(value)
        elif isinstance(value, list):
            for i, item in enumerate(value):
                if isinstance(item, str):
                    value[i] = _sub(item)
                elif isinstance(item, dict):
                    _substitute_env_vars(item)
