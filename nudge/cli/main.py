"""
Nudge CLI entry point.

Commands:
    nudge run      — Run the daemon until Ctrl+C / SIGTERM
    nudge preview  — Draw today's fire times without sending anything
    nudge send     — Push one message through every backend right now
    nudge check    — Validate the configuration
    nudge config   — Show the effective configuration
    nudge version  — Show version
"""

from __future__ import annotations

import asyncio
import logging
from pathlib import Path

import typer
from rich.console import Console
from rich.markup import escape
from rich.table import Table

from nudge.core.config import NudgeConfig
from nudge.core.errors import ConfigError

app = typer.Typer(
    name="nudge",
    help="Nudge — random-time daily reminders over Telegram, Discord and e-mail.",
    add_completion=False,
)

console = Console()

_SECRET_KEYS = {"token", "api_key", "password", "webhook_url"}


def _load_config(config_path: Path | None) -> NudgeConfig:
    try:
        return NudgeConfig.load(project_path=config_path)
    except ConfigError as e:
        console.print(f"[red]{escape(e.message)}[/red]")
        raise typer.Exit(1)


@app.command()
def run(
    config_path: Path = typer.Option(None, "--config", "-c", help="Path to nudge.toml"),
    verbose: bool = typer.Option(False, "--verbose", "-v", help="Show debug output"),
) -> None:
    """Run the nudge daemon."""
    from nudge.core.logging import level_from_name, setup_logging
    from nudge.daemon import NudgeDaemon

    config = _load_config(config_path)
    setup_logging(
        log_dir=Path(config.logging.dir),
        console_level=logging.DEBUG if verbose else level_from_name(config.logging.level),
    )

    try:
        daemon = NudgeDaemon(config)
    except ConfigError as e:
        console.print(f"[red]{escape(e.message)}[/red]")
        raise typer.Exit(1)

    asyncio.run(daemon.run_forever())


@app.command()
def preview(
    config_path: Path = typer.Option(None, "--config", "-c", help="Path to nudge.toml"),
) -> None:
    """Draw one fire time and message per window, without sending anything."""
    from nudge.core.clock import SystemClock
    from nudge.scheduler.registry import NudgeRegistry
    from nudge.scheduler.window import WindowTimeGenerator

    config = _load_config(config_path)
    try:
        clock = SystemClock(config.tz)
    except ConfigError as e:
        console.print(f"[red]{escape(e.message)}[/red]")
        raise typer.Exit(1)

    registry = NudgeRegistry(
        WindowTimeGenerator(clock),
        fallback_message=config.scheduler.fallback_message,
    )
    events = asyncio.run(registry.regenerate(config.windows))

    table = Table(title=f"Nudge preview ({config.scheduler.timezone})")
    table.add_column("Window")
    table.add_column("Fires at")
    table.add_column("Message")
    for event in events:
        message = "(generated by the LLM at runtime)" if config.generator.enabled else event.message
        table.add_row(escape(event.window), f"{event.fire_time:%Y-%m-%d %H:%M}", escape(message))
    console.print(table)

    if not events:
        console.print("[yellow]No enabled windows configured.[/yellow]")


@app.command()
def send(
    message: str = typer.Argument(..., help="Message to deliver"),
    config_path: Path = typer.Option(None, "--config", "-c", help="Path to nudge.toml"),
) -> None:
    """Send a message through every configured backend right now."""
    from nudge.notifications.channels import build_backends
    from nudge.notifications.fanout import FanoutDelivery

    config = _load_config(config_path)
    try:
        fanout = FanoutDelivery(
            build_backends(config),
            timeout=config.scheduler.delivery_timeout,
            max_retry_after=config.scheduler.max_retry_after,
        )
    except ConfigError as e:
        console.print(f"[red]{escape(e.message)}[/red]")
        raise typer.Exit(1)

    async def _send():
        try:
            return await fanout.deliver(message)
        finally:
            await fanout.close()

    outcomes = asyncio.run(_send())

    table = Table(title="Delivery")
    table.add_column("Backend")
    table.add_column("Result")
    table.add_column("Attempts", justify="right")
    for outcome in outcomes:
        result = "[green]sent[/green]" if outcome.success else f"[red]{escape(outcome.error or 'failed')}[/red]"
        table.add_row(outcome.backend, result, str(outcome.attempts))
    console.print(table)

    if not any(o.success for o in outcomes):
        raise typer.Exit(1)


@app.command()
def check(
    config_path: Path = typer.Option(None, "--config", "-c", help="Path to nudge.toml"),
) -> None:
    """Validate the configuration."""
    from nudge.messages.selector import MessageSelector

    config = _load_config(config_path)
    try:
        config.validate_for_run()
    except ConfigError as e:
        for problem in e.details.get("problems", [e.message]):
            console.print(f"[red]✗[/red] {escape(problem)}")
        raise typer.Exit(1)

    for window in config.active_windows:
        for problem in MessageSelector.validate(window.messages, window.label):
            console.print(f"[yellow]![/yellow] {escape(problem)}")

    console.print(
        f"[green]✓[/green] {len(config.active_windows)} window(s), "
        f"backends: {', '.join(config.backends)}, timezone: {config.scheduler.timezone}"
    )


@app.command()
def version() -> None:
    """Show Nudge version."""
    from nudge import __version__

    console.print(f"Nudge v{__version__}")


@app.command(name="config")
def show_config(
    config_path: Path = typer.Option(None, "--config", "-c", help="Path to nudge.toml"),
) -> None:
    """Show the effective configuration (secrets masked)."""
    import json

    config = _load_config(config_path)
    data = _mask(config.model_dump())
    console.print_json(json.dumps(data))


def _mask(data):
    if isinstance(data, dict):
        return {
            k: ("***" if k in _SECRET_KEYS and v else _mask(v))
            for k, v in data.items()
        }
    if isinstance(data, list):
        return [_mask(v) for v in data]
    return data


if __name__ == "__main__":
    app()
