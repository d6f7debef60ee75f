"""
Logging setup — console plus a dated file under ~/.nudge/logs.
"""

from __future__ import annotations

import logging
from datetime import datetime
from pathlib import Path


def setup_logging(
    log_dir: Path | None = None,
    console_level: int = logging.INFO,
    file_level: int = logging.DEBUG,
) -> logging.Logger:
    """
    Setup Nudge logging.

    Args:
        log_dir: Directory for log files (default: ~/.nudge/logs)
        console_level: Minimum level for console output
        file_level: Minimum level for file output

    Returns:
        The configured "nudge" logger
    """
    log_dir = (log_dir or (Path.home() / ".nudge" / "logs")).expanduser()
    log_dir.mkdir(parents=True, exist_ok=True)

    logger = logging.getLogger("nudge")
    logger.setLevel(logging.DEBUG)

    # Clear existing handlers
    logger.handlers = []

    console_handler = logging.StreamHandler()
    console_handler.setLevel(console_level)
    console_handler.setFormatter(
        logging.Formatter("%(asctime)s [%(levelname)s] %(message)s", datefmt="%H:%M:%S")
    )
    logger.addHandler(console_handler)

    log_file = log_dir / f"nudge_{datetime.now().strftime('%Y%m%d')}.log"
    file_handler = logging.FileHandler(log_file, encoding="utf-8")
    file_handler.setLevel(file_level)
    file_handler.setFormatter(
        logging.Formatter(
            "%(asctime)s [%(levelname)s] %(name)s: %(message)s",
            datefmt="%Y-%m-%d %H:%M:%S",
        )
    )
    logger.addHandler(file_handler)

    logger.info(f"Logging initialized. File: {log_file}")

    return logger


def level_from_name(name: str) -> int:
    """'debug' / 'INFO' / 'warning' → logging constant (INFO if unknown)."""
    value = logging.getLevelName(name.strip().upper())
    return value if isinstance(value, int) else logging.INFO
