"""Logging configuration for vmscaler.

Logging goes to the ``vmscaler`` logger hierarchy and has no handlers
until a LogConfig is applied.

Example:
    from vmscaler.observability import LogConfig, _setup_logging

    handler_ids = _setup_logging(LogConfig(level="DEBUG", console=True))
"""

from __future__ import annotations

import logging
import sys
from dataclasses import dataclass
from pathlib import Path
from typing import Literal

from vmscaler.observability.logger import logger

type LogLevel = Literal["DEBUG", "INFO", "WARNING", "ERROR", "TRACE"]

_CONTEXT_KEYS = ("actor", "component", "kind", "instance_id")


def _format_context(record: logging.LogRecord) -> None:
    extra = getattr(record, "extras", {})
    parts = [f"{k}={extra[k]}" for k in _CONTEXT_KEYS if k in extra]
    record._ctx = f" [{' '.join(parts)}]" if parts else ""  # type: ignore[attr-defined]


@dataclass(frozen=True, slots=True)
class LogConfig:
    """Logging configuration for the autoscaler.

    Attributes:
        level: Minimum console log level.
        file: Path to log file. ``None`` disables file output.
        console: Whether to log to stderr.
        rotation: File rotation size (e.g., "50 MB").
        retention: Number of rotated log files to keep.
    """

    level: LogLevel = "INFO"
    file: str | None = ".vmscaler/vmscaler.log"
    console: bool = False
    rotation: str = "50 MB"
    retention: int = 10


def _setup_logging(config: LogConfig) -> list[int]:
    """Configure logging and return handler IDs for cleanup."""
    logger.remove()
    logger.enable("vmscaler")
    logger.configure(patcher=_format_context)

    handler_ids: list[int] = []

    if config.console:
        handler_ids.append(logger.add(sys.stderr, level=config.level, filter="vmscaler"))

    if config.file:
        Path(config.file).parent.mkdir(parents=True, exist_ok=True)
        handler_ids.append(logger.add(
            config.file,
            level="DEBUG",
            rotation=config.rotation,
            retention=config.retention,
        ))

    return handler_ids


def _teardown_logging(handler_ids: list[int]) -> None:
    for hid in handler_ids:
        logger.remove(hid)
    logger.disable("vmscaler")
