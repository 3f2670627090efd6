"""Observability modules for vmscaler."""

from .logger import logger
from .logging import (
    LogConfig,
    LogLevel,
    _setup_logging,
    _teardown_logging,
)

__all__ = [
    "logger",
    "LogConfig",
    "LogLevel",
    "_setup_logging",
    "_teardown_logging",
]
