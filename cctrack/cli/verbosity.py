"""Verbosity handling for the cctrack CLI.

``-v`` shows exchange progress, ``-vv`` debug output, ``-vvv`` adds
tracebacks to reported errors.
"""

from __future__ import annotations

import logging
from enum import IntEnum
from typing import Any

from cctrack.models import LogLevel


class VerbosityLevel(IntEnum):
    """Verbosity levels for CLI commands."""

    NORMAL = 0  # errors, warnings, results
    VERBOSE = 1  # -v: exchange progress
    DEBUG = 2  # -vv: debug messages
    TRACE = 3  # -vvv: debug plus tracebacks


class VerbosityManager:
    """Maps the number of ``-v`` flags to logging behaviour."""

    LEVEL_TO_LOGGING: dict[VerbosityLevel, int] = {
        VerbosityLevel.NORMAL: logging.WARNING,
        VerbosityLevel.VERBOSE: logging.INFO,
        VerbosityLevel.DEBUG: logging.DEBUG,
        VerbosityLevel.TRACE: logging.DEBUG,
    }

    def __init__(self, verbosity_count: int = 0):
        """Initialize verbosity manager.

        Args:
            verbosity_count: Number of -v flags, clamped to 0-3

        """
        self.verbosity_count = max(0, min(3, verbosity_count))
        self.level = VerbosityLevel(self.verbosity_count)
        self.logging_level = self.LEVEL_TO_LOGGING[self.level]

    @classmethod
    def from_count(cls, count: int) -> VerbosityManager:
        return cls(count)

    def log_level(self, configured: LogLevel) -> LogLevel:
        """Console log level: the configured one unless ``-v`` asks for more."""
        configured_level = logging.getLevelName(configured.value)
        if self.logging_level < configured_level:
            return LogLevel(logging.getLevelName(self.logging_level))
        return configured

    def should_show_stack_trace(self) -> bool:
        return self.level == VerbosityLevel.TRACE

    def is_verbose(self) -> bool:
        return self.level >= VerbosityLevel.VERBOSE

    def is_debug(self) -> bool:
        return self.level >= VerbosityLevel.DEBUG


def get_verbosity_from_ctx(ctx: dict[str, Any] | None) -> VerbosityManager:
    """Get verbosity manager from the Click context object.

    Defaults to NORMAL when the context carries no verbosity.
    """
    if ctx is None:
        return VerbosityManager(0)
    return VerbosityManager.from_count(ctx.get("verbosity", 0))
