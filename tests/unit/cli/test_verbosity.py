"""Unit tests for verbosity system.

Tests the VerbosityManager and verbosity level handling.
"""

from __future__ import annotations

import logging

import pytest

from cctrack.cli.verbosity import VerbosityLevel, VerbosityManager, get_verbosity_from_ctx
from cctrack.models import LogLevel

pytestmark = [pytest.mark.cli, pytest.mark.unit]


class TestVerbosityLevel:
    """Test VerbosityLevel enum."""

    def test_verbosity_level_values(self):
        assert VerbosityLevel.NORMAL == 0
        assert VerbosityLevel.VERBOSE == 1
        assert VerbosityLevel.DEBUG == 2
        assert VerbosityLevel.TRACE == 3

    def test_verbosity_level_comparison(self):
        assert VerbosityLevel.NORMAL < VerbosityLevel.VERBOSE < VerbosityLevel.DEBUG < VerbosityLevel.TRACE


class TestVerbosityManager:
    """Test VerbosityManager class."""

    @pytest.mark.parametrize(
        ("count", "level", "logging_level"),
        [
            (0, VerbosityLevel.NORMAL, logging.WARNING),
            (1, VerbosityLevel.VERBOSE, logging.INFO),
            (2, VerbosityLevel.DEBUG, logging.DEBUG),
            (3, VerbosityLevel.TRACE, logging.DEBUG),
        ],
    )
    def test_from_count(self, count, level, logging_level):
        vm = VerbosityManager.from_count(count)
        assert vm.verbosity_count == count
        assert vm.level == level
        assert vm.logging_level == logging_level

    def test_count_clamped(self):
        assert VerbosityManager.from_count(10).level == VerbosityLevel.TRACE
        assert VerbosityManager.from_count(-2).level == VerbosityLevel.NORMAL

    def test_log_level_keeps_more_verbose_config(self):
        """-v never makes logging quieter than the configured level."""
        assert VerbosityManager(0).log_level(LogLevel.INFO) is LogLevel.INFO
        assert VerbosityManager(1).log_level(LogLevel.DEBUG) is LogLevel.DEBUG

    def test_log_level_raised_by_flags(self):
        assert VerbosityManager(1).log_level(LogLevel.WARNING) is LogLevel.INFO
        assert VerbosityManager(2).log_level(LogLevel.INFO) is LogLevel.DEBUG

    def test_stack_traces_only_at_trace(self):
        assert not VerbosityManager(2).should_show_stack_trace()
        assert VerbosityManager(3).should_show_stack_trace()

    def test_predicates(self):
        normal = VerbosityManager(0)
        assert not normal.is_verbose()
        assert not normal.is_debug()
        assert VerbosityManager(1).is_verbose()
        assert not VerbosityManager(1).is_debug()
        assert VerbosityManager(2).is_debug()


class TestGetVerbosityFromCtx:
    """Test reading verbosity from the Click context object."""

    def test_none(self):
        assert get_verbosity_from_ctx(None).level == VerbosityLevel.NORMAL

    def test_missing_key(self):
        assert get_verbosity_from_ctx({}).level == VerbosityLevel.NORMAL

    def test_count(self):
        assert get_verbosity_from_ctx({"verbosity": 2}).level == VerbosityLevel.DEBUG
