"""Utility modules for cctrack."""

from __future__ import annotations

from cctrack.utils.exceptions import (
    CCTrackError,
    ConfigurationError,
    DecodingError,
    EncodingError,
    HostRequiredError,
    NetworkError,
    ProtocolError,
    ResponseTooLarge,
    SpecifierParseError,
    StreamError,
    TrackerConnectionError,
    ValidationError,
)
from cctrack.utils.logging_config import get_logger

__all__ = [
    "CCTrackError",
    "ConfigurationError",
    "DecodingError",
    "EncodingError",
    "HostRequiredError",
    "NetworkError",
    "ProtocolError",
    "ResponseTooLarge",
    "SpecifierParseError",
    "StreamError",
    "TrackerConnectionError",
    "ValidationError",
    "get_logger",
]
