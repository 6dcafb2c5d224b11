"""Exception hierarchy for cctrack.

Every error raised by the protocol layer derives from :class:`CCTrackError`,
so callers can catch one type and still tell the kinds apart.
"""

from __future__ import annotations

from typing import Any


class CCTrackError(Exception):
    """Base exception for all cctrack errors."""

    def __init__(self, message: str, details: dict[str, Any] | None = None):
        """Initialize cctrack error."""
        super().__init__(message)
        self.message = message
        self.details = details or {}

    def __str__(self) -> str:
        """Return string representation of the error."""
        if self.details:
            return f"{self.message} (Details: {self.details})"
        return self.message


class ValidationError(CCTrackError):
    """Data validation errors."""


class SpecifierParseError(ValidationError):
    """Content specifier is not a hash, hash and format, or ticket."""


class HostRequiredError(ValidationError):
    """Announce needs an explicit host for non-ticket content."""


class ConfigurationError(ValidationError):
    """Configuration validation errors."""


class NetworkError(CCTrackError):
    """Network-related errors."""


class TrackerConnectionError(NetworkError):
    """Cannot establish a connection or stream to the tracker."""


class StreamError(NetworkError):
    """I/O failure on an established stream."""


class ProtocolError(CCTrackError):
    """Tracker protocol errors."""


class EncodingError(ProtocolError):
    """Local failure to encode a message."""


class DecodingError(ProtocolError):
    """Received bytes are not a valid message."""


class ResponseTooLarge(ProtocolError):
    """Response exceeded the read size cap."""
