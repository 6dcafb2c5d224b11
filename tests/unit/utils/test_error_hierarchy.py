"""Tests for the cctrack exception hierarchy."""

from __future__ import annotations

import pytest

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

pytestmark = [pytest.mark.unit]


class TestCCTrackError:
    """Test the base error."""

    def test_message_only(self):
        error = CCTrackError("boom")
        assert str(error) == "boom"
        assert error.message == "boom"
        assert error.details == {}

    def test_with_details(self):
        error = CCTrackError("boom", {"tag": 3})
        assert error.details == {"tag": 3}
        assert str(error) == "boom (Details: {'tag': 3})"


@pytest.mark.parametrize(
    ("error_cls", "parent"),
    [
        (SpecifierParseError, ValidationError),
        (HostRequiredError, ValidationError),
        (ConfigurationError, ValidationError),
        (TrackerConnectionError, NetworkError),
        (StreamError, NetworkError),
        (EncodingError, ProtocolError),
        (DecodingError, ProtocolError),
        (ResponseTooLarge, ProtocolError),
    ],
)
def test_hierarchy(error_cls, parent):
    assert issubclass(error_cls, parent)
    assert issubclass(error_cls, CCTrackError)
    with pytest.raises(CCTrackError):
        raise error_cls("x")


def test_kinds_are_distinct():
    assert not issubclass(ResponseTooLarge, NetworkError)
    assert not issubclass(StreamError, ProtocolError)
    assert not issubclass(DecodingError, ValidationError)
