"""Tracker exchange client."""

from __future__ import annotations

from cctrack.tracker.client import (
    RESPONSE_SIZE_LIMIT,
    TRACKER_ALPN,
    Exchange,
    ExchangeState,
    TrackerClient,
    announce,
    query,
)

__all__ = [
    "RESPONSE_SIZE_LIMIT",
    "TRACKER_ALPN",
    "Exchange",
    "ExchangeState",
    "TrackerClient",
    "announce",
    "query",
]
