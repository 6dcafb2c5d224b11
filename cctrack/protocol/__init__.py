"""Tracker protocol messages and their binary encoding."""

from __future__ import annotations

from cctrack.protocol.messages import (
    Announce,
    AnnounceKind,
    Query,
    QueryFlags,
    QueryResponse,
    Request,
    RequestKind,
    Response,
    ResponseKind,
    decode_request,
    decode_response,
    encode_request,
    encode_response,
)

__all__ = [
    "Announce",
    "AnnounceKind",
    "Query",
    "QueryFlags",
    "QueryResponse",
    "Request",
    "RequestKind",
    "Response",
    "ResponseKind",
    "decode_request",
    "decode_response",
    "encode_request",
    "encode_response",
]
