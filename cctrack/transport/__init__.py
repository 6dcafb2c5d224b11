"""Transport used to reach trackers and hosts."""

from __future__ import annotations

from cctrack.transport.endpoint import (
    AddressBook,
    Connection,
    Endpoint,
    RecvStream,
    SendStream,
    parse_socket_addr,
)

__all__ = [
    "AddressBook",
    "Connection",
    "Endpoint",
    "RecvStream",
    "SendStream",
    "parse_socket_addr",
]
