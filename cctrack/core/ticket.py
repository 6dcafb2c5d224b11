"""Blob tickets.

A ticket is a self-contained string that tells a node everything it needs to
fetch some content: the content address plus the identity and known network
addresses of a node that hosts it.

    blob<base32(wire encoding)>

The wire encoding is versioned by a leading variant index. Only variant 0 is
defined:

    node_id          32 bytes
    relay_url        option<string>
    direct_addresses seq<socket address>, sorted
    format           varint
    hash             32 bytes

A socket address is variant 0 (IPv4, 4 bytes) or 1 (IPv6, 16 bytes)
followed by the port as a varint.
"""

from __future__ import annotations

import ipaddress
from dataclasses import dataclass, field
from typing import Iterable, Tuple

from cctrack.core.content import (
    HASH_SIZE,
    PEER_ID_SIZE,
    BlobFormat,
    Hash,
    HashAndFormat,
    PeerId,
)
from cctrack.protocol.wire import WireDecoder, WireEncoder
from cctrack.utils import base32
from cctrack.utils.exceptions import DecodingError

TICKET_PREFIX = "blob"
TICKET_VARIANT = 0

SocketAddr = Tuple[str, int]

_ADDR_V4 = 0
_ADDR_V6 = 1


def normalize_socket_addr(addr: SocketAddr) -> SocketAddr:
    """Validate an (ip, port) pair and put the IP in canonical form."""
    host, port = addr
    ip = ipaddress.ip_address(host)
    if not 0 <= int(port) <= 0xFFFF:
        msg = f"Port out of range: {port}"
        raise ValueError(msg)
    return (str(ip), int(port))


def _socket_addr_sort_key(addr: SocketAddr) -> tuple[int, bytes, int]:
    ip = ipaddress.ip_address(addr[0])
    return (_ADDR_V4 if ip.version == 4 else _ADDR_V6, ip.packed, addr[1])


def _write_socket_addr(encoder: WireEncoder, addr: SocketAddr) -> None:
    ip = ipaddress.ip_address(addr[0])
    encoder.write_varint(_ADDR_V4 if ip.version == 4 else _ADDR_V6)
    encoder.write_fixed(ip.packed, len(ip.packed))
    encoder.write_varint(addr[1])


def _read_socket_addr(decoder: WireDecoder) -> SocketAddr:
    tag = decoder.read_varint()
    if tag == _ADDR_V4:
        ip: ipaddress.IPv4Address | ipaddress.IPv6Address = ipaddress.IPv4Address(decoder.read_fixed(4))
    elif tag == _ADDR_V6:
        ip = ipaddress.IPv6Address(decoder.read_fixed(16))
    else:
        msg = f"Unknown socket address variant: {tag}"
        raise DecodingError(msg, {"tag": tag})
    port = decoder.read_varint()
    if port > 0xFFFF:
        msg = f"Port out of range: {port}"
        raise DecodingError(msg)
    return (str(ip), port)


@dataclass(frozen=True)
class NodeAddr:
    """A node id plus the ways to reach it."""

    node_id: PeerId
    relay_url: str | None = None
    direct_addresses: frozenset[SocketAddr] = field(default_factory=frozenset)

    def __post_init__(self) -> None:
        object.__setattr__(
            self,
            "direct_addresses",
            frozenset(normalize_socket_addr(addr) for addr in self.direct_addresses),
        )

    def sorted_addresses(self) -> list[SocketAddr]:
        """Direct addresses in wire order (IPv4 first, then by address and port)."""
        return sorted(self.direct_addresses, key=_socket_addr_sort_key)


@dataclass(frozen=True)
class BlobTicket:
    """Content address bundled with a node that hosts it."""

    node: NodeAddr
    format: BlobFormat
    hash: Hash

    def __post_init__(self) -> None:
        object.__setattr__(self, "format", BlobFormat(self.format))

    @classmethod
    def new(
        cls,
        node_id: PeerId,
        content: HashAndFormat,
        direct_addresses: Iterable[SocketAddr] = (),
        relay_url: str | None = None,
    ) -> BlobTicket:
        node = NodeAddr(node_id, relay_url, frozenset(direct_addresses))
        return cls(node=node, format=content.format, hash=content.hash)

    def hash_and_format(self) -> HashAndFormat:
        return HashAndFormat(self.hash, self.format)

    def to_bytes(self) -> bytes:
        encoder = WireEncoder()
        encoder.write_varint(TICKET_VARIANT)
        encoder.write_fixed(self.node.node_id.key, PEER_ID_SIZE)
        encoder.write_option(self.node.relay_url, encoder.write_str)
        encoder.write_seq(
            self.node.sorted_addresses(),
            lambda addr: _write_socket_addr(encoder, addr),
        )
        encoder.write_varint(int(self.format))
        encoder.write_fixed(self.hash.digest, HASH_SIZE)
        return encoder.getvalue()

    @classmethod
    def from_bytes(cls, data: bytes) -> BlobTicket:
        """Decode the binary ticket body.

        Raises:
            DecodingError: If the bytes are not a variant 0 ticket

        """
        decoder = WireDecoder(data)
        variant = decoder.read_varint()
        if variant != TICKET_VARIANT:
            msg = f"Unknown ticket variant: {variant}"
            raise DecodingError(msg, {"tag": variant})
        node_id = PeerId(decoder.read_fixed(PEER_ID_SIZE))
        relay_url = decoder.read_option(decoder.read_str)
        addresses = decoder.read_seq(lambda: _read_socket_addr(decoder))
        tag = decoder.read_varint()
        try:
            blob_format = BlobFormat(tag)
        except ValueError as e:
            msg = f"Unknown blob format: {tag}"
            raise DecodingError(msg, {"tag": tag}) from e
        digest = decoder.read_fixed(HASH_SIZE)
        decoder.finish()
        return cls(
            node=NodeAddr(node_id, relay_url, frozenset(addresses)),
            format=blob_format,
            hash=Hash(digest),
        )

    @classmethod
    def from_str(cls, text: str) -> BlobTicket:
        """Parse a ``blob...`` ticket string.

        Raises:
            ValueError: If the text is not a valid ticket

        """
        if not text.startswith(TICKET_PREFIX):
            msg = f"Ticket must start with {TICKET_PREFIX!r}"
            raise ValueError(msg)
        data = base32.decode(text[len(TICKET_PREFIX) :])
        try:
            return cls.from_bytes(data)
        except DecodingError as e:
            msg = f"Invalid ticket: {e.message}"
            raise ValueError(msg) from e

    def __str__(self) -> str:
        return TICKET_PREFIX + base32.encode(self.to_bytes())
