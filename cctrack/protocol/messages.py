"""Tracker protocol messages.

A client sends exactly one :data:`Request` per stream and the tracker answers
with at most one :data:`Response`. Both are tagged unions: the encoding starts
with a varint variant index followed by the fields of that variant.

    Request  = Announce (0) | Query (1)
    Response = QueryResponse (0)
"""

from __future__ import annotations

from dataclasses import dataclass, field
from enum import IntEnum
from typing import Union

from cctrack.core.content import (
    HASH_SIZE,
    PEER_ID_SIZE,
    BlobFormat,
    Hash,
    HashAndFormat,
    PeerId,
)
from cctrack.protocol.wire import WireDecoder, WireEncoder
from cctrack.utils.exceptions import DecodingError, EncodingError


class AnnounceKind(IntEnum):
    """How much of the content the announced host claims to have."""

    PARTIAL = 0
    COMPLETE = 1

    @classmethod
    def from_complete(cls, complete: bool) -> AnnounceKind:
        return cls.COMPLETE if complete else cls.PARTIAL


class RequestKind(IntEnum):
    """Variant index of a request on the wire."""

    ANNOUNCE = 0
    QUERY = 1


class ResponseKind(IntEnum):
    """Variant index of a response on the wire."""

    QUERY_RESPONSE = 0


def _write_hash_and_format(encoder: WireEncoder, content: HashAndFormat) -> None:
    encoder.write_fixed(content.hash.digest, HASH_SIZE)
    encoder.write_varint(int(content.format))


def _read_hash_and_format(decoder: WireDecoder) -> HashAndFormat:
    digest = decoder.read_fixed(HASH_SIZE)
    tag = decoder.read_varint()
    try:
        blob_format = BlobFormat(tag)
    except ValueError as e:
        msg = f"Unknown blob format: {tag}"
        raise DecodingError(msg, {"tag": tag}) from e
    return HashAndFormat(Hash(digest), blob_format)


def _write_peer_id(encoder: WireEncoder, peer: PeerId) -> None:
    encoder.write_fixed(peer.key, PEER_ID_SIZE)


def _read_peer_id(decoder: WireDecoder) -> PeerId:
    return PeerId(decoder.read_fixed(PEER_ID_SIZE))


@dataclass(frozen=True)
class Announce:
    """A claim that ``host`` has some blobs or sets of blobs.

    A node can announce content it hosts itself, but also content hosted by
    another node, which is why the host is part of the message.
    """

    host: PeerId
    content: frozenset[HashAndFormat]
    kind: AnnounceKind

    def __post_init__(self) -> None:
        object.__setattr__(self, "content", frozenset(self.content))
        object.__setattr__(self, "kind", AnnounceKind(self.kind))

    def encode_into(self, encoder: WireEncoder) -> None:
        _write_peer_id(encoder, self.host)
        # Sets go on the wire in sorted order
        encoder.write_seq(
            sorted(self.content),
            lambda item: _write_hash_and_format(encoder, item),
        )
        encoder.write_varint(int(self.kind))

    @classmethod
    def decode_from(cls, decoder: WireDecoder) -> Announce:
        host = _read_peer_id(decoder)
        content = decoder.read_seq(lambda: _read_hash_and_format(decoder))
        tag = decoder.read_varint()
        try:
            kind = AnnounceKind(tag)
        except ValueError as e:
            msg = f"Unknown announce kind: {tag}"
            raise DecodingError(msg, {"tag": tag}) from e
        return cls(host=host, content=frozenset(content), kind=kind)


@dataclass(frozen=True)
class QueryFlags:
    """Filters applied by the tracker when answering a query."""

    # Only return hosts that claim to have the complete data
    complete: bool = True
    # Only return hosts the tracker has checked itself.
    # For partial queries that means the host answered with the size of the data,
    # for complete queries that the host was probed for random chunks.
    verified: bool = False

    def encode_into(self, encoder: WireEncoder) -> None:
        encoder.write_bool(self.complete)
        encoder.write_bool(self.verified)

    @classmethod
    def decode_from(cls, decoder: WireDecoder) -> QueryFlags:
        return cls(complete=decoder.read_bool(), verified=decoder.read_bool())


@dataclass(frozen=True)
class Query:
    """Ask the tracker which hosts have ``content``."""

    content: HashAndFormat
    flags: QueryFlags = field(default_factory=QueryFlags)

    def encode_into(self, encoder: WireEncoder) -> None:
        _write_hash_and_format(encoder, self.content)
        self.flags.encode_into(encoder)

    @classmethod
    def decode_from(cls, decoder: WireDecoder) -> Query:
        content = _read_hash_and_format(decoder)
        return cls(content=content, flags=QueryFlags.decode_from(decoder))


@dataclass(frozen=True)
class QueryResponse:
    """The tracker's answer to a :class:`Query`.

    ``hosts`` keeps the order chosen by the tracker, duplicates included.
    """

    content: HashAndFormat
    hosts: tuple[PeerId, ...] = ()

    def __post_init__(self) -> None:
        object.__setattr__(self, "hosts", tuple(self.hosts))

    def encode_into(self, encoder: WireEncoder) -> None:
        _write_hash_and_format(encoder, self.content)
        encoder.write_seq(self.hosts, lambda host: _write_peer_id(encoder, host))

    @classmethod
    def decode_from(cls, decoder: WireDecoder) -> QueryResponse:
        content = _read_hash_and_format(decoder)
        hosts = decoder.read_seq(lambda: _read_peer_id(decoder))
        return cls(content=content, hosts=tuple(hosts))


Request = Union[Announce, Query]
Response = QueryResponse

_REQUEST_TYPES: dict[RequestKind, type[Announce] | type[Query]] = {
    RequestKind.ANNOUNCE: Announce,
    RequestKind.QUERY: Query,
}
_RESPONSE_TYPES: dict[ResponseKind, type[QueryResponse]] = {
    ResponseKind.QUERY_RESPONSE: QueryResponse,
}


def request_kind(request: Request) -> RequestKind:
    """Return the wire variant of a request."""
    if isinstance(request, Announce):
        return RequestKind.ANNOUNCE
    if isinstance(request, Query):
        return RequestKind.QUERY
    msg = f"Not a tracker request: {type(request).__name__}"
    raise EncodingError(msg)


def encode_request(request: Request) -> bytes:
    """Encode a request, variant index first."""
    encoder = WireEncoder()
    encoder.write_varint(int(request_kind(request)))
    request.encode_into(encoder)
    return encoder.getvalue()


def decode_request(data: bytes) -> Request:
    """Decode a request.

    Raises:
        DecodingError: For malformed bytes or an unknown variant

    """
    decoder = WireDecoder(data)
    tag = decoder.read_varint()
    try:
        message_type = _REQUEST_TYPES[RequestKind(tag)]
    except ValueError as e:
        msg = f"Unknown request variant: {tag}"
        raise DecodingError(msg, {"tag": tag}) from e
    request = message_type.decode_from(decoder)
    decoder.finish()
    return request


def encode_response(response: Response) -> bytes:
    """Encode a response, variant index first."""
    if not isinstance(response, QueryResponse):
        msg = f"Not a tracker response: {type(response).__name__}"
        raise EncodingError(msg)
    encoder = WireEncoder()
    encoder.write_varint(int(ResponseKind.QUERY_RESPONSE))
    response.encode_into(encoder)
    return encoder.getvalue()


def decode_response(data: bytes) -> Response:
    """Decode a response.

    Newer trackers may add response variants. Anything this version does not
    know is rejected rather than guessed at.

    Raises:
        DecodingError: For malformed bytes or an unknown variant

    """
    decoder = WireDecoder(data)
    tag = decoder.read_varint()
    try:
        message_type = _RESPONSE_TYPES[ResponseKind(tag)]
    except ValueError as e:
        msg = f"Unknown response variant: {tag}"
        raise DecodingError(msg, {"tag": tag}) from e
    response = message_type.decode_from(decoder)
    decoder.finish()
    return response
