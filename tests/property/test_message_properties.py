"""Property-based tests for tracker message encoding.

Encoding followed by decoding must give back the exact value, for every
request and response the data model can express.
"""

from __future__ import annotations

import pytest
from hypothesis import given
from hypothesis import strategies as st

from cctrack.core.content import BlobFormat, Hash, HashAndFormat, PeerId
from cctrack.protocol.messages import (
    Announce,
    AnnounceKind,
    Query,
    QueryFlags,
    QueryResponse,
    decode_request,
    decode_response,
    encode_request,
    encode_response,
)

pytestmark = [pytest.mark.property, pytest.mark.protocols]

digests = st.binary(min_size=32, max_size=32)
peers = digests.map(PeerId)
addresses = st.builds(HashAndFormat, digests.map(Hash), st.sampled_from(BlobFormat))

announces = st.builds(
    Announce,
    host=peers,
    content=st.frozensets(addresses, max_size=16),
    kind=st.sampled_from(AnnounceKind),
)
queries = st.builds(
    Query,
    content=addresses,
    flags=st.builds(QueryFlags, complete=st.booleans(), verified=st.booleans()),
)
responses = st.builds(
    QueryResponse,
    content=addresses,
    hosts=st.lists(peers, max_size=32).map(tuple),
)


class TestMessageProperties:
    """Round trip invariants."""

    @given(st.one_of(announces, queries))
    def test_request_round_trip(self, message):
        assert decode_request(encode_request(message)) == message

    @given(responses)
    def test_response_round_trip(self, response):
        assert decode_response(encode_response(response)) == response

    @given(announces)
    def test_announce_kind_preserved(self, announce):
        assert decode_request(encode_request(announce)).kind is announce.kind

    @given(st.lists(peers, min_size=1, max_size=32))
    def test_hosts_order_preserved(self, hosts):
        content = HashAndFormat(Hash(bytes(32)), BlobFormat.RAW)
        decoded = decode_response(encode_response(QueryResponse(content, tuple(hosts))))
        assert list(decoded.hosts) == hosts

    @given(st.frozensets(addresses, max_size=16), peers, st.sampled_from(AnnounceKind))
    def test_set_encoding_is_canonical(self, content, host, kind):
        # The same set built in any order encodes to the same bytes
        forward = Announce(host, frozenset(sorted(content)), kind)
        backward = Announce(host, frozenset(sorted(content, reverse=True)), kind)
        assert encode_request(forward) == encode_request(backward)
