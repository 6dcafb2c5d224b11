"""Tests for blob tickets."""

from __future__ import annotations

import pytest

from cctrack.core.content import BlobFormat, Hash, HashAndFormat, PeerId
from cctrack.core.ticket import BlobTicket, NodeAddr
from cctrack.utils import base32
from cctrack.utils.exceptions import DecodingError

pytestmark = [pytest.mark.unit, pytest.mark.core]

NODE = PeerId(bytes([7]) * 32)
CONTENT = HashAndFormat.hash_seq(Hash(bytes([9]) * 32))


def _ticket(**kwargs) -> BlobTicket:
    kwargs.setdefault("direct_addresses", [("127.0.0.1", 4433)])
    return BlobTicket.new(NODE, CONTENT, **kwargs)


class TestBlobTicket:
    """Test ticket construction and string form."""

    def test_hash_and_format(self):
        ticket = _ticket()
        assert ticket.hash_and_format() == CONTENT
        assert ticket.format is BlobFormat.HASH_SEQ
        assert ticket.node.node_id == NODE

    def test_string_round_trip(self):
        ticket = _ticket(
            direct_addresses=[("10.0.0.2", 1), ("::1", 5), ("10.0.0.1", 9)],
            relay_url="https://relay.example.org./",
        )
        text = str(ticket)
        assert text.startswith("blob")
        assert text == text.lower()
        assert BlobTicket.from_str(text) == ticket

    def test_addresses_in_wire_order(self):
        node = NodeAddr(NODE, None, frozenset({("::1", 5), ("10.0.0.2", 1), ("10.0.0.1", 9)}))
        assert node.sorted_addresses() == [("10.0.0.1", 9), ("10.0.0.2", 1), ("::1", 5)]

    def test_addresses_normalized(self):
        node = NodeAddr(NODE, None, frozenset({("0:0:0:0:0:0:0:1", 80)}))
        assert node.direct_addresses == frozenset({("::1", 80)})

    def test_invalid_address_rejected(self):
        with pytest.raises(ValueError):
            NodeAddr(NODE, None, frozenset({("example.org", 80)}))
        with pytest.raises(ValueError):
            NodeAddr(NODE, None, frozenset({("127.0.0.1", 70000)}))

    def test_bytes_layout(self):
        ticket = BlobTicket.new(NODE, CONTENT)
        data = ticket.to_bytes()
        # variant, node id, no relay, no addresses, format, hash
        assert data == b"\x00" + NODE.key + b"\x00" + b"\x00" + b"\x01" + CONTENT.hash.digest

    @pytest.mark.parametrize(
        "text",
        [
            "",
            "notaticket",
            "blob",
            "blob!!!!",
            "blob" + base32.encode(b"\x01" + bytes(70)),
        ],
    )
    def test_invalid_strings(self, text):
        with pytest.raises(ValueError):
            BlobTicket.from_str(text)

    def test_trailing_bytes_rejected(self):
        data = _ticket().to_bytes() + b"\x00"
        with pytest.raises(DecodingError, match="trailing"):
            BlobTicket.from_bytes(data)
        with pytest.raises(ValueError):
            BlobTicket.from_str("blob" + base32.encode(data))

    def test_unknown_format_rejected(self):
        data = bytearray(BlobTicket.new(NODE, CONTENT).to_bytes())
        data[35] = 5
        with pytest.raises(DecodingError, match="blob format"):
            BlobTicket.from_bytes(bytes(data))
