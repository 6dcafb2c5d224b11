"""Tests for hashes, content addresses and peer ids."""

from __future__ import annotations

import pytest

from cctrack.core.content import BlobFormat, ContentAddress, Hash, HashAndFormat, PeerId
from cctrack.utils import base32

pytestmark = [pytest.mark.unit, pytest.mark.core]

DIGEST = bytes(range(32))
HEX = DIGEST.hex()


class TestHash:
    """Test Hash parsing and formatting."""

    def test_from_hex(self):
        assert Hash.from_str(HEX).digest == DIGEST

    def test_from_hex_uppercase(self):
        assert Hash.from_str(HEX.upper()).digest == DIGEST

    def test_from_base32(self):
        text = base32.encode(DIGEST)
        assert len(text) == 52
        assert Hash.from_str(text) == Hash(DIGEST)
        assert Hash.from_str(text.upper()) == Hash(DIGEST)

    def test_str_is_hex(self):
        assert str(Hash(DIGEST)) == HEX

    def test_to_base32_round_trip(self):
        h = Hash(DIGEST)
        assert Hash.from_str(h.to_base32()) == h

    @pytest.mark.parametrize(
        "text",
        ["", "abc", HEX[:-1], HEX + "0", "zz" + HEX[2:], "1" * 52],
    )
    def test_invalid(self, text):
        with pytest.raises(ValueError):
            Hash.from_str(text)

    def test_wrong_size(self):
        with pytest.raises(ValueError, match="32 bytes"):
            Hash(b"\x00" * 31)

    def test_ordering_by_bytes(self):
        assert Hash(b"\x00" * 32) < Hash(b"\x01" + b"\x00" * 31)


class TestHashAndFormat:
    """Test content addresses."""

    def test_raw_and_hash_seq(self):
        h = Hash(DIGEST)
        assert HashAndFormat.raw(h) == HashAndFormat(h, BlobFormat.RAW)
        assert HashAndFormat.hash_seq(h).format is BlobFormat.HASH_SEQ

    def test_default_format_is_raw(self):
        assert HashAndFormat(Hash(DIGEST)).format is BlobFormat.RAW

    def test_int_format_coerced(self):
        haf = HashAndFormat(Hash(DIGEST), 1)
        assert haf.format is BlobFormat.HASH_SEQ

    def test_invalid_format_rejected(self):
        with pytest.raises(ValueError):
            HashAndFormat(Hash(DIGEST), 7)

    def test_from_str_raw(self):
        assert HashAndFormat.from_str(HEX) == HashAndFormat.raw(Hash(DIGEST))

    def test_from_str_hash_seq(self):
        assert HashAndFormat.from_str("s" + HEX) == HashAndFormat.hash_seq(Hash(DIGEST))
        assert HashAndFormat.from_str("S" + HEX) == HashAndFormat.hash_seq(Hash(DIGEST))

    def test_str_inverse(self):
        for haf in (HashAndFormat.raw(Hash(DIGEST)), HashAndFormat.hash_seq(Hash(DIGEST))):
            assert HashAndFormat.from_str(str(haf)) == haf

    @pytest.mark.parametrize("text", ["", "x" + HEX, "s" + HEX[:-2], "s" + "g" * 64])
    def test_from_str_invalid(self, text):
        with pytest.raises(ValueError):
            HashAndFormat.from_str(text)

    def test_ordering_hash_then_format(self):
        low = Hash(b"\x00" * 32)
        high = Hash(b"\xff" * 32)
        items = [
            HashAndFormat(high, BlobFormat.RAW),
            HashAndFormat(low, BlobFormat.HASH_SEQ),
            HashAndFormat(low, BlobFormat.RAW),
        ]
        assert sorted(items) == [
            HashAndFormat(low, BlobFormat.RAW),
            HashAndFormat(low, BlobFormat.HASH_SEQ),
            HashAndFormat(high, BlobFormat.RAW),
        ]

    def test_hashable(self):
        haf = HashAndFormat.raw(Hash(DIGEST))
        assert {haf, HashAndFormat.raw(Hash(DIGEST))} == {haf}

    def test_content_address_alias(self):
        assert ContentAddress is HashAndFormat


class TestPeerId:
    """Test node ids."""

    def test_str_is_base32(self):
        peer = PeerId(DIGEST)
        assert str(peer) == base32.encode(DIGEST)
        assert PeerId.from_str(str(peer)) == peer

    def test_from_hex(self):
        assert PeerId.from_str(HEX) == PeerId(DIGEST)

    def test_fmt_short(self):
        peer = PeerId(DIGEST)
        assert peer.fmt_short() == str(peer)[:10]

    def test_equality_only(self):
        assert PeerId(DIGEST) == PeerId(DIGEST)
        assert PeerId(DIGEST) != PeerId(bytes(32))
        with pytest.raises(TypeError):
            _ = PeerId(DIGEST) < PeerId(bytes(32))

    def test_invalid(self):
        with pytest.raises(ValueError):
            PeerId.from_str("not-a-node-id")
        with pytest.raises(ValueError):
            PeerId(b"short")

    def test_non_canonical_base32_rejected(self):
        text = str(PeerId(bytes(32)))
        assert text[-1] == "a"
        with pytest.raises(ValueError, match="non-canonical"):
            PeerId.from_str(text[:-1] + "b")
