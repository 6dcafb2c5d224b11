"""Content address model.

A piece of content is identified by a 32-byte hash plus a format. The format
says whether the hash names a single blob or a hash sequence, a blob whose
bytes are the hashes of other blobs.
"""

from __future__ import annotations

from dataclasses import dataclass
from enum import IntEnum

from cctrack.utils import base32

HASH_SIZE = 32
PEER_ID_SIZE = 32

_HEX_LENGTH = HASH_SIZE * 2
_BASE32_LENGTH = base32.encoded_length(HASH_SIZE)


def _parse_digest(text: str, what: str) -> bytes:
    """Parse 64 hex characters or 52 base32 characters into 32 bytes."""
    if len(text) == _HEX_LENGTH:
        try:
            return bytes.fromhex(text)
        except ValueError as e:
            msg = f"Invalid {what}: {e}"
            raise ValueError(msg) from e
    if len(text) == _BASE32_LENGTH:
        return base32.decode(text)
    msg = f"Invalid {what}: expected {_HEX_LENGTH} hex or {_BASE32_LENGTH} base32 characters, got {len(text)}"
    raise ValueError(msg)


@dataclass(frozen=True, order=True)
class Hash:
    """A 32-byte content digest."""

    digest: bytes

    def __post_init__(self) -> None:
        if not isinstance(self.digest, bytes) or len(self.digest) != HASH_SIZE:
            msg = f"Hash must be {HASH_SIZE} bytes"
            raise ValueError(msg)

    @classmethod
    def from_str(cls, text: str) -> Hash:
        """Parse a hash from hex or base32."""
        return cls(_parse_digest(text, "hash"))

    def to_hex(self) -> str:
        return self.digest.hex()

    def to_base32(self) -> str:
        return base32.encode(self.digest)

    def __str__(self) -> str:
        return self.to_hex()

    def __repr__(self) -> str:
        return f"Hash({self.to_hex()})"


class BlobFormat(IntEnum):
    """Format of the content a hash refers to. Values are wire discriminants."""

    RAW = 0
    HASH_SEQ = 1


@dataclass(frozen=True, order=True)
class HashAndFormat:
    """A content address: a hash and the format of the data behind it.

    Ordering compares the hash first, then the format.
    """

    hash: Hash
    format: BlobFormat = BlobFormat.RAW

    def __post_init__(self) -> None:
        # Accept plain ints for the format, keep the enum internally
        object.__setattr__(self, "format", BlobFormat(self.format))

    @classmethod
    def raw(cls, hash: Hash) -> HashAndFormat:  # noqa: A002
        return cls(hash, BlobFormat.RAW)

    @classmethod
    def hash_seq(cls, hash: Hash) -> HashAndFormat:  # noqa: A002
        return cls(hash, BlobFormat.HASH_SEQ)

    @classmethod
    def from_str(cls, text: str) -> HashAndFormat:
        """Parse a content address.

        ``<64 hex>`` is a raw blob, ``s<64 hex>`` is a hash sequence.

        Raises:
            ValueError: If the text is neither form

        """
        if len(text) == _HEX_LENGTH:
            return cls.raw(Hash(bytes.fromhex(text)))
        if len(text) == _HEX_LENGTH + 1 and text[0] in "sS":
            return cls.hash_seq(Hash(bytes.fromhex(text[1:])))
        msg = "Invalid hash and format"
        raise ValueError(msg)

    def __str__(self) -> str:
        if self.format == BlobFormat.HASH_SEQ:
            return f"s{self.hash.to_hex()}"
        return self.hash.to_hex()


ContentAddress = HashAndFormat


@dataclass(frozen=True)
class PeerId:
    """Identity of a node on the network (its 32-byte public key)."""

    key: bytes

    def __post_init__(self) -> None:
        if not isinstance(self.key, bytes) or len(self.key) != PEER_ID_SIZE:
            msg = f"Peer id must be {PEER_ID_SIZE} bytes"
            raise ValueError(msg)

    @classmethod
    def from_str(cls, text: str) -> PeerId:
        """Parse a peer id from base32 (canonical) or hex."""
        return cls(_parse_digest(text, "peer id"))

    def fmt_short(self) -> str:
        """First characters of the base32 form, for logs and tables."""
        return str(self)[:10]

    def __str__(self) -> str:
        return base32.encode(self.key)

    def __repr__(self) -> str:
        return f"PeerId({self})"
