"""Content identity: hashes, content addresses, tickets and specifiers."""

from __future__ import annotations

from cctrack.core.content import (
    BlobFormat,
    ContentAddress,
    Hash,
    HashAndFormat,
    PeerId,
)

__all__ = [
    "BlobFormat",
    "ContentAddress",
    "Hash",
    "HashAndFormat",
    "PeerId",
]
