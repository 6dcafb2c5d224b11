"""Unpadded, lowercase base32 helpers for node ids, hashes and tickets."""

from __future__ import annotations

import base64
import binascii


def encode(data: bytes) -> str:
    """Encode bytes as lowercase base32 without padding."""
    return base64.b32encode(data).decode("ascii").rstrip("=").lower()


def decode(text: str) -> bytes:
    """Decode unpadded base32, case-insensitively.

    Raises:
        ValueError: If the text is not valid base32

    """
    if not text.isascii() or "=" in text:
        msg = "Invalid base32 string"
        raise ValueError(msg)
    padding = "=" * (-len(text) % 8)
    try:
        data = base64.b32decode(text.upper() + padding)
    except binascii.Error as e:
        msg = f"Invalid base32 string: {e}"
        raise ValueError(msg) from e
    # Unused trailing bits must be zero, so each value has one spelling
    if encode(data) != text.lower():
        msg = "Invalid base32 string: non-canonical trailing bits"
        raise ValueError(msg)
    return data


def encoded_length(num_bytes: int) -> int:
    """Length of the unpadded base32 encoding of ``num_bytes`` bytes."""
    return (num_bytes * 8 + 4) // 5
