"""Compact binary wire codec.

Messages are encoded field by field in declaration order with no field tags
and no overall length prefix:

- unsigned integers, lengths and enum discriminants: LEB128 varints
- bool: a single 0 or 1 byte
- fixed size arrays (hashes, node ids, IP addresses): raw bytes
- strings: varint length + UTF-8 bytes
- options: 0 for None, 1 followed by the value
- sequences and sets: varint count + items

The layout matches postcard, the serde format used by the reference tracker.
"""

from __future__ import annotations

from typing import Callable, Iterable, TypeVar

from cctrack.utils.exceptions import DecodingError, EncodingError

T = TypeVar("T")

MAX_VARINT_BYTES = 10  # enough for a u64
MAX_U64 = (1 << 64) - 1


class WireEncoder:
    """Append-only encoder building a message in memory."""

    def __init__(self) -> None:
        """Initialize encoder."""
        self._buffer = bytearray()

    def write_varint(self, value: int) -> None:
        """Write an unsigned integer as a LEB128 varint."""
        if isinstance(value, bool) or not isinstance(value, int):
            msg = f"Varint value must be an int, got {type(value).__name__}"
            raise EncodingError(msg)
        if value < 0 or value > MAX_U64:
            msg = f"Varint value out of range: {value}"
            raise EncodingError(msg)
        while True:
            byte = value & 0x7F
            value >>= 7
            if value:
                self._buffer.append(byte | 0x80)
            else:
                self._buffer.append(byte)
                return

    def write_bool(self, value: bool) -> None:
        if not isinstance(value, bool):
            msg = f"Expected bool, got {type(value).__name__}"
            raise EncodingError(msg)
        self._buffer.append(1 if value else 0)

    def write_fixed(self, data: bytes, size: int) -> None:
        """Write a fixed size byte array without a length prefix."""
        if len(data) != size:
            msg = f"Expected {size} bytes, got {len(data)}"
            raise EncodingError(msg)
        self._buffer += data

    def write_bytes(self, data: bytes) -> None:
        """Write a length prefixed byte string."""
        self.write_varint(len(data))
        self._buffer += data

    def write_str(self, value: str) -> None:
        self.write_bytes(value.encode("utf-8"))

    def write_option(self, value: T | None, write: Callable[[T], None]) -> None:
        if value is None:
            self._buffer.append(0)
        else:
            self._buffer.append(1)
            write(value)

    def write_seq(self, items: Iterable[T], write: Callable[[T], None]) -> None:
        """Write a count prefixed sequence, items in iteration order."""
        items = list(items)
        self.write_varint(len(items))
        for item in items:
            write(item)

    def getvalue(self) -> bytes:
        return bytes(self._buffer)


class WireDecoder:
    """Cursor over an encoded message."""

    def __init__(self, data: bytes) -> None:
        """Initialize decoder.

        Args:
            data: Complete encoded message

        """
        self._data = memoryview(bytes(data))
        self._pos = 0

    @property
    def remaining(self) -> int:
        return len(self._data) - self._pos

    def _take(self, size: int) -> bytes:
        if size > self.remaining:
            msg = f"Unexpected end of message: need {size} bytes, have {self.remaining}"
            raise DecodingError(msg, {"offset": self._pos})
        chunk = self._data[self._pos : self._pos + size].tobytes()
        self._pos += size
        return chunk

    def read_varint(self) -> int:
        """Read a LEB128 varint."""
        result = 0
        for index in range(MAX_VARINT_BYTES):
            byte = self._take(1)[0]
            result |= (byte & 0x7F) << (7 * index)
            if not byte & 0x80:
                if result > MAX_U64:
                    break
                return result
        msg = "Varint too long"
        raise DecodingError(msg, {"offset": self._pos})

    def read_bool(self) -> bool:
        byte = self._take(1)[0]
        if byte > 1:
            msg = f"Invalid bool byte: {byte}"
            raise DecodingError(msg, {"offset": self._pos - 1})
        return byte == 1

    def read_fixed(self, size: int) -> bytes:
        return self._take(size)

    def read_bytes(self) -> bytes:
        return self._take(self.read_varint())

    def read_str(self) -> str:
        raw = self.read_bytes()
        try:
            return raw.decode("utf-8")
        except UnicodeDecodeError as e:
            msg = f"Invalid UTF-8 string: {e}"
            raise DecodingError(msg) from e

    def read_option(self, read: Callable[[], T]) -> T | None:
        tag = self._take(1)[0]
        if tag == 0:
            return None
        if tag == 1:
            return read()
        msg = f"Invalid option tag: {tag}"
        raise DecodingError(msg, {"offset": self._pos - 1})

    def read_seq(self, read: Callable[[], T]) -> list[T]:
        count = self.read_varint()
        # Every item takes at least one byte, a larger count is a corrupt length
        if count > self.remaining:
            msg = f"Sequence length {count} exceeds remaining {self.remaining} bytes"
            raise DecodingError(msg, {"offset": self._pos})
        return [read() for _ in range(count)]

    def finish(self) -> None:
        """Require that the whole message has been consumed."""
        if self.remaining:
            msg = f"{self.remaining} trailing bytes after message"
            raise DecodingError(msg, {"offset": self._pos})
