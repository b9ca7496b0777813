"""Borsh-style binary encoding and helpers for field elements and leaves."""

from __future__ import annotations

from aegischain.core import FR_SIZE, fr_from_le_bytes, fr_to_le_bytes


class DecodeError(ValueError):
    """Raised when encoded data is malformed or truncated."""


def _check_uint(value: int, bits: int) -> int:
    if not isinstance(value, int) or isinstance(value, bool) or not 0 <= value < (1 << bits):
        raise ValueError(f"value {value!r} does not fit in u{bits}")
    return value


class BorshWriter:
    """Accumulates Borsh-encoded values."""

    def __init__(self) -> None:
        self._buffer = bytearray()

    def _uint(self, value: int, bits: int) -> None:
        self._buffer += _check_uint(value, bits).to_bytes(bits // 8, "little")

    def write_u8(self, value: int) -> None:
        self._uint(value, 8)

    def write_u32(self, value: int) -> None:
        self._uint(value, 32)

    def write_u64(self, value: int) -> None:
        self._uint(value, 64)

    def write_u128(self, value: int) -> None:
        self._uint(value, 128)

    def write_bool(self, value: bool) -> None:
        self._buffer.append(1 if value else 0)

    def write_bytes(self, data: bytes) -> None:
        """Write a length-prefixed byte vector."""
        raw = bytes(data)
        self.write_u32(len(raw))
        self._buffer += raw

    def write_string(self, text: str) -> None:
        self.write_bytes(text.encode("utf-8"))

    def write_fixed(self, data: bytes) -> None:
        """Write bytes with no length prefix."""
        self._buffer += bytes(data)

    def getvalue(self) -> bytes:
        return bytes(self._buffer)


class BorshReader:
    """Reads Borsh-encoded values from a byte string."""

    def __init__(self, data: bytes) -> None:
        self._data = bytes(data)
        self._pos = 0

    def read_fixed(self, size: int) -> bytes:
        """Read exactly ``size`` bytes."""
        if size < 0 or self.remaining() < size:
            raise DecodeError(
                f"unexpected end of input: wanted {size} bytes, {self.remaining()} left"
            )
        chunk = self._data[self._pos : self._pos + size]
        self._pos += size
        return chunk

    def _uint(self, bits: int) -> int:
        return int.from_bytes(self.read_fixed(bits // 8), "little")

    def read_u8(self) -> int:
        return self._uint(8)

    def read_u32(self) -> int:
        return self._uint(32)

    def read_u64(self) -> int:
        return self._uint(64)

    def read_u128(self) -> int:
        return self._uint(128)

    def read_bool(self) -> bool:
        byte = self.read_u8()
        if byte not in (0, 1):
            raise DecodeError(f"invalid bool byte {byte}")
        return byte == 1

    def read_bytes(self) -> bytes:
        return self.read_fixed(self.read_u32())

    def read_string(self) -> str:
        raw = self.read_bytes()
        try:
            return raw.decode("utf-8")
        except UnicodeDecodeError as exc:
            raise DecodeError(f"invalid utf-8 string: {exc}") from exc

    def read_to_end(self) -> bytes:
        return self.read_fixed(self.remaining())

    def remaining(self) -> int:
        return len(self._data) - self._pos


def serialize_fr(value: int) -> bytes:
    """Uncompressed encoding of a field element."""
    return fr_to_le_bytes(value)


def deserialize_fr(reader: BorshReader) -> int:
    try:
        return fr_from_le_bytes(reader.read_fixed(FR_SIZE))
    except DecodeError:
        raise
    except ValueError as exc:
        raise DecodeError(str(exc)) from exc


def serialize_leaf(leaf: tuple[int, int]) -> bytes:
    """Encode a two-element leaf as consecutive field elements."""
    if len(leaf) != 2:
        raise ValueError("a leaf holds exactly two field elements")
    return b"".join(serialize_fr(value) for value in leaf)


def deserialize_leaf(reader: BorshReader) -> tuple[int, int]:
    return deserialize_fr(reader), deserialize_fr(reader)