"""Core chain types: addresses and BLS12-377 scalar field elements."""

from __future__ import annotations

from dataclasses import dataclass, field

ADDRESS_SIZE = 20

FR_MODULUS = 0x12AB655E9A2CA55660B44D1E5C37B00159AA76FED00000010A11800000000001
"""Order of the BLS12-377 scalar field."""

FR_SIZE = 32
"""Byte length of a serialized scalar field element."""


@dataclass(frozen=True, order=True)
class Address:
    """A 20-byte account address."""

    value: bytes = field(default=bytes(ADDRESS_SIZE))

    def __post_init__(self) -> None:
        raw = bytes(self.value)
        if len(raw) != ADDRESS_SIZE:
            raise ValueError(
                f"expected byte array of specific size {ADDRESS_SIZE}, got {len(raw)}"
            )
        object.__setattr__(self, "value", raw)

    def __eq__(self, other: object) -> bool:
        if isinstance(other, Address):
            return self.value == other.value
        if isinstance(other, (bytes, bytearray)):
            return self.value == bytes(other)
        return NotImplemented

    def __hash__(self) -> int:
        return hash(self.value)

    def __str__(self) -> str:
        return "0x" + self.value.hex()

    def __bytes__(self) -> bytes:
        return self.value

    @classmethod
    def from_hex(cls, text: str) -> "Address":
        """Parse a hex address, with or without a ``0x`` prefix."""
        stripped = text[2:] if text.startswith(("0x", "0X")) else text
        return cls(bytes.fromhex(stripped))


def _check_fr(value: int) -> int:
    if not isinstance(value, int) or not 0 <= value < FR_MODULUS:
        raise ValueError("field element out of range")
    return value


def fr_from_be_bytes_mod_order(data: bytes) -> int:
    """Interpret big-endian bytes as an integer reduced into the scalar field."""
    return int.from_bytes(bytes(data), "big") % FR_MODULUS


def fr_to_be_bytes(value: int) -> bytes:
    """Return the canonical 32-byte big-endian form of a field element."""
    return _check_fr(value).to_bytes(FR_SIZE, "big")


def fr_to_le_bytes(value: int) -> bytes:
    """Return the 32-byte little-endian (uncompressed) form of a field element."""
    return _check_fr(value).to_bytes(FR_SIZE, "little")


def fr_from_le_bytes(data: bytes) -> int:
    """Decode a 32-byte little-endian field element, rejecting non-canonical values."""
    raw = bytes(data)
    if len(raw) != FR_SIZE:
        raise ValueError(f"field element needs {FR_SIZE} bytes, got {len(raw)}")
    value = int.from_bytes(raw, "little")
    if value >= FR_MODULUS:
        raise ValueError("field element is not canonical")
    return value