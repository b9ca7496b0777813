"""Merkle authentication paths and L2 withdrawal proofs."""

from __future__ import annotations

from dataclasses import dataclass

from aegischain.codec import (
    BorshReader,
    BorshWriter,
    DecodeError,
    deserialize_fr,
    deserialize_leaf,
    serialize_fr,
    serialize_leaf,
)
from aegischain.core import FR_SIZE


@dataclass(frozen=True)
class MerklePath:
    """Authentication path of a leaf in the L2 state tree."""

    leaf_sibling_hash: int
    auth_path: tuple[int, ...]
    leaf_index: int

    def __post_init__(self) -> None:
        object.__setattr__(self, "auth_path", tuple(self.auth_path))

    def to_bytes(self) -> bytes:
        """Uncompressed canonical encoding: sibling, u64-counted path, u64 index."""
        writer = BorshWriter()
        writer.write_fixed(serialize_fr(self.leaf_sibling_hash))
        writer.write_u64(len(self.auth_path))
        for node in self.auth_path:
            writer.write_fixed(serialize_fr(node))
        writer.write_u64(self.leaf_index)
        return writer.getvalue()

    @classmethod
    def from_bytes(cls, data: bytes) -> "MerklePath":
        """Decode a path; bytes after the encoded path are ignored."""
        reader = BorshReader(data)
        sibling = deserialize_fr(reader)
        count = reader.read_u64()
        if count * FR_SIZE > reader.remaining():
            raise DecodeError(f"auth path of {count} nodes exceeds input")
        auth_path = tuple(deserialize_fr(reader) for _ in range(count))
        leaf_index = reader.read_u64()
        return cls(sibling, auth_path, leaf_index)


def serialize_path(path: MerklePath) -> bytes:
    return path.to_bytes()


def deserialize_path(data: bytes) -> MerklePath:
    return MerklePath.from_bytes(data)


@dataclass(frozen=True, eq=False)
class WithdrawalProof:
    """Proof that an L2 account leaf belongs to a committed L2 state root."""

    l2_state_root: bytes
    leaf_data: tuple[int, int]
    merkle_path: MerklePath

    def __post_init__(self) -> None:
        object.__setattr__(self, "l2_state_root", bytes(self.l2_state_root))
        leaf = tuple(self.leaf_data)
        if len(leaf) != 2:
            raise ValueError("a leaf holds exactly two field elements")
        object.__setattr__(self, "leaf_data", leaf)

    def _identity(self) -> tuple:
        return self.l2_state_root, self.leaf_data, self.merkle_path.auth_path

    def __eq__(self, other: object) -> bool:
        if not isinstance(other, WithdrawalProof):
            return NotImplemented
        return self._identity() == other._identity()

    def __hash__(self) -> int:
        return hash(self._identity())

    def write_to(self, writer: BorshWriter) -> None:
        writer.write_bytes(self.l2_state_root)
        writer.write_fixed(serialize_leaf(self.leaf_data))
        writer.write_fixed(serialize_path(self.merkle_path))

    @classmethod
    def read_from(cls, reader: BorshReader) -> "WithdrawalProof":
        """Read a proof; the Merkle path consumes the rest of the reader."""
        root = reader.read_bytes()
        leaf = deserialize_leaf(reader)
        path = deserialize_path(reader.read_to_end())
        return cls(root, leaf, path)

    def to_borsh(self) -> bytes:
        writer = BorshWriter()
        self.write_to(writer)
        return writer.getvalue()

    @classmethod
    def from_borsh(cls, data: bytes) -> "WithdrawalProof":
        return cls.read_from(BorshReader(data))