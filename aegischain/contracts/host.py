"""In-memory execution environment offered to contracts by the node."""

from __future__ import annotations

import hashlib
from dataclasses import dataclass, field
from typing import Callable, NoReturn

from aegischain.core import FR_MODULUS, FR_SIZE, Address, fr_to_be_bytes

STORAGE_READ_LIMIT = 1024
"""Largest number of bytes a single storage read hands back to a contract."""

U64_MAX = (1 << 64) - 1


class ContractRevert(Exception):
    """Raised when a contract aborts execution."""

    def __init__(self, message: str) -> None:
        super().__init__(message)
        self.message = message


def _sha256_two_to_one(left: bytes, right: bytes) -> bytes:
    digest = hashlib.sha256(left + right).digest()
    return fr_to_be_bytes(int.from_bytes(digest, "big") % FR_MODULUS)


@dataclass
class ContractHost:
    """Host functions and state seen by a running contract.

    ``two_to_one_hash`` compresses two 32-byte field elements into one; the
    node supplies its Poseidon hasher here.
    """

    caller: Address = field(default_factory=Address)
    block_timestamp: int = 0
    l2_state_root: bytes = b""
    two_to_one_hash: Callable[[bytes, bytes], bytes] = _sha256_two_to_one
    storage: dict[bytes, bytes] = field(default_factory=dict)
    logs: list[str] = field(default_factory=list)
    returned: bytes | None = None
    transfers: list[tuple[Address, int]] = field(default_factory=list)

    def get_storage(self, key: bytes) -> bytes | None:
        """Read a value; missing and empty values both read as ``None``."""
        value = self.storage.get(bytes(key))
        if not value:
            return None
        return value[:STORAGE_READ_LIMIT]

    def set_storage(self, key: bytes, value: bytes) -> None:
        self.storage[bytes(key)] = bytes(value)

    def return_data(self, data: bytes) -> None:
        self.returned = bytes(data)

    def log_message(self, message: str) -> None:
        self.logs.append(message)

    def revert(self, message: str) -> NoReturn:
        raise ContractRevert(message)

    def native_transfer(self, recipient: Address, amount: int) -> None:
        if not 0 <= amount <= U64_MAX:
            raise ValueError(f"amount {amount} does not fit in u64")
        self.transfers.append((Address(bytes(recipient)), amount))

    def poseidon_two_to_one(self, left: bytes, right: bytes) -> bytes:
        """Hash two 32-byte big-endian field elements into one."""
        left, right = bytes(left), bytes(right)
        if len(left) != FR_SIZE or len(right) != FR_SIZE:
            raise ValueError(f"inputs must be {FR_SIZE} bytes each")
        return bytes(self.two_to_one_hash(left, right))