"""L1 bridge contract paying out withdrawals proven against the L2 state root."""

from __future__ import annotations

from dataclasses import dataclass, field
from typing import Union

from aegischain.codec import BorshReader, BorshWriter, DecodeError
from aegischain.contracts.host import ContractHost
from aegischain.core import ADDRESS_SIZE, Address, fr_from_be_bytes_mod_order, fr_to_be_bytes
from aegischain.proof import WithdrawalProof

STATE_KEY = b"STATE"
MS_PER_DAY = 1000 * 60 * 60 * 24


@dataclass
class BridgeState:
    """Persistent bridge configuration and daily withdrawal accounting."""

    daily_limit: int = 0
    last_withdrawal_day: int = 0
    withdrawn_today: int = 0
    owner: Address = field(default_factory=Address)
    processed_l2_roots: list[bytes] = field(default_factory=list)

    def to_borsh(self) -> bytes:
        writer = BorshWriter()
        writer.write_u64(self.daily_limit)
        writer.write_u64(self.last_withdrawal_day)
        writer.write_u64(self.withdrawn_today)
        writer.write_fixed(bytes(self.owner))
        writer.write_u32(len(self.processed_l2_roots))
        for root in self.processed_l2_roots:
            writer.write_bytes(root)
        return writer.getvalue()

    @classmethod
    def from_borsh(cls, data: bytes) -> "BridgeState":
        reader = BorshReader(data)
        daily_limit = reader.read_u64()
        last_day = reader.read_u64()
        withdrawn = reader.read_u64()
        owner = Address(reader.read_fixed(ADDRESS_SIZE))
        roots = [reader.read_bytes() for _ in range(reader.read_u32())]
        if reader.remaining():
            raise DecodeError("trailing bytes after bridge state")
        return cls(daily_limit, last_day, withdrawn, owner, roots)


@dataclass(frozen=True)
class Initialize:
    daily_limit: int
    owner: Address


@dataclass(frozen=True)
class Withdraw:
    amount: int
    proof: WithdrawalProof


@dataclass(frozen=True)
class SetDailyLimit:
    new_limit: int


CallAction = Union[Initialize, Withdraw, SetDailyLimit]


def encode_call(action: CallAction) -> bytes:
    writer = BorshWriter()
    if isinstance(action, Initialize):
        writer.write_u8(0)
        writer.write_u64(action.daily_limit)
        writer.write_fixed(bytes(action.owner))
    elif isinstance(action, Withdraw):
        writer.write_u8(1)
        writer.write_u64(action.amount)
        action.proof.write_to(writer)
    else:
        writer.write_u8(2)
        writer.write_u64(action.new_limit)
    return writer.getvalue()


def decode_call(data: bytes) -> CallAction:
    reader = BorshReader(data)
    tag = reader.read_u8()
    action: CallAction
    if tag == 0:
        action = Initialize(reader.read_u64(), Address(reader.read_fixed(ADDRESS_SIZE)))
    elif tag == 1:
        action = Withdraw(reader.read_u64(), WithdrawalProof.read_from(reader))
    elif tag == 2:
        action = SetDailyLimit(reader.read_u64())
    else:
        raise DecodeError(f"unknown call variant {tag}")
    if reader.remaining():
        raise DecodeError("trailing bytes after call data")
    return action


def _load_state(host: ContractHost) -> BridgeState | None:
    raw = host.get_storage(STATE_KEY)
    return None if raw is None else BridgeState.from_borsh(raw)


def _require_state(host: ContractHost) -> BridgeState:
    state = _load_state(host)
    if state is None:
        host.revert("Contract not initialized")
    return state


def _debug_address(address: Address) -> str:
    return "Address([" + ", ".join(str(b) for b in bytes(address)) + "])"


def verify_merkle_proof(host: ContractHost, proof: WithdrawalProof) -> None:
    """Revert unless the proof's leaf hashes up to the current L2 state root."""
    valid_root = bytes(host.l2_state_root)
    if proof.l2_state_root != valid_root:
        host.revert("Proof is for an outdated or invalid L2 state root")

    leaf_0, leaf_1 = (fr_to_be_bytes(value) for value in proof.leaf_data)
    current = host.poseidon_two_to_one(leaf_0, leaf_1)
    index = proof.merkle_path.leaf_index
    for node in proof.merkle_path.auth_path:
        node_bytes = fr_to_be_bytes(node)
        if index % 2 == 0:
            current = host.poseidon_two_to_one(current, node_bytes)
        else:
            current = host.poseidon_two_to_one(node_bytes, current)
        index //= 2

    if current != valid_root:
        host.revert("Invalid Merkle proof")


def initialize(host: ContractHost, daily_limit: int, owner: Address) -> None:
    if _load_state(host) is not None:
        host.revert("Contract already initialized")
    state = BridgeState(daily_limit=daily_limit, owner=owner)
    host.set_storage(STATE_KEY, state.to_borsh())
    host.log_message("Bridge initialized")


def set_daily_limit(host: ContractHost, new_limit: int) -> None:
    state = _require_state(host)
    if state.owner != host.caller:
        host.revert("Only owner can set daily limit")
    state.daily_limit = new_limit
    host.set_storage(STATE_KEY, state.to_borsh())


def withdraw(host: ContractHost, amount: int, proof: WithdrawalProof) -> None:
    verify_merkle_proof(host, proof)

    caller = host.caller
    if proof.leaf_data[0] != fr_from_be_bytes_mod_order(bytes(caller)):
        host.revert("Caller does not match the owner in the withdrawal proof")

    state = _require_state(host)
    if proof.l2_state_root in state.processed_l2_roots:
        host.revert("Withdrawal proof already used")

    current_day = host.block_timestamp // MS_PER_DAY
    if current_day > state.last_withdrawal_day:
        state.withdrawn_today = 0
        state.last_withdrawal_day = current_day
    if state.withdrawn_today + amount > state.daily_limit:
        host.revert("Exceeds daily withdrawal limit")

    host.native_transfer(caller, amount)

    state.withdrawn_today += amount
    state.processed_l2_roots.append(proof.l2_state_root)
    host.set_storage(STATE_KEY, state.to_borsh())
    host.log_message(f"Withdrawal of {amount} to {_debug_address(caller)} successful")


def dispatch(host: ContractHost, call_data: bytes) -> None:
    """Decode and run a bridge call."""
    try:
        action = decode_call(call_data)
    except DecodeError:
        host.revert("Invalid call data format")
    if isinstance(action, Initialize):
        initialize(host, action.daily_limit, action.owner)
    elif isinstance(action, Withdraw):
        withdraw(host, action.amount, action.proof)
    else:
        set_daily_limit(host, action.new_limit)