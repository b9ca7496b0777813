"""Fungible token contract: balances, allowances and transfers."""

from __future__ import annotations

import json
from dataclasses import dataclass
from typing import Union

from aegischain.codec import BorshReader, BorshWriter, DecodeError
from aegischain.contracts.host import ContractHost
from aegischain.core import ADDRESS_SIZE, Address


def balance_key(owner: Address) -> bytes:
    return b"balances/" + bytes(owner)


def allowance_key(owner: Address, spender: Address) -> bytes:
    return b"allowances/" + bytes(owner) + bytes(spender)


@dataclass(frozen=True)
class Transfer:
    to: Address
    amount: int


@dataclass(frozen=True)
class Approve:
    spender: Address
    amount: int


@dataclass(frozen=True)
class TransferFrom:
    from_: Address
    to: Address
    amount: int


@dataclass(frozen=True)
class BalanceOf:
    owner: Address


@dataclass(frozen=True)
class Allowance:
    owner: Address
    spender: Address


CallAction = Union[Transfer, Approve, TransferFrom, BalanceOf, Allowance]

_VARIANTS: tuple[type, ...] = (Transfer, Approve, TransferFrom, BalanceOf, Allowance)


def encode_call(action: CallAction) -> bytes:
    """Borsh-encode a call: variant byte, then the fields in order."""
    writer = BorshWriter()
    writer.write_u8(_VARIANTS.index(type(action)))
    if isinstance(action, Transfer):
        writer.write_fixed(bytes(action.to))
        writer.write_u128(action.amount)
    elif isinstance(action, Approve):
        writer.write_fixed(bytes(action.spender))
        writer.write_u128(action.amount)
    elif isinstance(action, TransferFrom):
        writer.write_fixed(bytes(action.from_))
        writer.write_fixed(bytes(action.to))
        writer.write_u128(action.amount)
    elif isinstance(action, BalanceOf):
        writer.write_fixed(bytes(action.owner))
    else:
        writer.write_fixed(bytes(action.owner))
        writer.write_fixed(bytes(action.spender))
    return writer.getvalue()


def decode_call(data: bytes) -> CallAction:
    """Decode call data; the whole input must be consumed."""
    reader = BorshReader(data)

    def address() -> Address:
        return Address(reader.read_fixed(ADDRESS_SIZE))

    tag = reader.read_u8()
    action: CallAction
    if tag == 0:
        action = Transfer(address(), reader.read_u128())
    elif tag == 1:
        action = Approve(address(), reader.read_u128())
    elif tag == 2:
        action = TransferFrom(address(), address(), reader.read_u128())
    elif tag == 3:
        action = BalanceOf(address())
    elif tag == 4:
        action = Allowance(address(), address())
    else:
        raise DecodeError(f"unknown call variant {tag}")
    if reader.remaining():
        raise DecodeError("trailing bytes after call data")
    return action


def _read_u128(host: ContractHost, key: bytes, default: int = 0) -> int:
    raw = host.get_storage(key)
    return default if raw is None else BorshReader(raw).read_u128()


def _write_u128(host: ContractHost, key: bytes, value: int) -> None:
    writer = BorshWriter()
    writer.write_u128(value)
    host.set_storage(key, writer.getvalue())


def _emit(host: ContractHost, name: str, **fields: object) -> None:
    body = {
        key: list(bytes(value)) if isinstance(value, Address) else value
        for key, value in fields.items()
    }
    host.log_message(json.dumps({name: body}, separators=(",", ":")))


def transfer(host: ContractHost, to: Address, amount: int) -> None:
    sender = host.caller
    if sender == to:
        host.revert("Cannot transfer to self")
    from_balance = _read_u128(host, balance_key(sender))
    if from_balance < amount:
        host.revert("Insufficient balance")
    to_balance = _read_u128(host, balance_key(to))
    _write_u128(host, balance_key(sender), from_balance - amount)
    _write_u128(host, balance_key(to), to_balance + amount)
    _emit(host, "Transfer", **{"from": sender, "to": to, "value": amount})


def approve(host: ContractHost, spender: Address, amount: int) -> None:
    owner = host.caller
    _write_u128(host, allowance_key(owner, spender), amount)
    _emit(host, "Approval", owner=owner, spender=spender, value=amount)


def transfer_from(host: ContractHost, from_: Address, to: Address, amount: int) -> None:
    caller = host.caller
    allowed = _read_u128(host, allowance_key(from_, caller))
    if allowed < amount:
        host.revert("Insufficient allowance")
    from_balance = _read_u128(host, balance_key(from_))
    if from_balance < amount:
        host.revert("Insufficient balance")
    to_balance = _read_u128(host, balance_key(to))
    _write_u128(host, allowance_key(from_, caller), allowed - amount)
    _write_u128(host, balance_key(from_), from_balance - amount)
    _write_u128(host, balance_key(to), to_balance + amount)
    _emit(host, "Transfer", **{"from": from_, "to": to, "value": amount})


def balance_of(host: ContractHost, owner: Address) -> int:
    balance = _read_u128(host, balance_key(owner))
    host.return_data(balance.to_bytes(16, "big"))
    return balance


def allowance(host: ContractHost, owner: Address, spender: Address) -> int:
    amount = _read_u128(host, allowance_key(owner, spender))
    host.return_data(amount.to_bytes(16, "big"))
    return amount


def dispatch(host: ContractHost, call_data: bytes) -> int | None:
    """Run the call encoded in ``call_data``; read calls return their value."""
    try:
        action = decode_call(call_data)
    except DecodeError:
        host.revert("Invalid call data format")
    if isinstance(action, Transfer):
        transfer(host, action.to, action.amount)
    elif isinstance(action, Approve):
        approve(host, action.spender, action.amount)
    elif isinstance(action, TransferFrom):
        transfer_from(host, action.from_, action.to, action.amount)
    elif isinstance(action, BalanceOf):
        return balance_of(host, action.owner)
    else:
        return allowance(host, action.owner, action.spender)
    return None