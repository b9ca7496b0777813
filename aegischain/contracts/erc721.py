"""Non-fungible token contract with owner, single and operator approvals."""

from __future__ import annotations

import json
from typing import Any, Callable

from aegischain.codec import BorshReader, BorshWriter
from aegischain.contracts.host import ContractHost
from aegischain.core import ADDRESS_SIZE, Address

_U128_LIMIT = 1 << 128


def _token_bytes(token_id: int) -> bytes:
    return token_id.to_bytes(16, "big")


def owner_key(token_id: int) -> bytes:
    return b"owners/" + _token_bytes(token_id)


def balance_key(owner: Address) -> bytes:
    return b"balances/" + bytes(owner)


def approval_key(token_id: int) -> bytes:
    return b"approvals/" + _token_bytes(token_id)


def uri_key(token_id: int) -> bytes:
    return b"uri/" + _token_bytes(token_id)


def operator_approval_key(owner: Address, operator: Address) -> bytes:
    return b"operators/" + bytes(owner) + bytes(operator)


def _read_address(host: ContractHost, key: bytes) -> Address | None:
    raw = host.get_storage(key)
    return None if raw is None else Address(BorshReader(raw).read_fixed(ADDRESS_SIZE))


def _read_u128(host: ContractHost, key: bytes, default: int) -> int:
    raw = host.get_storage(key)
    return default if raw is None else BorshReader(raw).read_u128()


def _read_bool(host: ContractHost, key: bytes) -> bool:
    raw = host.get_storage(key)
    return False if raw is None else BorshReader(raw).read_bool()


def _read_string(host: ContractHost, key: bytes) -> str | None:
    raw = host.get_storage(key)
    return None if raw is None else BorshReader(raw).read_string()


def _write(host: ContractHost, key: bytes, fill: Callable[[BorshWriter], None]) -> None:
    writer = BorshWriter()
    fill(writer)
    host.set_storage(key, writer.getvalue())


def _write_address(host: ContractHost, key: bytes, value: Address) -> None:
    _write(host, key, lambda w: w.write_fixed(bytes(value)))


def _write_u128(host: ContractHost, key: bytes, value: int) -> None:
    _write(host, key, lambda w: w.write_u128(value))


def _emit(host: ContractHost, name: str, **fields: object) -> None:
    body = {
        key: list(bytes(value)) if isinstance(value, Address) else value
        for key, value in fields.items()
    }
    host.log_message(json.dumps({name: body}, separators=(",", ":")))


def mint(host: ContractHost, to: Address, token_id: int, token_uri: str) -> None:
    if _read_address(host, owner_key(token_id)) is not None:
        host.revert("Token ID already exists")
    _write_address(host, owner_key(token_id), to)
    _write(host, uri_key(token_id), lambda w: w.write_string(token_uri))
    balance = _read_u128(host, balance_key(to), 0)
    _write_u128(host, balance_key(to), balance + 1)
    _emit(host, "Transfer", **{"from": Address(), "to": to, "token_id": token_id})


def transfer_from(host: ContractHost, from_: Address, to: Address, token_id: int) -> None:
    caller = host.caller
    owner = _read_address(host, owner_key(token_id))
    if owner is None:
        host.revert("Token does not exist")
    if from_ != owner:
        host.revert("'from' address is not the owner")
    approved = _read_address(host, approval_key(token_id))
    is_operator = _read_bool(host, operator_approval_key(owner, caller))
    if caller != owner and approved != caller and not is_operator:
        host.revert("Caller is not the owner or approved for this token or operator")

    _write_address(host, owner_key(token_id), to)
    _write_address(host, approval_key(token_id), Address())
    from_balance = _read_u128(host, balance_key(from_), 1)
    _write_u128(host, balance_key(from_), from_balance - 1)
    to_balance = _read_u128(host, balance_key(to), 0)
    _write_u128(host, balance_key(to), to_balance + 1)
    _emit(host, "Transfer", **{"from": from_, "to": to, "token_id": token_id})


def approve(host: ContractHost, to: Address, token_id: int) -> None:
    caller = host.caller
    owner = _read_address(host, owner_key(token_id))
    if owner is None:
        host.revert("Token does not exist")
    if caller != owner:
        host.revert("Only the owner can approve a transfer")
    _write_address(host, approval_key(token_id), to)
    _emit(host, "Approval", owner=owner, approved=to, token_id=token_id)


def set_approval_for_all(host: ContractHost, operator: Address, approved: bool) -> None:
    owner = host.caller
    _write(host, operator_approval_key(owner, operator), lambda w: w.write_bool(approved))
    _emit(host, "ApprovalForAll", owner=owner, operator=operator, approved=approved)


def balance_of(host: ContractHost, owner: Address) -> int:
    balance = _read_u128(host, balance_key(owner), 0)
    host.return_data(balance.to_bytes(16, "big"))
    return balance


def owner_of(host: ContractHost, token_id: int) -> Address:
    owner = _read_address(host, owner_key(token_id))
    if owner is None:
        host.revert("Token does not exist")
    host.return_data(bytes(owner))
    return owner


def token_uri(host: ContractHost, token_id: int) -> str:
    uri = _read_string(host, uri_key(token_id))
    if uri is None:
        host.revert("Token URI does not exist")
    host.return_data(uri.encode("utf-8"))
    return uri


def get_approved(host: ContractHost, token_id: int) -> Address:
    approved = _read_address(host, approval_key(token_id)) or Address()
    host.return_data(bytes(approved))
    return approved


def is_approved_for_all(host: ContractHost, owner: Address, operator: Address) -> bool:
    approved = _read_bool(host, operator_approval_key(owner, operator))
    host.return_data(bytes([int(approved)]))
    return approved


def _address(value: Any) -> Address:
    if not isinstance(value, list) or not all(
        isinstance(b, int) and not isinstance(b, bool) and 0 <= b < 256 for b in value
    ):
        raise ValueError("address must be a list of bytes")
    return Address(bytes(value))


def _token_id(value: Any) -> int:
    if not isinstance(value, int) or isinstance(value, bool) or not 0 <= value < _U128_LIMIT:
        raise ValueError("token id must be a u128")
    return value


def _string(value: Any) -> str:
    if not isinstance(value, str):
        raise ValueError("expected a string")
    return value


def _boolean(value: Any) -> bool:
    if not isinstance(value, bool):
        raise ValueError("expected a bool")
    return value


_ACTIONS: dict[str, tuple[Callable[..., Any], tuple[tuple[str, Callable[[Any], Any]], ...]]] = {
    "Mint": (mint, (("to", _address), ("token_id", _token_id), ("token_uri", _string))),
    "TransferFrom": (
        transfer_from,
        (("from", _address), ("to", _address), ("token_id", _token_id)),
    ),
    "Approve": (approve, (("to", _address), ("token_id", _token_id))),
    "SetApprovalForAll": (
        set_approval_for_all,
        (("operator", _address), ("approved", _boolean)),
    ),
    "BalanceOf": (balance_of, (("owner", _address),)),
    "OwnerOf": (owner_of, (("token_id", _token_id),)),
    "TokenURI": (token_uri, (("token_id", _token_id),)),
    "GetApproved": (get_approved, (("token_id", _token_id),)),
    "IsApprovedForAll": (is_approved_for_all, (("owner", _address), ("operator", _address))),
}


def _parse(call_data: bytes) -> tuple[Callable[..., Any], list[Any]]:
    document = json.loads(bytes(call_data).decode("utf-8"))
    if not isinstance(document, dict) or len(document) != 1:
        raise ValueError("call must be an object with one variant")
    (name, body), = document.items()
    if name not in _ACTIONS or not isinstance(body, dict):
        raise ValueError(f"unknown call {name!r}")
    handler, spec = _ACTIONS[name]
    try:
        args = [convert(body[key]) for key, convert in spec]
    except KeyError as exc:
        raise ValueError(f"missing field {exc}") from exc
    return handler, args


def dispatch(host: ContractHost, call_data: bytes) -> Any:
    """Run a JSON-encoded call; calls that cannot be parsed are ignored."""
    try:
        handler, args = _parse(call_data)
    except ValueError:
        return None
    return handler(host, *args)