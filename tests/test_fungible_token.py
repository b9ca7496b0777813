import json

import pytest

from aegischain.codec import BorshWriter, DecodeError
from aegischain.contracts import fungible_token as ft
from aegischain.contracts.host import ContractHost, ContractRevert
from aegischain.core import Address

ALICE = Address(b"\x0a" * 20)
BOB = Address(b"\x0b" * 20)
CAROL = Address(b"\x0c" * 20)


def _seed(host, owner, amount):
    writer = BorshWriter()
    writer.write_u128(amount)
    host.set_storage(ft.balance_key(owner), writer.getvalue())


def _host(caller=ALICE):
    host = ContractHost(caller=caller)
    _seed(host, ALICE, 100)
    return host


def test_keys():
    assert ft.balance_key(ALICE) == b"balances/" + bytes(ALICE)
    assert ft.allowance_key(ALICE, BOB) == b"allowances/" + bytes(ALICE) + bytes(BOB)


@pytest.mark.parametrize(
    "action",
    [
        ft.Transfer(BOB, 5),
        ft.Approve(BOB, 7),
        ft.TransferFrom(ALICE, BOB, 9),
        ft.BalanceOf(CAROL),
        ft.Allowance(ALICE, CAROL),
    ],
)
def test_call_round_trip(action):
    assert ft.decode_call(ft.encode_call(action)) == action


def test_transfer_wire_layout():
    data = ft.encode_call(ft.Transfer(BOB, 5))
    assert data[0] == 0
    assert data[1:21] == bytes(BOB)
    assert int.from_bytes(data[21:], "little") == 5


def test_decode_rejects_trailing_and_unknown():
    with pytest.raises(DecodeError):
        ft.decode_call(ft.encode_call(ft.BalanceOf(BOB)) + b"\x00")
    with pytest.raises(DecodeError):
        ft.decode_call(b"\x09")


def test_dispatch_invalid_reverts():
    with pytest.raises(ContractRevert, match="Invalid call data format"):
        ft.dispatch(_host(), b"\xff\xff")


def test_transfer_moves_balance_and_logs():
    host = _host()
    ft.dispatch(host, ft.encode_call(ft.Transfer(BOB, 30)))
    from_balance = ft.balance_of(host, ALICE)
    to_balance = ft.balance_of(host, BOB)
    assert to_balance == 30
    assert from_balance + to_balance == 100
    event = json.loads(host.logs[-1])
    assert event == {"Transfer": {"from": list(bytes(ALICE)), "to": list(bytes(BOB)), "value": 30}}


def test_transfer_to_self_reverts():
    with pytest.raises(ContractRevert, match="Cannot transfer to self"):
        ft.transfer(_host(), ALICE, 1)


def test_transfer_insufficient_reverts():
    with pytest.raises(ContractRevert, match="Insufficient balance"):
        ft.transfer(_host(), BOB, 101)


def test_approve_and_transfer_from():
    host = _host()
    ft.approve(host, BOB, 50)
    assert ft.allowance(host, ALICE, BOB) == 50
    host.caller = BOB
    ft.transfer_from(host, ALICE, CAROL, 20)
    remaining = ft.allowance(host, ALICE, BOB)
    assert remaining + 20 == 50
    assert ft.balance_of(host, CAROL) == 20
    assert ft.balance_of(host, ALICE) + 20 == 100


def test_transfer_from_without_allowance_reverts():
    host = _host(caller=BOB)
    with pytest.raises(ContractRevert, match="Insufficient allowance"):
        ft.transfer_from(host, ALICE, CAROL, 1)


def test_transfer_from_insufficient_balance_reverts():
    host = ContractHost(caller=ALICE)
    ft.approve(host, BOB, 10)
    host.caller = BOB
    with pytest.raises(ContractRevert, match="Insufficient balance"):
        ft.transfer_from(host, ALICE, CAROL, 5)


def test_balance_of_returns_big_endian_bytes():
    host = _host()
    result = ft.dispatch(host, ft.encode_call(ft.BalanceOf(ALICE)))
    assert result == 100
    assert host.returned == (100).to_bytes(16, "big")