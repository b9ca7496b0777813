import pytest

from aegischain.contracts.host import STORAGE_READ_LIMIT, ContractHost, ContractRevert
from aegischain.core import FR_MODULUS, Address


def test_missing_key_reads_none():
    host = ContractHost()
    assert host.get_storage(b"nothing") is None


def test_set_then_get_round_trip():
    host = ContractHost()
    host.set_storage(b"k", b"value")
    assert host.get_storage(b"k") == b"value"


def test_empty_value_reads_none():
    host = ContractHost()
    host.set_storage(b"k", b"")
    assert host.get_storage(b"k") is None


def test_long_value_is_truncated():
    host = ContractHost()
    host.set_storage(b"k", bytes(range(256)) * 8)
    value = host.get_storage(b"k")
    assert len(value) == STORAGE_READ_LIMIT
    assert value == (bytes(range(256)) * 8)[:STORAGE_READ_LIMIT]


def test_revert_raises_with_message():
    host = ContractHost()
    with pytest.raises(ContractRevert) as info:
        host.revert("boom")
    assert info.value.message == "boom"


def test_log_and_return_data():
    host = ContractHost()
    host.log_message("hello")
    host.return_data(b"\x01\x02")
    assert host.logs == ["hello"]
    assert host.returned == b"\x01\x02"


def test_native_transfer_recorded():
    host = ContractHost()
    recipient = Address(b"\x07" * 20)
    host.native_transfer(recipient, 42)
    assert host.transfers == [(recipient, 42)]


def test_native_transfer_rejects_negative():
    host = ContractHost()
    with pytest.raises(ValueError):
        host.native_transfer(Address(), -1)


def test_poseidon_uses_injected_hasher():
    host = ContractHost(two_to_one_hash=lambda a, b: b)
    assert host.poseidon_two_to_one(b"\x01" * 32, b"\x02" * 32) == b"\x02" * 32


def test_default_hash_is_field_element_and_order_sensitive():
    host = ContractHost()
    left, right = b"\x01" * 32, b"\x02" * 32
    ab = host.poseidon_two_to_one(left, right)
    ba = host.poseidon_two_to_one(right, left)
    assert len(ab) == 32
    assert int.from_bytes(ab, "big") < FR_MODULUS
    assert ab == host.poseidon_two_to_one(left, right)
    assert ab != ba


def test_poseidon_rejects_wrong_length():
    host = ContractHost()
    with pytest.raises(ValueError):
        host.poseidon_two_to_one(b"\x01" * 31, b"\x02" * 32)