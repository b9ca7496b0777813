# aegischain

Building blocks for a settlement layer, in plain Python with no third-party
dependencies.

## What is in the package

- `aegischain.core` — the 20-byte `Address` type (`str()` gives `0x…` hex,
  `Address.from_hex` parses hex with or without `0x`) and conversions between
  bytes and BLS12-377 scalar field elements held as Python `int`s:
  `fr_from_be_bytes_mod_order`, `fr_to_be_bytes`, `fr_to_le_bytes`,
  `fr_from_le_bytes` (the last rejects non-canonical values).
- `aegischain.codec` — `BorshWriter` and `BorshReader` for the Borsh binary
  format (little-endian integers, `u32`-prefixed byte vectors and strings,
  fixed-size byte runs), `DecodeError` for malformed or truncated input, plus
  `serialize_fr` / `deserialize_fr` and `serialize_leaf` / `deserialize_leaf`
  for field elements and two-element Merkle leaves.
- `aegischain.proof` — `MerklePath` (sibling hash, authentication path, leaf
  index) and `WithdrawalProof` (L2 state root, leaf, path), with their binary
  encoding: `MerklePath.to_bytes` / `from_bytes`, `serialize_path` /
  `deserialize_path`, `WithdrawalProof.to_borsh` / `from_borsh` and
  `write_to` / `read_from`. Two proofs compare equal when their root, leaf and
  authentication path match.
- `aegischain.contracts.host` — `ContractHost`, the environment a contract runs
  against: a storage dict (reads of missing or empty values give `None`, reads
  are cut to 1024 bytes), `log_message`, `return_data`, `native_transfer`
  (recorded in `transfers`), `poseidon_two_to_one`, and `revert`, which raises
  `ContractRevert`.
- `aegischain.contracts.fungible_token` — balances and allowances:
  `transfer`, `approve`, `transfer_from`, `balance_of`, `allowance`, call
  variants `Transfer`, `Approve`, `TransferFrom`, `BalanceOf`, `Allowance`,
  `encode_call` / `decode_call`, and `dispatch` for Borsh-encoded calls
  (undecodable call data reverts with "Invalid call data format").
- `aegischain.contracts.erc721` — `mint`, `transfer_from`, `approve`,
  `set_approval_for_all`, and the queries `balance_of`, `owner_of`,
  `token_uri`, `get_approved`, `is_approved_for_all`, with `dispatch` for
  JSON-encoded calls such as `{"OwnerOf": {"token_id": 7}}` (addresses are
  lists of byte values; call data that cannot be parsed is ignored).
- `aegischain.contracts.bridge_contract` — a withdrawal bridge: `initialize`,
  `set_daily_limit` (owner only) and `withdraw`, which checks a
  `WithdrawalProof` with `verify_merkle_proof` against the host's
  `l2_state_root`, refuses reused roots, enforces a daily limit on
  millisecond block timestamps and pays out with `native_transfer`. State is
  kept as a Borsh-encoded `BridgeState`; calls are `Initialize`, `Withdraw`
  and `SetDailyLimit`, run through `dispatch`.
- `aegischain.processing` — `BlockNodeStatus`, `BlockNode`, the outcomes
  `ProcessingSuccess`, `ProcessingFailure` and `ParentStateNotReady`, the
  `BlockchainError` family (`MissingParentError`, `LogicError`,
  `StateRootMismatchError`, `TransactionInvalidError`, `TrieError`,
  `StateError`) and `process_block` / `run_processing`.
- `aegischain.block_tree` — `BlockTree`, which tracks unfinalized blocks,
  executes each one once its parent's state is ready, prunes failed branches,
  weighs branches by `Vote`s, picks the head with `find_head` and drops
  competing branches on `finalize`.

## Installing

```
pip install .
```

With the test tools:

```
pip install ".[test]"
pytest
```

## Example: a token transfer

```python
from aegischain.contracts.host import ContractHost
from aegischain.contracts import fungible_token
from aegischain.core import Address

alice = Address(bytes([1]) * 20)
bob = Address(bytes([2]) * 20)

host = ContractHost(caller=alice)
host.set_storage(fungible_token.balance_key(alice), (100).to_bytes(16, "little"))

fungible_token.transfer(host, bob, 40)
fungible_token.balance_of(host, bob)
print(int.from_bytes(host.returned, "big"))  # 40
```

## Example: the block tree

Blocks are any objects with a `header` carrying `index`, `prev_hash`,
`state_root` and a `calculate_hash()` method. An executor is called as
`executor(parent_state_root, block)` and returns `(session,
changed_accounts)`, where `session` has `root()` and `commit()`; plain
functions run in a worker thread, coroutine functions are awaited. State
roots are 32 bytes.

```python
import asyncio
import hashlib
from dataclasses import dataclass

from aegischain.block_tree import BlockTree


@dataclass
class Header:
    index: int
    prev_hash: bytes
    state_root: bytes

    def calculate_hash(self):
        data = self.index.to_bytes(8, "big") + self.prev_hash + self.state_root
        return hashlib.sha256(data).digest()


@dataclass
class Block:
    header: Header


class Session:
    def __init__(self, root):
        self._root = root

    def root(self):
        return self._root

    def commit(self):
        return self._root


def execute(parent_root, block):
    return Session(block.header.state_root), {}


async def main():
    results = asyncio.Queue()
    genesis = Block(Header(0, bytes(32), bytes(32)))
    tree = BlockTree(genesis, results)
    child = Block(Header(1, genesis.header.calculate_hash(), bytes([1]) * 32))
    await tree.insert_and_process_block(child, execute)
    tree.update_node_status(await results.get(), execute)
    print(tree.find_head().block is child)  # True


asyncio.run(main())
```

## What the package does not do

- There is no node: no networking, RPC server or client, consensus engine,
  mempool or command-line tools. `BlockTree` only orders and prunes blocks;
  executing transactions and storing state is left to the executor you pass.
- There is no state trie or database; `ContractHost` keeps storage in a dict.
- There is no Poseidon implementation. `ContractHost.poseidon_two_to_one`
  calls `two_to_one_hash`, which by default is SHA-256 reduced into the
  scalar field; supply a real Poseidon function to check proofs made
  elsewhere.
- There are no keys, keystores, signatures or zero-knowledge proving.