import asyncio
from dataclasses import dataclass, field

import pytest

from aegischain.processing import (
    BlockNode,
    BlockNodeStatus,
    LogicError,
    MissingParentError,
    ProcessingFailure,
    ProcessingSuccess,
    StateError,
    StateRootMismatchError,
    TransactionInvalidError,
    TrieError,
    process_block,
    run_processing,
)

PARENT_ROOT = bytes(32)
GOOD_ROOT = bytes([7]) * 32
BAD_ROOT = bytes([9]) * 32
HASH = bytes([1, 2, 3, 4]) + bytes(28)


@dataclass
class FakeHeader:
    state_root: bytes
    block_hash: bytes = HASH
    prev_hash: bytes = PARENT_ROOT
    index: int = 1

    def calculate_hash(self):
        return self.block_hash


@dataclass
class FakeBlock:
    header: FakeHeader
    transactions: list = field(default_factory=list)


@dataclass
class FakeSession:
    state_root: bytes
    fail_commit: bool = False
    committed: bool = False

    def root(self):
        return self.state_root

    def commit(self):
        if self.fail_commit:
            raise RuntimeError("disk full")
        self.committed = True
        return self.state_root


def make_executor(session, changed=None, calls=None):
    def executor(parent_root, block):
        if calls is not None:
            calls.append((parent_root, block))
        return session, changed or {}

    return executor


@pytest.mark.asyncio
async def test_success_commits_and_reports_root():
    session = FakeSession(GOOD_ROOT)
    calls = []
    block = FakeBlock(FakeHeader(GOOD_ROOT))
    result = await process_block(make_executor(session, {"a": 1}, calls), block, PARENT_ROOT)
    assert isinstance(result, ProcessingSuccess)
    assert result.block_hash == HASH
    assert result.post_state_root == GOOD_ROOT
    assert result.changed_accounts == {"a": 1}
    assert session.committed
    assert calls == [(PARENT_ROOT, block)]


@pytest.mark.asyncio
async def test_async_executor_is_awaited():
    session = FakeSession(GOOD_ROOT)

    async def executor(parent_root, block):
        return session, {}

    result = await process_block(executor, FakeBlock(FakeHeader(GOOD_ROOT)), PARENT_ROOT)
    assert isinstance(result, ProcessingSuccess)
    assert session.committed


@pytest.mark.asyncio
async def test_root_mismatch_is_fatal_and_not_committed():
    session = FakeSession(BAD_ROOT)
    result = await process_block(make_executor(session), FakeBlock(FakeHeader(GOOD_ROOT)), PARENT_ROOT)
    assert isinstance(result, ProcessingFailure)
    assert result.is_fatal
    assert isinstance(result.error, StateRootMismatchError)
    assert result.error.expected == GOOD_ROOT.hex()
    assert result.error.got == BAD_ROOT.hex()
    assert not session.committed


@pytest.mark.asyncio
async def test_commit_failure_is_trie_error():
    session = FakeSession(GOOD_ROOT, fail_commit=True)
    result = await process_block(make_executor(session), FakeBlock(FakeHeader(GOOD_ROOT)), PARENT_ROOT)
    assert isinstance(result, ProcessingFailure)
    assert result.is_fatal
    assert isinstance(result.error, TrieError)
    assert str(result.error).startswith("Commit failed")


@pytest.mark.asyncio
async def test_invalid_transaction_is_not_fatal():
    def executor(parent_root, block):
        raise TransactionInvalidError("bad nonce")

    result = await process_block(executor, FakeBlock(FakeHeader(GOOD_ROOT)), PARENT_ROOT)
    assert isinstance(result, ProcessingFailure)
    assert result.is_fatal is False
    assert isinstance(result.error, TransactionInvalidError)


@pytest.mark.asyncio
async def test_state_error_is_fatal():
    def executor(parent_root, block):
        raise StateError("cannot open trie")

    result = await process_block(executor, FakeBlock(FakeHeader(GOOD_ROOT)), PARENT_ROOT)
    assert result.is_fatal is True
    assert isinstance(result.error, StateError)


@pytest.mark.asyncio
async def test_unexpected_exception_becomes_panic_logic_error():
    def executor(parent_root, block):
        raise RuntimeError("boom")

    result = await process_block(executor, FakeBlock(FakeHeader(GOOD_ROOT)), PARENT_ROOT)
    assert result.is_fatal is True
    assert isinstance(result.error, LogicError)
    assert str(result.error) == "Panic: boom"


@pytest.mark.asyncio
async def test_bad_parent_root_length_is_logic_error_without_execution():
    calls = []
    executor = make_executor(FakeSession(GOOD_ROOT), calls=calls)
    result = await process_block(executor, FakeBlock(FakeHeader(GOOD_ROOT)), b"\x00\x01")
    assert isinstance(result, ProcessingFailure)
    assert isinstance(result.error, LogicError)
    assert result.is_fatal
    assert calls == []


@pytest.mark.asyncio
async def test_run_processing_puts_result_on_queue():
    queue = asyncio.Queue()
    block = FakeBlock(FakeHeader(GOOD_ROOT))
    returned = await run_processing(make_executor(FakeSession(GOOD_ROOT)), block, PARENT_ROOT, queue)
    queued = queue.get_nowait()
    assert queued == returned
    assert queued.post_state_root == GOOD_ROOT
    assert queue.empty()


def test_missing_parent_error_keeps_hash():
    error = MissingParentError(HASH)
    assert error.parent_hash == HASH
    assert HASH.hex() in str(error)


def test_block_node_defaults():
    node = BlockNode(block=None, parent_hash=PARENT_ROOT, status=BlockNodeStatus.PROCESSING_SELF)
    assert node.weight == 0
    assert node.children_ref_count == 0
    assert node.post_state_root == b""
    node.status = BlockNodeStatus.STATE_READY
    assert node.status is BlockNodeStatus.STATE_READY