"""Block state processing: node status, processing results and the execution step."""

from __future__ import annotations

import asyncio
import inspect
import logging
from dataclasses import dataclass, field
from enum import Enum
from typing import Any, Awaitable, Callable, Mapping, Protocol, Union

logger = logging.getLogger(__name__)

TRIE_ROOT_SIZE = 32
"""Byte length of a state trie root."""


class BlockchainError(Exception):
    """Base class for errors raised while building or processing blocks."""


class MissingParentError(BlockchainError):
    """The parent of a block is not known."""

    def __init__(self, parent_hash: bytes) -> None:
        self.parent_hash = bytes(parent_hash)
        super().__init__(f"missing parent block 0x{self.parent_hash.hex()}")


class LogicError(BlockchainError):
    """An internal invariant of the chain logic was violated."""


class StateRootMismatchError(BlockchainError):
    """The state root computed for a block differs from the one in its header."""

    def __init__(self, expected: str, got: str) -> None:
        self.expected = expected
        self.got = got
        super().__init__(f"state root mismatch: expected {expected}, got {got}")


class TransactionInvalidError(BlockchainError):
    """A transaction in the block is invalid."""


class TrieError(BlockchainError):
    """The state trie could not be read or written."""


class StateError(BlockchainError):
    """The world state could not be opened or updated."""


class BlockNodeStatus(Enum):
    """Processing state of a block in the block tree."""

    PROCESSING_DEPENDENCIES = "processing_dependencies"
    PROCESSING_SELF = "processing_self"
    STATE_READY = "state_ready"
    FAILED = "failed"


@dataclass
class BlockNode:
    """A block held in the block tree together with its processing state."""

    block: Any
    parent_hash: bytes
    status: BlockNodeStatus
    post_state_root: bytes = b""
    weight: int = 0
    children_ref_count: int = 0


@dataclass(frozen=True)
class ProcessingSuccess:
    block_hash: bytes
    post_state_root: bytes
    changed_accounts: Mapping[Any, Any] = field(default_factory=dict)


@dataclass(frozen=True)
class ProcessingFailure:
    block_hash: bytes
    error: BlockchainError
    is_fatal: bool


@dataclass(frozen=True)
class ParentStateNotReady:
    block_hash: bytes
    parent_hash: bytes


ProcessingResult = Union[ProcessingSuccess, ProcessingFailure, ParentStateNotReady]


class TrieSession(Protocol):
    """A pending set of state changes on top of a parent root."""

    def root(self) -> bytes: ...

    def commit(self) -> Any: ...


Executor = Callable[[bytes, Any], Union[tuple, Awaitable[tuple]]]
"""Applies a block's transactions on top of a parent state root.

Called as ``executor(parent_state_root, block)`` and returning
``(session, changed_accounts)``, either directly or as an awaitable.
A plain function runs in a worker thread.
"""


def _short(block_hash: bytes) -> str:
    return block_hash[:4].hex()


async def _execute(executor: Executor, block: Any, parent_state_root: bytes) -> tuple:
    if len(parent_state_root) != TRIE_ROOT_SIZE:
        raise LogicError("Invalid parent root length in spawn_processing_task")
    if inspect.iscoroutinefunction(executor):
        outcome = await executor(parent_state_root, block)
    else:
        outcome = await asyncio.to_thread(executor, parent_state_root, block)
        if inspect.isawaitable(outcome):
            outcome = await outcome
    session, changed_accounts = outcome
    return session, changed_accounts


async def process_block(
    executor: Executor, block: Any, parent_state_root: bytes
) -> ProcessingSuccess | ProcessingFailure:
    """Execute ``block`` on ``parent_state_root`` and report the outcome."""
    header = block.header
    block_hash = bytes(header.calculate_hash())
    expected_root = bytes(header.state_root)
    parent_state_root = bytes(parent_state_root)

    try:
        session, changed_accounts = await _execute(executor, block, parent_state_root)
    except TransactionInvalidError as exc:
        logger.error("Applying transactions failed for block %s: %s", _short(block_hash), exc)
        return ProcessingFailure(block_hash, exc, is_fatal=False)
    except BlockchainError as exc:
        logger.error("Applying transactions failed for block %s: %s", _short(block_hash), exc)
        return ProcessingFailure(block_hash, exc, is_fatal=True)
    except asyncio.CancelledError:
        raise
    except Exception as exc:
        logger.error("State processing task for block %s crashed: %s", _short(block_hash), exc)
        return ProcessingFailure(block_hash, LogicError(f"Panic: {exc}"), is_fatal=True)

    post_state_root = bytes(session.root())
    if post_state_root != expected_root:
        error = StateRootMismatchError(expected_root.hex(), post_state_root.hex())
        return ProcessingFailure(block_hash, error, is_fatal=True)

    try:
        session.commit()
    except Exception as exc:
        logger.error("Committing trie session for block %s failed: %r", _short(block_hash), exc)
        return ProcessingFailure(block_hash, TrieError(f"Commit failed: {exc!r}"), is_fatal=True)

    return ProcessingSuccess(block_hash, post_state_root, dict(changed_accounts))


async def run_processing(
    executor: Executor,
    block: Any,
    parent_state_root: bytes,
    results: asyncio.Queue,
) -> ProcessingSuccess | ProcessingFailure:
    """Process ``block`` and put the outcome on ``results``."""
    result = await process_block(executor, block, parent_state_root)
    await results.put(result)
    return result