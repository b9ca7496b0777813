"""Fork-choice tree of unfinalized blocks with asynchronous state processing."""

from __future__ import annotations

import asyncio
import logging
from collections import deque
from dataclasses import dataclass
from typing import Any

from aegischain.processing import (
    BlockNode,
    BlockNodeStatus,
    Executor,
    LogicError,
    MissingParentError,
    ParentStateNotReady,
    ProcessingFailure,
    ProcessingResult,
    ProcessingSuccess,
    run_processing,
)

logger = logging.getLogger(__name__)


@dataclass(frozen=True)
class Vote:
    """A validator's latest vote for a block."""

    voter_address: Any
    block_hash: bytes


def _block_hash(block: Any) -> bytes:
    return bytes(block.header.calculate_hash())


def _short(block_hash: bytes) -> str:
    return bytes(block_hash[:4]).hex()


class BlockTree:
    """Tree of blocks descending from the finalized head.

    Blocks are executed in the background once their parent's state is ready;
    outcomes are put on ``results`` and fed back through ``update_node_status``.
    """

    def __init__(self, genesis_block: Any, results: asyncio.Queue) -> None:
        genesis_hash = _block_hash(genesis_block)
        header = genesis_block.header
        genesis_node = BlockNode(
            block=genesis_block,
            parent_hash=bytes(header.prev_hash),
            status=BlockNodeStatus.STATE_READY,
            post_state_root=bytes(header.state_root),
            weight=0,
        )
        self._nodes: dict[bytes, BlockNode] = {genesis_hash: genesis_node}
        self._height_to_hashes: dict[int, list[bytes]] = {0: [genesis_hash]}
        self._latest_votes: dict[Any, bytes] = {}
        self._finalized_head = genesis_node
        self._finalized_height = 0
        self._results = results
        self._children: dict[bytes, list[bytes]] = {}
        self._tasks: set[asyncio.Task] = set()

    def _spawn(self, executor: Executor, node: BlockNode, parent_state_root: bytes) -> None:
        task = asyncio.get_running_loop().create_task(
            run_processing(executor, node.block, bytes(parent_state_root), self._results)
        )
        self._tasks.add(task)
        task.add_done_callback(self._tasks.discard)

    async def insert_and_process_block(self, block: Any, executor: Executor) -> None:
        """Add ``block`` to the tree and start processing it if its parent is ready."""
        block_hash = _block_hash(block)
        if block_hash in self._nodes:
            return

        parent_hash = bytes(block.header.prev_hash)
        parent = self._nodes.get(parent_hash)
        if parent is None:
            raise MissingParentError(parent_hash)

        if parent.status is BlockNodeStatus.STATE_READY:
            status = BlockNodeStatus.PROCESSING_SELF
        elif parent.status is BlockNodeStatus.FAILED:
            raise LogicError("Attempted to build on a parent block whose state failed to process.")
        else:
            await self._results.put(ParentStateNotReady(block_hash, parent_hash))
            status = BlockNodeStatus.PROCESSING_DEPENDENCIES

        node = BlockNode(
            block=block,
            parent_hash=parent_hash,
            status=status,
            post_state_root=b"",
            weight=parent.weight,
        )
        parent.children_ref_count += 1
        self._children.setdefault(parent_hash, []).append(block_hash)
        self._nodes[block_hash] = node
        self._height_to_hashes.setdefault(block.header.index, []).append(block_hash)

        if status is BlockNodeStatus.PROCESSING_SELF:
            self._spawn(executor, node, parent.post_state_root)

    def update_node_status(self, result: ProcessingResult, executor: Executor) -> None:
        """Apply a processing outcome to the tree."""
        if isinstance(result, ProcessingSuccess):
            node = self._nodes.get(result.block_hash)
            if node is not None and node.status is not BlockNodeStatus.STATE_READY:
                node.status = BlockNodeStatus.STATE_READY
                node.post_state_root = bytes(result.post_state_root)
                self._process_dependent_children(result.block_hash, executor)
        elif isinstance(result, ProcessingFailure):
            node = self._nodes.get(result.block_hash)
            if result.is_fatal:
                if node is not None and node.status is not BlockNodeStatus.FAILED:
                    node.status = BlockNodeStatus.FAILED
                    self.prune_failed_branch(result.block_hash)
            else:
                if node is not None:
                    node.status = BlockNodeStatus.FAILED
                logger.warning(
                    "Block %s failed to process (non-fatal): %s",
                    _short(result.block_hash),
                    result.error,
                )

    def _process_dependent_children(self, parent_hash: bytes, executor: Executor) -> None:
        children = list(self._children.get(parent_hash, ()))
        parent = self._nodes.get(parent_hash)
        if not children or parent is None or parent.status is not BlockNodeStatus.STATE_READY:
            return
        for child_hash in children:
            child = self._nodes.get(child_hash)
            if child is None or child.status is not BlockNodeStatus.PROCESSING_DEPENDENCIES:
                continue
            child.status = BlockNodeStatus.PROCESSING_SELF
            logger.info(
                "Parent %s state ready, spawning processing for child %s",
                _short(parent_hash),
                _short(child_hash),
            )
            self._spawn(executor, child, parent.post_state_root)

    def prune_failed_branch(self, failed_block_hash: bytes) -> None:
        """Remove a block and all of its descendants."""
        queue = deque([bytes(failed_block_hash)])
        removed: set[bytes] = set()
        while queue:
            target = queue.popleft()
            if target in removed:
                continue
            node = self._nodes.pop(target, None)
            if node is None:
                continue
            removed.add(target)
            logger.warning("[BlockTree] Pruning failed block or descendant: 0x%s", _short(target))

            at_height = self._height_to_hashes.get(node.block.header.index)
            if at_height is not None:
                at_height[:] = [h for h in at_height if h != target]

            parent = self._nodes.get(node.parent_hash)
            if parent is not None:
                parent.children_ref_count -= 1

            siblings = self._children.get(node.parent_hash)
            if siblings is not None:
                siblings[:] = [h for h in siblings if h != target]

            queue.extend(self._children.pop(target, ()))

    def apply_vote(self, vote: Vote) -> None:
        """Record a vote, moving the voter's weight from any earlier vote."""
        new_hash = bytes(vote.block_hash)
        old_hash = self._latest_votes.get(vote.voter_address)
        if old_hash is not None and old_hash != new_hash:
            self._update_branch_weight(old_hash, -1)
        self._update_branch_weight(new_hash, 1)
        self._latest_votes[vote.voter_address] = new_hash

    def _update_branch_weight(self, start_hash: bytes, delta: int) -> None:
        finalized_hash = _block_hash(self._finalized_head.block)
        current = bytes(start_hash)
        while (node := self._nodes.get(current)) is not None:
            node.weight = max(0, node.weight + delta)
            if current == finalized_hash:
                break
            current = node.parent_hash

    def find_head(self) -> BlockNode:
        """Follow the heaviest ready child from the finalized head."""
        head = self._finalized_head
        while True:
            head_hash = _block_hash(head.block)
            best: BlockNode | None = None
            for node in self._nodes.values():
                if node.parent_hash == head_hash and node.status is BlockNodeStatus.STATE_READY:
                    if best is None or node.weight >= best.weight:
                        best = node
            if best is None:
                return head
            head = best

    def finalize(self, finalized_hash: bytes) -> None:
        """Make a ready block the finalized head, dropping every competing branch."""
        finalized_hash = bytes(finalized_hash)
        finalized = self._nodes.get(finalized_hash)
        if finalized is None:
            raise LogicError("Block to finalize was not found in the BlockTree")
        if finalized.status is not BlockNodeStatus.STATE_READY:
            raise LogicError(
                f"Attempted to finalize block 0x{_short(finalized_hash)} whose state is not "
                f"ready ({finalized.status})"
            )

        keep = {finalized_hash}
        ancestor_hash = finalized.parent_hash
        while finalized.block.header.index != 0:
            ancestor = self._nodes.get(ancestor_hash)
            if ancestor is None:
                raise LogicError(
                    f"Ancestor 0x{_short(ancestor_hash)} not found during finalization"
                )
            if ancestor_hash in keep:
                break
            keep.add(ancestor_hash)
            if ancestor.block.header.index == 0:
                break
            ancestor_hash = ancestor.parent_hash

        queue = deque([finalized_hash])
        while queue:
            for child_hash in self._children.get(queue.popleft(), ()):
                if child_hash not in keep:
                    keep.add(child_hash)
                    queue.append(child_hash)

        doomed = [(h, node.parent_hash) for h, node in self._nodes.items() if h not in keep]
        for block_hash, _ in doomed:
            del self._nodes[block_hash]
            logger.debug("[BlockTree Finalize] Pruning node 0x%s", _short(block_hash))
        for _, parent_hash in doomed:
            parent = self._nodes.get(parent_hash)
            if parent is not None:
                parent.children_ref_count -= 1

        for parent_hash in list(self._children):
            kept = [h for h in self._children[parent_hash] if h in keep]
            if kept:
                self._children[parent_hash] = kept
            else:
                del self._children[parent_hash]

        finalized_index = finalized.block.header.index
        for height in list(self._height_to_hashes):
            kept = [h for h in self._height_to_hashes[height] if h in keep]
            if height >= finalized_index and kept:
                self._height_to_hashes[height] = kept
            else:
                del self._height_to_hashes[height]

        logger.info(
            "[BlockTree Finalize] Finalized to block #%d, pruned %d nodes.",
            finalized_index,
            len(doomed),
        )
        self._finalized_head = finalized
        self._finalized_height = finalized_index

    def get_ancestor_path(self, start_hash: bytes, end_ancestor_hash: bytes) -> list[Any]:
        """Blocks from just after ``end_ancestor_hash`` up to ``start_hash``, oldest first."""
        end = bytes(end_ancestor_hash)
        current = bytes(start_hash)
        path: deque[Any] = deque()
        while current != end:
            node = self._nodes.get(current)
            if node is None:
                raise LogicError(f"Block 0x{_short(current)} not found while tracing path")
            path.appendleft(node.block)
            current = node.parent_hash
            if node.block.header.index == 0 and current != end:
                raise LogicError("Path broken: reached genesis before the end ancestor")
        return list(path)

    def contains(self, block_hash: bytes) -> bool:
        return bytes(block_hash) in self._nodes

    def is_block_ready(self, block_hash: bytes) -> bool:
        node = self._nodes.get(bytes(block_hash))
        return node is not None and node.status is BlockNodeStatus.STATE_READY

    def get_node(self, block_hash: bytes) -> BlockNode | None:
        return self._nodes.get(bytes(block_hash))

    def get_node_by_index(self, index: int) -> BlockNode | None:
        hashes = self._height_to_hashes.get(index)
        if not hashes:
            return None
        return self._nodes.get(hashes[0])

    def finalized_head(self) -> BlockNode:
        return self._finalized_head