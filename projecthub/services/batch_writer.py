"""Chunked batch writes and subtree traversal shared by the graph services.

A store batch is atomic but bounded in size. A unit of work larger than the
bound is split into consecutive chunks, each committed atomically, in order.
There is no rollback: when chunk ``i`` fails, chunks ``0..i-1`` stay applied.
The writer reports where it stopped through a CommitOutcome:

    NOT_STARTED -> CHUNK_IN_FLIGHT(i) -> DONE
                                      -> FAILED(i)
                                      -> CANCELLED(i)

Operations are kept in the order they were staged, so a copy staged before
the delete of its source is always committed in the same or an earlier chunk.
"""

import asyncio
import logging
from dataclasses import dataclass, field
from enum import Enum
from typing import Any, Dict, List, Optional

from .document_store import DocumentStore, join_path
from .graph_paths import ProjectGraph

logger = logging.getLogger(__name__)


class CommitState(str, Enum):
    """Progress of a chunked commit."""

    NOT_STARTED = "not_started"
    CHUNK_IN_FLIGHT = "chunk_in_flight"
    DONE = "done"
    FAILED = "failed"
    CANCELLED = "cancelled"


@dataclass
class WriteOperation:
    """A staged write (``set``) or delete."""

    kind: str
    path: str
    data: Optional[Dict[str, Any]] = None
    merge: bool = False


@dataclass
class CommitOutcome:
    """
    Result of a chunked commit.

    Attributes:
        state: Final state of the commit state machine
        operations: Number of staged operations
        total_chunks: Number of chunks the operations were split into
        chunks_committed: Chunks applied before the writer stopped
        error: Exception raised by the failing chunk, if any
    """

    state: CommitState
    operations: int = 0
    total_chunks: int = 0
    chunks_committed: int = 0
    error: Optional[BaseException] = None

    @property
    def is_done(self) -> bool:
        return self.state == CommitState.DONE

    @property
    def is_partial(self) -> bool:
        """Some, but not all, chunks were applied."""
        return not self.is_done and self.chunks_committed > 0

    @property
    def failed_chunk(self) -> Optional[int]:
        """Index of the chunk that failed, if the commit failed."""
        if self.state == CommitState.FAILED:
            return self.chunks_committed
        return None


class ChunkedBatchWriter:
    """
    Stage writes/deletes and commit them in store-sized atomic chunks.

    Usage:
        writer = ChunkedBatchWriter(store)
        writer.set("archives/p1/issues/i1", data)
        writer.delete("projects/p1/issues/i1")
        outcome = await writer.commit()
    """

    def __init__(self, store: DocumentStore, max_batch_size: Optional[int] = None) -> None:
        self._store = store
        self._max_batch_size = max_batch_size or store.max_batch_size
        if self._max_batch_size < 1:
            raise ValueError("max_batch_size must be at least 1")
        self._operations: List[WriteOperation] = []
        self.state = CommitState.NOT_STARTED
        self.in_flight_chunk: Optional[int] = None

    def set(self, path: str, data: Dict[str, Any], merge: bool = False) -> None:
        self._operations.append(WriteOperation("set", path, dict(data), merge))

    def delete(self, path: str) -> None:
        self._operations.append(WriteOperation("delete", path))

    def __len__(self) -> int:
        return len(self._operations)

    def chunks(self) -> List[List[WriteOperation]]:
        """Split staged operations into store-sized chunks, preserving order."""
        size = self._max_batch_size
        return [
            self._operations[start:start + size]
            for start in range(0, len(self._operations), size)
        ]

    async def commit(self, cancel_event: Optional[asyncio.Event] = None) -> CommitOutcome:
        """
        Commit every chunk in order.

        Stops at the first failing chunk and, when ``cancel_event`` is set,
        before starting the next chunk. Never raises for a chunk failure;
        the failure is carried in the returned outcome.
        """
        if self.state != CommitState.NOT_STARTED:
            raise RuntimeError(f"Writer already used (state={self.state.value})")

        chunks = self.chunks()
        total = len(chunks)

        for index, chunk in enumerate(chunks):
            if cancel_event is not None and cancel_event.is_set():
                logger.info(f"Chunked commit cancelled before chunk {index + 1}/{total}")
                self.state = CommitState.CANCELLED
                self.in_flight_chunk = None
                return CommitOutcome(CommitState.CANCELLED, len(self), total, index)

            self.state = CommitState.CHUNK_IN_FLIGHT
            self.in_flight_chunk = index

            batch = self._store.batch()
            for op in chunk:
                if op.kind == "delete":
                    batch.delete(op.path)
                else:
                    batch.set(op.path, op.data or {}, merge=op.merge)

            try:
                await batch.commit()
            except Exception as e:
                logger.error(
                    f"Chunk {index + 1}/{total} failed after {index} committed: {e}",
                    exc_info=True,
                )
                self.state = CommitState.FAILED
                return CommitOutcome(CommitState.FAILED, len(self), total, index, e)

            logger.debug(f"Chunk {index + 1}/{total} committed ({len(chunk)} operations)")

        self.state = CommitState.DONE
        self.in_flight_chunk = None
        return CommitOutcome(CommitState.DONE, len(self), total, total)


# ============================================================================
# Subtree traversal
# ============================================================================


@dataclass
class SubtreeCounts:
    """Number of parent and child documents staged for one subtree."""

    parents: int = 0
    children: int = 0
    parent_ids: List[str] = field(default_factory=list)


async def stage_subtree_move(
    store: DocumentStore,
    writer: ChunkedBatchWriter,
    source: ProjectGraph,
    target: ProjectGraph,
    parent_collection: str,
    child_collection: str,
) -> SubtreeCounts:
    """
    Stage copy-then-delete of a two-level subtree from ``source`` to ``target``.

    For each parent document (e.g. a comment): copy it, copy and delete each
    child (e.g. its replies), then delete the parent. Documents already
    absent from ``source`` are simply not listed, which makes re-running a
    partially applied move a no-op for them.
    """
    counts = SubtreeCounts()
    parents = await store.list_children(join_path(source.root, parent_collection))

    for parent in parents:
        writer.set(source.rebase(parent.path, target), parent.data)

        children = await store.list_children(join_path(parent.path, child_collection))
        for child in children:
            writer.set(source.rebase(child.path, target), child.data)
            writer.delete(child.path)
            counts.children += 1

        writer.delete(parent.path)
        counts.parents += 1
        counts.parent_ids.append(parent.id)

    return counts


async def stage_subtree_delete(
    store: DocumentStore,
    writer: ChunkedBatchWriter,
    graph: ProjectGraph,
    parent_collection: str,
    child_collection: str,
) -> SubtreeCounts:
    """Stage deletion of every parent document and its children."""
    counts = SubtreeCounts()
    parents = await store.list_children(join_path(graph.root, parent_collection))

    for parent in parents:
        children = await store.list_children(join_path(parent.path, child_collection))
        for child in children:
            writer.delete(child.path)
            counts.children += 1

        writer.delete(parent.path)
        counts.parents += 1
        counts.parent_ids.append(parent.id)

    return counts
