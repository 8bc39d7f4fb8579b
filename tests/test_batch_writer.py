"""Unit tests for the chunked batch writer and subtree staging."""

import asyncio

import pytest

from conftest import InjectedFailure, InMemoryDocumentStore, seed_project
from projecthub.services.batch_writer import (
    ChunkedBatchWriter,
    CommitState,
    stage_subtree_delete,
    stage_subtree_move,
)
from projecthub.services.graph_paths import (
    COMMENTS,
    ISSUES,
    REPLIES,
    TODOS,
    active_graph,
    archive_graph,
)


def _stage_sets(writer: ChunkedBatchWriter, count: int) -> None:
    for n in range(count):
        writer.set(f"things/t{n:03d}", {"n": n})


class TestChunking:
    """Tests for splitting staged operations into chunks."""

    def test_chunks_preserve_order_and_size(self):
        store = InMemoryDocumentStore(max_batch_size=3)
        writer = ChunkedBatchWriter(store)
        _stage_sets(writer, 7)

        chunks = writer.chunks()

        assert [len(c) for c in chunks] == [3, 3, 1]
        assert [op.path for c in chunks for op in c] == [f"things/t{n:03d}" for n in range(7)]

    def test_explicit_batch_size_overrides_store(self):
        store = InMemoryDocumentStore(max_batch_size=500)
        writer = ChunkedBatchWriter(store, max_batch_size=2)
        _stage_sets(writer, 5)
        assert len(writer.chunks()) == 3

    def test_invalid_batch_size(self):
        with pytest.raises(ValueError):
            ChunkedBatchWriter(InMemoryDocumentStore(), max_batch_size=-1)


@pytest.mark.asyncio
class TestCommit:
    """Tests for ChunkedBatchWriter.commit state transitions."""

    async def test_commit_all_chunks(self):
        store = InMemoryDocumentStore(max_batch_size=4)
        writer = ChunkedBatchWriter(store)
        _stage_sets(writer, 10)

        outcome = await writer.commit()

        assert outcome.state == CommitState.DONE
        assert outcome.total_chunks == 3
        assert outcome.chunks_committed == 3
        assert store.committed_batch_sizes == [4, 4, 2]
        assert len(store.documents) == 10
        assert writer.state == CommitState.DONE

    async def test_empty_writer_is_done(self):
        store = InMemoryDocumentStore()
        outcome = await ChunkedBatchWriter(store).commit()
        assert outcome.is_done
        assert outcome.total_chunks == 0
        assert store.batch_commits == 0

    async def test_failure_keeps_earlier_chunks(self):
        store = InMemoryDocumentStore(max_batch_size=2)
        store.fail_commits = {2}
        writer = ChunkedBatchWriter(store)
        _stage_sets(writer, 6)

        outcome = await writer.commit()

        assert outcome.state == CommitState.FAILED
        assert outcome.chunks_committed == 1
        assert outcome.failed_chunk == 1
        assert outcome.is_partial
        assert isinstance(outcome.error, InjectedFailure)
        # Only the first chunk landed; nothing after the failing chunk was tried
        assert sorted(store.documents) == ["things/t000", "things/t001"]
        assert store.batch_commits == 2

    async def test_cancel_between_chunks(self):
        store = InMemoryDocumentStore(max_batch_size=2)
        cancel = asyncio.Event()
        store.after_commit = lambda n: cancel.set() if n == 1 else None
        writer = ChunkedBatchWriter(store)
        _stage_sets(writer, 6)

        outcome = await writer.commit(cancel)

        assert outcome.state == CommitState.CANCELLED
        assert outcome.chunks_committed == 1
        assert len(store.documents) == 2

    async def test_writer_cannot_be_reused(self):
        writer = ChunkedBatchWriter(InMemoryDocumentStore())
        await writer.commit()
        with pytest.raises(RuntimeError):
            await writer.commit()


@pytest.mark.asyncio
class TestSubtreeStaging:
    """Tests for stage_subtree_move and stage_subtree_delete."""

    async def test_move_stages_copy_before_delete(self):
        store = InMemoryDocumentStore()
        seed_project(store, issues={"i1": 2}, comments={})
        source, target = active_graph("p1"), archive_graph("p1")
        writer = ChunkedBatchWriter(store)

        counts = await stage_subtree_move(store, writer, source, target, ISSUES, TODOS)

        assert counts.parents == 1
        assert counts.children == 2
        assert counts.parent_ids == ["i1"]
        ops = [(op.kind, op.path) for chunk in writer.chunks() for op in chunk]
        assert ops == [
            ("set", "archives/p1/issues/i1"),
            ("set", "archives/p1/issues/i1/todos/i1t0"),
            ("delete", "projects/p1/issues/i1/todos/i1t0"),
            ("set", "archives/p1/issues/i1/todos/i1t1"),
            ("delete", "projects/p1/issues/i1/todos/i1t1"),
            ("delete", "projects/p1/issues/i1"),
        ]

    async def test_every_delete_follows_its_copy_across_chunk_boundaries(self):
        store = InMemoryDocumentStore(max_batch_size=3)
        seed_project(store, issues={}, comments={"c1": 4, "c2": 1})
        source, target = active_graph("p1"), archive_graph("p1")
        writer = ChunkedBatchWriter(store)
        await stage_subtree_move(store, writer, source, target, COMMENTS, REPLIES)

        flat = [(i, op) for i, chunk in enumerate(writer.chunks()) for op in chunk]
        copied_in = {
            op.path.replace("archives/", "projects/", 1): i for i, op in flat if op.kind == "set"
        }
        for chunk_index, op in flat:
            if op.kind == "delete":
                assert copied_in[op.path] <= chunk_index

    async def test_delete_stages_children_before_parent(self):
        store = InMemoryDocumentStore()
        seed_project(store, issues={}, comments={"c1": 1})
        writer = ChunkedBatchWriter(store)

        counts = await stage_subtree_delete(store, writer, active_graph("p1"), COMMENTS, REPLIES)

        assert (counts.parents, counts.children) == (1, 1)
        ops = [(op.kind, op.path) for chunk in writer.chunks() for op in chunk]
        assert ops == [
            ("delete", "projects/p1/comments/c1/replies/c1r0"),
            ("delete", "projects/p1/comments/c1"),
        ]
