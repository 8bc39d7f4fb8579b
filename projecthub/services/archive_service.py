"""
Project archive service

Moves a project's whole document graph between the active namespace
(``projects/*``) and the archive namespace (``archives/*``):

- GraphArchiver: archive root -> comments/replies -> issues/todos -> project
- GraphRestorer: project -> comments/replies -> issues/todos -> drop archive root
- purge_archived_project: permanently delete an archived graph
- list_archived_projects: archived projects a member belongs to

Every subtree stage is copy-then-delete staged on a ChunkedBatchWriter, so a
failure mid-stage leaves a superset of the data spread over both trees and
re-running the operation finishes the move.
"""

import asyncio
import logging
from datetime import datetime, timezone
from typing import Any, Callable, Dict, List, Optional, Protocol

from ..schemas.archive import (
    ArchivedProjectSummary,
    StageReport,
    TransferDirection,
    TransferReport,
    TransferStage,
)
from .batch_writer import (
    ChunkedBatchWriter,
    CommitOutcome,
    CommitState,
    stage_subtree_delete,
    stage_subtree_move,
)
from .document_store import DocumentStore, FieldFilter
from .graph_paths import (
    COMMENTS,
    ISSUES,
    REPLIES,
    TODOS,
    Namespace,
    ProjectGraph,
    active_graph,
    archive_graph,
)
from .project_lock_service import ProjectLockService

logger = logging.getLogger(__name__)

# Fields written to the archive root before anything is moved; enough to
# evaluate access rules on archived data
ARCHIVE_ROOT_FIELDS = ("createdBy", "members")

# Fields added by archival and removed again on restore
ARCHIVE_ONLY_FIELDS = ("deletedAt",)

# (stage, parent collection, child collection)
SUBTREE_STAGES = (
    (TransferStage.COMMENTS, COMMENTS, REPLIES),
    (TransferStage.ISSUES, ISSUES, TODOS),
)


# ============================================================================
# Errors
# ============================================================================


class ProjectNotFoundError(Exception):
    """The project root does not exist in the expected namespace."""

    def __init__(self, project_id: str, namespace: Namespace) -> None:
        self.project_id = project_id
        self.namespace = namespace
        super().__init__(f"Project {project_id} not found in {namespace.value}")


class GraphTransferError(Exception):
    """
    An archive, restore or purge stopped at a stage.

    Already committed chunks stay applied; running the operation again
    completes it.
    """

    def __init__(
        self,
        project_id: str,
        direction: TransferDirection,
        stage: TransferStage,
        outcome: Optional[CommitOutcome] = None,
        message: Optional[str] = None,
    ) -> None:
        self.project_id = project_id
        self.direction = direction
        self.stage = stage
        self.outcome = outcome
        super().__init__(
            message
            or f"{direction.value} of project {project_id} failed at stage {stage.value}"
        )

    @property
    def chunks_committed(self) -> int:
        return self.outcome.chunks_committed if self.outcome else 0

    @property
    def total_chunks(self) -> int:
        return self.outcome.total_chunks if self.outcome else 0


class PartialCommitError(GraphTransferError):
    """A chunk of a stage failed after earlier chunks were committed."""

    def __init__(
        self,
        project_id: str,
        direction: TransferDirection,
        stage: TransferStage,
        outcome: CommitOutcome,
    ) -> None:
        super().__init__(
            project_id,
            direction,
            stage,
            outcome,
            f"{direction.value} of project {project_id} failed at stage "
            f"{stage.value}: {outcome.chunks_committed}/{outcome.total_chunks} "
            f"chunks committed ({outcome.error})",
        )


class TransferCancelledError(GraphTransferError):
    """Cancellation was requested between chunks."""

    def __init__(
        self,
        project_id: str,
        direction: TransferDirection,
        stage: TransferStage,
        outcome: Optional[CommitOutcome] = None,
    ) -> None:
        committed = outcome.chunks_committed if outcome else 0
        super().__init__(
            project_id,
            direction,
            stage,
            outcome,
            f"{direction.value} of project {project_id} cancelled at stage "
            f"{stage.value} after {committed} chunks",
        )


# ============================================================================
# Project root collaborator
# ============================================================================


def _utcnow() -> datetime:
    return datetime.now(timezone.utc)


class ProjectArchival(Protocol):
    """Demotes the active project document once its subtrees are archived."""

    async def demote(self, store: DocumentStore, project_id: str, project: Dict[str, Any]) -> None: ...


class MoveProjectDocument:
    """
    Default project archival: move the project document itself.

    Merges the full project payload, ``archived=True`` and ``deletedAt`` into
    the archive root and deletes ``projects/{projectId}``, in one batch.
    """

    def __init__(self, clock: Optional[Callable[[], datetime]] = None) -> None:
        self._clock = clock or _utcnow

    async def demote(self, store: DocumentStore, project_id: str, project: Dict[str, Any]) -> None:
        payload = {**project, "archived": True, "deletedAt": self._clock()}
        batch = store.batch()
        batch.set(archive_graph(project_id).root, payload, merge=True)
        batch.delete(active_graph(project_id).root)
        await batch.commit()


def restored_project_payload(archive_root: Dict[str, Any]) -> Dict[str, Any]:
    """Project document rebuilt from an archive root."""
    payload = {k: v for k, v in archive_root.items() if k not in ARCHIVE_ONLY_FIELDS}
    payload["archived"] = False
    return payload


# ============================================================================
# Shared stage runner
# ============================================================================


class _GraphTransfer:
    """Common wiring of the archiver, restorer and purge."""

    direction: TransferDirection

    def __init__(
        self,
        store: DocumentStore,
        lock: Optional[ProjectLockService] = None,
        max_batch_size: Optional[int] = None,
    ) -> None:
        self._store = store
        self._lock = lock
        self._max_batch_size = max_batch_size

    def _writer(self) -> ChunkedBatchWriter:
        return ChunkedBatchWriter(self._store, self._max_batch_size)

    def _check_cancelled(
        self, project_id: str, stage: TransferStage, cancel_event: Optional[asyncio.Event]
    ) -> None:
        if cancel_event is not None and cancel_event.is_set():
            logger.info(f"{self.direction.value} of {project_id} cancelled before {stage.value}")
            raise TransferCancelledError(project_id, self.direction, stage)

    async def _commit_stage(
        self,
        project_id: str,
        stage: TransferStage,
        writer: ChunkedBatchWriter,
        cancel_event: Optional[asyncio.Event],
        parents: int = 0,
        children: int = 0,
    ) -> StageReport:
        outcome = await writer.commit(cancel_event)

        if outcome.state == CommitState.FAILED:
            raise PartialCommitError(project_id, self.direction, stage, outcome)
        if outcome.state == CommitState.CANCELLED:
            raise TransferCancelledError(project_id, self.direction, stage, outcome)

        logger.info(
            f"  {self.direction.value} {project_id}: {stage.value} done "
            f"({parents} parents, {children} children, {outcome.total_chunks} chunks)"
        )
        return StageReport(
            stage=stage,
            state=outcome.state.value,
            parents=parents,
            children=children,
            operations=outcome.operations,
            total_chunks=outcome.total_chunks,
            chunks_committed=outcome.chunks_committed,
        )

    async def _move_subtrees(
        self,
        project_id: str,
        source: ProjectGraph,
        target: ProjectGraph,
        cancel_event: Optional[asyncio.Event],
    ) -> List[StageReport]:
        reports = []
        for stage, parent_collection, child_collection in SUBTREE_STAGES:
            self._check_cancelled(project_id, stage, cancel_event)
            writer = self._writer()
            counts = await stage_subtree_move(
                self._store, writer, source, target, parent_collection, child_collection
            )
            reports.append(
                await self._commit_stage(
                    project_id, stage, writer, cancel_event, counts.parents, counts.children
                )
            )
        return reports

    async def _run(self, project_id: str, actor_id: Optional[str], body) -> TransferReport:
        if self._lock is None:
            return await body()
        async with self._lock.hold(project_id, actor_id or "system", self.direction.value):
            return await body()


# ============================================================================
# Archiver / Restorer
# ============================================================================


class GraphArchiver(_GraphTransfer):
    """
    Archive a project's whole graph.

    Authorization is the caller's job; the archiver only checks that the
    project exists in the active namespace.
    """

    direction = TransferDirection.ARCHIVE

    def __init__(
        self,
        store: DocumentStore,
        project_archival: Optional[ProjectArchival] = None,
        lock: Optional[ProjectLockService] = None,
        max_batch_size: Optional[int] = None,
    ) -> None:
        super().__init__(store, lock, max_batch_size)
        self._project_archival = project_archival or MoveProjectDocument()

    async def archive(
        self,
        project_id: str,
        actor_id: Optional[str] = None,
        cancel_event: Optional[asyncio.Event] = None,
    ) -> TransferReport:
        """
        Archive a project.

        Raises:
            ProjectNotFoundError: If ``projects/{projectId}`` does not exist
            PartialCommitError: If a chunk failed mid-stage
            TransferCancelledError: If cancellation was requested between chunks
            ProjectLockedError: If a lock is configured and already held
        """
        return await self._run(
            project_id, actor_id, lambda: self._archive(project_id, cancel_event)
        )

    async def _archive(
        self, project_id: str, cancel_event: Optional[asyncio.Event]
    ) -> TransferReport:
        source = active_graph(project_id)
        target = source.mirror(Namespace.ARCHIVE)

        project = await self._store.get(source.root)
        if project is None:
            raise ProjectNotFoundError(project_id, Namespace.ACTIVE)

        logger.info(f"Archiving project {project_id}")
        reports: List[StageReport] = []

        # 1. Archive root with the fields access rules need
        self._check_cancelled(project_id, TransferStage.ROOT, cancel_event)
        root_fields = {k: project.data[k] for k in ARCHIVE_ROOT_FIELDS if k in project.data}
        writer = self._writer()
        writer.set(target.root, root_fields, merge=True)
        reports.append(
            await self._commit_stage(project_id, TransferStage.ROOT, writer, cancel_event)
        )

        # 2./3. Comments with replies, then issues with todos
        reports.extend(await self._move_subtrees(project_id, source, target, cancel_event))

        # 4. Demote the project document itself
        self._check_cancelled(project_id, TransferStage.PROJECT, cancel_event)
        try:
            await self._project_archival.demote(self._store, project_id, project.data)
        except Exception as e:
            logger.error(f"Project demotion failed for {project_id}: {e}", exc_info=True)
            raise GraphTransferError(
                project_id,
                self.direction,
                TransferStage.PROJECT,
                message=f"archive of project {project_id} failed at stage project: {e}",
            ) from e
        reports.append(StageReport(stage=TransferStage.PROJECT, state=CommitState.DONE.value))

        logger.info(f"Project {project_id} archived")
        return TransferReport(
            project_id=project_id,
            direction=self.direction,
            stages=reports,
            completed_at=_utcnow(),
        )


class GraphRestorer(_GraphTransfer):
    """Restore an archived project's whole graph to the active namespace."""

    direction = TransferDirection.RESTORE

    async def restore(
        self,
        project_id: str,
        actor_id: Optional[str] = None,
        cancel_event: Optional[asyncio.Event] = None,
    ) -> TransferReport:
        """
        Restore a project.

        Raises:
            ProjectNotFoundError: If ``archives/{projectId}`` does not exist
            PartialCommitError: If a chunk failed mid-stage
            TransferCancelledError: If cancellation was requested between chunks
            ProjectLockedError: If a lock is configured and already held
        """
        return await self._run(
            project_id, actor_id, lambda: self._restore(project_id, cancel_event)
        )

    async def _restore(
        self, project_id: str, cancel_event: Optional[asyncio.Event]
    ) -> TransferReport:
        source = archive_graph(project_id)
        target = source.mirror(Namespace.ACTIVE)

        archived = await self._store.get(source.root)
        if archived is None:
            raise ProjectNotFoundError(project_id, Namespace.ARCHIVE)

        logger.info(f"Restoring project {project_id}")
        reports: List[StageReport] = []

        # 1. Project document back in place, merged into an active document
        # a partial archive left behind
        self._check_cancelled(project_id, TransferStage.PROJECT, cancel_event)
        active = await self._store.get(target.root)
        writer = self._writer()
        writer.set(
            target.root, restored_project_payload(archived.data), merge=active is not None
        )
        reports.append(
            await self._commit_stage(project_id, TransferStage.PROJECT, writer, cancel_event)
        )

        # 2./3. Comments with replies, then issues with todos
        reports.extend(await self._move_subtrees(project_id, source, target, cancel_event))

        # 4. Drop the archive root
        self._check_cancelled(project_id, TransferStage.ROOT, cancel_event)
        writer = self._writer()
        writer.delete(source.root)
        reports.append(
            await self._commit_stage(project_id, TransferStage.ROOT, writer, cancel_event)
        )

        logger.info(f"Project {project_id} restored")
        return TransferReport(
            project_id=project_id,
            direction=self.direction,
            stages=reports,
            completed_at=_utcnow(),
        )


class ArchivePurger(_GraphTransfer):
    """Permanently delete an archived project and everything under it."""

    direction = TransferDirection.PURGE

    async def purge(
        self,
        project_id: str,
        actor_id: Optional[str] = None,
        cancel_event: Optional[asyncio.Event] = None,
    ) -> TransferReport:
        """
        Delete every archived reply, comment, todo and issue, then the root.

        Raises:
            ProjectNotFoundError: If ``archives/{projectId}`` does not exist
        """
        return await self._run(
            project_id, actor_id, lambda: self._purge(project_id, cancel_event)
        )

    async def _purge(
        self, project_id: str, cancel_event: Optional[asyncio.Event]
    ) -> TransferReport:
        graph = archive_graph(project_id)
        if await self._store.get(graph.root) is None:
            raise ProjectNotFoundError(project_id, Namespace.ARCHIVE)

        logger.info(f"Purging archived project {project_id}")
        reports: List[StageReport] = []

        for stage, parent_collection, child_collection in SUBTREE_STAGES:
            self._check_cancelled(project_id, stage, cancel_event)
            writer = self._writer()
            counts = await stage_subtree_delete(
                self._store, writer, graph, parent_collection, child_collection
            )
            reports.append(
                await self._commit_stage(
                    project_id, stage, writer, cancel_event, counts.parents, counts.children
                )
            )

        self._check_cancelled(project_id, TransferStage.ROOT, cancel_event)
        writer = self._writer()
        writer.delete(graph.root)
        reports.append(
            await self._commit_stage(project_id, TransferStage.ROOT, writer, cancel_event)
        )

        logger.info(f"Archived project {project_id} purged")
        return TransferReport(
            project_id=project_id,
            direction=self.direction,
            stages=reports,
            completed_at=_utcnow(),
        )


# ============================================================================
# Convenience functions
# ============================================================================


async def archive_project(
    store: DocumentStore,
    project_id: str,
    actor_id: Optional[str] = None,
    lock: Optional[ProjectLockService] = None,
    cancel_event: Optional[asyncio.Event] = None,
) -> TransferReport:
    """Archive a project. Convenience wrapper for GraphArchiver."""
    return await GraphArchiver(store, lock=lock).archive(project_id, actor_id, cancel_event)


async def restore_project(
    store: DocumentStore,
    project_id: str,
    actor_id: Optional[str] = None,
    lock: Optional[ProjectLockService] = None,
    cancel_event: Optional[asyncio.Event] = None,
) -> TransferReport:
    """Restore an archived project. Convenience wrapper for GraphRestorer."""
    return await GraphRestorer(store, lock=lock).restore(project_id, actor_id, cancel_event)


async def purge_archived_project(
    store: DocumentStore,
    project_id: str,
    actor_id: Optional[str] = None,
    lock: Optional[ProjectLockService] = None,
) -> TransferReport:
    """Permanently delete an archived project. Convenience wrapper for ArchivePurger."""
    return await ArchivePurger(store, lock=lock).purge(project_id, actor_id)


async def list_archived_projects(store: DocumentStore, member_id: str) -> List[ArchivedProjectSummary]:
    """
    List archived projects the member belongs to.

    Args:
        store: Document store client
        member_id: Member id to look for in the archive roots' ``members``

    Returns:
        list[ArchivedProjectSummary]: Newest archive first
    """
    snapshots = await store.query(
        Namespace.ARCHIVE.value,
        [FieldFilter("members", "array_contains", member_id)],
    )

    summaries = [
        ArchivedProjectSummary(
            id=s.id,
            title=s.data.get("title"),
            created_by=s.data.get("createdBy"),
            members=list(s.data.get("members") or []),
            deleted_at=s.data.get("deletedAt"),
        )
        for s in snapshots
    ]
    summaries.sort(
        key=lambda p: p.deleted_at or datetime.min.replace(tzinfo=timezone.utc),
        reverse=True,
    )
    return summaries
