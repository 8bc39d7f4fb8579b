"""Project archive API endpoints.

Provides endpoints for archiving, restoring and purging projects.
Archive, restore and purge are limited to the project creator.
"""

from typing import Annotated, List, Optional

from fastapi import APIRouter, Depends, HTTPException, status

from ..dependencies import (
    get_current_user_id,
    get_document_store,
    get_project_lock,
    load_project,
    require_creator,
)
from ..schemas.archive import ArchivedProjectSummary, TransferReport
from ..services.archive_service import (
    ArchivePurger,
    GraphArchiver,
    GraphRestorer,
    GraphTransferError,
    ProjectNotFoundError,
    list_archived_projects,
)
from ..services.document_store import DocumentStore
from ..services.graph_paths import Namespace
from ..services.project_lock_service import ProjectLockedError, ProjectLockService

router = APIRouter(prefix="/api", tags=["Archives"])

_TRANSFER_RESPONSES = {
    401: {"description": "Not authenticated"},
    403: {"description": "Caller is not the project creator"},
    404: {"description": "Project not found"},
    409: {"description": "Another archive, restore or purge is running"},
    500: {"description": "Stopped part way; retrying completes the operation"},
}


def _transfer_http_error(exc: Exception) -> HTTPException:
    """Map an archive service error to an HTTP error."""
    if isinstance(exc, ProjectNotFoundError):
        return HTTPException(status_code=status.HTTP_404_NOT_FOUND, detail=str(exc))
    if isinstance(exc, ProjectLockedError):
        return HTTPException(status_code=status.HTTP_409_CONFLICT, detail=str(exc))
    return HTTPException(
        status_code=status.HTTP_500_INTERNAL_SERVER_ERROR,
        detail={
            "message": str(exc),
            "direction": exc.direction.value,
            "stage": exc.stage.value,
            "chunks_committed": exc.chunks_committed,
            "total_chunks": exc.total_chunks,
            "retryable": True,
        },
    )


@router.post(
    "/projects/{project_id}/archive",
    response_model=TransferReport,
    summary="Archive a project",
    description="Move the project, its issues/todos and comments/replies to the archive.",
    responses={200: {"description": "Project archived"}, **_TRANSFER_RESPONSES},
)
async def archive_project(
    project_id: str,
    user_id: Annotated[str, Depends(get_current_user_id)],
    store: DocumentStore = Depends(get_document_store),
    lock: Optional[ProjectLockService] = Depends(get_project_lock),
) -> TransferReport:
    project = await load_project(store, Namespace.ACTIVE, project_id)
    require_creator(project, user_id)

    try:
        return await GraphArchiver(store, lock=lock).archive(project_id, user_id)
    except (GraphTransferError, ProjectNotFoundError, ProjectLockedError) as e:
        raise _transfer_http_error(e)


@router.post(
    "/archives/{project_id}/restore",
    response_model=TransferReport,
    summary="Restore an archived project",
    description="Move an archived project and everything under it back to the active projects.",
    responses={200: {"description": "Project restored"}, **_TRANSFER_RESPONSES},
)
async def restore_project(
    project_id: str,
    user_id: Annotated[str, Depends(get_current_user_id)],
    store: DocumentStore = Depends(get_document_store),
    lock: Optional[ProjectLockService] = Depends(get_project_lock),
) -> TransferReport:
    archived = await load_project(store, Namespace.ARCHIVE, project_id)
    require_creator(archived, user_id)

    try:
        return await GraphRestorer(store, lock=lock).restore(project_id, user_id)
    except (GraphTransferError, ProjectNotFoundError, ProjectLockedError) as e:
        raise _transfer_http_error(e)


@router.delete(
    "/archives/{project_id}",
    response_model=TransferReport,
    summary="Permanently delete an archived project",
    responses={200: {"description": "Archived project deleted"}, **_TRANSFER_RESPONSES},
)
async def purge_archived_project(
    project_id: str,
    user_id: Annotated[str, Depends(get_current_user_id)],
    store: DocumentStore = Depends(get_document_store),
    lock: Optional[ProjectLockService] = Depends(get_project_lock),
) -> TransferReport:
    """
    Delete an archived project, its issues, todos, comments and replies.

    This cannot be undone.
    """
    archived = await load_project(store, Namespace.ARCHIVE, project_id)
    require_creator(archived, user_id)

    try:
        return await ArchivePurger(store, lock=lock).purge(project_id, user_id)
    except (GraphTransferError, ProjectNotFoundError, ProjectLockedError) as e:
        raise _transfer_http_error(e)


@router.get(
    "/archives",
    response_model=List[ArchivedProjectSummary],
    summary="List archived projects",
    description="Archived projects the caller is a member of, most recently archived first.",
    responses={
        200: {"description": "Archived projects retrieved successfully"},
        401: {"description": "Not authenticated"},
    },
)
async def list_archives(
    user_id: Annotated[str, Depends(get_current_user_id)],
    store: DocumentStore = Depends(get_document_store),
) -> List[ArchivedProjectSummary]:
    return await list_archived_projects(store, user_id)
