"""Issues API endpoints.

Provides the endpoint creating an issue together with its initial todos.
"""

from typing import Annotated

from fastapi import APIRouter, Depends, HTTPException, status

from ..dependencies import (
    get_current_user_id,
    get_document_store,
    get_notification_service,
    load_project,
    require_member,
)
from ..schemas.project import IssueCreate, IssueWithTodosResponse
from ..services.archive_service import ProjectNotFoundError
from ..services.document_store import DocumentStore
from ..services.graph_paths import Namespace
from ..services.issue_service import IssueCreateError, create_issue_with_todos
from ..services.notification_service import NotificationService

router = APIRouter(prefix="/api/projects/{project_id}/issues", tags=["Issues"])


@router.post(
    "",
    response_model=IssueWithTodosResponse,
    status_code=status.HTTP_201_CREATED,
    summary="Create an issue with todos",
    description=(
        "Create an issue and its todos in one batch. "
        "Issue and todo assignees are notified, except the caller."
    ),
    responses={
        201: {"description": "Issue created"},
        401: {"description": "Not authenticated"},
        403: {"description": "Not a member of this project"},
        404: {"description": "Project not found"},
    },
)
async def create_issue(
    project_id: str,
    body: IssueCreate,
    user_id: Annotated[str, Depends(get_current_user_id)],
    store: DocumentStore = Depends(get_document_store),
    notifier: NotificationService = Depends(get_notification_service),
) -> IssueWithTodosResponse:
    project = await load_project(store, Namespace.ACTIVE, project_id)
    require_member(project, user_id)

    try:
        return await create_issue_with_todos(store, notifier, project_id, user_id, body)
    except ProjectNotFoundError as e:
        raise HTTPException(status_code=status.HTTP_404_NOT_FOUND, detail=str(e))
    except IssueCreateError as e:
        raise HTTPException(
            status_code=status.HTTP_500_INTERNAL_SERVER_ERROR,
            detail={
                "message": str(e),
                "chunks_committed": e.outcome.chunks_committed,
                "total_chunks": e.outcome.total_chunks,
            },
        )
