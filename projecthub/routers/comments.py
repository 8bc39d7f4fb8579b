"""Comments API endpoints.

Provides endpoints for posting comments and replies on a project, with
@mention resolution and notifications, and for deleting comments.
All endpoints require a project member as caller.
"""

from typing import Annotated

from fastapi import APIRouter, Depends, HTTPException, status

from ..dependencies import (
    get_current_author,
    get_current_user_id,
    get_document_store,
    get_notification_service,
    get_roster_lookup,
    load_project,
    require_member,
)
from ..schemas.comment import CommentAuthor, CommentCreate, CommentPostResponse
from ..services.archive_service import ProjectNotFoundError
from ..services.comment_service import (
    CommentDeleteError,
    CommentNotFoundError,
    CommentPermissionError,
    delete_comment,
    post_comment,
    post_reply,
)
from ..services.document_store import DocumentStore
from ..services.graph_paths import Namespace
from ..services.member_service import RosterLookup
from ..services.notification_service import NotificationService

router = APIRouter(prefix="/api/projects/{project_id}/comments", tags=["Comments"])


@router.post(
    "",
    response_model=CommentPostResponse,
    status_code=status.HTTP_201_CREATED,
    summary="Post a comment",
    description="Post a comment on a project and notify the members it @mentions.",
    responses={
        201: {"description": "Comment posted"},
        401: {"description": "Not authenticated"},
        403: {"description": "Not a member of this project"},
        404: {"description": "Project not found"},
    },
)
async def create_comment(
    project_id: str,
    body: CommentCreate,
    author: Annotated[CommentAuthor, Depends(get_current_author)],
    store: DocumentStore = Depends(get_document_store),
    roster_lookup: RosterLookup = Depends(get_roster_lookup),
    notifier: NotificationService = Depends(get_notification_service),
) -> CommentPostResponse:
    project = await load_project(store, Namespace.ACTIVE, project_id)
    require_member(project, author.id)

    try:
        return await post_comment(store, roster_lookup, notifier, project_id, author, body.content)
    except ProjectNotFoundError as e:
        raise HTTPException(status_code=status.HTTP_404_NOT_FOUND, detail=str(e))


@router.post(
    "/{comment_id}/replies",
    response_model=CommentPostResponse,
    status_code=status.HTTP_201_CREATED,
    summary="Reply to a comment",
    description="Reply to a comment; its author and any @mentioned members are notified.",
    responses={
        201: {"description": "Reply posted"},
        401: {"description": "Not authenticated"},
        403: {"description": "Not a member of this project"},
        404: {"description": "Project or comment not found"},
    },
)
async def create_reply(
    project_id: str,
    comment_id: str,
    body: CommentCreate,
    author: Annotated[CommentAuthor, Depends(get_current_author)],
    store: DocumentStore = Depends(get_document_store),
    roster_lookup: RosterLookup = Depends(get_roster_lookup),
    notifier: NotificationService = Depends(get_notification_service),
) -> CommentPostResponse:
    project = await load_project(store, Namespace.ACTIVE, project_id)
    require_member(project, author.id)

    try:
        return await post_reply(
            store, roster_lookup, notifier, project_id, comment_id, author, body.content
        )
    except (ProjectNotFoundError, CommentNotFoundError) as e:
        raise HTTPException(status_code=status.HTTP_404_NOT_FOUND, detail=str(e))


@router.delete(
    "/{comment_id}",
    status_code=status.HTTP_204_NO_CONTENT,
    summary="Delete a comment",
    description="Delete a comment and all of its replies. Only the author can delete.",
    responses={
        204: {"description": "Comment deleted"},
        401: {"description": "Not authenticated"},
        403: {"description": "Not the comment's author"},
        404: {"description": "Project or comment not found"},
    },
)
async def remove_comment(
    project_id: str,
    comment_id: str,
    user_id: Annotated[str, Depends(get_current_user_id)],
    store: DocumentStore = Depends(get_document_store),
) -> None:
    project = await load_project(store, Namespace.ACTIVE, project_id)
    require_member(project, user_id)

    try:
        await delete_comment(store, project_id, comment_id, user_id)
    except CommentNotFoundError as e:
        raise HTTPException(status_code=status.HTTP_404_NOT_FOUND, detail=str(e))
    except CommentPermissionError as e:
        raise HTTPException(status_code=status.HTTP_403_FORBIDDEN, detail=str(e))
    except CommentDeleteError as e:
        raise HTTPException(
            status_code=status.HTTP_500_INTERNAL_SERVER_ERROR,
            detail={
                "message": str(e),
                "chunks_committed": e.outcome.chunks_committed,
                "total_chunks": e.outcome.total_chunks,
                "retryable": True,
            },
        )
