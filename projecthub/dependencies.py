"""FastAPI dependencies shared by the routers.

Authentication happens upstream: the gateway forwards the caller's id in the
``X-User-Id`` header, which is trusted here as the acting identity.
"""

from typing import Annotated, Optional

from fastapi import Depends, Header, HTTPException, status

from .database import async_session_maker
from .schemas.comment import CommentAuthor
from .services.document_store import DocumentSnapshot, DocumentStore, SqlDocumentStore
from .services.graph_paths import Namespace, ProjectGraph, user_path
from .services.member_service import RosterLookup, StoreRosterLookup, project_members
from .services.notification_service import NotificationService
from .services.project_lock_service import ProjectLockService
from .services.redis_service import redis_service


async def get_current_user_id(
    x_user_id: Annotated[Optional[str], Header(description="Caller id set by the auth gateway")] = None,
) -> str:
    """Acting identity of the request."""
    if not x_user_id or not x_user_id.strip():
        raise HTTPException(
            status_code=status.HTTP_401_UNAUTHORIZED,
            detail="Not authenticated",
        )
    return x_user_id.strip()


def get_document_store() -> DocumentStore:
    """Document store backed by the application database."""
    return SqlDocumentStore(async_session_maker)


def get_notification_service(
    store: DocumentStore = Depends(get_document_store),
) -> NotificationService:
    return NotificationService(store)


def get_roster_lookup(
    store: DocumentStore = Depends(get_document_store),
) -> RosterLookup:
    return StoreRosterLookup(store)


def get_project_lock() -> Optional[ProjectLockService]:
    """Project lock, or None when running without Redis (single worker)."""
    return redis_service.project_lock()


async def get_current_author(
    user_id: Annotated[str, Depends(get_current_user_id)],
    store: DocumentStore = Depends(get_document_store),
) -> CommentAuthor:
    """Author snapshot of the caller, display name taken from the profile."""
    profile = await store.get(user_path(user_id))
    display_name = (profile.data.get("displayName") if profile else None) or ""
    return CommentAuthor(id=user_id, display_name=display_name)


# ============================================================================
# Project access checks
# ============================================================================


async def load_project(store: DocumentStore, namespace: Namespace, project_id: str) -> DocumentSnapshot:
    """
    Fetch a project root or fail with 404.

    Raises:
        HTTPException: 404 if the project does not exist in the namespace
    """
    project = await store.get(ProjectGraph(namespace, project_id).root)
    if project is None:
        raise HTTPException(
            status_code=status.HTTP_404_NOT_FOUND,
            detail=f"Project {project_id} not found",
        )
    return project


def require_member(project: DocumentSnapshot, user_id: str) -> None:
    if user_id not in project_members(project.data):
        raise HTTPException(
            status_code=status.HTTP_403_FORBIDDEN,
            detail="Not a member of this project",
        )


def require_creator(project: DocumentSnapshot, user_id: str) -> None:
    if project.data.get("createdBy") != user_id:
        raise HTTPException(
            status_code=status.HTTP_403_FORBIDDEN,
            detail="Only the project creator can do this",
        )
