"""Notifications API endpoints.

Provides endpoints for reading and managing the caller's notifications.
All endpoints require authentication.
"""

from typing import Annotated, List

from fastapi import APIRouter, Depends, HTTPException, Query, status

from ..dependencies import get_current_user_id, get_notification_service
from ..schemas.notification import MarkAllReadResponse, Notification, NotificationCount
from ..services.notification_service import NotificationNotFoundError, NotificationService

router = APIRouter(prefix="/api/notifications", tags=["Notifications"])


# ============================================================================
# List and Count endpoints
# ============================================================================


@router.get(
    "",
    response_model=List[Notification],
    summary="List user notifications",
    description="Get the authenticated user's notifications, newest first.",
    responses={
        200: {"description": "List of notifications retrieved successfully"},
        401: {"description": "Not authenticated"},
    },
)
async def list_notifications(
    user_id: Annotated[str, Depends(get_current_user_id)],
    notifier: NotificationService = Depends(get_notification_service),
    limit: int = Query(50, ge=1, le=100, description="Maximum number of records to return"),
    unread_only: bool = Query(False, description="Return only unread notifications"),
    include_hidden: bool = Query(False, description="Include hidden notifications"),
) -> List[Notification]:
    """
    List notifications for the authenticated user.

    - **limit**: Maximum number of records to return (1-100)
    - **unread_only**: If true, return only unread notifications
    - **include_hidden**: If true, also return hidden notifications
    """
    return await notifier.list_for_recipient(
        user_id,
        unread_only=unread_only,
        include_hidden=include_hidden,
        limit=limit,
    )


@router.get(
    "/count",
    response_model=NotificationCount,
    summary="Get notification counts",
    description="Get total and unread notification counts for the authenticated user.",
    responses={
        200: {"description": "Notification counts retrieved successfully"},
        401: {"description": "Not authenticated"},
    },
)
async def get_notification_count(
    user_id: Annotated[str, Depends(get_current_user_id)],
    notifier: NotificationService = Depends(get_notification_service),
) -> NotificationCount:
    return await notifier.count(user_id)


# ============================================================================
# Update endpoints
# ============================================================================


@router.put(
    "/read-all",
    response_model=MarkAllReadResponse,
    summary="Mark all notifications as read",
    responses={
        200: {"description": "Notifications marked as read"},
        401: {"description": "Not authenticated"},
    },
)
async def mark_all_notifications_read(
    user_id: Annotated[str, Depends(get_current_user_id)],
    notifier: NotificationService = Depends(get_notification_service),
) -> MarkAllReadResponse:
    updated = await notifier.mark_all_as_read(user_id)
    return MarkAllReadResponse(updated=updated)


@router.put(
    "/{notification_id}/read",
    response_model=Notification,
    summary="Mark a notification as read",
    responses={
        200: {"description": "Notification marked as read"},
        401: {"description": "Not authenticated"},
        404: {"description": "Notification not found"},
    },
)
async def mark_notification_read(
    notification_id: str,
    user_id: Annotated[str, Depends(get_current_user_id)],
    notifier: NotificationService = Depends(get_notification_service),
) -> Notification:
    try:
        return await notifier.mark_as_read(notification_id, user_id)
    except NotificationNotFoundError as e:
        raise HTTPException(status_code=status.HTTP_404_NOT_FOUND, detail=str(e))


@router.delete(
    "/{notification_id}",
    status_code=status.HTTP_204_NO_CONTENT,
    summary="Hide a notification",
    description="Hide a notification from the user's list. The record is kept.",
    responses={
        204: {"description": "Notification hidden"},
        401: {"description": "Not authenticated"},
        404: {"description": "Notification not found"},
    },
)
async def hide_notification(
    notification_id: str,
    user_id: Annotated[str, Depends(get_current_user_id)],
    notifier: NotificationService = Depends(get_notification_service),
) -> None:
    try:
        await notifier.hide(notification_id, user_id)
    except NotificationNotFoundError as e:
        raise HTTPException(status_code=status.HTTP_404_NOT_FOUND, detail=str(e))
