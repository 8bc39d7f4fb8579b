"""Pydantic schemas package."""

from .archive import (
    ArchivedProjectSummary,
    StageReport,
    TransferDirection,
    TransferReport,
    TransferStage,
)
from .comment import Comment, CommentAuthor, CommentCreate, CommentPostResponse, Reply
from .member import RosterMember
from .notification import (
    MarkAllReadResponse,
    Notification,
    NotificationCorrelation,
    NotificationCount,
    NotificationType,
)
from .project import (
    UNASSIGNED,
    Issue,
    IssueCreate,
    IssuePriority,
    IssueStatus,
    IssueWithTodosResponse,
    Project,
    Todo,
    TodoCreate,
)

__all__ = [
    # Archive schemas
    "ArchivedProjectSummary",
    "StageReport",
    "TransferDirection",
    "TransferReport",
    "TransferStage",
    # Comment schemas
    "Comment",
    "CommentAuthor",
    "CommentCreate",
    "CommentPostResponse",
    "Reply",
    # Member schemas
    "RosterMember",
    # Notification schemas
    "MarkAllReadResponse",
    "Notification",
    "NotificationCorrelation",
    "NotificationCount",
    "NotificationType",
    # Project schemas
    "UNASSIGNED",
    "Issue",
    "IssueCreate",
    "IssuePriority",
    "IssueStatus",
    "IssueWithTodosResponse",
    "Project",
    "Todo",
    "TodoCreate",
]
