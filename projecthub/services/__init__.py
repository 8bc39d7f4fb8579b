"""Business logic services."""

from .archive_service import (
    ArchivePurger,
    GraphArchiver,
    GraphRestorer,
    GraphTransferError,
    MoveProjectDocument,
    PartialCommitError,
    ProjectArchival,
    ProjectNotFoundError,
    TransferCancelledError,
    archive_project,
    list_archived_projects,
    purge_archived_project,
    restore_project,
)
from .batch_writer import ChunkedBatchWriter, CommitOutcome, CommitState
from .comment_service import (
    CommentDeleteError,
    CommentNotFoundError,
    CommentPermissionError,
    delete_comment,
    post_comment,
    post_reply,
)
from .document_store import (
    BatchLimitExceededError,
    DocumentSnapshot,
    DocumentStore,
    FieldFilter,
    SqlDocumentStore,
)
from .issue_service import IssueCreateError, create_issue_with_todos
from .member_service import RosterLookup, StoreRosterLookup, project_members
from .mention_service import build_preview, extract_mention_tokens, resolve_mentions, strip_mentions
from .notification_service import FanoutResult, NotificationNotFoundError, NotificationService
from .project_lock_service import ProjectLockedError, ProjectLockService
from .redis_service import RedisService, redis_service
from .reminder_service import ReminderSweepResult, send_due_date_reminders

__all__ = [
    # Archive service
    "ArchivePurger",
    "GraphArchiver",
    "GraphRestorer",
    "GraphTransferError",
    "MoveProjectDocument",
    "PartialCommitError",
    "ProjectArchival",
    "ProjectNotFoundError",
    "TransferCancelledError",
    "archive_project",
    "list_archived_projects",
    "purge_archived_project",
    "restore_project",
    # Batch writer
    "ChunkedBatchWriter",
    "CommitOutcome",
    "CommitState",
    # Comment service
    "CommentDeleteError",
    "CommentNotFoundError",
    "CommentPermissionError",
    "delete_comment",
    "post_comment",
    "post_reply",
    # Document store
    "BatchLimitExceededError",
    "DocumentSnapshot",
    "DocumentStore",
    "FieldFilter",
    "SqlDocumentStore",
    # Issue service
    "IssueCreateError",
    "create_issue_with_todos",
    # Members and mentions
    "RosterLookup",
    "StoreRosterLookup",
    "project_members",
    "build_preview",
    "extract_mention_tokens",
    "resolve_mentions",
    "strip_mentions",
    # Notification service
    "FanoutResult",
    "NotificationNotFoundError",
    "NotificationService",
    # Locks and Redis
    "ProjectLockedError",
    "ProjectLockService",
    "RedisService",
    "redis_service",
    # Reminders
    "ReminderSweepResult",
    "send_due_date_reminders",
]
