"""Notification service for creating and managing notification records.

Provides business logic for notification management, including:
- Fanning out one notification document per recipient for an event
- Deduplicating recurring due-date reminders within a day
- Listing, counting, reading and hiding a recipient's notifications

Delivery to connected clients is not handled here; records are only written
to the top-level ``notifications`` collection.
"""

import logging
from dataclasses import dataclass, field
from datetime import datetime, time, timedelta, timezone
from typing import Callable, Iterable, List, Optional, Tuple
from zoneinfo import ZoneInfo

from ..config import settings
from ..schemas.comment import CommentAuthor
from ..schemas.notification import (
    Notification,
    NotificationCorrelation,
    NotificationCount,
    NotificationType,
)
from .batch_writer import ChunkedBatchWriter
from .document_store import DocumentSnapshot, DocumentStore, FieldFilter
from .graph_paths import NOTIFICATIONS_COLLECTION, generate_id, notification_path

logger = logging.getLogger(__name__)


class NotificationNotFoundError(Exception):
    """Raised when a notification does not exist or is not addressed to the caller."""


@dataclass
class RecipientWriteFailure:
    """A notification that could not be written for one recipient."""

    recipient: str
    error: str
    exception: Optional[BaseException] = field(default=None, repr=False, compare=False)


@dataclass
class FanoutResult:
    """
    Outcome of a fan-out.

    Attributes:
        created: Notifications written, one per recipient
        failures: Recipients whose write failed
        skipped: Recipients skipped by deduplication
    """

    created: List[Notification] = field(default_factory=list)
    failures: List[RecipientWriteFailure] = field(default_factory=list)
    skipped: List[str] = field(default_factory=list)

    @property
    def ok(self) -> bool:
        return not self.failures

    @property
    def notified(self) -> List[str]:
        """Ids of recipients that received a notification."""
        return [n.recipients[0] for n in self.created]

    def merge(self, other: "FanoutResult") -> "FanoutResult":
        self.created.extend(other.created)
        self.failures.extend(other.failures)
        self.skipped.extend(other.skipped)
        return self


def _utcnow() -> datetime:
    return datetime.now(timezone.utc)


def _snapshot_to_notification(snapshot: DocumentSnapshot) -> Notification:
    return Notification.model_validate(snapshot.to_dict())


class NotificationService:
    """
    Service for writing and managing notifications.

    Each recipient gets its own document so that read/hidden state and
    reminder deduplication are tracked per recipient.
    """

    def __init__(
        self,
        store: DocumentStore,
        clock: Optional[Callable[[], datetime]] = None,
        timezone_name: Optional[str] = None,
    ) -> None:
        self._store = store
        self._clock = clock or _utcnow
        self._tz = ZoneInfo(timezone_name or settings.notification_timezone)

    def now(self) -> datetime:
        return self._clock()

    # ========================================================================
    # Fan-out
    # ========================================================================

    async def emit(
        self,
        recipients: Iterable[str],
        message: str,
        correlation: Optional[NotificationCorrelation] = None,
        actor_id: Optional[str] = None,
        notification_type: NotificationType = NotificationType.SYSTEM,
    ) -> FanoutResult:
        """
        Write one notification per recipient, excluding the actor.

        Every recipient is attempted; a failed write is recorded in the
        result and does not stop the remaining writes.

        Args:
            recipients: Recipient ids (duplicates are collapsed)
            message: Notification message
            correlation: Optional project/issue/todo ids
            actor_id: The acting identity, never notified
            notification_type: Type of notification

        Returns:
            FanoutResult with created notifications and failures
        """
        result = FanoutResult()
        targets = [r for r in dict.fromkeys(recipients) if r and r != actor_id]

        if not targets:
            return result

        for recipient in targets:
            try:
                notification = await self._write(
                    recipient, message, correlation, notification_type
                )
            except Exception as e:
                logger.warning(
                    f"Notification write failed: recipient={recipient}, "
                    f"type={notification_type.value}: {e}"
                )
                result.failures.append(RecipientWriteFailure(recipient, str(e), e))
                continue
            result.created.append(notification)

        logger.info(
            f"Notifications emitted: type={notification_type.value}, "
            f"created={len(result.created)}, failed={len(result.failures)}"
        )
        return result

    async def _write(
        self,
        recipient: str,
        message: str,
        correlation: Optional[NotificationCorrelation],
        notification_type: NotificationType,
    ) -> Notification:
        notification = Notification(
            id=generate_id(),
            type=notification_type,
            recipients=[recipient],
            message=message,
            read=False,
            hidden=False,
            created_at=self.now(),
            **(correlation.model_dump() if correlation else {}),
        )
        await self._store.set(notification_path(notification.id), notification.to_document())
        return notification

    # ========================================================================
    # Due-date reminders
    # ========================================================================

    def day_window(self, moment: Optional[datetime] = None) -> Tuple[datetime, datetime]:
        """Start (inclusive) and end (exclusive) of the local day containing ``moment``."""
        moment = moment or self.now()
        if moment.tzinfo is None:
            moment = moment.replace(tzinfo=timezone.utc)
        local_day = moment.astimezone(self._tz).date()
        start = datetime.combine(local_day, time.min, tzinfo=self._tz)
        return start, start + timedelta(days=1)

    async def find_reminders(
        self, recipient: str, todo_id: str, moment: Optional[datetime] = None
    ) -> List[Notification]:
        """Due-date reminders already sent to a recipient for a todo today."""
        start, end = self.day_window(moment)
        snapshots = await self._store.query(
            NOTIFICATIONS_COLLECTION,
            [
                FieldFilter("recipients", "array_contains", recipient),
                FieldFilter("todoId", "==", todo_id),
                FieldFilter("type", "==", NotificationType.DEADLINE.value),
                FieldFilter("createdAt", ">=", start),
                FieldFilter("createdAt", "<", end),
            ],
        )
        return [_snapshot_to_notification(s) for s in snapshots]

    async def emit_due_date_reminder(
        self,
        recipient: str,
        correlation: NotificationCorrelation,
        message: str,
    ) -> FanoutResult:
        """
        Emit a due-date reminder unless one was already sent today.

        The ``(recipient, todoId, day)`` triple identifies a reminder, so
        repeated sweeps on the same day produce a single notification.
        A failed lookup is reported as a failure for the recipient, never
        raised.
        """
        if not correlation.todo_id:
            raise ValueError("Due-date reminders need a todo id")

        try:
            existing = await self.find_reminders(recipient, correlation.todo_id)
        except Exception as e:
            logger.warning(
                f"Reminder lookup failed: recipient={recipient}, "
                f"todo={correlation.todo_id}: {e}"
            )
            return FanoutResult(failures=[RecipientWriteFailure(recipient, str(e), e)])
        if existing:
            logger.debug(
                f"Reminder skipped (already sent today): recipient={recipient}, "
                f"todo={correlation.todo_id}"
            )
            return FanoutResult(skipped=[recipient])

        return await self.emit(
            [recipient],
            message,
            correlation=correlation,
            notification_type=NotificationType.DEADLINE,
        )

    # ========================================================================
    # Event helpers
    # ========================================================================

    async def notify_mentioned(
        self,
        mentioned_ids: Iterable[str],
        author: CommentAuthor,
        project_id: str,
        preview: str,
    ) -> FanoutResult:
        """Notify members mentioned in a comment or reply."""
        name = author.display_name or author.id
        message = f"{name} mentioned you: {preview}" if preview else f"{name} mentioned you"
        return await self.emit(
            mentioned_ids,
            message,
            correlation=NotificationCorrelation(project_id=project_id),
            actor_id=author.id,
            notification_type=NotificationType.MENTION,
        )

    async def notify_reply(
        self,
        comment_author_id: str,
        replier: CommentAuthor,
        project_id: str,
        preview: str,
    ) -> FanoutResult:
        """Notify a comment's author that someone replied."""
        name = replier.display_name or replier.id
        return await self.emit(
            [comment_author_id],
            f"{name} replied to your comment: {preview}",
            correlation=NotificationCorrelation(project_id=project_id),
            actor_id=replier.id,
            notification_type=NotificationType.COMMENT_REPLY,
        )

    async def notify_issue_assigned(
        self,
        assignee_ids: Iterable[str],
        actor_id: str,
        project_id: str,
        issue_id: str,
        issue_title: str,
    ) -> FanoutResult:
        """Notify the assignees of a new issue."""
        return await self.emit(
            assignee_ids,
            f"You were assigned to the issue \"{issue_title}\"",
            correlation=NotificationCorrelation(project_id=project_id, issue_id=issue_id),
            actor_id=actor_id,
            notification_type=NotificationType.ISSUE_ASSIGNED,
        )

    async def notify_todo_assigned(
        self,
        assignee_id: str,
        actor_id: str,
        correlation: NotificationCorrelation,
        todo_title: str,
        issue_title: str,
    ) -> FanoutResult:
        """Notify the assignee of a new todo."""
        return await self.emit(
            [assignee_id],
            f"You were assigned the todo \"{todo_title}\" in \"{issue_title}\"",
            correlation=correlation,
            actor_id=actor_id,
            notification_type=NotificationType.TODO_ASSIGNED,
        )

    # ========================================================================
    # Recipient operations
    # ========================================================================

    async def list_for_recipient(
        self,
        recipient_id: str,
        unread_only: bool = False,
        include_hidden: bool = False,
        limit: Optional[int] = None,
    ) -> List[Notification]:
        """
        List a recipient's notifications, newest first.

        Hidden notifications are left out unless ``include_hidden`` is set.
        """
        filters = [FieldFilter("recipients", "array_contains", recipient_id)]
        if unread_only:
            filters.append(FieldFilter("read", "==", False))
        if not include_hidden:
            filters.append(FieldFilter("hidden", "==", False))

        snapshots = await self._store.query(NOTIFICATIONS_COLLECTION, filters)
        notifications = [_snapshot_to_notification(s) for s in snapshots]
        notifications.sort(key=lambda n: n.created_at, reverse=True)

        if limit is not None:
            notifications = notifications[:limit]
        return notifications

    async def count(self, recipient_id: str) -> NotificationCount:
        """Total and unread counts of visible notifications."""
        notifications = await self.list_for_recipient(recipient_id)
        unread = sum(1 for n in notifications if not n.read)
        return NotificationCount(total=len(notifications), unread=unread)

    async def _get_for_recipient(self, notification_id: str, recipient_id: str) -> Notification:
        snapshot = await self._store.get(notification_path(notification_id))
        if snapshot is None or recipient_id not in (snapshot.data.get("recipients") or []):
            # Same error either way so ids of other users' notifications don't leak
            raise NotificationNotFoundError(f"Notification {notification_id} not found")
        return _snapshot_to_notification(snapshot)

    async def mark_as_read(self, notification_id: str, recipient_id: str) -> Notification:
        """Mark a notification as read."""
        notification = await self._get_for_recipient(notification_id, recipient_id)
        if not notification.read:
            await self._store.set(notification_path(notification_id), {"read": True}, merge=True)
            notification.read = True
        return notification

    async def mark_all_as_read(self, recipient_id: str) -> int:
        """
        Mark every unread visible notification of a recipient as read.

        Returns:
            int: Number of notifications updated
        """
        unread = await self.list_for_recipient(recipient_id, unread_only=True)
        if not unread:
            return 0

        writer = ChunkedBatchWriter(self._store)
        for notification in unread:
            writer.set(notification_path(notification.id), {"read": True}, merge=True)

        outcome = await writer.commit()
        if not outcome.is_done:
            raise RuntimeError(
                f"Marking notifications read stopped after "
                f"{outcome.chunks_committed}/{outcome.total_chunks} chunks"
            ) from outcome.error

        logger.info(f"Marked {len(unread)} notifications read for {recipient_id}")
        return len(unread)

    async def hide(self, notification_id: str, recipient_id: str) -> Notification:
        """Soft-delete a notification for its recipient."""
        notification = await self._get_for_recipient(notification_id, recipient_id)
        if not notification.hidden:
            await self._store.set(notification_path(notification_id), {"hidden": True}, merge=True)
            notification.hidden = True
        return notification
