"""Due-date reminder sweep.

Walks active projects -> issues -> todos and sends a deadline reminder to the
assignee of every incomplete todo due between the start of today and the end
of the look-ahead window. Reminders are deduplicated per recipient, todo and
day by the notification service, so the sweep can run any number of times a
day.
"""

import logging
from dataclasses import dataclass
from datetime import datetime, timedelta, timezone
from typing import Optional

from ..config import settings
from ..schemas.notification import NotificationCorrelation
from ..schemas.project import UNASSIGNED
from .document_store import DocumentStore, join_path
from .graph_paths import ISSUES, TODOS, Namespace
from .notification_service import NotificationService

logger = logging.getLogger(__name__)


@dataclass
class ReminderSweepResult:
    """Counts of one reminder sweep."""

    projects: int = 0
    todos_due: int = 0
    sent: int = 0
    skipped: int = 0
    failed: int = 0

    def to_dict(self) -> dict:
        return {
            "projects": self.projects,
            "todos_due": self.todos_due,
            "sent": self.sent,
            "skipped": self.skipped,
            "failed": self.failed,
        }


def _aware(value: datetime) -> datetime:
    if value.tzinfo is None:
        return value.replace(tzinfo=timezone.utc)
    return value


async def send_due_date_reminders(
    store: DocumentStore,
    notifier: NotificationService,
    now: Optional[datetime] = None,
    lookahead_days: Optional[int] = None,
) -> ReminderSweepResult:
    """
    Send deadline reminders for todos due soon.

    Args:
        store: Document store client
        notifier: Notification emitter, also the source of "today"
        now: Moment of the sweep (defaults to the notifier's clock)
        lookahead_days: Extra whole days after today to include

    Returns:
        ReminderSweepResult with counts
    """
    if lookahead_days is None:
        lookahead_days = settings.reminder_lookahead_days

    now = now or notifier.now()
    window_start, today_end = notifier.day_window(now)
    window_end = today_end + timedelta(days=lookahead_days)

    result = ReminderSweepResult()
    projects = await store.list_children(Namespace.ACTIVE.value)

    for project in projects:
        result.projects += 1
        issues = await store.list_children(join_path(project.path, ISSUES))

        for issue in issues:
            todos = await store.list_children(join_path(issue.path, TODOS))

            for todo in todos:
                data = todo.data
                due = data.get("dueDate")
                assignee = data.get("assignee")

                if data.get("completed") or not isinstance(due, datetime):
                    continue
                if not assignee or assignee == UNASSIGNED:
                    continue
                if not window_start <= _aware(due) < window_end:
                    continue

                result.todos_due += 1
                local_due = _aware(due).astimezone(window_start.tzinfo)
                fanout = await notifier.emit_due_date_reminder(
                    assignee,
                    NotificationCorrelation(
                        project_id=project.id, issue_id=issue.id, todo_id=todo.id
                    ),
                    f"\"{data.get('title', '')}\" is due {local_due:%Y-%m-%d}",
                )
                result.sent += len(fanout.created)
                result.skipped += len(fanout.skipped)
                result.failed += len(fanout.failures)

    logger.info(
        f"Reminder sweep complete: {result.todos_due} due, {result.sent} sent, "
        f"{result.skipped} skipped, {result.failed} failed"
    )
    return result
