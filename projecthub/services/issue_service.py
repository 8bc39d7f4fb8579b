"""Issue service for creating issues together with their todos.

Provides business logic for:
- Writing an issue and its initial todos in one chunked batch
- Denormalizing project/issue titles and the project color into todos
- Notifying issue and todo assignees
"""

import logging
from typing import List, Optional

from ..schemas.notification import NotificationCorrelation
from ..schemas.project import UNASSIGNED, Issue, IssueCreate, IssueWithTodosResponse, Todo
from .archive_service import ProjectNotFoundError
from .batch_writer import ChunkedBatchWriter, CommitOutcome
from .document_store import DocumentStore
from .graph_paths import Namespace, active_graph, generate_id
from .notification_service import FanoutResult, NotificationService

logger = logging.getLogger(__name__)


class IssueCreateError(Exception):
    """The issue batch did not commit completely."""

    def __init__(self, issue_id: str, outcome: CommitOutcome) -> None:
        self.issue_id = issue_id
        self.outcome = outcome
        super().__init__(
            f"Creating issue {issue_id} stopped after "
            f"{outcome.chunks_committed}/{outcome.total_chunks} chunks"
        )


def _assignees(ids: List[str]) -> List[str]:
    """Assignee ids that can receive notifications."""
    return [a for a in dict.fromkeys(ids) if a and a != UNASSIGNED]


async def create_issue_with_todos(
    store: DocumentStore,
    notifier: NotificationService,
    project_id: str,
    actor_id: str,
    payload: IssueCreate,
    max_batch_size: Optional[int] = None,
) -> IssueWithTodosResponse:
    """
    Create an issue and its todos.

    Args:
        store: Document store client
        notifier: Notification emitter
        project_id: Active project the issue belongs to
        actor_id: Creating member, never notified
        payload: Issue fields and initial todos
        max_batch_size: Override of the store's batch limit

    Returns:
        IssueWithTodosResponse with the written documents

    Raises:
        ProjectNotFoundError: If the project is not active
        IssueCreateError: If the batch did not commit completely
    """
    graph = active_graph(project_id)
    project = await store.get(graph.root)
    if project is None:
        raise ProjectNotFoundError(project_id, Namespace.ACTIVE)

    now = notifier.now()
    color = project.data.get("color")
    project_title = project.data.get("title") or ""

    issue = Issue(
        id=generate_id(),
        title=payload.title,
        memo=payload.memo,
        status=payload.status,
        priority=payload.priority,
        start_date=payload.start_date,
        due_date=payload.due_date,
        assignees=list(dict.fromkeys(payload.assignees)),
        color=color,
        created_at=now,
        updated_at=now,
    )

    todos = [
        Todo(
            id=generate_id(),
            title=t.title,
            assignee=t.assignee or UNASSIGNED,
            due_date=t.due_date,
            completed=t.completed,
            completed_at=now if t.completed else None,
            project_title=project_title,
            issue_title=issue.title,
            color=color,
        )
        for t in payload.todos
    ]

    writer = ChunkedBatchWriter(store, max_batch_size)
    writer.set(graph.issue(issue.id), issue.to_document())
    for todo in todos:
        writer.set(graph.todo(issue.id, todo.id), todo.to_document())

    outcome = await writer.commit()
    if not outcome.is_done:
        raise IssueCreateError(issue.id, outcome)

    logger.info(f"Issue created: project={project_id}, issue={issue.id}, todos={len(todos)}")

    result = FanoutResult()
    issue_assignees = _assignees(issue.assignees)
    if issue_assignees:
        result.merge(
            await notifier.notify_issue_assigned(
                issue_assignees, actor_id, project_id, issue.id, issue.title
            )
        )

    for todo in todos:
        if todo.assignee == UNASSIGNED:
            continue
        result.merge(
            await notifier.notify_todo_assigned(
                todo.assignee,
                actor_id,
                NotificationCorrelation(project_id=project_id, issue_id=issue.id, todo_id=todo.id),
                todo.title,
                issue.title,
            )
        )

    return IssueWithTodosResponse(
        project_id=project_id,
        issue=issue,
        todos=todos,
        notifications_created=len(result.created),
        notification_failures=len(result.failures),
    )
