"""Path conventions for a project's document graph.

Active and archived projects share one layout under different roots:

    {root}/{projectId}
    {root}/{projectId}/issues/{issueId}
    {root}/{projectId}/issues/{issueId}/todos/{todoId}
    {root}/{projectId}/comments/{commentId}
    {root}/{projectId}/comments/{commentId}/replies/{replyId}

with ``root`` = ``projects`` (active) or ``archives`` (archived).
Notifications and user profiles live in top-level collections.
"""

import uuid
from dataclasses import dataclass
from enum import Enum

from .document_store import join_path, split_path

ISSUES = "issues"
TODOS = "todos"
COMMENTS = "comments"
REPLIES = "replies"

NOTIFICATIONS_COLLECTION = "notifications"
USERS_COLLECTION = "users"


class Namespace(str, Enum):
    """Top-level collection a project graph lives under."""

    ACTIVE = "projects"
    ARCHIVE = "archives"


def generate_id() -> str:
    """Generate a 20-character document id."""
    return uuid.uuid4().hex[:20]


def notification_path(notification_id: str) -> str:
    return join_path(NOTIFICATIONS_COLLECTION, notification_id)


def user_path(uid: str) -> str:
    return join_path(USERS_COLLECTION, uid)


@dataclass(frozen=True)
class ProjectGraph:
    """Paths of one project's graph inside one namespace."""

    namespace: Namespace
    project_id: str

    @property
    def root(self) -> str:
        return join_path(self.namespace.value, self.project_id)

    def issues(self) -> str:
        return join_path(self.root, ISSUES)

    def issue(self, issue_id: str) -> str:
        return join_path(self.issues(), issue_id)

    def todos(self, issue_id: str) -> str:
        return join_path(self.issue(issue_id), TODOS)

    def todo(self, issue_id: str, todo_id: str) -> str:
        return join_path(self.todos(issue_id), todo_id)

    def comments(self) -> str:
        return join_path(self.root, COMMENTS)

    def comment(self, comment_id: str) -> str:
        return join_path(self.comments(), comment_id)

    def replies(self, comment_id: str) -> str:
        return join_path(self.comment(comment_id), REPLIES)

    def reply(self, comment_id: str, reply_id: str) -> str:
        return join_path(self.replies(comment_id), reply_id)

    def mirror(self, namespace: Namespace) -> "ProjectGraph":
        """The same project's graph in another namespace."""
        return ProjectGraph(namespace, self.project_id)

    def owns(self, path: str) -> bool:
        """Whether a path is the root or lies inside this graph."""
        root = split_path(self.root)
        return split_path(path)[: len(root)] == root

    def rebase(self, path: str, target: "ProjectGraph") -> str:
        """
        Map a path of this graph onto the same relative path in ``target``.

        Raises:
            ValueError: If the path does not belong to this graph
        """
        if not self.owns(path):
            raise ValueError(f"{path!r} is outside {self.root!r}")
        relative = split_path(path)[len(split_path(self.root)):]
        return join_path(target.root, *relative)


def active_graph(project_id: str) -> ProjectGraph:
    return ProjectGraph(Namespace.ACTIVE, project_id)


def archive_graph(project_id: str) -> ProjectGraph:
    return ProjectGraph(Namespace.ARCHIVE, project_id)
