"""Shared pytest fixtures for backend tests."""

import copy
from datetime import datetime, timezone
from typing import Any, Callable, Dict, List, Optional, Set

import pytest
import pytest_asyncio
from httpx import ASGITransport, AsyncClient

from projecthub.dependencies import get_document_store, get_project_lock
from projecthub.main import app
from projecthub.services.document_store import (
    BatchLimitExceededError,
    DocumentSnapshot,
    FieldFilter,
    join_path,
    matches_all,
    parent_collection,
)
from projecthub.services.graph_paths import active_graph, user_path
from projecthub.services.member_service import StoreRosterLookup
from projecthub.services.notification_service import NotificationService

FIXED_NOW = datetime(2026, 10, 19, 10, 0, tzinfo=timezone.utc)


class InjectedFailure(Exception):
    """Failure raised on purpose by the in-memory store."""


class InMemoryWriteBatch:
    """All-or-nothing batch over InMemoryDocumentStore."""

    def __init__(self, store: "InMemoryDocumentStore") -> None:
        self._store = store
        self._ops: List[tuple] = []

    def set(self, path: str, data: Dict[str, Any], merge: bool = False) -> None:
        parent_collection(path)
        self._ops.append(("set", path, copy.deepcopy(data), merge))

    def delete(self, path: str) -> None:
        parent_collection(path)
        self._ops.append(("delete", path, None, False))

    def __len__(self) -> int:
        return len(self._ops)

    async def commit(self) -> None:
        store = self._store
        if len(self._ops) > store.max_batch_size:
            raise BatchLimitExceededError(len(self._ops), store.max_batch_size)

        store.batch_commits += 1
        number = store.batch_commits
        if number in store.fail_commits:
            raise InjectedFailure(f"batch commit {number} failed")

        staged = copy.deepcopy(store.documents)
        for kind, path, data, merge in self._ops:
            if kind == "delete":
                staged.pop(path, None)
            elif merge and path in staged:
                staged[path].update(data)
            else:
                staged[path] = data
        store.documents = staged
        store.committed_batch_sizes.append(len(self._ops))

        if store.after_commit is not None:
            store.after_commit(number)


class InMemoryDocumentStore:
    """
    Dict-backed document store with fault injection.

    Attributes:
        documents: path -> field map
        fail_commits: 1-based batch commit numbers that raise InjectedFailure
        fail_set: predicate on (path, data) making a single-document set fail
        after_commit: callback run with the commit number after each batch
    """

    def __init__(self, max_batch_size: int = 500) -> None:
        self.max_batch_size = max_batch_size
        self.documents: Dict[str, Dict[str, Any]] = {}
        self.batch_commits = 0
        self.committed_batch_sizes: List[int] = []
        self.fail_commits: Set[int] = set()
        self.fail_set: Optional[Callable[[str, Dict[str, Any]], bool]] = None
        self.after_commit: Optional[Callable[[int], None]] = None

    async def get(self, path: str) -> Optional[DocumentSnapshot]:
        data = self.documents.get(join_path(path))
        if data is None:
            return None
        return DocumentSnapshot(join_path(path), copy.deepcopy(data))

    async def set(self, path: str, data: Dict[str, Any], merge: bool = False) -> None:
        if self.fail_set is not None and self.fail_set(path, data):
            raise InjectedFailure(f"write to {path} failed")
        path = join_path(path)
        if merge and path in self.documents:
            self.documents[path].update(copy.deepcopy(data))
        else:
            self.documents[path] = copy.deepcopy(data)

    async def delete(self, path: str) -> None:
        self.documents.pop(join_path(path), None)

    async def list_children(self, collection_path: str) -> List[DocumentSnapshot]:
        collection = join_path(collection_path)
        return [
            DocumentSnapshot(path, copy.deepcopy(data))
            for path, data in sorted(self.documents.items())
            if parent_collection(path) == collection
        ]

    async def query(self, collection_path: str, filters: List[FieldFilter]) -> List[DocumentSnapshot]:
        return [
            doc for doc in await self.list_children(collection_path)
            if matches_all(doc.data, filters)
        ]

    def batch(self) -> InMemoryWriteBatch:
        return InMemoryWriteBatch(self)

    # Test helpers

    def seed(self, path: str, data: Dict[str, Any]) -> None:
        self.documents[join_path(path)] = copy.deepcopy(data)

    def paths_under(self, root: str) -> List[str]:
        """Sorted paths of a document and everything below it."""
        root = join_path(root)
        return sorted(p for p in self.documents if p == root or p.startswith(root + "/"))

    def relative_tree(self, root: str) -> Dict[str, Dict[str, Any]]:
        """Documents under ``root`` keyed by path relative to it."""
        root = join_path(root)
        return {
            p[len(root):]: copy.deepcopy(self.documents[p]) for p in self.paths_under(root)
        }


# ============================================================================
# Seed data
# ============================================================================

USERS = {
    "alice": {"displayName": "Alice", "email": "alice@example.com"},
    "bob": {"displayName": "Bob", "email": "bob@example.com"},
    "carol": {"displayName": " Carol ", "email": "carol@example.com"},
    "dave": {"displayName": "Dave", "email": "dave@example.com"},
}


def seed_users(store: InMemoryDocumentStore) -> None:
    for uid, profile in USERS.items():
        store.seed(user_path(uid), profile)


def seed_project(
    store: InMemoryDocumentStore,
    project_id: str = "p1",
    created_by: str = "alice",
    members: Optional[List[str]] = None,
    issues: Optional[Dict[str, int]] = None,
    comments: Optional[Dict[str, int]] = None,
) -> None:
    """
    Seed an active project graph.

    ``issues`` maps issue id -> number of todos; ``comments`` maps
    comment id -> number of replies.
    """
    graph = active_graph(project_id)
    store.seed(
        graph.root,
        {
            "title": f"Project {project_id}",
            "description": "",
            "createdBy": created_by,
            "members": members if members is not None else ["alice", "bob", "carol"],
            "color": "#ff8800",
            "archived": False,
            "createdAt": FIXED_NOW,
        },
    )

    if issues is None:
        issues = {"i1": 2, "i2": 0}
    if comments is None:
        comments = {"c1": 2, "c2": 0}

    for issue_id, todo_count in issues.items():
        store.seed(graph.issue(issue_id), {"title": f"Issue {issue_id}", "status": "in_progress"})
        for n in range(todo_count):
            store.seed(
                graph.todo(issue_id, f"{issue_id}t{n}"),
                {"title": f"Todo {n}", "assignee": "bob", "completed": False},
            )

    for comment_id, reply_count in comments.items():
        store.seed(
            graph.comment(comment_id),
            {
                "author": {"id": "bob", "displayName": "Bob"},
                "content": f"Comment {comment_id}",
                "createdAt": FIXED_NOW,
                "mentions": [],
                "likes": [],
            },
        )
        for n in range(reply_count):
            store.seed(
                graph.reply(comment_id, f"{comment_id}r{n}"),
                {
                    "author": {"id": "carol", "displayName": "Carol"},
                    "content": f"Reply {n}",
                    "createdAt": FIXED_NOW,
                },
            )


# ============================================================================
# Fixtures
# ============================================================================


@pytest.fixture
def store() -> InMemoryDocumentStore:
    """Empty in-memory document store."""
    return InMemoryDocumentStore()


@pytest.fixture
def seeded_store(store: InMemoryDocumentStore) -> InMemoryDocumentStore:
    """Store holding users and project p1 (2 issues, 2 todos, 2 comments, 2 replies)."""
    seed_users(store)
    seed_project(store)
    return store


@pytest.fixture
def notifier(store: InMemoryDocumentStore) -> NotificationService:
    """Notification service with a fixed clock."""
    return NotificationService(store, clock=lambda: FIXED_NOW, timezone_name="UTC")


@pytest.fixture
def roster_lookup(store: InMemoryDocumentStore) -> StoreRosterLookup:
    return StoreRosterLookup(store)


@pytest_asyncio.fixture
async def client(store: InMemoryDocumentStore):
    """HTTP client with the document store replaced by the in-memory one."""
    app.dependency_overrides[get_document_store] = lambda: store
    app.dependency_overrides[get_project_lock] = lambda: None

    async with AsyncClient(transport=ASGITransport(app=app), base_url="http://test") as test_client:
        yield test_client

    app.dependency_overrides.clear()


def headers_for(user_id: str) -> dict:
    """Request headers identifying the caller."""
    return {"X-User-Id": user_id}
