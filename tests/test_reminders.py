"""Tests for the due-date reminder sweep and its ARQ job."""

from datetime import timedelta

import pytest

from conftest import FIXED_NOW, InMemoryDocumentStore
from projecthub.services.graph_paths import active_graph
from projecthub.services.notification_service import NotificationService
from projecthub.services.reminder_service import send_due_date_reminders
from projecthub.worker import parse_redis_url, parse_schedule_set, run_due_date_reminders


def _seed_todos(store: InMemoryDocumentStore) -> None:
    graph = active_graph("p1")
    store.seed(graph.root, {"title": "P", "createdBy": "alice", "members": ["alice", "bob"]})
    store.seed(graph.issue("i1"), {"title": "I"})
    todos = {
        "due_today": {"assignee": "bob", "dueDate": FIXED_NOW + timedelta(hours=5)},
        "due_earlier_today": {"assignee": "bob", "dueDate": FIXED_NOW - timedelta(hours=9)},
        "due_tomorrow": {"assignee": "alice", "dueDate": FIXED_NOW + timedelta(days=1)},
        "due_next_week": {"assignee": "bob", "dueDate": FIXED_NOW + timedelta(days=7)},
        "overdue": {"assignee": "bob", "dueDate": FIXED_NOW - timedelta(days=2)},
        "completed": {"assignee": "bob", "dueDate": FIXED_NOW, "completed": True},
        "unassigned": {"assignee": "unassigned", "dueDate": FIXED_NOW},
        "no_due_date": {"assignee": "bob"},
    }
    for todo_id, data in todos.items():
        store.seed(
            graph.todo("i1", todo_id),
            {"title": todo_id, "completed": False, **data},
        )


def _reminded_todos(store) -> list:
    return sorted(
        d["todoId"] for p, d in store.documents.items()
        if p.startswith("notifications/") and d["type"] == "deadline"
    )


@pytest.mark.asyncio
class TestSendDueDateReminders:
    """Tests for send_due_date_reminders."""

    async def test_reminds_todos_due_in_window(self, store, notifier):
        _seed_todos(store)

        result = await send_due_date_reminders(store, notifier, lookahead_days=1)

        assert _reminded_todos(store) == ["due_earlier_today", "due_today", "due_tomorrow"]
        assert result.projects == 1
        assert (result.todos_due, result.sent, result.skipped) == (3, 3, 0)

    async def test_today_only_without_lookahead(self, store, notifier):
        _seed_todos(store)

        await send_due_date_reminders(store, notifier, lookahead_days=0)

        assert _reminded_todos(store) == ["due_earlier_today", "due_today"]

    async def test_repeated_sweep_same_day_is_deduplicated(self, store, notifier):
        _seed_todos(store)

        await send_due_date_reminders(store, notifier, lookahead_days=1)
        second = await send_due_date_reminders(store, notifier, lookahead_days=1)

        assert second.sent == 0
        assert second.skipped == 3
        assert len(_reminded_todos(store)) == 3

    async def test_reminder_correlation_and_recipient(self, store, notifier):
        _seed_todos(store)

        await send_due_date_reminders(store, notifier, lookahead_days=0)

        docs = [d for p, d in store.documents.items() if p.startswith("notifications/")]
        assert all(d["recipients"] == ["bob"] for d in docs)
        assert all(d["projectId"] == "p1" and d["issueId"] == "i1" for d in docs)
        assert any(d["message"] == '"due_today" is due 2026-10-19' for d in docs)

    async def test_failed_lookup_does_not_stop_sweep(self, store, notifier, monkeypatch):
        graph = active_graph("p1")
        store.seed(graph.root, {"title": "P", "createdBy": "alice", "members": ["bob", "carol"]})
        store.seed(graph.issue("i1"), {"title": "I"})
        for todo_id, assignee in (("t_bob", "bob"), ("t_carol", "carol")):
            store.seed(
                graph.todo("i1", todo_id),
                {"title": todo_id, "assignee": assignee, "completed": False,
                 "dueDate": FIXED_NOW + timedelta(hours=1)},
            )

        original_query = store.query
        calls = []

        async def flaky_query(collection_path, filters):
            calls.append(collection_path)
            if len(calls) == 1:
                raise RuntimeError("transient query failure")
            return await original_query(collection_path, filters)

        monkeypatch.setattr(store, "query", flaky_query)

        result = await send_due_date_reminders(store, notifier, lookahead_days=0)

        assert (result.todos_due, result.sent, result.failed) == (2, 1, 1)
        assert _reminded_todos(store) == ["t_carol"]

    async def test_archived_projects_are_not_swept(self, store, notifier):
        store.seed("archives/p9", {"title": "Old"})
        store.seed("archives/p9/issues/i1/todos/t1", {"title": "t", "assignee": "bob", "dueDate": FIXED_NOW})

        result = await send_due_date_reminders(store, notifier)

        assert result.todos_due == 0


@pytest.mark.asyncio
class TestReminderJob:
    """Tests for the ARQ reminder job."""

    async def test_job_uses_store_from_context(self, store):
        _seed_todos(store)

        result = await run_due_date_reminders({"store": store})

        assert result["todos_due"] >= 0
        assert "run_at" in result


class TestScheduleParsing:
    """Tests for worker configuration helpers."""

    def test_parse_schedule_set(self):
        assert parse_schedule_set("9") == {9}
        assert parse_schedule_set(" 8, 17 ,") == {8, 17}
        assert parse_schedule_set("") == set()

    def test_parse_redis_url(self):
        redis_settings = parse_redis_url("redis://:secret@cache.local:6380/2")
        assert redis_settings.host == "cache.local"
        assert redis_settings.port == 6380
        assert redis_settings.password == "secret"
        assert redis_settings.database == 2

    def test_parse_redis_url_defaults(self):
        redis_settings = parse_redis_url("redis://localhost")
        assert (redis_settings.host, redis_settings.port, redis_settings.database) == ("localhost", 6379, 0)
