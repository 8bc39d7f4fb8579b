"""HTTP tests for the API routers."""

import pytest

from conftest import headers_for, seed_project

pytestmark = pytest.mark.asyncio


class TestAuthAndHealth:
    async def test_health(self, client):
        response = await client.get("/health")

        assert response.status_code == 200
        body = response.json()
        assert body["status"] == "healthy"
        assert body["project_locks"] is False

    async def test_missing_user_header(self, client, seeded_store):
        response = await client.post("/api/projects/p1/archive")
        assert response.status_code == 401


class TestArchiveEndpoints:
    """Tests for archive, restore, purge and list."""

    async def test_archive_restore_cycle(self, client, seeded_store):
        response = await client.post("/api/projects/p1/archive", headers=headers_for("alice"))

        assert response.status_code == 200
        report = response.json()
        assert report["project_id"] == "p1"
        assert report["direction"] == "archive"
        assert await seeded_store.get("projects/p1") is None

        listing = await client.get("/api/archives", headers=headers_for("bob"))
        assert listing.status_code == 200
        assert [p["id"] for p in listing.json()] == ["p1"]

        response = await client.post("/api/archives/p1/restore", headers=headers_for("alice"))

        assert response.status_code == 200
        assert response.json()["direction"] == "restore"
        assert (await seeded_store.get("projects/p1")).data["archived"] is False

    async def test_non_creator_cannot_archive(self, client, seeded_store):
        response = await client.post("/api/projects/p1/archive", headers=headers_for("bob"))

        assert response.status_code == 403
        assert await seeded_store.get("projects/p1") is not None

    async def test_archive_missing_project(self, client, seeded_store):
        response = await client.post("/api/projects/ghost/archive", headers=headers_for("alice"))
        assert response.status_code == 404

    async def test_partial_failure_reports_stage(self, client, seeded_store):
        # Commit 1 is the archive root, commit 2 the comments stage
        seeded_store.fail_commits = {2}

        response = await client.post("/api/projects/p1/archive", headers=headers_for("alice"))

        assert response.status_code == 500
        detail = response.json()["detail"]
        assert detail["stage"] == "comments"
        assert detail["direction"] == "archive"
        assert detail["retryable"] is True

        seeded_store.fail_commits = set()
        retry = await client.post("/api/projects/p1/archive", headers=headers_for("alice"))
        assert retry.status_code == 200

    async def test_purge(self, client, seeded_store):
        await client.post("/api/projects/p1/archive", headers=headers_for("alice"))

        forbidden = await client.delete("/api/archives/p1", headers=headers_for("carol"))
        assert forbidden.status_code == 403

        response = await client.delete("/api/archives/p1", headers=headers_for("alice"))

        assert response.status_code == 200
        assert seeded_store.paths_under("archives/p1") == []
        assert (await client.get("/api/archives", headers=headers_for("alice"))).json() == []

    async def test_restore_requires_archive(self, client, seeded_store):
        response = await client.post("/api/archives/p1/restore", headers=headers_for("alice"))
        assert response.status_code == 404


class TestCommentEndpoints:
    """Tests for comment and reply endpoints."""

    async def test_post_comment(self, client, seeded_store):
        response = await client.post(
            "/api/projects/p1/comments",
            json={"content": "@Bob can you review?"},
            headers=headers_for("alice"),
        )

        assert response.status_code == 201
        body = response.json()
        assert body["comment"]["mentions"] == ["bob"]
        assert body["comment"]["author"] == {"id": "alice", "displayName": "Alice"}
        assert "createdAt" in body["comment"]
        assert body["notified"] == ["bob"]

    async def test_non_member_cannot_comment(self, client, seeded_store):
        response = await client.post(
            "/api/projects/p1/comments",
            json={"content": "hello"},
            headers=headers_for("dave"),
        )
        assert response.status_code == 403

    async def test_empty_comment_rejected(self, client, seeded_store):
        response = await client.post(
            "/api/projects/p1/comments",
            json={"content": ""},
            headers=headers_for("alice"),
        )
        assert response.status_code == 422

    async def test_reply(self, client, seeded_store):
        response = await client.post(
            "/api/projects/p1/comments/c1/replies",
            json={"content": "on it"},
            headers=headers_for("alice"),
        )

        assert response.status_code == 201
        assert response.json()["reply"]["content"] == "on it"
        assert response.json()["notified"] == ["bob"]

        missing = await client.post(
            "/api/projects/p1/comments/nope/replies",
            json={"content": "hi"},
            headers=headers_for("alice"),
        )
        assert missing.status_code == 404

    async def test_delete_comment(self, client, seeded_store):
        forbidden = await client.delete("/api/projects/p1/comments/c1", headers=headers_for("alice"))
        assert forbidden.status_code == 403

        response = await client.delete("/api/projects/p1/comments/c1", headers=headers_for("bob"))

        assert response.status_code == 204
        assert seeded_store.paths_under("projects/p1/comments/c1") == []


class TestIssueEndpoints:
    async def test_create_issue(self, client, seeded_store):
        response = await client.post(
            "/api/projects/p1/issues",
            json={"title": "Launch", "assignees": ["bob"], "todos": [{"title": "Draft", "assignee": "carol"}]},
            headers=headers_for("alice"),
        )

        assert response.status_code == 201
        body = response.json()
        assert body["issue"]["title"] == "Launch"
        assert body["todos"][0]["issueTitle"] == "Launch"
        assert body["notifications_created"] == 2

    async def test_non_member_cannot_create_issue(self, client, seeded_store):
        response = await client.post(
            "/api/projects/p1/issues", json={"title": "x"}, headers=headers_for("dave")
        )
        assert response.status_code == 403


class TestNotificationEndpoints:
    """Tests for the caller's notification feed."""

    async def _mention_bob(self, client) -> None:
        await client.post(
            "/api/projects/p1/comments",
            json={"content": "@bob first"},
            headers=headers_for("alice"),
        )
        await client.post(
            "/api/projects/p1/comments",
            json={"content": "@bob second"},
            headers=headers_for("carol"),
        )

    async def test_list_and_count(self, client, seeded_store):
        await self._mention_bob(client)

        response = await client.get("/api/notifications", headers=headers_for("bob"))

        assert response.status_code == 200
        items = response.json()
        assert len(items) == 2
        assert all(item["type"] == "mention" and item["projectId"] == "p1" for item in items)

        count = await client.get("/api/notifications/count", headers=headers_for("bob"))
        assert count.json() == {"total": 2, "unread": 2}

        nothing = await client.get("/api/notifications", headers=headers_for("carol"))
        assert nothing.json() == []

    async def test_mark_read_and_hide(self, client, seeded_store):
        await self._mention_bob(client)
        items = (await client.get("/api/notifications", headers=headers_for("bob"))).json()
        first, second = items[0]["id"], items[1]["id"]

        read = await client.put(f"/api/notifications/{first}/read", headers=headers_for("bob"))
        assert read.status_code == 200
        assert read.json()["read"] is True

        hidden = await client.delete(f"/api/notifications/{second}", headers=headers_for("bob"))
        assert hidden.status_code == 204

        count = await client.get("/api/notifications/count", headers=headers_for("bob"))
        assert count.json() == {"total": 1, "unread": 0}

    async def test_mark_all_read(self, client, seeded_store):
        await self._mention_bob(client)

        response = await client.put("/api/notifications/read-all", headers=headers_for("bob"))

        assert response.json() == {"updated": 2}
        unread = await client.get(
            "/api/notifications", params={"unread_only": True}, headers=headers_for("bob")
        )
        assert unread.json() == []

    async def test_other_users_notification_is_not_found(self, client, seeded_store):
        await self._mention_bob(client)
        notification_id = (await client.get("/api/notifications", headers=headers_for("bob"))).json()[0]["id"]

        response = await client.put(
            f"/api/notifications/{notification_id}/read", headers=headers_for("carol")
        )
        assert response.status_code == 404

    async def test_archived_project_accepts_no_comments(self, client, store):
        seed_project(store, project_id="p2")
        await client.post("/api/projects/p2/archive", headers=headers_for("alice"))

        response = await client.post(
            "/api/projects/p2/comments",
            json={"content": "late"},
            headers=headers_for("alice"),
        )
        assert response.status_code == 404
