"""HTTP surface tests using FastAPI's TestClient."""

import asyncio

from app.api.routes import format_sse, stream_issues
from app.schemas.issue import IssueStatus


class TestHealth:
    def test_health(self, client):
        assert client.get("/health").json() == {"status": "ok"}


class TestCreateIssue:
    def test_create_defaults(self, client):
        resp = client.post("/issues", json={"title": "Crash on startup"}, headers={"x-user-email": "Dev@Example.com"})

        assert resp.status_code == 201
        body = resp.json()
        assert body["state"] == "created"
        assert body["messages"] == ["Issue created!"]
        assert body["error"] is None

        issue = client.get(f"/issues/{body['issue_id']}").json()
        assert issue["status"] == "Open"
        assert issue["priority"] == "Medium"
        assert issue["created_by"] == "dev@example.com"
        assert issue["keywords"] == ["crash", "startup"]

    def test_anonymous_create(self, client):
        body = client.post("/issues", json={"title": "Crash on startup"}).json()
        assert client.get(f"/issues/{body['issue_id']}").json()["created_by"] == "Anonymous"

    def test_blank_title_rejected(self, client):
        assert client.post("/issues", json={"title": "   "}).status_code == 422

    def test_bad_priority_rejected(self, client):
        assert client.post("/issues", json={"title": "Crash on startup", "priority": "Urgent"}).status_code == 422

    def test_check_disabled_by_default(self, client, make_issue):
        make_issue("Login page crashes on submit")

        resp = client.post("/issues", json={"title": "Login page crashes when submitting"})

        assert resp.status_code == 201
        assert len(client.get("/issues").json()) == 2

    def test_duplicate_warning_then_force(self, checking_client, make_issue):
        existing = make_issue("Login page crashes on submit")
        draft = {"title": "Login page crashes when submitting", "priority": "High"}

        resp = checking_client.post("/issues", json=draft)

        assert resp.status_code == 409
        body = resp.json()
        assert body["state"] == "warning"
        assert [c["issue"]["id"] for c in body["candidates"]] == [existing.id]
        assert body["candidates"][0]["score"] > 0.4
        assert len(checking_client.get("/issues").json()) == 1

        forced = checking_client.post("/issues", json={**draft, "force": True})

        assert forced.status_code == 201
        assert forced.json()["state"] == "created"
        assert len(checking_client.get("/issues").json()) == 2


class TestDuplicateCheck:
    def test_on_demand_check_finds_duplicate(self, client, make_issue):
        existing = make_issue("Crash on startup")

        body = client.post("/issues/duplicates", json={"title": "Crash on startup screen"}).json()

        assert body["has_duplicates"] is True
        assert body["candidates"][0]["issue"]["id"] == existing.id

    def test_short_title(self, client, make_issue):
        make_issue("Crash on startup")

        body = client.post("/issues/duplicates", json={"title": "Hi"}).json()

        assert body == {"has_duplicates": False, "candidates": []}


class TestListAndStatus:
    def test_list_filters_and_order(self, client, make_issue):
        older = make_issue("Crash on startup")
        newer = make_issue("Export button missing", status=IssueStatus.IN_PROGRESS)

        assert [i["id"] for i in client.get("/issues").json()] == [newer.id, older.id]
        assert [i["id"] for i in client.get("/issues", params={"order": "asc"}).json()] == [older.id, newer.id]
        assert [i["id"] for i in client.get("/issues", params={"status": "In Progress"}).json()] == [newer.id]
        assert client.get("/issues", params={"priority": "High"}).json() == []

    def test_bad_order(self, client):
        assert client.get("/issues", params={"order": "sideways"}).status_code == 422

    def test_unknown_issue(self, client):
        assert client.get("/issues/nope").status_code == 404

    def test_status_rule(self, client, make_issue):
        issue = make_issue("Crash on startup")

        rejected = client.patch(f"/issues/{issue.id}/status", json={"status": "Done"})
        assert rejected.status_code == 422
        assert "In Progress" in rejected.json()["detail"]

        assert client.patch(f"/issues/{issue.id}/status", json={"status": "In Progress"}).json()["status"] == "In Progress"
        assert client.patch(f"/issues/{issue.id}/status", json={"status": "Done"}).json()["status"] == "Done"

    def test_status_unknown_issue(self, client):
        assert client.patch("/issues/nope/status", json={"status": "Done"}).status_code == 404


class TestUsers:
    def test_register_and_list(self, client):
        resp = client.post("/users", json={"email": " Amy@Example.com "})

        assert resp.status_code == 201
        assert resp.json()["name"] == "amy"
        assert [u["email"] for u in client.get("/users").json()] == ["amy@example.com"]

    def test_invalid_email(self, client):
        assert client.post("/users", json={"email": "not-an-email"}).status_code == 422


class TestSse:
    def test_format(self):
        assert format_sse("snapshot", [{"id": "a"}]) == 'event: snapshot\ndata: [{"id": "a"}]\n\n'

    def test_stream_sends_snapshot_and_releases_subscription(self, board, make_issue):
        make_issue("Crash on startup")

        async def drive():
            response = await stream_issues(DisconnectingRequest(after=1), board=board)
            assert board.feed.subscriber_count == 1
            chunks = [chunk async for chunk in response.body_iterator]
            return response, chunks

        response, chunks = asyncio.run(drive())

        assert response.media_type == "text/event-stream"
        assert response.headers["cache-control"] == "no-cache"
        assert response.headers["x-accel-buffering"] == "no"
        assert len(chunks) == 1
        assert chunks[0].startswith("event: snapshot\n")
        assert "Crash on startup" in chunks[0]
        assert board.feed.subscriber_count == 0


class DisconnectingRequest:
    """Reports the client as connected for ``after`` polls, then gone."""

    def __init__(self, after: int) -> None:
        self.remaining = after

    async def is_disconnected(self) -> bool:
        if self.remaining <= 0:
            return True
        self.remaining -= 1
        return False
