"""Tests for the telemetry GraphQL client."""

from __future__ import annotations

import json

import httpx
import pytest

from codechrono.exceptions import RemoteError
from codechrono.models import DailyActivitySummary, FileActivitySummary, GitCommit
from codechrono.remote import (
    SYNC_COMMITS,
    SYNC_DAILY_STATS,
    SYNC_FILE_ACTIVITIES,
    RemoteClient,
    daily_stats_input,
)

ENDPOINT = "https://api.test/graphql"


class MockTransport(httpx.AsyncBaseTransport):
    """Records requests and replies with a canned response or error."""

    def __init__(self):
        self.requests: list[httpx.Request] = []
        self.status_code = 200
        self.body: object = None
        self.raw: bytes | None = None
        self.error: Exception | None = None

    def reply(self, field: str, success: bool = True, message: str | None = None):
        self.body = {"data": {field: {"success": success, "message": message}}}

    async def handle_async_request(self, request: httpx.Request) -> httpx.Response:
        self.requests.append(request)
        if self.error is not None:
            raise self.error
        if self.raw is not None:
            return httpx.Response(self.status_code, content=self.raw, request=request)
        return httpx.Response(self.status_code, json=self.body, request=request)

    def last_json(self) -> dict:
        return json.loads(self.requests[-1].content)


@pytest.fixture
def transport():
    return MockTransport()


@pytest.fixture
async def client(transport):
    c = RemoteClient(ENDPOINT, token="cc_test", transport=transport)
    yield c
    await c.close()


def file_summary(**kw):
    base = dict(
        project_path="/r",
        commit_hash="c1",
        branch="main",
        file_path="/r/a.py",
        editor="vscode",
        language="python",
        total_duration=3000,
        activity_count=2,
        first_activity_at=1,
        last_activity_at=2,
        last_activity_id=9,
    )
    base.update(kw)
    return FileActivitySummary(**base)


def daily(**kw):
    base = dict(
        date="2025-06-08",
        project_path="/r",
        total_duration=1750,
        language_breakdown={"python": 1250, "markdown": 500},
        files_edited=["/r/a.md", "/r/a.py", "/r/b.py"],
        commit_count=2,
    )
    base.update(kw)
    return DailyActivitySummary(**base)


def git_commit():
    return GitCommit(
        project_path="/r",
        commit_hash="c1",
        message="fix",
        author="Dev",
        author_email="dev@example.com",
        timestamp=1_700_000_000_000,
        files_changed=1,
        lines_added=1,
        lines_deleted=1,
        branch=None,
        id=4,
    )


# ─── Requests ────────────────────────────────────────────────────────


class TestRequests:
    async def test_file_activities_payload(self, client, transport):
        transport.reply("syncFileActivities")
        assert await client.sync_file_activities([file_summary()]) is True

        req = transport.requests[-1]
        assert str(req.url) == ENDPOINT
        assert req.method == "POST"
        assert req.headers["Authorization"] == "Bearer cc_test"
        assert req.headers["Content-Type"] == "application/json"

        body = transport.last_json()
        assert body["query"] == SYNC_FILE_ACTIVITIES
        item = body["variables"]["input"][0]
        assert item == {
            "projectPath": "/r",
            "commitHash": "c1",
            "branch": "main",
            "filePath": "/r/a.py",
            "language": "python",
            "totalDuration": 3000,
            "activityCount": 2,
            "firstActivityAt": 1,
            "lastActivityAt": 2,
            "editor": "vscode",
        }

    async def test_daily_stats_payload(self, client, transport):
        transport.reply("syncDailyStats")
        assert await client.sync_daily_stats([daily()]) is True
        body = transport.last_json()
        assert body["query"] == SYNC_DAILY_STATS
        item = body["variables"]["input"][0]
        assert item["filesEdited"] == 3
        assert item["commitCount"] == 2
        assert json.loads(item["languageBreakdown"]) == {"python": 1250, "markdown": 500}

    async def test_commits_payload(self, client, transport):
        transport.reply("syncCommits")
        assert await client.sync_commits([git_commit()]) is True
        body = transport.last_json()
        assert body["query"] == SYNC_COMMITS
        item = body["variables"]["input"][0]
        assert item["authorEmail"] == "dev@example.com"
        assert item["linesDeleted"] == 1
        assert item["branch"] is None
        assert "id" not in item

    async def test_empty_input_sends_nothing(self, client, transport):
        assert await client.sync_file_activities([]) is True
        assert await client.sync_daily_stats([]) is True
        assert await client.sync_commits([]) is True
        assert transport.requests == []

    async def test_no_token_omits_authorization(self, transport):
        c = RemoteClient(ENDPOINT, transport=transport)
        transport.reply("syncCommits")
        try:
            assert c.has_token is False
            await c.sync_commits([git_commit()])
        finally:
            await c.close()
        assert "Authorization" not in transport.requests[-1].headers

    async def test_update_token(self, transport):
        c = RemoteClient(ENDPOINT, transport=transport)
        transport.reply("syncCommits")
        try:
            c.update_token("cc_new")
            await c.sync_commits([git_commit()])
        finally:
            await c.close()
        assert transport.requests[-1].headers["Authorization"] == "Bearer cc_new"

    def test_daily_input_sends_file_count(self):
        assert daily_stats_input(daily(files_edited=[]))["filesEdited"] == 0


# ─── Failures ────────────────────────────────────────────────────────


class TestFailures:
    async def test_rejected(self, client, transport):
        transport.reply("syncCommits", success=False, message="quota exceeded")
        assert await client.sync_commits([git_commit()]) is False

    async def test_graphql_errors(self, client, transport):
        transport.body = {"errors": [{"message": "Unauthorized"}], "data": None}
        assert await client.sync_commits([git_commit()]) is False
        with pytest.raises(RemoteError, match="Unauthorized"):
            await client._mutate(SYNC_COMMITS, "syncCommits", {"input": []})

    async def test_http_error_status(self, client, transport):
        transport.status_code = 500
        transport.body = {"error": "boom"}
        assert await client.sync_daily_stats([daily()]) is False
        with pytest.raises(RemoteError) as exc:
            await client._mutate(SYNC_DAILY_STATS, "syncDailyStats", {"input": []})
        assert exc.value.status_code == 500

    async def test_invalid_json(self, client, transport):
        transport.raw = b"<html>gateway</html>"
        assert await client.sync_file_activities([file_summary()]) is False

    async def test_missing_payload(self, client, transport):
        transport.body = {"data": {}}
        assert await client.sync_file_activities([file_summary()]) is False

    async def test_network_error(self, client, transport):
        transport.error = httpx.ConnectError("connection refused")
        assert await client.sync_commits([git_commit()]) is False
        with pytest.raises(RemoteError) as exc:
            await client._mutate(SYNC_COMMITS, "syncCommits", {"input": []})
        assert exc.value.status_code == 0

    async def test_timeout(self, client, transport):
        transport.error = httpx.ReadTimeout("too slow")
        with pytest.raises(RemoteError) as exc:
            await client._mutate(SYNC_COMMITS, "syncCommits", {"input": []})
        assert exc.value.status_code == 408
