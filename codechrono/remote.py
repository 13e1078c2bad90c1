# This file is part of CodeChrono.
# Licensed under the Business Source License 1.1 (BSL 1.1).
# See top-level LICENSE file for details.
# Change Date: 2030-01-01 (Transitions to Apache 2.0)

"""CodeChrono: Telemetry service client.

Async GraphQL-over-HTTPS client for the three sync mutations. The public
``sync_*`` methods never raise: any failure is logged and reported as
``False`` so the sync engine keeps the batch and resends it next cycle.
"""

from __future__ import annotations

import json
import logging
from typing import Any, Optional

import httpx
from pydantic import BaseModel, ValidationError

from codechrono import config
from codechrono.exceptions import RemoteError
from codechrono.models import DailyActivitySummary, FileActivitySummary, GitCommit

logger = logging.getLogger("codechrono.remote")

# ─── Mutations ───────────────────────────────────────────────────────

SYNC_FILE_ACTIVITIES = """
mutation SyncFileActivities($input: [FileActivityInput!]!) {
  syncFileActivities(input: $input) {
    success
    message
  }
}
"""

SYNC_DAILY_STATS = """
mutation SyncDailyStats($input: [DailyStatsInput!]!) {
  syncDailyStats(input: $input) {
    success
    message
  }
}
"""

SYNC_COMMITS = """
mutation SyncCommits($input: [CommitInput!]!) {
  syncCommits(input: $input) {
    success
    message
  }
}
"""


class MutationResult(BaseModel):
    success: bool
    message: Optional[str] = None


# ─── Input Mapping ───────────────────────────────────────────────────


def file_activity_input(summary: FileActivitySummary) -> dict[str, Any]:
    return {
        "projectPath": summary.project_path,
        "commitHash": summary.commit_hash,
        "branch": summary.branch,
        "filePath": summary.file_path,
        "language": summary.language,
        "totalDuration": summary.total_duration,
        "activityCount": summary.activity_count,
        "firstActivityAt": summary.first_activity_at,
        "lastActivityAt": summary.last_activity_at,
        "editor": summary.editor,
    }


def daily_stats_input(stat: DailyActivitySummary) -> dict[str, Any]:
    return {
        "date": stat.date,
        "projectPath": stat.project_path,
        "totalDuration": stat.total_duration,
        "languageBreakdown": json.dumps(stat.language_breakdown),
        "filesEdited": len(stat.files_edited),
        "commitCount": stat.commit_count,
    }


def commit_input(commit: GitCommit) -> dict[str, Any]:
    return {
        "projectPath": commit.project_path,
        "commitHash": commit.commit_hash,
        "message": commit.message,
        "author": commit.author,
        "authorEmail": commit.author_email,
        "timestamp": commit.timestamp,
        "filesChanged": commit.files_changed,
        "linesAdded": commit.lines_added,
        "linesDeleted": commit.lines_deleted,
        "branch": commit.branch,
    }


# ─── Client ──────────────────────────────────────────────────────────


class RemoteClient:
    """Async client for the telemetry GraphQL endpoint.

    A missing token is allowed: requests go out without ``Authorization``
    and the service is expected to reject them.

    Usage::

        async with RemoteClient(token="cc_...") as remote:
            ok = await remote.sync_commits(commits)
    """

    def __init__(
        self,
        endpoint: str | None = None,
        token: str | None = None,
        *,
        timeout: float | None = None,
        transport: httpx.AsyncBaseTransport | None = None,
    ):
        self.endpoint = endpoint or config.API_URL
        self._token = token or ""
        self._client = httpx.AsyncClient(
            timeout=config.HTTP_TIMEOUT if timeout is None else timeout,
            headers=self._headers(),
            transport=transport,
        )

    def _headers(self) -> dict[str, str]:
        h = {"Content-Type": "application/json"}
        if self._token:
            h["Authorization"] = f"Bearer {self._token}"
        return h

    @property
    def has_token(self) -> bool:
        return bool(self._token)

    def update_token(self, token: str) -> None:
        """Use ``token`` for every request from now on."""
        self._token = token or ""
        if self._token:
            self._client.headers["Authorization"] = f"Bearer {self._token}"
        else:
            self._client.headers.pop("Authorization", None)

    async def __aenter__(self) -> RemoteClient:
        return self

    async def __aexit__(self, *args: Any) -> None:
        await self.close()

    async def close(self) -> None:
        """Shut down the HTTP client."""
        await self._client.aclose()

    # ─── Internal ────────────────────────────────────────────────────

    async def _mutate(self, query: str, field: str, variables: dict[str, Any]) -> MutationResult:
        """POST a mutation and return its ``{success, message}`` payload."""
        try:
            resp = await self._client.post(
                self.endpoint, json={"query": query, "variables": variables}
            )
        except httpx.TimeoutException as e:
            raise RemoteError(408, f"Request timed out: {e}") from e
        except httpx.HTTPError as e:
            raise RemoteError(0, f"HTTP error: {e}") from e

        if resp.status_code >= 400:
            raise RemoteError(resp.status_code, resp.text[:200])

        try:
            body = resp.json()
        except ValueError as e:
            raise RemoteError(resp.status_code, f"Invalid JSON response: {e}") from e

        if not isinstance(body, dict):
            raise RemoteError(resp.status_code, "Unexpected response shape")
        errors = body.get("errors")
        if errors:
            detail = "; ".join(
                str(err.get("message", err)) if isinstance(err, dict) else str(err)
                for err in errors
            )
            raise RemoteError(resp.status_code, detail)

        payload = (body.get("data") or {}).get(field)
        try:
            return MutationResult.model_validate(payload)
        except ValidationError as e:
            raise RemoteError(resp.status_code, f"Invalid {field} payload: {e}") from e

    async def _sync(self, query: str, field: str, items: list[dict[str, Any]]) -> bool:
        try:
            result = await self._mutate(query, field, {"input": items})
        except RemoteError as e:
            logger.error("Failed to %s: %s", field, e)
            return False
        if not result.success:
            logger.warning("%s rejected: %s", field, result.message or "no message")
            return False
        return True

    # ─── Sync Operations ─────────────────────────────────────────────

    async def sync_file_activities(self, summaries: list[FileActivitySummary]) -> bool:
        """Upload per-file activity summaries."""
        if not summaries:
            return True
        ok = await self._sync(
            SYNC_FILE_ACTIVITIES,
            "syncFileActivities",
            [file_activity_input(s) for s in summaries],
        )
        if ok:
            logger.info("Synced %d file activity summaries to %s", len(summaries), self.endpoint)
        return ok

    async def sync_daily_stats(self, stats: list[DailyActivitySummary]) -> bool:
        """Upload per-day, per-project totals."""
        if not stats:
            return True
        ok = await self._sync(
            SYNC_DAILY_STATS,
            "syncDailyStats",
            [daily_stats_input(s) for s in stats],
        )
        if ok:
            logger.info("Synced %d daily stats summaries", len(stats))
        return ok

    async def sync_commits(self, commits: list[GitCommit]) -> bool:
        """Upload observed commits."""
        if not commits:
            return True
        ok = await self._sync(SYNC_COMMITS, "syncCommits", [commit_input(c) for c in commits])
        if ok:
            logger.info("Synced %d commits to %s", len(commits), self.endpoint)
        return ok
