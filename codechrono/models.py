# This file is part of CodeChrono.
# Licensed under the Business Source License 1.1 (BSL 1.1).
# See top-level LICENSE file for details.
# Change Date: 2030-01-01 (Transitions to Apache 2.0)

"""Activity, aggregate and commit data classes."""

from __future__ import annotations

from dataclasses import dataclass, field
from typing import Optional


# ─── Raw Activity ────────────────────────────────────────────────────


@dataclass(frozen=True)
class ActivityEvent:
    """A host notification that the user touched a file. Never persisted."""
    file_path: str
    language: str
    timestamp: int  # epoch ms


@dataclass
class ActivityLog:
    """One accepted interaction with the time attributed to it."""
    project_path: str
    file_path: str
    language: str
    timestamp: int
    duration: int  # ms
    editor: str
    commit_hash: Optional[str] = None
    branch: Optional[str] = None
    id: Optional[int] = None


# ─── Aggregates ──────────────────────────────────────────────────────


@dataclass
class FileActivitySummary:
    """Pending activity for one file at one commit/branch.

    ``last_activity_id`` bounds the raw rows the summary covers, so rows
    recorded after the summary was read are not retired with it.
    """
    project_path: str
    commit_hash: Optional[str]
    branch: Optional[str]
    file_path: str
    editor: str
    language: str
    total_duration: int
    activity_count: int
    first_activity_at: int
    last_activity_at: int
    last_activity_id: int


@dataclass
class DailyActivitySummary:
    """Activity for one project on one local calendar date."""
    date: str
    project_path: str
    total_duration: int
    language_breakdown: dict[str, int] = field(default_factory=dict)
    files_edited: list[str] = field(default_factory=list)
    commit_count: int = 0


# ─── Version Control ─────────────────────────────────────────────────


@dataclass
class GitCommit:
    """A HEAD change observed on a repository root."""
    project_path: str
    commit_hash: str
    message: str
    author: str
    author_email: str
    timestamp: int  # epoch ms
    files_changed: int
    lines_added: int
    lines_deleted: int
    branch: Optional[str] = None
    id: Optional[int] = None


@dataclass
class RepositoryRootState:
    """Last known HEAD and branch of a root. Lives only in memory."""
    root: str
    commit_hash: Optional[str] = None
    branch: Optional[str] = None


@dataclass
class DiffStat:
    files_changed: int = 0
    lines_added: int = 0
    lines_deleted: int = 0


# ─── Sync ────────────────────────────────────────────────────────────


@dataclass
class SyncResult:
    """Outcome of one sync cycle."""

    activities_flushed: int = 0
    daily_synced: int = 0
    files_synced: int = 0
    commits_synced: int = 0
    failed_batches: int = 0
    errors: list[str] = field(default_factory=list)

    @property
    def total(self) -> int:
        return self.daily_synced + self.files_synced + self.commits_synced

    @property
    def had_failures(self) -> bool:
        return self.failed_batches > 0 or bool(self.errors)
