"""Tests for LocalStore persistence and aggregation."""

from __future__ import annotations

from datetime import datetime

import pytest

from codechrono.exceptions import StoreError, StoreInitError
from codechrono.models import ActivityLog, GitCommit
from codechrono.store import LocalStore


def local_ms(day: str, hour: int = 12) -> int:
    """Epoch ms for ``hour``:00 local time on ``day``."""
    y, m, d = (int(x) for x in day.split("-"))
    return int(datetime(y, m, d, hour).timestamp() * 1000)


def log(file_path="/r/a.py", ts=None, duration=1000, *, project="/r", language="python",
        commit="c1", branch="main", editor="vscode"):
    return ActivityLog(
        project_path=project,
        file_path=file_path,
        language=language,
        timestamp=ts if ts is not None else local_ms("2025-06-05"),
        duration=duration,
        editor=editor,
        commit_hash=commit,
        branch=branch,
    )


def commit(h="c1", project="/r"):
    return GitCommit(
        project_path=project,
        commit_hash=h,
        message=f"commit {h}",
        author="Dev",
        author_email="dev@example.com",
        timestamp=1_700_000_000_000,
        files_changed=2,
        lines_added=10,
        lines_deleted=3,
        branch="main",
    )


# ─── Lifecycle ───────────────────────────────────────────────────────


class TestLifecycle:
    async def test_init_creates_parent_dirs(self, tmp_path):
        s = LocalStore(tmp_path / "a" / "b" / "c.db")
        await s.init()
        assert s.is_open
        assert (tmp_path / "a" / "b" / "c.db").exists()
        await s.close()
        assert not s.is_open

    async def test_init_twice_is_safe(self, store):
        await store.init()
        assert store.is_open

    async def test_init_failure(self, tmp_path):
        blocker = tmp_path / "file"
        blocker.write_text("not a directory")
        s = LocalStore(blocker / "codechrono.db")
        with pytest.raises(StoreInitError):
            await s.init()
        assert not s.is_open

    async def test_use_before_init(self, tmp_path):
        s = LocalStore(tmp_path / "x.db")
        with pytest.raises(StoreError):
            await s.insert_activity(log())

    async def test_data_survives_reopen(self, tmp_path):
        path = tmp_path / "persist.db"
        s = LocalStore(path)
        await s.init()
        await s.insert_activity(log())
        await s.insert_commit(commit())
        await s.close()

        s2 = LocalStore(path)
        await s2.init()
        counts = await s2.pending_counts()
        await s2.close()
        assert counts == {"activities": 1, "pending_file_activities": 1, "commits": 1}


# ─── File Aggregates ─────────────────────────────────────────────────


class TestFileAggregates:
    async def test_groups_by_file_commit_branch(self, store):
        t = local_ms("2025-06-05")
        await store.insert_activity(log("/r/a.py", t, 0))
        await store.insert_activity(log("/r/a.py", t + 3000, 3000))
        await store.insert_activity(log("/r/b.py", t + 6000, 3000))
        await store.insert_activity(log("/r/a.py", t + 9000, 3000, commit="c2"))

        summaries = await store.get_aggregated_activities()
        assert [(s.file_path, s.commit_hash) for s in summaries] == [
            ("/r/a.py", "c1"),
            ("/r/b.py", "c1"),
            ("/r/a.py", "c2"),
        ]
        first = summaries[0]
        assert first.total_duration == 3000
        assert first.activity_count == 2
        assert first.first_activity_at == t
        assert first.last_activity_at == t + 3000
        assert first.branch == "main"
        assert first.editor == "vscode"
        assert first.language == "python"

    async def test_null_commit_and_branch_group_together(self, store):
        await store.insert_activity(log(commit=None, branch=None, duration=5))
        await store.insert_activity(log(commit=None, branch=None, duration=7))
        summaries = await store.get_aggregated_activities()
        assert len(summaries) == 1
        assert summaries[0].commit_hash is None
        assert summaries[0].total_duration == 12

        await store.delete_aggregated_activities(summaries)
        assert await store.get_aggregated_activities() == []

    async def test_limit(self, store):
        for i in range(5):
            await store.insert_activity(log(f"/r/{i}.py"))
        assert len(await store.get_aggregated_activities(3)) == 3

    async def test_retire_covers_only_summarised_rows(self, store):
        await store.insert_activity(log(duration=100))
        summaries = await store.get_aggregated_activities()
        # Arrives after the summary was read.
        await store.insert_activity(log(duration=200))

        retired = await store.delete_aggregated_activities(summaries)
        assert retired == 1

        remaining = await store.get_aggregated_activities()
        assert len(remaining) == 1
        assert remaining[0].total_duration == 200

    async def test_retired_rows_still_count_for_daily(self, store):
        await store.insert_activity(log(duration=100))
        await store.delete_aggregated_activities(await store.get_aggregated_activities())
        daily = await store.get_daily_aggregated_activities()
        assert daily[0].total_duration == 100


# ─── Daily Aggregates ────────────────────────────────────────────────


class TestDailyAggregates:
    async def test_per_project_per_day(self, store):
        d1, d2 = local_ms("2025-06-04"), local_ms("2025-06-05")
        await store.insert_activity(log("/r/a.py", d1, 1000))
        await store.insert_activity(log("/r/a.md", d1 + 1, 500, language="markdown", commit="c2"))
        await store.insert_activity(log("/r/b.py", d1 + 2, 250, commit=None))
        await store.insert_activity(log("/r/a.py", d2, 40))
        await store.insert_activity(log("/s/x.go", d1, 7, project="/s", language="go"))

        daily = await store.get_daily_aggregated_activities()
        keys = [(s.date, s.project_path) for s in daily]
        assert keys == [("2025-06-05", "/r"), ("2025-06-04", "/s"), ("2025-06-04", "/r")]

        r4 = daily[2]
        assert r4.total_duration == 1750
        assert r4.language_breakdown == {"python": 1250, "markdown": 500}
        assert r4.files_edited == ["/r/a.md", "/r/a.py", "/r/b.py"]
        assert r4.commit_count == 2

    async def test_day_boundary_uses_local_time(self, store):
        await store.insert_activity(log(ts=local_ms("2025-06-05", 0) + 60_000))
        await store.insert_activity(log(ts=local_ms("2025-06-04", 23)))
        dates = sorted(s.date for s in await store.get_daily_aggregated_activities())
        assert dates == ["2025-06-04", "2025-06-05"]

    async def test_limit_keeps_most_recent(self, store):
        for day in ("2025-06-01", "2025-06-02", "2025-06-03"):
            await store.insert_activity(log(ts=local_ms(day)))
        daily = await store.get_daily_aggregated_activities(2)
        assert [s.date for s in daily] == ["2025-06-03", "2025-06-02"]

    async def test_delete_before_date(self, store):
        for day in ("2025-06-02", "2025-06-03", "2025-06-04"):
            await store.insert_activity(log(ts=local_ms(day)))
        deleted = await store.delete_activities_before_date("2025-06-03")
        assert deleted == 1
        dates = sorted(s.date for s in await store.get_daily_aggregated_activities())
        assert dates == ["2025-06-03", "2025-06-04"]


# ─── Commits ─────────────────────────────────────────────────────────


class TestCommits:
    async def test_oldest_first_and_delete_by_id(self, store):
        for h in ("c1", "c2", "c3"):
            await store.insert_commit(commit(h))
        pending = await store.get_unsynced_commits(2)
        assert [c.commit_hash for c in pending] == ["c1", "c2"]
        assert all(c.id is not None for c in pending)
        assert pending[0].branch == "main"
        assert pending[0].lines_added == 10

        await store.delete_commits([c.id for c in pending])
        assert [c.commit_hash for c in await store.get_unsynced_commits()] == ["c3"]

    async def test_delete_nothing(self, store):
        assert await store.delete_commits([]) == 0
