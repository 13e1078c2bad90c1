# This file is part of CodeChrono.
# Licensed under the Business Source License 1.1 (BSL 1.1).
# See top-level LICENSE file for details.
# Change Date: 2030-01-01 (Transitions to Apache 2.0)

"""
CodeChrono: Local durable store.

One WAL-mode aiosqlite connection shared by the recorder (activity rows),
the repository correlator (commit rows) and the sync engine, which is the
only caller allowed to delete. All access happens on the event loop, so
writes are serialized without extra locking.
"""

from __future__ import annotations

import logging
import sqlite3
from pathlib import Path
from typing import Optional

import aiosqlite

from codechrono.exceptions import StoreError, StoreInitError
from codechrono.models import (
    ActivityLog,
    DailyActivitySummary,
    FileActivitySummary,
    GitCommit,
)
from codechrono.schema import ALL_SCHEMA, get_init_meta

logger = logging.getLogger("codechrono.store")

# Local calendar date of an epoch-ms column.
_LOCAL_DATE = "date(timestamp / 1000, 'unixepoch', 'localtime')"

_SUMMARY_KEY = ("project_path", "commit_hash", "branch", "file_path", "editor")


class LocalStore:
    """Persistent queue of activity rows and observed commits.

    Usage:
        store = LocalStore("~/.codechrono/codechrono.db")
        await store.init()
        await store.insert_activity(log)
        summaries = await store.get_aggregated_activities(50)
        await store.close()
    """

    def __init__(self, db_path: str | Path):
        self.db_path = Path(db_path).expanduser()
        self._db: Optional[aiosqlite.Connection] = None

    @property
    def _conn(self) -> aiosqlite.Connection:
        if self._db is None:
            raise StoreError("Local store is not initialized")
        return self._db

    @property
    def is_open(self) -> bool:
        return self._db is not None

    # ─── Lifecycle ───────────────────────────────────────────────────

    async def init(self) -> None:
        """Open the database and apply the schema. Safe to call twice."""
        if self._db is not None:
            return
        try:
            self.db_path.parent.mkdir(parents=True, exist_ok=True)
            conn = await aiosqlite.connect(str(self.db_path))
        except (OSError, sqlite3.Error) as e:
            logger.critical("Failed to open local store at %s: %s", self.db_path, e)
            raise StoreInitError(f"Cannot open local store at {self.db_path}: {e}") from e

        try:
            await conn.execute("PRAGMA journal_mode=WAL;")
            await conn.execute("PRAGMA synchronous=NORMAL;")
            await conn.execute("PRAGMA busy_timeout=5000;")
            for stmt in ALL_SCHEMA:
                await conn.executescript(stmt)
            for k, v in get_init_meta():
                await conn.execute(
                    "INSERT OR IGNORE INTO codechrono_meta (key, value) VALUES (?, ?)",
                    (k, v),
                )
            await conn.commit()
        except sqlite3.Error as e:
            await conn.close()
            logger.critical("Failed to migrate local store at %s: %s", self.db_path, e)
            raise StoreInitError(f"Cannot initialize schema at {self.db_path}: {e}") from e

        self._db = conn
        logger.info("Local store initialized at %s", self.db_path)

    async def close(self) -> None:
        if self._db is None:
            return
        try:
            await self._db.commit()
            await self._db.close()
        finally:
            self._db = None
        logger.info("Local store closed")

    # ─── Writes ──────────────────────────────────────────────────────

    async def insert_activity(self, log: ActivityLog) -> int:
        cursor = await self._conn.execute(
            "INSERT INTO activities "
            "(project_path, file_path, language, timestamp, duration, editor, commit_hash, branch) "
            "VALUES (?, ?, ?, ?, ?, ?, ?, ?)",
            (
                log.project_path,
                log.file_path,
                log.language,
                log.timestamp,
                log.duration,
                log.editor,
                log.commit_hash,
                log.branch,
            ),
        )
        await self._conn.commit()
        return cursor.lastrowid

    async def insert_commit(self, commit: GitCommit) -> int:
        cursor = await self._conn.execute(
            "INSERT INTO git_commits "
            "(project_path, commit_hash, message, author, author_email, timestamp, "
            "files_changed, lines_added, lines_deleted, branch) "
            "VALUES (?, ?, ?, ?, ?, ?, ?, ?, ?, ?)",
            (
                commit.project_path,
                commit.commit_hash,
                commit.message,
                commit.author,
                commit.author_email,
                commit.timestamp,
                commit.files_changed,
                commit.lines_added,
                commit.lines_deleted,
                commit.branch,
            ),
        )
        await self._conn.commit()
        logger.debug("Stored commit %s for %s", commit.commit_hash[:8], commit.project_path)
        return cursor.lastrowid

    # ─── File Activity Aggregates ────────────────────────────────────

    async def get_aggregated_activities(self, limit: int = 50) -> list[FileActivitySummary]:
        """Pending activity grouped per file, commit and branch, oldest first."""
        key = ", ".join(_SUMMARY_KEY)
        async with self._conn.execute(
            f"SELECT {key}, MAX(language), SUM(duration), COUNT(*), "
            f"MIN(timestamp), MAX(timestamp), MAX(id) "
            f"FROM activities WHERE file_synced = 0 "
            f"GROUP BY {key} ORDER BY MIN(id) ASC LIMIT ?",
            (limit,),
        ) as cursor:
            rows = await cursor.fetchall()
        return [
            FileActivitySummary(
                project_path=r[0],
                commit_hash=r[1],
                branch=r[2],
                file_path=r[3],
                editor=r[4],
                language=r[5] or "",
                total_duration=r[6] or 0,
                activity_count=r[7],
                first_activity_at=r[8],
                last_activity_at=r[9],
                last_activity_id=r[10],
            )
            for r in rows
        ]

    async def delete_aggregated_activities(self, summaries: list[FileActivitySummary]) -> int:
        """Retire exactly the raw rows each acknowledged summary covered."""
        retired = 0
        for s in summaries:
            cursor = await self._conn.execute(
                "UPDATE activities SET file_synced = 1 "
                "WHERE file_synced = 0 AND id <= ? "
                "AND project_path = ? AND commit_hash IS ? AND branch IS ? "
                "AND file_path = ? AND editor = ?",
                (
                    s.last_activity_id,
                    s.project_path,
                    s.commit_hash,
                    s.branch,
                    s.file_path,
                    s.editor,
                ),
            )
            retired += cursor.rowcount
        await self._conn.commit()
        return retired

    # ─── Daily Aggregates ────────────────────────────────────────────

    async def get_daily_aggregated_activities(self, limit: int = 30) -> list[DailyActivitySummary]:
        """The ``limit`` most recent (project, local date) aggregates, newest first."""
        async with self._conn.execute(
            f"SELECT project_path, {_LOCAL_DATE} AS day, language, file_path, "
            f"commit_hash, SUM(duration) "
            f"FROM activities "
            f"GROUP BY project_path, day, language, file_path, commit_hash"
        ) as cursor:
            rows = await cursor.fetchall()

        days: dict[tuple[str, str], DailyActivitySummary] = {}
        commits: dict[tuple[str, str], set[str]] = {}
        for project, day, language, file_path, commit_hash, duration in rows:
            key = (project, day)
            summary = days.get(key)
            if summary is None:
                summary = days[key] = DailyActivitySummary(
                    date=day, project_path=project, total_duration=0
                )
                commits[key] = set()
            duration = duration or 0
            summary.total_duration += duration
            if language:
                summary.language_breakdown[language] = (
                    summary.language_breakdown.get(language, 0) + duration
                )
            if file_path not in summary.files_edited:
                summary.files_edited.append(file_path)
            if commit_hash:
                commits[key].add(commit_hash)

        for key, summary in days.items():
            summary.commit_count = len(commits[key])
            summary.files_edited.sort()

        ordered = sorted(days.values(), key=lambda s: (s.date, s.project_path), reverse=True)
        return ordered[:limit]

    async def delete_activities_before_date(self, date_str: str) -> int:
        """Delete raw rows whose local date is strictly before ``date_str``."""
        cursor = await self._conn.execute(
            f"DELETE FROM activities WHERE {_LOCAL_DATE} < ?", (date_str,)
        )
        await self._conn.commit()
        if cursor.rowcount:
            logger.info("Pruned %d activity rows dated before %s", cursor.rowcount, date_str)
        return cursor.rowcount

    # ─── Commits ─────────────────────────────────────────────────────

    async def get_unsynced_commits(self, limit: int = 20) -> list[GitCommit]:
        async with self._conn.execute(
            "SELECT id, project_path, commit_hash, message, author, author_email, "
            "timestamp, files_changed, lines_added, lines_deleted, branch "
            "FROM git_commits ORDER BY id ASC LIMIT ?",
            (limit,),
        ) as cursor:
            rows = await cursor.fetchall()
        return [
            GitCommit(
                id=r[0],
                project_path=r[1],
                commit_hash=r[2],
                message=r[3],
                author=r[4],
                author_email=r[5],
                timestamp=r[6],
                files_changed=r[7],
                lines_added=r[8],
                lines_deleted=r[9],
                branch=r[10],
            )
            for r in rows
        ]

    async def delete_commits(self, ids: list[int]) -> int:
        if not ids:
            return 0
        placeholders = ", ".join("?" for _ in ids)
        cursor = await self._conn.execute(
            f"DELETE FROM git_commits WHERE id IN ({placeholders})", list(ids)
        )
        await self._conn.commit()
        return cursor.rowcount

    # ─── Introspection ───────────────────────────────────────────────

    async def pending_counts(self) -> dict[str, int]:
        """Row counts still waiting for upload or retention."""
        counts: dict[str, int] = {}
        for name, sql in (
            ("activities", "SELECT COUNT(*) FROM activities"),
            ("pending_file_activities", "SELECT COUNT(*) FROM activities WHERE file_synced = 0"),
            ("commits", "SELECT COUNT(*) FROM git_commits"),
        ):
            async with self._conn.execute(sql) as cursor:
                row = await cursor.fetchone()
            counts[name] = row[0] if row else 0
        return counts
