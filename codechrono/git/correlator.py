# This file is part of CodeChrono.
# Licensed under the Business Source License 1.1 (BSL 1.1).
# See top-level LICENSE file for details.
# Change Date: 2030-01-01 (Transitions to Apache 2.0)

"""RepositoryCorrelator: maps files to git roots and tracks their HEAD."""

from __future__ import annotations

import asyncio
import logging
import os
import sqlite3
from pathlib import Path
from typing import TYPE_CHECKING, Callable, Iterable, Optional

from codechrono.exceptions import StoreError
from codechrono.git.discovery import find_git_roots
from codechrono.git.runner import GitRunner
from codechrono.models import GitCommit, RepositoryRootState

if TYPE_CHECKING:
    from codechrono.git.watcher import HeadWatcher
    from codechrono.store import LocalStore

logger = logging.getLogger("codechrono.git")


class RepositoryCorrelator:
    """Tracks the live commit and branch of every git root in a workspace.

    Lookups are synchronous and answer from the in-memory cache, so the
    recorder can call them for every event. HEAD detection is async and
    runs at initialization and whenever a watched ref changes.

    Usage:
        correlator = RepositoryCorrelator(store)
        await correlator.initialize(["/w/app", "/w/docs"])
        correlator.watch(HeadWatcher())
        correlator.get_active_commit_for_path("/w/app/src/main.py")
    """

    def __init__(self, store: LocalStore, runner: Optional[GitRunner] = None):
        self.store = store
        self.runner = runner or GitRunner()
        self._roots: dict[str, RepositoryRootState] = {}
        self._locks: dict[str, asyncio.Lock] = {}
        self._unwatch: list[Callable[[], None]] = []
        self._tasks: set[asyncio.Task] = set()
        self._stopped = False

    @property
    def roots(self) -> list[str]:
        return list(self._roots)

    def state(self, root: str) -> Optional[RepositoryRootState]:
        return self._roots.get(root)

    def add_root(self, root: str) -> RepositoryRootState:
        state = self._roots.get(root)
        if state is None:
            state = self._roots[root] = RepositoryRootState(root=root)
        return state

    # ─── Discovery & Detection ───────────────────────────────────────

    async def initialize(self, folders: Iterable[str | Path]) -> list[str]:
        """Discover roots under ``folders`` and record each one's HEAD."""
        folders = list(folders)
        roots = await asyncio.to_thread(find_git_roots, folders)
        self._roots = {root: RepositoryRootState(root=root) for root in roots}
        logger.info("Detected git roots: %s", ", ".join(roots) if roots else "None")
        for root in roots:
            await self.track_commit_change(root)
        return roots

    async def track_commit_change(self, root: str) -> Optional[GitCommit]:
        """Persist a ``GitCommit`` if HEAD of ``root`` moved since last seen.

        Idempotent: returns ``None`` without side effects when HEAD is
        unchanged or git can not answer. Detections for one root run one
        at a time so overlapping watch events can not store HEAD twice.
        """
        state = self.add_root(root)
        lock = self._locks.setdefault(root, asyncio.Lock())
        async with lock:
            new_commit = await self.runner.current_commit(root)
            if not new_commit:
                return None
            old_commit = state.commit_hash
            if old_commit == new_commit:
                return None

            logger.info("Commit changed (%s): %s -> %s", root, old_commit, new_commit)
            commit = await self.runner.commit_details(root, new_commit)
            if commit is None:
                # Cache untouched so the next trigger retries.
                logger.warning("Could not read commit %s in %s", new_commit, root)
                return None
            branch = await self.runner.current_branch(root)
            commit.branch = branch
            try:
                await self.store.insert_commit(commit)
            except (sqlite3.Error, StoreError, ValueError) as e:
                logger.error("Failed to store commit %s for %s: %s", new_commit, root, e)
                return None

            state.commit_hash = new_commit
            if branch:
                state.branch = branch
            return commit

    # ─── Watching ────────────────────────────────────────────────────

    def watch(self, watcher: HeadWatcher) -> None:
        """Re-run detection whenever a root's HEAD or branch refs change."""
        self._stopped = False
        for root in self._roots:
            self._unwatch.append(watcher.watch(root, lambda r=root: self._on_ref_change(r)))

    def _on_ref_change(self, root: str) -> None:
        if self._stopped:
            return
        task = asyncio.ensure_future(self.track_commit_change(root))
        self._tasks.add(task)
        task.add_done_callback(self._on_task_done)

    def _on_task_done(self, task: asyncio.Task) -> None:
        self._tasks.discard(task)
        if task.cancelled():
            return
        exc = task.exception()
        if exc is not None:
            logger.error("Commit detection failed", exc_info=exc)

    def stop(self) -> None:
        """Dispose the ref watches. In-flight detections finish on their own."""
        self._stopped = True
        for unwatch in self._unwatch:
            unwatch()
        self._unwatch.clear()

    # ─── Lookups ─────────────────────────────────────────────────────

    def get_git_root_for_path(self, fs_path: str) -> Optional[str]:
        """Longest known root that is ``fs_path`` or one of its ancestors."""
        best: Optional[str] = None
        for root in self._roots:
            if (
                fs_path == root
                or fs_path.startswith(root + os.sep)
                or fs_path.startswith(root + "/")
            ):
                if best is None or len(root) > len(best):
                    best = root
        return best

    def get_active_commit_for_path(self, fs_path: str) -> Optional[str]:
        root = self.get_git_root_for_path(fs_path)
        return self._roots[root].commit_hash if root else None

    def get_active_branch_for_path(self, fs_path: str) -> Optional[str]:
        root = self.get_git_root_for_path(fs_path)
        return self._roots[root].branch if root else None
