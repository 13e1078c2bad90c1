# This file is part of CodeChrono.
# Licensed under the Business Source License 1.1 (BSL 1.1).
# See top-level LICENSE file for details.
# Change Date: 2030-01-01 (Transitions to Apache 2.0)

"""
CodeChrono: Sync Engine.

Moves pending activity into the local store and drains the store to the
telemetry service. A cycle runs four phases in order:

1. queue flush   pending logs -> ``activities`` rows, one at a time
2. daily stats   completed days -> service; on ack prune raw rows older
                 than the retention floor
3. file activity pending summaries -> service; on ack retire them
4. commits       unsynced commits -> service; on ack delete them

A phase whose upload is not acknowledged leaves its rows untouched and
the next phase still runs. An exception aborts the rest of the cycle.
Either way the next cycle starts ``interval`` seconds after this one ends,
so cycles never overlap.
"""

from __future__ import annotations

import asyncio
import logging
import sqlite3
from datetime import date
from typing import TYPE_CHECKING, Callable, Optional

from codechrono import config
from codechrono.exceptions import StoreError
from codechrono.models import SyncResult
from codechrono.status import Status
from codechrono.temporal import completed_day_cutoff, retention_cutoff

if TYPE_CHECKING:
    from codechrono.recorder import ActivityRecorder
    from codechrono.remote import RemoteClient
    from codechrono.status import StatusSink
    from codechrono.store import LocalStore

logger = logging.getLogger("codechrono.sync")


class SyncEngine:
    """Periodic flush-and-upload loop.

    States: idle (waiting for the next tick) and running (a cycle is in
    flight). ``stop()`` cancels a pending wait but never an in-flight
    cycle; that cycle checks ``stopped`` before each phase and winds down.
    """

    def __init__(
        self,
        recorder: ActivityRecorder,
        store: LocalStore,
        remote: RemoteClient,
        status: Optional[StatusSink] = None,
        *,
        interval: float | None = None,
        today: Callable[[], date] = date.today,
        daily_batch: int | None = None,
        file_batch: int | None = None,
        commit_batch: int | None = None,
        retention_days: int | None = None,
    ):
        self.recorder = recorder
        self.store = store
        self.remote = remote
        self.status = status
        self.interval = config.SYNC_INTERVAL if interval is None else interval
        self.today = today
        self.daily_batch = config.DAILY_BATCH if daily_batch is None else daily_batch
        self.file_batch = config.FILE_BATCH if file_batch is None else file_batch
        self.commit_batch = config.COMMIT_BATCH if commit_batch is None else commit_batch
        self.retention_days = config.RETENTION_DAYS if retention_days is None else retention_days

        self.running = False
        self.stopped = False
        self.cycles = 0
        self.last_result: Optional[SyncResult] = None
        self._task: Optional[asyncio.Task] = None
        self._cycle: Optional[asyncio.Task] = None

    # ─── Loop ────────────────────────────────────────────────────────

    def start(self) -> None:
        """Run a cycle now, then one ``interval`` after each completion."""
        if self._task is not None and not self._task.done():
            return
        self.stopped = False
        self._task = asyncio.ensure_future(self._loop())
        logger.info("Sync loop started (interval=%ss)", self.interval)

    async def _loop(self) -> None:
        while not self.stopped:
            # Shielded so stop() never interrupts a cycle half way.
            self._cycle = asyncio.ensure_future(self.run_cycle())
            try:
                await asyncio.shield(self._cycle)
            except asyncio.CancelledError:
                break
            except Exception:
                logger.exception("Sync cycle crashed")
            if self.stopped:
                break
            try:
                await asyncio.sleep(self.interval)
            except asyncio.CancelledError:
                break

    def stop(self) -> None:
        """Clear the pending timer. No further cycles are scheduled."""
        self.stopped = True
        if self._task is not None and not self._task.done():
            self._task.cancel()
        self._task = None
        logger.info("Sync loop stopped")

    async def join(self) -> None:
        """Wait for an in-flight cycle to finish, if any."""
        cycle = self._cycle
        if cycle is not None and not cycle.done():
            try:
                await cycle
            except Exception:
                logger.debug("In-flight cycle ended with an error", exc_info=True)

    # ─── Cycle ───────────────────────────────────────────────────────

    async def run_cycle(self) -> SyncResult:
        """Run the four phases once."""
        result = SyncResult()
        self.running = True
        try:
            result.activities_flushed = await self.flush_queue()
            if not self.stopped:
                await self._sync_daily_stats(result)
            if not self.stopped:
                await self._sync_file_activities(result)
            if not self.stopped:
                await self._sync_commits(result)
        except Exception as e:
            result.errors.append(f"{type(e).__name__}: {e}")
            logger.exception("Sync loop error")
        finally:
            self.running = False
            self.cycles += 1
            self.last_result = result

        if not self.stopped:
            self._report(result)
        return result

    async def flush_queue(self) -> int:
        """Move every pending log into the store. Bad rows are logged and skipped."""
        logs = self.recorder.drain()
        saved = 0
        for log in logs:
            try:
                await self.store.insert_activity(log)
                saved += 1
            except (sqlite3.Error, StoreError, ValueError) as e:
                logger.error("Failed to save activity to DB (%s): %s", log.file_path, e)
        if logs:
            logger.debug("Flushed %d/%d activities to the local store", saved, len(logs))
        return saved

    async def _sync_daily_stats(self, result: SyncResult) -> None:
        today = self.today()
        cutoff = completed_day_cutoff(today)
        stats = await self.store.get_daily_aggregated_activities(self.daily_batch)
        completed = [s for s in stats if s.date < cutoff]
        if not completed:
            return

        logger.debug("Syncing %d daily stats summaries", len(completed))
        if not await self.remote.sync_daily_stats(completed):
            result.failed_batches += 1
            return
        await self.store.delete_activities_before_date(retention_cutoff(today, self.retention_days))
        result.daily_synced = len(completed)
        logger.info("Synced and cleaned up %d daily stats", len(completed))

    async def _sync_file_activities(self, result: SyncResult) -> None:
        summaries = await self.store.get_aggregated_activities(self.file_batch)
        if not summaries:
            return

        logger.debug("Syncing %d aggregated file activities", len(summaries))
        if not await self.remote.sync_file_activities(summaries):
            result.failed_batches += 1
            return
        await self.store.delete_aggregated_activities(summaries)
        result.files_synced = len(summaries)
        logger.info("Synced %d file activities", len(summaries))

    async def _sync_commits(self, result: SyncResult) -> None:
        commits = await self.store.get_unsynced_commits(self.commit_batch)
        if not commits:
            return

        logger.debug("Syncing %d commits", len(commits))
        if not await self.remote.sync_commits(commits):
            result.failed_batches += 1
            return
        ids = [c.id for c in commits if c.id is not None]
        if ids:
            await self.store.delete_commits(ids)
        result.commits_synced = len(commits)
        logger.info("Synced %d commits", len(commits))

    def _report(self, result: SyncResult) -> None:
        if self.status is None:
            return
        if result.failed_batches:
            self.status.update_status(Status.OFFLINE, "Telemetry service unreachable")
        elif result.total:
            self.status.update_status(Status.SYNCED)
