# This file is part of CodeChrono.
# Licensed under the Business Source License 1.1 (BSL 1.1).
# See top-level LICENSE file for details.
# Change Date: 2030-01-01 (Transitions to Apache 2.0)

"""ActivityRecorder: debounced, idle-aware conversion of editor events."""

from __future__ import annotations

import logging
from typing import TYPE_CHECKING, Callable, Optional

from codechrono import config
from codechrono.models import ActivityEvent, ActivityLog
from codechrono.status import Status

if TYPE_CHECKING:
    from codechrono.git.correlator import RepositoryCorrelator
    from codechrono.status import StatusSink

logger = logging.getLogger("codechrono.recorder")


class ActivityRecorder:
    """Turns raw interaction events into ``ActivityLog`` rows.

    Events closer than ``debounce_ms`` to the last accepted event are
    dropped without touching any state. An accepted event is credited
    with the gap since the previous one, or 0 when it is the first event
    or the gap reached ``max_idle_ms``.

    The recorder is the only owner of the pending queue; the sync engine
    takes its contents with ``drain()``.

    Usage:
        recorder = ActivityRecorder(correlator, status, workspace_root_for=source.workspace_root_for)
        recorder.on_interaction(ActivityEvent("/w/app/main.py", "python", now_ms()))
        logs = recorder.drain()
    """

    def __init__(
        self,
        correlator: Optional[RepositoryCorrelator] = None,
        status: Optional[StatusSink] = None,
        *,
        workspace_root_for: Optional[Callable[[str], Optional[str]]] = None,
        editor: str | None = None,
        debounce_ms: int | None = None,
        max_idle_ms: int | None = None,
    ):
        self.correlator = correlator
        self.status = status
        self.workspace_root_for = workspace_root_for
        self.editor = editor or config.EDITOR_NAME
        self.debounce_ms = config.DEBOUNCE_MS if debounce_ms is None else debounce_ms
        self.max_idle_ms = config.MAX_IDLE_MS if max_idle_ms is None else max_idle_ms
        self.last_activity_time = 0
        self._queue: list[ActivityLog] = []

    @property
    def pending(self) -> int:
        return len(self._queue)

    def on_interaction(self, event: ActivityEvent) -> None:
        """Handle a document change, selection change or save notification."""
        if not event.file_path:
            return

        now = event.timestamp
        gap = now - self.last_activity_time
        if self.last_activity_time != 0 and gap < self.debounce_ms:
            return

        duration = 0
        if self.last_activity_time != 0 and gap < self.max_idle_ms:
            duration = gap
        self.last_activity_time = now

        file_path = event.file_path
        project_path = self._resolve_project(file_path)
        commit_hash = branch = None
        if self.correlator is not None:
            commit_hash = self.correlator.get_active_commit_for_path(file_path)
            branch = self.correlator.get_active_branch_for_path(file_path)

        logger.debug(
            "Tracking activity: %s | %s | %dms | commit: %s | branch: %s",
            file_path, event.language, duration, commit_hash, branch,
        )
        if commit_hash is None and project_path:
            logger.debug("No active commit for %s (project: %s)", file_path, project_path)

        self._queue.append(
            ActivityLog(
                project_path=project_path,
                file_path=file_path,
                language=event.language,
                timestamp=now,
                duration=duration,
                editor=self.editor,
                commit_hash=commit_hash,
                branch=branch,
            )
        )
        if self.status is not None:
            self.status.update_status(Status.TRACKING)

    def drain(self) -> list[ActivityLog]:
        """Hand over every pending log and leave the queue empty."""
        logs, self._queue = self._queue, []
        return logs

    def _resolve_project(self, file_path: str) -> str:
        if self.correlator is not None:
            root = self.correlator.get_git_root_for_path(file_path)
            if root:
                return root
        if self.workspace_root_for is not None:
            return self.workspace_root_for(file_path) or ""
        return ""
