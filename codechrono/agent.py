# This file is part of CodeChrono.
# Licensed under the Business Source License 1.1 (BSL 1.1).
# See top-level LICENSE file for details.
# Change Date: 2030-01-01 (Transitions to Apache 2.0)

"""CodeChronoAgent: composition root and lifecycle."""

from __future__ import annotations

import functools
import logging
from datetime import date
from pathlib import Path
from typing import Callable, Iterable, Optional, Protocol

from codechrono import config
from codechrono.git.correlator import RepositoryCorrelator
from codechrono.git.runner import GitRunner
from codechrono.git.watcher import HeadWatcher
from codechrono.host import (
    InteractionObserver,
    TokenStore,
    WorkspaceActivitySource,
    workspace_folder_for,
)
from codechrono.recorder import ActivityRecorder
from codechrono.remote import RemoteClient
from codechrono.status import Status, StatusLine, StatusSink
from codechrono.store import LocalStore
from codechrono.sync import SyncEngine

logger = logging.getLogger("codechrono.agent")


class ActivitySource(Protocol):
    def start(self, target: InteractionObserver) -> None: ...
    def stop(self) -> None: ...


class CodeChronoAgent:
    """Owns one instance of every service and drives their lifecycle.

    Call ``init()``, ``start()``, ``stop()`` and ``close()`` once each, in
    that order. ``init()`` raises ``StoreInitError`` when the local store
    can not be opened; nothing is tracked in that case.
    """

    def __init__(
        self,
        *,
        folders: Iterable[str | Path],
        store: LocalStore,
        remote: RemoteClient,
        correlator: RepositoryCorrelator,
        recorder: ActivityRecorder,
        sync_engine: SyncEngine,
        status: StatusSink,
        source: Optional[ActivitySource] = None,
        head_watcher: Optional[HeadWatcher] = None,
        tokens: Optional[TokenStore] = None,
    ):
        self.folders = list(folders)
        self.store = store
        self.remote = remote
        self.correlator = correlator
        self.recorder = recorder
        self.sync_engine = sync_engine
        self.status = status
        self.source = source
        self.head_watcher = head_watcher
        self.tokens = tokens
        self.tracking = False

    async def init(self) -> None:
        """Open the store, load the credential and discover git roots."""
        await self.store.init()

        token = self.tokens.get() if self.tokens is not None else None
        if token:
            logger.info("API token found")
            self.remote.update_token(token)
        elif not self.remote.has_token:
            logger.warning("API token is missing; uploads will be rejected until one is set")
            self.status.update_status(Status.NO_TOKEN, "Run `codechrono set-token`")

        await self.correlator.initialize(self.folders)
        logger.info("CodeChrono initialized")

    def start(self) -> None:
        """Begin accepting events, watching refs and syncing."""
        if self.tracking:
            return
        self.tracking = True
        if self.source is not None:
            self.source.start(self.recorder)
        if self.head_watcher is not None:
            self.correlator.watch(self.head_watcher)
        self.sync_engine.start()
        if self.remote.has_token:
            self.status.update_status(Status.ACTIVE)
        logger.info("Tracking started")

    def stop(self) -> None:
        """Dispose subscriptions and the sync timer."""
        if not self.tracking:
            return
        self.tracking = False
        if self.source is not None:
            self.source.stop()
        self.correlator.stop()
        self.sync_engine.stop()
        self.status.update_status(Status.PAUSED)
        logger.info("Tracking stopped")

    async def close(self) -> None:
        """Let an in-flight cycle finish, persist the queue and close everything."""
        await self.sync_engine.join()
        if self.store.is_open:
            await self.sync_engine.flush_queue()
        if self.head_watcher is not None:
            self.head_watcher.close()
        await self.store.close()
        await self.remote.close()

    def set_token(self, token: str) -> None:
        """(Re)configure the bearer credential."""
        if self.tokens is not None:
            self.tokens.store(token)
        self.remote.update_token(token)
        self.status.update_status(Status.ACTIVE)
        logger.info("API token saved")


def build_agent(
    folders: Iterable[str | Path],
    *,
    db_path: str | None = None,
    endpoint: str | None = None,
    status: Optional[StatusSink] = None,
    interval: float | None = None,
    today: Callable[[], date] = date.today,
    watch: bool = True,
) -> CodeChronoAgent:
    """Wire the default collaborators around ``folders``."""
    folders = [str(Path(f).expanduser().resolve()) for f in folders]
    status = status or StatusLine()
    store = LocalStore(db_path or config.DB_PATH)
    remote = RemoteClient(endpoint)
    correlator = RepositoryCorrelator(store, GitRunner())
    source = WorkspaceActivitySource(folders) if watch else None
    recorder = ActivityRecorder(
        correlator,
        status,
        workspace_root_for=functools.partial(workspace_folder_for, folders),
    )
    engine = SyncEngine(recorder, store, remote, status, interval=interval, today=today)
    return CodeChronoAgent(
        folders=folders,
        store=store,
        remote=remote,
        correlator=correlator,
        recorder=recorder,
        sync_engine=engine,
        status=status,
        source=source,
        head_watcher=HeadWatcher() if watch else None,
        tokens=TokenStore(),
    )
