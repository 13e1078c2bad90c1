# This file is part of CodeChrono.
# Licensed under the Business Source License 1.1 (BSL 1.1).
# See top-level LICENSE file for details.
# Change Date: 2030-01-01 (Transitions to Apache 2.0)

"""Watches ``.git/HEAD`` and ``.git/refs/heads`` of repository roots.

watchdog delivers events on its observer thread; callbacks are handed to
the asyncio loop that registered the watch.
"""

from __future__ import annotations

import asyncio
import logging
import os
from typing import Any, Callable

from watchdog.events import FileSystemEvent, FileSystemEventHandler
from watchdog.observers import Observer

from codechrono.git.discovery import GIT_MARKER

logger = logging.getLogger("codechrono.git")


def is_head_ref(git_dir: str, path: str) -> bool:
    """True for ``HEAD`` and anything under ``refs/heads``, lock files excluded."""
    if not path or path.endswith(".lock"):
        return False
    rel = os.path.relpath(path, git_dir)
    if rel == "HEAD":
        return True
    parts = rel.split(os.sep)
    return len(parts) >= 3 and parts[0] == "refs" and parts[1] == "heads"


class _HeadRefHandler(FileSystemEventHandler):
    def __init__(self, git_dir: str, loop: asyncio.AbstractEventLoop, callback: Callable[[], None]):
        self.git_dir = git_dir
        self.loop = loop
        self.callback = callback

    def on_any_event(self, event: FileSystemEvent) -> None:
        if event.is_directory:
            return
        # git writes HEAD.lock and renames it over HEAD.
        paths = (event.src_path, getattr(event, "dest_path", ""))
        if any(is_head_ref(self.git_dir, os.fsdecode(p)) for p in paths if p):
            try:
                self.loop.call_soon_threadsafe(self.callback)
            except RuntimeError:
                logger.debug("Event loop closed; dropping ref change in %s", self.git_dir)


class HeadWatcher:
    """One watchdog observer shared by every watched root."""

    def __init__(self) -> None:
        self._observer: Any = None

    def watch(self, root: str, callback: Callable[[], None]) -> Callable[[], None]:
        """Watch ``root``'s refs. Must be called from the running loop.

        Returns a function that removes the watch.
        """
        loop = asyncio.get_running_loop()
        git_dir = os.path.join(root, GIT_MARKER)
        if self._observer is None:
            self._observer = Observer()
            self._observer.daemon = True
            self._observer.start()
        handler = _HeadRefHandler(git_dir, loop, callback)
        try:
            watch = self._observer.schedule(handler, git_dir, recursive=True)
        except OSError as e:
            logger.warning("Cannot watch %s: %s", git_dir, e)
            return lambda: None
        logger.debug("Watching refs in %s", git_dir)

        def unwatch() -> None:
            if self._observer is None:
                return
            try:
                self._observer.unschedule(watch)
            except (KeyError, ValueError):
                pass

        return unwatch

    def close(self) -> None:
        if self._observer is None:
            return
        self._observer.stop()
        self._observer.join(timeout=5)
        self._observer = None
