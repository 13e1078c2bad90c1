# This file is part of CodeChrono.
# Licensed under the Business Source License 1.1 (BSL 1.1).
# See top-level LICENSE file for details.
# Change Date: 2030-01-01 (Transitions to Apache 2.0)

"""
CodeChrono: Host collaborators.

Stand-ins for what an editor host provides: a source of interaction
events over the workspace folders and a credential store for the bearer
token.
"""

from __future__ import annotations

import asyncio
import logging
import os
from pathlib import Path
from typing import Any, Iterable, Optional, Protocol

from watchdog.events import FileSystemEvent, FileSystemEventHandler
from watchdog.observers import Observer

from codechrono import config
from codechrono.git.discovery import GIT_MARKER
from codechrono.models import ActivityEvent
from codechrono.temporal import now_ms

logger = logging.getLogger("codechrono.host")

# ─── Language Identification ─────────────────────────────────────────

LANGUAGE_MAP: dict[str, str] = {
    ".py": "python", ".pyi": "python",
    ".js": "javascript", ".mjs": "javascript", ".cjs": "javascript",
    ".jsx": "javascriptreact", ".ts": "typescript", ".tsx": "typescriptreact",
    ".go": "go", ".rs": "rust", ".java": "java", ".kt": "kotlin",
    ".swift": "swift", ".c": "c", ".h": "c", ".cpp": "cpp", ".hpp": "cpp",
    ".cs": "csharp", ".rb": "ruby", ".php": "php",
    ".css": "css", ".scss": "scss", ".less": "less",
    ".html": "html", ".vue": "vue", ".svelte": "svelte",
    ".sql": "sql", ".sh": "shellscript", ".bash": "shellscript",
    ".md": "markdown", ".rst": "restructuredtext", ".txt": "plaintext",
    ".json": "json", ".yaml": "yaml", ".yml": "yaml", ".toml": "toml",
    ".ini": "ini", ".xml": "xml",
}

IGNORED_DIRS = {GIT_MARKER, "node_modules", "__pycache__", ".venv", "venv", ".mypy_cache"}


def language_for(path: str) -> str:
    """Editor-style language identifier for a file path."""
    name = os.path.basename(path).lower()
    if name == "dockerfile":
        return "dockerfile"
    if name == "makefile":
        return "makefile"
    return LANGUAGE_MAP.get(os.path.splitext(name)[1], "plaintext")


# ─── Activity Source ─────────────────────────────────────────────────


def workspace_folder_for(folders: Iterable[str], fs_path: str) -> Optional[str]:
    """Workspace folder that contains ``fs_path`` (innermost wins)."""
    best: Optional[str] = None
    for folder in folders:
        if fs_path == folder or fs_path.startswith(folder + os.sep):
            if best is None or len(folder) > len(best):
                best = folder
    return best


class InteractionObserver(Protocol):
    def on_interaction(self, event: ActivityEvent) -> None: ...


class _WorkspaceHandler(FileSystemEventHandler):
    def __init__(self, source: WorkspaceActivitySource):
        self.source = source

    def on_created(self, event: FileSystemEvent) -> None:
        self._emit(event.src_path, event.is_directory)

    def on_modified(self, event: FileSystemEvent) -> None:
        self._emit(event.src_path, event.is_directory)

    def on_moved(self, event: FileSystemEvent) -> None:
        # Editors save by writing a temp file and renaming it into place.
        self._emit(event.dest_path, event.is_directory)

    def _emit(self, path: Any, is_directory: bool) -> None:
        if is_directory or not path:
            return
        path = os.fsdecode(path)
        if self.source.is_ignored(path):
            return
        self.source.dispatch(ActivityEvent(path, language_for(path), now_ms()))


class WorkspaceActivitySource:
    """Emits an ``ActivityEvent`` for every file saved in the workspace.

    Events are delivered on the asyncio loop that called ``start``, one at
    a time, in arrival order.
    """

    def __init__(self, folders: Iterable[str | Path]):
        self.folders = [os.path.abspath(str(f)) for f in folders]
        self._observer: Any = None
        self._target: Optional[InteractionObserver] = None
        self._loop: Optional[asyncio.AbstractEventLoop] = None

    def workspace_root_for(self, fs_path: str) -> Optional[str]:
        return workspace_folder_for(self.folders, fs_path)

    def is_ignored(self, fs_path: str) -> bool:
        return any(part in IGNORED_DIRS for part in Path(fs_path).parts)

    def start(self, target: InteractionObserver) -> None:
        """Subscribe ``target``. Must be called from the running loop."""
        self._loop = asyncio.get_running_loop()
        self._target = target
        self._observer = Observer()
        self._observer.daemon = True
        handler = _WorkspaceHandler(self)
        for folder in self.folders:
            try:
                self._observer.schedule(handler, folder, recursive=True)
            except OSError as e:
                logger.warning("Cannot watch workspace folder %s: %s", folder, e)
        self._observer.start()
        logger.info("Watching %d workspace folder(s) for activity", len(self.folders))

    def dispatch(self, event: ActivityEvent) -> None:
        """Called from the observer thread."""
        loop, target = self._loop, self._target
        if loop is None or target is None:
            return
        try:
            loop.call_soon_threadsafe(self._deliver, event)
        except RuntimeError:
            logger.debug("Event loop closed; dropping activity for %s", event.file_path)

    def _deliver(self, event: ActivityEvent) -> None:
        if self._target is not None:
            self._target.on_interaction(event)

    def stop(self) -> None:
        """Dispose the subscription. No further events are delivered."""
        self._target = None
        if self._observer is not None:
            self._observer.stop()
            self._observer.join(timeout=5)
            self._observer = None


# ─── Credentials ─────────────────────────────────────────────────────


class TokenStore:
    """Bearer token from ``CODECHRONO_API_TOKEN`` or a private token file."""

    def __init__(self, path: Path | None = None, env_token: str | None = None):
        self.path = Path(path or config.TOKEN_FILE).expanduser()
        self.env_token = config.API_TOKEN if env_token is None else env_token

    def get(self) -> Optional[str]:
        if self.env_token:
            return self.env_token
        try:
            token = self.path.read_text(encoding="utf-8").strip()
        except FileNotFoundError:
            return None
        except OSError as e:
            logger.warning("Cannot read token file %s: %s", self.path, e)
            return None
        return token or None

    def store(self, token: str) -> None:
        self.path.parent.mkdir(parents=True, exist_ok=True)
        fd = os.open(self.path, os.O_WRONLY | os.O_CREAT | os.O_TRUNC, 0o600)
        with os.fdopen(fd, "w", encoding="utf-8") as f:
            f.write(token.strip() + "\n")
        logger.info("API token saved to %s", self.path)
