# This file is part of CodeChrono.
# Licensed under the Business Source License 1.1 (BSL 1.1).
# See top-level LICENSE file for details.
# Change Date: 2030-01-01 (Transitions to Apache 2.0)

"""Repository root discovery inside workspace folders."""

from __future__ import annotations

import logging
import os
from pathlib import Path
from typing import Iterable

logger = logging.getLogger("codechrono.git")

GIT_MARKER = ".git"


def is_git_root(path: str) -> bool:
    return os.path.isdir(os.path.join(path, GIT_MARKER))


def find_git_roots(folders: Iterable[str | Path]) -> list[str]:
    """Depth-first search for directories holding a ``.git`` directory.

    A root found on a path stops the descent below it, so repositories
    nested inside another repository are not reported. The walk uses an
    explicit stack and never follows symlinked directories.
    """
    roots: list[str] = []
    seen: set[str] = set()

    for folder in folders:
        stack = [os.path.abspath(str(folder))]
        while stack:
            current = stack.pop()
            if is_git_root(current):
                if current not in seen:
                    seen.add(current)
                    roots.append(current)
                continue

            try:
                with os.scandir(current) as it:
                    children = [
                        entry.path
                        for entry in it
                        if entry.name != GIT_MARKER and entry.is_dir(follow_symlinks=False)
                    ]
            except OSError:
                logger.debug("Skipping unreadable directory %s", current)
                continue
            # Reverse so siblings pop in name order.
            stack.extend(sorted(children, reverse=True))

    return roots
