# This file is part of CodeChrono.
# Licensed under the Business Source License 1.1 (BSL 1.1).
# See top-level LICENSE file for details.
# Change Date: 2030-01-01 (Transitions to Apache 2.0)

"""Async git queries over subprocesses.

Every query returns ``None`` when git fails for any reason (not a
repository, git not installed, unreadable directory). Callers treat that
as "no data yet" and retry on the next trigger.
"""

from __future__ import annotations

import asyncio
import logging
import re
from typing import Optional

from codechrono.models import DiffStat, GitCommit

logger = logging.getLogger("codechrono.git")

# Only the combined phrase is understood. "3 insertions(+)" on its own, or
# a deletions-only summary, yields 0 added and 0 deleted. Downstream
# aggregates already assume these numbers, so the gap is kept as is.
_COMBINED_STAT = re.compile(r"(\d+) insertion.*?(\d+) deletion")

# git prints %x00 as NUL, which can not appear in a subject line.
_FIELD_SEP = "\x00"


def parse_diff_stat(text: str) -> DiffStat:
    """Parse ``git show --stat --format=`` output.

    Files changed is the number of output lines, so the trailing
    ``N files changed`` summary line counts as one more file.
    """
    stat = DiffStat(files_changed=text.count("\n"))
    match = _COMBINED_STAT.search(text)
    if match:
        stat.lines_added = int(match.group(1))
        stat.lines_deleted = int(match.group(2))
    return stat


class GitRunner:
    """Runs ``git`` in a repository root and returns trimmed stdout."""

    def __init__(self, git: str = "git"):
        self.git = git

    async def run(self, root: str, *args: str) -> Optional[str]:
        try:
            proc = await asyncio.create_subprocess_exec(
                self.git,
                *args,
                cwd=root,
                stdout=asyncio.subprocess.PIPE,
                stderr=asyncio.subprocess.PIPE,
            )
            stdout, stderr = await proc.communicate()
        except OSError as e:
            logger.debug("git %s failed in %s: %s", " ".join(args), root, e)
            return None
        if proc.returncode != 0:
            logger.debug(
                "git %s exited %s in %s: %s",
                " ".join(args), proc.returncode, root,
                stderr.decode("utf-8", errors="replace").strip(),
            )
            return None
        return stdout.decode("utf-8", errors="replace")

    async def current_commit(self, root: str) -> Optional[str]:
        out = await self.run(root, "rev-parse", "HEAD")
        if out is None:
            return None
        return out.strip() or None

    async def current_branch(self, root: str) -> Optional[str]:
        # Empty on a detached HEAD.
        out = await self.run(root, "branch", "--show-current")
        if out is None:
            return None
        return out.strip() or None

    async def diff_stat(self, root: str, commit_hash: str) -> Optional[DiffStat]:
        out = await self.run(root, "show", "--stat", "--format=", commit_hash)
        if out is None:
            return None
        return parse_diff_stat(out)

    async def commit_details(self, root: str, commit_hash: str) -> Optional[GitCommit]:
        """Message, author and diff stats of ``commit_hash``. Branch is left unset."""
        fmt = "%x00".join(("%s", "%an", "%ae", "%at"))
        out = await self.run(root, "log", "-1", f"--format={fmt}", commit_hash)
        if out is None:
            return None
        parts = out.strip("\n").split(_FIELD_SEP)
        if len(parts) != 4:
            logger.error("Unexpected git log output for %s in %s", commit_hash, root)
            return None
        message, author, email, epoch = parts
        try:
            timestamp = int(epoch.strip()) * 1000
        except ValueError:
            logger.error("Bad commit timestamp %r for %s", epoch, commit_hash)
            return None

        stat = await self.diff_stat(root, commit_hash)
        if stat is None:
            return None

        return GitCommit(
            project_path=root,
            commit_hash=commit_hash,
            message=message.strip(),
            author=author.strip(),
            author_email=email.strip(),
            timestamp=timestamp,
            files_changed=stat.files_changed,
            lines_added=stat.lines_added,
            lines_deleted=stat.lines_deleted,
        )
