# This file is part of CodeChrono.
# Licensed under the Business Source License 1.1 (BSL 1.1).
# See top-level LICENSE file for details.
# Change Date: 2030-01-01 (Transitions to Apache 2.0)

"""Human-readable agent state for whatever surface the host provides."""

from __future__ import annotations

import enum
import logging
from typing import TYPE_CHECKING, Optional, Protocol

if TYPE_CHECKING:
    from rich.console import Console

logger = logging.getLogger("codechrono.status")

PREFIX = "CodeChrono"


class Status(str, enum.Enum):
    ACTIVE = "Active"
    TRACKING = "Tracking..."
    SYNCED = "Synced"
    OFFLINE = "Offline"
    PAUSED = "Paused"
    NO_TOKEN = "No Token"


class StatusSink(Protocol):
    def update_status(self, status: Status, tooltip: str = "") -> None: ...


class StatusLine:
    """Status sink that remembers the current state and reports transitions.

    Repeated updates with the same state are not reported again, so the
    recorder can signal on every accepted event.
    """

    def __init__(self, console: Optional[Console] = None):
        self.console = console
        self.current: Optional[Status] = None
        self.tooltip = ""

    @property
    def text(self) -> str:
        if self.current is None:
            return PREFIX
        return f"{PREFIX}: {self.current.value}"

    def update_status(self, status: Status, tooltip: str = "") -> None:
        changed = status != self.current
        self.current = status
        self.tooltip = tooltip
        if not changed:
            return
        logger.debug("Status -> %s", status.value)
        if self.console is not None:
            style = {
                Status.OFFLINE: "red",
                Status.NO_TOKEN: "yellow",
                Status.PAUSED: "dim",
            }.get(status, "green")
            suffix = f" [dim]({tooltip})[/]" if tooltip else ""
            self.console.print(f"[{style}]⏱ {self.text}[/]{suffix}")
