# This file is part of CodeChrono.
# Licensed under the Business Source License 1.1 (BSL 1.1).
# See top-level LICENSE file for details.
# Change Date: 2030-01-01 (Transitions to Apache 2.0)

"""
CodeChrono: Time helpers.

Timestamps are integer milliseconds since the epoch. Calendar dates are
local dates in ISO form (``YYYY-MM-DD``) so they compare as strings.
"""

from __future__ import annotations

import time
from datetime import date, datetime, timedelta


def now_ms() -> int:
    """Return the current wall-clock time in epoch milliseconds."""
    return int(time.time() * 1000)


def local_date(timestamp_ms: int) -> str:
    """Local calendar date of an epoch-millisecond timestamp."""
    return datetime.fromtimestamp(timestamp_ms / 1000).date().isoformat()


def completed_day_cutoff(today: date) -> str:
    """Yesterday's date. Days strictly before it are completed days."""
    return (today - timedelta(days=1)).isoformat()


def retention_cutoff(today: date, days: int) -> str:
    """Oldest local date whose raw activity rows are still retained."""
    return (today - timedelta(days=days)).isoformat()
