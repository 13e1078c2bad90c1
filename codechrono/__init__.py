# This file is part of CodeChrono.
# Licensed under the Business Source License 1.1 (BSL 1.1).
# See top-level LICENSE file for details.
# Change Date: 2030-01-01 (Transitions to Apache 2.0)

"""
CodeChrono — Local-first coding activity telemetry.

Records file activity, correlates it with git commits, keeps it in a
local SQLite store and syncs aggregates to the CodeChrono service.
"""

__version__ = "1.0.0"
__author__ = "CodeChrono"

from codechrono.agent import CodeChronoAgent, build_agent

__all__ = ["CodeChronoAgent", "build_agent", "__version__"]
