# This file is part of CodeChrono.
# Licensed under the Business Source License 1.1 (BSL 1.1).
# See top-level LICENSE file for details.
# Change Date: 2030-01-01 (Transitions to Apache 2.0)

"""
CodeChrono Git: Package init.

Root discovery, HEAD tracking and ref watching.
"""

from codechrono.git.discovery import find_git_roots, is_git_root  # noqa: F401
from codechrono.git.runner import GitRunner, parse_diff_stat  # noqa: F401
from codechrono.git.correlator import RepositoryCorrelator  # noqa: F401
