# This file is part of CodeChrono.
# Licensed under the Business Source License 1.1 (BSL 1.1).
# See top-level LICENSE file for details.
# Change Date: 2030-01-01 (Transitions to Apache 2.0)

"""
CodeChrono: Custom Exceptions.

Typed error hierarchy. Only ``StoreInitError`` is meant to reach the
operator; everything else is caught at the component boundary.
"""


class CodeChronoError(Exception):
    """Base exception for all CodeChrono errors."""


class StoreError(CodeChronoError):
    """Raised when the local store is used before ``init`` or after ``close``."""


class StoreInitError(StoreError):
    """Raised when the local store cannot be opened or migrated.

    Fatal: no tracking starts until the cause is fixed and the agent
    is restarted.
    """


class RemoteError(CodeChronoError):
    """Telemetry service call failed (transport, HTTP status or GraphQL error)."""

    def __init__(self, status_code: int, detail: str):
        self.status_code = status_code
        self.detail = detail
        super().__init__(f"Remote error {status_code}: {detail}")
