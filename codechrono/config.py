# This file is part of CodeChrono.
# Licensed under the Business Source License 1.1 (BSL 1.1).
# See top-level LICENSE file for details.
# Change Date: 2030-01-01 (Transitions to Apache 2.0)

"""
CodeChrono: Configuration.
Shared settings and paths for the entire codebase.

Every value can be overridden from the environment. Call ``reload()``
after changing the environment (tests do this between cases).
"""

import os
from pathlib import Path

# ─── Base Paths ──────────────────────────────────────────────────────
DATA_DIR = Path.home() / ".codechrono"
DB_PATH = str(DATA_DIR / "codechrono.db")
TOKEN_FILE = DATA_DIR / "token"

# ─── Remote Service ──────────────────────────────────────────────────
DEFAULT_API_URL = "https://codechrono.mukulrai.me/api/graphql"
API_URL = DEFAULT_API_URL
API_TOKEN = ""
HTTP_TIMEOUT = 30.0

# ─── Activity Tracking ───────────────────────────────────────────────
EDITOR_NAME = "vscode"
DEBOUNCE_MS = 2000  # minimum spacing between accepted events
MAX_IDLE_MS = 5 * 60 * 1000  # longest gap still counted as continuous work

# ─── Sync Loop ───────────────────────────────────────────────────────
SYNC_INTERVAL = 60  # seconds, measured from the end of the previous cycle
DAILY_BATCH = 30
FILE_BATCH = 50
COMMIT_BATCH = 20
RETENTION_DAYS = 7


def reload() -> None:
    """Re-read every setting from the environment."""
    global DATA_DIR, DB_PATH, TOKEN_FILE
    global API_URL, API_TOKEN, HTTP_TIMEOUT
    global EDITOR_NAME, DEBOUNCE_MS, MAX_IDLE_MS
    global SYNC_INTERVAL, DAILY_BATCH, FILE_BATCH, COMMIT_BATCH, RETENTION_DAYS

    DATA_DIR = Path(os.environ.get("CODECHRONO_DIR", str(Path.home() / ".codechrono")))
    DB_PATH = os.environ.get("CODECHRONO_DB", str(DATA_DIR / "codechrono.db"))
    TOKEN_FILE = Path(os.environ.get("CODECHRONO_TOKEN_FILE", str(DATA_DIR / "token")))

    API_URL = os.environ.get("CODECHRONO_API_URL", DEFAULT_API_URL)
    API_TOKEN = os.environ.get("CODECHRONO_API_TOKEN", "")
    HTTP_TIMEOUT = float(os.environ.get("CODECHRONO_HTTP_TIMEOUT", "30.0"))

    EDITOR_NAME = os.environ.get("CODECHRONO_EDITOR", "vscode")
    DEBOUNCE_MS = int(os.environ.get("CODECHRONO_DEBOUNCE_MS", "2000"))
    MAX_IDLE_MS = int(os.environ.get("CODECHRONO_MAX_IDLE_MS", str(5 * 60 * 1000)))

    SYNC_INTERVAL = int(os.environ.get("CODECHRONO_SYNC_INTERVAL", "60"))
    DAILY_BATCH = int(os.environ.get("CODECHRONO_DAILY_BATCH", "30"))
    FILE_BATCH = int(os.environ.get("CODECHRONO_FILE_BATCH", "50"))
    COMMIT_BATCH = int(os.environ.get("CODECHRONO_COMMIT_BATCH", "20"))
    RETENTION_DAYS = int(os.environ.get("CODECHRONO_RETENTION_DAYS", "7"))


reload()
