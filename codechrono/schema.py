# This file is part of CodeChrono.
# Licensed under the Business Source License 1.1 (BSL 1.1).
# See top-level LICENSE file for details.
# Change Date: 2030-01-01 (Transitions to Apache 2.0)

"""
CodeChrono: SQLite Schema Definitions.

Raw activity rows and observed commits. Aggregates are computed by query
and are never stored on their own.
"""

SCHEMA_VERSION = "1.0.0"

# ─── Raw Activity ────────────────────────────────────────────────────
# file_synced flips to 1 once the file-activity summary covering the row
# has been acknowledged. Rows stay for daily aggregation until the
# retention floor removes them.
CREATE_ACTIVITIES = """
CREATE TABLE IF NOT EXISTS activities (
    id            INTEGER PRIMARY KEY AUTOINCREMENT,
    project_path  TEXT NOT NULL DEFAULT '',
    file_path     TEXT NOT NULL,
    language      TEXT NOT NULL DEFAULT '',
    timestamp     INTEGER NOT NULL,
    duration      INTEGER NOT NULL DEFAULT 0,
    editor        TEXT NOT NULL,
    commit_hash   TEXT,
    branch        TEXT,
    file_synced   INTEGER NOT NULL DEFAULT 0
);
"""

CREATE_ACTIVITIES_INDEXES = """
CREATE INDEX IF NOT EXISTS idx_activities_pending ON activities(file_synced, id);
CREATE INDEX IF NOT EXISTS idx_activities_timestamp ON activities(timestamp);
CREATE INDEX IF NOT EXISTS idx_activities_project ON activities(project_path);
"""

# ─── Git Commits ─────────────────────────────────────────────────────
CREATE_GIT_COMMITS = """
CREATE TABLE IF NOT EXISTS git_commits (
    id             INTEGER PRIMARY KEY AUTOINCREMENT,
    project_path   TEXT NOT NULL,
    commit_hash    TEXT NOT NULL,
    message        TEXT NOT NULL DEFAULT '',
    author         TEXT NOT NULL DEFAULT '',
    author_email   TEXT NOT NULL DEFAULT '',
    timestamp      INTEGER NOT NULL,
    files_changed  INTEGER NOT NULL DEFAULT 0,
    lines_added    INTEGER NOT NULL DEFAULT 0,
    lines_deleted  INTEGER NOT NULL DEFAULT 0,
    branch         TEXT
);
"""

CREATE_GIT_COMMITS_INDEXES = """
CREATE INDEX IF NOT EXISTS idx_git_commits_project ON git_commits(project_path);
"""

# ─── Metadata ────────────────────────────────────────────────────────
CREATE_META = """
CREATE TABLE IF NOT EXISTS codechrono_meta (
    key    TEXT PRIMARY KEY,
    value  TEXT NOT NULL
);
"""

ALL_SCHEMA = [
    CREATE_ACTIVITIES,
    CREATE_ACTIVITIES_INDEXES,
    CREATE_GIT_COMMITS,
    CREATE_GIT_COMMITS_INDEXES,
    CREATE_META,
]


def get_init_meta() -> list[tuple[str, str]]:
    """Return initial metadata key-value pairs."""
    return [("schema_version", SCHEMA_VERSION)]
