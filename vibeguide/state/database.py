"""SQLite database holding conversation state and the interaction audit log.

Two tables:
1. conversation_states: one mutable row per conversation
2. interaction_logs: append-only audit trail, soft-deleted on reset

Each operation opens its own connection and transaction. Mutations that
read before they write use ``BEGIN IMMEDIATE`` so concurrent callers on the
same conversation serialize instead of overwriting each other.
"""

import logging
import sqlite3
from collections.abc import Iterator
from contextlib import closing, contextmanager
from datetime import UTC, datetime
from pathlib import Path

logger = logging.getLogger(__name__)

# Seconds to wait for a competing writer before failing
BUSY_TIMEOUT_SECONDS = 10.0


# =============================================================================
# DDL (Schema Definition)
# =============================================================================

DDL_CONVERSATION_STATES = """
CREATE TABLE IF NOT EXISTS conversation_states (
    conversation_id TEXT PRIMARY KEY,
    project_path TEXT NOT NULL,
    git_branch TEXT NOT NULL,
    current_phase TEXT NOT NULL,
    plan_file_path TEXT NOT NULL,
    workflow_name TEXT NOT NULL,
    git_commit_config TEXT NOT NULL DEFAULT '{}',
    require_reviews_before_phase_transition INTEGER NOT NULL DEFAULT 0,
    created_at TEXT NOT NULL,
    updated_at TEXT NOT NULL
);

CREATE INDEX IF NOT EXISTS idx_project_branch
    ON conversation_states(project_path, git_branch);
"""

DDL_INTERACTION_LOGS = """
CREATE TABLE IF NOT EXISTS interaction_logs (
    id INTEGER PRIMARY KEY AUTOINCREMENT,
    conversation_id TEXT NOT NULL,
    tool_name TEXT NOT NULL,
    input_params TEXT NOT NULL,
    response_data TEXT NOT NULL,
    current_phase TEXT NOT NULL,
    timestamp TEXT NOT NULL,
    is_reset INTEGER NOT NULL DEFAULT 0,
    reset_at TEXT
);

CREATE INDEX IF NOT EXISTS idx_interaction_conversation
    ON interaction_logs(conversation_id);
"""


def utc_now() -> str:
    """Current UTC time as ISO-8601 with a ``Z`` suffix."""
    return datetime.now(UTC).isoformat().replace("+00:00", "Z")


class Database:
    """Schema owner and connection factory for the state database.

    Args:
        db_path: Path to the SQLite file; parent directories are created.
    """

    def __init__(self, db_path: Path):
        self.db_path = Path(db_path)
        self.db_path.parent.mkdir(parents=True, exist_ok=True)

        with closing(sqlite3.connect(str(self.db_path), timeout=BUSY_TIMEOUT_SECONDS)) as conn:
            conn.executescript(DDL_CONVERSATION_STATES)
            conn.executescript(DDL_INTERACTION_LOGS)
        logger.debug(f"Database ready at {self.db_path}")

    @contextmanager
    def connection(self, immediate: bool = False) -> Iterator[sqlite3.Connection]:
        """Open a connection wrapped in a single transaction.

        Args:
            immediate: Take the write lock up front (``BEGIN IMMEDIATE``)
        """
        conn = sqlite3.connect(
            str(self.db_path), timeout=BUSY_TIMEOUT_SECONDS, isolation_level=None
        )
        conn.row_factory = sqlite3.Row
        try:
            conn.execute("BEGIN IMMEDIATE" if immediate else "BEGIN")
            yield conn
            conn.execute("COMMIT")
        except Exception:
            if conn.in_transaction:
                conn.execute("ROLLBACK")
            raise
        finally:
            conn.close()
