"""Interaction audit log.

One row per operation call. Rows are never deleted: a reset only flags them
with ``is_reset`` and ``reset_at``. Logging is best-effort; a failure to
write an audit row is reported through the logger and never reaches the
caller of the primary operation.
"""

import json
import logging
import sqlite3
from typing import Any

from vibeguide.state.database import Database, utc_now
from vibeguide.state.models import InteractionLogEntry

logger = logging.getLogger(__name__)


def _to_json(value: Any) -> str:
    return json.dumps(value, default=str, ensure_ascii=False)


class InteractionLogger:
    """Writes and queries the interaction audit trail."""

    def __init__(self, database: Database):
        self.database = database

    def log(
        self,
        conversation_id: str,
        tool_name: str,
        input_params: dict[str, Any],
        response_data: Any,
        current_phase: str,
    ) -> None:
        """Append an audit row. Never raises."""
        try:
            with self.database.connection() as conn:
                conn.execute(
                    """
                    INSERT INTO interaction_logs (
                        conversation_id, tool_name, input_params, response_data,
                        current_phase, timestamp
                    ) VALUES (?, ?, ?, ?, ?, ?)
                    """,
                    (
                        conversation_id,
                        tool_name,
                        _to_json(input_params),
                        _to_json(response_data),
                        current_phase,
                        utc_now(),
                    ),
                )
        except (sqlite3.Error, TypeError, ValueError) as e:
            logger.error(f"Failed to log interaction '{tool_name}' for {conversation_id}: {e}")

    def get_logs(self, conversation_id: str, include_reset: bool = True) -> list[InteractionLogEntry]:
        """Audit rows for a conversation, oldest first."""
        query = "SELECT * FROM interaction_logs WHERE conversation_id = ?"
        if not include_reset:
            query += " AND is_reset = 0"
        query += " ORDER BY id"

        with self.database.connection() as conn:
            rows = conn.execute(query, (conversation_id,)).fetchall()
        return [
            InteractionLogEntry(**{**dict(row), "is_reset": bool(row["is_reset"])}) for row in rows
        ]

    def soft_delete(self, conversation_id: str) -> int:
        """Flag every active row of a conversation as reset.

        Returns:
            Number of rows flagged
        """
        with self.database.connection(immediate=True) as conn:
            cursor = conn.execute(
                "UPDATE interaction_logs SET is_reset = 1, reset_at = ? "
                "WHERE conversation_id = ? AND is_reset = 0",
                (utc_now(), conversation_id),
            )
            count = cursor.rowcount
        logger.info(f"Soft-deleted {count} interaction logs for {conversation_id}")
        return count
