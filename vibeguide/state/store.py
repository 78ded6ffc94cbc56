"""Conversation state store.

Durable per-conversation record keyed by conversation id (derived from
project path and branch). Supports idempotent get-or-create, compare-and-set
phase updates and reset:

- the conversation row is hard-deleted
- its audit rows are soft-deleted (flagged, kept)
- its plan file is deleted from disk

Reset attempts all three steps and reports what happened; a missing plan
file or a failing sub-step does not abort the others.
"""

import json
import logging
import sqlite3
from dataclasses import dataclass, field
from pathlib import Path

from vibeguide.config import DATABASE_FILE_NAME, VIBE_DIR_NAME
from vibeguide.project.plan import PlanManager
from vibeguide.state.audit import InteractionLogger
from vibeguide.state.database import Database, utc_now
from vibeguide.state.models import ConversationState, GitCommitConfig

logger = logging.getLogger(__name__)


@dataclass
class ResetResult:
    """What a reset removed.

    Attributes:
        conversation_id: Conversation that was reset
        deleted_state: Whether a conversation row was deleted
        deleted_plan_file: Whether a plan file was deleted
        soft_deleted_audit_rows: Number of audit rows flagged as reset
        errors: Sub-steps that failed, with their error message
    """

    conversation_id: str
    deleted_state: bool = False
    deleted_plan_file: bool = False
    soft_deleted_audit_rows: int = 0
    errors: list[str] = field(default_factory=list)

    @property
    def reset_items(self) -> list[str]:
        items = []
        if self.deleted_state:
            items.append("conversation_state")
        if self.soft_deleted_audit_rows:
            items.append("interaction_logs")
        if self.deleted_plan_file:
            items.append("plan_file")
        return items


def default_database_path(project_path: Path | str) -> Path:
    return Path(project_path) / VIBE_DIR_NAME / DATABASE_FILE_NAME


def _row_to_state(row: sqlite3.Row) -> ConversationState:
    data = dict(row)
    data["git_commit_config"] = GitCommitConfig.model_validate(
        json.loads(data.get("git_commit_config") or "{}")
    )
    data["require_reviews_before_phase_transition"] = bool(
        data["require_reviews_before_phase_transition"]
    )
    return ConversationState(**data)


class ConversationStore:
    """SQLite-backed conversation state store.

    Args:
        db_path: Path to the SQLite file, usually
            ``<project>/.vibe/conversation-state.sqlite``
    """

    def __init__(self, db_path: Path):
        self.database = Database(db_path)
        self.audit = InteractionLogger(self.database)

    @classmethod
    def for_project(cls, project_path: Path | str) -> "ConversationStore":
        return cls(default_database_path(project_path))

    # -------------------------------------------------------------------------
    # Reads
    # -------------------------------------------------------------------------

    def get(self, conversation_id: str) -> ConversationState | None:
        with self.database.connection() as conn:
            row = conn.execute(
                "SELECT * FROM conversation_states WHERE conversation_id = ?",
                (conversation_id,),
            ).fetchone()
        return _row_to_state(row) if row else None

    def find(self, project_path: Path | str, branch: str) -> ConversationState | None:
        """Most recently updated conversation for a project and branch."""
        with self.database.connection() as conn:
            row = conn.execute(
                "SELECT * FROM conversation_states WHERE project_path = ? AND git_branch = ? "
                "ORDER BY updated_at DESC LIMIT 1",
                (str(project_path), branch),
            ).fetchone()
        return _row_to_state(row) if row else None

    # -------------------------------------------------------------------------
    # Mutations
    # -------------------------------------------------------------------------

    def get_or_create(
        self,
        conversation_id: str,
        project_path: Path | str,
        branch: str,
        workflow_name: str,
        initial_phase: str,
        plan_file_path: Path | str,
        git_commit_config: GitCommitConfig | None = None,
        require_reviews: bool = False,
    ) -> tuple[ConversationState, bool]:
        """Return the existing conversation or create it.

        Existing records are returned unchanged.

        Returns:
            Tuple of (state, created)
        """
        commit_config = git_commit_config or GitCommitConfig()
        with self.database.connection(immediate=True) as conn:
            row = conn.execute(
                "SELECT * FROM conversation_states WHERE conversation_id = ?",
                (conversation_id,),
            ).fetchone()
            if row:
                return _row_to_state(row), False

            now = utc_now()
            conn.execute(
                """
                INSERT INTO conversation_states (
                    conversation_id, project_path, git_branch, current_phase,
                    plan_file_path, workflow_name, git_commit_config,
                    require_reviews_before_phase_transition, created_at, updated_at
                ) VALUES (?, ?, ?, ?, ?, ?, ?, ?, ?, ?)
                """,
                (
                    conversation_id,
                    str(project_path),
                    branch,
                    initial_phase,
                    str(plan_file_path),
                    workflow_name,
                    commit_config.model_dump_json(),
                    int(require_reviews),
                    now,
                    now,
                ),
            )
            row = conn.execute(
                "SELECT * FROM conversation_states WHERE conversation_id = ?",
                (conversation_id,),
            ).fetchone()

        logger.info(
            f"Created conversation {conversation_id} (workflow={workflow_name}, phase={initial_phase})"
        )
        return _row_to_state(row), True

    def update_phase(
        self, conversation_id: str, new_phase: str, expected_phase: str | None = None
    ) -> bool:
        """Set the current phase, optionally only if it still equals ``expected_phase``.

        Returns:
            True if the row was updated, False if it does not exist or its
            phase no longer matches ``expected_phase``
        """
        with self.database.connection(immediate=True) as conn:
            if expected_phase is None:
                cursor = conn.execute(
                    "UPDATE conversation_states SET current_phase = ?, updated_at = ? "
                    "WHERE conversation_id = ?",
                    (new_phase, utc_now(), conversation_id),
                )
            else:
                cursor = conn.execute(
                    "UPDATE conversation_states SET current_phase = ?, updated_at = ? "
                    "WHERE conversation_id = ? AND current_phase = ?",
                    (new_phase, utc_now(), conversation_id, expected_phase),
                )
            updated = cursor.rowcount == 1

        if updated:
            logger.info(f"Conversation {conversation_id} moved to phase '{new_phase}'")
        else:
            logger.warning(
                f"Phase update for {conversation_id} to '{new_phase}' refused "
                f"(expected phase '{expected_phase}')"
            )
        return updated

    def update_review_policy(self, conversation_id: str, require_reviews: bool) -> None:
        with self.database.connection(immediate=True) as conn:
            conn.execute(
                "UPDATE conversation_states SET require_reviews_before_phase_transition = ?, "
                "updated_at = ? WHERE conversation_id = ?",
                (int(require_reviews), utc_now(), conversation_id),
            )

    def update_commit_config(self, conversation_id: str, config: GitCommitConfig) -> None:
        with self.database.connection(immediate=True) as conn:
            conn.execute(
                "UPDATE conversation_states SET git_commit_config = ?, updated_at = ? "
                "WHERE conversation_id = ?",
                (config.model_dump_json(), utc_now(), conversation_id),
            )

    def delete(self, conversation_id: str) -> bool:
        """Hard-delete a conversation row. Returns whether a row existed."""
        with self.database.connection(immediate=True) as conn:
            cursor = conn.execute(
                "DELETE FROM conversation_states WHERE conversation_id = ?", (conversation_id,)
            )
            return cursor.rowcount > 0

    def reset(self, conversation_id: str, reason: str | None = None) -> ResetResult:
        """Reset a conversation.

        Args:
            conversation_id: Conversation to reset
            reason: Optional reason, logged only

        Returns:
            ResetResult describing what was removed
        """
        result = ResetResult(conversation_id=conversation_id)
        state = self.get(conversation_id)
        logger.info(f"Resetting conversation {conversation_id}" + (f": {reason}" if reason else ""))

        try:
            result.soft_deleted_audit_rows = self.audit.soft_delete(conversation_id)
        except sqlite3.Error as e:
            logger.error(f"Failed to soft-delete interaction logs for {conversation_id}: {e}")
            result.errors.append(f"interaction_logs: {e}")

        if state is not None:
            try:
                result.deleted_plan_file = PlanManager.delete(state.plan_file_path)
            except OSError as e:
                logger.error(f"Failed to delete plan file {state.plan_file_path}: {e}")
                result.errors.append(f"plan_file: {e}")

        try:
            result.deleted_state = self.delete(conversation_id)
        except sqlite3.Error as e:
            logger.error(f"Failed to delete conversation state {conversation_id}: {e}")
            result.errors.append(f"conversation_state: {e}")

        return result
