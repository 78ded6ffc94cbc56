"""Pydantic models for persisted conversation state."""

from pydantic import BaseModel, Field

from vibeguide.config import CommitBehaviour


class GitCommitConfig(BaseModel):
    """Commit behaviour chosen at start_development, stored as JSON."""

    enabled: bool = False
    commit_on_step: bool = False
    commit_on_phase: bool = False
    commit_on_complete: bool = False
    initial_message: str = "Development session"

    @classmethod
    def from_behaviour(cls, behaviour: CommitBehaviour | str) -> "GitCommitConfig":
        behaviour = CommitBehaviour(behaviour)
        return cls(
            enabled=behaviour is not CommitBehaviour.NONE,
            commit_on_step=behaviour is CommitBehaviour.STEP,
            commit_on_phase=behaviour is CommitBehaviour.PHASE,
            commit_on_complete=behaviour in (CommitBehaviour.STEP, CommitBehaviour.PHASE, CommitBehaviour.END),
        )

    @property
    def behaviour(self) -> CommitBehaviour:
        if not self.enabled:
            return CommitBehaviour.NONE
        if self.commit_on_step:
            return CommitBehaviour.STEP
        if self.commit_on_phase:
            return CommitBehaviour.PHASE
        return CommitBehaviour.END


class ConversationState(BaseModel):
    """Durable record of one conversation (project path + branch).

    ``current_phase`` is always a phase of ``workflow_name``; it only changes
    through an accepted transition or a reset.
    """

    conversation_id: str
    project_path: str
    git_branch: str
    current_phase: str
    plan_file_path: str
    workflow_name: str
    git_commit_config: GitCommitConfig = Field(default_factory=GitCommitConfig)
    require_reviews_before_phase_transition: bool = False
    created_at: str
    updated_at: str


class InteractionLogEntry(BaseModel):
    """One audit row per operation call. Never hard-deleted."""

    id: int | None = None
    conversation_id: str
    tool_name: str
    input_params: str
    response_data: str
    current_phase: str
    timestamp: str
    is_reset: bool = False
    reset_at: str | None = None
