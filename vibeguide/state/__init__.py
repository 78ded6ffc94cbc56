"""Conversation state persistence.

This module provides the SQLite-backed ConversationStore, the interaction
audit log and conversation identity helpers.
"""

from vibeguide.state.audit import InteractionLogger
from vibeguide.state.database import Database
from vibeguide.state.identity import generate_conversation_id
from vibeguide.state.models import ConversationState, GitCommitConfig, InteractionLogEntry
from vibeguide.state.store import ConversationStore, ResetResult

__all__ = [
    "ConversationState",
    "ConversationStore",
    "Database",
    "GitCommitConfig",
    "InteractionLogEntry",
    "InteractionLogger",
    "ResetResult",
    "generate_conversation_id",
]
