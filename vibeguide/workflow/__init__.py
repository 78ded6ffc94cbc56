"""Workflow definitions, catalog and transition engine.

This module provides:
- Pydantic models for workflow state machines
- The YAML loader with structural validation
- The WorkflowCatalog combining built-in and project-local workflows
- The TransitionEngine and review gate
"""

from vibeguide.workflow.catalog import InstallResult, WorkflowCatalog, WorkflowInfo
from vibeguide.workflow.engine import (
    ReviewRequest,
    TransitionEngine,
    TransitionResult,
    compose_instructions,
)
from vibeguide.workflow.loader import load_workflow_file, parse_workflow
from vibeguide.workflow.models import (
    PhaseDefinition,
    ReviewPerspective,
    TransitionDefinition,
    WorkflowDefinition,
    WorkflowMetadata,
)
from vibeguide.workflow.review_gate import ReviewDecision, is_transition_allowed

__all__ = [
    # Models
    "PhaseDefinition",
    "ReviewPerspective",
    "TransitionDefinition",
    "WorkflowDefinition",
    "WorkflowMetadata",
    # Loading
    "load_workflow_file",
    "parse_workflow",
    # Catalog
    "InstallResult",
    "WorkflowCatalog",
    "WorkflowInfo",
    # Engine
    "ReviewDecision",
    "ReviewRequest",
    "TransitionEngine",
    "TransitionResult",
    "compose_instructions",
    "is_transition_allowed",
]
