"""Typed errors surfaced at the operation boundary.

Every error carries the logical operation it occurred in (filled in by the
service layer when it is not known where the error is raised) and the
identifiers a calling agent needs to self-correct. ``to_dict()`` renders the
structured payload handed back to the caller.
"""

from typing import Any

RESYNC_HINT = "Call whats_next() to resynchronize the current phase."


class VibeError(Exception):
    """Base class for all vibeguide errors."""

    def __init__(self, message: str, operation: str | None = None, **details: Any):
        super().__init__(message)
        self.message = message
        self.operation = operation
        self.details = details

    def to_dict(self) -> dict[str, Any]:
        """Render as a structured error payload."""
        payload: dict[str, Any] = {
            "error": type(self).__name__,
            "message": self.message,
        }
        if self.operation:
            payload["operation"] = self.operation
        payload.update(self.details)
        return payload


# =============================================================================
# Definition Errors
# =============================================================================


class WorkflowValidationError(VibeError):
    """A workflow definition is structurally invalid."""


class WorkflowParseError(WorkflowValidationError):
    """Workflow source is not valid YAML or lacks required keys."""


class UnknownInitialStateError(WorkflowValidationError):
    """The initial state is not one of the defined states."""

    def __init__(self, workflow: str, initial_state: str, states: list[str]):
        super().__init__(
            f"Workflow '{workflow}': initial state '{initial_state}' is not defined. "
            f"Defined states: {', '.join(states)}",
            workflow=workflow,
            initial_state=initial_state,
            states=states,
        )


class UnknownTargetStateError(WorkflowValidationError):
    """A transition points at a state that does not exist."""

    def __init__(self, workflow: str, phase: str, trigger: str, target: str):
        super().__init__(
            f"Workflow '{workflow}': transition '{trigger}' in phase '{phase}' "
            f"targets unknown state '{target}'",
            workflow=workflow,
            phase=phase,
            trigger=trigger,
            target=target,
        )


class MissingDefaultInstructionsError(WorkflowValidationError):
    """A phase has no default instructions."""

    def __init__(self, workflow: str, phase: str):
        super().__init__(
            f"Workflow '{workflow}': phase '{phase}' must define non-empty default_instructions",
            workflow=workflow,
            phase=phase,
        )


class DuplicateTriggerError(WorkflowValidationError):
    """A trigger appears twice in the same phase."""

    def __init__(self, workflow: str, phase: str, trigger: str):
        super().__init__(
            f"Workflow '{workflow}': trigger '{trigger}' is defined more than once "
            f"in phase '{phase}'",
            workflow=workflow,
            phase=phase,
            trigger=trigger,
        )


# =============================================================================
# Catalog Errors
# =============================================================================


class WorkflowNotFoundError(VibeError):
    """Requested workflow is not available for the project."""

    def __init__(self, name: str, available: list[str]):
        super().__init__(
            f"Workflow '{name}' not found. Available workflows: {', '.join(available) or 'none'}",
            workflow=name,
            available=available,
        )


class WorkflowAlreadyExistsError(VibeError):
    """Installing would overwrite an existing project workflow."""

    def __init__(self, name: str, path: str):
        super().__init__(
            f"Workflow '{name}' already exists at {path}. Choose a different name.",
            workflow=name,
            path=path,
        )


# =============================================================================
# Caller-State Errors
# =============================================================================


class NoSuchTransitionError(VibeError):
    """No transition with the requested trigger leaves the current phase."""

    def __init__(self, phase: str, trigger: str, valid_triggers: list[str]):
        valid = ", ".join(valid_triggers) if valid_triggers else "none"
        super().__init__(
            f"No transition '{trigger}' from phase '{phase}'. "
            f"Valid triggers: {valid}. {RESYNC_HINT}",
            phase=phase,
            trigger=trigger,
            valid_triggers=valid_triggers,
        )


class UnknownPhaseError(VibeError):
    """Phase is not part of the workflow."""

    def __init__(self, phase: str, valid_phases: list[str]):
        super().__init__(
            f"Unknown phase '{phase}'. Valid phases: {', '.join(valid_phases)}. {RESYNC_HINT}",
            phase=phase,
            valid_phases=valid_phases,
        )


class ConversationNotFoundError(VibeError):
    """No conversation exists for the project and branch."""

    def __init__(self, project_path: str, branch: str):
        super().__init__(
            f"No development conversation for {project_path} on branch '{branch}'. "
            "Call start_development() first.",
            project_path=project_path,
            branch=branch,
        )


class ConfirmationRequiredError(VibeError):
    """A destructive operation was called without explicit confirmation."""


class InvalidArgumentError(VibeError):
    """An argument is outside its allowed values."""

    def __init__(self, argument: str, value: object, allowed: list[str]):
        super().__init__(
            f"Invalid {argument} '{value}'. Allowed values: {', '.join(allowed)}",
            argument=argument,
            value=value,
            allowed=allowed,
        )


# =============================================================================
# Policy Errors
# =============================================================================


class ReviewRequiredError(VibeError):
    """A review must be performed before the transition can proceed."""

    def __init__(self, phase: str, target: str, perspectives: list[dict[str, str]]):
        roles = ", ".join(p.get("role", "") for p in perspectives)
        super().__init__(
            f"Review required before moving from '{phase}' to '{target}' "
            f"(perspectives: {roles}). Call conduct_review(target_phase='{target}'), "
            "perform the review, then call proceed_to_phase() with review_state='performed'.",
            phase=phase,
            target=target,
            perspectives=perspectives,
        )


# =============================================================================
# Filesystem Errors
# =============================================================================


class PathNotFoundError(VibeError):
    """A supplied path does not exist."""

    def __init__(self, path: str):
        super().__init__(f"Path does not exist: {path}", path=path)


class PathTraversalError(VibeError):
    """A supplied path resolves outside the project root."""

    def __init__(self, path: str, project_path: str):
        super().__init__(
            f"Path {path} resolves outside the project directory {project_path}",
            path=path,
            project_path=project_path,
        )


class TemplateNotFoundError(VibeError):
    """Named document template does not exist."""

    def __init__(self, doc_type: str, template: str, available: list[str]):
        super().__init__(
            f"Unknown {doc_type} template '{template}'. "
            f"Available: {', '.join(available)}, or a file path, or 'none'",
            doc_type=doc_type,
            template=template,
            available=available,
        )
