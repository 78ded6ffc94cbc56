"""Workflow definition loader.

Parses YAML workflow source into a validated ``WorkflowDefinition``. Parsing
is a pure function of the input text; each structural rule maps to a
distinct error so authors see exactly what to fix:

- ``initial_state`` must name a defined state (UnknownInitialStateError)
- every phase needs non-empty ``default_instructions``
  (MissingDefaultInstructionsError)
- triggers are unique within a phase (DuplicateTriggerError)
- every transition target must name a defined state (UnknownTargetStateError)
"""

import logging
from pathlib import Path
from typing import Any

import yaml
from pydantic import ValidationError

from vibeguide.errors import (
    DuplicateTriggerError,
    MissingDefaultInstructionsError,
    UnknownInitialStateError,
    UnknownTargetStateError,
    WorkflowParseError,
)
from vibeguide.workflow.models import WorkflowDefinition

logger = logging.getLogger(__name__)

REQUIRED_KEYS = ("name", "initial_state", "states")


def load_yaml_mapping(raw_text: str, source: str = "<string>") -> dict[str, Any]:
    """Deserialize YAML text that must contain a mapping.

    Raises:
        WorkflowParseError: If the text is not valid YAML or not a mapping
    """
    try:
        data = yaml.safe_load(raw_text)
    except yaml.YAMLError as e:
        raise WorkflowParseError(f"Invalid YAML in {source}: {e}", source=source) from e

    if not isinstance(data, dict):
        raise WorkflowParseError(
            f"Workflow definition in {source} must be a mapping", source=source
        )
    return data


def parse_workflow(raw_text: str, source: str = "<string>") -> WorkflowDefinition:
    """Parse and validate a workflow definition.

    Args:
        raw_text: YAML source
        source: Where the text came from, used in error messages

    Returns:
        Validated WorkflowDefinition

    Raises:
        WorkflowValidationError: Subclass naming the violated rule
    """
    data = load_yaml_mapping(raw_text, source)
    return build_workflow(data, source)


def build_workflow(data: dict[str, Any], source: str = "<string>") -> WorkflowDefinition:
    """Validate an already-deserialized workflow mapping."""
    missing = [key for key in REQUIRED_KEYS if key not in data]
    if missing:
        raise WorkflowParseError(
            f"Workflow definition in {source} is missing required keys: {', '.join(missing)}",
            source=source,
            missing=missing,
        )
    if not isinstance(data["states"], dict) or not data["states"]:
        raise WorkflowParseError(
            f"'states' in {source} must be a non-empty mapping", source=source
        )

    try:
        workflow = WorkflowDefinition.model_validate(data)
    except ValidationError as e:
        raise WorkflowParseError(
            f"Malformed workflow definition in {source}: {e}", source=source
        ) from e

    validate_workflow(workflow)
    return workflow


def validate_workflow(workflow: WorkflowDefinition) -> None:
    """Check the structural invariants of a workflow.

    Raises:
        WorkflowValidationError: Subclass naming the first violated rule
    """
    if workflow.initial_state not in workflow.states:
        raise UnknownInitialStateError(workflow.name, workflow.initial_state, workflow.phases)

    for phase_name, phase in workflow.states.items():
        if not phase.default_instructions.strip():
            raise MissingDefaultInstructionsError(workflow.name, phase_name)

        seen: set[str] = set()
        for transition in phase.transitions:
            if transition.trigger in seen:
                raise DuplicateTriggerError(workflow.name, phase_name, transition.trigger)
            seen.add(transition.trigger)

            if transition.to not in workflow.states:
                raise UnknownTargetStateError(
                    workflow.name, phase_name, transition.trigger, transition.to
                )

            if transition.instructions and transition.additional_instructions:
                logger.warning(
                    f"Workflow '{workflow.name}': transition '{transition.trigger}' in "
                    f"'{phase_name}' sets both instructions and additional_instructions; "
                    "instructions wins"
                )


def load_workflow_file(path: Path) -> WorkflowDefinition:
    """Load and validate a workflow from a YAML file."""
    return parse_workflow(path.read_text(encoding="utf-8"), source=str(path))
