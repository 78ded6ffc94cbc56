"""Pydantic models for workflow definitions.

A workflow is a finite state machine: named phases, each with default
instructions and an ordered list of outgoing transitions. Models are frozen
once loaded; all engine behaviour is a function of this data, so custom and
installed workflows need no code changes.

YAML shape::

    name: waterfall
    description: ...
    initial_state: requirements
    metadata:
      domain: code
      requiresDocumentation: false
    states:
      requirements:
        description: ...
        default_instructions: ...
        transitions:
          - trigger: requirements_complete
            to: design
            additional_instructions: ...
            review_perspectives:
              - perspective: architect
                prompt: ...
"""

from pydantic import AliasChoices, BaseModel, ConfigDict, Field

from vibeguide.config import DEFAULT_WORKFLOW_DOMAIN
from vibeguide.errors import NoSuchTransitionError, UnknownPhaseError


class ReviewPerspective(BaseModel):
    """A reviewer role and the prompt handed to it.

    Accepts both ``role`` and ``perspective`` as the role key.
    """

    model_config = ConfigDict(frozen=True)

    role: str = Field(validation_alias=AliasChoices("role", "perspective"))
    prompt: str

    def as_dict(self) -> dict[str, str]:
        return {"role": self.role, "prompt": self.prompt}


class TransitionDefinition(BaseModel):
    """A transition out of a phase.

    ``instructions`` replaces the target phase's instructions verbatim;
    ``additional_instructions`` is appended to them. When both are set,
    ``instructions`` wins.
    """

    model_config = ConfigDict(frozen=True)

    trigger: str
    to: str
    instructions: str | None = None
    additional_instructions: str | None = None
    transition_reason: str = ""
    review_perspectives: list[ReviewPerspective] = Field(default_factory=list)

    @property
    def requires_review(self) -> bool:
        return bool(self.review_perspectives)


class PhaseDefinition(BaseModel):
    """A single phase (state) of a workflow."""

    model_config = ConfigDict(frozen=True)

    description: str = ""
    default_instructions: str = ""
    transitions: list[TransitionDefinition] = Field(default_factory=list)

    @property
    def triggers(self) -> list[str]:
        return [t.trigger for t in self.transitions]


class WorkflowMetadata(BaseModel):
    """Presentation-only workflow metadata.

    ``domain`` drives catalog filtering and ``requires_documentation`` gates
    start_development; the remaining fields never affect transitions.
    """

    model_config = ConfigDict(frozen=True, populate_by_name=True, extra="allow")

    domain: str | None = None
    complexity: str | None = None
    best_for: list[str] = Field(default_factory=list, alias="bestFor")
    use_cases: list[str] = Field(default_factory=list, alias="useCases")
    examples: list[str] = Field(default_factory=list)
    requires_documentation: bool = Field(default=False, alias="requiresDocumentation")


class WorkflowDefinition(BaseModel):
    """A validated workflow state machine.

    Build through ``vibeguide.workflow.loader.parse_workflow`` so that the
    structural invariants are checked; constructing directly skips them.
    """

    model_config = ConfigDict(frozen=True)

    name: str
    description: str = ""
    initial_state: str
    states: dict[str, PhaseDefinition]
    metadata: WorkflowMetadata = Field(default_factory=WorkflowMetadata)

    @property
    def domain(self) -> str:
        """Catalog domain; workflows without one count as code."""
        return (self.metadata.domain or DEFAULT_WORKFLOW_DOMAIN).lower()

    @property
    def requires_documentation(self) -> bool:
        return self.metadata.requires_documentation

    @property
    def phases(self) -> list[str]:
        return list(self.states)

    def get_phase(self, phase: str) -> PhaseDefinition:
        """Look up a phase by name.

        Raises:
            UnknownPhaseError: If the phase is not defined
        """
        try:
            return self.states[phase]
        except KeyError:
            raise UnknownPhaseError(phase, self.phases) from None

    def find_transition(self, phase: str, trigger: str) -> TransitionDefinition:
        """Find the transition out of ``phase`` with the given trigger.

        Raises:
            UnknownPhaseError: If the phase is not defined
            NoSuchTransitionError: If no such trigger leaves the phase
        """
        phase_def = self.get_phase(phase)
        for transition in phase_def.transitions:
            if transition.trigger == trigger:
                return transition
        raise NoSuchTransitionError(phase, trigger, phase_def.triggers)

    def transitions_between(self, phase: str, target: str) -> list[TransitionDefinition]:
        """All transitions out of ``phase`` that lead to ``target``."""
        return [t for t in self.get_phase(phase).transitions if t.to == target]

    def iter_instruction_texts(self):
        """Yield every instruction string in the workflow."""
        for phase in self.states.values():
            yield phase.default_instructions
            for transition in phase.transitions:
                if transition.instructions:
                    yield transition.instructions
                if transition.additional_instructions:
                    yield transition.additional_instructions
