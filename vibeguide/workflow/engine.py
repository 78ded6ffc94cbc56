"""Transition engine.

The single authority for "what should happen now". Two call shapes:

1. Continue: no trigger. The result is the current phase and its default
   instructions; the phase never changes.
2. Transition: a trigger requested from the current phase. The trigger is
   looked up in the phase's transition list, the review gate is consulted and
   the instructions are composed. Persisting the new phase is the caller's
   job and must only happen after this returns successfully.

Instruction composition for a transition into phase ``to``:

- ``transition.instructions`` set: used verbatim
- ``transition.additional_instructions`` set: ``to`` default instructions,
  separator, additional instructions
- otherwise: ``to`` default instructions

A transition whose target equals the current phase is still accepted but
only yields the phase's default instructions.
"""

import logging
from dataclasses import dataclass, field

from vibeguide.config import ADDITIONAL_INSTRUCTIONS_SEPARATOR, ReviewState
from vibeguide.errors import NoSuchTransitionError, ReviewRequiredError
from vibeguide.workflow.models import (
    ReviewPerspective,
    TransitionDefinition,
    WorkflowDefinition,
)
from vibeguide.workflow.review_gate import is_transition_allowed

logger = logging.getLogger(__name__)


@dataclass(frozen=True)
class TransitionResult:
    """Resulting phase and the instructions to show for it.

    Attributes:
        phase: Phase the conversation is (or will be) in
        instructions: Raw instructions, before variable substitution
        previous_phase: Phase the request started from
        trigger: Trigger that was applied, None when continuing
        transition_reason: Informational reason declared on the transition
        phase_changed: Whether ``phase`` differs from ``previous_phase``
    """

    phase: str
    instructions: str
    previous_phase: str
    trigger: str | None = None
    transition_reason: str = ""
    phase_changed: bool = False


@dataclass(frozen=True)
class ReviewRequest:
    """Perspectives to review before moving into ``target_phase``."""

    current_phase: str
    target_phase: str
    perspectives: list[ReviewPerspective] = field(default_factory=list)
    triggers: list[str] = field(default_factory=list)


def compose_instructions(
    workflow: WorkflowDefinition,
    transition: TransitionDefinition,
    current_phase: str | None = None,
) -> str:
    """Render the instructions shown when ``transition`` is taken.

    Args:
        workflow: Workflow the transition belongs to
        transition: Transition being taken
        current_phase: Phase the conversation is in; when equal to the
            target, only the target's default instructions are returned

    Returns:
        Instruction text
    """
    target = workflow.get_phase(transition.to)

    if current_phase is not None and transition.to == current_phase:
        return target.default_instructions
    if transition.instructions:
        return transition.instructions
    if transition.additional_instructions:
        return (
            f"{target.default_instructions}"
            f"{ADDITIONAL_INSTRUCTIONS_SEPARATOR}"
            f"{transition.additional_instructions}"
        )
    return target.default_instructions


class TransitionEngine:
    """Computes phases and instructions from workflow data.

    Holds no state: every method is a function of the workflow, the phase the
    conversation is recorded in and the request.
    """

    def continue_in_phase(self, workflow: WorkflowDefinition, current_phase: str) -> TransitionResult:
        """Instructions for continuing work in the current phase."""
        phase = workflow.get_phase(current_phase)
        return TransitionResult(
            phase=current_phase,
            instructions=phase.default_instructions,
            previous_phase=current_phase,
        )

    def start(self, workflow: WorkflowDefinition) -> TransitionResult:
        """Instructions for a conversation entering the initial phase."""
        return self.continue_in_phase(workflow, workflow.initial_state)

    def transition(
        self,
        workflow: WorkflowDefinition,
        current_phase: str,
        trigger: str,
        require_reviews: bool = False,
        review_state: ReviewState | str = ReviewState.NOT_REQUIRED,
    ) -> TransitionResult:
        """Resolve an explicit transition request.

        Args:
            workflow: Workflow governing the conversation
            current_phase: Phase the conversation is recorded in
            trigger: Requested trigger
            require_reviews: Conversation's review policy flag
            review_state: Review state supplied by the caller

        Returns:
            TransitionResult for the target phase

        Raises:
            UnknownPhaseError: If ``current_phase`` is not part of the workflow
            NoSuchTransitionError: If the trigger does not leave ``current_phase``
            ReviewRequiredError: If the review gate blocks the transition
        """
        transition = workflow.find_transition(current_phase, trigger)

        decision = is_transition_allowed(transition, require_reviews, review_state)
        if not decision.allowed:
            logger.info(
                f"Transition '{trigger}' from '{current_phase}' blocked pending review"
            )
            raise ReviewRequiredError(
                current_phase,
                transition.to,
                [p.as_dict() for p in decision.perspectives],
            )

        instructions = compose_instructions(workflow, transition, current_phase)
        logger.debug(f"Resolved '{trigger}': {current_phase} -> {transition.to}")
        return TransitionResult(
            phase=transition.to,
            instructions=instructions,
            previous_phase=current_phase,
            trigger=trigger,
            transition_reason=transition.transition_reason,
            phase_changed=transition.to != current_phase,
        )

    def review_request(
        self, workflow: WorkflowDefinition, current_phase: str, target_phase: str
    ) -> ReviewRequest:
        """Collect the review perspectives for moving into ``target_phase``.

        Raises:
            UnknownPhaseError: If either phase is not part of the workflow
            NoSuchTransitionError: If no transition leads from the current
                phase to ``target_phase``
        """
        workflow.get_phase(target_phase)
        transitions = workflow.transitions_between(current_phase, target_phase)
        if not transitions:
            raise NoSuchTransitionError(
                current_phase,
                f"-> {target_phase}",
                workflow.get_phase(current_phase).triggers,
            )

        perspectives: list[ReviewPerspective] = []
        for transition in transitions:
            for perspective in transition.review_perspectives:
                if perspective not in perspectives:
                    perspectives.append(perspective)

        return ReviewRequest(
            current_phase=current_phase,
            target_phase=target_phase,
            perspectives=perspectives,
            triggers=[t.trigger for t in transitions],
        )
