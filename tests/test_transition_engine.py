"""Tests for the transition engine and review gate.

Covers:
- Instruction composition for each transition shape
- Continue and start calls never changing phase
- Self-transitions returning only default instructions
- Unknown triggers and phases
- Review gate decisions and review requests
"""

import pytest
import yaml

from vibeguide.config import ADDITIONAL_INSTRUCTIONS_SEPARATOR, ReviewState
from vibeguide.errors import NoSuchTransitionError, ReviewRequiredError, UnknownPhaseError
from vibeguide.workflow.engine import TransitionEngine, compose_instructions
from vibeguide.workflow.loader import parse_workflow
from vibeguide.workflow.review_gate import is_transition_allowed

from conftest import build_linear_workflow


REVIEWERS = [
    {"perspective": "architect", "prompt": "check the design"},
    {"perspective": "security", "prompt": "check the auth flow"},
]


@pytest.fixture
def engine():
    return TransitionEngine()


@pytest.fixture
def workflow_factory(linear_yaml):
    def _make(**go_fields):
        return parse_workflow(linear_yaml(**go_fields))

    return _make


# =============================================================================
# Instruction composition
# =============================================================================


class TestComposeInstructions:
    """Tests for compose_instructions."""

    def test_plain_transition_uses_target_defaults(self, workflow_factory, engine):
        """Without overrides the target's default instructions are returned."""
        result = engine.transition(workflow_factory(), "A", "go")

        assert result.phase == "B"
        assert result.instructions == "do B"
        assert result.previous_phase == "A"
        assert result.phase_changed is True

    def test_additional_instructions_are_appended(self, workflow_factory, engine):
        """additional_instructions follow the defaults after the separator."""
        result = engine.transition(workflow_factory(additional_instructions="also X"), "A", "go")

        assert result.instructions == f"do B{ADDITIONAL_INSTRUCTIONS_SEPARATOR}also X"
        assert result.instructions.startswith("do B")
        assert result.instructions.endswith("also X")

    def test_instructions_override_replaces_defaults(self, workflow_factory, engine):
        """instructions are used verbatim."""
        result = engine.transition(workflow_factory(instructions="only Y"), "A", "go")
        assert result.instructions == "only Y"

    def test_override_wins_over_additional(self, workflow_factory, engine):
        """When both are set, the override is used alone."""
        workflow = workflow_factory(instructions="only Y", additional_instructions="also X")
        assert engine.transition(workflow, "A", "go").instructions == "only Y"

    def test_self_transition_returns_default_only(self, engine):
        """A transition back into the current phase ignores its extra fields."""
        data = build_linear_workflow()
        data["states"]["A"]["transitions"].append(
            {
                "trigger": "stay",
                "to": "A",
                "instructions": "override",
                "additional_instructions": "extra",
            }
        )
        workflow = parse_workflow(yaml.dump(data))

        result = engine.transition(workflow, "A", "stay")

        assert result.phase == "A"
        assert result.instructions == "do A"
        assert result.phase_changed is False

    def test_compose_without_current_phase(self, workflow_factory):
        """compose_instructions works without a current phase."""
        workflow = workflow_factory(additional_instructions="also X")
        transition = workflow.find_transition("A", "go")

        assert compose_instructions(workflow, transition).endswith("also X")

    def test_transition_reason_is_carried(self, workflow_factory, engine):
        """The declared transition_reason is reported."""
        result = engine.transition(workflow_factory(transition_reason="A is done"), "A", "go")
        assert result.transition_reason == "A is done"


# =============================================================================
# Continue / start
# =============================================================================


class TestContinue:
    """Tests for calls without a trigger."""

    def test_start_enters_initial_phase(self, workflow_factory, engine):
        """start returns the initial phase and its defaults."""
        result = engine.start(workflow_factory())
        assert (result.phase, result.instructions) == ("A", "do A")

    def test_continue_never_changes_phase(self, workflow_factory, engine):
        """Continuing is idempotent."""
        workflow = workflow_factory()
        first = engine.continue_in_phase(workflow, "B")
        second = engine.continue_in_phase(workflow, "B")

        assert first == second
        assert first.phase == "B"
        assert first.phase_changed is False

    def test_continue_in_unknown_phase(self, workflow_factory, engine):
        """An unknown phase raises UnknownPhaseError."""
        with pytest.raises(UnknownPhaseError):
            engine.continue_in_phase(workflow_factory(), "Z")


# =============================================================================
# Invalid requests
# =============================================================================


class TestInvalidTransitions:
    """Tests for triggers that do not apply."""

    def test_trigger_from_wrong_phase(self, workflow_factory, engine):
        """'go' only leaves A; from B it is rejected with the valid triggers."""
        with pytest.raises(NoSuchTransitionError) as exc_info:
            engine.transition(workflow_factory(), "B", "go")

        assert exc_info.value.details["valid_triggers"] == ["back"]
        assert "whats_next" in str(exc_info.value)

    def test_unknown_trigger(self, workflow_factory, engine):
        """A trigger no phase declares is rejected."""
        with pytest.raises(NoSuchTransitionError):
            engine.transition(workflow_factory(), "A", "teleport")

    def test_unknown_current_phase(self, workflow_factory, engine):
        """Transitions from an undefined phase raise UnknownPhaseError."""
        with pytest.raises(UnknownPhaseError):
            engine.transition(workflow_factory(), "Z", "go")


# =============================================================================
# Review gate
# =============================================================================


class TestReviewGate:
    """Tests for the review gate decision and its engine integration."""

    def test_allowed_when_reviews_not_required(self, workflow_factory):
        """Without the policy flag every transition is allowed."""
        transition = workflow_factory(review_perspectives=REVIEWERS).find_transition("A", "go")
        for state in ReviewState:
            assert is_transition_allowed(transition, False, state).allowed

    def test_allowed_without_perspectives(self, workflow_factory):
        """Transitions that declare no perspectives are never gated."""
        transition = workflow_factory().find_transition("A", "go")
        assert is_transition_allowed(transition, True, "pending").allowed

    @pytest.mark.parametrize("state", ["not-required", "pending"])
    def test_blocked_until_performed(self, workflow_factory, state):
        """With policy and perspectives only 'performed' passes."""
        transition = workflow_factory(review_perspectives=REVIEWERS).find_transition("A", "go")

        decision = is_transition_allowed(transition, True, state)

        assert not decision.allowed
        assert [p.role for p in decision.perspectives] == ["architect", "security"]

    def test_performed_passes(self, workflow_factory):
        """'performed' opens the gate."""
        transition = workflow_factory(review_perspectives=REVIEWERS).find_transition("A", "go")
        assert is_transition_allowed(transition, True, ReviewState.PERFORMED).allowed

    def test_invalid_review_state(self, workflow_factory):
        """Unknown review states are rejected."""
        transition = workflow_factory().find_transition("A", "go")
        with pytest.raises(ValueError):
            is_transition_allowed(transition, True, "skipped")

    def test_engine_raises_review_required(self, workflow_factory, engine):
        """A blocked transition raises with the perspectives attached."""
        workflow = workflow_factory(review_perspectives=REVIEWERS)

        with pytest.raises(ReviewRequiredError) as exc_info:
            engine.transition(workflow, "A", "go", require_reviews=True, review_state="pending")

        error = exc_info.value
        assert error.details["target"] == "B"
        assert [p["role"] for p in error.details["perspectives"]] == ["architect", "security"]
        assert "conduct_review" in error.message

    def test_engine_passes_after_review(self, workflow_factory, engine):
        """The same request succeeds once the review is performed."""
        workflow = workflow_factory(review_perspectives=REVIEWERS)
        result = engine.transition(workflow, "A", "go", require_reviews=True, review_state="performed")
        assert result.phase == "B"


class TestReviewRequest:
    """Tests for TransitionEngine.review_request."""

    def test_collects_perspectives(self, workflow_factory, engine):
        """Perspectives of the transition into the target are returned."""
        request = engine.review_request(workflow_factory(review_perspectives=REVIEWERS), "A", "B")

        assert request.triggers == ["go"]
        assert [p.role for p in request.perspectives] == ["architect", "security"]

    def test_no_perspectives(self, workflow_factory, engine):
        """A transition without perspectives yields an empty request."""
        assert engine.review_request(workflow_factory(), "A", "B").perspectives == []

    def test_duplicate_perspectives_collapsed(self, engine):
        """Two transitions into the same target share identical perspectives once."""
        data = build_linear_workflow(review_perspectives=REVIEWERS)
        data["states"]["A"]["transitions"].append(
            {"trigger": "skip", "to": "B", "review_perspectives": REVIEWERS[:1]}
        )
        workflow = parse_workflow(yaml.dump(data))

        request = engine.review_request(workflow, "A", "B")

        assert request.triggers == ["go", "skip"]
        assert [p.role for p in request.perspectives] == ["architect", "security"]

    def test_unreachable_target(self, workflow_factory, engine):
        """A target with no transition from the current phase is rejected."""
        with pytest.raises(NoSuchTransitionError):
            engine.review_request(workflow_factory(), "B", "B")

    def test_unknown_target(self, workflow_factory, engine):
        """An undefined target raises UnknownPhaseError."""
        with pytest.raises(UnknownPhaseError):
            engine.review_request(workflow_factory(), "A", "Z")
