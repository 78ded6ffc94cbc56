"""Review gate for phase transitions.

Pure decision function: a transition may proceed when the conversation does
not require reviews, when the transition declares no review perspectives, or
when the caller reports the review as performed.
"""

from dataclasses import dataclass, field

from vibeguide.config import ReviewState
from vibeguide.workflow.models import ReviewPerspective, TransitionDefinition


@dataclass(frozen=True)
class ReviewDecision:
    """Outcome of the review gate.

    Attributes:
        allowed: Whether the transition may proceed
        perspectives: Perspectives the caller must review when not allowed
    """

    allowed: bool
    perspectives: list[ReviewPerspective] = field(default_factory=list)

    @property
    def requires_review(self) -> bool:
        return not self.allowed


def is_transition_allowed(
    transition: TransitionDefinition,
    require_reviews: bool,
    review_state: ReviewState | str,
) -> ReviewDecision:
    """Decide whether a transition may proceed.

    Args:
        transition: Transition being requested
        require_reviews: Conversation's review policy flag
        review_state: Review state supplied by the caller

    Returns:
        ReviewDecision; when not allowed it carries the declared perspectives
        verbatim
    """
    state = ReviewState(review_state)

    if not require_reviews or not transition.review_perspectives:
        return ReviewDecision(allowed=True)
    if state is ReviewState.PERFORMED:
        return ReviewDecision(allowed=True)
    return ReviewDecision(allowed=False, perspectives=list(transition.review_perspectives))
