"""Instruction enrichment.

Turns the engine's raw phase instructions into the text handed to the
calling agent: document variables are substituted, then plan-file guidance,
project context, commit guidance and the available transitions are appended.
"""

from dataclasses import dataclass

from vibeguide.config import CommitBehaviour
from vibeguide.project.docs import ProjectDocsManager
from vibeguide.state.models import ConversationState
from vibeguide.workflow.models import WorkflowDefinition

COMMIT_GUIDANCE = {
    CommitBehaviour.STEP: (
        "**Git Commits:** Create a commit after each completed step or task, "
        "with a message describing what was done."
    ),
    CommitBehaviour.PHASE: (
        "**Git Commits:** Before moving to the next phase, commit all work of the "
        "current phase with a message summarizing the phase's outcome."
    ),
    CommitBehaviour.END: (
        "**Git Commits:** Do not commit intermediate work. Create a single commit "
        "when development is complete."
    ),
}


@dataclass
class InstructionContext:
    """Everything needed to enrich instructions for one response."""

    state: ConversationState
    workflow: WorkflowDefinition
    plan_exists: bool
    is_git_repository: bool
    transition_reason: str = ""


class InstructionGenerator:
    """Builds the final instruction text for a phase.

    Args:
        docs: Project documents manager used for variable substitution
    """

    def __init__(self, docs: ProjectDocsManager | None = None):
        self.docs = docs or ProjectDocsManager()

    def generate(self, raw_instructions: str, context: InstructionContext) -> str:
        """Enrich raw phase instructions.

        Args:
            raw_instructions: Instructions resolved by the transition engine
            context: Conversation, workflow and environment facts

        Returns:
            Instruction text ready to hand to the agent
        """
        state = context.state
        phase = context.workflow.get_phase(state.current_phase)
        body = self.docs.substitute_variables(raw_instructions, state.project_path).strip()

        sections = [body]

        plan_lines = [
            "**Plan File Guidance:**",
            f"Use the plan file at `{state.plan_file_path}` as your long-term memory.",
            "- Mark completed tasks with [x] as you finish them",
            f"- Add new tasks to the section for the current phase ({state.current_phase})",
            "- Record important decisions in the Key Decisions section",
        ]
        if not context.plan_exists:
            plan_lines.append("- The plan file does not exist yet; it will be created for you")
        sections.append("\n".join(plan_lines))

        project_lines = [
            "**Project Context:**",
            f"- Project: {state.project_path}",
            f"- Branch: {state.git_branch}",
            f"- Current Phase: {state.current_phase}",
        ]
        if phase.description:
            project_lines.append(f"- Phase Purpose: {phase.description}")
        if context.transition_reason:
            project_lines.append(f"- Transition Reason: {context.transition_reason}")
        sections.append("\n".join(project_lines))

        commit_text = COMMIT_GUIDANCE.get(state.git_commit_config.behaviour)
        if commit_text and context.is_git_repository:
            sections.append(commit_text)

        if phase.transitions:
            transition_lines = ["**Available Transitions:**"]
            for transition in phase.transitions:
                target = context.workflow.states[transition.to]
                label = f"- `{transition.trigger}` -> {transition.to}"
                if target.description:
                    label += f": {target.description}"
                if transition.review_perspectives and state.require_reviews_before_phase_transition:
                    label += " (review required)"
                transition_lines.append(label)
            transition_lines.append(
                "Call proceed_to_phase() with one of these triggers once the current "
                "phase's work is complete and the user agrees."
            )
            sections.append("\n".join(transition_lines))

        return "\n\n".join(sections)

