"""Plan document manager.

Each conversation owns a markdown plan file acting as the agent's long-term
memory. The file is created from a template on first start and never
overwritten afterwards; only a reset deletes it.

Paths:
    .vibe/development-plan.md            # main / master
    .vibe/development-plan-{branch}.md   # any other branch
"""

import logging
from dataclasses import dataclass, field
from datetime import UTC, datetime
from pathlib import Path

from vibeguide.config import TRUNK_BRANCHES, VIBE_DIR_NAME
from vibeguide.project.git import clean_branch_name
from vibeguide.workflow.models import WorkflowDefinition

logger = logging.getLogger(__name__)


@dataclass
class PlanInfo:
    """Existence and content of a plan file."""

    path: Path
    exists: bool
    content: str = ""


@dataclass
class PlanAnalysis:
    """Task and decision summary extracted from a plan file."""

    sections: list[str] = field(default_factory=list)
    active_tasks: list[str] = field(default_factory=list)
    completed_tasks: list[str] = field(default_factory=list)
    key_decisions: list[str] = field(default_factory=list)

    @property
    def tasks_total(self) -> int:
        return len(self.active_tasks) + len(self.completed_tasks)

    def to_dict(self) -> dict:
        return {
            "sections": self.sections,
            "tasks_completed": len(self.completed_tasks),
            "tasks_total": self.tasks_total,
            "active_tasks": self.active_tasks,
            "completed_tasks": self.completed_tasks,
            "key_decisions": self.key_decisions,
        }


def phase_title(phase: str) -> str:
    """``requirements_analysis`` -> ``Requirements Analysis``."""
    return " ".join(part.capitalize() for part in phase.replace("-", "_").split("_") if part)


class PlanManager:
    """Creates, locates, reads and deletes plan files."""

    @staticmethod
    def get_plan_path(project_path: Path | str, branch: str) -> Path:
        """Deterministic plan path; distinct branches never share a file."""
        vibe_dir = Path(project_path) / VIBE_DIR_NAME
        if branch in TRUNK_BRANCHES:
            return vibe_dir / "development-plan.md"
        return vibe_dir / f"development-plan-{clean_branch_name(branch)}.md"

    def ensure_exists(
        self,
        plan_path: Path | str,
        workflow: WorkflowDefinition,
        project_path: Path | str,
        branch: str,
    ) -> Path:
        """Create the plan file from the template if it does not exist yet.

        Args:
            plan_path: Where the plan lives
            workflow: Workflow whose phases become plan sections
            project_path: Project root, used for the heading
            branch: Branch identifier, used for the heading

        Returns:
            The plan path
        """
        plan_path = Path(plan_path)
        if plan_path.exists():
            return plan_path

        plan_path.parent.mkdir(parents=True, exist_ok=True)
        plan_path.write_text(
            self.render_template(workflow, Path(project_path).name, branch), encoding="utf-8"
        )
        logger.info(f"Created plan file {plan_path}")
        return plan_path

    @staticmethod
    def render_template(workflow: WorkflowDefinition, project_name: str, branch: str) -> str:
        """Render the initial plan document for a workflow."""
        today = datetime.now(UTC).strftime("%Y-%m-%d")
        lines = [
            f"# Development Plan: {project_name} ({branch} branch)",
            "",
            f"*Generated on {today}*",
            f"*Workflow: {workflow.name}*",
            "",
            "## Goal",
            "*Define what you're building or fixing - this will be updated as requirements are gathered*",
            "",
        ]

        for phase in workflow.phases:
            lines.extend([f"## {phase_title(phase)}", "### Tasks"])
            if phase == workflow.initial_state:
                lines.extend(
                    [
                        "- [ ] *Tasks will be added as we progress*",
                        "",
                        "### Completed",
                        "- [x] Created development plan file",
                    ]
                )
            else:
                lines.extend(
                    [
                        "- [ ] *To be added when this phase becomes active*",
                        "",
                        "### Completed",
                        "*None yet*",
                    ]
                )
            lines.append("")

        lines.extend(
            [
                "## Key Decisions",
                "*Important decisions will be documented here as they are made*",
                "",
                "## Notes",
                "*Additional context and observations*",
                "",
                "---",
                "*This plan is maintained by the agent. Tool responses say which section "
                "to focus on and what tasks to work on.*",
                "",
            ]
        )
        return "\n".join(lines)

    @staticmethod
    def get_info(plan_path: Path | str) -> PlanInfo:
        plan_path = Path(plan_path)
        if not plan_path.is_file():
            return PlanInfo(path=plan_path, exists=False)
        return PlanInfo(path=plan_path, exists=True, content=plan_path.read_text(encoding="utf-8"))

    @staticmethod
    def delete(plan_path: Path | str) -> bool:
        """Delete a plan file.

        Returns:
            True if a file was deleted, False if it was already missing
        """
        try:
            Path(plan_path).unlink()
        except FileNotFoundError:
            logger.debug(f"Plan file {plan_path} already missing")
            return False
        logger.info(f"Deleted plan file {plan_path}")
        return True

    @staticmethod
    def analyze(content: str) -> PlanAnalysis:
        """Summarize tasks and decisions recorded in a plan document."""
        analysis = PlanAnalysis()
        current_section = ""

        for line in content.splitlines():
            stripped = line.strip()
            if stripped.startswith("## "):
                current_section = stripped[3:].strip()
                analysis.sections.append(current_section)
                continue

            if stripped.lower().startswith("- [x]"):
                analysis.completed_tasks.append(stripped[5:].strip())
            elif stripped.startswith("- [ ]"):
                task = stripped[5:].strip()
                # Template placeholders are italic
                if not (task.startswith("*") and task.endswith("*")):
                    analysis.active_tasks.append(task)
            elif "decision" in current_section.lower() and stripped.startswith("- "):
                analysis.key_decisions.append(stripped[2:].strip())

        return analysis
