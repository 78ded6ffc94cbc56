"""Logical operations exposed to the protocol layer.

``WorkflowService`` wires the catalog, transition engine, conversation store,
plan manager and project documents manager together for one project and
implements the operations a calling agent invokes:

- start_development / whats_next / proceed_to_phase / conduct_review
- resume_workflow / reset_development
- list_workflows / install_workflow / setup_project_docs
- get_system_prompt / get_conversation_state
- get_workflow_resource / get_development_plan

Every operation returns a JSON-serializable dict and raises a ``VibeError``
subclass, tagged with the operation name, on failure. Each call is recorded
in the interaction audit log on a best-effort basis.
"""

import functools
import logging
import sqlite3
from collections.abc import Callable
from pathlib import Path
from typing import Any

from vibeguide.config import (
    ARTIFACT_SETUP_PHASE,
    VIBE_DIR_NAME,
    VIBE_GITIGNORE_ENTRIES,
    WORKFLOW_RESOURCE_SCHEME,
    CommitBehaviour,
    DocumentType,
    ReviewState,
    ServerConfig,
)
from vibeguide.errors import (
    ConfirmationRequiredError,
    ConversationNotFoundError,
    InvalidArgumentError,
    NoSuchTransitionError,
    ReviewRequiredError,
    VibeError,
)
from vibeguide.project.detection import FileDetector
from vibeguide.project.docs import ProjectDocsManager
from vibeguide.project.git import get_current_branch, is_git_repository
from vibeguide.project.plan import PlanManager
from vibeguide.service.instructions import InstructionContext, InstructionGenerator
from vibeguide.service.system_prompt import generate_system_prompt
from vibeguide.state.identity import generate_conversation_id
from vibeguide.state.models import ConversationState, GitCommitConfig
from vibeguide.state.store import ConversationStore
from vibeguide.workflow.catalog import WorkflowCatalog
from vibeguide.workflow.engine import TransitionEngine
from vibeguide.workflow.models import WorkflowDefinition

logger = logging.getLogger(__name__)


def operation(name: str) -> Callable:
    """Tag VibeErrors raised inside a service method with the operation name."""

    def decorator(func: Callable) -> Callable:
        @functools.wraps(func)
        def wrapper(self: "WorkflowService", *args: Any, **kwargs: Any) -> Any:
            logger.debug(f"{name} called with args={args} kwargs={kwargs}")
            try:
                return func(self, *args, **kwargs)
            except VibeError as e:
                if e.operation is None:
                    e.operation = name
                logger.info(f"{name} failed: {type(e).__name__}: {e.message}")
                raise

        return wrapper

    return decorator


class WorkflowService:
    """Workflow operations for a single project.

    Args:
        project_path: Project root
        catalog: Workflow catalog; defaults to one with the default domain filter
        store: Conversation store; defaults to the project's sqlite database
        engine: Transition engine
        plans: Plan document manager
        docs: Project documents manager
        detector: Existing documentation detector
        branch_resolver: Callable returning the branch identifier for a path
    """

    def __init__(
        self,
        project_path: Path | str,
        catalog: WorkflowCatalog | None = None,
        store: ConversationStore | None = None,
        engine: TransitionEngine | None = None,
        plans: PlanManager | None = None,
        docs: ProjectDocsManager | None = None,
        detector: FileDetector | None = None,
        branch_resolver: Callable[[Path], str] = get_current_branch,
    ) -> None:
        self.project_path = Path(project_path).resolve()
        self.catalog = catalog or WorkflowCatalog()
        self.store = store or ConversationStore.for_project(self.project_path)
        self.engine = engine or TransitionEngine()
        self.plans = plans or PlanManager()
        self.docs = docs or ProjectDocsManager()
        self.detector = detector or FileDetector()
        self.branch_resolver = branch_resolver
        self.instructions = InstructionGenerator(self.docs)

    @classmethod
    def from_config(cls, config: ServerConfig) -> "WorkflowService":
        """Build a service from environment-driven configuration."""
        return cls(config.project_path, catalog=WorkflowCatalog(domains=config.workflow_domains))

    # =========================================================================
    # Helpers
    # =========================================================================

    def _identity(self) -> tuple[str, str]:
        """Return (branch, conversation_id) for the project."""
        branch = self.branch_resolver(self.project_path)
        return branch, generate_conversation_id(self.project_path, branch)

    def _get_state(self) -> ConversationState:
        branch, conversation_id = self._identity()
        state = self.store.get(conversation_id)
        if state is None:
            raise ConversationNotFoundError(str(self.project_path), branch)
        return state

    def _workflow_for(self, state: ConversationState) -> WorkflowDefinition:
        return self.catalog.get_workflow(
            self.project_path, state.workflow_name, include_unloaded=True
        )

    def _render(
        self,
        state: ConversationState,
        workflow: WorkflowDefinition,
        raw_instructions: str,
        transition_reason: str = "",
    ) -> str:
        context = InstructionContext(
            state=state,
            workflow=workflow,
            plan_exists=Path(state.plan_file_path).exists(),
            is_git_repository=is_git_repository(self.project_path),
            transition_reason=transition_reason,
        )
        return self.instructions.generate(raw_instructions, context)

    def _review_perspectives(self, perspectives: list[dict[str, str]]) -> list[dict[str, str]]:
        """Resolve document variables in review prompts."""
        return [
            {**p, "prompt": self.docs.substitute_variables(p["prompt"], self.project_path)}
            for p in perspectives
        ]

    def _audit(
        self, conversation_id: str, tool_name: str, inputs: dict[str, Any], response: Any, phase: str
    ) -> None:
        self.store.audit.log(conversation_id, tool_name, inputs, response, phase)

    def _ensure_gitignore(self) -> None:
        """Keep the state database out of version control."""
        gitignore = self.project_path / VIBE_DIR_NAME / ".gitignore"
        existing = gitignore.read_text(encoding="utf-8").splitlines() if gitignore.exists() else []
        missing = [entry for entry in VIBE_GITIGNORE_ENTRIES if entry not in existing]
        if not missing:
            return

        gitignore.parent.mkdir(parents=True, exist_ok=True)
        lines = existing + missing
        gitignore.write_text("\n".join(lines) + "\n", encoding="utf-8")
        logger.debug(f"Updated {gitignore} with {missing}")

    @staticmethod
    def _parse_enum(enum_cls: type, argument: str, value: Any) -> Any:
        try:
            return enum_cls(value)
        except ValueError:
            raise InvalidArgumentError(argument, value, enum_cls.values()) from None

    # =========================================================================
    # Development lifecycle
    # =========================================================================

    @operation("start_development")
    def start_development(
        self,
        workflow: str,
        commit_behaviour: str = CommitBehaviour.NONE.value,
        require_reviews: bool = False,
    ) -> dict[str, Any]:
        """Start (or rejoin) development on the current branch.

        Args:
            workflow: Workflow name visible to the project
            commit_behaviour: step, phase, end or none
            require_reviews: Gate transitions with review perspectives

        Returns:
            Response with phase and instructions; phase is "artifact-setup"
            when the workflow needs project documents that are missing
        """
        behaviour = self._parse_enum(CommitBehaviour, "commit_behaviour", commit_behaviour)
        workflow_def = self.catalog.get_workflow(self.project_path, workflow)
        branch, conversation_id = self._identity()
        inputs = {
            "workflow": workflow,
            "commit_behaviour": behaviour.value,
            "require_reviews": require_reviews,
        }

        if workflow_def.requires_documentation:
            missing = self._missing_documents(workflow_def)
            if missing:
                response = self._artifact_setup_response(workflow_def, missing)
                self._audit(conversation_id, "start_development", inputs, response, ARTIFACT_SETUP_PHASE)
                return response

        plan_path = self.plans.get_plan_path(self.project_path, branch)
        commit_config = GitCommitConfig.from_behaviour(behaviour)
        state, created = self.store.get_or_create(
            conversation_id=conversation_id,
            project_path=self.project_path,
            branch=branch,
            workflow_name=workflow_def.name,
            initial_phase=workflow_def.initial_state,
            plan_file_path=plan_path,
            git_commit_config=commit_config,
            require_reviews=require_reviews,
        )

        notes: list[str] = []
        if not created:
            if state.require_reviews_before_phase_transition != require_reviews:
                self.store.update_review_policy(conversation_id, require_reviews)
            if state.git_commit_config != commit_config:
                self.store.update_commit_config(conversation_id, commit_config)
            if state.workflow_name != workflow_def.name:
                notes.append(
                    f"This branch already uses the '{state.workflow_name}' workflow. "
                    "Call reset_development() first to switch workflows."
                )
            state = self.store.get(conversation_id) or state

        active_workflow = self._workflow_for(state)
        self.plans.ensure_exists(state.plan_file_path, active_workflow, self.project_path, branch)
        if is_git_repository(self.project_path):
            self._ensure_gitignore()

        result = self.engine.continue_in_phase(active_workflow, state.current_phase)
        instructions = self._render(state, active_workflow, result.instructions)
        if notes:
            instructions = "\n\n".join([*notes, instructions])

        response = {
            "phase": state.current_phase,
            "instructions": instructions,
            "plan_file_path": state.plan_file_path,
            "conversation_id": state.conversation_id,
            "workflow": state.workflow_name,
            "created": created,
        }
        self._audit(conversation_id, "start_development", inputs, response, state.current_phase)
        return response

    def _missing_documents(self, workflow: WorkflowDefinition) -> list[DocumentType]:
        texts = list(workflow.iter_instruction_texts())
        referenced = [dt for dt in DocumentType if any(dt.variable in text for text in texts)]
        return self.docs.missing_documents(self.project_path, referenced)

    def _artifact_setup_response(
        self, workflow: WorkflowDefinition, missing: list[DocumentType]
    ) -> dict[str, Any]:
        detected = self.detector.detect(self.project_path)
        templates = self.docs.templates.all_templates()
        missing_names = [dt.value for dt in missing]

        lines = [
            f"The '{workflow.name}' workflow requires project documentation before development "
            f"can start. Missing documents: {', '.join(missing_names)}.",
            "",
            "Call setup_project_docs() with, for each document, one of:",
            "- a template name",
            "- a path to an existing file or directory in the project",
            "- \"none\" to keep that information in the plan file instead",
            "",
            "**Available templates:**",
        ]
        for doc_type in missing:
            lines.append(f"- {doc_type.value}: {', '.join(templates[doc_type.value])}")
        lines.extend(
            [
                "",
                "**Existing documentation found:**",
                self.detector.format_suggestions(detected, missing),
                "",
                f"Then call start_development(workflow='{workflow.name}') again.",
            ]
        )

        return {
            "phase": ARTIFACT_SETUP_PHASE,
            "instructions": "\n".join(lines),
            "workflow": workflow.name,
            "missing_documents": missing_names,
            "available_templates": {dt.value: templates[dt.value] for dt in missing},
            "detected_documents": {
                dt.value: [{"path": d.path, "confidence": d.confidence} for d in detected.get(dt, [])]
                for dt in missing
            },
        }

    @operation("whats_next")
    def whats_next(
        self,
        context: str | None = None,
        user_input: str | None = None,
        conversation_summary: str | None = None,
        recent_messages: list[dict[str, str]] | None = None,
    ) -> dict[str, Any]:
        """Instructions for continuing in the current phase. Never changes phase."""
        state = self._get_state()
        workflow = self._workflow_for(state)
        result = self.engine.continue_in_phase(workflow, state.current_phase)

        response = {
            "phase": state.current_phase,
            "instructions": self._render(state, workflow, result.instructions),
            "plan_file_path": state.plan_file_path,
            "conversation_id": state.conversation_id,
            "workflow": state.workflow_name,
        }
        inputs = {
            "context": context,
            "user_input": user_input,
            "conversation_summary": conversation_summary,
            "recent_messages": recent_messages,
        }
        self._audit(state.conversation_id, "whats_next", inputs, response, state.current_phase)
        return response

    @operation("proceed_to_phase")
    def proceed_to_phase(
        self,
        trigger: str,
        current_phase: str,
        review_state: str,
        reason: str | None = None,
    ) -> dict[str, Any]:
        """Take an explicit transition out of the current phase.

        Args:
            trigger: Transition trigger
            current_phase: Phase the caller believes the conversation is in
            review_state: not-required, pending or performed
            reason: Optional caller-supplied reason, logged and echoed

        Raises:
            UnknownPhaseError: If ``current_phase`` is not a workflow phase
            NoSuchTransitionError: If the trigger does not leave the recorded
                phase, or the caller's phase is stale
            ReviewRequiredError: If a review must be performed first
        """
        review = self._parse_enum(ReviewState, "review_state", review_state)
        state = self._get_state()
        workflow = self._workflow_for(state)
        workflow.get_phase(current_phase)

        recorded = state.current_phase
        if current_phase != recorded:
            raise NoSuchTransitionError(recorded, trigger, workflow.get_phase(recorded).triggers)

        try:
            result = self.engine.transition(
                workflow,
                recorded,
                trigger,
                require_reviews=state.require_reviews_before_phase_transition,
                review_state=review,
            )
        except ReviewRequiredError as e:
            e.details["perspectives"] = self._review_perspectives(e.details["perspectives"])
            raise

        if result.phase_changed and not self.store.update_phase(
            state.conversation_id, result.phase, expected_phase=recorded
        ):
            latest = self.store.get(state.conversation_id)
            if latest is None:
                raise ConversationNotFoundError(str(self.project_path), state.git_branch)
            raise NoSuchTransitionError(
                latest.current_phase, trigger, workflow.get_phase(latest.current_phase).triggers
            )

        new_state = self.store.get(state.conversation_id) or state
        reason_text = result.transition_reason or (reason or "")
        response = {
            "phase": result.phase,
            "previous_phase": result.previous_phase,
            "instructions": self._render(new_state, workflow, result.instructions, reason_text),
            "plan_file_path": new_state.plan_file_path,
            "transition_reason": reason_text,
            "conversation_id": new_state.conversation_id,
        }
        inputs = {
            "trigger": trigger,
            "current_phase": current_phase,
            "review_state": review.value,
            "reason": reason,
        }
        self._audit(state.conversation_id, "proceed_to_phase", inputs, response, result.phase)
        return response

    @operation("conduct_review")
    def conduct_review(self, target_phase: str) -> dict[str, Any]:
        """Review guidance for moving from the current phase into ``target_phase``."""
        state = self._get_state()
        workflow = self._workflow_for(state)
        request = self.engine.review_request(workflow, state.current_phase, target_phase)
        trigger = request.triggers[0]
        perspectives = self._review_perspectives([p.as_dict() for p in request.perspectives])

        if not perspectives:
            instructions = (
                f"No review is required to move from '{state.current_phase}' to "
                f"'{target_phase}'. Call proceed_to_phase(trigger='{trigger}', "
                f"current_phase='{state.current_phase}', review_state='not-required')."
            )
        else:
            lines = [
                f"Review the work of the '{state.current_phase}' phase before moving to "
                f"'{target_phase}'. Conduct the review from each perspective below, in turn:",
                "",
            ]
            for perspective in perspectives:
                lines.extend([f"### Review as {perspective['role']}", perspective["prompt"].strip(), ""])
            lines.extend(
                [
                    "Summarize the findings for the user and resolve any blocking issues.",
                    f"Then call proceed_to_phase(trigger='{trigger}', "
                    f"current_phase='{state.current_phase}', review_state='performed').",
                ]
            )
            instructions = "\n".join(lines)

        response = {
            "instructions": instructions,
            "current_phase": state.current_phase,
            "target_phase": target_phase,
            "triggers": request.triggers,
            "perspectives": perspectives,
        }
        self._audit(
            state.conversation_id,
            "conduct_review",
            {"target_phase": target_phase},
            response,
            state.current_phase,
        )
        return response

    @operation("resume_workflow")
    def resume_workflow(self, include_system_prompt: bool = True) -> dict[str, Any]:
        """Current state, plan status and guidance after a restart. Never mutates state."""
        state = self._get_state()
        workflow = self._workflow_for(state)
        phase = workflow.get_phase(state.current_phase)

        plan_info = self.plans.get_info(state.plan_file_path)
        analysis = self.plans.analyze(plan_info.content) if plan_info.exists else None

        actions = ["Call whats_next() to get current phase-specific guidance"]
        if phase.transitions:
            actions.append("From here, you can transition to:")
            for transition in phase.transitions:
                target = workflow.states[transition.to]
                actions.append(f"- {transition.to} (`{transition.trigger}`): {target.description}")
            actions.append("Use proceed_to_phase() when ready to transition")
        else:
            actions.append("Continue working in the current phase")

        potential_issues: list[str] = []
        if analysis is not None:
            if analysis.active_tasks:
                actions.append(f"Continue working on active tasks: {', '.join(analysis.active_tasks[:2])}")
            elif analysis.completed_tasks:
                potential_issues.append(
                    "No active tasks found - may be ready to transition to the next phase"
                )
        else:
            potential_issues.append(f"Plan file {state.plan_file_path} is missing")

        result = self.engine.continue_in_phase(workflow, state.current_phase)
        response = {
            "workflow_status": {
                "conversation_id": state.conversation_id,
                "current_phase": state.current_phase,
                "project_path": state.project_path,
                "git_branch": state.git_branch,
                "workflow": {
                    "name": workflow.name,
                    "description": workflow.description,
                    "initial_state": workflow.initial_state,
                    "phases": workflow.phases,
                    "phase_descriptions": {
                        name: p.description for name, p in workflow.states.items()
                    },
                },
            },
            "plan_status": {
                "exists": plan_info.exists,
                "path": str(plan_info.path),
                "analysis": analysis.to_dict() if analysis else None,
            },
            "recommendations": {
                "immediate_actions": actions,
                "phase_guidance": f"Current phase: {phase.description or state.current_phase}",
                "potential_issues": potential_issues,
            },
            "system_prompt": generate_system_prompt(workflow) if include_system_prompt else None,
            "phase": state.current_phase,
            "instructions": self._render(state, workflow, result.instructions),
        }
        self._audit(
            state.conversation_id,
            "resume_workflow",
            {"include_system_prompt": include_system_prompt},
            {"phase": state.current_phase},
            state.current_phase,
        )
        return response

    @operation("reset_development")
    def reset_development(self, confirm: bool = False, reason: str | None = None) -> dict[str, Any]:
        """Delete the conversation and its plan file; flag its audit rows.

        Raises:
            ConfirmationRequiredError: Unless ``confirm`` is True
        """
        if confirm is not True:
            raise ConfirmationRequiredError(
                "Reset requires explicit confirmation. Call reset_development(confirm=True)."
            )

        _, conversation_id = self._identity()
        result = self.store.reset(conversation_id, reason)

        if result.reset_items:
            message = f"Reset {', '.join(result.reset_items)} for {conversation_id}."
        else:
            message = f"Nothing to reset for {conversation_id}."
        if result.errors:
            message += f" Some steps failed: {'; '.join(result.errors)}"

        return {
            "success": not result.errors,
            "reset_items": result.reset_items,
            "conversation_id": conversation_id,
            "soft_deleted_audit_rows": result.soft_deleted_audit_rows,
            "message": message,
        }

    # =========================================================================
    # Catalog and documents
    # =========================================================================

    def _current_phase_or_blank(self, conversation_id: str) -> str:
        """Phase recorded for the audit row; blank when the state is unreadable."""
        try:
            state = self.store.get(conversation_id)
        except sqlite3.Error as e:
            logger.warning(f"Could not read state for audit of {conversation_id}: {e}")
            return ""
        return state.current_phase if state else ""

    @operation("list_workflows")
    def list_workflows(self, include_unloaded: bool = False) -> list[dict[str, Any]]:
        """Workflows available to the project, without their definition bodies."""
        infos = [info.to_dict() for info in self.catalog.list_workflows(self.project_path, include_unloaded)]
        _, conversation_id = self._identity()
        self._audit(
            conversation_id,
            "list_workflows",
            {"include_unloaded": include_unloaded},
            [info["name"] for info in infos],
            self._current_phase_or_blank(conversation_id),
        )
        return infos

    @operation("install_workflow")
    def install_workflow(self, source: str, name: str | None = None) -> dict[str, Any]:
        """Install a workflow into ``.vibe/workflows`` and make it available immediately."""
        result = self.catalog.install(self.project_path, source, name)
        response = {
            "success": True,
            "name": result.name,
            "path": str(result.path),
            "source": result.source,
            "message": f"Workflow '{result.name}' installed. Start it with "
            f"start_development(workflow='{result.name}').",
        }
        _, conversation_id = self._identity()
        self._audit(
            conversation_id,
            "install_workflow",
            {"source": source if "\n" not in source else "<yaml>", "name": name},
            response,
            self._current_phase_or_blank(conversation_id),
        )
        return response

    @operation("setup_project_docs")
    def setup_project_docs(
        self,
        architecture: str | None = None,
        requirements: str | None = None,
        design: str | None = None,
    ) -> dict[str, Any]:
        """Create, link or disable the project's architecture, requirements and design documents."""
        result = self.docs.setup(self.project_path, architecture, requirements, design)
        response = {
            "success": True,
            **result.to_dict(),
            "variables": self.docs.get_variable_substitutions(self.project_path),
            "message": "Project documents are set up. Call start_development() to begin.",
        }
        _, conversation_id = self._identity()
        self._audit(
            conversation_id,
            "setup_project_docs",
            {"architecture": architecture, "requirements": requirements, "design": design},
            response,
            self._current_phase_or_blank(conversation_id),
        )
        return response

    # =========================================================================
    # Resources
    # =========================================================================

    def get_system_prompt(self) -> str:
        return generate_system_prompt()

    @operation("get_workflow_resource")
    def get_workflow_resource(self, uri_or_name: str) -> dict[str, Any]:
        """Raw YAML of a workflow, addressed as ``workflow://<name>`` or by name.

        Raises:
            InvalidArgumentError: If the URI names no workflow
            WorkflowNotFoundError: If no workflow has that name
        """
        name = uri_or_name.strip()
        if name.startswith(WORKFLOW_RESOURCE_SCHEME):
            name = name[len(WORKFLOW_RESOURCE_SCHEME):].strip("/")
        if not name:
            raise InvalidArgumentError(
                "workflow uri", uri_or_name, [f"{WORKFLOW_RESOURCE_SCHEME}<workflow-name>"]
            )

        text, path = self.catalog.workflow_source(self.project_path, name)
        logger.debug(f"Serving workflow resource '{name}' from {path}")
        return {
            "uri": f"{WORKFLOW_RESOURCE_SCHEME}{name}",
            "name": name,
            "path": str(path),
            "mime_type": "text/yaml",
            "text": text,
        }

    @operation("get_development_plan")
    def get_development_plan(self) -> dict[str, Any]:
        """Markdown content of the current conversation's plan file."""
        state = self._get_state()
        plan = self.plans.get_info(state.plan_file_path)
        text = plan.content if plan.exists else (
            f"The development plan {state.plan_file_path} does not exist yet. "
            "Call whats_next() to have it created."
        )
        return {
            "plan_file_path": state.plan_file_path,
            "exists": plan.exists,
            "mime_type": "text/markdown",
            "text": text,
        }

    @operation("get_conversation_state")
    def get_conversation_state(self) -> dict[str, Any]:
        state = self._get_state()
        return state.model_dump()
