"""Project documents manager.

Manages the optional architecture, requirements and design documents in
``<project>/.vibe/docs/`` and the ``$ARCHITECTURE_DOC`` /
``$REQUIREMENTS_DOC`` / ``$DESIGN_DOC`` substitutions used by workflow
instruction text.

Each slot holds exactly one artifact:

- ``{slot}.md`` generated from a bundled template
- ``{slot}{suffix}`` symlink to an existing file (suffix of the source) or
  ``{slot}`` symlink to an existing directory
- ``{slot}{suffix}.link`` pointer file holding the source path, where
  symlinks are not available
- ``{slot}.md`` placeholder telling the agent to use the plan file ("none")

Setup validates every argument before touching the filesystem, and each
new artifact is created under a temporary name before the old one is
replaced, so a failure never leaves a slot half-configured.
"""

import logging
import os
import uuid
from dataclasses import dataclass, field
from pathlib import Path

from vibeguide.config import (
    DOCS_DIR_NAME,
    NONE_DOCUMENT,
    POINTER_FILE_SUFFIX,
    VIBE_DIR_NAME,
    DocumentType,
)
from vibeguide.errors import TemplateNotFoundError
from vibeguide.project.paths import looks_like_path, resolve_project_path
from vibeguide.project.templates import TemplateManager

logger = logging.getLogger(__name__)

PLACEHOLDER_MARKER = "<!-- vibeguide: no document -->"


def placeholder_content(doc_type: DocumentType) -> str:
    return (
        f"{PLACEHOLDER_MARKER}\n"
        f"# {doc_type.value.capitalize()}\n\n"
        f"This project does not maintain a separate {doc_type.value} document.\n"
        f"Record {doc_type.value} information in the development plan file instead.\n"
    )


@dataclass(frozen=True)
class SlotPlan:
    """Validated intent for one document slot."""

    doc_type: DocumentType
    kind: str  # "template", "link", "none", "keep"
    template: str | None = None
    source: Path | None = None
    explicit: bool = True


@dataclass
class DocumentInfo:
    """Current artifact of one slot."""

    doc_type: DocumentType
    path: Path
    exists: bool
    kind: str  # "file", "symlink", "pointer", "placeholder", "missing"
    target: Path | None = None

    def to_dict(self) -> dict:
        return {
            "path": str(self.path),
            "exists": self.exists,
            "kind": self.kind,
            "target": str(self.target) if self.target else None,
        }


@dataclass
class DocumentSetupResult:
    """Paths and actions produced by setup.

    Attributes:
        paths: Resolved path per slot, as used for variable substitution
        actions: What happened per slot: created, linked, pointer,
            placeholder or skipped
    """

    paths: dict[str, Path] = field(default_factory=dict)
    actions: dict[str, str] = field(default_factory=dict)

    def to_dict(self) -> dict:
        return {
            "paths": {slot: str(path) for slot, path in self.paths.items()},
            "actions": dict(self.actions),
        }


class ProjectDocsManager:
    """Creates, links and resolves project documents.

    Args:
        templates: Template registry, defaults to the bundled templates
    """

    def __init__(self, templates: TemplateManager | None = None):
        self.templates = templates or TemplateManager()

    @staticmethod
    def docs_dir(project_path: Path | str) -> Path:
        return Path(project_path) / VIBE_DIR_NAME / DOCS_DIR_NAME

    # -------------------------------------------------------------------------
    # Inspection
    # -------------------------------------------------------------------------

    def _artifacts(self, docs_dir: Path, doc_type: DocumentType) -> list[Path]:
        """Existing entries that belong to a slot (including broken symlinks)."""
        if not docs_dir.is_dir():
            return []
        slot = doc_type.value
        entries = [
            p
            for p in docs_dir.iterdir()
            if p.name == slot or p.name.startswith(f"{slot}.")
        ]
        return sorted(entries, key=lambda p: p.name)

    def get_document_info(self, project_path: Path | str) -> dict[DocumentType, DocumentInfo]:
        """Describe the current artifact of every slot."""
        docs_dir = self.docs_dir(project_path)
        info: dict[DocumentType, DocumentInfo] = {}

        for doc_type in DocumentType:
            artifacts = self._artifacts(docs_dir, doc_type)
            if not artifacts:
                info[doc_type] = DocumentInfo(
                    doc_type, docs_dir / f"{doc_type.value}.md", exists=False, kind="missing"
                )
                continue

            artifact = artifacts[0]
            if artifact.is_symlink():
                try:
                    target = artifact.resolve()
                except (OSError, RuntimeError) as e:
                    logger.warning(f"Broken document link {artifact}: {e}")
                    target = artifact
                info[doc_type] = DocumentInfo(
                    doc_type, artifact, exists=target.exists(), kind="symlink", target=target
                )
            elif artifact.name.endswith(POINTER_FILE_SUFFIX):
                target = Path(artifact.read_text(encoding="utf-8").strip())
                info[doc_type] = DocumentInfo(
                    doc_type, target, exists=target.exists(), kind="pointer", target=target
                )
            elif artifact.is_file() and artifact.read_text(encoding="utf-8").startswith(
                PLACEHOLDER_MARKER
            ):
                info[doc_type] = DocumentInfo(doc_type, artifact, exists=True, kind="placeholder")
            else:
                info[doc_type] = DocumentInfo(doc_type, artifact, exists=True, kind="file")

        return info

    def missing_documents(
        self, project_path: Path | str, doc_types: list[DocumentType] | None = None
    ) -> list[DocumentType]:
        """Slots among ``doc_types`` that have no usable artifact."""
        info = self.get_document_info(project_path)
        return [dt for dt in doc_types or list(DocumentType) if not info[dt].exists]

    def get_variable_substitutions(self, project_path: Path | str) -> dict[str, str]:
        """Map ``$ARCHITECTURE_DOC`` etc. to the current artifact paths.

        Missing slots resolve to the default ``{slot}.md`` location so that
        instruction text never contains an unresolved variable.
        """
        return {
            doc_type.variable: str(doc_info.path)
            for doc_type, doc_info in self.get_document_info(project_path).items()
        }

    def substitute_variables(self, text: str, project_path: Path | str) -> str:
        """Replace document variables in instruction text."""
        for variable, value in self.get_variable_substitutions(project_path).items():
            text = text.replace(variable, value)
        return text

    # -------------------------------------------------------------------------
    # Setup
    # -------------------------------------------------------------------------

    def plan_slot(
        self, project_path: Path | str, doc_type: DocumentType, value: str | None
    ) -> SlotPlan:
        """Validate one slot argument without touching the filesystem.

        Raises:
            TemplateNotFoundError: If a bare name matches no template
            PathNotFoundError: If a path does not exist
            PathTraversalError: If a path leaves the project root
        """
        if value is None or not value.strip():
            return SlotPlan(
                doc_type,
                "template",
                template=self.templates.default_template(doc_type),
                explicit=False,
            )

        value = value.strip()
        if value.lower() == NONE_DOCUMENT:
            return SlotPlan(doc_type, "none")
        if self.templates.is_template(doc_type, value):
            return SlotPlan(doc_type, "template", template=value)

        candidate = Path(project_path) / value
        if not looks_like_path(value) and not candidate.exists() and not Path(value).is_absolute():
            raise TemplateNotFoundError(
                doc_type.value, value, self.templates.available_templates(doc_type)
            )
        source = resolve_project_path(value, project_path)
        own = self._artifacts(self.docs_dir(project_path), doc_type)
        if any(not p.is_symlink() and p.resolve() == source for p in own):
            # Linking a slot to its own document keeps the document
            return SlotPlan(doc_type, "keep", source=source)
        return SlotPlan(doc_type, "link", source=source)

    def setup(
        self,
        project_path: Path | str,
        architecture: str | None = None,
        requirements: str | None = None,
        design: str | None = None,
    ) -> DocumentSetupResult:
        """Set up all three document slots.

        Each argument is a template name, a path to an existing file or
        directory inside the project, or ``"none"``. Omitted arguments use the
        default template and leave an existing artifact alone.

        Returns:
            DocumentSetupResult with the resolved path and action per slot
        """
        plans = [
            self.plan_slot(project_path, DocumentType.ARCHITECTURE, architecture),
            self.plan_slot(project_path, DocumentType.REQUIREMENTS, requirements),
            self.plan_slot(project_path, DocumentType.DESIGN, design),
        ]
        # Render templates before mutating anything, so a broken template fails early
        rendered = {
            plan.doc_type: self.templates.render(plan.doc_type, plan.template)
            for plan in plans
            if plan.kind == "template"
        }

        docs_dir = self.docs_dir(project_path)
        docs_dir.mkdir(parents=True, exist_ok=True)

        result = DocumentSetupResult()
        for plan in plans:
            slot = plan.doc_type.value
            if plan.kind == "template":
                action, path = self._apply_template(project_path, plan, rendered[plan.doc_type])
            elif plan.kind == "none":
                action, path = self._apply_placeholder(project_path, plan.doc_type)
            elif plan.kind == "keep":
                action, path = "skipped", plan.source
            else:
                action, path = self._apply_link(docs_dir, plan.doc_type, plan.source)
            result.actions[slot] = action
            result.paths[slot] = path

        logger.info(f"Project docs set up in {docs_dir}: {result.actions}")
        return result

    def _replace_slot(
        self,
        docs_dir: Path,
        doc_type: DocumentType,
        staged: Path,
        final: Path,
        source: Path | None = None,
    ) -> None:
        """Swap a staged artifact into place, removing the slot's old artifacts.

        An old artifact that is itself the link source is left in place.
        """
        for old in self._artifacts(docs_dir, doc_type):
            if old == final or (source is not None and not old.is_symlink() and old.resolve() == source):
                continue
            old.unlink()
        os.replace(staged, final)

    def _stage_path(self, docs_dir: Path, doc_type: DocumentType) -> Path:
        return docs_dir / f".{doc_type.value}.{uuid.uuid4().hex[:8]}.tmp"

    def _apply_template(self, project_path: Path | str, plan: SlotPlan, content: str) -> tuple[str, Path]:
        docs_dir = self.docs_dir(project_path)
        final = docs_dir / f"{plan.doc_type.value}.md"
        current = self.get_document_info(project_path)[plan.doc_type]

        if current.kind == "file" and current.path == final:
            return "skipped", final
        if not plan.explicit and current.kind != "missing":
            return "skipped", current.path

        staged = self._stage_path(docs_dir, plan.doc_type)
        staged.write_text(content, encoding="utf-8")
        try:
            self._replace_slot(docs_dir, plan.doc_type, staged, final)
        finally:
            staged.unlink(missing_ok=True)
        return "created", final

    def _apply_placeholder(self, project_path: Path | str, doc_type: DocumentType) -> tuple[str, Path]:
        docs_dir = self.docs_dir(project_path)
        final = docs_dir / f"{doc_type.value}.md"
        current = self.get_document_info(project_path)[doc_type]
        if current.kind == "placeholder":
            return "skipped", final

        staged = self._stage_path(docs_dir, doc_type)
        staged.write_text(placeholder_content(doc_type), encoding="utf-8")
        try:
            self._replace_slot(docs_dir, doc_type, staged, final)
        finally:
            staged.unlink(missing_ok=True)
        return "placeholder", final

    def _apply_link(self, docs_dir: Path, doc_type: DocumentType, source: Path) -> tuple[str, Path]:
        suffix = "" if source.is_dir() else source.suffix
        final = docs_dir / f"{doc_type.value}{suffix}"

        if final.is_symlink() and Path(os.path.realpath(final)) == source:
            return "skipped", final

        staged = self._stage_path(docs_dir, doc_type)
        try:
            os.symlink(os.path.relpath(source, docs_dir), staged, target_is_directory=source.is_dir())
        except (OSError, NotImplementedError) as e:
            logger.warning(f"Symlinks unavailable ({e}); writing pointer file for {doc_type.value}")
            final = docs_dir / f"{doc_type.value}{suffix}{POINTER_FILE_SUFFIX}"
            staged.write_text(f"{source}\n", encoding="utf-8")
            action = "pointer"
        else:
            action = "linked"

        try:
            self._replace_slot(docs_dir, doc_type, staged, final, source=source)
        finally:
            if staged.is_symlink() or staged.exists():
                staged.unlink()

        path = source if action == "pointer" else final
        logger.debug(f"{doc_type.value} -> {source} ({action})")
        return action, path
