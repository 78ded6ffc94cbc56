"""Workflow catalog.

Assembles the workflows visible to a project from two layers:

- the built-in library bundled under ``vibeguide/resources/workflows``,
  filtered by domain (``VIBE_WORKFLOW_DOMAINS``, default ``code``)
- project-local workflows in ``<project>/.vibe/workflows/*.yaml``, always
  included regardless of domain and taking precedence on name collision

A workflow's catalog name is its file stem. The catalog is an explicitly
constructed cache object: tests and servers build their own instances with
their own domain filters, and ``invalidate()`` drops cached entries.

Legacy projects with a single ``.vibe/workflow.yaml`` are migrated to
``.vibe/workflows/custom.yaml`` the first time the project is scanned.
"""

import logging
import re
import threading
from dataclasses import asdict, dataclass, field
from pathlib import Path
from typing import Any

import yaml

from vibeguide.config import (
    DEFAULT_WORKFLOW_DOMAINS,
    LEGACY_WORKFLOW_FILE_NAMES,
    MIGRATED_WORKFLOW_NAME,
    VIBE_DIR_NAME,
    WORKFLOW_FILE_SUFFIXES,
    WORKFLOW_RESOURCE_SCHEME,
    WORKFLOWS_DIR_NAME,
)
from vibeguide.errors import (
    VibeError,
    WorkflowAlreadyExistsError,
    WorkflowNotFoundError,
    WorkflowParseError,
    WorkflowValidationError,
)
from vibeguide.workflow.loader import build_workflow, load_yaml_mapping, parse_workflow
from vibeguide.workflow.models import WorkflowDefinition

logger = logging.getLogger(__name__)

BUILTIN_WORKFLOWS_DIR = Path(__file__).parent.parent / "resources" / "workflows"

WORKFLOW_NAME_PATTERN = re.compile(r"^[A-Za-z0-9][A-Za-z0-9_-]*$")


@dataclass
class WorkflowInfo:
    """Catalog listing entry; carries a resource reference, not the body.

    Attributes:
        name: Catalog name
        display_name: Human-friendly name
        description: Workflow description
        domain: Catalog domain
        initial_state: Starting phase
        phases: Phase names in definition order
        metadata: Presentation metadata (camelCase keys)
        source: "builtin" or "project"
        loaded: False for built-ins hidden by the domain filter
        resource_uri: Reference to fetch the full definition
    """

    name: str
    display_name: str
    description: str
    domain: str
    initial_state: str
    phases: list[str] = field(default_factory=list)
    metadata: dict[str, Any] = field(default_factory=dict)
    source: str = "builtin"
    loaded: bool = True
    resource_uri: str = ""

    def to_dict(self) -> dict[str, Any]:
        return asdict(self)


@dataclass
class InstallResult:
    """Outcome of installing a workflow into a project."""

    name: str
    path: Path
    workflow: WorkflowDefinition
    source: str


def display_name(name: str) -> str:
    """Turn a workflow name like ``c4-analysis`` into ``C4 Analysis``."""
    return " ".join(part.capitalize() for part in re.split(r"[-_]", name) if part)


def workflows_dir(project_path: Path) -> Path:
    return Path(project_path) / VIBE_DIR_NAME / WORKFLOWS_DIR_NAME


def _iter_workflow_files(directory: Path) -> list[Path]:
    if not directory.is_dir():
        return []
    files = [p for p in directory.iterdir() if p.is_file() and p.suffix in WORKFLOW_FILE_SUFFIXES]
    return sorted(files, key=lambda p: p.name)


def _load_named(path: Path) -> WorkflowDefinition:
    """Load a workflow file, naming it after the file stem."""
    workflow = parse_workflow(path.read_text(encoding="utf-8"), source=str(path))
    if workflow.name != path.stem:
        logger.debug(f"Workflow in {path} declares name '{workflow.name}', using '{path.stem}'")
        workflow = workflow.model_copy(update={"name": path.stem})
    return workflow


def migrate_legacy_workflow(project_path: Path) -> Path | None:
    """Migrate a legacy single-file workflow into the workflows directory.

    The legacy file is left in place. Nothing happens when the migrated file
    already exists. Failures are logged, never raised.

    Args:
        project_path: Project root

    Returns:
        Path of the migrated file, or None when nothing was migrated
    """
    vibe_dir = Path(project_path) / VIBE_DIR_NAME
    target_dir = workflows_dir(project_path)

    for legacy_name in LEGACY_WORKFLOW_FILE_NAMES:
        legacy_path = vibe_dir / legacy_name
        if not legacy_path.is_file():
            continue

        if any((target_dir / f"{MIGRATED_WORKFLOW_NAME}{s}").exists() for s in WORKFLOW_FILE_SUFFIXES):
            logger.debug(f"Legacy workflow {legacy_path} already migrated")
            return None

        target = target_dir / f"{MIGRATED_WORKFLOW_NAME}.yaml"
        try:
            data = load_yaml_mapping(legacy_path.read_text(encoding="utf-8"), str(legacy_path))
            data["name"] = MIGRATED_WORKFLOW_NAME
            target_dir.mkdir(parents=True, exist_ok=True)
            target.write_text(
                yaml.dump(data, default_flow_style=False, sort_keys=False, allow_unicode=True),
                encoding="utf-8",
            )
        except (OSError, VibeError) as e:
            logger.error(f"Failed to migrate legacy workflow {legacy_path}: {e}")
            return None

        logger.info(f"Migrated legacy workflow {legacy_path} to {target}")
        return target

    return None


class WorkflowCatalog:
    """Cache of built-in and project-local workflow definitions.

    Args:
        domains: Domain filter for built-in workflows. None means the default
            domain set.
        builtin_dir: Directory holding the built-in library.
    """

    def __init__(
        self,
        domains: frozenset[str] | set[str] | None = None,
        builtin_dir: Path | None = None,
    ) -> None:
        self.domains = frozenset(d.lower() for d in domains) if domains else DEFAULT_WORKFLOW_DOMAINS
        self.builtin_dir = builtin_dir or BUILTIN_WORKFLOWS_DIR
        self._lock = threading.Lock()
        self._builtin: dict[str, WorkflowDefinition] | None = None
        self._project: dict[Path, dict[str, WorkflowDefinition]] = {}

    # -------------------------------------------------------------------------
    # Cache management
    # -------------------------------------------------------------------------

    def invalidate(self, project_path: Path | None = None) -> None:
        """Drop cached definitions for one project, or everything."""
        with self._lock:
            if project_path is None:
                self._builtin = None
                self._project.clear()
            else:
                self._project.pop(Path(project_path).resolve(), None)

    def _builtin_workflows(self) -> dict[str, WorkflowDefinition]:
        with self._lock:
            if self._builtin is None:
                loaded: dict[str, WorkflowDefinition] = {}
                for path in _iter_workflow_files(self.builtin_dir):
                    try:
                        loaded[path.stem] = _load_named(path)
                    except (OSError, WorkflowValidationError) as e:
                        logger.error(f"Skipping invalid built-in workflow {path}: {e}")
                self._builtin = loaded
                logger.debug(f"Loaded {len(loaded)} built-in workflows from {self.builtin_dir}")
            return self._builtin

    def _project_workflows(self, project_path: Path) -> dict[str, WorkflowDefinition]:
        key = Path(project_path).resolve()
        with self._lock:
            cached = self._project.get(key)
            if cached is not None:
                return cached

            migrate_legacy_workflow(key)
            loaded: dict[str, WorkflowDefinition] = {}
            for path in _iter_workflow_files(workflows_dir(key)):
                try:
                    loaded[path.stem] = _load_named(path)
                except (OSError, WorkflowValidationError) as e:
                    logger.warning(f"Skipping invalid project workflow {path}: {e}")
            self._project[key] = loaded
            return loaded

    # -------------------------------------------------------------------------
    # Queries
    # -------------------------------------------------------------------------

    def _filter(self, domains: frozenset[str] | set[str] | None) -> frozenset[str]:
        return frozenset(d.lower() for d in domains) if domains else self.domains

    def list_builtin(self, domains: frozenset[str] | set[str] | None = None) -> list[WorkflowDefinition]:
        """Built-in workflows whose domain is in the filter."""
        allowed = self._filter(domains)
        return [wf for wf in self._builtin_workflows().values() if wf.domain in allowed]

    def builtin_names(self) -> list[str]:
        """Names of all built-in workflows, ignoring the domain filter."""
        return list(self._builtin_workflows())

    def list_project_local(self, project_path: Path) -> list[WorkflowDefinition]:
        """All valid project-local workflows, regardless of domain."""
        return list(self._project_workflows(project_path).values())

    def _resolve(
        self,
        project_path: Path,
        domains: frozenset[str] | set[str] | None = None,
        include_unloaded: bool = False,
    ) -> dict[str, WorkflowDefinition]:
        builtins = (
            list(self._builtin_workflows().values()) if include_unloaded else self.list_builtin(domains)
        )
        resolved = {wf.name: wf for wf in builtins}
        resolved.update(self._project_workflows(project_path))
        return dict(sorted(resolved.items()))

    def resolve_for_project(
        self, project_path: Path, domains: frozenset[str] | set[str] | None = None
    ) -> list[WorkflowDefinition]:
        """Filtered built-ins plus project-local workflows, project-local winning."""
        return list(self._resolve(project_path, domains).values())

    def workflow_names(self, project_path: Path) -> list[str]:
        return list(self._resolve(project_path))

    def is_project_workflow(self, project_path: Path, name: str) -> bool:
        return name in self._project_workflows(project_path)

    def get_workflow(
        self,
        project_path: Path,
        name: str,
        domains: frozenset[str] | set[str] | None = None,
        include_unloaded: bool = False,
    ) -> WorkflowDefinition:
        """Look up a workflow visible to the project.

        Args:
            project_path: Project root
            name: Workflow name
            domains: Domain filter override
            include_unloaded: Also consider built-ins hidden by the domain filter

        Raises:
            WorkflowNotFoundError: If no matching workflow exists
        """
        resolved = self._resolve(project_path, domains, include_unloaded)
        if name not in resolved:
            raise WorkflowNotFoundError(name, list(resolved))
        return resolved[name]

    def list_workflows(self, project_path: Path, include_unloaded: bool = False) -> list[WorkflowInfo]:
        """Catalog listing for a project.

        Args:
            project_path: Project root
            include_unloaded: Also list built-ins hidden by the domain filter

        Returns:
            WorkflowInfo entries, visible workflows first
        """
        project_local = self._project_workflows(project_path)
        infos = [
            self._info(wf, "project" if name in project_local else "builtin")
            for name, wf in self._resolve(project_path).items()
        ]

        if include_unloaded:
            listed = {info.name for info in infos}
            for name, wf in self._builtin_workflows().items():
                if name not in listed:
                    infos.append(self._info(wf, "builtin", loaded=False))

        return infos

    @staticmethod
    def _info(workflow: WorkflowDefinition, source: str, loaded: bool = True) -> WorkflowInfo:
        return WorkflowInfo(
            name=workflow.name,
            display_name=display_name(workflow.name),
            description=workflow.description,
            domain=workflow.domain,
            initial_state=workflow.initial_state,
            phases=workflow.phases,
            metadata=workflow.metadata.model_dump(by_alias=True, exclude_none=True),
            source=source,
            loaded=loaded,
            resource_uri=f"{WORKFLOW_RESOURCE_SCHEME}{workflow.name}",
        )

    def workflow_source(self, project_path: Path, name: str) -> tuple[str, Path]:
        """Raw YAML of a workflow and the file it came from.

        Project-local files win over built-ins; built-ins hidden by the domain
        filter are included.

        Raises:
            WorkflowNotFoundError: If no workflow file has that name
        """
        local = self._project_workflows(project_path)
        builtins = self._builtin_workflows()
        if name in local:
            directory = workflows_dir(Path(project_path).resolve())
        elif name in builtins:
            directory = self.builtin_dir
        else:
            raise WorkflowNotFoundError(name, sorted({*local, *builtins}))

        path = next((p for p in _iter_workflow_files(directory) if p.stem == name), None)
        if path is None:
            raise WorkflowNotFoundError(name, sorted({*local, *builtins}))
        return path.read_text(encoding="utf-8"), path

    # -------------------------------------------------------------------------
    # Installation
    # -------------------------------------------------------------------------

    def _read_install_source(self, project_path: Path, source: str) -> tuple[str, str]:
        """Return (yaml_text, source_label) for an install source."""
        stripped = source.strip()
        if stripped.startswith(("http://", "https://")):
            raise WorkflowParseError(
                "Installing workflows from URLs is not supported. "
                "Pass a built-in workflow name, a file path or YAML text.",
                source=stripped,
            )

        if "\n" in stripped:
            return source, "<yaml>"

        if stripped in self.builtin_names():
            builtin_path = next(p for p in _iter_workflow_files(self.builtin_dir) if p.stem == stripped)
            return builtin_path.read_text(encoding="utf-8"), f"builtin:{stripped}"

        candidate = Path(stripped).expanduser()
        if not candidate.is_absolute():
            candidate = Path(project_path) / candidate
        try:
            if candidate.is_file():
                return candidate.read_text(encoding="utf-8"), str(candidate)
        except OSError as e:
            logger.debug(f"Install source is not a readable path: {e}")
        if ":" not in stripped:
            raise WorkflowNotFoundError(stripped, self.builtin_names())

        return source, "<yaml>"

    def install(self, project_path: Path, source: str, name: str | None = None) -> InstallResult:
        """Install a workflow into the project's workflows directory.

        Args:
            project_path: Project root
            source: Built-in workflow name (domain filter ignored), path to a
                YAML file, or YAML text
            name: Name to install under; defaults to the definition's name

        Returns:
            InstallResult describing the installed workflow

        Raises:
            WorkflowValidationError: If the definition is invalid or the source
                is a URL
            WorkflowNotFoundError: If a bare name matches no built-in workflow
            WorkflowAlreadyExistsError: If the target file already exists
        """
        text, label = self._read_install_source(project_path, source)
        data = load_yaml_mapping(text, label)
        workflow = build_workflow(data, label)

        target_name = name or workflow.name
        if not WORKFLOW_NAME_PATTERN.match(target_name):
            raise WorkflowValidationError(
                f"Invalid workflow name '{target_name}': use letters, digits, '-' and '_'",
                workflow=target_name,
            )

        target_dir = workflows_dir(project_path)
        for suffix in WORKFLOW_FILE_SUFFIXES:
            existing = target_dir / f"{target_name}{suffix}"
            if existing.exists():
                raise WorkflowAlreadyExistsError(target_name, str(existing))

        target = target_dir / f"{target_name}.yaml"
        target_dir.mkdir(parents=True, exist_ok=True)
        if workflow.name == target_name:
            target.write_text(text, encoding="utf-8")
        else:
            data["name"] = target_name
            target.write_text(
                yaml.dump(data, default_flow_style=False, sort_keys=False, allow_unicode=True),
                encoding="utf-8",
            )
            workflow = workflow.model_copy(update={"name": target_name})

        self.invalidate(project_path)
        logger.info(f"Installed workflow '{target_name}' from {label} to {target}")
        return InstallResult(name=target_name, path=target, workflow=workflow, source=label)
