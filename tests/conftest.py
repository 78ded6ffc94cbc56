"""Shared test fixtures and helpers.

Provides a scratch project directory, a factory for small test workflows
and a factory for WorkflowService instances wired to that project.
"""

import pytest
import yaml

from vibeguide.service.handlers import WorkflowService
from vibeguide.workflow.catalog import WorkflowCatalog

# ---------------------------------------------------------------------------
# Two-phase workflow used across engine, catalog and service tests:
#   A (initial) --go--> B --back--> A
# ---------------------------------------------------------------------------


def build_linear_workflow(name: str = "linear", **go_fields) -> dict:
    """Return the linear test workflow as a mapping.

    Keyword arguments are merged into the ``go`` transition (e.g.
    ``additional_instructions``, ``instructions``, ``review_perspectives``).
    """
    go = {"trigger": "go", "to": "B", **go_fields}
    return {
        "name": name,
        "description": "Two-phase test workflow",
        "initial_state": "A",
        "states": {
            "A": {
                "description": "First phase",
                "default_instructions": "do A",
                "transitions": [go],
            },
            "B": {
                "description": "Second phase",
                "default_instructions": "do B",
                "transitions": [{"trigger": "back", "to": "A"}],
            },
        },
    }


@pytest.fixture
def linear_yaml():
    """Factory rendering the linear workflow as YAML text."""

    def _make(name: str = "linear", **go_fields) -> str:
        return yaml.dump(build_linear_workflow(name, **go_fields), sort_keys=False)

    return _make


@pytest.fixture
def project(tmp_path):
    """Create an empty project directory."""
    path = tmp_path / "project"
    path.mkdir()
    return path


@pytest.fixture
def install_project_workflow(project):
    """Write a workflow file into the project's .vibe/workflows directory."""

    def _install(text: str, name: str = "linear"):
        workflows_dir = project / ".vibe" / "workflows"
        workflows_dir.mkdir(parents=True, exist_ok=True)
        path = workflows_dir / f"{name}.yaml"
        path.write_text(text)
        return path

    return _install


@pytest.fixture
def make_service(project):
    """Factory for a WorkflowService on the scratch project with a fixed branch."""

    def _make(branch: str = "main", domains=None) -> WorkflowService:
        return WorkflowService(
            project,
            catalog=WorkflowCatalog(domains=domains),
            branch_resolver=lambda _path: branch,
        )

    return _make


@pytest.fixture
def linear_service(make_service, install_project_workflow, linear_yaml):
    """Factory: service on a project that has the linear workflow installed."""

    def _make(branch: str = "main", **go_fields) -> WorkflowService:
        install_project_workflow(linear_yaml(**go_fields))
        return make_service(branch=branch)

    return _make
