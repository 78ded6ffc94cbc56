"""Git helpers.

Only one contract is needed: given a project path, return a branch
identifier. Projects that are not git repositories, or where git is not
installed, use the ``default`` branch.
"""

import logging
import re
import subprocess
from pathlib import Path

from vibeguide.config import DEFAULT_BRANCH

logger = logging.getLogger(__name__)

GIT_TIMEOUT_SECONDS = 5


def _run_git(project_path: Path, *args: str) -> str | None:
    """Run a git command, returning stripped stdout or None on any failure."""
    try:
        result = subprocess.run(
            ["git", *args],
            cwd=project_path,
            capture_output=True,
            text=True,
            timeout=GIT_TIMEOUT_SECONDS,
        )
    except (OSError, subprocess.SubprocessError) as e:
        logger.debug(f"git {' '.join(args)} failed in {project_path}: {e}")
        return None

    if result.returncode != 0:
        logger.debug(f"git {' '.join(args)} exited {result.returncode}: {result.stderr.strip()}")
        return None
    return result.stdout.strip() or None


def is_git_repository(project_path: Path) -> bool:
    """Whether the project root is a git repository."""
    return (Path(project_path) / ".git").exists()


def get_current_branch(project_path: Path) -> str:
    """Return the branch identifier for a project.

    Args:
        project_path: Project root

    Returns:
        Current branch name, ``detached-<hash>`` for a detached HEAD, or
        ``default`` when the branch cannot be determined
    """
    project_path = Path(project_path)
    if not is_git_repository(project_path):
        return DEFAULT_BRANCH

    branch = _run_git(project_path, "rev-parse", "--abbrev-ref", "HEAD")
    if branch is None:
        # Repository without commits yet
        branch = _run_git(project_path, "symbolic-ref", "--short", "HEAD")
    if branch is None:
        return DEFAULT_BRANCH
    if branch == "HEAD":
        short_hash = _run_git(project_path, "rev-parse", "--short", "HEAD")
        return f"detached-{short_hash}" if short_hash else DEFAULT_BRANCH
    return branch


def clean_branch_name(branch: str) -> str:
    """Make a branch name safe for ids and file names (``feature/x`` -> ``feature-x``)."""
    return re.sub(r"[^A-Za-z0-9_-]", "-", branch)
