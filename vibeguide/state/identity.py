"""Conversation identity.

A conversation is identified by project path and git branch, so every
branch of a project tracks its own phase and plan file.
"""

import hashlib
from pathlib import Path

from vibeguide.project.git import clean_branch_name


def generate_conversation_id(project_path: Path | str, branch: str) -> str:
    """Derive the deterministic conversation id for a project and branch.

    Format: ``{project_name}-{clean_branch}-{hash6}``, where the hash covers
    the full project path so equally named projects never collide.
    """
    project_path = str(Path(project_path).resolve())
    project_name = Path(project_path).name or "project"
    digest = hashlib.sha256(f"{project_path}|{branch}".encode()).hexdigest()[:6]
    return f"{clean_branch_name(project_name)}-{clean_branch_name(branch)}-{digest}"
