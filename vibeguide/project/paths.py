"""Path validation for user-supplied document paths."""

from pathlib import Path

from vibeguide.errors import PathNotFoundError, PathTraversalError


def looks_like_path(value: str) -> bool:
    """Heuristic: does the argument look like a filesystem path rather than a name?"""
    return (
        "/" in value
        or "\\" in value
        or value.startswith(("~", "."))
        or Path(value).suffix != ""
    )


def resolve_project_path(value: str | Path, project_path: Path | str) -> Path:
    """Resolve a user-supplied path against the project root.

    Args:
        value: Absolute path or path relative to the project root
        project_path: Project root

    Returns:
        The resolved absolute path

    Raises:
        PathTraversalError: If the path resolves outside the project root
        PathNotFoundError: If the path does not exist
    """
    root = Path(project_path).resolve()
    candidate = Path(value).expanduser()
    if not candidate.is_absolute():
        candidate = root / candidate
    resolved = candidate.resolve()

    if resolved != root and not resolved.is_relative_to(root):
        raise PathTraversalError(str(value), str(root))
    if not resolved.exists():
        raise PathNotFoundError(str(value))
    return resolved
