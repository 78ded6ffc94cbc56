"""Centralized configuration for vibeguide.

This module provides a single source of truth for configuration constants,
environment-driven server settings and logging setup.

Design Principles:
- All on-disk names (directories, database, plan files) in one place
- Enums for type-safe option values
- Environment variables read once, through ServerConfig.from_env()
- A .env file may supply them; variables already set win
"""

import logging
import os
import sys
from dataclasses import dataclass, field
from enum import Enum
from pathlib import Path

from dotenv import load_dotenv

logger = logging.getLogger(__name__)

# =============================================================================
# Enums for Type Safety
# =============================================================================


class ReviewState(Enum):
    """Review state reported by the caller when requesting a transition."""

    NOT_REQUIRED = "not-required"
    PENDING = "pending"
    PERFORMED = "performed"

    @classmethod
    def values(cls) -> list[str]:
        """Return all valid review state values as strings."""
        return [state.value for state in cls]


class CommitBehaviour(Enum):
    """When the agent should create git commits during development."""

    STEP = "step"  # After each completed step
    PHASE = "phase"  # Before each phase transition
    END = "end"  # Once, when development is complete
    NONE = "none"

    @classmethod
    def values(cls) -> list[str]:
        """Return all valid commit behaviour values as strings."""
        return [behaviour.value for behaviour in cls]


class DocumentType(Enum):
    """Project document slots."""

    ARCHITECTURE = "architecture"
    REQUIREMENTS = "requirements"
    DESIGN = "design"

    @classmethod
    def values(cls) -> list[str]:
        """Return all document slot names as strings."""
        return [doc_type.value for doc_type in cls]

    @property
    def variable(self) -> str:
        """Instruction-text variable that resolves to this document's path."""
        return f"${self.value.upper()}_DOC"


# =============================================================================
# On-disk Layout
# =============================================================================

VIBE_DIR_NAME = ".vibe"
DATABASE_FILE_NAME = "conversation-state.sqlite"
WORKFLOWS_DIR_NAME = "workflows"
DOCS_DIR_NAME = "docs"
LEGACY_WORKFLOW_FILE_NAMES = ("workflow.yaml", "workflow.yml")
MIGRATED_WORKFLOW_NAME = "custom"
WORKFLOW_FILE_SUFFIXES = (".yaml", ".yml")

# Branches whose plan file carries no branch suffix
TRUNK_BRANCHES = frozenset({"main", "master"})

# Branch identifier used when the project is not a git repository
DEFAULT_BRANCH = "default"

# Files inside .vibe/ that must never be committed
VIBE_GITIGNORE_ENTRIES = (
    DATABASE_FILE_NAME,
    f"{DATABASE_FILE_NAME}-journal",
    f"{DATABASE_FILE_NAME}-wal",
    f"{DATABASE_FILE_NAME}-shm",
)

# =============================================================================
# Workflow Catalog
# =============================================================================

DEFAULT_WORKFLOW_DOMAINS = frozenset({"code"})
DEFAULT_WORKFLOW_DOMAIN = "code"
WORKFLOW_RESOURCE_SCHEME = "workflow://"

# Phase reported by start_development when required documents are missing
ARTIFACT_SETUP_PHASE = "artifact-setup"

# Separator between a phase's default instructions and a transition's
# additional instructions
ADDITIONAL_INSTRUCTIONS_SEPARATOR = "\n\n**Additional Context:**\n"

# =============================================================================
# Project Documents
# =============================================================================

DEFAULT_DOCUMENT_TEMPLATES = {
    DocumentType.ARCHITECTURE: "arc42",
    DocumentType.REQUIREMENTS: "ears",
    DocumentType.DESIGN: "comprehensive",
}

NONE_DOCUMENT = "none"
POINTER_FILE_SUFFIX = ".link"


# =============================================================================
# Server Configuration
# =============================================================================


def parse_domains(raw: str | None) -> frozenset[str]:
    """Parse a comma-separated domain list.

    Args:
        raw: Raw value such as ``"code, architecture"``. None or blank
            means the default domain set.

    Returns:
        Lower-cased, de-duplicated domain names
    """
    if not raw or not raw.strip():
        return DEFAULT_WORKFLOW_DOMAINS
    domains = {part.strip().lower() for part in raw.split(",") if part.strip()}
    return frozenset(domains) if domains else DEFAULT_WORKFLOW_DOMAINS


def load_environment(env_file: Path | None = None) -> bool:
    """Load a .env file into the process environment.

    Returns:
        True if a file was found and loaded
    """
    env_path = Path(env_file) if env_file else Path.cwd() / ".env"
    if not env_path.is_file():
        return False
    load_dotenv(env_path, override=False)
    logger.debug(f"Loaded environment from {env_path}")
    return True


@dataclass
class ServerConfig:
    """Runtime configuration for the workflow server.

    All values are read from environment variables with sensible defaults.
    """

    log_level: str = "INFO"
    project_path: Path = field(default_factory=Path.cwd)
    workflow_domains: frozenset[str] = DEFAULT_WORKFLOW_DOMAINS

    @classmethod
    def from_env(cls, env_file: Path | None = None) -> "ServerConfig":
        """Create config from environment variables.

        Args:
            env_file: .env file to load first; defaults to .env in the
                working directory when present
        """
        load_environment(env_file)
        project_path = os.getenv("VIBE_PROJECT_PATH")
        return cls(
            log_level=os.getenv("LOG_LEVEL", "INFO").upper(),
            project_path=Path(project_path).resolve() if project_path else Path.cwd(),
            workflow_domains=parse_domains(os.getenv("VIBE_WORKFLOW_DOMAINS")),
        )


def setup_logging(config: ServerConfig) -> None:
    """Configure Python logging based on config.

    Sets up the root logger with a single console handler. Output goes to
    stderr because stdout belongs to the protocol transport.
    """
    level_map = {
        "DEBUG": logging.DEBUG,
        "INFO": logging.INFO,
        "WARNING": logging.WARNING,
        "ERROR": logging.ERROR,
        "CRITICAL": logging.CRITICAL,
    }
    level = level_map.get(config.log_level, logging.INFO)

    root_logger = logging.getLogger()
    root_logger.setLevel(level)

    # Remove existing handlers to avoid duplicates
    for handler in root_logger.handlers[:]:
        root_logger.removeHandler(handler)

    console_handler = logging.StreamHandler(sys.stderr)
    console_handler.setLevel(level)
    formatter = logging.Formatter(
        fmt="%(asctime)s | %(levelname)-8s | %(name)s | %(message)s",
        datefmt="%Y-%m-%d %H:%M:%S",
    )
    console_handler.setFormatter(formatter)
    root_logger.addHandler(console_handler)

    logging.getLogger("vibeguide").setLevel(level)

    logger.info(f"Logging configured: level={config.log_level}")
