"""Tests for server configuration, git branch resolution and error payloads."""

import logging
import subprocess

import pytest

from vibeguide.config import (
    DEFAULT_WORKFLOW_DOMAINS,
    DocumentType,
    ReviewState,
    ServerConfig,
    load_environment,
    parse_domains,
    setup_logging,
)
from vibeguide.errors import NoSuchTransitionError, VibeError
from vibeguide.project import git
from vibeguide.project.git import clean_branch_name, get_current_branch


class TestServerConfig:
    """Tests for environment-driven configuration."""

    def test_defaults(self, monkeypatch, tmp_path):
        monkeypatch.chdir(tmp_path)
        for name in ("LOG_LEVEL", "VIBE_WORKFLOW_DOMAINS", "VIBE_PROJECT_PATH"):
            monkeypatch.delenv(name, raising=False)

        config = ServerConfig.from_env()

        assert config.log_level == "INFO"
        assert config.workflow_domains == DEFAULT_WORKFLOW_DOMAINS
        assert config.project_path == tmp_path

    def test_from_env(self, monkeypatch, tmp_path):
        monkeypatch.setenv("LOG_LEVEL", "debug")
        monkeypatch.setenv("VIBE_WORKFLOW_DOMAINS", "code, Architecture")
        monkeypatch.setenv("VIBE_PROJECT_PATH", str(tmp_path))

        config = ServerConfig.from_env()

        assert config.log_level == "DEBUG"
        assert config.workflow_domains == frozenset({"code", "architecture"})
        assert config.project_path == tmp_path.resolve()

    def test_env_file(self, monkeypatch, tmp_path):
        """Values come from a .env file; the process environment wins."""
        env_file = tmp_path / ".env"
        env_file.write_text("LOG_LEVEL=DEBUG\nVIBE_WORKFLOW_DOMAINS=office\n")
        monkeypatch.setenv("LOG_LEVEL", "ERROR")
        # Registered so the value loaded from the file is removed afterwards
        monkeypatch.setenv("VIBE_WORKFLOW_DOMAINS", "")
        monkeypatch.delenv("VIBE_WORKFLOW_DOMAINS")

        config = ServerConfig.from_env(env_file=env_file)

        assert config.log_level == "ERROR"
        assert config.workflow_domains == frozenset({"office"})

    def test_missing_env_file(self, tmp_path):
        assert load_environment(tmp_path / ".env") is False

    @pytest.mark.parametrize("raw", [None, "", "  ", " , "])
    def test_blank_domains_fall_back(self, raw):
        assert parse_domains(raw) == DEFAULT_WORKFLOW_DOMAINS

    def test_setup_logging_sets_level(self):
        setup_logging(ServerConfig(log_level="WARNING"))
        assert logging.getLogger("vibeguide").level == logging.WARNING


class TestEnums:
    def test_values(self):
        assert ReviewState.values() == ["not-required", "pending", "performed"]
        assert DocumentType.values() == ["architecture", "requirements", "design"]

    def test_document_variable(self):
        assert DocumentType.REQUIREMENTS.variable == "$REQUIREMENTS_DOC"


class TestErrors:
    def test_to_dict_carries_details(self):
        error = NoSuchTransitionError("A", "go", ["back"])
        error.operation = "proceed_to_phase"

        payload = error.to_dict()

        assert payload["error"] == "NoSuchTransitionError"
        assert payload["operation"] == "proceed_to_phase"
        assert payload["valid_triggers"] == ["back"]

    def test_base_class(self):
        assert issubclass(NoSuchTransitionError, VibeError)


# =============================================================================
# Git branch resolution
# =============================================================================


class TestGitBranch:
    """Tests for get_current_branch."""

    def test_not_a_repository(self, tmp_path):
        """Projects without .git use the default branch."""
        assert get_current_branch(tmp_path) == "default"

    def test_branch_from_git(self, tmp_path, monkeypatch):
        (tmp_path / ".git").mkdir()
        monkeypatch.setattr(git, "_run_git", lambda path, *args: "feature/x")

        assert get_current_branch(tmp_path) == "feature/x"

    def test_detached_head(self, tmp_path, monkeypatch):
        """A detached HEAD is named after the short commit hash."""
        (tmp_path / ".git").mkdir()
        answers = {"--abbrev-ref": "HEAD", "--short": "abc1234"}
        monkeypatch.setattr(git, "_run_git", lambda path, *args: answers[args[1]])

        assert get_current_branch(tmp_path) == "detached-abc1234"

    def test_git_unavailable(self, tmp_path, monkeypatch):
        """Any git failure falls back to the default branch."""
        (tmp_path / ".git").mkdir()
        monkeypatch.setattr(git, "_run_git", lambda path, *args: None)

        assert get_current_branch(tmp_path) == "default"

    def test_run_git_handles_missing_binary(self, tmp_path, monkeypatch):
        def _missing(*args, **kwargs):
            raise FileNotFoundError("git")

        monkeypatch.setattr(subprocess, "run", _missing)
        assert git._run_git(tmp_path, "status") is None

    def test_clean_branch_name(self):
        assert clean_branch_name("feature/login page") == "feature-login-page"
