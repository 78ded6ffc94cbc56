"""Tests for project documents.

Covers:
- Creating documents from bundled templates
- Linking existing files and directories (extension preserved)
- The "none" placeholder
- Path validation: traversal, missing paths, unknown templates
- All arguments validated before any file is touched
- Idempotent setup and replacing one artifact kind with another
- Variable substitution and the pointer-file fallback
- Detection of existing documentation
"""

import os

import pytest

from vibeguide.config import DocumentType
from vibeguide.errors import PathNotFoundError, PathTraversalError, TemplateNotFoundError
from vibeguide.project.detection import FileDetector
from vibeguide.project.docs import ProjectDocsManager
from vibeguide.project.templates import TemplateManager


@pytest.fixture
def docs():
    return ProjectDocsManager()


@pytest.fixture
def docs_dir(project):
    return project / ".vibe" / "docs"


@pytest.fixture
def existing(project):
    """Create a file (or directory) inside the project."""

    def _make(relative: str, content: str = "existing", directory: bool = False):
        path = project / relative
        if directory:
            path.mkdir(parents=True)
        else:
            path.parent.mkdir(parents=True, exist_ok=True)
            path.write_text(content)
        return path

    return _make


# =============================================================================
# Templates
# =============================================================================


class TestTemplates:
    """Tests for template-based documents."""

    def test_default_setup_creates_all_slots(self, docs, project, docs_dir):
        """Omitted arguments use the default template per slot."""
        result = docs.setup(project)

        assert result.actions == {
            "architecture": "created",
            "requirements": "created",
            "design": "created",
        }
        for slot in ("architecture", "requirements", "design"):
            assert (docs_dir / f"{slot}.md").is_file()

    def test_named_template(self, docs, project, docs_dir):
        """A template name selects that template."""
        expected = TemplateManager().render(DocumentType.ARCHITECTURE, "freestyle")

        docs.setup(project, architecture="freestyle")

        assert (docs_dir / "architecture.md").read_text() == expected

    def test_unknown_template(self, docs, project):
        with pytest.raises(TemplateNotFoundError) as exc_info:
            docs.setup(project, requirements="fancy")
        assert "ears" in exc_info.value.details["available"]

    def test_available_templates(self):
        templates = TemplateManager().all_templates()
        assert templates["architecture"] == ["arc42", "freestyle"]
        assert templates["requirements"] == ["ears", "freestyle"]
        assert templates["design"] == ["comprehensive", "freestyle"]


# =============================================================================
# Links
# =============================================================================


class TestLinks:
    """Tests for linking existing files and directories."""

    def test_link_file_keeps_extension(self, docs, project, docs_dir, existing):
        """A linked file keeps its own suffix."""
        source = existing("docs/reqs.txt")

        result = docs.setup(project, requirements="docs/reqs.txt")

        link = docs_dir / "requirements.txt"
        assert result.actions["requirements"] == "linked"
        assert link.is_symlink()
        assert link.resolve() == source.resolve()
        assert not os.path.isabs(os.readlink(link))

    def test_link_directory_without_extension(self, docs, project, docs_dir, existing):
        """A linked directory is named after the slot alone."""
        existing("docs/design", directory=True)

        docs.setup(project, design="docs/design")

        assert (docs_dir / "design").is_symlink()
        assert (docs_dir / "design").is_dir()

    def test_same_source_for_two_slots(self, docs, project, docs_dir, existing):
        """One file may back several slots."""
        existing("docs/overview.md")

        result = docs.setup(project, architecture="docs/overview.md", design="docs/overview.md")

        assert result.actions["architecture"] == "linked"
        assert result.actions["design"] == "linked"
        assert (docs_dir / "architecture.md").resolve() == (docs_dir / "design.md").resolve()

    def test_absolute_path_inside_project(self, docs, project, existing):
        source = existing("ARCHITECTURE.md")
        result = docs.setup(project, architecture=str(source))
        assert result.actions["architecture"] == "linked"

    def test_traversal_rejected(self, docs, project, tmp_path):
        """Paths resolving outside the project are refused."""
        (tmp_path / "outside.md").write_text("secret")

        with pytest.raises(PathTraversalError):
            docs.setup(project, architecture="../outside.md")

    def test_missing_path_rejected(self, docs, project):
        with pytest.raises(PathNotFoundError):
            docs.setup(project, design="docs/nope.md")

    def test_pointer_file_when_symlinks_unavailable(self, docs, project, docs_dir, existing, monkeypatch):
        """Without symlink support a pointer file records the source path."""
        source = existing("docs/reqs.txt")

        def _no_symlinks(*args, **kwargs):
            raise OSError("symlinks not permitted")

        monkeypatch.setattr(os, "symlink", _no_symlinks)

        result = docs.setup(project, requirements="docs/reqs.txt")

        pointer = docs_dir / "requirements.txt.link"
        assert result.actions["requirements"] == "pointer"
        assert pointer.read_text().strip() == str(source.resolve())
        assert docs.get_document_info(project)[DocumentType.REQUIREMENTS].kind == "pointer"
        assert docs.substitute_variables("$REQUIREMENTS_DOC", project) == str(source.resolve())


# =============================================================================
# Placeholder, validation order, idempotence
# =============================================================================


class TestSetupBehaviour:
    """Tests for setup semantics across calls."""

    def test_none_writes_placeholder(self, docs, project, docs_dir):
        result = docs.setup(project, design="none")

        info = docs.get_document_info(project)[DocumentType.DESIGN]
        assert result.actions["design"] == "placeholder"
        assert info.kind == "placeholder"
        assert "development plan" in (docs_dir / "design.md").read_text()

    def test_invalid_argument_mutates_nothing(self, docs, project, docs_dir):
        """A bad third argument leaves the first two slots untouched."""
        with pytest.raises(PathNotFoundError):
            docs.setup(project, architecture="freestyle", requirements="none", design="docs/nope.md")

        assert not docs_dir.exists()

    def test_invalid_argument_keeps_existing_artifacts(self, docs, project, docs_dir):
        docs.setup(project)
        before = (docs_dir / "architecture.md").read_text()

        with pytest.raises(TemplateNotFoundError):
            docs.setup(project, architecture="none", design="fancy")

        assert (docs_dir / "architecture.md").read_text() == before

    def test_idempotent(self, docs, project, existing):
        """Repeating the same setup changes nothing."""
        existing("docs/reqs.txt")
        docs.setup(project, requirements="docs/reqs.txt", design="none")

        result = docs.setup(project, requirements="docs/reqs.txt", design="none")

        assert result.actions == {
            "architecture": "skipped",
            "requirements": "skipped",
            "design": "skipped",
        }

    def test_generated_file_replaced_by_link(self, docs, project, docs_dir, existing):
        """Linking replaces a previously generated document."""
        existing("docs/requirements.md", "real requirements")
        docs.setup(project)

        docs.setup(project, requirements="docs/requirements.md")

        link = docs_dir / "requirements.md"
        assert link.is_symlink()
        assert link.read_text() == "real requirements"

    def test_link_replaced_by_template(self, docs, project, docs_dir, existing):
        """Switching from a link to a template removes the old link."""
        existing("docs/reqs.txt")
        docs.setup(project, requirements="docs/reqs.txt")

        result = docs.setup(project, requirements="freestyle")

        assert result.actions["requirements"] == "created"
        assert not (docs_dir / "requirements.txt").exists()
        assert not (docs_dir / "requirements.md").is_symlink()

    def test_default_never_clobbers_link(self, docs, project, docs_dir, existing):
        """Omitted arguments leave existing artifacts alone."""
        existing("docs/reqs.txt")
        docs.setup(project, requirements="docs/reqs.txt")

        result = docs.setup(project)

        assert result.actions["requirements"] == "skipped"
        assert (docs_dir / "requirements.txt").is_symlink()

    def test_link_to_own_document_keeps_it(self, docs, project, docs_dir):
        """Pointing a slot at its generated document leaves the file intact."""
        docs.setup(project)
        document = docs_dir / "architecture.md"
        before = document.read_text()

        result = docs.setup(project, architecture=".vibe/docs/architecture.md")

        assert result.actions["architecture"] == "skipped"
        assert not document.is_symlink()
        assert document.read_text() == before
        info = docs.get_document_info(project)[DocumentType.ARCHITECTURE]
        assert info.kind == "file"
        assert docs.substitute_variables("$ARCHITECTURE_DOC", project) == str(document)

    def test_symlink_loop_reported_missing(self, docs, project, docs_dir):
        """A self-referencing link does not break document lookup."""
        docs_dir.mkdir(parents=True)
        os.symlink("design.md", docs_dir / "design.md")

        info = docs.get_document_info(project)[DocumentType.DESIGN]

        assert info.kind == "symlink"
        assert not info.exists
        assert DocumentType.DESIGN in docs.missing_documents(project)

    def test_no_staging_files_left(self, docs, project, docs_dir, existing):
        existing("docs/reqs.txt")
        docs.setup(project, requirements="docs/reqs.txt", design="none")

        assert not [p for p in docs_dir.iterdir() if p.name.endswith(".tmp")]


class TestVariables:
    """Tests for document variable substitution."""

    def test_missing_documents_resolve_to_default_paths(self, docs, project, docs_dir):
        text = docs.substitute_variables("Read $ARCHITECTURE_DOC and $DESIGN_DOC", project)
        assert text == f"Read {docs_dir / 'architecture.md'} and {docs_dir / 'design.md'}"

    def test_linked_document_path(self, docs, project, docs_dir, existing):
        existing("docs/reqs.txt")
        docs.setup(project, requirements="docs/reqs.txt")

        variables = docs.get_variable_substitutions(project)

        assert variables["$REQUIREMENTS_DOC"] == str(docs_dir / "requirements.txt")

    def test_missing_documents(self, docs, project):
        docs.setup(project, design="none")
        missing = docs.missing_documents(project)
        assert DocumentType.DESIGN not in missing


# =============================================================================
# Detection
# =============================================================================


class TestDetection:
    """Tests for FileDetector."""

    def test_detects_and_ranks_candidates(self, project, existing):
        existing("README.md")
        existing("ARCHITECTURE.md")
        existing("docs/requirements.md")

        detected = FileDetector().detect(project)

        architecture = [d.path for d in detected[DocumentType.ARCHITECTURE]]
        assert architecture == ["ARCHITECTURE.md", "README.md"]
        assert detected[DocumentType.REQUIREMENTS][0].path == "docs/requirements.md"
        assert detected[DocumentType.REQUIREMENTS][0].confidence == "high"
        assert detected[DocumentType.DESIGN] == []

    def test_format_suggestions(self, project, existing):
        existing("DESIGN.md")
        detected = FileDetector().detect(project)

        text = FileDetector.format_suggestions(detected, [DocumentType.DESIGN])

        assert "`DESIGN.md`" in text

    def test_format_without_candidates(self, project):
        detected = FileDetector().detect(project)
        assert FileDetector.format_suggestions(detected) == "No existing documentation files were found."
