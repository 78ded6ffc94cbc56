"""Document templates bundled with the package.

Layout::

    vibeguide/resources/templates/
        architecture/arc42.md
        architecture/freestyle.md
        requirements/ears.md
        ...
"""

import logging
from pathlib import Path

from vibeguide.config import DEFAULT_DOCUMENT_TEMPLATES, DocumentType
from vibeguide.errors import TemplateNotFoundError

logger = logging.getLogger(__name__)

TEMPLATES_DIR = Path(__file__).parent.parent / "resources" / "templates"


class TemplateManager:
    """Lists and renders document templates.

    Args:
        templates_dir: Root directory holding one sub-directory per document type
    """

    def __init__(self, templates_dir: Path | None = None):
        self.templates_dir = templates_dir or TEMPLATES_DIR

    def available_templates(self, doc_type: DocumentType) -> list[str]:
        directory = self.templates_dir / doc_type.value
        if not directory.is_dir():
            return []
        return sorted(p.stem for p in directory.glob("*.md"))

    def all_templates(self) -> dict[str, list[str]]:
        return {doc_type.value: self.available_templates(doc_type) for doc_type in DocumentType}

    def default_template(self, doc_type: DocumentType) -> str:
        return DEFAULT_DOCUMENT_TEMPLATES[doc_type]

    def is_template(self, doc_type: DocumentType, name: str) -> bool:
        return name in self.available_templates(doc_type)

    def render(self, doc_type: DocumentType, name: str) -> str:
        """Return the template content.

        Raises:
            TemplateNotFoundError: If no such template exists for the type
        """
        path = self.templates_dir / doc_type.value / f"{name}.md"
        if not path.is_file():
            raise TemplateNotFoundError(doc_type.value, name, self.available_templates(doc_type))
        return path.read_text(encoding="utf-8")
