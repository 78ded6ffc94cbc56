"""Detection of existing documentation in a project.

When a workflow needs project documents that have not been set up, the
files found here are offered as link candidates. Detection is advisory only
and never links anything by itself.
"""

import logging
from dataclasses import dataclass
from pathlib import Path

from vibeguide.config import DocumentType

logger = logging.getLogger(__name__)

SEARCH_LOCATIONS = ("", "docs", "doc", "documentation")

FILE_PATTERNS: dict[DocumentType, tuple[str, ...]] = {
    DocumentType.ARCHITECTURE: (
        "ARCHITECTURE.md",
        "architecture.md",
        "ARCHITECTURE.txt",
        "architecture.txt",
        "ARCH.md",
        "arch.md",
        "README.md",
    ),
    DocumentType.REQUIREMENTS: (
        "REQUIREMENTS.md",
        "requirements.md",
        "REQUIREMENTS.txt",
        "REQS.md",
        "reqs.md",
        "README.md",
    ),
    DocumentType.DESIGN: (
        "DESIGN.md",
        "design.md",
        "DESIGN.txt",
        "design.txt",
    ),
}

_CONFIDENCE_RANK = {"high": 0, "medium": 1, "low": 2}


@dataclass(frozen=True)
class DetectedDocument:
    """A file that may serve as a project document."""

    doc_type: DocumentType
    path: str  # Relative to the project root
    confidence: str  # "high", "medium", "low"


def _confidence(doc_type: DocumentType, file_name: str) -> str:
    lowered = file_name.lower()
    if doc_type.value in lowered or (doc_type is DocumentType.ARCHITECTURE and "arch" in lowered):
        return "high"
    if doc_type is DocumentType.REQUIREMENTS and "reqs" in lowered:
        return "high"
    if lowered.startswith("readme"):
        return "medium"
    return "low"


class FileDetector:
    """Scans common locations for existing documentation files."""

    def detect(self, project_path: Path | str) -> dict[DocumentType, list[DetectedDocument]]:
        """Find candidate files per document type.

        Returns:
            Mapping of document type to candidates, best first
        """
        root = Path(project_path)
        results: dict[DocumentType, list[DetectedDocument]] = {}

        for doc_type, patterns in FILE_PATTERNS.items():
            seen: set[Path] = set()
            found: list[DetectedDocument] = []
            for location in SEARCH_LOCATIONS:
                directory = root / location if location else root
                if not directory.is_dir():
                    continue
                # Case-insensitive filesystems return the same file for both spellings
                for pattern in patterns:
                    candidate = directory / pattern
                    if not candidate.is_file():
                        continue
                    real = candidate.resolve()
                    if real in seen:
                        continue
                    seen.add(real)
                    found.append(
                        DetectedDocument(
                            doc_type=doc_type,
                            path=candidate.relative_to(root).as_posix(),
                            confidence=_confidence(doc_type, pattern),
                        )
                    )

            found.sort(key=lambda d: (_CONFIDENCE_RANK[d.confidence], len(d.path)))
            results[doc_type] = found

        total = sum(len(v) for v in results.values())
        logger.debug(f"Detected {total} candidate documents in {root}")
        return results

    @staticmethod
    def format_suggestions(
        detected: dict[DocumentType, list[DetectedDocument]],
        doc_types: list[DocumentType] | None = None,
    ) -> str:
        """Render detected candidates as markdown."""
        lines: list[str] = []
        for doc_type in doc_types or list(DocumentType):
            candidates = detected.get(doc_type, [])
            if not candidates:
                continue
            lines.append(f"**{doc_type.value.capitalize()}** candidates:")
            for candidate in candidates:
                lines.append(f"- `{candidate.path}` ({candidate.confidence} confidence)")
            lines.append("")

        if not lines:
            return "No existing documentation files were found."
        return "\n".join(lines).rstrip()
