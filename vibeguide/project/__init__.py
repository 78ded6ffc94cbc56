"""Project-level files.

This module provides:
- Plan file management (long-term memory per conversation)
- Project documents (architecture, requirements, design) with templates,
  linking and variable substitution
- Detection of existing documentation
- Git branch resolution
"""

from vibeguide.project.detection import DetectedDocument, FileDetector
from vibeguide.project.docs import DocumentInfo, DocumentSetupResult, ProjectDocsManager
from vibeguide.project.git import clean_branch_name, get_current_branch, is_git_repository
from vibeguide.project.plan import PlanAnalysis, PlanInfo, PlanManager
from vibeguide.project.templates import TemplateManager

__all__ = [
    "DetectedDocument",
    "DocumentInfo",
    "DocumentSetupResult",
    "FileDetector",
    "PlanAnalysis",
    "PlanInfo",
    "PlanManager",
    "ProjectDocsManager",
    "TemplateManager",
    "clean_branch_name",
    "get_current_branch",
    "is_git_repository",
]
