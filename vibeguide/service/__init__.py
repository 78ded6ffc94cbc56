"""Operation layer.

This module provides the WorkflowService implementing the logical
operations exposed to a protocol layer, plus instruction enrichment and the
agent system prompt.
"""

from vibeguide.service.handlers import WorkflowService
from vibeguide.service.instructions import InstructionContext, InstructionGenerator
from vibeguide.service.system_prompt import generate_system_prompt

__all__ = [
    "InstructionContext",
    "InstructionGenerator",
    "WorkflowService",
    "generate_system_prompt",
]
