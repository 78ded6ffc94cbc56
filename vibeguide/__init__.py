"""vibeguide: phase-tracking workflow server for coding agents.

Tracks a conversation's phase in a YAML-defined workflow state machine and
returns phase-appropriate instructions on demand.
"""

__version__ = "0.1.0"
