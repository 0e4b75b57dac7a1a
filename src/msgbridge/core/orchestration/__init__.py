"""Orchestration helpers — history preparation for agent handoffs."""

from msgbridge.core.orchestration.handoff import (
    HANDOFF_ROLE,
    ends_with_tool_result,
    format_handoff_instructions,
    prepare_handoff,
    validate_role_sequence,
)

__all__ = [
    "HANDOFF_ROLE",
    "ends_with_tool_result",
    "format_handoff_instructions",
    "prepare_handoff",
    "validate_role_sequence",
]
