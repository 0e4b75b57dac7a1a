"""Role-sequence sanitizing for agent handoffs.

When control passes to another agent, the receiving agent gets the
(filtered) shared history plus instructions from the agent handing off.
If that history ends in a tool result, appending a fresh user message
would produce a ``tool -> user`` transition, which several providers
reject with a 400. In that case the instructions are folded into the
trailing tool-result message instead.
"""

from __future__ import annotations

from collections.abc import Sequence

from msgbridge.core.interface.models import CanonicalMessage, TextBlock

HANDOFF_ROLE = "user"
"""Role used for injected guidance when no tool result ends the history."""


def ends_with_tool_result(messages: Sequence[CanonicalMessage]) -> bool:
    return bool(messages) and messages[-1].role == "tool"


def format_handoff_instructions(instructions: str, *, source_agent: str | None = None) -> str:
    if source_agent:
        return f"Transferred from {source_agent}: {instructions}"
    return instructions


def prepare_handoff(
    messages: Sequence[CanonicalMessage],
    instructions: str,
    *,
    source_agent: str | None = None,
) -> list[CanonicalMessage]:
    """Return the history the newly activated agent should receive.

    The input sequence and its messages are left untouched. Empty
    instructions return a copy of the history with the same messages.
    """
    result = list(messages)
    if not instructions.strip():
        return result

    text = format_handoff_instructions(instructions, source_agent=source_agent)
    if ends_with_tool_result(result):
        result[-1] = _append_text(result[-1], text)
    else:
        result.append(CanonicalMessage(role=HANDOFF_ROLE, content=text))
    return result


def validate_role_sequence(messages: Sequence[CanonicalMessage]) -> int | None:
    """Index of the first message that follows a tool result with a user turn."""
    for position in range(1, len(messages)):
        if messages[position - 1].role == "tool" and messages[position].role == "user":
            return position
    return None


def _append_text(message: CanonicalMessage, text: str) -> CanonicalMessage:
    if isinstance(message.content, str):
        content = f"{message.content}\n\n{text}" if message.content else text
        return message.model_copy(update={"content": content})
    blocks = [block.model_copy(deep=True) for block in message.content]
    blocks.append(TextBlock(text=text))
    return message.model_copy(update={"content": blocks})
