"""Anthropic transpiler — handles system message extraction and role alternation.

Key differences from the canonical schema:
- System message is a separate top-level parameter, not in the messages array.
- Messages must strictly alternate between user and assistant roles.
- Consecutive same-role messages must be merged.
- Tool results are embedded as user messages with tool_result content blocks.
- Reasoning travels as ``thinking`` blocks carrying a signature.
"""

from __future__ import annotations

import logging
from typing import Any

from msgbridge.core.interface.errors import ProviderResponseError
from msgbridge.core.interface.models import (
    CanonicalMessage,
    ConversationHistory,
    ReasoningBlock,
    TextBlock,
    ToolCall,
    ToolCallBlock,
    ToolResultBlock,
)
from msgbridge.core.interface.usage import extract_anthropic_usage

logger = logging.getLogger(__name__)


class AnthropicTranspiler:
    """Converts between the canonical schema and Anthropic's messages API format."""

    def to_provider(self, history: ConversationHistory) -> dict[str, Any]:
        """Convert canonical history to Anthropic format.

        Returns {"system": "...", "messages": [...]} with system prompt
        extracted and consecutive same-role messages merged.
        """
        result: dict[str, Any] = {}

        system_parts = [msg.text for msg in history.system_messages]
        if system_parts:
            result["system"] = "\n\n".join(system_parts)

        raw_messages = [self._message_to_anthropic(msg) for msg in history.non_system_messages]
        result["messages"] = _merge_consecutive_roles(raw_messages)
        return result

    def from_provider(self, response: dict[str, Any]) -> CanonicalMessage:
        """Convert an Anthropic messages API response to a CanonicalMessage."""
        if "content" not in response:
            raise ProviderResponseError("anthropic", "response has no content")

        blocks: list[Any] = []
        tool_calls: list[ToolCall] = []
        for block in response["content"]:
            kind = block.get("type")
            if kind == "text":
                blocks.append(TextBlock(text=block["text"]))
            elif kind == "thinking":
                blocks.append(
                    ReasoningBlock(text=block.get("thinking", ""), signature=block.get("signature"))
                )
            elif kind == "tool_use":
                call = ToolCallBlock(id=block["id"], name=block["name"], args=block.get("input") or {})
                tool_calls.append(ToolCall(id=call.id, name=call.name, args=call.args))
                blocks.append(call)
            else:
                logger.warning("Ignoring unrecognised Anthropic content block %r", kind)

        content: str | list[Any] = blocks
        if len(blocks) == 1 and isinstance(blocks[0], TextBlock):
            content = blocks[0].text

        return CanonicalMessage(
            role="assistant",
            content=content,
            tool_calls=tool_calls or None,
            response_metadata={"stop_reason": response.get("stop_reason")},
            usage_metadata=extract_anthropic_usage(response.get("usage")),
        )

    def _message_to_anthropic(self, msg: CanonicalMessage) -> dict[str, Any]:
        """Convert a single canonical message to Anthropic format."""
        if msg.role == "tool":
            return {
                "role": "user",
                "content": [
                    {"type": "tool_result", "tool_use_id": msg.tool_call_id, "content": msg.tool_text}
                ],
            }

        if msg.role == "assistant":
            content_blocks: list[dict[str, Any]] = []
            seen: set[str] = set()
            for block in msg.blocks:
                if isinstance(block, ReasoningBlock):
                    content_blocks.append(
                        {"type": "thinking", "thinking": block.text, "signature": block.signature or ""}
                    )
                elif isinstance(block, TextBlock) and block.text:
                    content_blocks.append({"type": "text", "text": block.text})
                elif isinstance(block, ToolCallBlock):
                    seen.add(block.id)
                    content_blocks.append(_tool_use(block.id, block.name, block.args))
            for tc in msg.tool_calls or []:
                if tc.id not in seen:
                    content_blocks.append(_tool_use(tc.id, tc.name, tc.args))
            return {"role": "assistant", "content": content_blocks}

        return {"role": "user", "content": self._user_content(msg)}

    def _user_content(self, msg: CanonicalMessage) -> str | list[dict[str, Any]]:
        """Return a plain string for simple text, or content blocks otherwise."""
        if isinstance(msg.content, str):
            return msg.content

        blocks: list[dict[str, Any]] = []
        for block in msg.content:
            if isinstance(block, TextBlock):
                blocks.append({"type": "text", "text": block.text})
            elif isinstance(block, ToolResultBlock):
                blocks.append(
                    {
                        "type": "tool_result",
                        "tool_use_id": block.tool_call_id,
                        "content": block.content,
                    }
                )
            else:
                logger.warning("Dropping unsupported %r block from user message", block.type)
        if len(blocks) == 1 and blocks[0]["type"] == "text":
            return blocks[0]["text"]
        return blocks


def _tool_use(call_id: str, name: str, args: dict[str, Any]) -> dict[str, Any]:
    return {"type": "tool_use", "id": call_id, "name": name, "input": args}


def _merge_consecutive_roles(
    messages: list[dict[str, Any]],
) -> list[dict[str, Any]]:
    """Merge consecutive messages with the same role.

    Anthropic requires strict user/assistant alternation. When multiple
    consecutive messages share a role, their content is merged into one message.
    """
    merged: list[dict[str, Any]] = []
    for msg in messages:
        if merged and merged[-1]["role"] == msg["role"]:
            merged[-1]["content"] = _merge_content(merged[-1]["content"], msg["content"])
        else:
            merged.append(msg)
    return merged


def _merge_content(
    existing: str | list[dict[str, Any]], new: str | list[dict[str, Any]]
) -> list[dict[str, Any]]:
    """Merge two content values (str or list of blocks) into a single list."""
    result: list[dict[str, Any]] = []
    for item in (existing, new):
        if isinstance(item, str):
            result.append({"type": "text", "text": item})
        else:
            result.extend(item)
    return result
