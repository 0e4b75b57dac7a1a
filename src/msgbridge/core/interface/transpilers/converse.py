"""Converse transpiler — Bedrock-style block messages.

Key differences from the canonical schema:
- System messages become a separate list of ``{"text": ...}`` blocks.
- Every message carries a list of single-key blocks (``text``, ``toolUse``,
  ``toolResult``, ``reasoningContent``); there is no string shorthand.
- Tool results travel in ``user`` messages. Consecutive tool-result
  messages must be folded into one turn.
"""

from __future__ import annotations

import logging
from collections.abc import Iterable
from typing import Any

from pydantic import BaseModel

from msgbridge.core.interface.errors import ProviderResponseError
from msgbridge.core.interface.models import (
    CanonicalMessage,
    ContentBlock,
    ConversationHistory,
    ReasoningBlock,
    TextBlock,
    ToolCall,
    ToolCallBlock,
    ToolResultBlock,
    UnknownBlock,
)
from msgbridge.core.interface.usage import extract_converse_usage

logger = logging.getLogger(__name__)


class ConverseMessages(BaseModel):
    """Request-side result: the turn sequence plus the separate system blocks."""

    messages: list[dict[str, Any]] = []
    system: list[dict[str, Any]] = []


class ConverseTranspiler:
    """Converts between the canonical schema and the Converse API format."""

    def to_provider(self, history: ConversationHistory) -> dict[str, Any]:
        """Return ``{"messages": [...], "system": [...]}`` for a Converse request."""
        converted = to_converse_messages(history.messages)
        result: dict[str, Any] = {"messages": converted.messages}
        if converted.system:
            result["system"] = converted.system
        return result

    def from_provider(self, response: dict[str, Any]) -> CanonicalMessage:
        """Convert a non-streaming Converse response into a CanonicalMessage."""
        message = (response.get("output") or {}).get("message")
        if message is None:
            raise ProviderResponseError("converse", "response has no output.message")
        metadata = {k: v for k, v in response.items() if k != "output"}
        return converse_message_to_canonical(message, metadata)


def to_converse_messages(messages: Iterable[CanonicalMessage]) -> ConverseMessages:
    """Translate canonical messages into Converse messages and system blocks."""
    result = ConverseMessages()
    for msg in messages:
        if msg.role == "system":
            result.system.extend({"text": block.text} for block in _text_blocks(msg))
            continue

        if msg.role == "tool":
            blocks = _tool_message_blocks(msg)
            previous = result.messages[-1] if result.messages else None
            if previous is not None and _is_tool_result_turn(previous):
                previous["content"].extend(blocks)
            else:
                result.messages.append({"role": "user", "content": blocks})
            continue

        blocks = _message_blocks(msg)
        if not blocks:
            logger.warning("Skipping %s message with no content Converse can carry", msg.role)
            continue
        result.messages.append({"role": msg.role, "content": blocks})
    return result


def converse_message_to_canonical(
    message: dict[str, Any], response_metadata: dict[str, Any] | None = None
) -> CanonicalMessage:
    """Convert one Converse ``output.message`` plus its envelope fields."""
    metadata = dict(response_metadata or {})
    usage = extract_converse_usage(metadata.get("usage"), stream_usage=True)

    blocks: list[Any] = []
    tool_calls: list[ToolCall] = []
    for raw in message.get("content") or []:
        block = _converse_block_to_canonical(raw)
        if block is None:
            continue
        if isinstance(block, ToolCallBlock):
            tool_calls.append(ToolCall(id=block.id, name=block.name, args=block.args))
        blocks.append(block)

    content: str | list[Any]
    if all(isinstance(b, TextBlock) for b in blocks) and len(blocks) <= 1:
        content = blocks[0].text if blocks else ""
    else:
        content = blocks

    return CanonicalMessage(
        role="assistant",
        content=content,
        tool_calls=tool_calls or None,
        response_metadata=metadata,
        usage_metadata=usage,
    )


# ---------------------------------------------------------------------------
# Canonical -> Converse
# ---------------------------------------------------------------------------


def _message_blocks(msg: CanonicalMessage) -> list[dict[str, Any]]:
    blocks: list[dict[str, Any]] = []
    seen_tool_ids: set[str] = set()
    for block in msg.blocks:
        converted = _block_to_converse(block, msg)
        if converted is None:
            continue
        if "toolUse" in converted:
            seen_tool_ids.add(converted["toolUse"]["toolUseId"])
        blocks.append(converted)

    # Flat-field tool calls: only those not already present as tagged blocks.
    for tc in msg.tool_calls or []:
        if tc.id not in seen_tool_ids:
            blocks.append({"toolUse": {"toolUseId": tc.id, "name": tc.name, "input": tc.args}})
    return blocks


def _block_to_converse(block: ContentBlock, msg: CanonicalMessage) -> dict[str, Any] | None:
    if isinstance(block, TextBlock):
        if not block.text.strip() and msg.role == "assistant":
            return None
        return {"text": block.text}
    if isinstance(block, ToolCallBlock):
        return {"toolUse": {"toolUseId": block.id, "name": block.name, "input": block.args}}
    if isinstance(block, ToolResultBlock):
        return _tool_result(block.tool_call_id, block.content, block.status)
    if isinstance(block, ReasoningBlock):
        reasoning_text: dict[str, Any] = {"text": block.text}
        if block.signature:
            reasoning_text["signature"] = block.signature
        return {"reasoningContent": {"reasoningText": reasoning_text}}
    return _fallback_text(block, msg)


def _tool_message_blocks(msg: CanonicalMessage) -> list[dict[str, Any]]:
    results = [b for b in msg.blocks if isinstance(b, ToolResultBlock)]
    if not results:
        status = msg.response_metadata.get("status")
        return [_tool_result(msg.tool_call_id or "", msg.content, status)]

    blocks = [_tool_result(b.tool_call_id, b.content, b.status) for b in results]
    # Text beside the results (handoff guidance) rides in the last result.
    extra = [{"text": b.text} for b in msg.blocks if isinstance(b, TextBlock) and b.text]
    if extra:
        last = blocks[-1]["toolResult"]
        if last["content"] == [{"text": ""}]:
            last["content"] = extra
        else:
            last["content"].extend(extra)
    return blocks


def _tool_result(
    tool_call_id: str, content: str | list[Any], status: str | None
) -> dict[str, Any]:
    result: dict[str, Any] = {
        "toolUseId": tool_call_id,
        "content": _tool_result_content(content),
    }
    if status:
        result["status"] = status
    return {"toolResult": result}


def _tool_result_content(content: str | list[Any]) -> list[dict[str, Any]]:
    if isinstance(content, str):
        return [{"text": content}]
    parts: list[dict[str, Any]] = []
    for item in content:
        text = item.get("text") if isinstance(item, dict) else getattr(item, "text", None)
        if isinstance(text, str):
            parts.append({"text": text})
        elif isinstance(item, dict) and "json" in item:
            parts.append({"json": item["json"]})
    return parts or [{"text": ""}]


def _is_tool_result_turn(message: dict[str, Any]) -> bool:
    content = message.get("content") or []
    return message.get("role") == "user" and bool(content) and all(
        "toolResult" in block for block in content
    )


def _text_blocks(msg: CanonicalMessage) -> list[TextBlock]:
    return [b for b in msg.blocks if isinstance(b, TextBlock) and b.text]


def _fallback_text(block: Any, msg: CanonicalMessage) -> dict[str, Any] | None:
    """Best-effort text for blocks Converse has no shape for."""
    logger.warning(
        "Dropping unsupported %r content block from %s message", block.type, msg.role
    )
    text = getattr(block, "text", None) if isinstance(block, UnknownBlock) else None
    if isinstance(text, str) and text:
        return {"text": text}
    return None


# ---------------------------------------------------------------------------
# Converse -> Canonical
# ---------------------------------------------------------------------------


def _converse_block_to_canonical(raw: dict[str, Any]) -> Any:
    if "text" in raw:
        return TextBlock(text=raw["text"])
    if "toolUse" in raw:
        tool_use = raw["toolUse"]
        return ToolCallBlock(
            id=tool_use["toolUseId"], name=tool_use["name"], args=tool_use.get("input") or {}
        )
    if "reasoningContent" in raw:
        reasoning = raw["reasoningContent"].get("reasoningText") or {}
        if not reasoning:
            return UnknownBlock(type="redacted_reasoning", **raw["reasoningContent"])
        return ReasoningBlock(text=reasoning.get("text", ""), signature=reasoning.get("signature"))
    if "toolResult" in raw:
        tool_result = raw["toolResult"]
        return ToolResultBlock(
            tool_call_id=tool_result["toolUseId"],
            content=tool_result.get("content") or "",
            status=tool_result.get("status"),
        )
    logger.warning("Ignoring unrecognised Converse content block with keys %s", sorted(raw))
    return None
