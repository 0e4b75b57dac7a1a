"""Streaming chunk types and the ordered-concatenation accumulator.

A :class:`StreamChunk` is one increment of a streamed response. Chunks are
appendable: ``chunk_1 + chunk_2 + ...`` in arrival order rebuilds the same
message that a single non-streamed response would have produced.
"""

from __future__ import annotations

import copy
import json
from collections.abc import Iterable
from typing import Any, Literal

from pydantic import BaseModel, Field

from msgbridge.core.interface.models import (
    CanonicalMessage,
    ContentBlock,
    ReasoningBlock,
    TextBlock,
    ToolCall,
    ToolCallBlock,
    ToolCallChunkBlock,
    UsageMetadata,
)


class MessageChunk(BaseModel):
    """A partial assistant message carrying only the fields set this increment."""

    role: Literal["assistant"] = "assistant"
    content: str | list[ContentBlock] | None = ""
    response_metadata: dict[str, Any] = Field(default_factory=dict)
    usage_metadata: UsageMetadata | None = None

    def __add__(self, other: MessageChunk) -> MessageChunk:
        return MessageChunk(
            content=merge_content(self.content, other.content),
            response_metadata=merge_metadata(self.response_metadata, other.response_metadata),
            usage_metadata=_merge_usage(self.usage_metadata, other.usage_metadata),
        )

    def to_message(self) -> CanonicalMessage:
        """Freeze the accumulated chunk into a :class:`CanonicalMessage`.

        Tool-call chunks whose argument fragments form valid JSON are
        promoted to complete ``tool_call`` blocks and mirrored into the
        flat ``tool_calls`` field.
        """
        content = self.content if self.content is not None else ""
        tool_calls: list[ToolCall] = []
        if isinstance(content, list):
            finished: list[Any] = []
            for block in content:
                if isinstance(block, ToolCallChunkBlock):
                    block = _finish_tool_call(block)
                if isinstance(block, ToolCallBlock):
                    tool_calls.append(ToolCall(id=block.id, name=block.name, args=block.args))
                finished.append(block)
            content = finished
        return CanonicalMessage(
            role="assistant",
            content=content,
            tool_calls=tool_calls or None,
            response_metadata=copy.deepcopy(self.response_metadata),
            usage_metadata=self.usage_metadata,
        )


class StreamChunk(BaseModel):
    """One streamed increment: the text delta plus the partial message."""

    text: str = ""
    message: MessageChunk = Field(default_factory=MessageChunk)

    def __add__(self, other: StreamChunk) -> StreamChunk:
        return StreamChunk(text=self.text + other.text, message=self.message + other.message)


def concat_chunks(chunks: Iterable[StreamChunk]) -> StreamChunk | None:
    """Fold *chunks* left to right; ``None`` for an empty stream."""
    result: StreamChunk | None = None
    for chunk in chunks:
        result = chunk if result is None else result + chunk
    return result


# ---------------------------------------------------------------------------
# Merge helpers
# ---------------------------------------------------------------------------


def merge_content(
    left: str | list[Any] | None, right: str | list[Any] | None
) -> str | list[Any] | None:
    """Concatenate two content values.

    Strings concatenate. Once either side is a block list the result is a
    block list: a string side becomes one un-indexed text block, and blocks
    sharing an ``index`` and ``type`` are merged in place.
    """
    if left is None:
        return _copy_content(right)
    if right is None:
        return _copy_content(left)
    if isinstance(left, str) and isinstance(right, str):
        return left + right

    merged: list[Any] = _as_blocks(left)
    for block in _as_blocks(right):
        target = _find_mergeable(merged, block)
        if target is None:
            merged.append(block)
        else:
            merged[target] = _merge_block(merged[target], block)
    return merged


def merge_metadata(left: dict[str, Any], right: dict[str, Any]) -> dict[str, Any]:
    """Recursively merge *right* into a copy of *left*; later scalars win."""
    merged = copy.deepcopy(left)
    for key, value in right.items():
        current = merged.get(key)
        if isinstance(current, dict) and isinstance(value, dict):
            merged[key] = merge_metadata(current, value)
        elif isinstance(current, list) and isinstance(value, list):
            merged[key] = current + copy.deepcopy(value)
        elif value is not None or key not in merged:
            merged[key] = copy.deepcopy(value)
    return merged


def _merge_usage(
    left: UsageMetadata | None, right: UsageMetadata | None
) -> UsageMetadata | None:
    if left is None or right is None:
        return left or right
    return left + right


def _copy_content(content: str | list[Any] | None) -> str | list[Any] | None:
    if isinstance(content, list):
        return [block.model_copy(deep=True) for block in content]
    return content


def _as_blocks(content: str | list[Any]) -> list[Any]:
    if isinstance(content, str):
        return [TextBlock(text=content)] if content else []
    return [block.model_copy(deep=True) for block in content]


def _find_mergeable(blocks: list[Any], block: Any) -> int | None:
    if block.index is None:
        return None
    for position, existing in enumerate(blocks):
        if existing.index == block.index and existing.type == block.type:
            return position
    return None


def _merge_block(left: Any, right: Any) -> Any:
    if isinstance(left, (TextBlock, ReasoningBlock)):
        update: dict[str, Any] = {"text": left.text + right.text}
        if isinstance(left, ReasoningBlock) and right.signature:
            update["signature"] = (left.signature or "") + right.signature
        return left.model_copy(update=update)
    if isinstance(left, ToolCallChunkBlock):
        return left.model_copy(
            update={
                "id": left.id or right.id,
                "name": left.name or right.name,
                "args": left.args + right.args,
            }
        )
    # Other block kinds: keep what arrived first, fill gaps from later fragments.
    fields = right.model_dump(exclude_none=True)
    fields.update(left.model_dump(exclude_none=True))
    return type(left).model_validate(fields)


def _finish_tool_call(block: ToolCallChunkBlock) -> Any:
    if not block.id or not block.name:
        return block
    try:
        args = json.loads(block.args) if block.args else {}
    except json.JSONDecodeError:
        return block
    if not isinstance(args, dict):
        return block
    return ToolCallBlock(id=block.id, name=block.name, args=args, index=block.index)
