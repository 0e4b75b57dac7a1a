"""Chat-completions stream deltas (OpenRouter style) -> canonical stream chunks.

Chat-completions deltas have no content-block index of their own, so one
is assigned per channel: reasoning is block 0, answer text is block 1
and tool call ``n`` is block ``2 + n``. A plain text answer therefore
stays a single-block string stream.
"""

from __future__ import annotations

from collections.abc import Iterable, Iterator
from typing import Any

from msgbridge.core.interface.models import ReasoningBlock, ToolCallChunkBlock
from msgbridge.core.interface.usage import extract_chat_usage
from msgbridge.core.streaming.chunks import MessageChunk, StreamChunk
from msgbridge.core.streaming.enrich import BlockIndexSet, enrich_chunk
from msgbridge.core.streaming.scrub import CONTENT_BLOCK_INDEX_KEY

REASONING_BLOCK_INDEX = 0
TEXT_BLOCK_INDEX = 1
TOOL_CALL_BLOCK_OFFSET = 2


def chat_delta_to_chunks(event: dict[str, Any], *, stream_usage: bool = True) -> list[StreamChunk]:
    """Split one streamed chat-completion event into raw, index-tagged chunks."""
    chunks: list[StreamChunk] = []
    for choice in event.get("choices") or []:
        delta = choice.get("delta") or {}

        reasoning = delta.get("reasoning") or delta.get("reasoning_content")
        if reasoning:
            chunks.append(_tagged([ReasoningBlock(text=reasoning)], REASONING_BLOCK_INDEX))

        text = delta.get("content")
        if text:
            chunks.append(_tagged(text, TEXT_BLOCK_INDEX, text=text))

        for tc in delta.get("tool_calls") or []:
            function = tc.get("function") or {}
            block = ToolCallChunkBlock(
                id=tc.get("id"),
                name=function.get("name"),
                args=function.get("arguments") or "",
            )
            chunks.append(_tagged([block], TOOL_CALL_BLOCK_OFFSET + tc.get("index", 0)))

        if choice.get("finish_reason"):
            chunks.append(
                StreamChunk(
                    message=MessageChunk(
                        response_metadata={"finish_reason": choice["finish_reason"]}
                    )
                )
            )

    usage = extract_chat_usage(event.get("usage"), stream_usage=stream_usage)
    if usage is not None:
        metadata = {"model": event["model"]} if event.get("model") else {}
        chunks.append(
            StreamChunk(message=MessageChunk(response_metadata=metadata, usage_metadata=usage))
        )
    return chunks


def _tagged(content: Any, index: int, *, text: str = "") -> StreamChunk:
    return StreamChunk(
        text=text,
        message=MessageChunk(content=content, response_metadata={CONTENT_BLOCK_INDEX_KEY: index}),
    )


class ChatStreamProcessor:
    """Canonicalizes the deltas of exactly one chat-completions stream."""

    def __init__(self, *, stream_usage: bool = True) -> None:
        self.stream_usage = stream_usage
        self.seen = BlockIndexSet()

    def process(self, event: dict[str, Any]) -> list[StreamChunk]:
        return [
            enrich_chunk(raw, self.seen)
            for raw in chat_delta_to_chunks(event, stream_usage=self.stream_usage)
        ]

    def iter_chunks(self, events: Iterable[dict[str, Any]]) -> Iterator[StreamChunk]:
        for event in events:
            yield from self.process(event)
