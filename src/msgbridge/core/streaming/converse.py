"""Converse stream events -> canonical stream chunks.

The ``handle_*`` functions translate one raw event each into a raw
:class:`StreamChunk` whose ``response_metadata`` carries the
``contentBlockIndex`` marker. :class:`ConverseStreamProcessor` feeds
those through :func:`enrich_chunk` with a per-stream index set.
"""

from __future__ import annotations

import logging
from collections.abc import Iterable, Iterator
from typing import Any

from msgbridge.core.interface.errors import ProviderResponseError
from msgbridge.core.interface.models import ReasoningBlock, ToolCallChunkBlock, UnknownBlock
from msgbridge.core.interface.usage import extract_converse_usage
from msgbridge.core.streaming.chunks import MessageChunk, StreamChunk
from msgbridge.core.streaming.enrich import BlockIndexSet, enrich_chunk
from msgbridge.core.streaming.scrub import CONTENT_BLOCK_INDEX_KEY

logger = logging.getLogger(__name__)


def handle_content_block_start(event: dict[str, Any]) -> StreamChunk | None:
    """Only tool-use blocks announce themselves; text and reasoning start with a delta."""
    start = event.get("start") or {}
    tool_use = start.get("toolUse")
    if tool_use is None:
        return None
    block = ToolCallChunkBlock(id=tool_use.get("toolUseId"), name=tool_use.get("name"), args="")
    return _indexed_chunk(event, [block])


def handle_content_block_delta(event: dict[str, Any]) -> StreamChunk | None:
    delta = event.get("delta") or {}
    if "text" in delta:
        text = delta["text"]
        return StreamChunk(
            text=text,
            message=MessageChunk(
                content=text,
                response_metadata={CONTENT_BLOCK_INDEX_KEY: event.get("contentBlockIndex")},
            ),
        )
    if "toolUse" in delta:
        block = ToolCallChunkBlock(args=delta["toolUse"].get("input", ""))
        return _indexed_chunk(event, [block])
    if "reasoningContent" in delta:
        reasoning = delta["reasoningContent"]
        if "text" in reasoning:
            return _indexed_chunk(event, [ReasoningBlock(text=reasoning["text"])])
        if "signature" in reasoning:
            return _indexed_chunk(event, [ReasoningBlock(signature=reasoning["signature"])])
        return _indexed_chunk(event, [UnknownBlock(type="redacted_reasoning", **reasoning)])
    logger.debug("Skipping content block delta with keys %s", sorted(delta))
    return None


def handle_message_stop(event: dict[str, Any]) -> StreamChunk:
    metadata: dict[str, Any] = {"stopReason": event.get("stopReason")}
    if event.get("additionalModelResponseFields"):
        metadata["additionalModelResponseFields"] = event["additionalModelResponseFields"]
    return StreamChunk(message=MessageChunk(response_metadata=metadata))


def handle_stream_metadata(metadata: dict[str, Any], *, stream_usage: bool = True) -> StreamChunk:
    """Turn the trailing ``metadata`` event into a usage-bearing chunk."""
    response_metadata: dict[str, Any] = {}
    if metadata.get("metrics") is not None:
        response_metadata["metrics"] = metadata["metrics"]
    if metadata.get("trace") is not None:
        response_metadata["trace"] = metadata["trace"]
    return StreamChunk(
        message=MessageChunk(
            response_metadata=response_metadata,
            usage_metadata=extract_converse_usage(metadata.get("usage"), stream_usage=stream_usage),
        )
    )


def _indexed_chunk(event: dict[str, Any], blocks: list[Any]) -> StreamChunk:
    return StreamChunk(
        message=MessageChunk(
            content=blocks,
            response_metadata={CONTENT_BLOCK_INDEX_KEY: event.get("contentBlockIndex")},
        )
    )


class ConverseStreamProcessor:
    """Canonicalizes the events of exactly one Converse stream.

    Usage::

        processor = ConverseStreamProcessor(stream_usage=True)
        for chunk in processor.iter_chunks(response["stream"]):
            ...
    """

    def __init__(self, *, stream_usage: bool = True) -> None:
        self.stream_usage = stream_usage
        self.seen = BlockIndexSet()

    def process(self, event: dict[str, Any]) -> StreamChunk | None:
        """Translate and enrich one raw event; ``None`` when it yields no chunk."""
        raw = self._dispatch(event)
        if raw is None:
            return None
        return enrich_chunk(raw, self.seen)

    def iter_chunks(self, events: Iterable[dict[str, Any]]) -> Iterator[StreamChunk]:
        for event in events:
            chunk = self.process(event)
            if chunk is not None:
                yield chunk

    def _dispatch(self, event: dict[str, Any]) -> StreamChunk | None:
        if "contentBlockDelta" in event:
            return handle_content_block_delta(event["contentBlockDelta"])
        if "contentBlockStart" in event:
            return handle_content_block_start(event["contentBlockStart"])
        if "messageStop" in event:
            return handle_message_stop(event["messageStop"])
        if "metadata" in event:
            return handle_stream_metadata(event["metadata"], stream_usage=self.stream_usage)
        for key, value in event.items():
            if key.endswith("Exception"):
                detail = value.get("message", key) if isinstance(value, dict) else key
                raise ProviderResponseError("converse", detail)
        # messageStart, contentBlockStop and anything new carry nothing to emit.
        logger.debug("Skipping Converse stream event %s", sorted(event))
        return None
