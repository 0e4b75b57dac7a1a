"""Chunk enrichment: canonicalizes raw streamed fragments.

Providers tag each streamed delta with the content block it belongs to.
A stream that only ever produces one block is delivered as plain string
content so that callers can concatenate text. Once a second distinct
block index shows up, string concatenation would interleave unrelated
blocks, so from then on every chunk carries an indexed block list.

State per stream lives in a caller-owned :class:`BlockIndexSet`. Share
one instance per stream only: mixing streams corrupts block grouping and
cannot be detected here.
"""

from __future__ import annotations

import logging
from enum import Enum
from typing import Any

from msgbridge.core.interface.models import TextBlock
from msgbridge.core.streaming.chunks import MessageChunk, StreamChunk
from msgbridge.core.streaming.scrub import CONTENT_BLOCK_INDEX_KEY, scrub

logger = logging.getLogger(__name__)


class StreamState(str, Enum):
    SINGLE_BLOCK = "single_block"
    MULTI_BLOCK = "multi_block"


class BlockIndexSet:
    """The distinct content-block indices observed so far in one stream.

    Grows monotonically; once two distinct indices are seen the stream is
    in :attr:`StreamState.MULTI_BLOCK` for the rest of its life.
    """

    def __init__(self, indices: set[int] | None = None) -> None:
        self._indices: set[int] = set(indices or ())

    def add(self, index: int) -> bool:
        """Record *index*. Returns ``True`` if this moved the stream to multi-block."""
        before = self.state
        self._indices.add(index)
        transitioned = before is StreamState.SINGLE_BLOCK and self.is_multi_block
        if transitioned:
            logger.debug("Stream promoted to multi-block at content block %d", index)
        return transitioned

    @property
    def state(self) -> StreamState:
        return StreamState.MULTI_BLOCK if len(self._indices) > 1 else StreamState.SINGLE_BLOCK

    @property
    def is_multi_block(self) -> bool:
        return len(self._indices) > 1

    def __contains__(self, index: object) -> bool:
        return index in self._indices

    def __len__(self) -> int:
        return len(self._indices)

    def __iter__(self):  # type: ignore[no-untyped-def]
        return iter(sorted(self._indices))

    def __repr__(self) -> str:
        return f"BlockIndexSet({sorted(self._indices)!r})"


def block_index_of(chunk: StreamChunk) -> int | None:
    """Read the content-block index a raw chunk was tagged with, if any."""
    value = chunk.message.response_metadata.get(CONTENT_BLOCK_INDEX_KEY)
    return value if isinstance(value, int) else None


def enrich_chunk(chunk: StreamChunk, seen: BlockIndexSet) -> StreamChunk:
    """Return the canonical, appendable form of a raw stream chunk.

    Records the chunk's block index in *seen*, strips the transient index
    marker from ``response_metadata`` at every depth, and decides whether
    the content stays a string or becomes an indexed block list. The input
    chunk is not modified.
    """
    index = block_index_of(chunk)
    if index is not None:
        seen.add(index)

    message = chunk.message
    content = _shape_content(message.content, index, seen)
    enriched = MessageChunk(
        content=content,
        response_metadata=scrub(message.response_metadata, CONTENT_BLOCK_INDEX_KEY),
        usage_metadata=message.usage_metadata,
    )
    return StreamChunk(text=chunk.text, message=enriched)


def _shape_content(content: Any, index: int | None, seen: BlockIndexSet) -> Any:
    if content is None or index is None:
        return _copy(content)

    if isinstance(content, list):
        return [block.model_copy(update={"index": index}, deep=True) for block in content]

    if content and seen.is_multi_block:
        return [TextBlock(text=content, index=index)]

    return content


def _copy(content: Any) -> Any:
    if isinstance(content, list):
        return [block.model_copy(deep=True) for block in content]
    return content
