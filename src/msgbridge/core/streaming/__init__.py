"""Streaming reconciliation: scrubbing, block-index tracking, chunk enrichment."""

from msgbridge.core.streaming.chunks import (
    MessageChunk,
    StreamChunk,
    concat_chunks,
    merge_content,
    merge_metadata,
)
from msgbridge.core.streaming.converse import ConverseStreamProcessor
from msgbridge.core.streaming.enrich import BlockIndexSet, StreamState, enrich_chunk
from msgbridge.core.streaming.openrouter import ChatStreamProcessor
from msgbridge.core.streaming.scrub import CONTENT_BLOCK_INDEX_KEY, scrub

__all__ = [
    "CONTENT_BLOCK_INDEX_KEY",
    "BlockIndexSet",
    "ChatStreamProcessor",
    "ConverseStreamProcessor",
    "MessageChunk",
    "StreamChunk",
    "StreamState",
    "concat_chunks",
    "enrich_chunk",
    "merge_content",
    "merge_metadata",
    "scrub",
]
