"""Tests for Converse stream event handling."""

from __future__ import annotations

import pytest

from msgbridge.core.interface.errors import ProviderResponseError
from msgbridge.core.interface.models import (
    InputTokenDetails,
    ReasoningBlock,
    TextBlock,
    ToolCallBlock,
    ToolCallChunkBlock,
    UnknownBlock,
)
from msgbridge.core.streaming.chunks import concat_chunks
from msgbridge.core.streaming.converse import (
    ConverseStreamProcessor,
    handle_content_block_delta,
    handle_content_block_start,
    handle_message_stop,
    handle_stream_metadata,
)


class TestHandleStreamMetadata:
    def test_cache_read_tokens(self) -> None:
        chunk = handle_stream_metadata(
            {
                "usage": {
                    "inputTokens": 13,
                    "outputTokens": 5,
                    "totalTokens": 10849,
                    "cacheReadInputTokens": 10831,
                    "cacheWriteInputTokens": 0,
                },
                "metrics": {"latencyMs": 1000},
            },
            stream_usage=True,
        )

        usage = chunk.message.usage_metadata
        assert usage is not None
        assert usage.input_tokens == 13
        assert usage.output_tokens == 5
        assert usage.total_tokens == 10849
        assert usage.input_token_details == InputTokenDetails(cache_read=10831, cache_creation=0)
        assert chunk.message.response_metadata == {"metrics": {"latencyMs": 1000}}

    def test_no_cache_fields(self) -> None:
        chunk = handle_stream_metadata(
            {
                "usage": {"inputTokens": 100, "outputTokens": 50, "totalTokens": 150},
                "metrics": {"latencyMs": 500},
            },
            stream_usage=True,
        )

        usage = chunk.message.usage_metadata
        assert usage is not None
        assert usage.input_tokens == 100
        assert usage.output_tokens == 50
        assert usage.total_tokens == 150
        assert usage.input_token_details is None

    def test_cache_write_only(self) -> None:
        chunk = handle_stream_metadata(
            {
                "usage": {
                    "inputTokens": 10,
                    "outputTokens": 20,
                    "totalTokens": 10030,
                    "cacheWriteInputTokens": 10000,
                },
                "metrics": {"latencyMs": 2000},
            },
            stream_usage=True,
        )

        usage = chunk.message.usage_metadata
        assert usage is not None
        assert usage.input_token_details == InputTokenDetails(cache_read=0, cache_creation=10000)

    def test_usage_disabled(self) -> None:
        chunk = handle_stream_metadata(
            {
                "usage": {
                    "inputTokens": 13,
                    "outputTokens": 5,
                    "totalTokens": 10849,
                    "cacheReadInputTokens": 10831,
                },
                "metrics": {"latencyMs": 1000},
            },
            stream_usage=False,
        )

        assert chunk.message.usage_metadata is None

    def test_trace_kept(self) -> None:
        chunk = handle_stream_metadata({"trace": {"guardrail": {}}})

        assert chunk.message.response_metadata == {"trace": {"guardrail": {}}}
        assert chunk.message.usage_metadata is None


class TestHandlers:
    def test_text_delta(self) -> None:
        chunk = handle_content_block_delta({"contentBlockIndex": 0, "delta": {"text": "Hi"}})

        assert chunk is not None
        assert chunk.text == "Hi"
        assert chunk.message.content == "Hi"
        assert chunk.message.response_metadata == {"contentBlockIndex": 0}

    def test_tool_use_start(self) -> None:
        chunk = handle_content_block_start(
            {"contentBlockIndex": 1, "start": {"toolUse": {"toolUseId": "t1", "name": "search"}}}
        )

        assert chunk is not None
        assert chunk.message.content == [ToolCallChunkBlock(id="t1", name="search", args="")]

    def test_start_without_tool_use(self) -> None:
        assert handle_content_block_start({"contentBlockIndex": 0, "start": {}}) is None

    def test_tool_use_delta(self) -> None:
        chunk = handle_content_block_delta(
            {"contentBlockIndex": 1, "delta": {"toolUse": {"input": '{"q"'}}}
        )

        assert chunk is not None
        assert chunk.message.content == [ToolCallChunkBlock(args='{"q"')]

    def test_reasoning_text_and_signature(self) -> None:
        text = handle_content_block_delta(
            {"contentBlockIndex": 0, "delta": {"reasoningContent": {"text": "hmm"}}}
        )
        signature = handle_content_block_delta(
            {"contentBlockIndex": 0, "delta": {"reasoningContent": {"signature": "abc"}}}
        )

        assert text is not None and signature is not None
        assert text.message.content == [ReasoningBlock(text="hmm")]
        assert signature.message.content == [ReasoningBlock(signature="abc")]

    def test_redacted_reasoning(self) -> None:
        chunk = handle_content_block_delta(
            {"contentBlockIndex": 0, "delta": {"reasoningContent": {"redactedContent": "xx"}}}
        )

        assert chunk is not None
        assert isinstance(chunk.message.content, list)
        block = chunk.message.content[0]
        assert isinstance(block, UnknownBlock)
        assert block.type == "redacted_reasoning"

    def test_unknown_delta_skipped(self) -> None:
        assert handle_content_block_delta({"contentBlockIndex": 0, "delta": {"image": {}}}) is None

    def test_message_stop(self) -> None:
        chunk = handle_message_stop({"stopReason": "tool_use"})

        assert chunk.message.response_metadata == {"stopReason": "tool_use"}

    def test_message_stop_additional_fields(self) -> None:
        chunk = handle_message_stop(
            {"stopReason": "end_turn", "additionalModelResponseFields": {"x": 1}}
        )

        assert chunk.message.response_metadata == {
            "stopReason": "end_turn",
            "additionalModelResponseFields": {"x": 1},
        }


def _text_only_stream() -> list[dict]:
    return [
        {"messageStart": {"role": "assistant"}},
        {"contentBlockDelta": {"contentBlockIndex": 0, "delta": {"text": "Hello "}}},
        {"contentBlockDelta": {"contentBlockIndex": 0, "delta": {"text": "world"}}},
        {"contentBlockStop": {"contentBlockIndex": 0}},
        {"messageStop": {"stopReason": "end_turn"}},
        {
            "metadata": {
                "usage": {"inputTokens": 10, "outputTokens": 2, "totalTokens": 12},
                "metrics": {"latencyMs": 42},
            }
        },
    ]


def _reasoning_then_tool_stream() -> list[dict]:
    return [
        {"messageStart": {"role": "assistant"}},
        {"contentBlockDelta": {"contentBlockIndex": 0, "delta": {"reasoningContent": {"text": "Look "}}}},
        {"contentBlockDelta": {"contentBlockIndex": 0, "delta": {"reasoningContent": {"text": "it up"}}}},
        {"contentBlockDelta": {"contentBlockIndex": 0, "delta": {"reasoningContent": {"signature": "sig"}}}},
        {"contentBlockStop": {"contentBlockIndex": 0}},
        {"contentBlockDelta": {"contentBlockIndex": 1, "delta": {"text": "Searching."}}},
        {"contentBlockStop": {"contentBlockIndex": 1}},
        {
            "contentBlockStart": {
                "contentBlockIndex": 2,
                "start": {"toolUse": {"toolUseId": "tool_1", "name": "search"}},
            }
        },
        {"contentBlockDelta": {"contentBlockIndex": 2, "delta": {"toolUse": {"input": '{"query": '}}}},
        {"contentBlockDelta": {"contentBlockIndex": 2, "delta": {"toolUse": {"input": '"weather"}'}}}},
        {"contentBlockStop": {"contentBlockIndex": 2}},
        {"messageStop": {"stopReason": "tool_use"}},
        {
            "metadata": {
                "usage": {
                    "inputTokens": 20,
                    "outputTokens": 8,
                    "totalTokens": 28,
                    "cacheReadInputTokens": 5,
                },
            }
        },
    ]


class TestConverseStreamProcessor:
    def test_text_only_stream_stays_string(self) -> None:
        processor = ConverseStreamProcessor()

        chunks = list(processor.iter_chunks(_text_only_stream()))
        result = concat_chunks(chunks)

        assert result is not None
        assert result.text == "Hello world"
        assert result.message.content == "Hello world"
        assert result.message.response_metadata == {
            "stopReason": "end_turn",
            "metrics": {"latencyMs": 42},
        }
        assert result.message.usage_metadata is not None
        assert result.message.usage_metadata.total_tokens == 12
        assert not processor.seen.is_multi_block

    def test_no_chunk_carries_index_marker(self) -> None:
        processor = ConverseStreamProcessor()

        for chunk in processor.iter_chunks(_reasoning_then_tool_stream()):
            assert "contentBlockIndex" not in chunk.message.response_metadata

    def test_multi_block_stream(self) -> None:
        processor = ConverseStreamProcessor()

        result = concat_chunks(processor.iter_chunks(_reasoning_then_tool_stream()))

        assert result is not None
        message = result.message.to_message()
        assert message.content == [
            ReasoningBlock(text="Look it up", signature="sig", index=0),
            TextBlock(text="Searching.", index=1),
            ToolCallBlock(id="tool_1", name="search", args={"query": "weather"}, index=2),
        ]
        assert message.tool_calls is not None
        assert message.tool_calls[0].name == "search"
        assert message.response_metadata == {"stopReason": "tool_use"}
        assert message.usage_metadata is not None
        assert message.usage_metadata.input_token_details == InputTokenDetails(cache_read=5)
        assert list(processor.seen) == [0, 1, 2]

    def test_stream_usage_disabled(self) -> None:
        processor = ConverseStreamProcessor(stream_usage=False)

        result = concat_chunks(processor.iter_chunks(_text_only_stream()))

        assert result is not None
        assert result.message.usage_metadata is None

    def test_skips_events_without_chunks(self) -> None:
        processor = ConverseStreamProcessor()

        assert processor.process({"messageStart": {"role": "assistant"}}) is None
        assert processor.process({"contentBlockStop": {"contentBlockIndex": 0}}) is None

    def test_exception_event_raises(self) -> None:
        processor = ConverseStreamProcessor()

        with pytest.raises(ProviderResponseError, match="slow down"):
            processor.process({"throttlingException": {"message": "slow down"}})
