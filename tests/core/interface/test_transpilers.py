"""Tests for provider-specific transpilers using recorded fixtures."""

import json
import logging
from typing import Any

import pytest

from msgbridge.core.interface.errors import ProviderResponseError
from msgbridge.core.interface.models import (
    CanonicalMessage,
    ConversationHistory,
    InputTokenDetails,
    ReasoningBlock,
    TextBlock,
    ToolCall,
    ToolCallBlock,
    ToolResultBlock,
    UnknownBlock,
)
from msgbridge.core.interface.transpilers.anthropic import AnthropicTranspiler
from msgbridge.core.interface.transpilers.converse import (
    ConverseTranspiler,
    converse_message_to_canonical,
    to_converse_messages,
)
from msgbridge.core.interface.transpilers.openrouter import OpenRouterTranspiler, parse_arguments
from msgbridge.core.orchestration.handoff import prepare_handoff

# ---------------------------------------------------------------------------
# Fixtures: sample conversations
# ---------------------------------------------------------------------------


def _simple_history() -> ConversationHistory:
    return ConversationHistory(
        messages=[
            CanonicalMessage.system("You are helpful."),
            CanonicalMessage.user("Hello"),
            CanonicalMessage.assistant("Hi there!"),
        ]
    )


def _parallel_tool_history() -> ConversationHistory:
    return ConversationHistory(
        messages=[
            CanonicalMessage.user("Get weather for SF and NYC"),
            CanonicalMessage.assistant(
                "I will check both cities.",
                tool_calls=[
                    ToolCall(id="call_1", name="get_weather", args={"city": "SF"}),
                    ToolCall(id="call_2", name="get_weather", args={"city": "NYC"}),
                ],
            ),
            CanonicalMessage.tool("call_1", "SF: 72°F"),
            CanonicalMessage.tool("call_2", "NYC: 65°F"),
        ]
    )


def _converse_response(usage: dict[str, int], content: list[dict[str, Any]] | None = None) -> dict[str, Any]:
    return {
        "output": {
            "message": {"role": "assistant", "content": content or [{"text": "Hello!"}]}
        },
        "stopReason": "end_turn",
        "usage": usage,
        "metrics": {"latencyMs": 100},
        "ResponseMetadata": {"RequestId": "test-id"},
    }


def _handed_off_tagged_tool_history() -> list[CanonicalMessage]:
    history = [
        CanonicalMessage.user("What is the weather?"),
        CanonicalMessage.assistant("", tool_calls=[ToolCall(id="call_1", name="get_weather")]),
        CanonicalMessage.tool(
            "call_1", [ToolResultBlock(tool_call_id="call_1", content=[{"text": "72F"}])]
        ),
    ]
    return prepare_handoff(history, "Summarize the forecast.")


# ---------------------------------------------------------------------------
# Converse
# ---------------------------------------------------------------------------


class TestToConverseMessages:
    def test_basic_messages(self) -> None:
        result = to_converse_messages(
            [CanonicalMessage.system("You're an AI assistant."), CanonicalMessage.user("Hello!")]
        )

        assert result.system == [{"text": "You're an AI assistant."}]
        assert result.messages == [{"role": "user", "content": [{"text": "Hello!"}]}]

    def test_tool_call_blocks(self) -> None:
        result = to_converse_messages(
            [
                CanonicalMessage.system("You're an advanced AI assistant."),
                CanonicalMessage.user("What's the weather in SF?"),
                CanonicalMessage.assistant(
                    [
                        TextBlock(text="Let me check the weather for you."),
                        ToolCallBlock(
                            id="call_123", name="get_weather", args={"location": "San Francisco"}
                        ),
                    ],
                    output_version="v1",
                    model_provider="anthropic",
                ),
                CanonicalMessage.tool("call_123", "72°F and sunny"),
            ]
        )

        assert result.system == [{"text": "You're an advanced AI assistant."}]
        assert len(result.messages) == 3
        assert result.messages[0] == {
            "role": "user",
            "content": [{"text": "What's the weather in SF?"}],
        }
        assert result.messages[1]["role"] == "assistant"
        assert result.messages[1]["content"] == [
            {"text": "Let me check the weather for you."},
            {
                "toolUse": {
                    "toolUseId": "call_123",
                    "name": "get_weather",
                    "input": {"location": "San Francisco"},
                }
            },
        ]
        assert result.messages[2]["role"] == "user"
        assert len(result.messages[2]["content"]) == 1
        assert result.messages[2]["content"][0]["toolResult"]["toolUseId"] == "call_123"
        assert result.messages[2]["content"][0]["toolResult"]["content"] == [
            {"text": "72°F and sunny"}
        ]

    def test_reasoning_blocks(self) -> None:
        result = to_converse_messages(
            [
                CanonicalMessage.system("You're an advanced AI assistant."),
                CanonicalMessage.user("What is 2+2?"),
                CanonicalMessage.assistant(
                    [
                        ReasoningBlock(text="I need to add 2 and 2 together."),
                        TextBlock(text="The answer is 4."),
                    ]
                ),
                CanonicalMessage.user("Thanks! What about 3+3?"),
            ]
        )

        assert len(result.messages) == 3
        assistant = result.messages[1]
        assert assistant["role"] == "assistant"
        assert len(assistant["content"]) == 2
        assert assistant["content"][0]["reasoningContent"]["reasoningText"]["text"] == (
            "I need to add 2 and 2 together."
        )
        assert assistant["content"][1] == {"text": "The answer is 4."}

    def test_reasoning_signature_kept(self) -> None:
        result = to_converse_messages(
            [CanonicalMessage.assistant([ReasoningBlock(text="t", signature="sig")])]
        )

        assert result.messages[0]["content"] == [
            {"reasoningContent": {"reasoningText": {"text": "t", "signature": "sig"}}}
        ]

    def test_string_content_without_tool_calls(self) -> None:
        result = to_converse_messages(
            [CanonicalMessage.user("Hello"), CanonicalMessage.assistant("Hi there!", tool_calls=[])]
        )

        assert len(result.messages) == 2
        assert result.messages[1] == {"role": "assistant", "content": [{"text": "Hi there!"}]}

    def test_consecutive_tool_results_combined(self) -> None:
        result = to_converse_messages(_parallel_tool_history().messages)

        assert len(result.messages) == 3
        assert result.messages[1]["content"][1]["toolUse"]["toolUseId"] == "call_1"
        assert result.messages[1]["content"][2]["toolUse"]["toolUseId"] == "call_2"
        tool_turn = result.messages[2]
        assert tool_turn["role"] == "user"
        assert [b["toolResult"]["toolUseId"] for b in tool_turn["content"]] == ["call_1", "call_2"]

    def test_tool_results_not_merged_into_user_text(self) -> None:
        result = to_converse_messages(
            [
                CanonicalMessage.assistant("", tool_calls=[ToolCall(id="c1", name="f")]),
                CanonicalMessage.user("Also this"),
                CanonicalMessage.tool("c1", "done"),
            ]
        )

        assert len(result.messages) == 3
        assert result.messages[1]["content"] == [{"text": "Also this"}]
        assert "toolResult" in result.messages[2]["content"][0]

    def test_empty_assistant_text_skipped(self) -> None:
        result = to_converse_messages(
            [CanonicalMessage.assistant("", tool_calls=[ToolCall(id="c1", name="f", args={})])]
        )

        assert result.messages[0]["content"] == [
            {"toolUse": {"toolUseId": "c1", "name": "f", "input": {}}}
        ]

    def test_flat_tool_calls_not_duplicated(self) -> None:
        result = to_converse_messages(
            [
                CanonicalMessage.assistant(
                    [ToolCallBlock(id="c1", name="f", args={"a": 1})],
                    tool_calls=[ToolCall(id="c1", name="f", args={"a": 1})],
                )
            ]
        )

        assert len(result.messages[0]["content"]) == 1

    def test_tagged_tool_result_with_status(self) -> None:
        result = to_converse_messages(
            [
                CanonicalMessage.user(
                    [ToolResultBlock(tool_call_id="c1", content="boom", status="error")]
                )
            ]
        )

        assert result.messages[0]["content"] == [
            {"toolResult": {"toolUseId": "c1", "content": [{"text": "boom"}], "status": "error"}}
        ]

    def test_unknown_block_dropped_with_warning(self, caplog: pytest.LogCaptureFixture) -> None:
        msg = CanonicalMessage.user([TextBlock(text="look"), UnknownBlock(type="image_url")])

        with caplog.at_level(logging.WARNING):
            result = to_converse_messages([msg])

        assert result.messages[0]["content"] == [{"text": "look"}]
        assert "image_url" in caplog.text

    def test_message_with_only_unknown_blocks_skipped(
        self, caplog: pytest.LogCaptureFixture
    ) -> None:
        messages = [
            CanonicalMessage.user("Hello"),
            CanonicalMessage.user([UnknownBlock(type="image_url")]),
        ]

        with caplog.at_level(logging.WARNING):
            result = to_converse_messages(messages)

        assert result.messages == [{"role": "user", "content": [{"text": "Hello"}]}]
        assert "Skipping user message" in caplog.text

    def test_empty_string_matches_tagged_text(self) -> None:
        legacy = to_converse_messages([CanonicalMessage.user("")])
        tagged = to_converse_messages([CanonicalMessage.user([TextBlock(text="")])])

        assert legacy.messages == tagged.messages == [{"role": "user", "content": [{"text": ""}]}]

    def test_handoff_guidance_kept_in_tagged_tool_result(self) -> None:
        result = to_converse_messages(_handed_off_tagged_tool_history())

        assert result.messages[-1] == {
            "role": "user",
            "content": [
                {
                    "toolResult": {
                        "toolUseId": "call_1",
                        "content": [{"text": "72F"}, {"text": "Summarize the forecast."}],
                    }
                }
            ],
        }

    def test_guidance_replaces_empty_tool_result(self) -> None:
        msg = CanonicalMessage.tool(
            "call_1",
            [ToolResultBlock(tool_call_id="call_1"), TextBlock(text="Continue.")],
        )

        result = to_converse_messages([msg])

        assert result.messages[0]["content"][0]["toolResult"]["content"] == [
            {"text": "Continue."}
        ]


class TestConverseTranspiler:
    def test_to_provider(self) -> None:
        payload = ConverseTranspiler().to_provider(_simple_history())

        assert payload["system"] == [{"text": "You are helpful."}]
        assert payload["messages"] == [
            {"role": "user", "content": [{"text": "Hello"}]},
            {"role": "assistant", "content": [{"text": "Hi there!"}]},
        ]

    def test_to_provider_without_system(self) -> None:
        payload = ConverseTranspiler().to_provider(
            ConversationHistory(messages=[CanonicalMessage.user("hi")])
        )

        assert "system" not in payload

    def test_from_provider_cache_tokens(self) -> None:
        result = ConverseTranspiler().from_provider(
            _converse_response(
                {
                    "inputTokens": 20,
                    "outputTokens": 5,
                    "totalTokens": 10856,
                    "cacheReadInputTokens": 10831,
                    "cacheWriteInputTokens": 0,
                }
            )
        )

        assert result.content == "Hello!"
        assert result.usage_metadata is not None
        assert result.usage_metadata.input_tokens == 20
        assert result.usage_metadata.total_tokens == 10856
        assert result.usage_metadata.input_token_details == InputTokenDetails(
            cache_read=10831, cache_creation=0
        )
        assert result.response_metadata["stopReason"] == "end_turn"
        assert result.response_metadata["usage"]["cacheReadInputTokens"] == 10831

    def test_from_provider_without_cache_tokens(self) -> None:
        result = ConverseTranspiler().from_provider(
            _converse_response({"inputTokens": 100, "outputTokens": 50, "totalTokens": 150})
        )

        assert result.usage_metadata is not None
        assert result.usage_metadata.input_token_details is None

    def test_from_provider_tool_use(self) -> None:
        result = ConverseTranspiler().from_provider(
            _converse_response(
                {"inputTokens": 1, "outputTokens": 1, "totalTokens": 2},
                content=[
                    {"reasoningContent": {"reasoningText": {"text": "hmm", "signature": "s"}}},
                    {"text": "Checking."},
                    {"toolUse": {"toolUseId": "t1", "name": "search", "input": {"q": "x"}}},
                ],
            )
        )

        assert result.content == [
            ReasoningBlock(text="hmm", signature="s"),
            TextBlock(text="Checking."),
            ToolCallBlock(id="t1", name="search", args={"q": "x"}),
        ]
        assert result.tool_calls == [ToolCall(id="t1", name="search", args={"q": "x"})]

    def test_from_provider_missing_message(self) -> None:
        with pytest.raises(ProviderResponseError):
            ConverseTranspiler().from_provider({"stopReason": "end_turn"})

    def test_round_trip_keeps_block_order(self) -> None:
        blocks = [
            ReasoningBlock(text="plan", signature="sig"),
            TextBlock(text="Calling two tools."),
            ToolCallBlock(id="call_1", name="a", args={"x": 1}),
            ToolCallBlock(id="call_2", name="b", args={}),
        ]
        outbound = to_converse_messages([CanonicalMessage.assistant(blocks)]).messages[0]

        restored = converse_message_to_canonical(outbound)

        assert restored.content == blocks
        assert [tc.id for tc in restored.tool_calls or []] == ["call_1", "call_2"]

    def test_message_to_canonical_without_metadata(self) -> None:
        result = converse_message_to_canonical({"role": "assistant", "content": []})

        assert result.content == ""
        assert result.usage_metadata is None


# ---------------------------------------------------------------------------
# OpenRouter
# ---------------------------------------------------------------------------


class TestOpenRouterTranspiler:
    def setup_method(self) -> None:
        self.transpiler = OpenRouterTranspiler()

    def test_simple_round_trip(self) -> None:
        payload = self.transpiler.to_provider(_simple_history())

        assert payload["messages"] == [
            {"role": "system", "content": "You are helpful."},
            {"role": "user", "content": "Hello"},
            {"role": "assistant", "content": "Hi there!"},
        ]

    def test_tool_calls_and_results(self) -> None:
        messages = self.transpiler.to_provider(_parallel_tool_history())["messages"]

        assistant = messages[1]
        assert assistant["content"] == "I will check both cities."
        assert assistant["tool_calls"][0] == {
            "id": "call_1",
            "type": "function",
            "function": {"name": "get_weather", "arguments": json.dumps({"city": "SF"})},
        }
        assert messages[2] == {"role": "tool", "tool_call_id": "call_1", "content": "SF: 72°F"}
        assert messages[3]["tool_call_id"] == "call_2"

    def test_tagged_tool_result_keeps_output_and_guidance(self) -> None:
        history = ConversationHistory(messages=_handed_off_tagged_tool_history())

        messages = self.transpiler.to_provider(history)["messages"]

        assert messages[-1] == {
            "role": "tool",
            "tool_call_id": "call_1",
            "content": "72F\n\nSummarize the forecast.",
        }

    def test_assistant_reasoning_and_empty_text(self) -> None:
        history = ConversationHistory(
            messages=[
                CanonicalMessage.assistant(
                    [ReasoningBlock(text="plan"), ToolCallBlock(id="c1", name="f")]
                )
            ]
        )

        message = self.transpiler.to_provider(history)["messages"][0]

        assert message["content"] is None
        assert message["reasoning"] == "plan"
        assert message["tool_calls"][0]["id"] == "c1"

    def test_from_provider_text(self) -> None:
        result = self.transpiler.from_provider(
            {
                "id": "gen-1",
                "model": "anthropic/claude-sonnet-4",
                "choices": [
                    {"message": {"role": "assistant", "content": "Hi"}, "finish_reason": "stop"}
                ],
                "usage": {"prompt_tokens": 10, "completion_tokens": 2, "total_tokens": 12},
            }
        )

        assert result.content == "Hi"
        assert result.response_metadata == {
            "finish_reason": "stop",
            "model": "anthropic/claude-sonnet-4",
            "id": "gen-1",
        }
        assert result.usage_metadata is not None
        assert result.usage_metadata.total_tokens == 12

    def test_from_provider_reasoning(self) -> None:
        result = self.transpiler.from_provider(
            {
                "choices": [
                    {
                        "message": {"content": "4", "reasoning": "2+2"},
                        "finish_reason": "stop",
                    }
                ]
            }
        )

        assert result.content == [ReasoningBlock(text="2+2"), TextBlock(text="4")]
        assert result.usage_metadata is None

    def test_from_provider_tool_calls(self) -> None:
        result = self.transpiler.from_provider(
            {
                "choices": [
                    {
                        "message": {
                            "content": None,
                            "tool_calls": [
                                {
                                    "id": "call-1",
                                    "type": "function",
                                    "function": {
                                        "name": "calculator",
                                        "arguments": '{"expression": "2+2"}',
                                    },
                                }
                            ],
                        },
                        "finish_reason": "tool_calls",
                    }
                ],
                "usage": {
                    "prompt_tokens": 100,
                    "completion_tokens": 5,
                    "prompt_tokens_details": {"cached_tokens": 90},
                },
            }
        )

        assert result.text == ""
        assert result.tool_calls == [
            ToolCall(id="call-1", name="calculator", args={"expression": "2+2"})
        ]
        assert result.usage_metadata is not None
        assert result.usage_metadata.input_token_details == InputTokenDetails(cache_read=90)

    def test_from_provider_no_choices(self) -> None:
        with pytest.raises(ProviderResponseError):
            self.transpiler.from_provider({"choices": []})

    def test_parse_arguments(self) -> None:
        assert parse_arguments('{"a": 1}') == {"a": 1}
        assert parse_arguments("not json") == {"raw": "not json"}
        assert parse_arguments("[1, 2]") == {"raw": "[1, 2]"}


# ---------------------------------------------------------------------------
# Anthropic
# ---------------------------------------------------------------------------


class TestAnthropicTranspiler:
    def setup_method(self) -> None:
        self.transpiler = AnthropicTranspiler()

    def test_system_extracted(self) -> None:
        payload = self.transpiler.to_provider(_simple_history())

        assert payload["system"] == "You are helpful."
        assert payload["messages"] == [
            {"role": "user", "content": "Hello"},
            {"role": "assistant", "content": [{"type": "text", "text": "Hi there!"}]},
        ]

    def test_consecutive_tool_results_merged(self) -> None:
        messages = self.transpiler.to_provider(_parallel_tool_history())["messages"]

        assert len(messages) == 3
        assert messages[2]["role"] == "user"
        assert [b["tool_use_id"] for b in messages[2]["content"]] == ["call_1", "call_2"]

    def test_tagged_tool_result_keeps_output_and_guidance(self) -> None:
        history = ConversationHistory(messages=_handed_off_tagged_tool_history())

        messages = self.transpiler.to_provider(history)["messages"]

        assert messages[-1]["content"][0]["content"] == "72F\n\nSummarize the forecast."

    def test_thinking_block(self) -> None:
        history = ConversationHistory(
            messages=[CanonicalMessage.assistant([ReasoningBlock(text="t", signature="s")])]
        )

        content = self.transpiler.to_provider(history)["messages"][0]["content"]

        assert content == [{"type": "thinking", "thinking": "t", "signature": "s"}]

    def test_from_provider(self) -> None:
        result = self.transpiler.from_provider(
            {
                "content": [
                    {"type": "thinking", "thinking": "hmm", "signature": "sig"},
                    {"type": "text", "text": "Using a tool."},
                    {"type": "tool_use", "id": "tu_1", "name": "search", "input": {"q": "x"}},
                ],
                "stop_reason": "tool_use",
                "usage": {
                    "input_tokens": 5,
                    "output_tokens": 7,
                    "cache_read_input_tokens": 100,
                },
            }
        )

        assert isinstance(result.content, list)
        assert result.content[0] == ReasoningBlock(text="hmm", signature="sig")
        assert result.tool_calls == [ToolCall(id="tu_1", name="search", args={"q": "x"})]
        assert result.response_metadata == {"stop_reason": "tool_use"}
        assert result.usage_metadata is not None
        assert result.usage_metadata.input_tokens == 105
        assert result.usage_metadata.input_token_details == InputTokenDetails(cache_read=100)

    def test_from_provider_single_text(self) -> None:
        result = self.transpiler.from_provider(
            {"content": [{"type": "text", "text": "Hi"}], "stop_reason": "end_turn"}
        )

        assert result.content == "Hi"
        assert result.usage_metadata is None

    def test_from_provider_missing_content(self) -> None:
        with pytest.raises(ProviderResponseError):
            self.transpiler.from_provider({"stop_reason": "end_turn"})
