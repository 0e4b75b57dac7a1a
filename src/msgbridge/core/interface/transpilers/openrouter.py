"""OpenRouter transpiler — chat-completions messages (ChatML) plus reasoning."""

from __future__ import annotations

import json
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
from msgbridge.core.interface.usage import extract_chat_usage

logger = logging.getLogger(__name__)


class OpenRouterTranspiler:
    """Converts between the canonical schema and chat-completions payloads."""

    def to_provider(self, history: ConversationHistory) -> dict[str, Any]:
        """Return ``{"messages": [...]}``; tool results stay one message per call."""
        messages: list[dict[str, Any]] = []
        for msg in history:
            messages.extend(self._message_to_chat(msg))
        return {"messages": messages}

    def from_provider(self, response: dict[str, Any]) -> CanonicalMessage:
        """Convert a chat completion response to a CanonicalMessage."""
        choices = response.get("choices") or []
        if not choices or "message" not in choices[0]:
            raise ProviderResponseError("openrouter", "response has no choices[0].message")
        choice = choices[0]
        message = choice["message"]

        text = message.get("content") or ""
        reasoning = message.get("reasoning") or message.get("reasoning_content")
        content: str | list[Any] = text
        if reasoning:
            content = [ReasoningBlock(text=reasoning)]
            if text:
                content.append(TextBlock(text=text))

        tool_calls: list[ToolCall] | None = None
        if message.get("tool_calls"):
            tool_calls = [
                ToolCall(
                    id=tc["id"],
                    name=tc["function"]["name"],
                    args=parse_arguments(tc["function"].get("arguments", "{}")),
                )
                for tc in message["tool_calls"]
            ]

        metadata: dict[str, Any] = {"finish_reason": choice.get("finish_reason")}
        if response.get("model"):
            metadata["model"] = response["model"]
        if response.get("id"):
            metadata["id"] = response["id"]

        return CanonicalMessage(
            role="assistant",
            content=content,
            tool_calls=tool_calls,
            response_metadata=metadata,
            usage_metadata=extract_chat_usage(response.get("usage"), stream_usage=True),
        )

    def _message_to_chat(self, msg: CanonicalMessage) -> list[dict[str, Any]]:
        if msg.role == "tool":
            return [{"role": "tool", "tool_call_id": msg.tool_call_id, "content": msg.tool_text}]

        results = [b for b in msg.blocks if isinstance(b, ToolResultBlock)]
        if results:
            # Tagged tool results on a user turn: one tool message each.
            return [
                {
                    "role": "tool",
                    "tool_call_id": b.tool_call_id,
                    "content": _result_text(b.content),
                }
                for b in results
            ]

        result: dict[str, Any] = {"role": msg.role}
        if msg.role != "assistant":
            result["content"] = self._user_content(msg)
            return [result]

        result["content"] = msg.text or None
        reasoning = "".join(b.text for b in msg.blocks if isinstance(b, ReasoningBlock))
        if reasoning:
            result["reasoning"] = reasoning

        tool_calls = _collect_tool_calls(msg)
        if tool_calls:
            result["tool_calls"] = [
                {
                    "id": tc.id,
                    "type": "function",
                    "function": {"name": tc.name, "arguments": json.dumps(tc.args)},
                }
                for tc in tool_calls
            ]
        return [result]

    def _user_content(self, msg: CanonicalMessage) -> str | list[dict[str, Any]]:
        if isinstance(msg.content, str):
            return msg.content
        parts: list[dict[str, Any]] = []
        for block in msg.content:
            if isinstance(block, TextBlock):
                parts.append({"type": "text", "text": block.text})
            else:
                logger.warning("Dropping unsupported %r block from %s message", block.type, msg.role)
        if len(parts) == 1:
            return parts[0]["text"]
        return parts or msg.text


def _collect_tool_calls(msg: CanonicalMessage) -> list[ToolCall]:
    calls = [
        ToolCall(id=b.id, name=b.name, args=b.args)
        for b in msg.blocks
        if isinstance(b, ToolCallBlock)
    ]
    known = {tc.id for tc in calls}
    calls.extend(tc for tc in msg.tool_calls or [] if tc.id not in known)
    return calls


def _result_text(content: str | list[Any]) -> str:
    if isinstance(content, str):
        return content
    return "".join(item.get("text", "") for item in content if isinstance(item, dict))


def parse_arguments(raw: str) -> dict[str, Any]:
    """Parse JSON string tool arguments; unparseable input is kept under ``raw``."""
    try:
        result = json.loads(raw)
    except (json.JSONDecodeError, TypeError):
        return {"raw": raw}
    return result if isinstance(result, dict) else {"raw": raw}
