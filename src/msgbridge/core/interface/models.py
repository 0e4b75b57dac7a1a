"""Canonical message schema — the provider-agnostic conversation format.

Orchestration code only ever sees these types. Transpilers convert them
to and from each provider's wire shape, and the streaming layer emits
partial :class:`MessageChunk` objects that accumulate back into them.
"""

from __future__ import annotations

from typing import Annotated, Any, Literal, Union

from pydantic import BaseModel, ConfigDict, Discriminator, Field, Tag

# ---------------------------------------------------------------------------
# Content blocks — tagged variants
# ---------------------------------------------------------------------------


class TextBlock(BaseModel):
    """Plain text content."""

    type: Literal["text"] = "text"
    text: str
    index: int | None = None


class ToolCallBlock(BaseModel):
    """A complete tool invocation emitted by the assistant."""

    type: Literal["tool_call"] = "tool_call"
    id: str
    name: str
    args: dict[str, Any] = Field(default_factory=dict)
    index: int | None = None


class ToolCallChunkBlock(BaseModel):
    """A partial tool invocation; ``args`` is a fragment of a JSON document."""

    type: Literal["tool_call_chunk"] = "tool_call_chunk"
    id: str | None = None
    name: str | None = None
    args: str = ""
    index: int | None = None


class ToolResultBlock(BaseModel):
    """The output of a tool, keyed by the call that produced it."""

    type: Literal["tool_result"] = "tool_result"
    tool_call_id: str
    content: str | list[dict[str, Any]] = ""
    status: Literal["success", "error"] | None = None
    index: int | None = None


class ReasoningBlock(BaseModel):
    """Model reasoning ("thinking") text."""

    type: Literal["reasoning"] = "reasoning"
    text: str = ""
    signature: str | None = None
    index: int | None = None


class UnknownBlock(BaseModel):
    """Any block whose ``type`` tag is not recognised. Extra fields are kept."""

    model_config = ConfigDict(extra="allow")

    type: str
    index: int | None = None


_KNOWN_BLOCK_TYPES = frozenset(
    {"text", "tool_call", "tool_call_chunk", "tool_result", "reasoning"}
)


def _block_tag(value: Any) -> str:
    tag = value.get("type") if isinstance(value, dict) else getattr(value, "type", None)
    return tag if tag in _KNOWN_BLOCK_TYPES else "unknown"


def _result_payload_text(content: str | list[dict[str, Any]]) -> str:
    if isinstance(content, str):
        return content
    return "".join(item.get("text", "") for item in content if isinstance(item, dict))


ContentBlock = Annotated[
    Union[
        Annotated[TextBlock, Tag("text")],
        Annotated[ToolCallBlock, Tag("tool_call")],
        Annotated[ToolCallChunkBlock, Tag("tool_call_chunk")],
        Annotated[ToolResultBlock, Tag("tool_result")],
        Annotated[ReasoningBlock, Tag("reasoning")],
        Annotated[UnknownBlock, Tag("unknown")],
    ],
    Discriminator(_block_tag),
]

MessageContent = str | list[ContentBlock]


# ---------------------------------------------------------------------------
# Tool calls — flat-field representation
# ---------------------------------------------------------------------------


class ToolCall(BaseModel):
    """A tool invocation carried in the flat ``tool_calls`` field."""

    id: str
    name: str
    args: dict[str, Any] = Field(default_factory=dict)


# ---------------------------------------------------------------------------
# Usage accounting
# ---------------------------------------------------------------------------


class InputTokenDetails(BaseModel):
    """Prompt-cache split of the input token count."""

    cache_read: int = 0
    cache_creation: int = 0


class OutputTokenDetails(BaseModel):
    reasoning: int = 0


class UsageMetadata(BaseModel):
    """Token accounting for one model call.

    ``input_token_details`` is ``None`` when the provider reported no cache
    fields at all, which is different from reporting zero cache hits.
    """

    input_tokens: int = 0
    output_tokens: int = 0
    total_tokens: int = 0
    input_token_details: InputTokenDetails | None = None
    output_token_details: OutputTokenDetails | None = None

    def __add__(self, other: UsageMetadata) -> UsageMetadata:
        return UsageMetadata(
            input_tokens=self.input_tokens + other.input_tokens,
            output_tokens=self.output_tokens + other.output_tokens,
            total_tokens=self.total_tokens + other.total_tokens,
            input_token_details=_add_input_details(
                self.input_token_details, other.input_token_details
            ),
            output_token_details=_add_output_details(
                self.output_token_details, other.output_token_details
            ),
        )


def _add_input_details(
    left: InputTokenDetails | None, right: InputTokenDetails | None
) -> InputTokenDetails | None:
    if left is None or right is None:
        return left or right
    return InputTokenDetails(
        cache_read=left.cache_read + right.cache_read,
        cache_creation=left.cache_creation + right.cache_creation,
    )


def _add_output_details(
    left: OutputTokenDetails | None, right: OutputTokenDetails | None
) -> OutputTokenDetails | None:
    if left is None or right is None:
        return left or right
    return OutputTokenDetails(reasoning=left.reasoning + right.reasoning)


# ---------------------------------------------------------------------------
# Canonical Message
# ---------------------------------------------------------------------------


class CanonicalMessage(BaseModel):
    """A single conversation turn in the canonical format.

    Roles:
    - system: instruction/context messages
    - user: human input
    - assistant: model output (tool calls as ``tool_call`` blocks and/or ``tool_calls``)
    - tool: tool execution results (must include tool_call_id)

    ``content`` is either a plain string (the legacy, untagged form) or an
    ordered list of tagged content blocks.
    """

    role: Literal["system", "user", "assistant", "tool"]
    content: MessageContent = ""
    tool_calls: list[ToolCall] | None = None
    tool_call_id: str | None = None
    name: str | None = None
    response_metadata: dict[str, Any] = Field(default_factory=dict)
    usage_metadata: UsageMetadata | None = None

    @property
    def text(self) -> str:
        """Concatenated text of the message (string content or text blocks)."""
        if isinstance(self.content, str):
            return self.content
        return "".join(block.text for block in self.content if isinstance(block, TextBlock))

    @property
    def tool_text(self) -> str:
        """Text of a tool message: result payloads first, then plain text blocks."""
        if isinstance(self.content, str):
            return self.content
        parts: list[str] = []
        for block in self.content:
            if isinstance(block, ToolResultBlock):
                parts.append(_result_payload_text(block.content))
            elif isinstance(block, TextBlock):
                parts.append(block.text)
        return "\n\n".join(part for part in parts if part)

    @property
    def blocks(self) -> list[Any]:
        """Content as a block list; string content becomes one ``TextBlock``."""
        if isinstance(self.content, str):
            return [TextBlock(text=self.content)]
        return list(self.content)

    @classmethod
    def system(cls, text: str) -> CanonicalMessage:
        return cls(role="system", content=text)

    @classmethod
    def user(cls, content: MessageContent) -> CanonicalMessage:
        return cls(role="user", content=content)

    @classmethod
    def assistant(
        cls,
        content: MessageContent = "",
        tool_calls: list[ToolCall] | None = None,
        **response_metadata: Any,
    ) -> CanonicalMessage:
        return cls(
            role="assistant",
            content=content,
            tool_calls=tool_calls,
            response_metadata=response_metadata,
        )

    @classmethod
    def tool(cls, tool_call_id: str, content: MessageContent) -> CanonicalMessage:
        """Create a tool-result message."""
        return cls(role="tool", content=content, tool_call_id=tool_call_id)


# ---------------------------------------------------------------------------
# Conversation History — ordered container of messages
# ---------------------------------------------------------------------------


class ConversationHistory(BaseModel):
    """An ordered sequence of canonical messages forming a conversation."""

    messages: list[CanonicalMessage] = []

    def append(self, message: CanonicalMessage) -> None:
        """Append a message to the history."""
        self.messages.append(message)

    @property
    def system_messages(self) -> list[CanonicalMessage]:
        """Return all system messages."""
        return [m for m in self.messages if m.role == "system"]

    @property
    def non_system_messages(self) -> list[CanonicalMessage]:
        """Return all non-system messages (for providers that separate system prompts)."""
        return [m for m in self.messages if m.role != "system"]

    def __len__(self) -> int:
        return len(self.messages)

    def __iter__(self):  # type: ignore[override]
        return iter(self.messages)
