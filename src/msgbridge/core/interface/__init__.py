"""Canonical message interface: models, configuration, usage extraction.

Clients live in :mod:`msgbridge.core.interface.clients` and are not
imported here, since they depend on the streaming package.
"""

from msgbridge.core.interface.config import CallOptions, ModelConfig, ServiceTier
from msgbridge.core.interface.errors import (
    BridgeError,
    ClientNotConfiguredError,
    ProviderResponseError,
)
from msgbridge.core.interface.models import (
    CanonicalMessage,
    ContentBlock,
    ConversationHistory,
    InputTokenDetails,
    OutputTokenDetails,
    ReasoningBlock,
    TextBlock,
    ToolCall,
    ToolCallBlock,
    ToolCallChunkBlock,
    ToolResultBlock,
    UnknownBlock,
    UsageMetadata,
)
from msgbridge.core.interface.transpiler import Transpiler
from msgbridge.core.interface.usage import (
    extract_anthropic_usage,
    extract_chat_usage,
    extract_converse_usage,
)

__all__ = [
    "BridgeError",
    "CallOptions",
    "CanonicalMessage",
    "ClientNotConfiguredError",
    "ContentBlock",
    "ConversationHistory",
    "InputTokenDetails",
    "ModelConfig",
    "OutputTokenDetails",
    "ProviderResponseError",
    "ReasoningBlock",
    "ServiceTier",
    "TextBlock",
    "ToolCall",
    "ToolCallBlock",
    "ToolCallChunkBlock",
    "ToolResultBlock",
    "Transpiler",
    "UnknownBlock",
    "UsageMetadata",
    "extract_anthropic_usage",
    "extract_chat_usage",
    "extract_converse_usage",
]
