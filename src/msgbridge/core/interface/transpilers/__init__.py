"""Provider-specific transpiler implementations."""

from msgbridge.core.interface.transpilers.anthropic import AnthropicTranspiler
from msgbridge.core.interface.transpilers.converse import (
    ConverseMessages,
    ConverseTranspiler,
    converse_message_to_canonical,
    to_converse_messages,
)
from msgbridge.core.interface.transpilers.openrouter import OpenRouterTranspiler

__all__ = [
    "AnthropicTranspiler",
    "ConverseMessages",
    "ConverseTranspiler",
    "OpenRouterTranspiler",
    "converse_message_to_canonical",
    "to_converse_messages",
]
