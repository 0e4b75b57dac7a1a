"""Transpiler protocol — converts between the canonical schema and provider formats.

Each provider (Converse, OpenRouter, Anthropic) has a concrete transpiler
that implements bidirectional conversion: canonical history -> provider
payload and provider response -> CanonicalMessage.
"""

from typing import Any, Protocol

from msgbridge.core.interface.models import CanonicalMessage, ConversationHistory


class Transpiler(Protocol):
    """Protocol for provider-specific message format transpilers."""

    def to_provider(self, history: ConversationHistory) -> dict[str, Any]:
        """Convert a canonical conversation history to a provider-specific payload.

        Returns the message-related part of a request. The exact structure
        depends on the provider.
        """
        ...

    def from_provider(self, response: dict[str, Any]) -> CanonicalMessage:
        """Convert a provider's raw response into a CanonicalMessage.

        Extracts content blocks, tool calls, usage and stop metadata from
        the provider's response format.
        """
        ...
