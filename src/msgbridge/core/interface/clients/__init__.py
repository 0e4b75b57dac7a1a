"""Provider clients (thin transport glue around the transpilers and stream processors)."""

from msgbridge.core.interface.clients.converse import ConverseClient
from msgbridge.core.interface.clients.openrouter import OpenRouterClient, resolve_reasoning

__all__ = ["ConverseClient", "OpenRouterClient", "resolve_reasoning"]
