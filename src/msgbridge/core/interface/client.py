"""Provider lookup — transpilers and clients by provider name."""

from typing import Any

from msgbridge.core.interface.clients.converse import ConverseClient
from msgbridge.core.interface.clients.openrouter import OpenRouterClient
from msgbridge.core.interface.config import ModelConfig
from msgbridge.core.interface.transpiler import Transpiler
from msgbridge.core.interface.transpilers.anthropic import AnthropicTranspiler
from msgbridge.core.interface.transpilers.converse import ConverseTranspiler
from msgbridge.core.interface.transpilers.openrouter import OpenRouterTranspiler

ModelClient = ConverseClient | OpenRouterClient


def get_transpiler(provider: str) -> Transpiler:
    """Return the appropriate transpiler for a provider."""
    mapping: dict[str, Transpiler] = {
        "converse": ConverseTranspiler(),
        "bedrock": ConverseTranspiler(),
        "openrouter": OpenRouterTranspiler(),
        "openai": OpenRouterTranspiler(),
        "anthropic": AnthropicTranspiler(),
    }
    return mapping.get(provider, OpenRouterTranspiler())


def get_client(config: ModelConfig, **kwargs: Any) -> ModelClient:
    """Build the client for ``config.provider``; extra kwargs go to the Converse client."""
    if config.provider in ("converse", "bedrock"):
        return ConverseClient(config, **kwargs)
    return OpenRouterClient(config)
