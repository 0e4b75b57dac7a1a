"""Model configuration — constructor-level defaults and per-call overrides."""

from typing import Any, Literal

from pydantic import BaseModel, Field

ServiceTier = Literal["priority", "default", "flex", "reserved"]

KNOWN_PROVIDERS = frozenset({"converse", "bedrock", "openrouter", "openai", "anthropic"})


class ModelConfig(BaseModel):
    """Configuration for a specific model/provider combination.

    ``model`` may carry a provider prefix (``converse/…``, ``openrouter/…``,
    ``anthropic/…``); without one the chat-completions provider is assumed.
    """

    model: str
    application_inference_profile: str | None = None
    region: str | None = None
    api_key: str | None = None
    api_base: str | None = None

    temperature: float | None = None
    max_tokens: int | None = None
    top_p: float | None = None
    stop_sequences: list[str] | None = None

    stream_usage: bool = True
    service_tier: ServiceTier | None = None

    reasoning: dict[str, Any] | None = None
    include_reasoning: bool | None = None
    model_kwargs: dict[str, Any] = Field(default_factory=lambda: dict[str, Any]())

    @property
    def provider(self) -> str:
        """Extract the provider prefix from the model string."""
        prefix = self.model.split("/", 1)[0]
        return prefix if prefix in KNOWN_PROVIDERS and "/" in self.model else "openrouter"

    @property
    def model_name(self) -> str:
        """The model identifier without a recognised provider prefix."""
        prefix, _, rest = self.model.partition("/")
        return rest if prefix in KNOWN_PROVIDERS and rest else self.model


class CallOptions(BaseModel):
    """Per-call overrides. ``None`` means "use the configured default"."""

    stop: list[str] | None = None
    stream_usage: bool | None = None
    service_tier: ServiceTier | None = None
    reasoning: dict[str, Any] | None = None
