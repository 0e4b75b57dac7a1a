"""OpenRouterClient — chat-completions models via LiteLLM, with reasoning config."""

from __future__ import annotations

import logging
from collections.abc import AsyncIterator, Sequence
from typing import Any

import litellm

from msgbridge.core.interface.config import CallOptions, ModelConfig
from msgbridge.core.interface.models import CanonicalMessage, ConversationHistory
from msgbridge.core.interface.transpilers.openrouter import OpenRouterTranspiler
from msgbridge.core.streaming.chunks import StreamChunk
from msgbridge.core.streaming.openrouter import ChatStreamProcessor
from msgbridge.utils.telemetry import (
    ATTR_CHUNK_COUNT,
    ATTR_MODEL,
    ATTR_PROVIDER,
    ATTR_STOP_REASON,
    ATTR_STREAMING,
    get_tracer,
    record_usage,
)

logger = logging.getLogger(__name__)
_tracer = get_tracer(__name__)


def resolve_reasoning(
    reasoning: dict[str, Any] | None,
    kwargs_reasoning: dict[str, Any] | None,
    include_reasoning: bool | None,
) -> dict[str, Any] | None:
    """Combine the reasoning sources into OpenRouter's ``reasoning`` object.

    Explicit reasoning wins key by key over ``model_kwargs["reasoning"]``;
    the legacy ``include_reasoning`` flag only applies when neither is set.
    """
    if reasoning or kwargs_reasoning:
        return {**(kwargs_reasoning or {}), **(reasoning or {})}
    if include_reasoning:
        return {"enabled": True}
    return None


class OpenRouterClient:
    """Async client for chat-completions providers, routed through LiteLLM.

    Usage::

        config = ModelConfig(model="openrouter/anthropic/claude-sonnet-4", reasoning={"effort": "high"})
        client = OpenRouterClient(config)
        response = await client.generate(history)
    """

    provider = "openrouter"

    def __init__(self, config: ModelConfig) -> None:
        self.config = config
        self.transpiler = OpenRouterTranspiler()

    def invocation_params(self, options: CallOptions | None = None) -> dict[str, Any]:
        options = options or CallOptions()
        model_kwargs = dict(self.config.model_kwargs)
        kwargs_reasoning = model_kwargs.pop("reasoning", None)

        params: dict[str, Any] = {"model": self.config.model, **model_kwargs}
        if self.config.temperature is not None:
            params["temperature"] = self.config.temperature
        if self.config.max_tokens is not None:
            params["max_tokens"] = self.config.max_tokens
        if self.config.top_p is not None:
            params["top_p"] = self.config.top_p
        stop = options.stop if options.stop is not None else self.config.stop_sequences
        if stop:
            params["stop"] = stop

        reasoning = resolve_reasoning(
            options.reasoning or self.config.reasoning,
            kwargs_reasoning,
            self.config.include_reasoning,
        )
        if reasoning is not None:
            params["reasoning"] = reasoning
        return params

    def _call_kwargs(
        self,
        messages: ConversationHistory | Sequence[CanonicalMessage],
        options: CallOptions | None,
    ) -> dict[str, Any]:
        history = (
            messages if isinstance(messages, ConversationHistory)
            else ConversationHistory(messages=list(messages))
        )
        params = self.invocation_params(options)
        reasoning = params.pop("reasoning", None)
        call_kwargs: dict[str, Any] = {**params, **self.transpiler.to_provider(history)}
        if reasoning is not None:
            # LiteLLM forwards unknown request fields through extra_body.
            call_kwargs["extra_body"] = {"reasoning": reasoning}
        if self.config.api_key:
            call_kwargs["api_key"] = self.config.api_key
        if self.config.api_base:
            call_kwargs["api_base"] = self.config.api_base
        return call_kwargs

    async def generate(
        self,
        messages: ConversationHistory | Sequence[CanonicalMessage],
        options: CallOptions | None = None,
    ) -> CanonicalMessage:
        call_kwargs = self._call_kwargs(messages, options)
        with _tracer.start_as_current_span("model.generate") as span:
            span.set_attribute(ATTR_MODEL, self.config.model)
            span.set_attribute(ATTR_PROVIDER, self.provider)
            span.set_attribute(ATTR_STREAMING, False)

            response = await litellm.acompletion(**call_kwargs)  # pyright: ignore[reportUnknownMemberType]
            result = self.transpiler.from_provider(_as_dict(response))

            record_usage(span, result.usage_metadata)
            finish_reason = result.response_metadata.get("finish_reason")
            if finish_reason is not None:
                span.set_attribute(ATTR_STOP_REASON, str(finish_reason))
            return result

    async def stream(
        self,
        messages: ConversationHistory | Sequence[CanonicalMessage],
        options: CallOptions | None = None,
    ) -> AsyncIterator[StreamChunk]:
        stream_usage = self.config.stream_usage
        if options is not None and options.stream_usage is not None:
            stream_usage = options.stream_usage

        call_kwargs = self._call_kwargs(messages, options)
        call_kwargs["stream"] = True
        if stream_usage:
            call_kwargs["stream_options"] = {"include_usage": True}
        processor = ChatStreamProcessor(stream_usage=stream_usage)

        with _tracer.start_as_current_span("model.stream") as span:
            span.set_attribute(ATTR_MODEL, self.config.model)
            span.set_attribute(ATTR_PROVIDER, self.provider)
            span.set_attribute(ATTR_STREAMING, True)

            response = await litellm.acompletion(**call_kwargs)  # pyright: ignore[reportUnknownMemberType]
            count = 0
            async for event in response:
                for chunk in processor.process(_as_dict(event)):
                    count += 1
                    record_usage(span, chunk.message.usage_metadata)
                    yield chunk

            span.set_attribute(ATTR_CHUNK_COUNT, count)
            logger.debug("Chat stream finished: %d chunks, blocks %r", count, processor.seen)


def _as_dict(response: Any) -> dict[str, Any]:
    """LiteLLM returns pydantic response objects; transpilers work on plain dicts."""
    if isinstance(response, dict):
        return response
    result: dict[str, Any] = response.model_dump()
    return result
