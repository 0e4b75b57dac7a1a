"""ConverseClient — Bedrock Converse / ConverseStream behind the canonical interface.

The transport is a boto3 ``bedrock-runtime`` client (or anything with the
same ``converse`` / ``converse_stream`` methods). Calls run in a worker
thread so the public surface stays async.
"""

from __future__ import annotations

import asyncio
import logging
from collections.abc import AsyncIterator, Sequence
from typing import Any

from msgbridge.core.interface.config import CallOptions, ModelConfig
from msgbridge.core.interface.errors import ClientNotConfiguredError
from msgbridge.core.interface.models import CanonicalMessage, ConversationHistory
from msgbridge.core.interface.transpilers.converse import ConverseTranspiler
from msgbridge.core.streaming.chunks import StreamChunk
from msgbridge.core.streaming.converse import ConverseStreamProcessor
from msgbridge.utils.telemetry import (
    ATTR_CHUNK_COUNT,
    ATTR_MODEL,
    ATTR_PROVIDER,
    ATTR_SERVICE_TIER,
    ATTR_STOP_REASON,
    ATTR_STREAMING,
    get_tracer,
    record_usage,
)

logger = logging.getLogger(__name__)
_tracer = get_tracer(__name__)

_DONE = object()


class ConverseClient:
    """Async client for the Converse API.

    Usage::

        config = ModelConfig(model="anthropic.claude-3-haiku-20240307-v1:0", region="us-east-1")
        client = ConverseClient(config)
        message = await client.generate(history)
        async for chunk in client.stream(history):
            ...
    """

    provider = "converse"

    def __init__(self, config: ModelConfig, client: Any = None) -> None:
        self.config = config
        self.transpiler = ConverseTranspiler()
        self._client = client

    def _get_client(self) -> Any:
        """Return the injected transport, creating a boto3 client on first use."""
        if self._client is None:
            try:
                import boto3
            except ImportError as exc:
                raise ClientNotConfiguredError(
                    self.provider, hint="pip install msgbridge[bedrock]"
                ) from exc
            self._client = boto3.client("bedrock-runtime", region_name=self.config.region)
        return self._client

    @property
    def model_id(self) -> str:
        """An application inference profile, when set, is what gets invoked."""
        return self.config.application_inference_profile or self.config.model_name

    def invocation_params(self, options: CallOptions | None = None) -> dict[str, Any]:
        """Request parameters other than the messages themselves.

        Call options override the configured defaults field by field.
        """
        options = options or CallOptions()
        params: dict[str, Any] = {"modelId": self.model_id}

        inference: dict[str, Any] = {}
        if self.config.temperature is not None:
            inference["temperature"] = self.config.temperature
        if self.config.max_tokens is not None:
            inference["maxTokens"] = self.config.max_tokens
        if self.config.top_p is not None:
            inference["topP"] = self.config.top_p
        stop = options.stop if options.stop is not None else self.config.stop_sequences
        if stop:
            inference["stopSequences"] = stop
        if inference:
            params["inferenceConfig"] = inference

        service_tier = options.service_tier or self.config.service_tier
        if service_tier is not None:
            params["serviceTier"] = {"type": service_tier}

        if self.config.model_kwargs:
            params["additionalModelRequestFields"] = dict(self.config.model_kwargs)
        return params

    def build_request(
        self,
        messages: ConversationHistory | Sequence[CanonicalMessage],
        options: CallOptions | None = None,
    ) -> dict[str, Any]:
        history = _as_history(messages)
        return {**self.invocation_params(options), **self.transpiler.to_provider(history)}

    def _stream_usage(self, options: CallOptions | None) -> bool:
        if options is not None and options.stream_usage is not None:
            return options.stream_usage
        return self.config.stream_usage

    async def generate(
        self,
        messages: ConversationHistory | Sequence[CanonicalMessage],
        options: CallOptions | None = None,
    ) -> CanonicalMessage:
        """Send one Converse request and return the assistant message."""
        request = self.build_request(messages, options)
        with _tracer.start_as_current_span("model.generate") as span:
            span.set_attribute(ATTR_MODEL, request["modelId"])
            span.set_attribute(ATTR_PROVIDER, self.provider)
            span.set_attribute(ATTR_STREAMING, False)
            if "serviceTier" in request:
                span.set_attribute(ATTR_SERVICE_TIER, request["serviceTier"]["type"])

            response = await asyncio.to_thread(self._get_client().converse, **request)
            result = self.transpiler.from_provider(response)

            record_usage(span, result.usage_metadata)
            stop_reason = result.response_metadata.get("stopReason")
            if stop_reason is not None:
                span.set_attribute(ATTR_STOP_REASON, str(stop_reason))
            return result

    async def stream(
        self,
        messages: ConversationHistory | Sequence[CanonicalMessage],
        options: CallOptions | None = None,
    ) -> AsyncIterator[StreamChunk]:
        """Stream canonical chunks; each call owns a fresh block-index set."""
        request = self.build_request(messages, options)
        processor = ConverseStreamProcessor(stream_usage=self._stream_usage(options))

        with _tracer.start_as_current_span("model.stream") as span:
            span.set_attribute(ATTR_MODEL, request["modelId"])
            span.set_attribute(ATTR_PROVIDER, self.provider)
            span.set_attribute(ATTR_STREAMING, True)

            response = await asyncio.to_thread(self._get_client().converse_stream, **request)
            events = iter(response.get("stream") or ())
            count = 0
            while True:
                event = await asyncio.to_thread(next, events, _DONE)
                if event is _DONE:
                    break
                chunk = processor.process(event)
                if chunk is None:
                    continue
                count += 1
                record_usage(span, chunk.message.usage_metadata)
                yield chunk

            span.set_attribute(ATTR_CHUNK_COUNT, count)
            logger.debug("Converse stream finished: %d chunks, blocks %r", count, processor.seen)


def _as_history(messages: ConversationHistory | Sequence[CanonicalMessage]) -> ConversationHistory:
    if isinstance(messages, ConversationHistory):
        return messages
    return ConversationHistory(messages=list(messages))
