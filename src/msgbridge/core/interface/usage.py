"""Token-usage extraction from provider payloads.

Every extractor returns a :class:`UsageMetadata` or ``None``. Cache
details are only attached when the provider reported at least one cache
field: a missing pair means "no caching information", while a pair of
zeros means "caching was considered and nothing was hit or written".
"""

from __future__ import annotations

from collections.abc import Mapping
from typing import Any

from msgbridge.core.interface.models import (
    InputTokenDetails,
    OutputTokenDetails,
    UsageMetadata,
)


def extract_converse_usage(
    raw: Mapping[str, Any] | None, *, stream_usage: bool = True
) -> UsageMetadata | None:
    """Map a Converse ``usage`` block to canonical usage metadata.

    Returns ``None`` when *stream_usage* is off, whatever the payload holds.
    """
    if not stream_usage or raw is None:
        return None
    return UsageMetadata(
        input_tokens=_int(raw.get("inputTokens")),
        output_tokens=_int(raw.get("outputTokens")),
        total_tokens=_int(raw.get("totalTokens")),
        input_token_details=cache_details(
            raw.get("cacheReadInputTokens"), raw.get("cacheWriteInputTokens")
        ),
    )


def extract_chat_usage(
    raw: Mapping[str, Any] | None, *, stream_usage: bool = True
) -> UsageMetadata | None:
    """Map a chat-completions ``usage`` block (OpenAI/OpenRouter style)."""
    if not stream_usage or raw is None:
        return None
    prompt_details = raw.get("prompt_tokens_details") or {}
    completion_details = raw.get("completion_tokens_details") or {}

    input_tokens = _int(raw.get("prompt_tokens"))
    output_tokens = _int(raw.get("completion_tokens"))
    total = raw.get("total_tokens")

    reasoning = completion_details.get("reasoning_tokens")
    return UsageMetadata(
        input_tokens=input_tokens,
        output_tokens=output_tokens,
        total_tokens=_int(total) if total is not None else input_tokens + output_tokens,
        input_token_details=cache_details(
            prompt_details.get("cached_tokens"), prompt_details.get("cache_write_tokens")
        ),
        output_token_details=(
            OutputTokenDetails(reasoning=_int(reasoning)) if reasoning is not None else None
        ),
    )


def extract_anthropic_usage(raw: Mapping[str, Any] | None) -> UsageMetadata | None:
    """Map an Anthropic Messages API ``usage`` block.

    Anthropic reports cache tokens separately from ``input_tokens``; the
    canonical ``input_tokens`` is their sum.
    """
    if raw is None:
        return None
    cache_read = raw.get("cache_read_input_tokens")
    cache_creation = raw.get("cache_creation_input_tokens")
    input_tokens = _int(raw.get("input_tokens")) + _int(cache_read) + _int(cache_creation)
    output_tokens = _int(raw.get("output_tokens"))
    return UsageMetadata(
        input_tokens=input_tokens,
        output_tokens=output_tokens,
        total_tokens=input_tokens + output_tokens,
        input_token_details=cache_details(cache_read, cache_creation),
    )


def cache_details(read: Any, creation: Any) -> InputTokenDetails | None:
    """Build the cache pair, or ``None`` when neither side was reported."""
    if read is None and creation is None:
        return None
    return InputTokenDetails(cache_read=_int(read), cache_creation=_int(creation))


def _int(value: Any) -> int:
    return int(value) if value is not None else 0
