"""OpenTelemetry tracing helpers for msgbridge.

Provides a thin wrapper around the OpenTelemetry API so the rest of the
codebase can call ``get_tracer()`` without caring whether the SDK is
installed.  When the SDK is *not* configured the API returns no-op
implementations.

Usage::

    from msgbridge.utils.telemetry import get_tracer

    _tracer = get_tracer(__name__)

    with _tracer.start_as_current_span("model.generate") as span:
        span.set_attribute(ATTR_MODEL, "anthropic.claude-3-haiku")

To activate real tracing, call :func:`configure_telemetry` once at startup
(requires the ``otel`` extra: ``pip install msgbridge[otel]``).
"""

from __future__ import annotations

from typing import TYPE_CHECKING, Any

from opentelemetry import trace

if TYPE_CHECKING:
    from msgbridge.core.interface.models import UsageMetadata

# ---------------------------------------------------------------------------
# Semantic attribute keys used throughout msgbridge instrumentation
# ---------------------------------------------------------------------------

ATTR_MODEL = "msgbridge.model"
ATTR_PROVIDER = "msgbridge.provider"
ATTR_SERVICE_TIER = "msgbridge.service_tier"
ATTR_STREAMING = "msgbridge.streaming"
ATTR_TOKENS_INPUT = "msgbridge.tokens.input"
ATTR_TOKENS_OUTPUT = "msgbridge.tokens.output"
ATTR_TOKENS_TOTAL = "msgbridge.tokens.total"
ATTR_TOKENS_CACHE_READ = "msgbridge.tokens.cache_read"
ATTR_TOKENS_CACHE_CREATION = "msgbridge.tokens.cache_creation"
ATTR_STOP_REASON = "msgbridge.stop_reason"
ATTR_CHUNK_COUNT = "msgbridge.stream.chunks"

_INSTRUMENTATION_NAME = "msgbridge"


def get_tracer(name: str | None = None) -> trace.Tracer:
    """Return a :class:`~opentelemetry.trace.Tracer` for *name*.

    If the OpenTelemetry SDK has not been configured the returned tracer
    is a no-op — all spans become no-ops with negligible overhead.
    """
    return trace.get_tracer(name or _INSTRUMENTATION_NAME)


def record_usage(span: trace.Span, usage: UsageMetadata | None) -> None:
    """Attach token counts to *span*; cache attributes only when reported."""
    if usage is None:
        return
    span.set_attribute(ATTR_TOKENS_INPUT, usage.input_tokens)
    span.set_attribute(ATTR_TOKENS_OUTPUT, usage.output_tokens)
    span.set_attribute(ATTR_TOKENS_TOTAL, usage.total_tokens)
    if usage.input_token_details is not None:
        span.set_attribute(ATTR_TOKENS_CACHE_READ, usage.input_token_details.cache_read)
        span.set_attribute(ATTR_TOKENS_CACHE_CREATION, usage.input_token_details.cache_creation)


def configure_telemetry(
    *,
    service_name: str = "msgbridge",
    export_to_console: bool = True,
    otlp_endpoint: str | None = None,
) -> None:
    """Configure OpenTelemetry tracing (requires ``msgbridge[otel]``).

    Parameters
    ----------
    service_name:
        The ``service.name`` resource attribute.
    export_to_console:
        If ``True``, export spans as JSON to stdout.
    otlp_endpoint:
        If set, export spans via OTLP/gRPC to this endpoint.

    Raises
    ------
    ImportError
        If the ``opentelemetry-sdk`` package is not installed.
    """
    try:
        from opentelemetry.sdk.resources import Resource  # pyright: ignore[reportMissingImports]
        from opentelemetry.sdk.trace import TracerProvider  # pyright: ignore[reportMissingImports]
        from opentelemetry.sdk.trace.export import BatchSpanProcessor, SimpleSpanProcessor  # pyright: ignore[reportMissingImports]
    except ImportError as exc:
        msg = (
            "opentelemetry-sdk is required for configure_telemetry(). "
            "Install it with: pip install msgbridge[otel]"
        )
        raise ImportError(msg) from exc

    resource = Resource.create({"service.name": service_name})
    provider = TracerProvider(resource=resource)

    if export_to_console:
        _add_console_exporter(provider, SimpleSpanProcessor)

    if otlp_endpoint:
        _add_otlp_exporter(provider, BatchSpanProcessor, otlp_endpoint)

    trace.set_tracer_provider(provider)


def _add_console_exporter(provider: Any, processor_cls: Any) -> None:
    """Attach the console exporter (JSON to stdout)."""
    from opentelemetry.sdk.trace.export import ConsoleSpanExporter  # pyright: ignore[reportMissingImports]

    provider.add_span_processor(processor_cls(ConsoleSpanExporter()))


def _add_otlp_exporter(provider: Any, processor_cls: Any, endpoint: str) -> None:
    """Attach the OTLP gRPC exporter."""
    try:
        from opentelemetry.exporter.otlp.proto.grpc.trace_exporter import OTLPSpanExporter  # pyright: ignore[reportMissingImports]
    except ImportError as exc:
        msg = (
            "opentelemetry-exporter-otlp is required for OTLP export. "
            "Install it with: pip install msgbridge[otel]"
        )
        raise ImportError(msg) from exc

    provider.add_span_processor(processor_cls(OTLPSpanExporter(endpoint=endpoint)))
