"""Tracing for conversation turns, tool runs and model calls.

Every span started inside a turn is stamped with the conversation, turn
and tool tags, so one answer's tool selection, tool run and provider
requests group together in the trace backend.
"""

from __future__ import annotations

import logging

from opentelemetry import context as otel_context
from opentelemetry import trace
from opentelemetry.sdk.resources import Resource
from opentelemetry.sdk.trace import Span, SpanProcessor, TracerProvider
from opentelemetry.sdk.trace.export import BatchSpanProcessor

from pageplus.config import TelemetryConfig
from pageplus.core.logging import current_tags

logger = logging.getLogger(__name__)

SERVICE_NAME = "pageplus"

ATTR_CONVERSATION = "pageplus.conversation_id"
ATTR_TURN = "pageplus.turn_id"
ATTR_TOOL = "pageplus.tool"
ATTR_PROVIDER = "pageplus.provider"
ATTR_CALL = "pageplus.call"
ATTR_MODEL = "pageplus.model"

_TAG_ATTRIBUTES = {
    "conversation_id": ATTR_CONVERSATION,
    "turn_id": ATTR_TURN,
    "tool_name": ATTR_TOOL,
}

_tracer_provider: TracerProvider | None = None


class TurnTagSpanProcessor(SpanProcessor):
    def on_start(self, span: Span, parent_context: otel_context.Context | None = None) -> None:
        for name, value in current_tags().as_dict().items():
            if value is not None:
                span.set_attribute(_TAG_ATTRIBUTES[name], value)


def model_call_attributes(provider: str, call: str, model: str | None = None) -> dict[str, str]:
    attributes = {ATTR_PROVIDER: provider, ATTR_CALL: call}
    if model:
        attributes[ATTR_MODEL] = model
    return attributes


def init_tracing(config: TelemetryConfig) -> TracerProvider | None:
    """Install the SDK tracer provider, or return ``None`` when tracing is off.

    Module-level tracers come from the API proxy, so they pick up the
    provider whenever it is installed and stay no-ops otherwise.
    """
    global _tracer_provider  # noqa: PLW0603

    if not config.enabled:
        return None
    provider = TracerProvider(
        resource=Resource.create({"service.name": SERVICE_NAME, "deployment.environment": config.env})
    )
    provider.add_span_processor(TurnTagSpanProcessor())
    if config.endpoint:
        try:
            from opentelemetry.exporter.otlp.proto.grpc.trace_exporter import OTLPSpanExporter
        except ImportError:
            logger.warning("tracing endpoint %s ignored: install the otlp extra", config.endpoint)
        else:
            exporter = OTLPSpanExporter(endpoint=config.endpoint, insecure=True)
            provider.add_span_processor(BatchSpanProcessor(exporter))
            logger.info("exporting spans to %s (env=%s)", config.endpoint, config.env)
    trace.set_tracer_provider(provider)
    _tracer_provider = provider
    return provider


def get_tracer(name: str) -> trace.Tracer:
    return trace.get_tracer(name)


def shutdown_tracing() -> None:
    """Flush pending spans before the CLI exits."""
    global _tracer_provider  # noqa: PLW0603

    if _tracer_provider is not None:
        _tracer_provider.shutdown()
        _tracer_provider = None


__all__ = [
    "ATTR_CALL",
    "ATTR_CONVERSATION",
    "ATTR_MODEL",
    "ATTR_PROVIDER",
    "ATTR_TOOL",
    "ATTR_TURN",
    "TurnTagSpanProcessor",
    "get_tracer",
    "init_tracing",
    "model_call_attributes",
    "shutdown_tracing",
]
