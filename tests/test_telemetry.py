from __future__ import annotations

import pytest
from opentelemetry import trace
from opentelemetry.sdk.trace import TracerProvider
from opentelemetry.sdk.trace.export import SimpleSpanProcessor
from opentelemetry.sdk.trace.export.in_memory_span_exporter import InMemorySpanExporter

from pageplus.config import TelemetryConfig
from pageplus.core import telemetry
from pageplus.core.logging import tool_scope, turn_scope
from pageplus.core.telemetry import (
    ATTR_CALL,
    ATTR_CONVERSATION,
    ATTR_MODEL,
    ATTR_PROVIDER,
    ATTR_TOOL,
    ATTR_TURN,
    TurnTagSpanProcessor,
    init_tracing,
    model_call_attributes,
    shutdown_tracing,
)


@pytest.fixture
def exporter() -> InMemorySpanExporter:
    return InMemorySpanExporter()


@pytest.fixture
def tracer(exporter: InMemorySpanExporter) -> trace.Tracer:
    provider = TracerProvider()
    provider.add_span_processor(TurnTagSpanProcessor())
    provider.add_span_processor(SimpleSpanProcessor(exporter))
    return provider.get_tracer("test")


def test_spans_carry_turn_and_tool(tracer: trace.Tracer, exporter: InMemorySpanExporter) -> None:
    with turn_scope("conv-1", "turn-1"):
        with tracer.start_as_current_span("tool_selection"):
            pass
        with tool_scope("getPageImages"), tracer.start_as_current_span("tool.getPageImages"):
            pass

    selection, tool = exporter.get_finished_spans()
    assert selection.attributes[ATTR_CONVERSATION] == "conv-1"
    assert selection.attributes[ATTR_TURN] == "turn-1"
    assert ATTR_TOOL not in selection.attributes
    assert tool.attributes[ATTR_TOOL] == "getPageImages"


def test_span_outside_a_turn_is_untagged(tracer: trace.Tracer, exporter: InMemorySpanExporter) -> None:
    with tracer.start_as_current_span("context.summarize_item"):
        pass
    (span,) = exporter.get_finished_spans()
    assert ATTR_CONVERSATION not in span.attributes


def test_model_call_attributes_skip_missing_model() -> None:
    assert model_call_attributes("on-device", "prompt") == {ATTR_PROVIDER: "on-device", ATTR_CALL: "prompt"}
    assert model_call_attributes("cloud", "prompt", "gemini-2.5-pro")[ATTR_MODEL] == "gemini-2.5-pro"


def test_disabled_tracing_installs_nothing() -> None:
    assert init_tracing(TelemetryConfig(enabled=False, endpoint="collector:4317")) is None


def test_enabled_tracing_without_endpoint(monkeypatch: pytest.MonkeyPatch) -> None:
    installed: list[object] = []
    monkeypatch.setattr(trace, "set_tracer_provider", installed.append)

    provider = init_tracing(TelemetryConfig(enabled=True, env="test"))

    assert installed == [provider]
    assert provider.resource.attributes["service.name"] == "pageplus"
    assert provider.resource.attributes["deployment.environment"] == "test"
    shutdown_tracing()
    assert telemetry._tracer_provider is None
