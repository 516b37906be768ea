"""Prometheus metrics for the orchestration core.

All metric objects are module-level singletons registered on the default
``prometheus_client`` registry.
"""

from __future__ import annotations

import time
from collections.abc import Iterator
from contextlib import contextmanager

from prometheus_client import Counter, Histogram, generate_latest

LLM_CALLS_TOTAL = Counter(
    "pageplus_llm_calls_total",
    "Total model calls issued through a provider",
    ["provider", "call"],
)
TOOL_SELECTIONS_TOTAL = Counter(
    "pageplus_tool_selections_total",
    "Tool selections by resolved tool and the stage that produced it",
    ["tool", "stage"],
)
TOOL_EXECUTIONS_TOTAL = Counter(
    "pageplus_tool_executions_total",
    "Tool handler executions by outcome",
    ["tool", "outcome"],
)
TOOL_DURATION_SECONDS = Histogram(
    "pageplus_tool_duration_seconds",
    "Tool handler duration in seconds",
    ["tool"],
)
CONTEXT_SUMMARIES_TOTAL = Counter(
    "pageplus_context_summaries_total",
    "Context item summarizations by outcome",
    ["outcome"],
)

metrics_generate_latest = generate_latest


@contextmanager
def observe_tool_duration(tool: str) -> Iterator[None]:
    start = time.monotonic()
    try:
        yield
    finally:
        TOOL_DURATION_SECONDS.labels(tool=tool).observe(time.monotonic() - start)


__all__ = [
    "CONTEXT_SUMMARIES_TOTAL",
    "LLM_CALLS_TOTAL",
    "TOOL_DURATION_SECONDS",
    "TOOL_EXECUTIONS_TOTAL",
    "TOOL_SELECTIONS_TOTAL",
    "metrics_generate_latest",
    "observe_tool_duration",
]
