"""Dispatch table from tool id to handler, plus the failure guard.

Every handler shares one streaming signature and reports failures as
chunks. Only provider errors that mean no model is reachable at all
escape the guard, so the orchestrator can decide what is fatal.
"""

from __future__ import annotations

import logging
from collections.abc import Awaitable, Callable, Iterator, Sequence
from dataclasses import dataclass, field

from pageplus.config import ToolsConfig
from pageplus.core.logging import tool_scope
from pageplus.core.metrics import TOOL_EXECUTIONS_TOTAL, observe_tool_duration
from pageplus.core.telemetry import get_tracer
from pageplus.models.context import ContextItem
from pageplus.models.messages import ConversationMessage
from pageplus.models.tools import ToolId
from pageplus.protocols.page import PageBridge
from pageplus.protocols.providers import AiProvider, ChunkSink
from pageplus.providers.capabilities import Summarizer, Writer
from pageplus.providers.errors import ProviderUnavailable, SessionNotInitialized
from pageplus.tools.leases import LeaseManager

logger = logging.getLogger(__name__)

_TRACER = get_tracer("pageplus.tools")

ToolHandler = Callable[
    [str, Sequence[ContextItem], ChunkSink, Sequence[ConversationMessage] | None],
    Awaitable[None],
]

FATAL_PROVIDER_ERRORS: tuple[type[Exception], ...] = (ProviderUnavailable, SessionNotInitialized)


@dataclass(slots=True)
class ToolDependencies:
    provider: AiProvider
    page: PageBridge | None = None
    summarizer: Summarizer | None = None
    writer: Writer | None = None
    leases: LeaseManager | None = None
    config: ToolsConfig = field(default_factory=ToolsConfig)


def error_chunk(message: str) -> str:
    return f"\n❌ Error: {message}\n"


def guarded(name: str, handler: ToolHandler) -> ToolHandler:
    async def run(
        query: str,
        context_items: Sequence[ContextItem],
        on_chunk: ChunkSink,
        history: Sequence[ConversationMessage] | None = None,
    ) -> None:
        with tool_scope(name), observe_tool_duration(name):
            with _TRACER.start_as_current_span(f"tool.{name}"):
                try:
                    await handler(query, context_items, on_chunk, history)
                except FATAL_PROVIDER_ERRORS:
                    TOOL_EXECUTIONS_TOTAL.labels(tool=name, outcome="fatal").inc()
                    raise
                except Exception as exc:
                    logger.exception("tool %s failed", name)
                    TOOL_EXECUTIONS_TOTAL.labels(tool=name, outcome="error").inc()
                    on_chunk(error_chunk(str(exc) or type(exc).__name__))
                    return
        TOOL_EXECUTIONS_TOTAL.labels(tool=name, outcome="ok").inc()

    run.__name__ = f"guarded_{name}"
    return run


class ToolRegistry:
    def __init__(self) -> None:
        self._handlers: dict[str, ToolHandler] = {}

    def register(self, name: str, handler: ToolHandler, *, guard: bool = True) -> None:
        if name in self._handlers:
            logger.info("replacing handler for tool %s", name)
        self._handlers[name] = guarded(name, handler) if guard else handler

    def get(self, name: str) -> ToolHandler | None:
        return self._handlers.get(name)

    def names(self) -> list[str]:
        return list(self._handlers)

    def __contains__(self, name: object) -> bool:
        return name in self._handlers

    def __iter__(self) -> Iterator[str]:
        return iter(self._handlers)

    def __len__(self) -> int:
        return len(self._handlers)


def build_tool_registry(deps: ToolDependencies) -> ToolRegistry:
    """Register a handler for every catalog tool."""
    from pageplus.tools.color_analysis import AnalyzeImageColorsTool
    from pageplus.tools.form_filling import FillFormTool
    from pageplus.tools.handlers import CodeFromElementTool, QueryTool, SummarizeTool
    from pageplus.tools.nano import SummarizerNanoTool, WriterNanoTool
    from pageplus.tools.page_images import GetPageImagesTool

    config = deps.config
    registry = ToolRegistry()
    registry.register(ToolId.query, QueryTool(deps.provider))
    registry.register(
        ToolId.fill_form,
        FillFormTool(deps.provider, deps.page, timeout_s=config.fill_form_timeout_s),
    )
    registry.register(ToolId.get_code_from_element, CodeFromElementTool(deps.provider))
    registry.register(
        ToolId.analyze_image_colors,
        AnalyzeImageColorsTool(
            deps.page,
            max_colors=config.max_colors,
            sample_budget=config.color_sample_budget,
            step=config.color_quantization,
            screenshot_timeout_s=config.screenshot_timeout_s,
        ),
    )
    registry.register(ToolId.summarize, SummarizeTool(deps.provider))
    registry.register(ToolId.summarizer_nano, SummarizerNanoTool(deps.summarizer))
    registry.register(ToolId.writer_nano, WriterNanoTool(deps.writer))
    registry.register(
        ToolId.get_page_images,
        GetPageImagesTool(
            deps.page,
            deps.leases,
            timeout_s=config.page_images_timeout_s,
            lease_s=config.download_lease_s,
        ),
    )
    return registry


__all__ = [
    "FATAL_PROVIDER_ERRORS",
    "ToolDependencies",
    "ToolHandler",
    "ToolRegistry",
    "build_tool_registry",
    "error_chunk",
    "guarded",
]
