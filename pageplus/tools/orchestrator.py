from __future__ import annotations

import logging
from collections.abc import Sequence

from pageplus.core.telemetry import ATTR_TOOL, get_tracer
from pageplus.models.context import ContextItem
from pageplus.models.messages import ConversationMessage
from pageplus.models.tools import ToolId
from pageplus.protocols.providers import ChunkSink
from pageplus.tools.registry import FATAL_PROVIDER_ERRORS, ToolHandler, ToolRegistry
from pageplus.tools.selector import ToolSelector

logger = logging.getLogger(__name__)

_TRACER = get_tracer("pageplus.tools.orchestrator")


class QueryHandlerMissing(LookupError):
    """The registry cannot serve the ``query`` fallback."""


class ToolOrchestrator:
    """Entry point for a turn: select, resolve, execute, report the tool used.

    Selection or resolution failures degrade to ``query``. The only error
    that reaches the caller is one raised by the ``query`` fallback itself.
    """

    def __init__(self, selector: ToolSelector, registry: ToolRegistry) -> None:
        self._selector = selector
        self._registry = registry

    def _query_handler(self) -> ToolHandler:
        handler = self._registry.get(ToolId.query.value)
        if handler is None:
            raise QueryHandlerMissing("no handler registered for the query tool")
        return handler

    async def _resolve(
        self,
        query: str,
        context_items: Sequence[ContextItem],
        history: Sequence[ConversationMessage] | None,
    ) -> tuple[str, ToolHandler]:
        try:
            tool_id = await self._selector.select_tool(query, context_items, history)
            handler = self._registry.get(tool_id)
        except Exception:
            logger.exception("tool selection failed, falling back to query")
            return ToolId.query.value, self._query_handler()
        if handler is None:
            logger.warning("no handler registered for tool %r, falling back to query", tool_id)
            return ToolId.query.value, self._query_handler()
        return tool_id, handler

    async def execute_with_tools(
        self,
        query: str,
        context_items: Sequence[ContextItem],
        on_chunk: ChunkSink,
        history: Sequence[ConversationMessage] | None = None,
    ) -> str:
        with _TRACER.start_as_current_span("orchestrator.execute_with_tools") as span:
            tool_id, handler = await self._resolve(query, context_items, history)
            span.set_attribute(ATTR_TOOL, tool_id)
            logger.info("executing tool %s", tool_id)
            try:
                await handler(query, context_items, on_chunk, history)
            except FATAL_PROVIDER_ERRORS as exc:
                if tool_id == ToolId.query.value:
                    raise
                logger.warning("tool %s could not reach the provider (%s), retrying as query", tool_id, exc)
                await self._query_handler()(query, context_items, on_chunk, history)
                return ToolId.query.value
            return tool_id


__all__ = ["QueryHandlerMissing", "ToolOrchestrator"]
