"""Routes a query to one tool id.

The structured call is tried once; on any failure the free-form answer
is read through the parsing chain. The result is always a catalog id.
"""

from __future__ import annotations

import json
import logging
from collections.abc import Sequence

from pageplus.core.metrics import TOOL_SELECTIONS_TOTAL
from pageplus.core.telemetry import get_tracer
from pageplus.models.context import ContextItem
from pageplus.models.messages import ConversationMessage
from pageplus.models.providers import AiModel, ToolSelectionResponse
from pageplus.models.tools import Tool, ToolId
from pageplus.protocols.providers import AiProvider
from pageplus.providers.capabilities import Writer
from pageplus.providers.errors import StructuredOutputError
from pageplus.tools.catalog import filter_available_tools, has_input_elements
from pageplus.tools.parsing import parse_tool_selection, resolve_tool_name

logger = logging.getLogger(__name__)

_TRACER = get_tracer("pageplus.tools.selector")


def build_selection_prompt(query: str, tools: Sequence[Tool], context_items: Sequence[ContextItem]) -> str:
    tools_json = json.dumps([tool.model_dump() for tool in tools], indent=2, ensure_ascii=False)
    function_names = ", ".join(tool.function for tool in tools)
    inputs_note = (
        "Input elements found in context."
        if has_input_elements(context_items)
        else "No input elements found in context."
    )
    return (
        f"Available tools:\n{tools_json}\n\n"
        f'User query: "{query}"\n\n'
        f"Context items: {len(context_items)} items available\n"
        f"{inputs_note}\n\n"
        "Please select the most appropriate tool function name from the available options.\n"
        f"The function names are: {function_names}\n\n"
        "IMPORTANT: You must respond with ONLY the tool function name, not the full JSON object. "
        'For example, if you want to use the query tool, respond with just "query".'
    )


def validate_structured_selection(response: object, tools: Sequence[Tool]) -> str:
    """Return the offered tool id named by ``response`` or raise ``StructuredOutputError``."""
    if isinstance(response, ToolSelectionResponse):
        name: object = response.tool_name
    elif isinstance(response, dict):
        name = response.get("toolName")
    else:
        raise StructuredOutputError(f"invalid selection response: {response!r}")
    if not isinstance(name, str) or not name.strip():
        raise StructuredOutputError(f"missing or invalid toolName: {response!r}")
    resolved = resolve_tool_name(name, tools)
    if resolved is None:
        raise StructuredOutputError(f"toolName {name!r} is not an offered tool")
    return resolved


class ToolSelector:
    def __init__(
        self,
        provider: AiProvider,
        *,
        writer: Writer | None = None,
        selected_model: AiModel | None = None,
    ) -> None:
        self._provider = provider
        self._writer = writer
        self.selected_model = selected_model

    def available_tools(self, context_items: Sequence[ContextItem]) -> list[Tool]:
        writer_status = self._writer.availability.status if self._writer is not None else None
        return filter_available_tools(context_items, writer_status, self.selected_model)

    async def select_tool(
        self,
        query: str,
        context_items: Sequence[ContextItem],
        history: Sequence[ConversationMessage] | None = None,
    ) -> str:
        tools = self.available_tools(context_items)
        prompt = build_selection_prompt(query, tools, context_items)

        with _TRACER.start_as_current_span("tool_selection"):
            try:
                response = await self._provider.execute_tool_selection_structured(prompt, context_items, history)
                tool = validate_structured_selection(response, tools)
            except Exception as exc:
                logger.warning("structured tool selection failed, trying free-form: %s", exc)
            else:
                TOOL_SELECTIONS_TOTAL.labels(tool=tool, stage="structured").inc()
                return tool

            try:
                raw = await self._provider.execute_tool_selection(prompt, context_items, history)
            except Exception:
                logger.error("free-form tool selection failed, defaulting to query", exc_info=True)
                TOOL_SELECTIONS_TOTAL.labels(tool=ToolId.query.value, stage="default").inc()
                return ToolId.query.value

        parsed = parse_tool_selection(raw, tools)
        if parsed.stage == "default":
            logger.warning("could not parse tool name from %r, defaulting to query", raw[:200])
        TOOL_SELECTIONS_TOTAL.labels(tool=parsed.tool, stage=parsed.stage).inc()
        return parsed.tool


__all__ = ["ToolSelector", "build_selection_prompt", "validate_structured_selection"]
