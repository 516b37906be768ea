from __future__ import annotations

from collections.abc import Sequence

from pageplus.models.context import ContextItem
from pageplus.models.providers import AiModel, Availability
from pageplus.models.tools import AVAILABLE_TOOLS, TOOL_ALIASES, TOOL_IDS, Tool, ToolId
from pageplus.page.forms import has_input_markup


def has_input_elements(context_items: Sequence[ContextItem]) -> bool:
    return any(
        has_input_markup(element.html)
        for item in context_items
        for element in item.elements
    )


def filter_available_tools(
    context_items: Sequence[ContextItem],
    writer_availability: Availability | None = None,
    selected_model: AiModel | None = None,
    tools: Sequence[Tool] = AVAILABLE_TOOLS,
) -> list[Tool]:
    """Drop tools whose preconditions the current request cannot meet.

    ``fillForm`` needs captured input markup; ``writerNano`` needs a ready
    writer capability and the on-device model selected.
    """
    show_form = has_input_elements(context_items)
    show_writer = (
        writer_availability == Availability.available
        and selected_model is not None
        and selected_model.is_on_device
    )
    available: list[Tool] = []
    for tool in tools:
        if tool.function == ToolId.fill_form and not show_form:
            continue
        if tool.function == ToolId.writer_nano and not show_writer:
            continue
        available.append(tool)
    return available


__all__ = [
    "AVAILABLE_TOOLS",
    "TOOL_ALIASES",
    "TOOL_IDS",
    "filter_available_tools",
    "has_input_elements",
]
