from __future__ import annotations

from pageplus.models.context import CapturedElement, ContextItem, ContextItemType, active_items
from pageplus.models.messages import ConversationMessage, MessageSource, MessageStatus, utc_now
from pageplus.models.providers import (
    AiModel,
    Availability,
    AvailabilityState,
    FormFieldMapping,
    FormInputElement,
    QuotaUsage,
    ToolSelectionResponse,
)
from pageplus.models.tools import (
    AVAILABLE_TOOLS,
    TOOL_ALIASES,
    TOOL_IDS,
    FormElement,
    FormElementsResponse,
    FormFillResponse,
    PageImage,
    PageImagesResponse,
    ScreenshotResponse,
    Tool,
    ToolId,
)

__all__ = [
    "AVAILABLE_TOOLS",
    "TOOL_ALIASES",
    "TOOL_IDS",
    "AiModel",
    "Availability",
    "AvailabilityState",
    "CapturedElement",
    "ContextItem",
    "ContextItemType",
    "ConversationMessage",
    "FormElement",
    "FormElementsResponse",
    "FormFieldMapping",
    "FormFillResponse",
    "FormInputElement",
    "MessageSource",
    "MessageStatus",
    "PageImage",
    "PageImagesResponse",
    "QuotaUsage",
    "ScreenshotResponse",
    "Tool",
    "ToolId",
    "ToolSelectionResponse",
    "active_items",
    "utc_now",
]
