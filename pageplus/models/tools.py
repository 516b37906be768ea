from __future__ import annotations

from enum import StrEnum

from pydantic import BaseModel, ConfigDict, Field


class Tool(BaseModel):
    """Static catalog entry offered to the tool-selection prompt."""

    model_config = ConfigDict(frozen=True)

    name: str
    description: str
    function: str


class ToolId(StrEnum):
    query = "query"
    fill_form = "fillForm"
    get_code_from_element = "getCodeFromElementOnPage"
    analyze_image_colors = "analyzeImageColors"
    summarize = "summarize"
    summarizer_nano = "summarizerNano"
    writer_nano = "writerNano"
    get_page_images = "getPageImages"


AVAILABLE_TOOLS: tuple[Tool, ...] = (
    Tool(name="Query", description="get an answer to a question about the context", function=ToolId.query.value),
    Tool(name="Fill Form", description="fill out a form with the given data", function=ToolId.fill_form.value),
    Tool(
        name="Get Code From Element On Page",
        description="get the code for an element on the page",
        function=ToolId.get_code_from_element.value,
    ),
    Tool(
        name="Analyze Image Colors",
        description="analyze the colors in the image",
        function=ToolId.analyze_image_colors.value,
    ),
    Tool(name="Summarize", description="summarize the context", function=ToolId.summarize.value),
    Tool(
        name="Summarizer (Gemini Nano)",
        description="on-device summarizer (streaming)",
        function=ToolId.summarizer_nano.value,
    ),
    Tool(
        name="Writer (Gemini Nano)",
        description="on-device writer for drafting new text (streaming)",
        function=ToolId.writer_nano.value,
    ),
    Tool(
        name="Get Page Images",
        description="extract all images from the current page",
        function=ToolId.get_page_images.value,
    ),
)

TOOL_IDS: frozenset[str] = frozenset(tool.value for tool in ToolId)

# Lower-cased spellings models tend to emit, mapped back to canonical ids.
TOOL_ALIASES: dict[str, str] = {tool.value.lower(): tool.value for tool in ToolId}


class _PageResponse(BaseModel):
    model_config = ConfigDict(populate_by_name=True, extra="ignore")


class PageImage(_PageResponse):
    blob_url: str = Field(alias="blobUrl")
    original_src: str = Field(default="", alias="originalSrc")
    alt: str = ""
    width: int = 0
    height: int = 0


class PageImagesResponse(_PageResponse):
    success: bool
    image_count: int = Field(default=0, alias="imageCount")
    images: list[PageImage] = Field(default_factory=list)
    message: str | None = None
    error: str | None = None


class FormElement(_PageResponse):
    tag: str
    type: str = ""
    name: str = ""
    id: str = ""
    placeholder: str = ""
    label: str = ""
    selector: str
    required: bool = False


class FormElementsResponse(_PageResponse):
    success: bool
    element_count: int = Field(default=0, alias="elementCount")
    elements: list[FormElement] = Field(default_factory=list)
    error: str | None = None


class FormFillResponse(_PageResponse):
    success: bool
    filled_count: int = Field(default=0, alias="filledCount")
    message: str = ""
    error: str | None = None


class ScreenshotResponse(_PageResponse):
    screenshot_data: str | None = Field(default=None, alias="screenshotData")
    error: str | None = None


__all__ = [
    "AVAILABLE_TOOLS",
    "FormElement",
    "FormElementsResponse",
    "FormFillResponse",
    "PageImage",
    "PageImagesResponse",
    "ScreenshotResponse",
    "TOOL_ALIASES",
    "TOOL_IDS",
    "Tool",
    "ToolId",
]
