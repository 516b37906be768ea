"""Page boundary: markup parsing, image colors and renderer markers."""

from pageplus.page.colors import ColorSwatch, analyze_image_colors
from pageplus.page.content import extract_structured_text_with_links, page_markdown, segments_to_markdown
from pageplus.page.errors import PageBridgeError, PageBridgeTimeout
from pageplus.page.forms import ExtractedInput, extract_input_selectors, has_input_markup
from pageplus.page.markers import (
    COLOR_ANALYZER_MARKER,
    IMAGE_ZIP_MARKER,
    ZipDownloadMarker,
    format_color_marker,
)

__all__ = [
    "COLOR_ANALYZER_MARKER",
    "IMAGE_ZIP_MARKER",
    "ColorSwatch",
    "ExtractedInput",
    "PageBridgeError",
    "PageBridgeTimeout",
    "ZipDownloadMarker",
    "analyze_image_colors",
    "extract_input_selectors",
    "extract_structured_text_with_links",
    "format_color_marker",
    "has_input_markup",
    "page_markdown",
    "segments_to_markdown",
]
