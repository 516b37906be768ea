"""Page markup to bounded-length markdown used for ``page`` context items."""

from __future__ import annotations

import re
from dataclasses import dataclass
from typing import Literal
from urllib.parse import urljoin, urlsplit, urlunsplit

from bs4 import BeautifulSoup, NavigableString, PageElement, Tag
from bs4.element import PreformattedString

PAGE_MARKDOWN_LIMIT = 8000

SKIPPED_TAGS = frozenset({"style", "script", "noscript", "meta", "link", "header", "nav", "footer"})
_WHITESPACE_RUN = re.compile(r"\s{2,}")


@dataclass(frozen=True, slots=True)
class Segment:
    type: Literal["text", "link"]
    content: str = ""
    text: str = ""
    href: str = ""


def strip_query(href: str, origin: str | None = None) -> str:
    """Resolve ``href`` against ``origin`` and drop its query string."""
    resolved = urljoin(origin.rstrip("/") + "/", href) if origin else href
    parts = urlsplit(resolved)
    return urlunsplit((parts.scheme, parts.netloc, parts.path, "", parts.fragment))


def _collect(node: Tag, origin: str | None, segments: list[Segment]) -> None:
    child: PageElement
    for child in node.children:
        if isinstance(child, PreformattedString):
            # comments, doctypes, CDATA
            continue
        if isinstance(child, NavigableString):
            text = child.strip()
            if text:
                segments.append(Segment(type="text", content=text))
            continue
        if not isinstance(child, Tag) or child.name in SKIPPED_TAGS:
            continue
        href = child.get("href") if child.name == "a" else None
        if href:
            text = " ".join(child.get_text(" ").split())
            segments.append(Segment(type="link", text=text, href=strip_query(str(href), origin)))
            continue
        _collect(child, origin, segments)


def extract_structured_text_with_links(html: str, origin: str | None = None) -> list[Segment]:
    segments: list[Segment] = []
    _collect(BeautifulSoup(html, "html.parser"), origin, segments)
    return segments


def segments_to_markdown(segments: list[Segment], limit: int = PAGE_MARKDOWN_LIMIT) -> str:
    parts: list[str] = []
    for segment in segments:
        if segment.type == "link":
            parts.append(f"[{segment.text}]({segment.href})" if segment.text else segment.href)
        else:
            parts.append(segment.content)
    return _WHITESPACE_RUN.sub(" ", "\n".join(parts)).strip()[:limit]


def page_markdown(html: str, origin: str | None = None, limit: int = PAGE_MARKDOWN_LIMIT) -> str:
    return segments_to_markdown(extract_structured_text_with_links(html, origin), limit)


__all__ = [
    "PAGE_MARKDOWN_LIMIT",
    "SKIPPED_TAGS",
    "Segment",
    "extract_structured_text_with_links",
    "page_markdown",
    "segments_to_markdown",
    "strip_query",
]
