"""Locate real form inputs inside captured element fragments.

A captured element is often a wrapping container rather than the input
itself, so the fragment is re-parsed and every ``<input>``/``<textarea>``
gets its own selector.
"""

from __future__ import annotations

import re
from dataclasses import dataclass

from bs4 import BeautifulSoup, Tag

INPUT_TAGS = ("input", "textarea")
_FALLBACK_ATTRIBUTES = ("data-testid", "data-cy", "aria-label")
_PLAIN_ID = re.compile(r"-?[A-Za-z_][\w-]*")


@dataclass(slots=True)
class ParsedInput:
    tag: str
    attrs: dict[str, str]
    html: str
    child_index: int
    has_parent: bool

    @property
    def input_type(self) -> str:
        if self.tag == "textarea":
            return "textarea"
        return self.attrs.get("type", "text").lower()


@dataclass(slots=True)
class ExtractedInput:
    selector: str
    html: str


def _attr_text(value: str | list[str]) -> str:
    # multi-valued attributes (class, rel) come back as lists
    return " ".join(value) if isinstance(value, list) else value


def _quoted(value: str) -> str:
    escaped = value.replace("\\", "\\\\").replace('"', '\\"').replace("\n", "\\a ")
    return f'"{escaped}"'


def _child_index(tag: Tag) -> int:
    return 1 + sum(1 for sibling in tag.previous_siblings if isinstance(sibling, Tag))


def parse_inputs(html: str) -> list[ParsedInput]:
    soup = BeautifulSoup(html, "html.parser")
    return [
        ParsedInput(
            tag=tag.name,
            attrs={name.lower(): _attr_text(value) for name, value in tag.attrs.items()},
            html=str(tag),
            child_index=_child_index(tag),
            has_parent=not isinstance(tag.parent, BeautifulSoup),
        )
        for tag in soup.find_all(INPUT_TAGS)
    ]


def has_input_markup(html: str) -> bool:
    lowered = html.lower()
    return "<input" in lowered or "<textarea" in lowered


def generate_selector(element: ParsedInput) -> str:
    """Build a CSS selector, preferring the most stable attribute."""
    tag = element.tag
    attrs = element.attrs
    element_id = attrs.get("id")
    if element_id:
        if _PLAIN_ID.fullmatch(element_id):
            return f"#{element_id}"
        return f"{tag}[id={_quoted(element_id)}]"
    for attribute in ("name", "placeholder", "type", *_FALLBACK_ATTRIBUTES):
        if attrs.get(attribute):
            return f"{tag}[{attribute}={_quoted(attrs[attribute])}]"
    if element.has_parent:
        return f"{tag}:nth-child({element.child_index})"
    return tag


def extract_input_selectors(html: str) -> list[ExtractedInput]:
    return [
        ExtractedInput(selector=generate_selector(element), html=element.html)
        for element in parse_inputs(html)
    ]


__all__ = [
    "ExtractedInput",
    "INPUT_TAGS",
    "ParsedInput",
    "extract_input_selectors",
    "generate_selector",
    "has_input_markup",
    "parse_inputs",
]
