from __future__ import annotations

import uuid
from enum import StrEnum

from pydantic import BaseModel, Field


class ContextItemType(StrEnum):
    text = "text"
    page = "page"
    image = "image"


class CapturedElement(BaseModel):
    """DOM snippet captured alongside an area selection."""

    html: str
    css: str = ""
    selector: str = ""


class ContextItem(BaseModel):
    """Supplementary material attached to a conversation.

    ``content`` holds plain text for ``text`` items, extracted markdown for
    ``page`` items and a base64 data URL for ``image`` items. Items are never
    deleted once attached; removal flips ``is_active`` off.
    """

    id: str
    type: ContextItemType
    content: str = ""
    screenshot: str | None = None
    elements: list[CapturedElement] = Field(default_factory=list)
    colors: list[str] = Field(default_factory=list)
    url: str | None = None
    is_active: bool = True

    @classmethod
    def new(cls, type: ContextItemType | str, content: str = "", **fields: object) -> ContextItem:
        return cls(id=uuid.uuid4().hex, type=ContextItemType(type), content=content, **fields)

    @property
    def is_textual(self) -> bool:
        return self.type in (ContextItemType.text, ContextItemType.page)

    def image_payload(self) -> str | None:
        """Return the image data URL carried by this item, if any."""
        if self.type == ContextItemType.image and self.content:
            return self.content
        if self.screenshot:
            return self.screenshot
        return None

    def text_payload(self) -> str:
        """Text used for prompt assembly and quota estimates."""
        return self.content if self.is_textual else ""


def active_items(items: list[ContextItem]) -> list[ContextItem]:
    return [item for item in items if item.is_active]


__all__ = [
    "CapturedElement",
    "ContextItem",
    "ContextItemType",
    "active_items",
]
