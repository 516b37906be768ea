"""Shared test helpers."""

from __future__ import annotations

import asyncio
import base64
import inspect
import io
from collections.abc import Awaitable, Callable

from PIL import Image

from pageplus.models.context import CapturedElement, ContextItem, ContextItemType


async def wait_until(
    predicate: Callable[[], bool] | Callable[[], Awaitable[bool]],
    timeout: float = 3.0,
    interval: float = 0.01,
) -> None:
    """Poll a condition until it passes or timeout is reached.

    Supports both sync and async predicates.
    """
    loop = asyncio.get_running_loop()
    deadline = loop.time() + timeout
    while loop.time() < deadline:
        result = predicate()
        if inspect.isawaitable(result):
            result = await result
        if result:
            return
        await asyncio.sleep(interval)
    raise TimeoutError("Condition not met within timeout")


def png_bytes(
    color: tuple[int, int, int, int] = (255, 0, 0, 255),
    size: tuple[int, int] = (20, 20),
) -> bytes:
    buffer = io.BytesIO()
    Image.new("RGBA", size, color).save(buffer, format="PNG")
    return buffer.getvalue()


def split_png_bytes(
    top: tuple[int, int, int, int],
    bottom: tuple[int, int, int, int],
    size: tuple[int, int] = (20, 20),
) -> bytes:
    # bottom color fills the lower third
    width, height = size
    band = height // 3
    image = Image.new("RGBA", size, top)
    image.paste(Image.new("RGBA", (width, band), bottom), (0, height - band))
    buffer = io.BytesIO()
    image.save(buffer, format="PNG")
    return buffer.getvalue()


def data_url(payload: bytes, mime_type: str = "image/png") -> str:
    return f"data:{mime_type};base64,{base64.b64encode(payload).decode('ascii')}"


def text_item(content: str, **fields: object) -> ContextItem:
    return ContextItem.new(ContextItemType.text, content, **fields)


def page_item(content: str, **fields: object) -> ContextItem:
    return ContextItem.new(ContextItemType.page, content, **fields)


def image_item(data: str, *element_html: str, **fields: object) -> ContextItem:
    elements = [CapturedElement(html=html, selector="div.capture") for html in element_html]
    return ContextItem.new(ContextItemType.image, data, elements=elements, **fields)
