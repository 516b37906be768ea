from __future__ import annotations

import asyncio
import logging
from collections.abc import Sequence

from pageplus.models.context import ContextItem, ContextItemType
from pageplus.models.messages import ConversationMessage
from pageplus.page.colors import analyze_image_colors
from pageplus.page.errors import PageBridgeError
from pageplus.page.markers import format_color_marker
from pageplus.protocols.page import PageBridge
from pageplus.protocols.providers import ChunkSink
from pageplus.providers.base import decode_data_url

logger = logging.getLogger(__name__)


def collect_images(context_items: Sequence[ContextItem]) -> list[tuple[str, str]]:
    """``(label, data_url)`` for image items and page screenshots."""
    images: list[tuple[str, str]] = []
    for index, item in enumerate(context_items, start=1):
        if item.type == ContextItemType.image and item.content:
            images.append((f"Context Image {index}", item.content))
        elif item.type == ContextItemType.page and item.screenshot:
            images.append((f"Page Screenshot {index}", item.screenshot))
    return images


class AnalyzeImageColorsTool:
    def __init__(
        self,
        page: PageBridge | None,
        *,
        max_colors: int = 6,
        sample_budget: int = 1000,
        step: int = 32,
        screenshot_timeout_s: float | None = None,
    ) -> None:
        self._page = page
        self._max_colors = max_colors
        self._sample_budget = sample_budget
        self._step = step
        self._screenshot_timeout_s = screenshot_timeout_s

    async def _capture_full_page(self, on_chunk: ChunkSink) -> list[tuple[str, str]]:
        on_chunk("\nNo images found in context. Taking full page screenshot...\n")
        if self._page is None:
            return []
        try:
            response = await asyncio.wait_for(self._page.capture_full_page(), timeout=self._screenshot_timeout_s)
        except TimeoutError:
            on_chunk("❌ Error: Screenshot capture timeout\n")
            return []
        except PageBridgeError as exc:
            on_chunk(f"❌ Error: {exc}\n")
            return []
        if response.error:
            on_chunk(f"❌ Error: {response.error}\n")
            return []
        if not response.screenshot_data:
            return []
        return [("Full Page Screenshot", response.screenshot_data)]

    def _analyze(self, data_url: str) -> list[tuple[str, str]]:
        payload, _ = decode_data_url(data_url)
        swatches = analyze_image_colors(
            payload,
            max_colors=self._max_colors,
            sample_budget=self._sample_budget,
            step=self._step,
        )
        return [swatch.as_pair() for swatch in swatches]

    async def __call__(
        self,
        query: str,
        context_items: Sequence[ContextItem],
        on_chunk: ChunkSink,
        history: Sequence[ConversationMessage] | None = None,
    ) -> None:
        images = collect_images(context_items)
        if not images:
            images = await self._capture_full_page(on_chunk)
        if not images:
            on_chunk("\nNo images available to analyze.\n")
            return

        for label, data_url in images:
            try:
                pairs = await asyncio.to_thread(self._analyze, data_url)
            except Exception as exc:
                logger.warning("color analysis failed for %s: %s", label, exc)
                on_chunk(f"Error analyzing {label}: {exc}\n")
                continue
            if not pairs:
                on_chunk("No colors could be analyzed from this image.\n")
            else:
                on_chunk(format_color_marker(pairs))


__all__ = ["AnalyzeImageColorsTool", "collect_images"]
