"""Handlers streaming straight from the on-device task capabilities."""

from __future__ import annotations

from collections.abc import Sequence

from pageplus.models.context import ContextItem
from pageplus.models.messages import ConversationMessage
from pageplus.models.providers import Availability
from pageplus.protocols.providers import ChunkSink
from pageplus.providers.capabilities import OnDeviceCapability, Summarizer, Writer

SUMMARIZER_UNAVAILABLE = (
    "Summarizer is not available on this device/browser. "
    "Ensure Gemini Nano mode and Summarizer are enabled.\n"
)
WRITER_UNAVAILABLE = (
    "Writer is not available on this device/browser. "
    "Ensure Gemini Nano mode and Writer are enabled.\n"
)
NO_TEXT_TO_SUMMARIZE = "No text found in context to summarize. Select text or capture the page first.\n"


def joined_text(context_items: Sequence[ContextItem]) -> str:
    return "\n\n".join(item.text_payload() for item in context_items if item.text_payload()).strip()


async def _is_ready(capability: OnDeviceCapability | None) -> bool:
    if capability is None:
        return False
    state = await capability.check_availability()
    return state.status == Availability.available


class SummarizerNanoTool:
    def __init__(self, summarizer: Summarizer | None) -> None:
        self._summarizer = summarizer

    async def __call__(
        self,
        query: str,
        context_items: Sequence[ContextItem],
        on_chunk: ChunkSink,
        history: Sequence[ConversationMessage] | None = None,
    ) -> None:
        if self._summarizer is None or not await _is_ready(self._summarizer):
            on_chunk(SUMMARIZER_UNAVAILABLE)
            return
        text = joined_text(context_items)
        if not text:
            on_chunk(NO_TEXT_TO_SUMMARIZE)
            return
        await self._summarizer.initialize()
        async for chunk in self._summarizer.summarize_streaming(text):
            on_chunk(chunk)


class WriterNanoTool:
    def __init__(self, writer: Writer | None) -> None:
        self._writer = writer

    async def __call__(
        self,
        query: str,
        context_items: Sequence[ContextItem],
        on_chunk: ChunkSink,
        history: Sequence[ConversationMessage] | None = None,
    ) -> None:
        if self._writer is None or not await _is_ready(self._writer):
            on_chunk(WRITER_UNAVAILABLE)
            return
        await self._writer.initialize()
        async for chunk in self._writer.write_streaming(query, joined_text(context_items) or None):
            on_chunk(chunk)


__all__ = ["SummarizerNanoTool", "WriterNanoTool", "joined_text"]
