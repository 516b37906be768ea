"""Handlers that answer through the provider's streaming prompt."""

from __future__ import annotations

from collections.abc import Sequence

from pageplus.models.context import ContextItem
from pageplus.models.messages import ConversationMessage
from pageplus.protocols.providers import AiProvider, ChunkSink

SUMMARY_FRAMING = (
    "Summarize the provided context. Lead with a one-sentence overview, then list the key "
    "points as short bullets. Keep names, numbers and dates exact."
)
CODE_FRAMING = (
    "Using the captured elements in the context (their selectors, HTML and CSS), provide the "
    "code that reproduces the element the user is asking about. Return the HTML and CSS in "
    "fenced code blocks, followed by a brief explanation."
)


def frame_query(instruction: str, query: str) -> str:
    if not query.strip():
        return instruction
    return f"{instruction}\n\nUser request: {query}"


class QueryTool:
    def __init__(self, provider: AiProvider) -> None:
        self._provider = provider

    async def __call__(
        self,
        query: str,
        context_items: Sequence[ContextItem],
        on_chunk: ChunkSink,
        history: Sequence[ConversationMessage] | None = None,
    ) -> None:
        await self._provider.execute_prompt_streaming(query, context_items, on_chunk, history)


class _FramedQueryTool(QueryTool):
    instruction = ""

    async def __call__(
        self,
        query: str,
        context_items: Sequence[ContextItem],
        on_chunk: ChunkSink,
        history: Sequence[ConversationMessage] | None = None,
    ) -> None:
        await self._provider.execute_prompt_streaming(
            frame_query(self.instruction, query), context_items, on_chunk, history
        )


class SummarizeTool(_FramedQueryTool):
    instruction = SUMMARY_FRAMING


class CodeFromElementTool(_FramedQueryTool):
    instruction = CODE_FRAMING


__all__ = ["CodeFromElementTool", "QueryTool", "SummarizeTool", "frame_query"]
