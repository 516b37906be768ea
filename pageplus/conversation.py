"""Per-conversation session lifecycle and turn execution.

Switching conversations or starting a new chat always destroys the
provider session before creating the next one, and bumps a generation
counter. A turn that was started under an older generation still runs to
completion on the provider side, but its answer is dropped.
"""

from __future__ import annotations

import asyncio
import logging
import uuid
from collections.abc import Coroutine, Sequence

from pageplus.config import ContextConfig
from pageplus.context.items import ContextSet
from pageplus.context.quota import QuotaMonitor
from pageplus.context.summarize import ContextSummarizer, SummaryReport
from pageplus.core.logging import turn_scope
from pageplus.models.context import ContextItem
from pageplus.models.messages import ConversationMessage, MessageSource
from pageplus.models.providers import QuotaUsage
from pageplus.models.tools import ToolId
from pageplus.protocols.context import ContextStore
from pageplus.protocols.providers import AiProvider, ChunkSink
from pageplus.providers.capabilities import Summarizer
from pageplus.providers.errors import ProviderError
from pageplus.tools.orchestrator import ToolOrchestrator
from pageplus.tools.registry import error_chunk

logger = logging.getLogger(__name__)


def new_conversation_id() -> str:
    return uuid.uuid4().hex


class ConversationController:
    def __init__(
        self,
        provider: AiProvider,
        orchestrator: ToolOrchestrator,
        store: ContextStore,
        *,
        summarizer: Summarizer | None = None,
        config: ContextConfig | None = None,
        conversation_id: str | None = None,
    ) -> None:
        self._provider = provider
        self._orchestrator = orchestrator
        self._store = store
        self._summarizer = summarizer
        self._config = config or ContextConfig()
        self._generation = 0
        self._background: set[asyncio.Task[object]] = set()
        self.conversation_id = conversation_id or new_conversation_id()
        self.messages: list[ConversationMessage] = []
        self.draft = ""
        self.context = ContextSet(self.conversation_id, store)
        self.context_summarizer = self._build_context_summarizer()
        self.quota = QuotaMonitor(
            self._compute_quota,
            debounce_s=self._config.quota_debounce_s,
            remediation=self.summarize_contexts,
        )

    @property
    def generation(self) -> int:
        return self._generation

    def _build_context_summarizer(self) -> ContextSummarizer | None:
        if self._summarizer is None:
            return None
        return ContextSummarizer(
            self.context,
            self._summarizer,
            auto_enabled=self._config.auto_summarize_enabled,
            auto_threshold=self._config.auto_summarize_threshold,
        )

    def _spawn(self, coro: Coroutine[object, object, object]) -> asyncio.Task[object]:
        task = asyncio.create_task(coro)
        self._background.add(task)
        task.add_done_callback(self._background.discard)
        return task

    async def _restart_session(self) -> None:
        self._generation += 1
        self._provider.destroy_session()
        await self._provider.initialize_session(self.messages)
        logger.info(
            "session ready for conversation %s (generation %d)",
            self.conversation_id,
            self._generation,
        )
        self.quota.request_recompute()

    async def start(self, history: Sequence[ConversationMessage] | None = None) -> None:
        self.messages = list(history or ())
        self.context = await ContextSet.load(self.conversation_id, self._store)
        self.context_summarizer = self._build_context_summarizer()
        await self._restart_session()

    async def switch_to(
        self,
        conversation_id: str,
        history: Sequence[ConversationMessage],
        items: Sequence[ContextItem] | None = None,
    ) -> None:
        self.conversation_id = conversation_id
        self.messages = list(history)
        if items is None:
            self.context = await ContextSet.load(conversation_id, self._store)
        else:
            self.context = ContextSet(conversation_id, self._store, list(items))
        self.context_summarizer = self._build_context_summarizer()
        await self._restart_session()

    async def new_chat(self) -> str:
        await self.switch_to(new_conversation_id(), [], [])
        return self.conversation_id

    def set_draft(self, query: str) -> None:
        self.draft = query
        self.quota.request_recompute()

    async def _compute_quota(self) -> QuotaUsage | None:
        if not self._provider.session.is_active:
            return None
        return await self._provider.calculate_quota_usage(self.context.active(), self.draft, self.messages)

    async def submit(self, query: str, on_chunk: ChunkSink | None = None) -> ConversationMessage | None:
        """Run one turn and return the AI message, or ``None`` if it went stale."""
        generation = self._generation
        turn_id = uuid.uuid4().hex
        with turn_scope(self.conversation_id, turn_id):
            active = self.context.active()
            context_ids = tuple(item.id for item in active)
            history = list(self.messages)
            self.messages.append(
                ConversationMessage(source=MessageSource.user, content=query, context_ids=context_ids)
            )
            chunks: list[str] = []

            def sink(chunk: str) -> None:
                if generation != self._generation:
                    return
                chunks.append(chunk)
                if on_chunk is not None:
                    on_chunk(chunk)

            try:
                tool_used = await self._orchestrator.execute_with_tools(query, active, sink, history)
            except ProviderError as exc:
                logger.error("turn failed: %s", exc)
                tool_used = ToolId.query.value
                sink(error_chunk(str(exc)))

            if generation != self._generation:
                logger.info("discarding stale response from generation %d", generation)
                return None
            reply = ConversationMessage(
                source=MessageSource.ai,
                content="".join(chunks),
                context_ids=context_ids,
                tool_used=tool_used,
            )
            self.messages.append(reply)
            self.draft = ""
        self.quota.request_recompute()
        return reply

    async def capture(self, item: ContextItem) -> asyncio.Task[object] | None:
        """Attach a captured item; returns the auto-summarize task if one started."""
        await self.context.add(item)
        self.quota.request_recompute()
        summarizer = self.context_summarizer
        if summarizer is None or not summarizer.should_auto_summarize(item):
            return None
        return self._spawn(self._auto_summarize(summarizer, item))

    async def _auto_summarize(self, summarizer: ContextSummarizer, item: ContextItem) -> bool:
        replaced = await summarizer.auto_summarize(item)
        if replaced and summarizer.context is self.context:
            self.quota.request_recompute()
        return replaced

    async def remove(self, item_id: str) -> ContextItem:
        item = await self.context.deactivate(item_id)
        self.quota.request_recompute()
        return item

    async def summarize_contexts(self) -> SummaryReport:
        if self.context_summarizer is None:
            raise ProviderError("no summarizer capability configured")
        return await self.context_summarizer.summarize_all()

    async def close(self) -> None:
        self.quota.cancel()
        for task in list(self._background):
            task.cancel()
        await asyncio.gather(*self._background, return_exceptions=True)
        self._provider.destroy_session()


__all__ = ["ConversationController", "new_conversation_id"]
