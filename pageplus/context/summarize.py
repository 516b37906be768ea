from __future__ import annotations

import logging
from collections.abc import Callable
from dataclasses import dataclass, field

from pageplus.context.items import ContextSet
from pageplus.core.metrics import CONTEXT_SUMMARIES_TOTAL
from pageplus.core.telemetry import get_tracer
from pageplus.models.context import ContextItem, ContextItemType
from pageplus.providers.capabilities import Summarizer

logger = logging.getLogger(__name__)

_TRACER = get_tracer("pageplus.context.summarize")

ProcessingListener = Callable[[str | None], None]


@dataclass(slots=True)
class SummaryReport:
    summarized: list[str] = field(default_factory=list)
    failed: list[str] = field(default_factory=list)
    skipped: list[str] = field(default_factory=list)


class ContextSummarizer:
    """Replaces text and page item content with on-device summaries.

    Items are processed one at a time. The id being summarized is exposed as
    ``processing_id`` for progress display and cleared after each item.
    """

    def __init__(
        self,
        context: ContextSet,
        summarizer: Summarizer,
        *,
        auto_enabled: bool = False,
        auto_threshold: int = 2000,
        on_processing: ProcessingListener | None = None,
    ) -> None:
        self.context = context
        self._summarizer = summarizer
        self.auto_enabled = auto_enabled
        self.auto_threshold = auto_threshold
        self._on_processing = on_processing
        self.processing_id: str | None = None

    def _set_processing(self, item_id: str | None) -> None:
        self.processing_id = item_id
        if self._on_processing is not None:
            self._on_processing(item_id)

    async def _summarize_item(self, item_id: str) -> bool | None:
        # None: nothing to do, True: replaced, False: failed
        current = self.context.get(item_id)
        if current is None or not current.is_active or not current.is_textual or not current.content:
            return None
        self._set_processing(item_id)
        try:
            with _TRACER.start_as_current_span("context.summarize_item"):
                summary = await self._summarizer.summarize(current.content)
            await self.context.replace_content(item_id, summary)
        except Exception as exc:
            logger.warning("failed to summarize context item %s: %s", item_id, exc)
            CONTEXT_SUMMARIES_TOTAL.labels(outcome="error").inc()
            return False
        finally:
            self._set_processing(None)
        CONTEXT_SUMMARIES_TOTAL.labels(outcome="ok").inc()
        return True

    async def summarize_all(self) -> SummaryReport:
        await self._summarizer.initialize()
        report = SummaryReport()
        targets = [item.id for item in self.context.summarizable()]
        logger.info("summarizing %d context items", len(targets))
        for item_id in targets:
            outcome = await self._summarize_item(item_id)
            if outcome is None:
                report.skipped.append(item_id)
            elif outcome:
                report.summarized.append(item_id)
            else:
                report.failed.append(item_id)
        return report

    def should_auto_summarize(self, item: ContextItem) -> bool:
        return (
            self.auto_enabled
            and item.type in (ContextItemType.text, ContextItemType.page)
            and len(item.content) > self.auto_threshold
        )

    async def auto_summarize(self, item: ContextItem) -> bool:
        if not self.should_auto_summarize(item):
            return False
        try:
            await self._summarizer.initialize()
        except Exception as exc:
            logger.warning("auto-summarize skipped for %s: %s", item.id, exc)
            CONTEXT_SUMMARIES_TOTAL.labels(outcome="error").inc()
            return False
        return bool(await self._summarize_item(item.id))


__all__ = ["ContextSummarizer", "ProcessingListener", "SummaryReport"]
