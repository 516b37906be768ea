from __future__ import annotations

from pageplus.context.items import ContextItemNotFound, ContextSet
from pageplus.context.quota import QuotaMonitor, QuotaState, QuotaStatus
from pageplus.context.store import InMemoryContextStore
from pageplus.context.summarize import ContextSummarizer, SummaryReport

__all__ = [
    "ContextItemNotFound",
    "ContextSet",
    "ContextSummarizer",
    "InMemoryContextStore",
    "QuotaMonitor",
    "QuotaState",
    "QuotaStatus",
    "SummaryReport",
]
