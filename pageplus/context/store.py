from __future__ import annotations

from pageplus.models.context import ContextItem
from pageplus.protocols.context import ContextStore


class InMemoryContextStore:
    """Process-local store keyed by conversation id."""

    def __init__(self) -> None:
        self._items: dict[str, list[ContextItem]] = {}
        self.save_count = 0

    async def load(self, conversation_id: str) -> list[ContextItem]:
        return [item.model_copy() for item in self._items.get(conversation_id, [])]

    async def save(self, conversation_id: str, items: list[ContextItem]) -> None:
        self._items[conversation_id] = [item.model_copy() for item in items]
        self.save_count += 1


__all__ = ["ContextStore", "InMemoryContextStore"]
