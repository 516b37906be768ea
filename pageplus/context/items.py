"""Latest-snapshot holder for one conversation's context items.

Every mutation builds the next list from the current one and persists it
before it becomes visible, so a failed save leaves memory and the store in
agreement and a late flow never writes back a stale copy.
"""

from __future__ import annotations

import asyncio
import logging

from pageplus.models.context import ContextItem, ContextItemType
from pageplus.protocols.context import ContextStore

logger = logging.getLogger(__name__)


class ContextItemNotFound(KeyError):
    pass


class ContextSet:
    def __init__(
        self,
        conversation_id: str,
        store: ContextStore,
        items: list[ContextItem] | None = None,
    ) -> None:
        self.conversation_id = conversation_id
        self._store = store
        self._items: list[ContextItem] = list(items or [])
        self._lock = asyncio.Lock()

    @classmethod
    async def load(cls, conversation_id: str, store: ContextStore) -> ContextSet:
        return cls(conversation_id, store, await store.load(conversation_id))

    def snapshot(self) -> list[ContextItem]:
        return [item.model_copy() for item in self._items]

    def active(self) -> list[ContextItem]:
        return [item.model_copy() for item in self._items if item.is_active]

    def active_ids(self) -> tuple[str, ...]:
        return tuple(item.id for item in self._items if item.is_active)

    def get(self, item_id: str) -> ContextItem | None:
        for item in self._items:
            if item.id == item_id:
                return item.model_copy()
        return None

    def __len__(self) -> int:
        return len(self._items)

    def _index(self, item_id: str) -> int:
        for index, item in enumerate(self._items):
            if item.id == item_id:
                return index
        raise ContextItemNotFound(item_id)

    async def _commit(self, items: list[ContextItem]) -> None:
        await self._store.save(self.conversation_id, [item.model_copy() for item in items])
        self._items = items

    async def add(self, item: ContextItem) -> ContextItem:
        async with self._lock:
            if any(existing.id == item.id for existing in self._items):
                raise ValueError(f"context item {item.id} already attached")
            await self._commit([*self._items, item.model_copy()])
        logger.debug("attached %s context item %s", item.type, item.id)
        return item

    async def deactivate(self, item_id: str) -> ContextItem:
        async with self._lock:
            index = self._index(item_id)
            updated = self._items[index].model_copy(update={"is_active": False})
            items = list(self._items)
            items[index] = updated
            await self._commit(items)
        return updated.model_copy()

    async def replace_content(self, item_id: str, content: str) -> ContextItem:
        async with self._lock:
            index = self._index(item_id)
            updated = self._items[index].model_copy(update={"content": content})
            items = list(self._items)
            items[index] = updated
            await self._commit(items)
        return updated.model_copy()

    def summarizable(self) -> list[ContextItem]:
        """Active text and page items, in attachment order."""
        return [
            item.model_copy()
            for item in self._items
            if item.is_active and item.type in (ContextItemType.text, ContextItemType.page)
        ]


__all__ = ["ContextItemNotFound", "ContextSet"]
