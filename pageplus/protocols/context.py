from __future__ import annotations

from typing import Protocol, runtime_checkable

from pageplus.models.context import ContextItem


@runtime_checkable
class ContextStore(Protocol):
    async def load(self, conversation_id: str) -> list[ContextItem]: ...

    async def save(self, conversation_id: str, items: list[ContextItem]) -> None: ...


__all__ = ["ContextStore"]
