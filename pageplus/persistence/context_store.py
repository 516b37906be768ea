"""SQLite persistence for conversation context items."""

from __future__ import annotations

import json

import aiosqlite

from pageplus.models.context import CapturedElement, ContextItem, ContextItemType
from pageplus.models.messages import utc_now


class SQLiteContextStore:
    """Rows are upserted and never deleted; deactivation flips ``is_active``."""

    def __init__(self, db_path: str) -> None:
        self.db_path = db_path

    async def load(self, conversation_id: str) -> list[ContextItem]:
        async with aiosqlite.connect(self.db_path) as db:
            db.row_factory = aiosqlite.Row
            cursor = await db.execute(
                """SELECT * FROM context_items
                   WHERE conversation_id = ?
                   ORDER BY position ASC""",
                (conversation_id,),
            )
            rows = await cursor.fetchall()
            return [_row_to_item(row) for row in rows]

    async def save(self, conversation_id: str, items: list[ContextItem]) -> None:
        updated_at = utc_now().isoformat()
        async with aiosqlite.connect(self.db_path) as db:
            await db.executemany(
                """INSERT OR REPLACE INTO context_items (
                    conversation_id, item_id, position, item_type, content,
                    screenshot, elements, colors, url, is_active, updated_at
                ) VALUES (?, ?, ?, ?, ?, ?, ?, ?, ?, ?, ?)""",
                [_item_params(conversation_id, position, item, updated_at) for position, item in enumerate(items)],
            )
            await db.commit()

    async def list_conversations(self) -> list[str]:
        async with aiosqlite.connect(self.db_path) as db:
            cursor = await db.execute(
                "SELECT DISTINCT conversation_id FROM context_items ORDER BY conversation_id"
            )
            rows = await cursor.fetchall()
            return [row[0] for row in rows]


def _item_params(
    conversation_id: str,
    position: int,
    item: ContextItem,
    updated_at: str,
) -> tuple[object, ...]:
    data = item.model_dump(mode="json")
    return (
        conversation_id,
        data["id"],
        position,
        data["type"],
        data["content"],
        data["screenshot"],
        json.dumps(data["elements"]),
        json.dumps(data["colors"]),
        data["url"],
        1 if data["is_active"] else 0,
        updated_at,
    )


def _row_to_item(row: aiosqlite.Row) -> ContextItem:
    return ContextItem(
        id=row["item_id"],
        type=ContextItemType(row["item_type"]),
        content=row["content"],
        screenshot=row["screenshot"],
        elements=[CapturedElement.model_validate(element) for element in json.loads(row["elements"])],
        colors=json.loads(row["colors"]),
        url=row["url"],
        is_active=bool(row["is_active"]),
    )


__all__ = ["SQLiteContextStore"]
